"""
Archive rotation worker process entrypoint.

Runs the weekly rotation outside the API process. With ``--once`` it checks
the current slot a single time and exits, which suits a cron trigger:

    python -m floodwatch.worker --once
"""

from __future__ import annotations

import argparse
import logging
import os
import time

from .core.config import settings
from .core.db import SessionLocal
from .services.archive_rotation import ArchiveRotationScheduler
from .services.confidence import ConfidenceAggregator


logger = logging.getLogger("worker")


def _build_scheduler() -> ArchiveRotationScheduler:
    confidence = ConfidenceAggregator(SessionLocal, settings)
    return ArchiveRotationScheduler(SessionLocal, confidence, settings)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Floodwatch archive rotation worker")
    parser.add_argument("--once", action="store_true", help="check the current slot once and exit")
    parser.add_argument("--force", action="store_true", help="archive expired reports now, ignoring the slot ledger")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    scheduler = _build_scheduler()
    logger.info("Worker booted (pid=%s)", os.getpid())

    if args.force:
        count = scheduler.run_rotation()
        logger.info("Forced rotation archived=%s", count)
        return 0
    if args.once:
        count = scheduler.run_if_due()
        logger.info("Slot check finished archived=%s", count)
        return 0

    logger.info("Worker started interval=%ss", scheduler.interval)
    while True:
        try:
            scheduler.run_if_due()
            time.sleep(scheduler.interval)
        except KeyboardInterrupt:
            return 0
        except Exception:
            logger.exception("Worker loop error")
            time.sleep(scheduler.interval)


if __name__ == "__main__":
    raise SystemExit(main())
