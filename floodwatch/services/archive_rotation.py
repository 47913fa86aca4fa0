"""
Weekly archive rotation of expired flood reports.

``run_rotation`` is one transaction: copy expired reports into the archive,
delete them from the active table and write an audit entry. Either all
three happen or none do, so no reader ever sees a report in both tables or
in neither. Running it twice in a row archives nothing the second time.

``run_if_due`` ties the rotation to wall-clock slots (the configured
weekday and hour in the reference time zone). Each slot is claimed once in
``rotation_runs``; a claimed slot is never re-run, so a failed rotation
waits for the following week. Slots missed while the process was down are
picked up on the next poll after a restart.
"""

from __future__ import annotations

import datetime
import logging
import threading
from typing import Optional

from sqlalchemy import DateTime, delete, func, insert, literal, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..core.config import Settings, settings
from ..core.errors import RotationInProgress, log_exception
from ..core.timeutil import ensure_utc, utcnow
from ..models.audit_log import AuditLog
from ..models.flood_report import ArchivedFloodReport, FloodReport
from ..models.rotation_run import RotationRun
from .confidence import ConfidenceAggregator


logger = logging.getLogger("archive_rotation")

ARCHIVED_COLUMNS = ("id", "latitude", "longitude", "road_name", "severity", "device_fingerprint", "created_at", "confidence_score")


class ArchiveRotationScheduler:
    """Moves expired reports into the archive once per weekly slot."""

    def __init__(
        self,
        session_factory: sessionmaker,
        confidence: ConfidenceAggregator,
        cfg: Settings | None = None,
    ) -> None:
        cfg = cfg or settings
        self._session_factory = session_factory
        self._confidence = confidence
        self.interval = cfg.rotation_poll_interval_sec
        self._run_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def run_rotation(self, now: Optional[datetime.datetime] = None) -> int:
        """Archive every report with ``expires_at <= now``. Returns the number archived."""
        if not self._run_lock.acquire(blocking=False):
            raise RotationInProgress("archive rotation already running")
        try:
            return self._rotate(ensure_utc(now or utcnow()))
        finally:
            self._run_lock.release()

    def _rotate(self, now: datetime.datetime) -> int:
        logger.info("Starting archive rotation cutoff=%s", now.isoformat())
        expired = FloodReport.expires_at <= now
        with self._session_factory() as db:
            try:
                eligible = db.scalar(select(func.count(FloodReport.id)).where(expired)) or 0
                source = select(
                    *(getattr(FloodReport, name) for name in ARCHIVED_COLUMNS),
                    literal(now, type_=DateTime(timezone=True)),
                ).where(expired)
                copy = insert(ArchivedFloodReport).from_select([*ARCHIVED_COLUMNS, "archived_at"], source)
                db.execute(copy)
                removed = db.execute(delete(FloodReport).where(expired)).rowcount
                if removed != eligible:
                    raise RuntimeError(f"archive mismatch: eligible={eligible} removed={removed}")
                db.add(AuditLog(
                    action="archive_expired_reports",
                    actor="scheduler",
                    details={"count": int(eligible), "cutoff": now.isoformat()},
                ))
                db.commit()
            except Exception:
                db.rollback()
                raise
        logger.info("Archive rotation completed archived=%s", eligible)
        return int(eligible)

    # Slot scheduling

    def run_if_due(self, now: Optional[datetime.datetime] = None) -> Optional[int]:
        """Run the rotation for the latest slot if nobody has claimed it. Returns the count or None."""
        now = ensure_utc(now or utcnow())
        slot = self._confidence.previous_rotation_instant(now)
        run_id = self._claim_slot(slot, now)
        if run_id is None:
            return None

        try:
            count = self.run_rotation(now)
        except Exception as exc:
            log_exception(logger, "Weekly rotation failed", extra={"slot": slot.isoformat()}, exc=exc)
            self._finish_run(run_id, status="FAILED", error=str(exc))
            return None
        self._finish_run(run_id, status="SUCCEEDED", archived_count=count)
        return count

    def _claim_slot(self, slot: datetime.datetime, now: datetime.datetime) -> Optional[str]:
        with self._session_factory() as db:
            existing = db.scalar(select(RotationRun.id).where(RotationRun.scheduled_for == slot))
            if existing:
                return None
            run = RotationRun(scheduled_for=slot, status="RUNNING", started_at=now)
            db.add(run)
            try:
                db.commit()
            except IntegrityError:
                # Another process claimed the slot first.
                db.rollback()
                return None
            logger.info("Claimed rotation slot %s run_id=%s", slot.isoformat(), run.id)
            return run.id

    def _finish_run(
        self,
        run_id: str,
        *,
        status: str,
        archived_count: Optional[int] = None,
        error: Optional[str] = None,
    ) -> None:
        try:
            with self._session_factory() as db:
                run = db.get(RotationRun, run_id)
                if run is None:
                    return
                run.status = status
                run.finished_at = utcnow()
                run.archived_count = archived_count
                run.error = error
                db.commit()
        except SQLAlchemyError as exc:
            log_exception(logger, "Failed to record rotation run", extra={"run_id": run_id}, exc=exc)

    def last_run(self) -> Optional[RotationRun]:
        with self._session_factory() as db:
            return db.scalar(select(RotationRun).order_by(RotationRun.scheduled_for.desc()).limit(1))

    # Background thread

    def start(self) -> None:
        """Start the polling thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="archive-rotation", daemon=True)
        self._thread.start()
        logger.info(
            "Archive rotation scheduler started (interval=%ss next=%s)",
            self.interval,
            self._confidence.next_rotation_instant().isoformat(),
        )

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Archive rotation scheduler stopped")

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_if_due()
            except Exception as exc:
                logger.exception("Archive rotation cycle failed: %s", exc)
            self._stop_event.wait(timeout=self.interval)
