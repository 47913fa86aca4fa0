"""
Run Alembic migrations to head.

Databases created by ``create_all`` (the development default) already hold
the baseline tables but carry no Alembic state; those are stamped at the
baseline revision first so the upgrade does not try to recreate them.

Usage:
    python -m floodwatch.scripts.run_migrations [--url DATABASE_URL]
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from sqlalchemy import create_engine, inspect

from floodwatch.core.config import settings


logger = logging.getLogger("scripts.run_migrations")

BASELINE_REVISION = "20261019_01"
BASELINE_TABLES = {"flood_reports", "flood_reports_archive", "audit_log", "rotation_runs"}


def _build_alembic_config(database_url: str) -> Config:
    project_root = Path(__file__).resolve().parents[2]
    alembic_ini = project_root / "alembic.ini"
    if not alembic_ini.exists():
        raise FileNotFoundError(f"alembic.ini not found at {alembic_ini}")
    cfg = Config(str(alembic_ini))
    cfg.set_main_option("script_location", str(project_root / "alembic"))
    cfg.set_main_option("sqlalchemy.url", database_url)
    return cfg


def _inspect_schema(database_url: str) -> tuple[set[str], Optional[str]]:
    """Return the existing table names and the stamped revision, if any."""
    engine = create_engine(database_url)
    try:
        with engine.connect() as conn:
            tables = set(inspect(conn).get_table_names())
            revision = MigrationContext.configure(conn).get_current_revision()
    finally:
        engine.dispose()
    return tables, revision


def run_migrations_to_head(database_url: Optional[str] = None) -> Optional[str]:
    """Upgrade the database to head and return the resulting revision."""
    database_url = database_url or settings.database_url
    cfg = _build_alembic_config(database_url)
    tables, revision = _inspect_schema(database_url)
    if revision is None:
        present = tables & BASELINE_TABLES
        if present == BASELINE_TABLES:
            logger.info("Stamping create_all schema at %s", BASELINE_REVISION)
            command.stamp(cfg, BASELINE_REVISION)
        elif present:
            raise RuntimeError(
                f"Partial schema without Alembic state (missing {', '.join(sorted(BASELINE_TABLES - present))}); "
                "repair it by hand before migrating"
            )
    command.upgrade(cfg, "head")
    _, head = _inspect_schema(database_url)
    logger.info("Database at revision %s (was %s)", head, revision or "unversioned")
    return head


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Upgrade the Floodwatch schema to the latest revision")
    parser.add_argument("--url", default=None, help="database URL (defaults to DATABASE_URL)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    try:
        run_migrations_to_head(args.url)
    except Exception as exc:
        logger.error("Migrations failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
