"""Create database tables for the Floodwatch backend."""

from __future__ import annotations

import logging

from sqlalchemy import inspect

from floodwatch.core.db import engine
from floodwatch.models import Base


logger = logging.getLogger("scripts.create_db")


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    Base.metadata.create_all(bind=engine)
    tables = sorted(inspect(engine).get_table_names())
    logger.info("Database tables created/verified: %s", ", ".join(tables))


if __name__ == "__main__":
    main()
