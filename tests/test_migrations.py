import pytest
from sqlalchemy import create_engine, inspect

from floodwatch.models import Base
from floodwatch.models.flood_report import FloodReport
from floodwatch.scripts.run_migrations import BASELINE_REVISION, BASELINE_TABLES, run_migrations_to_head


def _url(tmp_path) -> str:
    return f"sqlite+pysqlite:///{tmp_path / 'floodwatch.db'}"


def _tables(url: str) -> set[str]:
    engine = create_engine(url)
    try:
        return set(inspect(engine).get_table_names())
    finally:
        engine.dispose()


def test_fresh_database_is_migrated_to_head(tmp_path):
    url = _url(tmp_path)
    assert run_migrations_to_head(url) == BASELINE_REVISION
    assert BASELINE_TABLES | {"alembic_version"} <= _tables(url)


def test_create_all_database_is_stamped_not_recreated(tmp_path):
    url = _url(tmp_path)
    engine = create_engine(url)
    Base.metadata.create_all(engine)
    engine.dispose()

    assert run_migrations_to_head(url) == BASELINE_REVISION
    # Running again is a no-op.
    assert run_migrations_to_head(url) == BASELINE_REVISION
    assert "alembic_version" in _tables(url)


def test_partial_unversioned_schema_is_refused(tmp_path):
    url = _url(tmp_path)
    engine = create_engine(url)
    FloodReport.__table__.create(engine)
    engine.dispose()

    with pytest.raises(RuntimeError):
        run_migrations_to_head(url)
