"""
Database session management for the Floodwatch backend.

Uses SQLAlchemy 2.x style `Session` and declarative models. Provides an
engine builder that applies bounded timeouts per dialect, and a session factory.
"""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .config import Settings, settings


def build_engine(database_url: str, cfg: Settings | None = None) -> Engine:
    """Create an engine whose connections and statements carry timeouts."""
    cfg = cfg or settings
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        connect_args = {"check_same_thread": False, "timeout": cfg.db_connect_timeout_sec}
        if url.database in (None, "", ":memory:"):
            # A single shared connection keeps an in-memory database alive across sessions.
            return create_engine(database_url, future=True, connect_args=connect_args, poolclass=StaticPool)
        return create_engine(database_url, future=True, connect_args=connect_args)

    connect_args = {}
    if url.get_backend_name() == "postgresql":
        connect_args = {
            "connect_timeout": cfg.db_connect_timeout_sec,
            "options": f"-c statement_timeout={cfg.db_statement_timeout_ms}",
        }
    return create_engine(
        database_url,
        echo=False,
        future=True,
        pool_pre_ping=True,
        pool_size=cfg.db_pool_size,
        max_overflow=cfg.db_max_overflow,
        pool_timeout=cfg.db_pool_timeout_sec,
        pool_recycle=1800,
        connect_args=connect_args,
    )


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(bind=bind, autocommit=False, autoflush=False, expire_on_commit=False, future=True)


# Create SQLAlchemy engine
engine = build_engine(settings.database_url)

# Create a configured session factory
SessionLocal = build_session_factory(engine)
