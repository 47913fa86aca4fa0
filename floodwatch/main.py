"""
Entry point for the Floodwatch backend.

This module creates the FastAPI application, includes the API routers and
starts the weekly archive rotation thread. Run with:

    uvicorn floodwatch.main:app --reload

"""

from __future__ import annotations

import logging

from fastapi import FastAPI
from sqlalchemy.orm import sessionmaker

from . import __version__
from .api import api_router
from .core.config import Settings, get_app_env, settings as default_settings, validate_runtime_settings
from .core.counters import CounterStore
from .core.db import SessionLocal
from .core.errors import log_exception
from .models import Base
from .scripts.run_migrations import run_migrations_to_head
from .services import build_services


def create_app(
    cfg: Settings | None = None,
    session_factory: sessionmaker | None = None,
    counter_store: CounterStore | None = None,
) -> FastAPI:
    cfg = cfg or default_settings
    session_factory = session_factory or SessionLocal
    app = FastAPI(title="Floodwatch Backend", version=__version__)
    app.include_router(api_router)
    app.state.settings = cfg
    app.state.services = build_services(session_factory, cfg, counter_store)

    @app.on_event("startup")
    def _init() -> None:
        logger = logging.getLogger("startup")
        env = get_app_env()
        validate_runtime_settings(cfg)
        engine = session_factory.kw.get("bind")
        if cfg.auto_create_db and engine is not None:
            try:
                Base.metadata.create_all(bind=engine)
            except Exception as exc:
                log_exception(logger, "DB create_all failed", exc=exc)
                if env == "prod":
                    raise
        if cfg.auto_run_migrations:
            try:
                run_migrations_to_head(cfg.database_url)
            except Exception as exc:
                log_exception(logger, "DB migrations failed", exc=exc)
                if env == "prod":
                    raise
        if cfg.enable_rotation_scheduler:
            app.state.services.rotation.start()

    @app.on_event("shutdown")
    def _shutdown() -> None:
        if cfg.enable_rotation_scheduler:
            app.state.services.rotation.stop()

    return app


app = create_app()
