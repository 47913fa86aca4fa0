"""
Health endpoint for the Floodwatch backend.

Reports database and counter store reachability plus the last rotation.
A counter store outage is reported as degraded, not down, because
submissions keep flowing without quota enforcement.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text

from ...core.errors import CounterStoreUnavailable, guarded_call
from ...core.timeutil import ensure_utc, utcnow
from ...services import Services
from ..dependencies import get_services


logger = logging.getLogger("health")

router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("")
def health(services: Services = Depends(get_services)) -> dict:
    def _db_ping() -> bool:
        with services.session_factory() as db:
            db.execute(text("SELECT 1"))
        return True

    database_ok = guarded_call("Database ping", _db_ping, fallback=False, logger=logger)
    try:
        counters_ok = services.counter_store.ping()
    except CounterStoreUnavailable as exc:
        logger.warning("Counter store unreachable, quotas in degraded mode: %s", exc)
        counters_ok = False
    last_run = guarded_call("Rotation ledger read", services.rotation.last_run, logger=logger)

    if not database_ok:
        status = "down"
    elif not counters_ok:
        status = "degraded"
    else:
        status = "ok"
    return {
        "status": status,
        "timestamp": utcnow().isoformat(),
        "database": "ok" if database_ok else "unavailable",
        "counter_store": "ok" if counters_ok else "unavailable",
        "last_rotation": {
            "scheduled_for": ensure_utc(last_run.scheduled_for).isoformat(),
            "status": last_run.status,
            "archived_count": last_run.archived_count,
        } if last_run else None,
        "next_rotation": services.confidence.next_rotation_instant().isoformat(),
    }
