"""
Service layer for the Floodwatch backend.

This package contains the report ingestion pipeline (geofence, quota and
confidence checks), the report lifecycle operations and the weekly archive
rotation. ``build_services`` wires them together from one settings value.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import sessionmaker

from ..core.config import Settings, settings
from ..core.counters import CounterStore, build_counter_store
from .archive_rotation import ArchiveRotationScheduler
from .confidence import ConfidenceAggregator
from .geofence import GeofenceValidator
from .rate_limiter import RateLimiter
from .reports import ReportLifecycleManager


@dataclass
class Services:
    settings: Settings
    session_factory: sessionmaker
    counter_store: CounterStore
    geofence: GeofenceValidator
    rate_limiter: RateLimiter
    confidence: ConfidenceAggregator
    reports: ReportLifecycleManager
    rotation: ArchiveRotationScheduler


def build_services(
    session_factory: sessionmaker,
    cfg: Settings | None = None,
    counter_store: CounterStore | None = None,
) -> Services:
    cfg = cfg or settings
    store = counter_store if counter_store is not None else build_counter_store(cfg)
    geofence = GeofenceValidator.from_settings(cfg)
    rate_limiter = RateLimiter(store, cfg)
    confidence = ConfidenceAggregator(session_factory, cfg)
    reports = ReportLifecycleManager(session_factory, geofence, confidence, rate_limiter, cfg)
    rotation = ArchiveRotationScheduler(session_factory, confidence, cfg)
    return Services(
        settings=cfg,
        session_factory=session_factory,
        counter_store=store,
        geofence=geofence,
        rate_limiter=rate_limiter,
        confidence=confidence,
        reports=reports,
        rotation=rotation,
    )


__all__ = ["Services", "build_services"]
