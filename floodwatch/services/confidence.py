"""
Confidence scoring and rotation schedule arithmetic.

A new report's confidence is one plus the number of stored reports within
a fixed great-circle distance and recency window. Nearby reports are read
before the new report is inserted, so two simultaneous submissions in the
same spot may both score against the same snapshot. Confidence is a
best-effort corroboration heuristic and that race is accepted.
"""

from __future__ import annotations

import datetime
import math
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from ..core.config import Settings, settings
from ..core.timeutil import ensure_utc, utcnow
from ..models.flood_report import FloodReport


EARTH_RADIUS_METERS = 6_371_008.8
METERS_PER_DEGREE_LAT = 111_320.0


def haversine_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2.0) ** 2
    return 2.0 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(a)))


def _bounding_box(lat: float, lng: float, meters: float) -> tuple[float, float, float, float]:
    # Slightly padded so the SQL prefilter never excludes a true match.
    dlat = meters / METERS_PER_DEGREE_LAT * 1.01
    cos_lat = max(math.cos(math.radians(lat)), 1e-6)
    dlng = min(meters / (METERS_PER_DEGREE_LAT * cos_lat) * 1.01, 180.0)
    return lat - dlat, lat + dlat, lng - dlng, lng + dlng


def next_rotation_instant(
    now: datetime.datetime,
    *,
    weekday: int,
    hour: int,
    tz: datetime.tzinfo,
) -> datetime.datetime:
    """First ``weekday`` at ``hour``:00 local time strictly after ``now``, in UTC."""
    local = ensure_utc(now).astimezone(tz)
    days_ahead = (weekday - local.weekday()) % 7
    target_date = local.date() + datetime.timedelta(days=days_ahead)
    candidate = datetime.datetime.combine(target_date, datetime.time(hour, 0), tzinfo=tz)
    if candidate <= local:
        candidate = datetime.datetime.combine(target_date + datetime.timedelta(days=7), datetime.time(hour, 0), tzinfo=tz)
    return candidate.astimezone(datetime.timezone.utc)


def previous_rotation_instant(
    now: datetime.datetime,
    *,
    weekday: int,
    hour: int,
    tz: datetime.tzinfo,
) -> datetime.datetime:
    """Most recent ``weekday`` at ``hour``:00 local time at or before ``now``, in UTC."""
    upcoming = next_rotation_instant(now, weekday=weekday, hour=hour, tz=tz).astimezone(tz)
    previous_date = upcoming.date() - datetime.timedelta(days=7)
    return datetime.datetime.combine(previous_date, datetime.time(hour, 0), tzinfo=tz).astimezone(datetime.timezone.utc)


class ConfidenceAggregator:
    def __init__(self, session_factory: sessionmaker, cfg: Settings | None = None) -> None:
        cfg = cfg or settings
        self._session_factory = session_factory
        self._distance_m = cfg.nearby_distance_meters
        self._window = datetime.timedelta(hours=cfg.nearby_window_hours)
        self._weekday = cfg.rotation_weekday
        self._hour = cfg.rotation_hour
        self._tz = cfg.rotation_tz

    def count_nearby(self, lat: float, lng: float, now: Optional[datetime.datetime] = None, *, db: Optional[Session] = None) -> int:
        now = ensure_utc(now or utcnow())
        if db is None:
            with self._session_factory() as session:
                return self.count_nearby(lat, lng, now, db=session)
        south, north, west, east = _bounding_box(lat, lng, self._distance_m)
        rows = db.execute(
            select(FloodReport.latitude, FloodReport.longitude).where(
                FloodReport.latitude >= south,
                FloodReport.latitude <= north,
                FloodReport.longitude >= west,
                FloodReport.longitude <= east,
                FloodReport.created_at > now - self._window,
            )
        ).all()
        return sum(1 for r_lat, r_lng in rows if haversine_meters(lat, lng, r_lat, r_lng) <= self._distance_m)

    def compute_confidence(self, lat: float, lng: float, now: Optional[datetime.datetime] = None, *, db: Optional[Session] = None) -> int:
        return self.count_nearby(lat, lng, now, db=db) + 1

    def next_rotation_instant(self, now: Optional[datetime.datetime] = None) -> datetime.datetime:
        return next_rotation_instant(now or utcnow(), weekday=self._weekday, hour=self._hour, tz=self._tz)

    def previous_rotation_instant(self, now: Optional[datetime.datetime] = None) -> datetime.datetime:
        return previous_rotation_instant(now or utcnow(), weekday=self._weekday, hour=self._hour, tz=self._tz)
