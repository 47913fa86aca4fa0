import datetime
from zoneinfo import ZoneInfo

from floodwatch.core.config import Settings
from floodwatch.core.db import build_engine, build_session_factory
from floodwatch.models import Base
from floodwatch.models.flood_report import FloodReport
from floodwatch.services.confidence import (
    ConfidenceAggregator,
    haversine_meters,
    next_rotation_instant,
    previous_rotation_instant,
)


UTC = datetime.timezone.utc
NY = ZoneInfo("America/New_York")
NOW = datetime.datetime(2026, 10, 19, 15, 0, tzinfo=UTC)


def _make_session_factory():
    engine = build_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    return build_session_factory(engine)


def _add_report(session_factory, lat, lng, created_at):
    with session_factory() as db:
        db.add(FloodReport(
            latitude=lat,
            longitude=lng,
            severity="moderate",
            device_fingerprint="seed",
            created_at=created_at,
            expires_at=created_at + datetime.timedelta(days=7),
            confidence_score=1,
        ))
        db.commit()


def _next(now):
    return next_rotation_instant(now, weekday=2, hour=5, tz=NY)


def test_haversine_short_distance():
    meters = haversine_meters(29.0, -81.1, 29.0005, -81.1005)
    assert 60 < meters < 80
    assert haversine_meters(29.0, -81.1, 29.0, -81.1) == 0


def test_isolated_report_scores_one():
    aggregator = ConfidenceAggregator(_make_session_factory(), Settings())
    assert aggregator.compute_confidence(29.0, -81.1, NOW) == 1


def test_recent_nearby_report_raises_score():
    session_factory = _make_session_factory()
    _add_report(session_factory, 29.0, -81.1, NOW - datetime.timedelta(minutes=10))
    aggregator = ConfidenceAggregator(session_factory, Settings())
    assert aggregator.count_nearby(29.0004, -81.1003, NOW) == 1
    assert aggregator.compute_confidence(29.0004, -81.1003, NOW) >= 2


def test_far_or_stale_reports_are_ignored():
    session_factory = _make_session_factory()
    # Roughly 150 m north.
    _add_report(session_factory, 29.00135, -81.1, NOW - datetime.timedelta(minutes=5))
    _add_report(session_factory, 29.0, -81.1, NOW - datetime.timedelta(hours=3))
    aggregator = ConfidenceAggregator(session_factory, Settings())
    assert aggregator.compute_confidence(29.0, -81.1, NOW) == 1


def test_next_rotation_before_and_after_wednesday_five():
    before = datetime.datetime(2026, 10, 21, 4, 59, tzinfo=NY)
    after = datetime.datetime(2026, 10, 21, 5, 1, tzinfo=NY)
    assert _next(before) == datetime.datetime(2026, 10, 21, 9, 0, tzinfo=UTC)
    assert _next(after) == datetime.datetime(2026, 10, 28, 9, 0, tzinfo=UTC)


def test_next_rotation_exactly_on_the_hour_rolls_a_week():
    exact = datetime.datetime(2026, 10, 21, 5, 0, tzinfo=NY)
    assert _next(exact) == datetime.datetime(2026, 10, 28, 9, 0, tzinfo=UTC)


def test_next_rotation_tracks_standard_time():
    # DST ends on 2026-11-01, so the following Wednesday 05:00 is 10:00 UTC.
    now = datetime.datetime(2026, 10, 28, 6, 0, tzinfo=NY)
    assert _next(now) == datetime.datetime(2026, 11, 4, 10, 0, tzinfo=UTC)


def test_next_rotation_is_always_a_wednesday_after_now():
    start = datetime.datetime(2026, 10, 19, 0, 0, tzinfo=UTC)
    for hours in range(0, 24 * 14, 5):
        now = start + datetime.timedelta(hours=hours)
        upcoming = _next(now)
        local = upcoming.astimezone(NY)
        assert upcoming > now
        assert upcoming - now <= datetime.timedelta(days=7, hours=1)
        assert (local.weekday(), local.hour, local.minute) == (2, 5, 0)


def test_previous_rotation_instant():
    assert previous_rotation_instant(NOW, weekday=2, hour=5, tz=NY) == datetime.datetime(2026, 10, 14, 9, 0, tzinfo=UTC)
    aggregator = ConfidenceAggregator(_make_session_factory(), Settings())
    assert aggregator.previous_rotation_instant(NOW) == datetime.datetime(2026, 10, 14, 9, 0, tzinfo=UTC)
    assert aggregator.next_rotation_instant(NOW) == datetime.datetime(2026, 10, 21, 9, 0, tzinfo=UTC)
