"""Timestamp normalization shared by services and storage."""

from __future__ import annotations

import datetime


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def ensure_utc(ts: datetime.datetime) -> datetime.datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC.
    if ts.tzinfo is None:
        return ts.replace(tzinfo=datetime.timezone.utc)
    return ts.astimezone(datetime.timezone.utc)


def next_local_midnight(now: datetime.datetime, tz: datetime.tzinfo) -> datetime.datetime:
    local = ensure_utc(now).astimezone(tz)
    tomorrow = local.date() + datetime.timedelta(days=1)
    return datetime.datetime.combine(tomorrow, datetime.time(0, 0), tzinfo=tz).astimezone(datetime.timezone.utc)


def local_midnight(now: datetime.datetime, tz: datetime.tzinfo) -> datetime.datetime:
    local = ensure_utc(now).astimezone(tz)
    return datetime.datetime.combine(local.date(), datetime.time(0, 0), tzinfo=tz).astimezone(datetime.timezone.utc)
