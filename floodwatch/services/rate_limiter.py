"""
Per-device daily submission quota.

Counters are keyed by device fingerprint and local calendar date, so the
quota window is a wall-clock day rather than a rolling 24 hours. The
first increment of a day sets the key to expire at local midnight.

When the counter store is unreachable the limiter fails open: submissions
proceed and the event is logged as degraded mode.
"""

from __future__ import annotations

import datetime
import logging
import math
from dataclasses import dataclass
from typing import Optional

from ..core.config import Settings, settings
from ..core.counters import CounterStore
from ..core.errors import CounterStoreUnavailable
from ..core.timeutil import ensure_utc, next_local_midnight, utcnow


logger = logging.getLogger("rate_limiter")


@dataclass(frozen=True)
class RateLimitStatus:
    remaining: int
    reset_at: datetime.datetime
    degraded: bool = False


class RateLimiter:
    def __init__(self, store: CounterStore, cfg: Settings | None = None) -> None:
        cfg = cfg or settings
        self._store = store
        self._limit = cfg.reports_per_day
        self._tz = cfg.quota_tz

    @property
    def limit(self) -> int:
        return self._limit

    def key_for(self, device_id: str, now: Optional[datetime.datetime] = None) -> str:
        local_date = ensure_utc(now or utcnow()).astimezone(self._tz).date()
        return f"ratelimit:{device_id}:{local_date.isoformat()}"

    def reset_at(self, now: Optional[datetime.datetime] = None) -> datetime.datetime:
        return next_local_midnight(now or utcnow(), self._tz)

    def remaining(self, device_id: str, now: Optional[datetime.datetime] = None) -> RateLimitStatus:
        now = now or utcnow()
        reset_at = self.reset_at(now)
        try:
            count = self._store.get(self.key_for(device_id, now))
        except CounterStoreUnavailable as exc:
            logger.warning("Rate limit check degraded, failing open device=%s: %s", device_id, exc)
            return RateLimitStatus(remaining=self._limit, reset_at=reset_at, degraded=True)
        return RateLimitStatus(remaining=max(0, self._limit - count), reset_at=reset_at)

    def is_limited(self, device_id: str, now: Optional[datetime.datetime] = None) -> bool:
        return self.remaining(device_id, now).remaining <= 0

    def increment(self, device_id: str, now: Optional[datetime.datetime] = None) -> Optional[int]:
        """Atomically charge one submission. Returns the new count, or None when degraded."""
        now = now or utcnow()
        key = self.key_for(device_id, now)
        ttl = math.ceil((self.reset_at(now) - ensure_utc(now)).total_seconds())
        try:
            count = self._store.incr_with_expiry(key, max(ttl, 1))
        except CounterStoreUnavailable as exc:
            logger.warning("Rate limit increment degraded, quota not charged device=%s: %s", device_id, exc)
            return None
        return count
