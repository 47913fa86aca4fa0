"""Counter stores backing per-device submission quotas."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional

import redis

from .config import Settings, settings
from .errors import CounterStoreUnavailable


logger = logging.getLogger("counters")


class CounterStore:
    """Integer counters with atomic increment and per-key expiry."""

    def get(self, key: str) -> int:
        raise NotImplementedError

    def incr_with_expiry(self, key: str, seconds: int) -> int:
        """Increment ``key`` and, if it has no expiry yet, expire it in ``seconds``. One atomic write."""
        raise NotImplementedError

    def ping(self) -> bool:
        return True


class RedisCounterStore(CounterStore):
    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str, *, socket_timeout: float = 1.0) -> "RedisCounterStore":
        client = redis.Redis.from_url(
            url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            decode_responses=True,
        )
        return cls(client)

    def get(self, key: str) -> int:
        try:
            raw = self._client.get(key)
        except redis.RedisError as exc:
            raise CounterStoreUnavailable(f"GET {key} failed: {exc}") from exc
        return int(raw) if raw else 0

    def incr_with_expiry(self, key: str, seconds: int) -> int:
        # EXPIRE NX needs Redis 7; MULTI keeps INCR and EXPIRE in one write.
        try:
            pipe = self._client.pipeline(transaction=True)
            pipe.incr(key)
            pipe.expire(key, seconds, nx=True)
            count, _ = pipe.execute()
        except redis.RedisError as exc:
            raise CounterStoreUnavailable(f"INCR+EXPIRE {key} failed: {exc}") from exc
        return int(count)

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError as exc:
            raise CounterStoreUnavailable(f"PING failed: {exc}") from exc


@dataclass
class Counter:
    value: int
    expires_at: Optional[float] = None


class InMemoryCounterStore(CounterStore):
    """Per-process counters. Quotas are not shared between workers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, Counter] = {}

    def _live(self, key: str, now: float) -> Optional[Counter]:
        counter = self._counters.get(key)
        if counter is not None and counter.expires_at is not None and counter.expires_at <= now:
            del self._counters[key]
            return None
        return counter

    def get(self, key: str) -> int:
        with self._lock:
            counter = self._live(key, time.monotonic())
            return counter.value if counter else 0

    def incr_with_expiry(self, key: str, seconds: int) -> int:
        with self._lock:
            now = time.monotonic()
            counter = self._live(key, now)
            if counter is None:
                counter = Counter(value=0)
                self._counters[key] = counter
            counter.value += 1
            if counter.expires_at is None:
                counter.expires_at = now + max(seconds, 0)
            return counter.value


def build_counter_store(cfg: Settings | None = None) -> CounterStore:
    cfg = cfg or settings
    if cfg.redis_url:
        logger.info("Using Redis counter store")
        return RedisCounterStore.from_url(cfg.redis_url, socket_timeout=cfg.redis_socket_timeout_sec)
    logger.warning("Using in-memory counter store; quotas are per-process")
    return InMemoryCounterStore()
