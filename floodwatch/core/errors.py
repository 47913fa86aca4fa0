"""
Error taxonomy and shared error-handling helpers for the Floodwatch backend.
"""

from __future__ import annotations

import datetime
import enum
import logging
from typing import Callable, TypeVar

T = TypeVar("T")


class RejectionReason(str, enum.Enum):
    INVALID_COORDINATES = "invalid_coordinates"
    OUTSIDE_SERVICE_REGION = "outside_service_region"
    INVALID_SEVERITY = "invalid_severity"
    RATE_LIMITED = "rate_limited"
    PERSISTENCE_FAILURE = "persistence_failure"


class ReportRejected(Exception):
    """A submission was refused. ``reason`` is machine-checkable."""

    retryable = False

    def __init__(self, reason: RejectionReason, message: str) -> None:
        self.reason = reason
        self.message = message
        super().__init__(f"{reason.value}: {message}")


class QuotaExceeded(ReportRejected):
    def __init__(self, reset_at: datetime.datetime, message: str = "Daily report limit reached") -> None:
        self.reset_at = reset_at
        self.remaining = 0
        super().__init__(RejectionReason.RATE_LIMITED, message)


class PersistenceFailure(ReportRejected):
    retryable = True

    def __init__(self, message: str = "Report storage is temporarily unavailable") -> None:
        super().__init__(RejectionReason.PERSISTENCE_FAILURE, message)


class CounterStoreUnavailable(RuntimeError):
    """The rate limit counter store could not be reached in time."""


class RotationInProgress(RuntimeError):
    """An archive rotation is already running in this process."""


def _format_extra(extra: dict | None) -> str:
    if not extra:
        return ""
    parts: list[str] = []
    for key, value in extra.items():
        if value is None:
            continue
        parts.append(f"{key}={value}")
    return f" {' '.join(parts)}" if parts else ""


def log_exception(logger: logging.Logger, msg: str, *, extra: dict | None = None, exc: Exception | None = None) -> None:
    """
    Log an exception with context. Uses logger.exception for stack traces.
    """
    suffix = _format_extra(extra)
    if exc is not None:
        logger.error(f"{msg}{suffix}: {exc}", exc_info=exc)
        return
    logger.exception(f"{msg}{suffix}")


def guarded_call(
    name: str,
    fn: Callable[[], T],
    *,
    fallback: T | None = None,
    logger: logging.Logger | None = None,
    context: dict | None = None,
) -> T | None:
    """
    Execute fn with logging on failure. Returns fallback if provided.
    """
    try:
        return fn()
    except Exception as exc:
        if logger:
            log_exception(logger, f"{name} failed", extra=context or {}, exc=exc)
        return fallback
