import datetime
import logging

from floodwatch.core import errors


def test_guarded_call_returns_value():
    assert errors.guarded_call("noop", lambda: 42) == 42


def test_guarded_call_logs_and_falls_back(caplog):
    logger = logging.getLogger("test_errors")
    caplog.set_level(logging.ERROR)

    def _boom():
        raise RuntimeError("boom")

    result = errors.guarded_call("Ping", _boom, fallback=False, logger=logger, context={"store": "redis"})
    assert result is False
    assert any("Ping failed store=redis: boom" in rec.message for rec in caplog.records)


def test_log_exception_skips_empty_context(caplog):
    logger = logging.getLogger("test_errors")
    caplog.set_level(logging.ERROR)

    errors.log_exception(logger, "Write failed", extra={"id": None}, exc=ValueError("bad"))
    assert caplog.records[-1].message == "Write failed: bad"
    assert caplog.records[-1].exc_info is not None


def test_rejection_taxonomy():
    reset_at = datetime.datetime(2026, 10, 20, 4, 0, tzinfo=datetime.timezone.utc)
    quota = errors.QuotaExceeded(reset_at)
    assert isinstance(quota, errors.ReportRejected)
    assert quota.reason == errors.RejectionReason.RATE_LIMITED
    assert quota.reset_at == reset_at
    assert quota.retryable is False

    failure = errors.PersistenceFailure()
    assert failure.retryable is True
    assert str(failure).startswith("persistence_failure:")
    assert errors.RejectionReason("outside_service_region") is errors.RejectionReason.OUTSIDE_SERVICE_REGION
