import datetime
import logging
import os

# Lightweight DB setup and disable background tasks
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:////tmp/floodwatch_test_api.db")
os.environ.setdefault("ENABLE_ROTATION_SCHEDULER", "false")

from fastapi.testclient import TestClient

from floodwatch.api.dependencies import rejection_to_http
from floodwatch.core.config import Settings
from floodwatch.core.counters import CounterStore, InMemoryCounterStore
from floodwatch.core.db import build_engine, build_session_factory
from floodwatch.core.errors import CounterStoreUnavailable, PersistenceFailure, QuotaExceeded, RejectionReason, ReportRejected
from floodwatch.main import create_app


ADMIN_TOKEN = "test-admin-token-0123456789"
VOLUSIA = {"latitude": 29.0, "longitude": -81.1, "severity": "moderate", "road_name": "Beach St"}


def _client(admin_token: str | None = ADMIN_TOKEN, counter_store: CounterStore | None = None) -> TestClient:
    cfg = Settings(
        database_url="sqlite+pysqlite:///:memory:",
        admin_token=admin_token,
        auto_create_db=True,
        enable_rotation_scheduler=False,
    )
    session_factory = build_session_factory(build_engine(cfg.database_url, cfg))
    app = create_app(cfg, session_factory=session_factory, counter_store=counter_store or InMemoryCounterStore())
    return TestClient(app)


def _device(device_id: str) -> dict:
    return {"X-Device-Fingerprint": device_id}


def _admin() -> dict:
    return {"X-Admin-Token": ADMIN_TOKEN, "X-Admin-Name": "ops"}


def test_submit_requires_device_fingerprint():
    with _client() as client:
        resp = client.post("/api/v1/reports", json=VOLUSIA)
        assert resp.status_code == 401


def test_submit_and_list_as_geojson():
    with _client() as client:
        resp = client.post("/api/v1/reports", json=VOLUSIA, headers=_device("abc"))
        assert resp.status_code == 201
        body = resp.json()
        assert body["report"]["confidence_score"] == 1
        assert body["report"]["region"] == "Volusia"
        assert body["rate_limit"]["remaining"] == 2

        listing = client.get("/api/v1/reports", headers=_device("abc")).json()
        assert listing["type"] == "FeatureCollection"
        feature = listing["features"][0]
        assert feature["geometry"] == {"type": "Point", "coordinates": [-81.1, 29.0]}
        assert feature["properties"]["is_own_report"] is True
        assert feature["properties"]["road_name"] == "Beach St"
        assert "device_fingerprint" not in feature["properties"]

        other = client.get("/api/v1/reports", headers=_device("xyz")).json()
        assert other["features"][0]["properties"]["is_own_report"] is False


def test_validation_rejections_are_400():
    with _client() as client:
        outside = client.post("/api/v1/reports", json={**VOLUSIA, "latitude": 28.0}, headers=_device("abc"))
        assert outside.status_code == 400
        assert outside.json()["detail"]["error"] == "outside_service_region"

        severity = client.post("/api/v1/reports", json={**VOLUSIA, "severity": "extreme"}, headers=_device("abc"))
        assert severity.status_code == 400
        assert severity.json()["detail"]["error"] == "invalid_severity"

        status = client.get("/api/v1/reports/rate-limit", headers=_device("abc")).json()
        assert status["remaining"] == 3


def test_fourth_submission_is_429():
    with _client() as client:
        for _ in range(3):
            assert client.post("/api/v1/reports", json=VOLUSIA, headers=_device("abc")).status_code == 201
        resp = client.post("/api/v1/reports", json=VOLUSIA, headers=_device("abc"))
        assert resp.status_code == 429
        assert int(resp.headers["Retry-After"]) >= 1
        detail = resp.json()["detail"]
        assert detail["error"] == "rate_limited"
        assert detail["remaining"] == 0
        assert "reset_at" in detail

        assert client.post("/api/v1/reports", json=VOLUSIA, headers=_device("xyz")).status_code == 201


def test_bbox_parameters_go_together():
    with _client() as client:
        partial = client.get("/api/v1/reports", params={"north": 29.3, "south": 28.7})
        assert partial.status_code == 400
        inverted = client.get("/api/v1/reports", params={"north": 28.7, "south": 29.3, "east": -80.7, "west": -81.5})
        assert inverted.status_code == 400
        offshore = client.get("/api/v1/reports", params={"north": 10.0, "south": 5.0, "east": -60.0, "west": -65.0})
        assert offshore.status_code == 400
        ok = client.get("/api/v1/reports", params={"north": 29.3, "south": 28.7, "east": -80.7, "west": -81.5})
        assert ok.status_code == 200


def test_owner_delete_and_not_found():
    with _client() as client:
        report_id = client.post("/api/v1/reports", json=VOLUSIA, headers=_device("abc")).json()["report"]["id"]

        assert client.delete(f"/api/v1/reports/{report_id}", headers=_device("xyz")).status_code == 404
        assert client.delete(f"/api/v1/reports/{report_id}", headers=_device("abc")).status_code == 200
        assert client.delete(f"/api/v1/reports/{report_id}", headers=_device("abc")).status_code == 404


def test_admin_requires_token():
    with _client() as client:
        assert client.get("/api/v1/admin/reports").status_code == 401
        assert client.get("/api/v1/admin/reports", headers={"X-Admin-Token": "wrong"}).status_code == 401
    with _client(admin_token=None) as client:
        assert client.get("/api/v1/admin/reports", headers=_admin()).status_code == 403


def test_admin_views_and_deletes():
    with _client() as client:
        first = client.post("/api/v1/reports", json=VOLUSIA, headers=_device("abc")).json()["report"]["id"]
        client.post("/api/v1/reports", json=VOLUSIA, headers=_device("xyz"))

        reports = client.get("/api/v1/admin/reports", headers=_admin()).json()
        assert {r["device_fingerprint"] for r in reports} == {"abc", "xyz"}

        stats = client.get("/api/v1/admin/stats", headers=_admin()).json()
        assert stats["total"] == 2
        assert stats["by_severity"] == {"moderate": 2}

        assert client.delete(f"/api/v1/admin/reports/{first}", headers=_admin()).status_code == 200
        assert client.delete(f"/api/v1/admin/reports/{first}", headers=_admin()).status_code == 404
        cleared = client.delete("/api/v1/admin/reports", headers=_admin()).json()
        assert cleared["count"] == 1


def test_admin_manual_rotation():
    with _client() as client:
        client.post("/api/v1/reports", json=VOLUSIA, headers=_device("abc"))
        resp = client.post("/api/v1/admin/rotation/run", headers=_admin())
        assert resp.status_code == 200
        # Nothing submitted just now has expired yet.
        assert resp.json()["archived_count"] == 0


def test_health_reports_components():
    with _client() as client:
        body = client.get("/api/v1/health").json()
        assert body["status"] == "ok"
        assert body["database"] == "ok"
        assert body["counter_store"] == "ok"
        assert body["last_rotation"] is None
        assert body["next_rotation"]


class _UnreachableStore(InMemoryCounterStore):
    def ping(self):
        raise CounterStoreUnavailable("connection refused")


def test_health_degraded_when_counter_store_is_down(caplog):
    caplog.set_level(logging.WARNING, logger="health")
    with _client(counter_store=_UnreachableStore()) as client:
        body = client.get("/api/v1/health").json()
    assert body["status"] == "degraded"
    assert body["counter_store"] == "unavailable"
    health_records = [rec for rec in caplog.records if rec.name == "health"]
    assert any(rec.levelno == logging.WARNING for rec in health_records)
    assert not any(rec.levelno >= logging.ERROR for rec in health_records)


def test_rejection_to_http_mapping():
    reset_at = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(hours=2)

    quota = rejection_to_http(QuotaExceeded(reset_at))
    assert quota.status_code == 429
    assert 1 <= int(quota.headers["Retry-After"]) <= 7200

    failure = rejection_to_http(PersistenceFailure())
    assert failure.status_code == 503
    assert failure.detail["retryable"] is True

    invalid = rejection_to_http(ReportRejected(RejectionReason.INVALID_COORDINATES, "bad"))
    assert invalid.status_code == 400
    assert invalid.detail == {"error": "invalid_coordinates", "message": "bad"}
