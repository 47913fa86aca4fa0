import pytest
from pydantic import ValidationError

from floodwatch.core.config import ServiceRegion, Settings, validate_runtime_settings


def test_defaults():
    cfg = Settings()
    assert cfg.reports_per_day == 3
    assert cfg.rotation_weekday == 2
    assert cfg.rotation_hour == 5
    assert str(cfg.rotation_tz) == "America/New_York"
    assert [r.name for r in cfg.service_regions] == ["volusia", "palm_beach"]


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("REPORTS_PER_DAY", "5")
    monkeypatch.setenv("QUOTA_TIMEZONE", "UTC")
    monkeypatch.setenv(
        "SERVICE_REGIONS",
        '[{"name": "brevard", "north": 28.8, "south": 27.8, "east": -80.4, "west": -81.0}]',
    )
    cfg = Settings()
    assert cfg.reports_per_day == 5
    assert cfg.quota_timezone == "UTC"
    assert cfg.service_regions[0].display_name == "Brevard"


def test_rejects_unknown_timezone():
    with pytest.raises(ValidationError):
        Settings(rotation_timezone="Mars/Olympus")


def test_rejects_duplicate_regions():
    region = ServiceRegion(name="volusia", north=29.3, south=28.7, east=-80.7, west=-81.5)
    with pytest.raises(ValidationError):
        Settings(service_regions=[region, region])


def test_rejects_inverted_region():
    with pytest.raises(ValidationError):
        ServiceRegion(name="bad", north=28.0, south=29.0, east=-80.0, west=-81.0)


def test_settings_are_frozen():
    cfg = Settings()
    with pytest.raises(ValidationError):
        cfg.reports_per_day = 10


def test_prod_requires_shared_counter_store(monkeypatch):
    monkeypatch.setenv("FLOODWATCH_ENV", "prod")
    with pytest.raises(RuntimeError):
        validate_runtime_settings(Settings(redis_url=None, auto_create_db=False))
    with pytest.raises(RuntimeError):
        validate_runtime_settings(Settings(redis_url="redis://localhost:6379/0", admin_token="admin"))
    validate_runtime_settings(
        Settings(redis_url="redis://localhost:6379/0", admin_token="a-long-random-admin-token-value", auto_create_db=False)
    )
