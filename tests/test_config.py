import pytest
from pydantic import ValidationError

from social.tube.pod.app.config import Settings
from social.tube.pod.app.health import HealthGauge
from social.tube.pod.library.listing import ListingQuery, clamp_count


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///pod.db")
    monkeypatch.setenv("KNOWN_PODS", "http://a.example, http://b.example,")
    monkeypatch.setenv("PORT", "9100")
    monkeypatch.setenv("FEDERATION_REQUIRES_ADMIN", "true")

    settings = Settings()

    assert settings.database_dsn == "sqlite+aiosqlite:///pod.db"
    assert settings.known_pods == ["http://a.example", "http://b.example"]
    assert settings.http_port == 9100
    assert settings.federation_requires_admin is True
    assert settings.access_token_expiry == 3600


def test_settings_rejects_unknown_metrics_backend():
    with pytest.raises(ValidationError):
        Settings(metrics_backend="otel")


def test_clamp_count():
    assert clamp_count(None, 15, 100) == 15
    assert clamp_count(500, 15, 100) == 100
    assert clamp_count(2, 15, 100) == 2


def test_listing_query():
    query = ListingQuery.model_validate({"start": "1", "count": "2", "sort": "-username"})
    assert (query.start, query.count, query.sort) == (1, 2, "-username")

    with pytest.raises(ValidationError):
        ListingQuery.model_validate({"start": "-1"})
    with pytest.raises(ValidationError):
        ListingQuery.model_validate({"count": "0"})


async def test_health_gauge():
    gauge = HealthGauge(health_threshold=2)

    assert await gauge.is_healthy()
    await gauge.record_failure(weight=3)
    assert not await gauge.is_healthy()

    await gauge.tick()
    assert await gauge.value() == 2
    assert await gauge.is_healthy()

    await gauge.tick()
    await gauge.tick()
    await gauge.tick()
    assert await gauge.value() == 0
