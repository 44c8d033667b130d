"""Tests for the rate-limited API routes.

Routes resolve the limiter through ``get_rate_limiter``; each test overrides
that dependency with a limiter over an isolated fake Redis server.
"""

from datetime import datetime
from unittest.mock import Mock

import fakeredis
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from ratelimit_api.adapters.rate_limit.base import AbstractCounterStore
from ratelimit_api.adapters.rate_limit.redis_store import RedisCounterStore
from ratelimit_api.core.app_factory import create_app
from ratelimit_api.core.config import settings
from ratelimit_api.core.errors import StoreUnavailableError
from ratelimit_api.core.rate_limit import get_rate_limiter
from ratelimit_api.services.rate_limiter_service import FixedWindowRateLimiter


@pytest.fixture
def redis_client() -> fakeredis.FakeStrictRedis:
    return fakeredis.FakeStrictRedis(server=fakeredis.FakeServer())


@pytest.fixture
def limiter(redis_client: fakeredis.FakeStrictRedis) -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(RedisCounterStore(redis_client), limit=3, window_seconds=60)


@pytest.fixture
def app(limiter: FixedWindowRateLimiter) -> FastAPI:
    application = create_app()
    application.dependency_overrides[get_rate_limiter] = lambda: limiter
    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


class TestConsumeEndpoint:
    def test_admitted_response_shape(self, client: TestClient) -> None:
        response = client.get("/api/test", params={"clientId": "user123"})

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Request successful"
        assert data["clientId"] == "user123"
        assert data["remaining"] == 2
        assert data["resetIn"] == 60
        datetime.fromisoformat(data["timestamp"])

        assert response.headers["X-RateLimit-Limit"] == "3"
        assert response.headers["X-RateLimit-Remaining"] == "2"
        assert response.headers["X-RateLimit-Reset"] == "60"
        assert "Retry-After" not in response.headers

    def test_returns_429_after_limit(self, client: TestClient) -> None:
        for expected_remaining in (2, 1, 0):
            response = client.get("/api/test", params={"clientId": "user123"})
            assert response.status_code == 200
            assert response.json()["remaining"] == expected_remaining

        response = client.get("/api/test", params={"clientId": "user123"})

        assert response.status_code == 429
        data = response.json()
        assert data["error"] == "Rate limit exceeded"
        assert data["message"] == "Too many requests. Please try again later."
        assert data["clientId"] == "user123"
        assert data["remaining"] == 0
        assert 0 < data["resetIn"] <= 60
        assert "timestamp" in data
        assert 0 < int(response.headers["Retry-After"]) <= 60
        assert response.headers["X-RateLimit-Remaining"] == "0"

    def test_denied_requests_are_not_counted(self, client: TestClient, redis_client) -> None:
        for _ in range(5):
            client.get("/api/test", params={"clientId": "user123"})

        assert redis_client.get("rate_limit:user123") == b"3"

    def test_headers_can_be_disabled(self, client: TestClient, monkeypatch) -> None:
        monkeypatch.setattr(settings.app, "rate_limit_include_headers", False)

        response = client.get("/api/test", params={"clientId": "user123"})

        assert response.status_code == 200
        assert "X-RateLimit-Limit" not in response.headers

    def test_missing_client_id_is_rejected(self, client: TestClient) -> None:
        response = client.get("/api/test")

        assert response.status_code == 422

    def test_blank_client_id_returns_400(self, client: TestClient, redis_client) -> None:
        response = client.get("/api/test", params={"clientId": "   "})

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "invalid_client_id"
        assert "request_id" in error
        assert redis_client.keys("*") == []


class TestStatusEndpoint:
    def test_status_for_unseen_client(self, client: TestClient) -> None:
        response = client.get("/api/status", params={"clientId": "fresh"})

        assert response.status_code == 200
        data = response.json()
        assert data["clientId"] == "fresh"
        assert data["remaining"] == 3
        assert data["limit"] == 3
        assert data["resetIn"] is None
        assert "X-RateLimit-Reset" not in response.headers

    def test_status_does_not_consume(self, client: TestClient) -> None:
        client.get("/api/test", params={"clientId": "user123"})

        for _ in range(5):
            response = client.get("/api/status", params={"clientId": "user123"})
            assert response.json()["remaining"] == 2

        assert 0 < response.json()["resetIn"] <= 60


class TestStoreFailures:
    @pytest.fixture
    def broken_client(self, app: FastAPI) -> TestClient:
        store = Mock(spec=AbstractCounterStore)
        error = StoreUnavailableError(code="store_unavailable", message="Counter store is unreachable")
        store.increment_within_limit.side_effect = error
        store.get.side_effect = error
        store.snapshot.side_effect = error
        store.ping.side_effect = error
        broken = FixedWindowRateLimiter(store, limit=3, window_seconds=60)
        app.dependency_overrides[get_rate_limiter] = lambda: broken
        return TestClient(app)

    def test_consume_fails_closed_with_503(self, broken_client: TestClient) -> None:
        response = broken_client.get("/api/test", params={"clientId": "user123"})

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "store_unavailable"
        assert response.headers["Retry-After"] == "1"

    def test_status_fails_with_503(self, broken_client: TestClient) -> None:
        response = broken_client.get("/api/status", params={"clientId": "user123"})

        assert response.status_code == 503

    def test_readiness_reports_store_outage(self, broken_client: TestClient) -> None:
        assert broken_client.get("/health").status_code == 200
        assert broken_client.get("/health/ready").status_code == 503

    def test_corrupt_counter_returns_500_without_details(
        self, client: TestClient, redis_client
    ) -> None:
        redis_client.set("rate_limit:user123", "garbage")

        response = client.get("/api/test", params={"clientId": "user123"})

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "corrupt_state"
        assert "details" not in error


def test_readiness_ok(client: TestClient) -> None:
    response = client.get("/health/ready")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "store": "ok"}


def test_openapi_documents_quota_headers(client: TestClient) -> None:
    schema = client.get("/openapi.json").json()

    responses = schema["paths"]["/api/test"]["get"]["responses"]
    assert "X-RateLimit-Remaining" in responses["200"]["headers"]
    assert "Retry-After" in responses["429"]["headers"]
    assert {t["name"] for t in schema["tags"]} >= {"Rate Limit", "Health"}
