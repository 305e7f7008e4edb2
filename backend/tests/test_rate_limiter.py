"""
Rate limiter tests
"""

from unittest.mock import MagicMock

from fastapi import FastAPI
from fastapi.testclient import TestClient
from redis import RedisError

from zyra.infrastructure.settings import get_settings
from zyra.utils.rate_limiter import RateLimiter, RateLimitMiddleware


def make_app(redis_client) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, redis_client=redis_client)

    @app.get("/api/v1/ping")
    async def ping():
        return {"pong": True}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


def test_allows_requests_under_limit():
    redis_client = MagicMock()
    redis_client.zcard.return_value = 3
    limiter = RateLimiter(redis_client, limit=10)

    is_allowed, remaining, limit, _ = limiter.check_rate_limit("api", "1.2.3.4")

    assert is_allowed is True
    assert remaining == 6
    assert limit == 10
    redis_client.zadd.assert_called_once()


def test_blocks_requests_at_limit():
    redis_client = MagicMock()
    redis_client.zcard.return_value = 10
    redis_client.zrange.return_value = [("1700000000.0", 1700000000.0)]
    limiter = RateLimiter(redis_client, limit=10)

    is_allowed, remaining, _, reset_time = limiter.check_rate_limit("api", "1.2.3.4")

    assert is_allowed is False
    assert remaining == 0
    assert reset_time == 1700000060
    redis_client.zadd.assert_not_called()


def test_middleware_returns_429(monkeypatch):
    monkeypatch.setattr(get_settings(), "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr(get_settings(), "RL_API_PER_MIN", 1)
    redis_client = MagicMock()
    redis_client.zcard.return_value = 1
    redis_client.zrange.return_value = []

    response = TestClient(make_app(redis_client)).get("/api/v1/ping")

    assert response.status_code == 429
    assert response.json()["error"]["code"] == "RATE_LIMITED"
    assert response.headers["X-RateLimit-Remaining"] == "0"


def test_middleware_fails_open_when_redis_is_down(monkeypatch):
    monkeypatch.setattr(get_settings(), "RATE_LIMIT_ENABLED", True)
    redis_client = MagicMock()
    redis_client.zremrangebyscore.side_effect = RedisError("connection refused")

    response = TestClient(make_app(redis_client)).get("/api/v1/ping")

    assert response.status_code == 200


def test_paths_outside_groups_are_not_limited(monkeypatch):
    monkeypatch.setattr(get_settings(), "RATE_LIMIT_ENABLED", True)
    redis_client = MagicMock()

    response = TestClient(make_app(redis_client)).get("/health")

    assert response.status_code == 200
    redis_client.zcard.assert_not_called()
