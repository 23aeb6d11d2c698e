"""Tests for the in-memory rate limiter and its middleware."""

import pytest
from fastapi.testclient import TestClient

from planhaus.api.rate_limit import RateLimiter
from planhaus.api.server import create_app


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_limiter_blocks_after_max_requests_and_resets_with_window():
    clock = FakeClock()
    limiter = RateLimiter(window=60, max_requests=2, clock=clock)

    first = limiter.hit('ip')
    second = limiter.hit('ip')
    third = limiter.hit('ip')

    assert (first.allowed, first.remaining) == (True, 1)
    assert (second.allowed, second.remaining) == (True, 0)
    assert not third.allowed
    assert third.retry_after == 60

    clock.now += 61
    assert limiter.hit('ip').allowed


def test_release_gives_back_a_request():
    limiter = RateLimiter(window=60, max_requests=1, clock=FakeClock())
    limiter.hit('ip')
    assert limiter.release('ip') == 1
    assert limiter.release('unknown') is None
    assert limiter.hit('ip').allowed


def test_cleanup_drops_expired_windows():
    clock = FakeClock()
    limiter = RateLimiter(window=60, max_requests=5, clock=clock)
    limiter.hit('a')
    clock.now += 30
    limiter.hit('b')
    clock.now += 31

    assert limiter.cleanup() == 1
    assert len(limiter) == 1


@pytest.fixture()
def limited_client(db):
    limiters = {
        'auth': RateLimiter(60, 2, message="Too many login attempts. Please try again later.", key_prefix='auth:'),
        'general': RateLimiter(60, 2, message="Too many requests. Please slow down.",
                               skip_successful_requests=True),
    }
    with TestClient(create_app(db=db, rate_limiters=limiters)) as client:
        yield client, limiters


def test_auth_endpoints_are_limited(limited_client):
    client, limiters = limited_client
    credentials = {"email": "nobody@example.com", "password": "wrong-password"}

    assert client.post("/api/auth/login", json=credentials).status_code == 401
    assert client.post("/api/auth/login", json=credentials).status_code == 401
    blocked = client.post("/api/auth/login", json=credentials)

    assert blocked.status_code == 429
    assert blocked.json()["error"] == "Too many login attempts. Please try again later."
    assert blocked.json()["retryAfter"] > 0
    assert blocked.headers["X-RateLimit-Limit"] == "2"
    assert blocked.headers["X-RateLimit-Remaining"] == "0"
    assert 'auth:testclient' in limiters['auth']._store


def test_successful_requests_do_not_count_against_general_limit(limited_client):
    client, _ = limited_client

    for _ in range(5):
        response = client.post("/api/auth/demo-login")
        assert response.status_code == 200
        assert response.headers["X-RateLimit-Remaining"] == "2"

    assert client.get("/api/projects").status_code == 401
    assert client.get("/api/projects").status_code == 401
    assert client.get("/api/projects").status_code == 429


def test_health_is_not_limited(limited_client):
    client, _ = limited_client
    for _ in range(5):
        assert client.get("/health").status_code == 200
