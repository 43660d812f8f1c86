"""
Rate limiter tests
"""
import pytest
from httpx import AsyncClient
from starlette.requests import Request

from mockmate.core.config import settings
from mockmate.core.rate_limit import RateLimiter, client_ip


@pytest.fixture
def limits_on(monkeypatch):
    monkeypatch.setattr(settings, "rate_limit_enabled", True)


def make_request(peer: str, forwarded: str = None) -> Request:
    headers = [(b"x-forwarded-for", forwarded.encode())] if forwarded else []
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers, "client": (peer, 5000)})


@pytest.mark.asyncio
async def test_hit_counts_per_identity():
    limiter = RateLimiter("unit", limit=2, window_seconds=60)

    count, reset_in = await limiter.hit("ip:10.0.0.1")
    assert count == 1
    assert 0 < reset_in <= 60
    assert (await limiter.hit("ip:10.0.0.1"))[0] == 2
    assert (await limiter.hit("ip:10.0.0.2"))[0] == 1


def test_forwarded_for_needs_trusted_proxy(monkeypatch):
    monkeypatch.setattr(settings, "trusted_proxies", [])
    assert client_ip(make_request("198.51.100.4", "203.0.113.7")) == "198.51.100.4"

    monkeypatch.setattr(settings, "trusted_proxies", ["198.51.100.4"])
    assert client_ip(make_request("198.51.100.4", "203.0.113.7, 10.0.0.1")) == "203.0.113.7"
    assert client_ip(make_request("198.51.100.5", "203.0.113.7")) == "198.51.100.5"
    assert client_ip(make_request("198.51.100.4")) == "198.51.100.4"


@pytest.mark.asyncio
async def test_login_is_limited(client: AsyncClient, limits_on):
    body = {"email": "nobody@example.com", "password": "Wrong-pass1"}

    for attempt in range(5):
        response = await client.post("/api/auth/login", json=body)
        assert response.status_code == 401
        assert response.headers["X-RateLimit-Limit"] == "5"
        assert response.headers["X-RateLimit-Remaining"] == str(4 - attempt)

    response = await client.post("/api/auth/login", json=body)
    assert response.status_code == 429
    data = response.json()
    assert data["code"] == "RATE_LIMIT_EXCEEDED"
    assert data["data"]["limit"] == 5
    assert "Retry-After" in response.headers
    assert response.headers["X-RateLimit-Remaining"] == "0"


@pytest.mark.asyncio
async def test_spoofed_forwarded_for_shares_the_window(client: AsyncClient, limits_on, monkeypatch):
    monkeypatch.setattr(settings, "trusted_proxies", [])
    body = {"email": "nobody@example.com", "password": "Wrong-pass1"}

    for index in range(5):
        response = await client.post("/api/auth/login", json=body, headers={"X-Forwarded-For": f"203.0.113.{index}"})
        assert response.status_code == 401

    response = await client.post("/api/auth/login", json=body, headers={"X-Forwarded-For": "203.0.113.99"})
    assert response.status_code == 429


@pytest.mark.asyncio
async def test_trusted_proxy_gives_each_client_a_window(client: AsyncClient, limits_on, monkeypatch):
    monkeypatch.setattr(settings, "trusted_proxies", ["127.0.0.1"])
    body = {"email": "nobody@example.com", "password": "Wrong-pass1"}
    headers = {"X-Forwarded-For": "203.0.113.7"}

    for _ in range(5):
        await client.post("/api/auth/login", json=body, headers=headers)
    response = await client.post("/api/auth/login", json=body, headers=headers)
    assert response.status_code == 429

    response = await client.post("/api/auth/login", json=body, headers={"X-Forwarded-For": "203.0.113.8"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_limits_disabled(client: AsyncClient):
    body = {"email": "nobody@example.com", "password": "Wrong-pass1"}
    for _ in range(7):
        response = await client.post("/api/auth/login", json=body)
        assert response.status_code == 401
    assert "X-RateLimit-Limit" not in response.headers
