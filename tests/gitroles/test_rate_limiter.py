"""Tests for GitHubRateLimiter and ResponseCache."""

from __future__ import annotations

import time
from unittest.mock import AsyncMock, patch

import pytest

from gitroles.engines.role_sync.rate_limiter import GitHubRateLimiter
from gitroles.engines.role_sync.response_cache import ResponseCache


class TestGitHubRateLimiter:
    def test_default_from_env(self, monkeypatch):
        monkeypatch.setenv("GITROLES_GITHUB_REQUESTS_PER_MINUTE", "120")
        limiter = GitHubRateLimiter()
        assert limiter.requests_per_minute == 120.0

    def test_default_without_env(self, monkeypatch):
        monkeypatch.delenv("GITROLES_GITHUB_REQUESTS_PER_MINUTE", raising=False)
        assert GitHubRateLimiter().requests_per_minute == 80

    def test_rejects_non_positive(self):
        with pytest.raises(ValueError):
            GitHubRateLimiter(0)

    async def test_first_acquire_does_not_wait(self):
        limiter = GitHubRateLimiter(60)
        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            waited = await limiter.acquire()
        assert waited == 0.0
        sleep.assert_not_awaited()

    async def test_spacing_between_requests(self):
        limiter = GitHubRateLimiter(60)  # one per second
        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            await limiter.acquire()
            waited = await limiter.acquire()
        assert 0.9 <= waited <= 1.0
        sleep.assert_awaited_once()

    async def test_update_parses_headers(self):
        limiter = GitHubRateLimiter(60)
        await limiter.update(
            {
                "X-RateLimit-Remaining": "42",
                "X-RateLimit-Limit": "5000",
                "X-RateLimit-Reset": "1700000000",
            }
        )
        snap = limiter.snapshot()
        assert snap["remaining"] == 42
        assert snap["limit"] == 5000
        assert snap["reset_at"] == 1700000000.0

    async def test_update_ignores_garbage(self):
        limiter = GitHubRateLimiter(60)
        await limiter.update({"X-RateLimit-Remaining": "lots"})
        assert limiter.remaining is None

    async def test_exhausted_quota_holds_until_reset(self):
        limiter = GitHubRateLimiter(6000)
        reset = int(time.time()) + 30
        await limiter.update({"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": str(reset)})
        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            waited = await limiter.acquire()
        # reset + 5s buffer
        assert 33 <= waited <= 36
        sleep.assert_awaited_once()

    async def test_stale_zero_after_reset_is_forgotten(self):
        limiter = GitHubRateLimiter(6000)
        await limiter.update(
            {"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": str(int(time.time()) - 60)}
        )
        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            waited = await limiter.acquire()
        assert waited == 0.0
        sleep.assert_not_awaited()
        assert limiter.remaining is None


class TestResponseCache:
    def test_get_set(self):
        cache: ResponseCache[str] = ResponseCache()
        assert cache.get("k") is None
        cache.set("k", "v")
        assert cache.get("k") == "v"
        assert len(cache) == 1

    def test_evicts_least_recently_used(self):
        cache: ResponseCache[int] = ResponseCache(max_entries=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)
        assert cache.get("b") is None
        assert cache.get("a") == 1
        assert cache.get("c") == 3

    def test_expires_after_ttl(self):
        cache: ResponseCache[int] = ResponseCache(ttl_seconds=10)
        with patch("gitroles.engines.role_sync.response_cache.time.monotonic", return_value=100.0):
            cache.set("a", 1)
        with patch("gitroles.engines.role_sync.response_cache.time.monotonic", return_value=105.0):
            assert cache.get("a") == 1
        with patch("gitroles.engines.role_sync.response_cache.time.monotonic", return_value=111.0):
            assert cache.get("a") is None
        assert len(cache) == 0

    def test_invalidate_and_clear(self):
        cache: ResponseCache[int] = ResponseCache()
        cache.set("a", 1)
        cache.set("b", 2)
        cache.invalidate("a")
        cache.invalidate("missing")
        assert cache.get("a") is None
        cache.clear()
        assert len(cache) == 0

    def test_rejects_zero_size(self):
        with pytest.raises(ValueError):
            ResponseCache(max_entries=0)
