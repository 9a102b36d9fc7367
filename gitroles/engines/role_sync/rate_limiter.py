"""Process-wide GitHub request pacing and quota tracking."""

from __future__ import annotations

import asyncio
import os
import time
from collections.abc import Mapping

import structlog

log = structlog.get_logger("gitroles.engine")

DEFAULT_REQUESTS_PER_MINUTE = 80
RESET_BUFFER_SECONDS = 5


class GitHubRateLimiter:
    """Spaces outbound GitHub requests and holds them while quota is exhausted.

    One instance is shared by every fetch in the process. Slot reservation and
    quota bookkeeping happen under an ``asyncio.Lock``; the actual waiting is
    done outside the lock so a sleeping caller does not block bookkeeping.
    """

    def __init__(self, requests_per_minute: float | None = None) -> None:
        if requests_per_minute is None:
            requests_per_minute = float(
                os.environ.get(
                    "GITROLES_GITHUB_REQUESTS_PER_MINUTE", DEFAULT_REQUESTS_PER_MINUTE
                )
            )
        if requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be positive")
        self.requests_per_minute = requests_per_minute
        self._spacing = 60.0 / requests_per_minute
        self._next_slot = 0.0
        self._lock = asyncio.Lock()
        self.remaining: int | None = None
        self.limit: int | None = None
        self.reset_at: float | None = None  # epoch seconds

    async def acquire(self) -> float:
        """Wait for the next request slot; returns the seconds waited."""
        async with self._lock:
            now = time.monotonic()
            quota_wait = self._quota_wait()
            slot = max(now + quota_wait, self._next_slot)
            self._next_slot = slot + self._spacing
            wait = slot - now
        if wait > 0:
            if quota_wait > 0:
                log.warning("github.quota_wait", wait_seconds=round(wait, 1))
            await asyncio.sleep(wait)
        return max(wait, 0.0)

    async def update(self, headers: Mapping[str, str]) -> None:
        """Record ``X-RateLimit-*`` headers from a response."""
        remaining = _parse_int(headers.get("X-RateLimit-Remaining"))
        limit = _parse_int(headers.get("X-RateLimit-Limit"))
        reset = _parse_int(headers.get("X-RateLimit-Reset"))
        if remaining is None and reset is None:
            return
        async with self._lock:
            if remaining is not None:
                self.remaining = remaining
            if limit is not None:
                self.limit = limit
            if reset is not None:
                self.reset_at = float(reset)

    def _quota_wait(self) -> float:
        if self.remaining != 0 or self.reset_at is None:
            return 0.0
        wait = self.reset_at + RESET_BUFFER_SECONDS - time.time()
        if wait <= 0:
            # Window has reset; forget the stale zero.
            self.remaining = None
            return 0.0
        return wait

    def snapshot(self) -> dict:
        return {
            "remaining": self.remaining,
            "limit": self.limit,
            "reset_at": self.reset_at,
            "requests_per_minute": self.requests_per_minute,
        }


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (ValueError, TypeError):
        return None
