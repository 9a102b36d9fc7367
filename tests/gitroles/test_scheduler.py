"""Unit tests for RoleSyncScheduler."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from gitroles.engines.role_sync.runner import PassResult
from gitroles.scheduler import RoleSyncScheduler, create_scheduler


async def _wait_until(predicate, interval: float = 0.005) -> None:
    while not predicate():
        await asyncio.sleep(interval)


@pytest.fixture
def make_scheduler():
    """Factory for schedulers with a controllable pass function."""

    def _make(
        *,
        interval: float = 100,
        initial_delay: float = 0,
        retry_delay: float = 100,
        side_effect: Exception | None = None,
        hold: asyncio.Event | None = None,
    ) -> tuple[RoleSyncScheduler, list[int]]:
        calls: list[int] = []

        async def run_fn() -> PassResult:
            calls.append(1)
            if hold is not None:
                await hold.wait()
            if side_effect is not None:
                raise side_effect
            return PassResult(started_at=datetime.now(timezone.utc))

        scheduler = RoleSyncScheduler(
            run_fn, interval=interval, initial_delay=initial_delay, retry_delay=retry_delay
        )
        return scheduler, calls

    return _make


async def test_first_pass_after_initial_delay(make_scheduler):
    scheduler, calls = make_scheduler(initial_delay=0.01)
    await scheduler.start()
    try:
        await asyncio.wait_for(_wait_until(lambda: len(calls) >= 1), timeout=1.0)
        assert scheduler.last_sync_succeeded is True
        assert scheduler.last_summary["guilds"] == 0
    finally:
        await scheduler.stop()


async def test_reschedules_after_interval(make_scheduler):
    scheduler, calls = make_scheduler(interval=0.01)
    await scheduler.start()
    try:
        await asyncio.wait_for(_wait_until(lambda: len(calls) >= 3), timeout=1.0)
    finally:
        await scheduler.stop()


async def test_failed_pass_uses_retry_delay(make_scheduler):
    scheduler, calls = make_scheduler(
        interval=100, retry_delay=0.01, side_effect=RuntimeError("db down")
    )
    await scheduler.start()
    try:
        await asyncio.wait_for(_wait_until(lambda: len(calls) >= 2), timeout=1.0)
        assert scheduler.last_sync_succeeded is False
        assert scheduler.is_running
    finally:
        await scheduler.stop()


async def test_start_is_idempotent(make_scheduler):
    scheduler, _ = make_scheduler(initial_delay=100)
    await scheduler.start()
    task = scheduler._task
    await scheduler.start()
    assert scheduler._task is task
    await scheduler.stop()


async def test_stop_when_not_running_is_safe(make_scheduler):
    scheduler, _ = make_scheduler()
    await scheduler.stop()
    assert scheduler.is_running is False


async def test_trigger_before_start_returns_false(make_scheduler):
    scheduler, calls = make_scheduler()
    assert await scheduler.trigger_sync() is False
    assert calls == []


async def test_trigger_runs_pass(make_scheduler):
    scheduler, calls = make_scheduler(initial_delay=100)
    await scheduler.start()
    try:
        assert await scheduler.trigger_sync() is True
        assert len(calls) == 1
        assert scheduler.last_sync_completed_at is not None
    finally:
        await scheduler.stop()


async def test_trigger_reports_failure(make_scheduler):
    scheduler, _ = make_scheduler(initial_delay=100, side_effect=RuntimeError("x"))
    await scheduler.start()
    try:
        assert await scheduler.trigger_sync() is False
    finally:
        await scheduler.stop()


async def test_passes_never_overlap(make_scheduler):
    hold = asyncio.Event()
    scheduler, calls = make_scheduler(initial_delay=100, hold=hold)
    await scheduler.start()
    try:
        first = asyncio.ensure_future(scheduler.trigger_sync())
        await _wait_until(lambda: len(calls) == 1)
        second = asyncio.ensure_future(scheduler.trigger_sync())
        await asyncio.sleep(0.02)
        # second trigger is waiting on the lock
        assert len(calls) == 1
        hold.set()
        assert await first is True
        assert await second is True
        assert len(calls) == 2
    finally:
        await scheduler.stop()


async def test_status_shape(make_scheduler):
    scheduler, _ = make_scheduler(interval=900)
    status = scheduler.status()
    assert status["is_running"] is False
    assert status["interval_seconds"] == 900
    assert status["last_sync_started_at"] is None


def test_create_scheduler_reads_env(monkeypatch):
    monkeypatch.setenv("GITROLES_SYNC_INTERVAL_HOURS", "0.5")
    monkeypatch.setenv("GITROLES_SYNC_INITIAL_DELAY", "2")
    monkeypatch.setenv("GITROLES_SYNC_RETRY_DELAY", "30")
    scheduler = create_scheduler(MagicMock(), MagicMock())
    assert scheduler.interval == 1800
    assert scheduler.initial_delay == 2
    assert scheduler.retry_delay == 30


def test_create_scheduler_defaults(monkeypatch):
    for key in (
        "GITROLES_SYNC_INTERVAL_HOURS",
        "GITROLES_SYNC_INITIAL_DELAY",
        "GITROLES_SYNC_RETRY_DELAY",
    ):
        monkeypatch.delenv(key, raising=False)
    scheduler = create_scheduler(MagicMock(), MagicMock())
    assert scheduler.interval == 900
    assert scheduler.initial_delay == 5
    assert scheduler.retry_delay == 60


async def test_stop_waits_for_running_pass(make_scheduler):
    hold = asyncio.Event()
    scheduler, calls = make_scheduler(initial_delay=0, hold=hold)
    await scheduler.start()
    await asyncio.wait_for(_wait_until(lambda: len(calls) == 1), timeout=1.0)

    stopping = asyncio.create_task(scheduler.stop())
    await asyncio.sleep(0.02)
    assert not stopping.done()
    assert scheduler.last_sync_completed_at is None

    hold.set()
    await asyncio.wait_for(stopping, timeout=1.0)
    assert scheduler.last_sync_succeeded is True
    assert scheduler.last_sync_completed_at is not None
    assert not scheduler.is_running
    assert len(calls) == 1
