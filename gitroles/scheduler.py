"""Scheduler — periodic role sync passes, rescheduled after each completion."""

from __future__ import annotations

import asyncio
import os
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gitroles.engines.role_sync.runner import PassResult, RoleSyncRunner

logger = structlog.get_logger(__name__)


class RoleSyncScheduler:
    """Runs one pass, waits ``interval``, runs the next.

    A failed pass (orchestration raised) is retried after ``retry_delay``
    instead. Passes are serialized: a manual trigger during a running pass
    waits for it to finish.
    """

    def __init__(
        self,
        run_fn: Callable[[], Awaitable[PassResult]],
        *,
        interval: float,
        initial_delay: float = 5.0,
        retry_delay: float = 60.0,
    ) -> None:
        self.run_fn = run_fn
        self.interval = interval
        self.initial_delay = initial_delay
        self.retry_delay = retry_delay
        self._lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        self.last_sync_started_at: datetime | None = None
        self.last_sync_completed_at: datetime | None = None
        self.last_sync_succeeded: bool | None = None
        self.last_summary: dict | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Schedule the first pass after ``initial_delay``; no-op if already started."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._loop(), name="role-sync-scheduler")
        logger.info(
            "scheduler.started",
            interval_seconds=self.interval,
            initial_delay=self.initial_delay,
        )

    async def stop(self) -> None:
        """Wait for a running pass to finish, then cancel the pending timer."""
        if self._task is None:
            return
        async with self._lock:
            self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        logger.info("scheduler.stopped")

    async def trigger_sync(self) -> bool:
        """Run a pass now. False if the scheduler is not running or the pass failed."""
        if not self.is_running:
            logger.warning("scheduler.trigger_ignored", reason="not started")
            return False
        logger.info("scheduler.manual_trigger")
        return await self.run_pass()

    async def run_pass(self) -> bool:
        async with self._lock:
            start = time.monotonic()
            self.last_sync_started_at = datetime.now(timezone.utc)
            try:
                result = await self.run_fn()
            except Exception:
                logger.exception("scheduler.pass_failed")
                self.last_sync_succeeded = False
                return False
            else:
                self.last_sync_succeeded = True
                self.last_summary = result.summary()
                return True
            finally:
                self.last_sync_completed_at = datetime.now(timezone.utc)
                elapsed = time.monotonic() - start
                if elapsed > self.interval:
                    logger.warning(
                        "scheduler.pass_overran",
                        elapsed_seconds=round(elapsed, 1),
                        interval_seconds=self.interval,
                    )

    def status(self) -> dict:
        return {
            "is_running": self.is_running,
            "last_sync_started_at": self.last_sync_started_at,
            "last_sync_completed_at": self.last_sync_completed_at,
            "last_sync_succeeded": self.last_sync_succeeded,
            "interval_seconds": self.interval,
            "last_summary": self.last_summary,
        }

    async def _loop(self) -> None:
        delay = self.initial_delay
        while True:
            await asyncio.sleep(delay)
            ok = await self.run_pass()
            delay = self.interval if ok else self.retry_delay
            logger.debug("scheduler.next_pass", delay_seconds=delay)


def _env_float(key: str, default: float) -> float:
    return float(os.environ.get(key, default))


def create_scheduler(
    session_factory: async_sessionmaker[AsyncSession],
    runner: RoleSyncRunner,
) -> RoleSyncScheduler:
    """Build the scheduler with intervals read from the environment."""
    interval = _env_float("GITROLES_SYNC_INTERVAL_HOURS", 0.25) * 3600
    initial_delay = _env_float("GITROLES_SYNC_INITIAL_DELAY", 5)
    retry_delay = _env_float("GITROLES_SYNC_RETRY_DELAY", 60)

    async def _run_pass() -> PassResult:
        return await runner.run_all(session_factory)

    return RoleSyncScheduler(
        _run_pass,
        interval=interval,
        initial_delay=initial_delay,
        retry_delay=retry_delay,
    )
