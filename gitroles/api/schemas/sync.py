"""Sync status / trigger schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class SyncStatus(BaseModel):
    is_running: bool
    last_sync_started_at: datetime | None = None
    last_sync_completed_at: datetime | None = None
    last_sync_succeeded: bool | None = None
    interval_seconds: float | None = None
    last_summary: dict | None = None


class TriggerResponse(BaseModel):
    triggered: bool
    message: str
