"""Sync router — scheduler status and manual trigger."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from gitroles.api.deps import get_scheduler, require_operator, require_trigger_access
from gitroles.api.schemas.sync import SyncStatus, TriggerResponse
from gitroles.scheduler import RoleSyncScheduler

router = APIRouter()


@router.get("/status", response_model=SyncStatus, dependencies=[Depends(require_operator)])
async def sync_status(
    scheduler: RoleSyncScheduler | None = Depends(get_scheduler),
) -> SyncStatus:
    if scheduler is None:
        return SyncStatus(is_running=False)
    return SyncStatus(**scheduler.status())


@router.post(
    "/trigger",
    response_model=TriggerResponse,
    dependencies=[Depends(require_trigger_access)],
)
async def trigger_sync(
    scheduler: RoleSyncScheduler | None = Depends(get_scheduler),
):
    if scheduler is None or not scheduler.is_running:
        return JSONResponse(
            status_code=503,
            content={"triggered": False, "message": "scheduler is not running"},
        )
    ok = await scheduler.trigger_sync()
    return TriggerResponse(
        triggered=ok,
        message="sync pass completed" if ok else "sync pass failed, see logs",
    )
