"""HTTP endpoints - cron trigger, approvals, read-only views, DLQ review."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from pydantic import BaseModel

from schedbot import __version__
from schedbot.api.deps import get_store, get_ticker, verify_cron_secret
from schedbot.core.cron.clock import to_iso, utcnow
from schedbot.core.cron.ticker import ScheduleTicker
from schedbot.core.cron.types import DLQEntry, Execution, ExecutionStatus, Schedule
from schedbot.memory.store import ScheduleStore


class HealthResponse(BaseModel):
    status: str
    version: str
    ticker_running: bool


class ApproveRequest(BaseModel):
    approved_by: str


class ResolveRequest(BaseModel):
    action: str
    reviewed_by: str | None = None
    notes: str | None = None


router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(ticker: ScheduleTicker = Depends(get_ticker)):
    return HealthResponse(status="ok", version=__version__, ticker_running=ticker.running)


@router.get("/cron/check-schedules", dependencies=[Depends(verify_cron_secret)])
async def check_schedules(ticker: ScheduleTicker = Depends(get_ticker)):
    """External cron hook: run one processor pass."""
    summary = await ticker.tick()
    return {
        "success": True,
        "timestamp": to_iso(utcnow()),
        "recovered": summary.recovered,
        "schedules": summary.schedules.model_dump(),
        "approvals": summary.approved.model_dump(),
    }


@router.post(
    "/executions/{execution_id}/approve",
    response_model=Execution,
    dependencies=[Depends(verify_cron_secret)],
)
async def approve_execution(
    execution_id: str,
    body: ApproveRequest,
    store: ScheduleStore = Depends(get_store),
):
    execution = store.get_execution(execution_id)
    if execution is None:
        raise HTTPException(status_code=404, detail="Execution not found")
    if not store.approve_execution(execution_id, body.approved_by):
        raise HTTPException(
            status_code=409,
            detail=f"Execution is {execution.status.value}"
            + (" and already approved" if execution.approved_by else ""),
        )
    return store.get_execution(execution_id)


@router.get(
    "/executions",
    response_model=list[Execution],
    dependencies=[Depends(verify_cron_secret)],
)
async def list_executions(
    status: ExecutionStatus | None = None,
    schedule_id: str | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    store: ScheduleStore = Depends(get_store),
):
    return store.list_executions(status=status, schedule_id=schedule_id, limit=limit)


@router.get(
    "/schedules",
    response_model=list[Schedule],
    dependencies=[Depends(verify_cron_secret)],
)
async def list_schedules(
    enabled_only: bool = False,
    store: ScheduleStore = Depends(get_store),
):
    return store.list_schedules(enabled_only=enabled_only)


@router.get("/dlq", dependencies=[Depends(verify_cron_secret)])
async def list_dlq(
    status: str | None = None,
    requires_review: bool | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    store: ScheduleStore = Depends(get_store),
):
    items: list[DLQEntry] = store.list_dlq(
        status=status, requires_review=requires_review, limit=limit
    )
    return {"items": [i.model_dump(mode="json") for i in items], "stats": store.get_dlq_stats()}


@router.post(
    "/dlq/{dlq_id}/resolve",
    response_model=DLQEntry,
    dependencies=[Depends(verify_cron_secret)],
)
async def resolve_dlq(
    dlq_id: str,
    body: ResolveRequest,
    store: ScheduleStore = Depends(get_store),
):
    if store.get_dlq_item(dlq_id) is None:
        raise HTTPException(status_code=404, detail="DLQ entry not found")
    if not store.resolve_dlq_item(dlq_id, body.action, body.reviewed_by, body.notes):
        raise HTTPException(status_code=409, detail="DLQ entry already resolved")
    logger.info(f"DLQ entry {dlq_id} resolved: {body.action}")
    return store.get_dlq_item(dlq_id)
