"""
Probe result ingestion and read endpoints.

The prober posts every completed check here; dashboards read raw results
and daily rollups per target.
"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from repositories import DailyStatRepository, ProbeResultRepository, TargetRepository
from routers.dependencies import get_recorder
from schemas import (
    DailyStatList,
    DailyStatResponse,
    ProbeIngestResponse,
    ProbeResultCreate,
    ProbeResultList,
    ProbeResultResponse,
)
from services.ingest import ProbeRecorder
from utils.timeutils import to_naive_utc, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["probes"])


async def _require_target(db: AsyncSession, target_id: int) -> None:
    if await TargetRepository(db).get(target_id) is None:
        raise HTTPException(status_code=404, detail=f"Target {target_id} not found")


@router.post("/probes", status_code=status.HTTP_201_CREATED, response_model=ProbeIngestResponse)
async def record_probe(
    payload: ProbeResultCreate,
    db: AsyncSession = Depends(get_db),
    recorder: ProbeRecorder = Depends(get_recorder),
):
    """
    Record one probe result and update the target's daily rollup.
    """
    await _require_target(db, payload.target_id)

    result, stat = await recorder.record(
        target_id=payload.target_id,
        timestamp=payload.timestamp or utcnow(),
        success=payload.success,
        response_time_ms=payload.response_time_ms,
        status_code=payload.status_code,
        error=payload.error,
        protocol=payload.protocol,
    )

    return ProbeIngestResponse(
        result=ProbeResultResponse.model_validate(result),
        daily_stat=DailyStatResponse.model_validate(stat),
    )


@router.get("/targets/{target_id}/results", response_model=ProbeResultList)
async def list_probe_results(
    target_id: int,
    start: Optional[datetime] = Query(None, description="Inclusive lower bound (UTC)"),
    end: Optional[datetime] = Query(None, description="Exclusive upper bound (UTC)"),
    limit: int = Query(5000, ge=1, le=50000),
    db: AsyncSession = Depends(get_db),
):
    """Raw probe results for sub-day chart granularity."""
    await _require_target(db, target_id)

    results = await ProbeResultRepository(db).list_for_target(
        target_id,
        start=to_naive_utc(start) if start else None,
        end=to_naive_utc(end) if end else None,
        limit=limit,
    )
    return ProbeResultList(
        target_id=target_id,
        results=[ProbeResultResponse.model_validate(r) for r in results],
        total=len(results),
    )


@router.get("/targets/{target_id}/daily-stats", response_model=DailyStatList)
async def list_daily_stats(
    target_id: int,
    start: Optional[date] = Query(None, description="First day (inclusive)"),
    end: Optional[date] = Query(None, description="Last day (inclusive)"),
    db: AsyncSession = Depends(get_db),
):
    """Daily rollups for uptime blocks and long-range charts."""
    await _require_target(db, target_id)

    if start and end and start > end:
        raise HTTPException(status_code=400, detail="start must not be after end")

    stats = await DailyStatRepository(db).list_for_target(target_id, start=start, end=end)
    return DailyStatList(
        target_id=target_id,
        stats=[DailyStatResponse.model_validate(s) for s in stats],
        total=len(stats),
    )
