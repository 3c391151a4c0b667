"""
Admin settings endpoints for data retention.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from repositories import SettingsRepository
from schemas import RetentionSettingsResponse, RetentionSettingsUpdate
from services.retention_tiering import HOURLY_WINDOW_DAYS, RAW_WINDOW_DAYS
from utils.audit import audit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings", tags=["settings"])


def _response(days: int) -> RetentionSettingsResponse:
    return RetentionSettingsResponse(
        data_retention_days=days,
        raw_window_days=RAW_WINDOW_DAYS,
        hourly_window_days=HOURLY_WINDOW_DAYS,
        max_results_per_target=settings.MAX_RESULTS_PER_TARGET,
    )


@router.get("/retention", response_model=RetentionSettingsResponse)
async def get_retention_settings(db: AsyncSession = Depends(get_db)):
    """Current retention horizon (default when never set)."""
    days = await SettingsRepository(db).get_retention_days(settings.DEFAULT_DATA_RETENTION_DAYS)
    return _response(days)


@router.put("/retention", response_model=RetentionSettingsResponse)
async def update_retention_settings(
    payload: RetentionSettingsUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Set the retention horizon (1-3650 days)."""
    repo = SettingsRepository(db)
    old_days = await repo.get_retention_days(settings.DEFAULT_DATA_RETENTION_DAYS)
    await repo.set_retention_days(payload.data_retention_days)
    await db.commit()

    logger.info(f"Data retention changed: {old_days}d -> {payload.data_retention_days}d")
    audit.log_settings_change("data_retention_days", old_days, payload.data_retention_days)
    return _response(payload.data_retention_days)
