"""
Database maintenance API endpoints.

Provides data age statistics and on-demand retention sweeps (preview and live).
"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends

from database import Database, get_database
from routers.dependencies import get_orchestrator
from schemas import RetentionSweepResponse
from services.data_retention import RetentionOrchestrator, get_data_age_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/maintenance", tags=["maintenance"])


@router.get("/stats")
async def get_database_stats(db: Database = Depends(get_database)):
    """
    Get probe data counts by retention tier.
    """
    logger.info("Fetching database statistics")
    return await get_data_age_stats(db)


@router.post("/retention/preview", response_model=RetentionSweepResponse)
async def preview_retention(
    orchestrator: RetentionOrchestrator = Depends(get_orchestrator),
):
    """
    Preview what a retention sweep would delete without making changes (dry run).
    """
    logger.info("Running retention preview (dry run)")
    result = await orchestrator.run_retention_sweep(dry_run=True)
    return RetentionSweepResponse(**asdict(result))


@router.post("/retention/run", response_model=RetentionSweepResponse)
async def run_retention_now(
    orchestrator: RetentionOrchestrator = Depends(get_orchestrator),
):
    """
    Run a retention sweep now.

    WARNING: This permanently deletes probe results!
    """
    logger.info("Running retention sweep (LIVE)")
    result = await orchestrator.run_retention_sweep(dry_run=False)
    return RetentionSweepResponse(**asdict(result))
