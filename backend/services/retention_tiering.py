"""
Age-tiered downsampling of raw probe results.

Tiers, by age:
- newer than RAW_WINDOW_DAYS: every point kept
- RAW_WINDOW_DAYS to HOURLY_WINDOW_DAYS: reduced per hour bucket
- older than HOURLY_WINDOW_DAYS: reduced per calendar-day bucket

Each tier's rows are read as one snapshot; rows written while a tier is
being processed are picked up by the next sweep. When a retention horizon is
given, rows older than it are left to the age cutoff so that a bucket cut
by the horizon is read the same way on every sweep. Daily rollups are never
touched here.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import AbstractSet, Callable, List, Optional

from config import settings
from database import Database
from repositories import ProbeResultRepository
from services.bucket_reducer import (
    DAILY_TIER,
    HOURLY_TIER,
    ReductionTier,
    bucket_by_day,
    bucket_by_hour,
    select_for_deletion,
)
from utils.audit import audit
from utils.timeutils import utcnow

logger = logging.getLogger(__name__)

# Fixed tier boundaries; only the hard horizon is admin-configurable
RAW_WINDOW_DAYS = 30
HOURLY_WINDOW_DAYS = 90


@dataclass
class TierResult:
    """Outcome of tiering one target."""
    target_id: int
    scanned: int = 0
    deleted: int = 0
    hourly_buckets: int = 0
    daily_buckets: int = 0
    dry_run: bool = False
    doomed_ids: List[int] = field(default_factory=list)


@dataclass
class _RangeOutcome:
    scanned: int = 0
    deleted: int = 0
    buckets: int = 0
    doomed_ids: List[int] = field(default_factory=list)


class RetentionTieringEngine:
    def __init__(self, db: Database, batch_size: Optional[int] = None):
        self.db = db
        self.batch_size = batch_size or settings.DELETE_BATCH_SIZE

    async def tier_target(
        self,
        target_id: int,
        now: Optional[datetime] = None,
        dry_run: bool = False,
        horizon: Optional[datetime] = None,
        exclude_ids: Optional[AbstractSet[int]] = None,
    ) -> TierResult:
        """
        Downsample one target's aged results.

        Args:
            target_id: Target to process
            now: Reference time for the tier windows (defaults to current UTC)
            dry_run: Count what would be deleted without deleting
            horizon: Retention cutoff; older rows are not tiered
            exclude_ids: Ids to treat as already deleted (dry-run sweeps)

        Returns:
            TierResult with rows scanned and deleted across both tiers
        """
        now = now or utcnow()
        raw_cutoff = now - timedelta(days=RAW_WINDOW_DAYS)
        hourly_cutoff = now - timedelta(days=HOURLY_WINDOW_DAYS)

        result = TierResult(target_id=target_id, dry_run=dry_run)

        hourly_start = hourly_cutoff if horizon is None else max(horizon, hourly_cutoff)

        # Hourly tier: max(horizon, hourly_cutoff) <= ts < raw_cutoff
        hourly = await self._reduce_range(
            target_id, hourly_start, raw_cutoff, bucket_by_hour, HOURLY_TIER,
            dry_run, exclude_ids,
        )
        # Daily tier: horizon <= ts < hourly_cutoff
        daily = await self._reduce_range(
            target_id, horizon, hourly_cutoff, bucket_by_day, DAILY_TIER,
            dry_run, exclude_ids,
        )

        result.scanned = hourly.scanned + daily.scanned
        result.deleted = hourly.deleted + daily.deleted
        result.hourly_buckets = hourly.buckets
        result.daily_buckets = daily.buckets
        result.doomed_ids = hourly.doomed_ids + daily.doomed_ids

        if result.deleted > 0:
            verb = "would delete" if dry_run else "deleted"
            logger.info(
                f"Tiered target {target_id}: {verb} {result.deleted} of {result.scanned} "
                f"aged points (hourly={hourly.deleted}, daily={daily.deleted})"
            )
            if not dry_run:
                audit.log_retention(
                    step="tiering",
                    target_id=target_id,
                    deleted=result.deleted,
                    details={"hourly": hourly.deleted, "daily": daily.deleted},
                )

        return result

    async def _reduce_range(
        self,
        target_id: int,
        start: Optional[datetime],
        end: datetime,
        bucketer: Callable,
        tier: ReductionTier,
        dry_run: bool,
        exclude_ids: Optional[AbstractSet[int]] = None,
    ) -> _RangeOutcome:
        # One transaction per tier so a later failure leaves this tier's deletions in place
        async with self.db.session() as session:
            async with session.begin():
                probes = ProbeResultRepository(session)
                points = await probes.find_points(target_id, start, end)
                if exclude_ids:
                    points = [p for p in points if p.id not in exclude_ids]
                if not points:
                    return _RangeOutcome()

                buckets = bucketer(points)
                doomed = select_for_deletion(buckets, tier)

                if dry_run or not doomed:
                    deleted = len(doomed)
                else:
                    deleted = await probes.delete_ids(doomed, self.batch_size)

        logger.debug(
            f"Target {target_id} {tier.name} tier: {len(points)} points in "
            f"{len(buckets)} buckets, {deleted} dropped"
        )
        return _RangeOutcome(
            scanned=len(points), deleted=deleted, buckets=len(buckets), doomed_ids=doomed
        )
