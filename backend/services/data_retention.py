"""
Data retention sweep.

Handles:
- Downsampling aged probe results per target (hourly / daily tiers)
- Deleting probe results beyond the admin retention horizon
- Capping raw rows per target
- Reporting data age distribution

A failure while tiering one target is logged, recorded against that target
and the sweep moves on. Deletions already committed stay committed.
Cancellation is honoured between targets.

The retention horizon is read once per sweep. Tiering stops at the horizon,
and targets the cap trimmed are tiered again, so every bucket a sweep leaves
behind is already reduced and a repeat sweep over the same data deletes
nothing. A dry run carries the ids each step would delete into the next
step, so its totals match what a live sweep would remove.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, Optional, Set

from config import settings
from database import Database
from repositories import DailyStatRepository, ProbeResultRepository, TargetRepository
from services.hard_cutoff import HardCutoffEnforcer
from services.retention_tiering import (
    HOURLY_WINDOW_DAYS,
    RAW_WINDOW_DAYS,
    RetentionTieringEngine,
)
from utils.locks import KeyedLocks
from utils.logging_utils import LogTimer, log_step
from utils.timeutils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class RetentionSweepResult:
    """Result of a retention sweep."""
    total_scanned: int = 0
    total_deleted: int = 0
    tiered_deleted: int = 0
    cutoff_deleted: int = 0
    capped_deleted: int = 0
    targets_processed: int = 0
    per_target_errors: Dict[int, str] = field(default_factory=dict)
    step_errors: Dict[str, str] = field(default_factory=dict)
    retention_days: Optional[int] = None
    max_results_per_target: int = 0
    duration_ms: float = 0
    dry_run: bool = False
    timestamp: Optional[datetime] = None


class RetentionOrchestrator:
    """Sequences tiering, the age cutoff and the per-target cap."""

    def __init__(
        self,
        db: Database,
        max_results_per_target: Optional[int] = None,
        target_locks: Optional[KeyedLocks] = None,
        tiering: Optional[RetentionTieringEngine] = None,
        cutoff: Optional[HardCutoffEnforcer] = None,
    ):
        self.db = db
        self.max_results_per_target = max_results_per_target or settings.MAX_RESULTS_PER_TARGET
        # Shared by every sweep so two sweeps never work the same target at once
        self.target_locks = target_locks or KeyedLocks()
        self.tiering = tiering or RetentionTieringEngine(db)
        self.cutoff = cutoff or HardCutoffEnforcer(db, target_locks=self.target_locks)

    async def run_retention_sweep(
        self, now: Optional[datetime] = None, dry_run: bool = False
    ) -> RetentionSweepResult:
        """
        Run a full retention sweep.

        Args:
            now: Reference time for every window (defaults to current UTC)
            dry_run: If True, report what would be deleted without deleting

        Returns:
            RetentionSweepResult with per-step counts and any errors
        """
        now = now or utcnow()
        result = RetentionSweepResult(
            timestamp=now,
            dry_run=dry_run,
            max_results_per_target=self.max_results_per_target,
        )
        # Ids a dry run has already counted as deleted
        claimed: Set[int] = set()

        logger.info("=" * 60)
        logger.info(f"RETENTION SWEEP STARTED (dry_run={dry_run})")
        logger.info(
            f"Policy: raw={RAW_WINDOW_DAYS}d, hourly={HOURLY_WINDOW_DAYS}d, "
            f"cap={self.max_results_per_target}/target"
        )
        logger.info("=" * 60)

        with LogTimer(logger, "Retention sweep") as timer:
            start_time = time.perf_counter()

            try:
                result.retention_days = await self.cutoff.get_retention_days()
            except Exception as e:
                logger.error(f"Could not read retention setting: {e}", exc_info=True)
                result.step_errors["cleanup_old_data"] = str(e)
            horizon = None
            if result.retention_days is not None:
                horizon = now - timedelta(days=result.retention_days)

            # 1. Tier every enabled target
            with log_step(logger, 1, 3, "Downsampling aged probe results"):
                targets = await self._list_targets(result)
                await self._tier_targets(result, targets, now, horizon, dry_run, claimed)
                result.targets_processed = len(targets) - len(result.per_target_errors)

            # 2. Hard age horizon
            with log_step(logger, 2, 3, "Deleting results beyond retention horizon"):
                if result.retention_days is None:
                    logger.warning("Skipping age cutoff: retention setting unavailable")
                else:
                    try:
                        cutoff = await self.cutoff.cleanup_old_data(
                            now=now,
                            dry_run=dry_run,
                            retention_days=result.retention_days,
                            exclude_ids=claimed,
                        )
                        result.cutoff_deleted = cutoff.deleted
                        claimed.update(cutoff.doomed_ids)
                    except Exception as e:
                        logger.error(f"Age cutoff failed: {e}", exc_info=True)
                        result.step_errors["cleanup_old_data"] = str(e)

            # 3. Row cap per target
            with log_step(logger, 3, 3, "Capping probe results per target"):
                try:
                    capped = await self.cutoff.cap_per_target(
                        self.max_results_per_target, dry_run=dry_run, exclude_ids=claimed
                    )
                    result.capped_deleted = capped.deleted
                    claimed.update(capped.doomed_ids)
                except Exception as e:
                    logger.error(f"Per-target cap failed: {e}", exc_info=True)
                    result.step_errors["cap_per_target"] = str(e)
                    capped = None

                # The cap can cut a bucket short; reduce what is left of it now
                if capped is not None:
                    trimmed = [t for t in targets if t in capped.targets_capped]
                    await self._tier_targets(
                        result, trimmed, now, horizon, dry_run, claimed,
                        count_scanned=False,
                    )

            result.total_deleted = (
                result.tiered_deleted + result.cutoff_deleted + result.capped_deleted
            )
            result.duration_ms = (time.perf_counter() - start_time) * 1000
            timer.set_record_count(result.total_scanned)

        if result.total_deleted > 0:
            verb = "would delete" if dry_run else "deleted"
            logger.info(
                f"Retention {'simulation' if dry_run else 'sweep'} complete: "
                f"scanned {result.total_scanned} points, {verb} {result.total_deleted} "
                f"(tiered={result.tiered_deleted}, cutoff={result.cutoff_deleted}, "
                f"capped={result.capped_deleted})"
            )
        if result.per_target_errors or result.step_errors:
            logger.warning(
                f"Retention sweep finished with errors: "
                f"{len(result.per_target_errors)} targets, {len(result.step_errors)} steps"
            )

        return result

    async def _list_targets(self, result: RetentionSweepResult) -> list:
        try:
            async with self.db.session() as session:
                targets = await TargetRepository(session).list_enabled()
        except Exception as e:
            logger.error(f"Could not list targets for tiering: {e}", exc_info=True)
            result.step_errors["tier_targets"] = str(e)
            return []
        return [target.id for target in targets]

    async def _tier_targets(
        self,
        result: RetentionSweepResult,
        target_ids: Iterable[int],
        now: datetime,
        horizon: Optional[datetime],
        dry_run: bool,
        claimed: Set[int],
        count_scanned: bool = True,
    ) -> None:
        for target_id in target_ids:
            if target_id in result.per_target_errors:
                continue
            try:
                async with self.target_locks.hold(target_id):
                    tiered = await self.tiering.tier_target(
                        target_id,
                        now=now,
                        dry_run=dry_run,
                        horizon=horizon,
                        exclude_ids=claimed if dry_run else None,
                    )
            except Exception as e:
                logger.error(f"Error processing retention for target {target_id}: {e}")
                result.per_target_errors[target_id] = str(e)
                continue

            if count_scanned:
                result.total_scanned += tiered.scanned
            result.tiered_deleted += tiered.deleted
            if dry_run:
                claimed.update(tiered.doomed_ids)


async def get_data_age_stats(db: Database, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Get statistics about stored probe data.

    Returns raw row counts per retention tier and the rollup row count.
    """
    now = now or utcnow()
    raw_cutoff = now - timedelta(days=RAW_WINDOW_DAYS)
    hourly_cutoff = now - timedelta(days=HOURLY_WINDOW_DAYS)

    async with db.session() as session:
        probes = ProbeResultRepository(session)
        stats = {
            "probe_results": {
                "raw": await probes.count_between(start=raw_cutoff),
                "hourly": await probes.count_between(start=hourly_cutoff, end=raw_cutoff),
                "daily": await probes.count_between(end=hourly_cutoff),
                "total": await probes.count_between(),
            },
            "daily_stats": await DailyStatRepository(session).count(),
        }

    return stats
