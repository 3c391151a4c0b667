"""
Hard retention limits for raw probe results.

cleanup_old_data() enforces the admin-configured age horizon across all
targets. cap_per_target() keeps at most N most recent rows per target no
matter how young they are.

In dry-run mode both report the ids they would delete, and accept ids an
earlier dry-run step already claimed so that a sweep preview counts every
row at most once.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import AbstractSet, Dict, List, Optional

from config import settings
from database import Database
from repositories import ProbeResultRepository, SettingsRepository
from utils.audit import audit
from utils.locks import KeyedLocks
from utils.timeutils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class CutoffResult:
    deleted: int = 0
    retention_days: int = 0
    cutoff: Optional[datetime] = None
    dry_run: bool = False
    doomed_ids: List[int] = field(default_factory=list)  # dry run only


@dataclass
class CapResult:
    deleted: int = 0
    max_rows: int = 0
    targets_capped: Dict[int, int] = field(default_factory=dict)  # target_id -> rows removed
    dry_run: bool = False
    doomed_ids: List[int] = field(default_factory=list)  # dry run only


class HardCutoffEnforcer:
    def __init__(
        self,
        db: Database,
        default_retention_days: Optional[int] = None,
        batch_size: Optional[int] = None,
        target_locks: Optional[KeyedLocks] = None,
    ):
        self.db = db
        self.default_retention_days = default_retention_days or settings.DEFAULT_DATA_RETENTION_DAYS
        self.batch_size = batch_size or settings.DELETE_BATCH_SIZE
        self.target_locks = target_locks or KeyedLocks()

    async def get_retention_days(self) -> int:
        """
        Admin-configured retention horizon in days.

        Falls back to the default only when the setting is absent; read
        errors propagate rather than silently widening the deletion.
        """
        async with self.db.session() as session:
            return await SettingsRepository(session).get_retention_days(
                self.default_retention_days
            )

    async def cleanup_old_data(
        self,
        now: Optional[datetime] = None,
        dry_run: bool = False,
        retention_days: Optional[int] = None,
        exclude_ids: Optional[AbstractSet[int]] = None,
    ) -> CutoffResult:
        """
        Delete every probe result older than the retention horizon.

        Args:
            now: Reference time (defaults to current UTC)
            dry_run: Report the rows that would go without deleting them
            retention_days: Horizon already read for this sweep; read from
                the settings row when omitted
            exclude_ids: Ids an earlier dry-run step already counted
        """
        if retention_days is None:
            retention_days = await self.get_retention_days()
        cutoff = (now or utcnow()) - timedelta(days=retention_days)
        result = CutoffResult(retention_days=retention_days, cutoff=cutoff, dry_run=dry_run)

        async with self.db.session() as session:
            async with session.begin():
                probes = ProbeResultRepository(session)
                if dry_run:
                    doomed = await probes.ids_older_than(cutoff)
                    if exclude_ids:
                        doomed = [i for i in doomed if i not in exclude_ids]
                    result.doomed_ids = doomed
                    result.deleted = len(doomed)
                else:
                    result.deleted = await probes.delete_older_than(cutoff)

        if result.deleted > 0:
            verb = "Would clean up" if dry_run else "Cleaned up"
            logger.info(f"{verb} {result.deleted} data points older than {retention_days} days")
            if not dry_run:
                audit.log_retention(
                    step="cutoff",
                    target_id=None,
                    deleted=result.deleted,
                    details={"retention_days": retention_days, "cutoff": cutoff.isoformat()},
                )

        return result

    async def cap_per_target(
        self,
        max_rows: int,
        dry_run: bool = False,
        exclude_ids: Optional[AbstractSet[int]] = None,
    ) -> CapResult:
        """
        Keep only each target's ``max_rows`` most recent results.

        Rows are ranked by timestamp (then id) descending, so exactly
        ``max_rows`` survive even when timestamps tie. A dry run ranks the
        rows left after ``exclude_ids`` are set aside.
        """
        if max_rows < 1:
            raise ValueError(f"max_rows must be >= 1, got {max_rows}")

        result = CapResult(max_rows=max_rows, dry_run=dry_run)

        # Counts include excluded rows, so this is a superset of the targets to cap
        async with self.db.session() as session:
            over_limit = await ProbeResultRepository(session).targets_over(max_rows)

        for target_id in over_limit:
            if dry_run:
                async with self.db.session() as session:
                    doomed = await ProbeResultRepository(session).ids_beyond_most_recent(
                        target_id, max_rows, exclude_ids
                    )
                result.doomed_ids.extend(doomed)
                removed = len(doomed)
            else:
                async with self.target_locks.hold(target_id):
                    async with self.db.session() as session:
                        async with session.begin():
                            probes = ProbeResultRepository(session)
                            doomed = await probes.ids_beyond_most_recent(target_id, max_rows)
                            removed = await probes.delete_ids(doomed, self.batch_size)
            if removed > 0:
                result.targets_capped[target_id] = removed
                result.deleted += removed

        if result.deleted > 0:
            verb = "Would limit" if dry_run else "Limited"
            logger.info(
                f"{verb} probe results to {max_rows} per target: "
                f"removed {result.deleted} rows from {len(result.targets_capped)} targets"
            )
            if not dry_run:
                for target_id, removed in result.targets_capped.items():
                    audit.log_retention(
                        step="cap",
                        target_id=target_id,
                        deleted=removed,
                        details={"max_rows": max_rows},
                    )

        return result
