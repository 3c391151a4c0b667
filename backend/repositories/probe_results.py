"""
Probe result storage.

Rows are append-only; the only mutations offered are bulk deletions by id
set, by age, or by per-target rank.
"""
import logging
from datetime import datetime
from typing import AbstractSet, Optional, Sequence

from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from models import ProbeResult
from services.bucket_reducer import ProbePoint

logger = logging.getLogger(__name__)

DEFAULT_DELETE_BATCH_SIZE = 500


class ProbeResultRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(
        self,
        target_id: int,
        timestamp: datetime,
        success: bool,
        protocol: str,
        response_time_ms: Optional[int] = None,
        status_code: Optional[int] = None,
        error: Optional[str] = None,
    ) -> ProbeResult:
        result = ProbeResult(
            target_id=target_id,
            timestamp=timestamp,
            success=success,
            response_time_ms=response_time_ms,
            status_code=status_code,
            error=error,
            protocol=protocol,
        )
        self.session.add(result)
        await self.session.flush()
        return result

    async def find_points(
        self,
        target_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[ProbePoint]:
        """
        Lightweight rows for one target in ``[start, end)``, oldest first.

        Either bound may be omitted. Ties on timestamp are ordered by id so
        bucket contents are deterministic.
        """
        query = select(
            ProbeResult.id,
            ProbeResult.timestamp,
            ProbeResult.success,
            ProbeResult.response_time_ms,
        ).where(ProbeResult.target_id == target_id)
        if start is not None:
            query = query.where(ProbeResult.timestamp >= start)
        if end is not None:
            query = query.where(ProbeResult.timestamp < end)
        query = query.order_by(ProbeResult.timestamp.asc(), ProbeResult.id.asc())

        result = await self.session.execute(query)
        return [ProbePoint(*row) for row in result.all()]

    async def list_for_target(
        self,
        target_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[ProbeResult]:
        """Full rows for one target in ``[start, end)``, oldest first."""
        query = select(ProbeResult).where(ProbeResult.target_id == target_id)
        if start is not None:
            query = query.where(ProbeResult.timestamp >= start)
        if end is not None:
            query = query.where(ProbeResult.timestamp < end)
        query = query.order_by(ProbeResult.timestamp.asc(), ProbeResult.id.asc())
        if limit is not None:
            query = query.limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def delete_ids(
        self, ids: Sequence[int], batch_size: int = DEFAULT_DELETE_BATCH_SIZE
    ) -> int:
        """Delete rows by id, chunked to stay under bound-parameter limits."""
        deleted = 0
        for offset in range(0, len(ids), batch_size):
            chunk = list(ids[offset:offset + batch_size])
            result = await self.session.execute(
                delete(ProbeResult)
                .where(ProbeResult.id.in_(chunk))
                .execution_options(synchronize_session=False)
            )
            deleted += result.rowcount or 0
        return deleted

    async def ids_older_than(self, cutoff: datetime) -> list[int]:
        result = await self.session.execute(
            select(ProbeResult.id).where(ProbeResult.timestamp < cutoff)
        )
        return list(result.scalars().all())

    async def delete_older_than(self, cutoff: datetime) -> int:
        result = await self.session.execute(
            delete(ProbeResult)
            .where(ProbeResult.timestamp < cutoff)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def count_between(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> int:
        query = select(func.count(ProbeResult.id))
        if start is not None:
            query = query.where(ProbeResult.timestamp >= start)
        if end is not None:
            query = query.where(ProbeResult.timestamp < end)
        result = await self.session.execute(query)
        return result.scalar() or 0

    async def count_for_target(self, target_id: int) -> int:
        result = await self.session.execute(
            select(func.count(ProbeResult.id)).where(ProbeResult.target_id == target_id)
        )
        return result.scalar() or 0

    async def targets_over(self, max_rows: int) -> dict[int, int]:
        """
        Target ids holding more than ``max_rows`` rows, with their counts.

        Covers every target id present in the table, configured or not.
        """
        result = await self.session.execute(
            select(ProbeResult.target_id, func.count(ProbeResult.id))
            .group_by(ProbeResult.target_id)
            .having(func.count(ProbeResult.id) > max_rows)
            .order_by(ProbeResult.target_id)
        )
        return dict(result.all())

    async def ids_beyond_most_recent(
        self,
        target_id: int,
        keep: int,
        exclude_ids: Optional[AbstractSet[int]] = None,
    ) -> list[int]:
        """
        Ids of a target's rows ranked after its ``keep`` most recent ones.

        Rows in ``exclude_ids`` are ranked as if already deleted.
        """
        query = (
            select(ProbeResult.id)
            .where(ProbeResult.target_id == target_id)
            .order_by(ProbeResult.timestamp.desc(), ProbeResult.id.desc())
        )
        if not exclude_ids:
            result = await self.session.execute(query.offset(keep))
            return list(result.scalars().all())

        result = await self.session.execute(query)
        remaining = [i for i in result.scalars().all() if i not in exclude_ids]
        return remaining[keep:]
