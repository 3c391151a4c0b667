"""
Per-day statistics aggregation.

Every probe result is folded into its target's DailyStat row for the UTC
calendar day of the result. With SQLite or PostgreSQL the fold is one
atomic upsert; other engines fall back to a per-(target, day) lock around a
read/merge/write transaction.
"""

import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from database import Database
from models import DailyStat, ProbeResult
from repositories import DailyStatRepository, NATIVE_UPSERT_DIALECTS
from services.rollup import StatDelta
from utils.locks import KeyedLocks
from utils.timeutils import calendar_day

logger = logging.getLogger(__name__)


class StatisticsAggregator:
    """Folds ingested probe results into daily rollups."""

    def __init__(self, db: Database, native_upsert: Optional[bool] = None):
        self.db = db
        if native_upsert is None:
            native_upsert = db.dialect_name in NATIVE_UPSERT_DIALECTS
        self.native_upsert = native_upsert
        self._locks = KeyedLocks()

    @asynccontextmanager
    async def guard(self, target_id: int, day: date) -> AsyncIterator[None]:
        """
        Serialize rollup writes for one (target, day) when there is no native upsert.

        Must enclose the whole transaction that calls ingest(), commit included.
        """
        if self.native_upsert:
            yield
            return
        async with self._locks.hold((target_id, day)):
            yield

    async def ingest(
        self, result: ProbeResult, session: Optional[AsyncSession] = None
    ) -> DailyStat:
        """
        Merge one probe result into its day's rollup.

        Args:
            result: The stored (or about to be stored) probe result
            session: Join this session's transaction instead of opening one;
                the caller then owns guard() and the commit

        Returns:
            The DailyStat row as it stands after the merge

        Raises:
            SQLAlchemyError: storage failures propagate to the caller
        """
        day = calendar_day(result.timestamp)
        delta = StatDelta.from_result(result.success, result.response_time_ms)

        if session is not None:
            return await self._apply(session, result.target_id, day, delta)

        async with self.guard(result.target_id, day):
            async with self.db.session() as own_session:
                async with own_session.begin():
                    return await self._apply(own_session, result.target_id, day, delta)

    async def _apply(
        self, session: AsyncSession, target_id: int, day: date, delta: StatDelta
    ) -> DailyStat:
        stats = DailyStatRepository(session)
        if self.native_upsert:
            stat = await stats.upsert_delta(target_id, day, delta)
        else:
            stat = await stats.merge_delta(target_id, day, delta)
        logger.debug(
            f"Rollup target={target_id} day={day}: "
            f"total={stat.total_pings} uptime={stat.uptime_pct:.2f}%"
        )
        return stat
