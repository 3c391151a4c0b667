"""
Daily rollup storage.

upsert_delta() folds a StatDelta into the (target, day) row with a single
INSERT ... ON CONFLICT DO UPDATE whose arithmetic reads the stored row
server-side, so concurrent ingests for the same day cannot lose updates.
merge_delta() is the read/merge/write fallback for engines without that
statement; callers must hold a per-(target, day) lock around the whole
transaction when using it.
"""
from dataclasses import asdict
from datetime import date
from typing import Optional

from sqlalchemy import select, func, case
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from models import DailyStat
from services.rollup import StatDelta, merge
from utils.timeutils import utcnow

NATIVE_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def _merged_columns(stmt) -> dict:
    """SET clause mirroring services.rollup.merge() in SQL."""
    stored = DailyStat.__table__.c
    incoming = stmt.excluded

    total = stored.total_pings + incoming.total_pings
    successful = stored.successful_pings + incoming.successful_pings
    timed = stored.timed_pings + incoming.timed_pings

    return {
        "total_pings": total,
        "successful_pings": successful,
        "failed_pings": stored.failed_pings + incoming.failed_pings,
        "uptime_pct": case((total > 0, successful * 100.0 / total), else_=0.0),
        "timed_pings": timed,
        "last_response_time_ms": incoming.last_response_time_ms,
        "avg_response_time_ms": case(
            (timed == 0, incoming.avg_response_time_ms),
            else_=(
                stored.avg_response_time_ms * stored.timed_pings
                + incoming.avg_response_time_ms * incoming.timed_pings
            ) / timed,
        ),
        "min_response_time_ms": case(
            (stored.min_response_time_ms.is_(None), incoming.min_response_time_ms),
            (incoming.min_response_time_ms.is_(None), stored.min_response_time_ms),
            (
                incoming.min_response_time_ms < stored.min_response_time_ms,
                incoming.min_response_time_ms,
            ),
            else_=stored.min_response_time_ms,
        ),
        "max_response_time_ms": case(
            (stored.max_response_time_ms.is_(None), incoming.max_response_time_ms),
            (incoming.max_response_time_ms.is_(None), stored.max_response_time_ms),
            (
                incoming.max_response_time_ms > stored.max_response_time_ms,
                incoming.max_response_time_ms,
            ),
            else_=stored.max_response_time_ms,
        ),
        "updated_at": incoming.updated_at,
    }


class DailyStatRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    @property
    def dialect_name(self) -> str:
        return self.session.get_bind().dialect.name

    def supports_native_upsert(self) -> bool:
        return self.dialect_name in NATIVE_UPSERT_DIALECTS

    async def upsert_delta(self, target_id: int, day: date, delta: StatDelta) -> DailyStat:
        """Atomically create or merge the (target, day) rollup; returns the stored row."""
        insert = NATIVE_UPSERT_DIALECTS[self.dialect_name]
        first = merge(None, delta)

        stmt = insert(DailyStat).values(
            target_id=target_id,
            date=day,
            updated_at=utcnow(),
            **asdict(first),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[DailyStat.target_id, DailyStat.date],
            set_=_merged_columns(stmt),
        )

        result = await self.session.scalars(
            stmt.returning(DailyStat),
            execution_options={"populate_existing": True},
        )
        return result.one()

    async def merge_delta(self, target_id: int, day: date, delta: StatDelta) -> DailyStat:
        """Read, merge in Python, write. Not atomic on its own."""
        existing = await self.get(target_id, day)
        values = asdict(merge(existing, delta))

        if existing is None:
            existing = DailyStat(target_id=target_id, date=day, **values)
            self.session.add(existing)
        else:
            for column, value in values.items():
                setattr(existing, column, value)
            existing.updated_at = utcnow()

        await self.session.flush()
        return existing

    async def get(self, target_id: int, day: date) -> Optional[DailyStat]:
        result = await self.session.execute(
            select(DailyStat).where(
                DailyStat.target_id == target_id,
                DailyStat.date == day,
            )
        )
        return result.scalars().first()

    async def list_for_target(
        self,
        target_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[DailyStat]:
        """Rollups for one target with ``start <= date <= end``, oldest first."""
        query = select(DailyStat).where(DailyStat.target_id == target_id)
        if start is not None:
            query = query.where(DailyStat.date >= start)
        if end is not None:
            query = query.where(DailyStat.date <= end)
        result = await self.session.execute(query.order_by(DailyStat.date.asc()))
        return list(result.scalars().all())

    async def count(self) -> int:
        result = await self.session.execute(select(func.count(DailyStat.id)))
        return result.scalar() or 0
