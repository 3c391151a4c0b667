"""
Probe result ingestion.

The prober calls ProbeRecorder.record() once per completed check. The raw
row and the daily rollup update commit together; storage errors propagate
so the caller can decide whether to retry.
"""

import logging
from datetime import datetime
from typing import Optional

from database import Database
from models import DailyStat, ProbeResult
from repositories import ProbeResultRepository
from services.statistics import StatisticsAggregator
from utils.timeutils import calendar_day, to_naive_utc

logger = logging.getLogger(__name__)

PROTOCOLS = frozenset({"ICMP", "TCP", "UDP", "HTTP", "HTTPS"})


class ProbeRecorder:
    def __init__(self, db: Database, aggregator: Optional[StatisticsAggregator] = None):
        self.db = db
        self.aggregator = aggregator or StatisticsAggregator(db)

    async def record(
        self,
        target_id: int,
        timestamp: datetime,
        success: bool,
        protocol: str,
        response_time_ms: Optional[int] = None,
        status_code: Optional[int] = None,
        error: Optional[str] = None,
    ) -> tuple[ProbeResult, DailyStat]:
        """
        Store one probe result and fold it into its daily rollup.

        Returns:
            (stored ProbeResult, updated DailyStat)

        Raises:
            ValueError: unknown protocol or negative response time
            SQLAlchemyError: storage failures
        """
        protocol = protocol.upper()
        if protocol not in PROTOCOLS:
            raise ValueError(f"Unknown protocol: {protocol}")
        if response_time_ms is not None and response_time_ms < 0:
            raise ValueError(f"response_time_ms must be >= 0, got {response_time_ms}")

        timestamp = to_naive_utc(timestamp)

        async with self.aggregator.guard(target_id, calendar_day(timestamp)):
            async with self.db.session() as session:
                async with session.begin():
                    result = await ProbeResultRepository(session).add(
                        target_id=target_id,
                        timestamp=timestamp,
                        success=success,
                        protocol=protocol,
                        response_time_ms=response_time_ms,
                        status_code=status_code,
                        error=error,
                    )
                    stat = await self.aggregator.ingest(result, session=session)

        logger.debug(
            f"Recorded probe target={target_id} success={success} "
            f"rt={response_time_ms}ms protocol={protocol}"
        )
        return result, stat
