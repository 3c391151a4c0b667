"""
Daily retention schedule.

Sleeps until the configured UTC hour, runs a sweep, repeats. Errors are
logged and the loop retries an hour later.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from services.data_retention import RetentionOrchestrator
from utils.timeutils import utcnow

logger = logging.getLogger(__name__)

RETRY_AFTER_ERROR_SECONDS = 3600


def next_run_at(now: datetime, hour: int) -> datetime:
    """The next occurrence of ``hour``:00 UTC strictly after ``now``."""
    candidate = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


async def run_retention_schedule(
    orchestrator: RetentionOrchestrator,
    hour: int,
    max_runs: Optional[int] = None,
) -> None:
    """
    Run retention sweeps once a day at ``hour`` UTC.

    ``max_runs`` bounds the loop (tests); None runs until cancelled.
    """
    logger.info(f"Starting retention schedule (hour={hour:02d}:00 UTC)")

    runs = 0
    while max_runs is None or runs < max_runs:
        try:
            now = utcnow()
            next_run = next_run_at(now, hour)
            wait_seconds = (next_run - now).total_seconds()
            logger.info(f"Next retention sweep at {next_run.isoformat()}Z (in {wait_seconds:.0f}s)")

            await asyncio.sleep(wait_seconds)

            result = await orchestrator.run_retention_sweep()
            logger.info(
                f"Scheduled retention sweep done: deleted {result.total_deleted}, "
                f"{len(result.per_target_errors)} target errors"
            )
        except asyncio.CancelledError:
            logger.info("Retention schedule cancelled")
            raise
        except Exception as e:
            logger.error(f"Retention schedule error: {e}", exc_info=True)
            await asyncio.sleep(RETRY_AFTER_ERROR_SECONDS)
        finally:
            runs += 1
