"""
Daily rollup merge arithmetic.

A StatDelta summarizes one or more probe results for the same target and
UTC day. merge() folds a delta into an existing rollup (or starts a new one)
without touching storage; DailyStatRepository runs the same arithmetic
server-side inside an atomic upsert.

Latency policy: only successful probes that reported a response time feed
avg/min/max. Failed probes still count toward totals and uptime but are left
out of the average's denominator, so (ok 100ms, fail, ok 300ms) averages to
exactly 200ms. ``timed_pings`` carries the average's weight across merges.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Protocol


class RollupLike(Protocol):
    total_pings: int
    successful_pings: int
    failed_pings: int
    timed_pings: int
    last_response_time_ms: int
    avg_response_time_ms: float
    min_response_time_ms: Optional[int]
    max_response_time_ms: Optional[int]


@dataclass(frozen=True)
class StatDelta:
    """Statistics for a batch of newly ingested results of one day."""
    total_pings: int = 0
    successful_pings: int = 0
    failed_pings: int = 0
    timed_pings: int = 0
    last_response_time_ms: int = 0
    avg_response_time_ms: float = 0.0
    min_response_time_ms: Optional[int] = None
    max_response_time_ms: Optional[int] = None

    @classmethod
    def from_result(cls, success: bool, response_time_ms: Optional[int]) -> "StatDelta":
        """Delta for a single probe result."""
        timed = bool(success) and response_time_ms is not None
        return cls(
            total_pings=1,
            successful_pings=1 if success else 0,
            failed_pings=0 if success else 1,
            timed_pings=1 if timed else 0,
            last_response_time_ms=response_time_ms or 0,
            avg_response_time_ms=float(response_time_ms) if timed else 0.0,
            min_response_time_ms=response_time_ms if timed else None,
            max_response_time_ms=response_time_ms if timed else None,
        )

    @classmethod
    def combine(cls, deltas: Iterable["StatDelta"]) -> "StatDelta":
        """Pre-sum deltas (given in arrival order) into one batched delta."""
        combined: Optional[DailyStatValues] = None
        for delta in deltas:
            combined = merge(combined, delta)
        if combined is None:
            return cls()
        return cls(
            total_pings=combined.total_pings,
            successful_pings=combined.successful_pings,
            failed_pings=combined.failed_pings,
            timed_pings=combined.timed_pings,
            last_response_time_ms=combined.last_response_time_ms,
            avg_response_time_ms=combined.avg_response_time_ms,
            min_response_time_ms=combined.min_response_time_ms,
            max_response_time_ms=combined.max_response_time_ms,
        )


@dataclass(frozen=True)
class DailyStatValues:
    """Column values of a daily rollup row after a merge."""
    total_pings: int
    successful_pings: int
    failed_pings: int
    uptime_pct: float
    timed_pings: int
    last_response_time_ms: int
    avg_response_time_ms: float
    min_response_time_ms: Optional[int]
    max_response_time_ms: Optional[int]


def uptime_percentage(successful: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return (successful / total) * 100


def weighted_average(
    existing_avg: float, existing_weight: int, delta_avg: float, delta_weight: int
) -> float:
    weight = existing_weight + delta_weight
    if weight == 0:
        return delta_avg
    return (existing_avg * existing_weight + delta_avg * delta_weight) / weight


def merge_min(current: Optional[int], incoming: Optional[int]) -> Optional[int]:
    # A present value beats an absent one
    if current is None:
        return incoming
    if incoming is None:
        return current
    return min(current, incoming)


def merge_max(current: Optional[int], incoming: Optional[int]) -> Optional[int]:
    if current is None:
        return incoming
    if incoming is None:
        return current
    return max(current, incoming)


def merge(existing: Optional[RollupLike], delta: StatDelta) -> DailyStatValues:
    """
    Fold a delta into an existing rollup.

    Args:
        existing: Stored rollup (a DailyStat row or DailyStatValues), or None
            for the first results of the day
        delta: Newly ingested results for the same target and day

    Returns:
        DailyStatValues with counts added, uptime recomputed, the weighted
        average updated and min/max merged null-safely
    """
    if existing is None:
        return DailyStatValues(
            total_pings=delta.total_pings,
            successful_pings=delta.successful_pings,
            failed_pings=delta.failed_pings,
            uptime_pct=uptime_percentage(delta.successful_pings, delta.total_pings),
            timed_pings=delta.timed_pings,
            last_response_time_ms=delta.last_response_time_ms,
            avg_response_time_ms=delta.avg_response_time_ms,
            min_response_time_ms=delta.min_response_time_ms,
            max_response_time_ms=delta.max_response_time_ms,
        )

    total = existing.total_pings + delta.total_pings
    successful = existing.successful_pings + delta.successful_pings

    return DailyStatValues(
        total_pings=total,
        successful_pings=successful,
        failed_pings=existing.failed_pings + delta.failed_pings,
        uptime_pct=uptime_percentage(successful, total),
        timed_pings=existing.timed_pings + delta.timed_pings,
        last_response_time_ms=delta.last_response_time_ms,
        avg_response_time_ms=weighted_average(
            existing.avg_response_time_ms,
            existing.timed_pings,
            delta.avg_response_time_ms,
            delta.timed_pings,
        ),
        min_response_time_ms=merge_min(existing.min_response_time_ms, delta.min_response_time_ms),
        max_response_time_ms=merge_max(existing.max_response_time_ms, delta.max_response_time_ms),
    )
