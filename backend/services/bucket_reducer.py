"""
Representative-point selection for aged probe results.

Given one time bucket (an hour or a calendar day) of results sorted by
timestamp, pick the points worth keeping:

- the first and last point of the bucket
- the fastest and slowest response (when any response time is present)
- both sides of every up/down transition
- an evenly spaced sample, roughly ``keep_target`` points

Buckets at or below the tier threshold are kept whole.
"""

from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Set

from utils.timeutils import truncate_to_hour


class ProbePoint(NamedTuple):
    """The columns of a probe result that point selection looks at."""
    id: int
    timestamp: datetime
    success: bool
    response_time_ms: Optional[int]


@dataclass(frozen=True)
class ReductionTier:
    name: str
    threshold: int  # buckets this size or smaller are left alone
    keep_target: int  # approximate stride-sample size


HOURLY_TIER = ReductionTier(name="hourly", threshold=10, keep_target=8)
DAILY_TIER = ReductionTier(name="daily", threshold=5, keep_target=4)


def reduce(points: Sequence[ProbePoint], tier: ReductionTier) -> Set[int]:
    """
    Select the ids to keep from one bucket.

    Args:
        points: Bucket contents ordered by timestamp ascending
        tier: Threshold and sample size for the bucket's age tier

    Returns:
        Ids to keep; every other id in the bucket is a deletion candidate
    """
    if not points:
        return set()
    if len(points) <= tier.threshold:
        return {p.id for p in points}

    keep = {points[0].id, points[-1].id}

    # Latency extremes
    timed = [p for p in points if p.response_time_ms is not None]
    if timed:
        keep.add(min(timed, key=lambda p: p.response_time_ms).id)
        keep.add(max(timed, key=lambda p: p.response_time_ms).id)

    # Up/down transitions
    for previous, current in zip(points, points[1:]):
        if bool(previous.success) != bool(current.success):
            keep.add(previous.id)
            keep.add(current.id)

    # Coarse shape
    stride = max(1, len(points) // tier.keep_target)
    for index in range(0, len(points), stride):
        keep.add(points[index].id)

    return keep


def reduce_to_fixpoint(points: Sequence[ProbePoint], tier: ReductionTier) -> Set[int]:
    """
    Apply reduce() to its own survivors until nothing more is dropped.

    Boundaries, extremes and transitions of one pass are boundaries,
    extremes and transitions of the next, so only stride samples thin out.
    A bucket reduced this way is left unchanged by a later reduce().
    """
    current = list(points)
    while True:
        keep = reduce(current, tier)
        if len(keep) == len(current):
            return keep
        current = [p for p in current if p.id in keep]


def bucket_by_hour(points: Iterable[ProbePoint]) -> Dict[datetime, List[ProbePoint]]:
    """Group ordered points by the hour their timestamp falls in."""
    buckets: Dict[datetime, List[ProbePoint]] = OrderedDict()
    for point in points:
        buckets.setdefault(truncate_to_hour(point.timestamp), []).append(point)
    return buckets


def bucket_by_day(points: Iterable[ProbePoint]) -> Dict[date, List[ProbePoint]]:
    """Group ordered points by UTC calendar day."""
    buckets: Dict[date, List[ProbePoint]] = OrderedDict()
    for point in points:
        buckets.setdefault(point.timestamp.date(), []).append(point)
    return buckets


def select_for_deletion(
    buckets: Dict[object, List[ProbePoint]], tier: ReductionTier
) -> List[int]:
    """Ids across all buckets that the tier does not keep."""
    doomed: List[int] = []
    for bucket in buckets.values():
        keep = reduce_to_fixpoint(bucket, tier)
        doomed.extend(p.id for p in bucket if p.id not in keep)
    return doomed
