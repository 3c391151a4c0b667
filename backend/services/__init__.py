"""Services package for LocalPing."""

from .rollup import (
    StatDelta,
    DailyStatValues,
    merge,
)
from .bucket_reducer import (
    ProbePoint,
    ReductionTier,
    HOURLY_TIER,
    DAILY_TIER,
    reduce,
    reduce_to_fixpoint,
)

__all__ = [
    "StatDelta",
    "DailyStatValues",
    "merge",
    "ProbePoint",
    "ReductionTier",
    "HOURLY_TIER",
    "DAILY_TIER",
    "reduce",
    "reduce_to_fixpoint",
]
