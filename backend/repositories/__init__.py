"""Typed data access for probe results, daily rollups, targets and settings."""

from .probe_results import ProbeResultRepository
from .daily_stats import DailyStatRepository, NATIVE_UPSERT_DIALECTS
from .targets import TargetRepository
from .settings import SettingsRepository

__all__ = [
    "ProbeResultRepository",
    "DailyStatRepository",
    "NATIVE_UPSERT_DIALECTS",
    "TargetRepository",
    "SettingsRepository",
]
