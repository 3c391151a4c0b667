from .target import Target
from .probe_result import ProbeResult
from .daily_stat import DailyStat
from .admin_settings import AdminSettings, SETTINGS_ROW_ID

__all__ = [
    "Target",
    "ProbeResult",
    "DailyStat",
    "AdminSettings",
    "SETTINGS_ROW_ID",
]
