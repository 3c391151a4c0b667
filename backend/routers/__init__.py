from .probes import router as probes_router
from .maintenance import router as maintenance_router
from .settings import router as settings_router

__all__ = [
    "probes_router",
    "maintenance_router",
    "settings_router",
]
