"""Warehouse Shift Simulator - synthetic shift telemetry and KPIs."""

__version__ = "0.1.0"

from .simulator import ShiftSimulator
from .config import Config
from .store import ShiftStore
from .service import ShiftDataService
from .cache import ResultCache
from .metrics import calculate_kpis
from .errors import ConfigurationError, ShiftSimError, UpstreamUnavailable

__all__ = [
    "ShiftSimulator",
    "Config",
    "ShiftStore",
    "ShiftDataService",
    "ResultCache",
    "calculate_kpis",
    "ConfigurationError",
    "ShiftSimError",
    "UpstreamUnavailable",
    "__version__",
]
