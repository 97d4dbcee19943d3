"""Client library for the PEKAT VISION image analysis server."""

from .analyzer import Analyzer
from .config import AnalyzerConfig
from .errors import (
    AnalyzerError,
    ConfigurationError,
    PortExhaustionError,
    ProcessStartupError,
    ProtocolError,
    ServerConnectionError,
)
from .results import AnalysisResult, ResultType
from .settings_store import SettingsStore

__all__ = [
    "AnalysisResult",
    "Analyzer",
    "AnalyzerConfig",
    "AnalyzerError",
    "ConfigurationError",
    "PortExhaustionError",
    "ProcessStartupError",
    "ProtocolError",
    "ResultType",
    "ServerConnectionError",
    "SettingsStore",
]
