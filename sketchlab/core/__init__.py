"""Core services: errors, logging, settings, scheduling and threading."""
from .errors import (
    DecodeFailure,
    InvalidRegion,
    PersistenceFailure,
    SketchLabError,
    SurfaceUnavailable,
)
from .logging_config import LoggingConfigurator, LoggingOptions
from .scheduling import ScheduledTask
from .settings_manager import DEFAULT_SETTINGS, SettingsManager
from .threading import ThreadController

__all__ = [
    "DEFAULT_SETTINGS",
    "DecodeFailure",
    "InvalidRegion",
    "LoggingConfigurator",
    "LoggingOptions",
    "PersistenceFailure",
    "ScheduledTask",
    "SettingsManager",
    "SketchLabError",
    "SurfaceUnavailable",
    "ThreadController",
]
