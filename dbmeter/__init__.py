"""dbmeter package."""

from .detector import EventDetector, EventLog, SoundEvent
from .engine import MeterEngine, TickResult
from .loudness import db_label, estimate_db
from .settings import Settings, SettingsStore
from .smoothing import Smoother

__version__ = "1.0.0"

__all__ = [
    "EventDetector",
    "EventLog",
    "SoundEvent",
    "MeterEngine",
    "TickResult",
    "db_label",
    "estimate_db",
    "Settings",
    "SettingsStore",
    "Smoother",
]
