"""Data models for the hike journal."""

from .hike import HikeSession, HikeStatus, Recording, Photo
from .audio import CaptureResult, EngineState, EngineSnapshot, MeterReading, PlaybackProgress
from .reminders import ReminderSettings, ScheduledNotification
from .events import SessionEvent

__all__ = [
    "HikeSession",
    "HikeStatus",
    "Recording",
    "Photo",
    "CaptureResult",
    "EngineState",
    "EngineSnapshot",
    "MeterReading",
    "PlaybackProgress",
    "ReminderSettings",
    "ScheduledNotification",
    "SessionEvent",
]
