"""Services layer for hike journal application logic."""

from .session_manager import HikeSessionManager
from .reminder_scheduler import ReminderScheduler
from .media_service import MediaService

__all__ = [
    "HikeSessionManager",
    "ReminderScheduler",
    "MediaService",
]
