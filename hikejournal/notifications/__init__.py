"""Local notification dispatching."""

from .dispatcher import NotificationDispatcher, FileNotificationDispatcher

__all__ = [
    "NotificationDispatcher",
    "FileNotificationDispatcher",
]
