"""Notification dispatcher contract and a JSON spool implementation."""

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Dict, List

from ..models.reminders import ScheduledNotification

logger = logging.getLogger(__name__)


class NotificationDispatcher(ABC):
    """Schedules local notifications. Best effort: delivery is not guaranteed."""

    @abstractmethod
    def schedule(self, notification_id: str, fire_at: datetime, title: str, body: str) -> str:
        """Schedule a notification, replacing one with the same id. Returns a handle."""
        ...

    @abstractmethod
    def cancel(self, notification_ids: List[str]) -> None:
        """Cancel pending notifications. Unknown ids are ignored."""
        ...


class FileNotificationDispatcher(NotificationDispatcher):
    """Keeps pending notifications in a JSON spool file.

    A front end (or a cron-like poller) reads due notifications with pop_due().
    """

    def __init__(self, spool_file: str):
        self.spool_file = Path(spool_file)
        self.spool_file.parent.mkdir(parents=True, exist_ok=True)
        self.lock = threading.Lock()

    def _read(self) -> Dict[str, Dict[str, str]]:
        if not self.spool_file.exists():
            return {}
        with open(self.spool_file, 'r', encoding='utf-8') as f:
            return json.load(f)

    def _write(self, entries: Dict[str, Dict[str, str]]) -> None:
        tmp_path = self.spool_file.with_name(self.spool_file.name + ".tmp")
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(entries, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, self.spool_file)

    def schedule(self, notification_id: str, fire_at: datetime, title: str, body: str) -> str:
        with self.lock:
            entries = self._read()
            entries[notification_id] = {
                "fire_at": fire_at.isoformat(),
                "title": title,
                "body": body,
            }
            self._write(entries)
        logger.debug(f"Scheduled notification {notification_id} at {fire_at.isoformat()}")
        return notification_id

    def cancel(self, notification_ids: List[str]) -> None:
        with self.lock:
            entries = self._read()
            removed = [i for i in notification_ids if entries.pop(i, None) is not None]
            if removed:
                self._write(entries)
        logger.debug(f"Cancelled {len(removed)} notifications")

    def pending(self) -> List[ScheduledNotification]:
        """All pending notifications ordered by fire time."""
        with self.lock:
            entries = self._read()
        return _sorted_notifications(entries)

    def pop_due(self, now: datetime) -> List[ScheduledNotification]:
        """Remove and return notifications whose fire time has passed."""
        with self.lock:
            entries = self._read()
            due = [n for n in _sorted_notifications(entries) if n.fire_at <= now]
            if due:
                for notification in due:
                    del entries[notification.notification_id]
                self._write(entries)
        logger.debug(f"Popped {len(due)} due notifications")
        return due


def _sorted_notifications(entries: Dict[str, Dict[str, str]]) -> List[ScheduledNotification]:
    notifications = [
        ScheduledNotification(
            notification_id=notification_id,
            fire_at=datetime.fromisoformat(entry["fire_at"]),
            title=entry["title"],
            body=entry["body"],
        )
        for notification_id, entry in entries.items()
    ]
    notifications.sort(key=lambda n: n.fire_at)
    return notifications
