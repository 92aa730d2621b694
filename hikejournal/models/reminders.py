"""Reminder configuration and notification models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class ReminderSettings:
    """User preferences for hike and motivation reminders."""
    notifications_enabled: bool = True
    hike_reminders_enabled: bool = False
    hike_reminder_interval_minutes: int = 30
    motivation_enabled: bool = False
    motivation_days: int = 3
    motivation_hour: int = 10
    motivation_minute: int = 0

    @property
    def hike_reminders_active(self) -> bool:
        return self.notifications_enabled and self.hike_reminders_enabled

    @property
    def motivation_active(self) -> bool:
        return self.notifications_enabled and self.motivation_enabled


@dataclass(frozen=True)
class ScheduledNotification:
    """A local notification handed to the dispatcher."""
    notification_id: str
    fire_at: datetime
    title: str
    body: str
