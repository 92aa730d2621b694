"""Maps hike lifecycle events to scheduled and cancelled local notifications."""

import logging
import random
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from datetime import datetime, timedelta
from typing import Callable, FrozenSet, List, Optional, Sequence, Set

from ..clock import SystemClock
from ..models.reminders import ReminderSettings, ScheduledNotification
from ..notifications.dispatcher import NotificationDispatcher
from ..notifications.messages import (
    HIKE_REMINDER_MESSAGES,
    MOTIVATION_MESSAGES,
    NOTIFICATION_TITLE,
)

logger = logging.getLogger(__name__)

HIKE_REMINDER_PREFIX = "hike_reminder_"
MOTIVATION_REMINDER_ID = "motivation_reminder_1"
DEFAULT_REMINDER_COUNT = 10


def hike_reminder_id(k: int) -> str:
    return f"{HIKE_REMINDER_PREFIX}{k}"


def motivation_fire_time(ended_at: datetime, days: int, hour: int = 10, minute: int = 0) -> datetime:
    """Fixed local time on the calendar day `days` after ended_at."""
    day = ended_at + timedelta(days=days)
    return day.replace(hour=hour, minute=minute, second=0, microsecond=0)


def message_cycle(messages: Sequence[str], count: int, rng: random.Random) -> List[str]:
    """Draw count messages round-robin from a shuffled copy of the pool."""
    pool = list(messages)
    rng.shuffle(pool)
    return [pool[i % len(pool)] for i in range(count)]


class ReminderScheduler:
    """Owns the set of scheduled reminder ids.

    Bookkeeping happens on the caller's thread; dispatcher calls are queued on a
    single worker and their failures are logged, never raised.
    """

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        clock=None,
        rng: Optional[random.Random] = None,
        reminder_count: int = DEFAULT_REMINDER_COUNT,
        title: str = NOTIFICATION_TITLE,
        executor: Optional[Executor] = None,
    ):
        self.dispatcher = dispatcher
        self.clock = clock or SystemClock()
        self.rng = rng or random.Random()
        self.reminder_count = reminder_count
        self.title = title
        self.executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="reminders")

        self._lock = threading.Lock()
        self._scheduled: Set[str] = set()
        self._futures: Set[Future] = set()

    @property
    def scheduled_ids(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._scheduled)

    # Lifecycle hooks

    def on_session_started(self, settings: ReminderSettings) -> List[ScheduledNotification]:
        """Replace any previous reminders with a fresh bounded set for the new hike."""
        self.cancel_all_in_progress_reminders()
        self.cancel_motivation_reminder()

        if not settings.hike_reminders_active:
            logger.debug("Hike reminders disabled, nothing scheduled")
            return []

        now = self.clock.now()
        interval = timedelta(minutes=settings.hike_reminder_interval_minutes)
        bodies = message_cycle(HIKE_REMINDER_MESSAGES, self.reminder_count, self.rng)
        notifications = [
            ScheduledNotification(
                notification_id=hike_reminder_id(k),
                fire_at=now + k * interval,
                title=self.title,
                body=bodies[k - 1],
            )
            for k in range(1, self.reminder_count + 1)
        ]
        for notification in notifications:
            self._schedule(notification)

        logger.info(f"Scheduled {len(notifications)} hike reminders every "
                    f"{settings.hike_reminder_interval_minutes} min")
        return notifications

    def on_session_ended(self, ended_at: datetime,
                         settings: ReminderSettings) -> Optional[ScheduledNotification]:
        """Cancel in-progress reminders and schedule the next motivation nudge."""
        self.cancel_all_in_progress_reminders()

        if not settings.motivation_active:
            return None

        self.cancel_motivation_reminder()
        fire_at = motivation_fire_time(ended_at, settings.motivation_days,
                                       settings.motivation_hour, settings.motivation_minute)
        if fire_at <= self.clock.now():
            logger.debug(f"Motivation reminder time {fire_at.isoformat()} is not in the future, skipped")
            return None

        notification = ScheduledNotification(
            notification_id=MOTIVATION_REMINDER_ID,
            fire_at=fire_at,
            title=self.title,
            body=self.rng.choice(MOTIVATION_MESSAGES),
        )
        self._schedule(notification)
        logger.info(f"Scheduled motivation reminder for {fire_at.isoformat()}")
        return notification

    # Cancellation

    def cancel_all_in_progress_reminders(self) -> None:
        # Cover the full id range, so reminders left by an earlier process go too.
        with self._lock:
            ids = {hike_reminder_id(k) for k in range(1, self.reminder_count + 1)}
            ids.update(i for i in self._scheduled if i.startswith(HIKE_REMINDER_PREFIX))
            self._scheduled.difference_update(ids)
        self._submit("cancel hike reminders", self.dispatcher.cancel, sorted(ids))

    def cancel_motivation_reminder(self) -> None:
        with self._lock:
            self._scheduled.discard(MOTIVATION_REMINDER_ID)
        self._submit("cancel motivation reminder", self.dispatcher.cancel, [MOTIVATION_REMINDER_ID])

    # Dispatching

    def _schedule(self, notification: ScheduledNotification) -> None:
        with self._lock:
            self._scheduled.add(notification.notification_id)
        self._submit(
            f"schedule {notification.notification_id}",
            self.dispatcher.schedule,
            notification.notification_id,
            notification.fire_at,
            notification.title,
            notification.body,
        )

    def _submit(self, description: str, fn: Callable, *args) -> None:
        try:
            future = self.executor.submit(self._run_best_effort, description, fn, *args)
        except RuntimeError as e:
            logger.error(f"Could not queue '{description}': {e}")
            return
        with self._lock:
            self._futures.add(future)
        future.add_done_callback(self._forget)

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._futures.discard(future)

    @staticmethod
    def _run_best_effort(description: str, fn: Callable, *args) -> None:
        try:
            fn(*args)
        except Exception as e:
            logger.error(f"Notification dispatcher failed to {description}: {e}")

    def drain(self, timeout: Optional[float] = 5.0) -> bool:
        """Wait for queued dispatcher calls. Returns False on timeout."""
        with self._lock:
            futures = list(self._futures)
        if not futures:
            return True
        _, not_done = wait(futures, timeout=timeout)
        return not not_done

    def shutdown(self) -> None:
        self.executor.shutdown(wait=True)
        logger.info("ReminderScheduler shut down")
