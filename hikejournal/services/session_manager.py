"""Session manager enforcing the single-active-hike invariant."""

import dataclasses
import logging
import threading
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from pubsub import pub

from ..clock import SystemClock
from ..errors import SessionAlreadyActive, SessionNotActive, SessionNotFound
from ..models.events import (
    SESSION_DELETED_TOPIC,
    SESSION_ENDED_TOPIC,
    SESSION_STARTED_TOPIC,
    SessionEvent,
)
from ..models.hike import CLOSING_FIELDS, PROTECTED_FIELDS, HikeSession, HikeStatus, new_id
from ..models.reminders import ReminderSettings
from ..storage.app_state import AppStateStore
from ..storage.hike_store import HikeStore
from .reminder_scheduler import ReminderScheduler

logger = logging.getLogger(__name__)


class HikeSessionManager:
    """Owns the active hike id and the IN_PROGRESS -> COMPLETED transition.

    The active id is the sole authority on which hike is in progress. It is
    persisted in the app state store, and reconciled against the hike store at
    construction and whenever reconcile() is called after external changes.
    """

    def __init__(
        self,
        store: HikeStore,
        state_store: AppStateStore,
        reminder_scheduler: ReminderScheduler,
        reminder_settings: Optional[ReminderSettings] = None,
        clock=None,
    ):
        """Initialize session manager.

        Args:
            store: Persistent hike store
            state_store: Holds the persisted active hike id
            reminder_scheduler: Notified on start and end, best effort
            reminder_settings: Reminder preferences passed on lifecycle events
            clock: Source of "now" (SystemClock if None)
        """
        self.store = store
        self.state_store = state_store
        self.reminder_scheduler = reminder_scheduler
        self.reminder_settings = reminder_settings or ReminderSettings()
        self.clock = clock or SystemClock()

        self._lock = threading.Lock()
        self._active_session_id: Optional[str] = state_store.get_active_session_id()
        self.reconcile(store.query())
        logger.info(f"HikeSessionManager initialized, active session: {self._active_session_id}")

    @property
    def active_session_id(self) -> Optional[str]:
        """Snapshot read of the active hike id."""
        with self._lock:
            return self._active_session_id

    def get_active_session(self) -> Optional[HikeSession]:
        session_id = self.active_session_id
        return self.store.get(session_id) if session_id else None

    def get_session(self, session_id: str) -> HikeSession:
        session = self.store.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    # Lifecycle

    def start_session(self, **initial_fields: Any) -> str:
        """Create and activate a new hike.

        Args:
            **initial_fields: Start-phase fields (name, hike_type, start_mood, ...)

        Returns:
            The new hike id

        Raises:
            SessionAlreadyActive: Another hike is in progress; nothing is changed.
            ValueError: Invalid or protected fields were given.
        """
        _reject_protected(initial_fields)
        with self._lock:
            if self._active_session_id is not None:
                raise SessionAlreadyActive(self._active_session_id)

            now = self.clock.now()
            session = HikeSession(
                id=new_id(),
                status=HikeStatus.IN_PROGRESS,
                started_at=now,
                updated_at=now,
                **initial_fields,
            )
            self.store.insert(session)
            self._save_or_rollback()
            self._set_active(session.id)

        logger.info(f"Started hike session {session.id} ({session.name or 'unnamed'})")
        pub.sendMessage(SESSION_STARTED_TOPIC,
                        event=SessionEvent(session.id, "started", timestamp=now))
        self._notify_reminders("on_session_started", self.reminder_settings)
        return session.id

    def end_session(self, session_id: str, end_mood: int, **closing_fields: Any) -> HikeSession:
        """Complete the active hike, writing closing fields with the status flip.

        Raises:
            SessionNotFound: No hike with this id.
            SessionNotActive: The hike is completed or is not the active one.
            ValueError: Unknown closing fields or an invalid mood.
        """
        unknown = set(closing_fields) - CLOSING_FIELDS
        if unknown:
            raise ValueError(f"Not closing fields: {', '.join(sorted(unknown))}")

        with self._lock:
            session = self.store.get(session_id)
            if session is None:
                raise SessionNotFound(session_id)
            if session.status is not HikeStatus.IN_PROGRESS:
                raise SessionNotActive(session_id, "already completed")
            if session_id != self._active_session_id:
                raise SessionNotActive(session_id)

            ended_at = self.clock.now()
            completed = dataclasses.replace(
                session,
                status=HikeStatus.COMPLETED,
                ended_at=ended_at,
                end_mood=end_mood,
                updated_at=ended_at,
                **closing_fields,
            )
            self.store.update(completed)
            self._save_or_rollback()
            self._set_active(None)

        logger.info(f"Completed hike session {session_id}")
        pub.sendMessage(SESSION_ENDED_TOPIC,
                        event=SessionEvent(session_id, "ended", timestamp=ended_at))
        self._notify_reminders("on_session_ended", ended_at, self.reminder_settings)
        return completed

    def reconcile(self, all_known_sessions: Iterable[HikeSession]) -> None:
        """Clear the active id when it no longer points at an in-progress hike."""
        with self._lock:
            active_id = self._active_session_id
            if active_id is None:
                return
            for session in all_known_sessions:
                if session.id == active_id and session.status is HikeStatus.IN_PROGRESS:
                    return
            logger.warning(f"Active session {active_id} is missing or completed, clearing it")
            self._set_active(None)

    # Editing

    def update_session(self, session_id: str, **changes: Any) -> HikeSession:
        """Edit narrative and metric fields, whatever the hike's status."""
        _reject_protected(changes)
        with self._lock:
            session = self.get_session(session_id)
            updated = dataclasses.replace(session, updated_at=self.clock.now(), **changes)
            self.store.update(updated)
            self._save_or_rollback()
        logger.debug(f"Updated hike {session_id}: {', '.join(sorted(changes))}")
        return updated

    def delete_session(self, session_id: str) -> None:
        """Delete a hike with all its recordings and photos."""
        with self._lock:
            session = self.get_session(session_id)
            self.store.delete(session)
            self._save_or_rollback()
            was_active = session_id == self._active_session_id
            if was_active:
                self._set_active(None)

        logger.info(f"Deleted hike session {session_id}")
        pub.sendMessage(SESSION_DELETED_TOPIC,
                        event=SessionEvent(session_id, "deleted", metadata={"was_active": was_active}))
        if was_active:
            self._notify_reminders("cancel_all_in_progress_reminders")

    # Internals

    def _save_or_rollback(self) -> None:
        try:
            self.store.save()
        except OSError as e:
            logger.error(f"Saving hike store failed, rolling back: {e}")
            self.store.rollback()
            raise

    def _set_active(self, session_id: Optional[str]) -> None:
        self._active_session_id = session_id
        try:
            self.state_store.set_active_session_id(session_id)
        except OSError as e:
            logger.error(f"Could not persist active session id {session_id}: {e}")

    def _notify_reminders(self, hook: str, *args: Any) -> None:
        try:
            getattr(self.reminder_scheduler, hook)(*args)
        except Exception as e:
            logger.error(f"Reminder scheduler {hook} failed: {e}")


def _reject_protected(fields: Dict[str, Any]) -> None:
    protected = set(fields) & PROTECTED_FIELDS
    if protected:
        raise ValueError(f"Fields managed by the session lifecycle: {', '.join(sorted(protected))}")
