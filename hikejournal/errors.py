"""Exception types raised by the hike journal core."""


class HikeJournalError(Exception):
    """Base class for all hike journal errors."""


class SessionError(HikeJournalError):
    """A hike session lifecycle request violated the session invariants."""


class SessionAlreadyActive(SessionError):
    """Raised when a session is started while another one is in progress."""

    def __init__(self, existing_id: str):
        self.existing_id = existing_id
        super().__init__(f"Hike session {existing_id} is already in progress")


class SessionNotFound(SessionError):
    """Raised when a session id does not exist in the store."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Hike session not found: {session_id}")


class SessionNotActive(SessionError):
    """Raised when ending a session that is not the active, in-progress one."""

    def __init__(self, session_id: str, reason: str = "not the active session"):
        self.session_id = session_id
        super().__init__(f"Hike session {session_id} is {reason}")


class CaptureError(HikeJournalError):
    """Audio capture or playback could not be performed."""


class DeviceUnavailable(CaptureError):
    """The audio device could not be opened (permission denied, busy, missing)."""


class DeviceError(Exception):
    """Raised by AudioDevice implementations on stream failures."""
