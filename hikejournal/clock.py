"""Wall-clock source used for session timestamps and reminder scheduling."""

from datetime import datetime


class SystemClock:
    """Returns the current local time."""

    def now(self) -> datetime:
        return datetime.now()
