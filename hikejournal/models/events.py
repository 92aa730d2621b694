"""Event models published over pubsub topics."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict


SESSION_STARTED_TOPIC = "session.started"
SESSION_ENDED_TOPIC = "session.ended"
SESSION_DELETED_TOPIC = "session.deleted"


@dataclass
class SessionEvent:
    """Hike session lifecycle event."""
    session_id: str
    event_type: str  # "started", "ended", "deleted"
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)
