"""Persistence for hikes, media files and process state."""

from .hike_store import HikeStore
from .app_state import AppStateStore

__all__ = [
    "HikeStore",
    "AppStateStore",
]
