"""Hiking journal: hike sessions, audio notes and reminders."""

__version__ = "0.1.0"
