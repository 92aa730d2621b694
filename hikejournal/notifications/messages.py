"""Reminder message pools."""

NOTIFICATION_TITLE = "Hiking Journal"

HIKE_REMINDER_MESSAGES = [
    "Enjoying your walk?",
    "Seen anything beautiful?",
    "What catches your eye?",
    "Take a moment to look around",
    "Want to capture something in your journal?",
]

MOTIVATION_MESSAGES = [
    "Fancy another nice walk?",
    "Missing the fresh air already?",
    "It's been a while since you logged a walk",
    "When are you heading out again?",
    "Nature is waiting for you",
]
