"""Audio capture and playback module."""

from .capture import AudioCaptureEngine
from .device import AudioDevice
from .ticker import Ticker, ThreadTicker

__all__ = [
    'AudioCaptureEngine',
    'AudioDevice',
    'Ticker',
    'ThreadTicker',
]
