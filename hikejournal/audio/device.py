"""Abstract audio device contract used by the capture engine."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional


class AudioDevice(ABC):
    """Single physical microphone/speaker pair.

    Implementations raise hikejournal.errors.DeviceError when a stream cannot be
    opened. The interruption and end-of-stream callbacks must not be invoked
    from a thread that holds device locks, and must not be invoked after the
    corresponding close call returned.
    """

    @abstractmethod
    def open_capture(self, sink: Path,
                     on_interrupted: Optional[Callable[[str], None]] = None) -> None:
        """Begin capturing audio into the WAV file at sink."""
        ...

    @abstractmethod
    def close_capture(self) -> None:
        """Stop capturing and finalize the sink file."""
        ...

    @abstractmethod
    def current_capture_elapsed(self) -> float:
        """Seconds of audio captured so far."""
        ...

    @abstractmethod
    def current_peak_level(self) -> float:
        """Most recent peak level in dBFS (-160 for silence)."""
        ...

    @abstractmethod
    def open_playback(self, source: Path,
                      on_finished: Optional[Callable[[], None]] = None) -> None:
        """Begin playing the WAV file at source."""
        ...

    @abstractmethod
    def close_playback(self) -> None:
        """Stop playback and release the output stream."""
        ...

    @abstractmethod
    def current_playback_position(self) -> float:
        """Current playback position in seconds."""
        ...

    @abstractmethod
    def playback_duration(self) -> float:
        """Length of the source being played, in seconds."""
        ...

    @abstractmethod
    def seek_playback(self, seconds: float) -> None:
        """Move the playback position."""
        ...
