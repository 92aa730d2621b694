"""Audio-related data models."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class EngineState(Enum):
    """Mode of the audio capture engine. The device is held in at most one mode."""
    IDLE = "idle"
    RECORDING = "recording"
    PLAYING = "playing"


@dataclass(frozen=True)
class CaptureResult:
    """A finished capture that has not been persisted yet."""
    temp_path: Path
    elapsed_seconds: float
    interrupted: bool = False


@dataclass(frozen=True)
class MeterReading:
    """Live recording feedback published on every metering tick."""
    recording_duration: float
    audio_level: float  # normalized 0.0 - 1.0


@dataclass(frozen=True)
class PlaybackProgress:
    """Live playback feedback published on every position tick."""
    position: float
    duration: float
    progress: float  # position / duration clamped to 0.0 - 1.0


@dataclass(frozen=True)
class EngineSnapshot:
    """Consistent point-in-time view of the engine's observable values."""
    state: EngineState
    recording_duration: float
    audio_level: float
    playback_position: float
    playback_duration: float
    playback_progress: float
