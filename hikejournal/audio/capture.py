"""Audio capture engine: exclusive recording/playback state machine with live feedback."""

import os
import logging
import tempfile
import threading
from pathlib import Path
from typing import Callable, List, Optional, Union

from .audio_pub import AudioPublisher
from .device import AudioDevice
from .levels import normalize_peak
from .ticker import Ticker, ThreadTicker
from ..errors import DeviceError, DeviceUnavailable
from ..models.audio import (
    CaptureResult,
    EngineSnapshot,
    EngineState,
    MeterReading,
    PlaybackProgress,
)

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL = 0.1


def _remove_file(path: Optional[Path]) -> None:
    if path is None:
        return
    try:
        path.unlink()
        logger.debug(f"Removed capture file: {path}")
    except FileNotFoundError:
        pass


class AudioCaptureEngine:
    """Drives exactly one of IDLE, RECORDING or PLAYING on a single audio device.

    All transitions are serialized on one re-entrant lock. Live values are updated
    by a ticker and exposed both through snapshot() and the AudioPublisher topics;
    listeners are called outside the lock.
    """

    def __init__(
        self,
        device: AudioDevice,
        temp_dir: Optional[Union[str, Path]] = None,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
        ticker_factory: Optional[Callable[[], Ticker]] = None,
        publisher: Optional[AudioPublisher] = None,
    ):
        """Initialize the engine.

        Args:
            device: The audio device; the engine is its only user
            temp_dir: Directory for in-flight capture files (system temp if None)
            tick_interval: Seconds between metering/progress ticks
            ticker_factory: Creates a fresh Ticker for each recording or playback
            publisher: Feedback publisher (default topics under "audio")
        """
        self.device = device
        self.temp_dir = Path(temp_dir) if temp_dir else Path(tempfile.gettempdir())
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        self.ticker_factory = ticker_factory or (lambda: ThreadTicker(tick_interval, name="AudioEngineTicker"))
        self.publisher = publisher or AudioPublisher()

        self._lock = threading.RLock()
        self._state = EngineState.IDLE
        self._ticker: Optional[Ticker] = None
        self._generation = 0

        self._temp_path: Optional[Path] = None
        self._pending_capture: Optional[CaptureResult] = None
        self._recording_duration = 0.0
        self._audio_level = 0.0

        self._playback_position = 0.0
        self._playback_duration = 0.0

    # Observable state

    @property
    def state(self) -> EngineState:
        with self._lock:
            return self._state

    @property
    def is_recording(self) -> bool:
        return self.state is EngineState.RECORDING

    @property
    def is_playing(self) -> bool:
        return self.state is EngineState.PLAYING

    @property
    def recording_duration(self) -> float:
        with self._lock:
            return self._recording_duration

    @property
    def audio_level(self) -> float:
        with self._lock:
            return self._audio_level

    @property
    def playback_position(self) -> float:
        with self._lock:
            return self._playback_position

    @property
    def playback_duration(self) -> float:
        with self._lock:
            return self._playback_duration

    @property
    def playback_progress(self) -> float:
        with self._lock:
            return self._progress()

    @property
    def pending_capture(self) -> Optional[CaptureResult]:
        """Capture preserved after an interruption or implicit stop, if any."""
        with self._lock:
            return self._pending_capture

    def snapshot(self) -> EngineSnapshot:
        with self._lock:
            return EngineSnapshot(
                state=self._state,
                recording_duration=self._recording_duration,
                audio_level=self._audio_level,
                playback_position=self._playback_position,
                playback_duration=self._playback_duration,
                playback_progress=self._progress(),
            )

    def _progress(self) -> float:
        if self._playback_duration <= 0:
            return 0.0
        return max(0.0, min(1.0, self._playback_position / self._playback_duration))

    # Recording

    def start_recording(self) -> None:
        """Open a fresh temporary sink and begin capturing.

        Raises:
            DeviceUnavailable: The device could not be opened. Not retried.
        """
        events: List[Callable[[], None]] = []
        with self._lock:
            if self._state is EngineState.RECORDING:
                logger.warning("Recording already in progress")
                return
            if self._state is EngineState.PLAYING:
                logger.info("Stopping playback before recording")
                self._stop_playing_locked(events)

            fd, name = tempfile.mkstemp(prefix="capture_", suffix=".wav", dir=str(self.temp_dir))
            os.close(fd)
            temp_path = Path(name)

            self._generation += 1
            generation = self._generation
            try:
                self.device.open_capture(
                    temp_path,
                    on_interrupted=lambda reason: self._on_capture_interrupted(generation, reason),
                )
            except DeviceError as e:
                _remove_file(temp_path)
                logger.error(f"Could not start recording: {e}")
                self._flush(events)
                raise DeviceUnavailable(str(e)) from e

            self._temp_path = temp_path
            self._recording_duration = 0.0
            self._audio_level = 0.0
            self._set_state(EngineState.RECORDING, events)
            self._start_ticker(lambda: self._on_recording_tick(generation))
            logger.info(f"Started recording to {temp_path}")
        self._flush(events)

    def stop_recording(self) -> Optional[CaptureResult]:
        """Stop capturing and hand the temp file over to the caller.

        Returns:
            The capture, the pending capture left by an interruption when idle,
            or None when nothing was captured.
        """
        events: List[Callable[[], None]] = []
        with self._lock:
            if self._state is not EngineState.RECORDING:
                pending, self._pending_capture = self._pending_capture, None
                return pending
            result = self._stop_recording_locked(events)
        self._flush(events)
        return result

    def cancel_recording(self) -> None:
        """Stop capturing and delete the temp file. No-op when idle."""
        events: List[Callable[[], None]] = []
        with self._lock:
            result = None
            if self._state is EngineState.RECORDING:
                result = self._stop_recording_locked(events)
            pending, self._pending_capture = self._pending_capture, None
            for capture in (result, pending):
                if capture is not None:
                    _remove_file(capture.temp_path)
            if result is not None:
                logger.info("Recording cancelled")
        self._flush(events)

    def discard_capture(self, capture: CaptureResult) -> None:
        """Delete the temp file of a capture returned by stop_recording()."""
        with self._lock:
            if self._pending_capture == capture:
                self._pending_capture = None
        _remove_file(capture.temp_path)

    def save_recording(self, temp_path: Union[str, Path]) -> bytes:
        """Read a finished capture into memory and remove the temp file.

        Raises:
            OSError: The file could not be read.
        """
        path = Path(temp_path)
        data = path.read_bytes()
        _remove_file(path)
        with self._lock:
            if self._pending_capture is not None and self._pending_capture.temp_path == path:
                self._pending_capture = None
        logger.info(f"Read {len(data)} bytes from capture {path.name}")
        return data

    def _stop_recording_locked(self, events: List[Callable[[], None]],
                               interrupted: bool = False) -> Optional[CaptureResult]:
        # Elapsed time comes from the device, not from the tick count.
        try:
            elapsed = self.device.current_capture_elapsed()
        except DeviceError as e:
            logger.warning(f"Could not read capture time, using last tick: {e}")
            elapsed = self._recording_duration
        try:
            self.device.close_capture()
        except DeviceError as e:
            logger.error(f"Error closing capture: {e}")

        self._stop_ticker()
        temp_path, self._temp_path = self._temp_path, None
        self._recording_duration = 0.0
        self._audio_level = 0.0
        self._set_state(EngineState.IDLE, events)

        if temp_path is None:
            return None
        logger.info(f"Recording stopped after {elapsed:.2f}s")
        return CaptureResult(temp_path=temp_path, elapsed_seconds=elapsed, interrupted=interrupted)

    def _on_recording_tick(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._state is not EngineState.RECORDING:
                return
            self._recording_duration = self.device.current_capture_elapsed()
            self._audio_level = normalize_peak(self.device.current_peak_level())
            reading = MeterReading(self._recording_duration, self._audio_level)
        self.publisher.publish_meter(reading)

    def _on_capture_interrupted(self, generation: int, reason: str) -> None:
        events: List[Callable[[], None]] = []
        with self._lock:
            if generation != self._generation or self._state is not EngineState.RECORDING:
                return
            logger.warning(f"Recording interrupted ({reason}); keeping partial capture")
            self._pending_capture = self._stop_recording_locked(events, interrupted=True)
        self._flush(events)

    # Playback

    def play(self, source: Union[str, Path], duration: Optional[float] = None) -> None:
        """Play an audio file, replacing any current playback.

        Args:
            source: WAV file to play
            duration: Stored duration used for progress; device duration if None

        Raises:
            DeviceUnavailable: The device could not be opened.
        """
        events: List[Callable[[], None]] = []
        with self._lock:
            if self._state is EngineState.RECORDING:
                logger.info("Stopping recording before playback; capture kept as pending")
                self._pending_capture = self._stop_recording_locked(events)
            elif self._state is EngineState.PLAYING:
                self._stop_playing_locked(events)

            self._generation += 1
            generation = self._generation
            try:
                self.device.open_playback(
                    Path(source),
                    on_finished=lambda: self._on_playback_finished(generation),
                )
            except DeviceError as e:
                logger.error(f"Could not start playback: {e}")
                self._flush(events)
                raise DeviceUnavailable(str(e)) from e

            self._playback_position = 0.0
            self._playback_duration = duration if duration else self.device.playback_duration()
            self._set_state(EngineState.PLAYING, events)
            self._start_ticker(lambda: self._on_playback_tick(generation))
            logger.info(f"Playing {source} ({self._playback_duration:.2f}s)")
        self._flush(events)

    def stop_playing(self) -> None:
        """Stop playback and reset the position to 0."""
        events: List[Callable[[], None]] = []
        with self._lock:
            if self._state is EngineState.PLAYING:
                self._stop_playing_locked(events)
            else:
                self._playback_position = 0.0
        self._flush(events)

    def seek(self, to: float) -> None:
        """Move the playback position. Only valid while playing."""
        with self._lock:
            if self._state is not EngineState.PLAYING:
                logger.warning("seek() ignored: not playing")
                return
            upper = self._playback_duration if self._playback_duration > 0 else to
            position = max(0.0, min(to, upper))
            self.device.seek_playback(position)
            self._playback_position = position
            progress = PlaybackProgress(position, self._playback_duration, self._progress())
        self.publisher.publish_playback(progress)

    def _stop_playing_locked(self, events: List[Callable[[], None]]) -> None:
        try:
            self.device.close_playback()
        except DeviceError as e:
            logger.error(f"Error closing playback: {e}")
        self._stop_ticker()
        self._reset_playback(events)

    def _reset_playback(self, events: List[Callable[[], None]]) -> None:
        self._playback_position = 0.0
        self._playback_duration = 0.0
        self._set_state(EngineState.IDLE, events)
        progress = PlaybackProgress(0.0, 0.0, 0.0)
        events.append(lambda: self.publisher.publish_playback(progress))

    def _on_playback_tick(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._state is not EngineState.PLAYING:
                return
            self._playback_position = self.device.current_playback_position()
            progress = PlaybackProgress(self._playback_position, self._playback_duration, self._progress())
        self.publisher.publish_playback(progress)

    def _on_playback_finished(self, generation: int) -> None:
        events: List[Callable[[], None]] = []
        with self._lock:
            if generation != self._generation or self._state is not EngineState.PLAYING:
                return
            logger.info("Playback finished")
            self._stop_playing_locked(events)
        self._flush(events)

    # Internals

    def _set_state(self, state: EngineState, events: List[Callable[[], None]]) -> None:
        if state is self._state:
            return
        self._state = state
        events.append(lambda: self.publisher.publish_state(state))

    def _start_ticker(self, callback: Callable[[], None]) -> None:
        self._ticker = self.ticker_factory()
        self._ticker.start(callback)

    def _stop_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.stop()
            self._ticker = None

    @staticmethod
    def _flush(events: List[Callable[[], None]]) -> None:
        for publish in events:
            publish()

    def shutdown(self) -> None:
        """Release the device, discarding any in-flight recording."""
        self.cancel_recording()
        self.stop_playing()
        logger.info("AudioCaptureEngine shut down")
