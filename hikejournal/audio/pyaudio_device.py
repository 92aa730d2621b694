"""PyAudio-backed audio device: WAV capture with metering and WAV playback."""

import pyaudio
import wave
import logging
import threading
from pathlib import Path
from threading import Thread, Event
from typing import Optional, Callable

from .device import AudioDevice
from .levels import peak_dbfs, SILENCE_DB
from ..errors import DeviceError

logger = logging.getLogger(__name__)


def _dispatch(callback: Callable, *args) -> None:
    """Run a device callback on its own thread so the I/O thread never blocks on it."""
    thread = Thread(target=callback, args=args, daemon=True)
    thread.name = "AudioDeviceCallback"
    thread.start()


class PyAudioDevice(AudioDevice):
    """Microphone capture and speaker playback through PyAudio."""

    def __init__(
        self,
        sample_rate: int = 22050,
        chunk_size: int = 1024,
        channels: int = 1,
        format: int = pyaudio.paInt16,
    ):
        """Initialize device parameters.

        Args:
            sample_rate: Capture sample rate
            chunk_size: Frames per buffer for both directions
            channels: Number of capture channels (1 for mono)
            format: Sample format (16-bit signed int)
        """
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.format = format

        self.lock = threading.Lock()

        # Capture state
        self.capture_thread: Optional[Thread] = None
        self.capture_stop_event = Event()
        self.capture_stream = None
        self.capture_wave = None
        self.capture_pyaudio: Optional[pyaudio.PyAudio] = None
        self.frames_captured = 0
        self.peak_level = SILENCE_DB

        # Playback state
        self.playback_thread: Optional[Thread] = None
        self.playback_stop_event = Event()
        self.playback_stream = None
        self.playback_wave = None
        self.playback_pyaudio: Optional[pyaudio.PyAudio] = None
        self.playback_rate = 0
        self.playback_total_frames = 0
        self.playback_frame = 0
        self.pending_seek_frame: Optional[int] = None

    # Capture

    def open_capture(self, sink: Path,
                     on_interrupted: Optional[Callable[[str], None]] = None) -> None:
        if self.capture_thread and self.capture_thread.is_alive():
            raise DeviceError("Capture already in progress")

        instance = pyaudio.PyAudio()
        try:
            stream = instance.open(
                format=self.format,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                frames_per_buffer=self.chunk_size,
            )
        except (OSError, IOError) as e:
            instance.terminate()
            raise DeviceError(f"Could not open microphone: {e}") from e

        sample_width = instance.get_sample_size(self.format)
        wf = wave.open(str(sink), 'wb')
        wf.setnchannels(self.channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(self.sample_rate)

        with self.lock:
            self.capture_pyaudio = instance
            self.capture_stream = stream
            self.capture_wave = wf
            self.frames_captured = 0
            self.peak_level = SILENCE_DB

        logger.info(f"Capture stream opened: {self.sample_rate}Hz, "
                    f"{self.chunk_size} samples/chunk -> {sink}")

        self.capture_stop_event.clear()
        self.capture_thread = Thread(target=self._capture_continuously,
                                     args=(stream, wf, sample_width * self.channels, on_interrupted),
                                     daemon=True)
        self.capture_thread.name = "AudioCaptureThread"
        self.capture_thread.start()

    def _capture_continuously(self, stream, wf, frame_bytes, on_interrupted) -> None:
        """Internal method: capture loop in background thread."""
        while not self.capture_stop_event.is_set():
            try:
                chunk = stream.read(self.chunk_size, exception_on_overflow=False)
            except (OSError, IOError) as e:
                logger.warning(f"Capture stream interrupted: {e}")
                if on_interrupted and not self.capture_stop_event.is_set():
                    _dispatch(on_interrupted, str(e))
                return

            wf.writeframes(chunk)
            with self.lock:
                self.frames_captured += len(chunk) // frame_bytes
                self.peak_level = peak_dbfs(chunk)

    def close_capture(self) -> None:
        self.capture_stop_event.set()
        if self.capture_thread and self.capture_thread.is_alive():
            self.capture_thread.join(timeout=2.0)
            if self.capture_thread.is_alive():
                logger.warning("Capture thread did not stop cleanly")
        self.capture_thread = None

        with self.lock:
            stream, wf, instance = self.capture_stream, self.capture_wave, self.capture_pyaudio
            self.capture_stream = self.capture_wave = self.capture_pyaudio = None
            self.peak_level = SILENCE_DB

        if stream:
            stream.stop_stream()
            stream.close()
        if wf:
            wf.close()
        if instance:
            instance.terminate()
        logger.info(f"Capture closed after {self.frames_captured} frames")

    def current_capture_elapsed(self) -> float:
        with self.lock:
            return self.frames_captured / float(self.sample_rate)

    def current_peak_level(self) -> float:
        with self.lock:
            return self.peak_level

    # Playback

    def open_playback(self, source: Path,
                      on_finished: Optional[Callable[[], None]] = None) -> None:
        if self.playback_thread and self.playback_thread.is_alive():
            raise DeviceError("Playback already in progress")

        try:
            wf = wave.open(str(source), 'rb')
        except (OSError, wave.Error) as e:
            raise DeviceError(f"Could not open audio source {source}: {e}") from e

        instance = pyaudio.PyAudio()
        try:
            stream = instance.open(
                format=instance.get_format_from_width(wf.getsampwidth()),
                channels=wf.getnchannels(),
                rate=wf.getframerate(),
                output=True,
                frames_per_buffer=self.chunk_size,
            )
        except (OSError, IOError) as e:
            wf.close()
            instance.terminate()
            raise DeviceError(f"Could not open speaker: {e}") from e

        with self.lock:
            self.playback_pyaudio = instance
            self.playback_stream = stream
            self.playback_wave = wf
            self.playback_rate = wf.getframerate()
            self.playback_total_frames = wf.getnframes()
            self.playback_frame = 0
            self.pending_seek_frame = None

        self.playback_stop_event.clear()
        self.playback_thread = Thread(target=self._play_continuously,
                                      args=(stream, wf, on_finished), daemon=True)
        self.playback_thread.name = "AudioPlaybackThread"
        self.playback_thread.start()
        logger.info(f"Playback started: {source}")

    def _play_continuously(self, stream, wf, on_finished) -> None:
        """Internal method: playback loop in background thread."""
        while not self.playback_stop_event.is_set():
            with self.lock:
                if self.pending_seek_frame is not None:
                    wf.setpos(self.pending_seek_frame)
                    self.playback_frame = self.pending_seek_frame
                    self.pending_seek_frame = None

            data = wf.readframes(self.chunk_size)
            if not data:
                break

            try:
                stream.write(data)
            except (OSError, IOError) as e:
                logger.warning(f"Playback stream failed: {e}")
                break

            with self.lock:
                self.playback_frame += len(data) // (wf.getsampwidth() * wf.getnchannels())

        if on_finished and not self.playback_stop_event.is_set():
            _dispatch(on_finished)

    def close_playback(self) -> None:
        self.playback_stop_event.set()
        if self.playback_thread and self.playback_thread.is_alive():
            self.playback_thread.join(timeout=2.0)
            if self.playback_thread.is_alive():
                logger.warning("Playback thread did not stop cleanly")
        self.playback_thread = None

        with self.lock:
            stream, wf, instance = self.playback_stream, self.playback_wave, self.playback_pyaudio
            self.playback_stream = self.playback_wave = self.playback_pyaudio = None
            self.playback_frame = 0

        if stream:
            stream.stop_stream()
            stream.close()
        if wf:
            wf.close()
        if instance:
            instance.terminate()

    def current_playback_position(self) -> float:
        with self.lock:
            if not self.playback_rate:
                return 0.0
            return self.playback_frame / float(self.playback_rate)

    def playback_duration(self) -> float:
        with self.lock:
            if not self.playback_rate:
                return 0.0
            return self.playback_total_frames / float(self.playback_rate)

    def seek_playback(self, seconds: float) -> None:
        with self.lock:
            frame = int(seconds * self.playback_rate)
            self.pending_seek_frame = max(0, min(frame, self.playback_total_frames))
            self.playback_frame = self.pending_seek_frame
