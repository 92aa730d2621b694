"""Pytest configuration and fixtures for hike journal tests."""

import io
import pytest
import tempfile
import threading
import logging
import wave
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional
from unittest.mock import Mock, patch

import numpy as np
from pubsub import pub

from hikejournal.audio.capture import AudioCaptureEngine
from hikejournal.audio.device import AudioDevice
from hikejournal.audio.levels import SILENCE_DB
from hikejournal.audio.ticker import Ticker
from hikejournal.errors import DeviceError
from hikejournal.models.reminders import ReminderSettings, ScheduledNotification
from hikejournal.notifications.dispatcher import NotificationDispatcher
from hikejournal.services.reminder_scheduler import ReminderScheduler
from hikejournal.services.session_manager import HikeSessionManager
from hikejournal.storage.app_state import AppStateStore
from hikejournal.storage.hike_store import HikeStore


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

FAKE_SAMPLE_RATE = 8000


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without hardware")
    config.addinivalue_line("markers", "integration: tests wiring several components together")


def make_tone(duration_seconds: float, sample_rate: int = FAKE_SAMPLE_RATE,
              amplitude: float = 0.5, freq: float = 440.0) -> bytes:
    """16-bit mono sine tone."""
    samples = int(round(duration_seconds * sample_rate))
    t = np.arange(samples) / sample_rate
    wave_data = amplitude * np.sin(2 * np.pi * freq * t)
    return (wave_data * 32767).astype(np.int16).tobytes()


def write_wav(path: Path, pcm: bytes, sample_rate: int = FAKE_SAMPLE_RATE) -> Path:
    with wave.open(str(path), 'wb') as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return path


def wav_duration(path_or_bytes) -> float:
    if isinstance(path_or_bytes, (bytes, bytearray)):
        source = io.BytesIO(path_or_bytes)
    else:
        source = str(path_or_bytes)
    with wave.open(source, 'rb') as wf:
        return wf.getnframes() / float(wf.getframerate())


class FakeClock:
    """Clock whose "now" only moves when a test advances it."""

    def __init__(self, start: datetime):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class ManualTicker(Ticker):
    """Ticker driven explicitly by the test via fire()."""

    def __init__(self):
        self.callback = None
        self.stopped = False

    def start(self, callback) -> None:
        self.callback = callback

    def stop(self) -> None:
        self.stopped = True

    def fire(self, times: int = 1) -> None:
        # Fires even after stop(), to exercise stale ticks.
        for _ in range(times):
            self.callback()


class ManualTickerFactory:
    def __init__(self):
        self.tickers: List[ManualTicker] = []

    def __call__(self) -> ManualTicker:
        ticker = ManualTicker()
        self.tickers.append(ticker)
        return ticker

    @property
    def current(self) -> ManualTicker:
        return self.tickers[-1]


class FakeAudioDevice(AudioDevice):
    """In-memory audio device with test-controlled clocks and levels.

    close_capture() writes a WAV whose length matches the elapsed time set by
    the test, so persisted captures can be checked end to end.
    """

    def __init__(self, sample_rate: int = FAKE_SAMPLE_RATE):
        self.sample_rate = sample_rate
        self.calls: List[str] = []
        self.fail_open = False

        self.elapsed = 0.0
        self.peak_db = SILENCE_DB
        self.sink: Optional[Path] = None
        self.capturing = False
        self.on_interrupted = None

        self.source: Optional[Path] = None
        self.position = 0.0
        self.duration = 0.0
        self.playing = False
        self.on_finished = None

    def open_capture(self, sink, on_interrupted=None) -> None:
        self.calls.append("open_capture")
        if self.fail_open:
            raise DeviceError("microphone permission denied")
        self.sink = Path(sink)
        self.on_interrupted = on_interrupted
        self.elapsed = 0.0
        self.capturing = True

    def close_capture(self) -> None:
        self.calls.append("close_capture")
        if self.capturing and self.sink is not None:
            write_wav(self.sink, make_tone(self.elapsed, self.sample_rate), self.sample_rate)
        self.capturing = False

    def current_capture_elapsed(self) -> float:
        return self.elapsed

    def current_peak_level(self) -> float:
        return self.peak_db

    def open_playback(self, source, on_finished=None) -> None:
        self.calls.append("open_playback")
        if self.fail_open:
            raise DeviceError("speaker busy")
        self.source = Path(source)
        self.on_finished = on_finished
        self.position = 0.0
        self.playing = True

    def close_playback(self) -> None:
        self.calls.append("close_playback")
        self.playing = False

    def current_playback_position(self) -> float:
        return self.position

    def playback_duration(self) -> float:
        return self.duration

    def seek_playback(self, seconds: float) -> None:
        self.calls.append("seek_playback")
        self.position = seconds

    # Test controls

    def interrupt(self, reason: str = "audio session interrupted") -> None:
        self.on_interrupted(reason)

    def finish(self) -> None:
        self.position = self.duration
        self.on_finished()


class RecordingDispatcher(NotificationDispatcher):
    """Notification dispatcher that records calls and keeps a pending map."""

    def __init__(self):
        self.lock = threading.Lock()
        self.calls: List[tuple] = []
        self.pending: Dict[str, ScheduledNotification] = {}

    def schedule(self, notification_id, fire_at, title, body) -> str:
        with self.lock:
            self.calls.append(("schedule", notification_id))
            self.pending[notification_id] = ScheduledNotification(notification_id, fire_at, title, body)
        return notification_id

    def cancel(self, notification_ids) -> None:
        with self.lock:
            self.calls.append(("cancel", tuple(notification_ids)))
            for notification_id in notification_ids:
                self.pending.pop(notification_id, None)


class FailingDispatcher(NotificationDispatcher):
    """Dispatcher whose platform service always refuses."""

    def schedule(self, notification_id, fire_at, title, body) -> str:
        raise RuntimeError("notification permission denied")

    def cancel(self, notification_ids) -> None:
        raise RuntimeError("notification service unavailable")


class AudioEventCollector:
    """Subscribes to the engine feedback topics and keeps what it receives."""

    def __init__(self):
        self.readings = []
        self.progress = []
        self.states = []

    def on_meter(self, reading):
        self.readings.append(reading)

    def on_playback(self, progress):
        self.progress.append(progress)

    def on_state(self, state):
        self.states.append(state)


class SessionEventCollector:
    def __init__(self):
        self.events = []

    def on_event(self, event):
        self.events.append(event)


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 6, 1, 9, 0, 0))


@pytest.fixture
def tickers():
    return ManualTickerFactory()


@pytest.fixture
def fake_device():
    return FakeAudioDevice()


@pytest.fixture
def capture_dir(temp_data_dir):
    path = Path(temp_data_dir) / "captures"
    path.mkdir()
    return path


@pytest.fixture
def engine(fake_device, tickers, capture_dir):
    engine = AudioCaptureEngine(fake_device, temp_dir=capture_dir, ticker_factory=tickers)
    yield engine
    engine.shutdown()


@pytest.fixture
def audio_events():
    collector = AudioEventCollector()
    pub.subscribe(collector.on_meter, "audio.meter")
    pub.subscribe(collector.on_playback, "audio.playback")
    pub.subscribe(collector.on_state, "audio.state")
    yield collector
    pub.unsubscribe(collector.on_meter, "audio.meter")
    pub.unsubscribe(collector.on_playback, "audio.playback")
    pub.unsubscribe(collector.on_state, "audio.state")


@pytest.fixture
def session_events():
    collector = SessionEventCollector()
    topics = ("session.started", "session.ended", "session.deleted")
    for topic in topics:
        pub.subscribe(collector.on_event, topic)
    yield collector
    for topic in topics:
        pub.unsubscribe(collector.on_event, topic)


@pytest.fixture
def store(temp_data_dir):
    return HikeStore(temp_data_dir)


@pytest.fixture
def state_store(temp_data_dir):
    return AppStateStore(str(Path(temp_data_dir) / "state.json"))


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def failing_dispatcher():
    return FailingDispatcher()


@pytest.fixture
def reminder_settings():
    return ReminderSettings(
        notifications_enabled=True,
        hike_reminders_enabled=True,
        hike_reminder_interval_minutes=30,
        motivation_enabled=True,
        motivation_days=3,
    )


@pytest.fixture
def scheduler(dispatcher, clock):
    import random
    scheduler = ReminderScheduler(dispatcher, clock=clock, rng=random.Random(7))
    yield scheduler
    scheduler.shutdown()


@pytest.fixture
def manager(store, state_store, scheduler, reminder_settings, clock):
    return HikeSessionManager(store, state_store, scheduler, reminder_settings, clock=clock)


@pytest.fixture
def sample_audio_chunk():
    """Generate a sample audio chunk for testing."""
    # 1024 samples of a full-scale 440 Hz sine at 16 kHz
    sample_rate = 16000
    t = np.arange(1024) / sample_rate
    audio_data = (np.sin(2 * np.pi * 440 * t) * 32767).astype(np.int16)
    return audio_data.tobytes()


@pytest.fixture
def sample_audio_file(temp_data_dir):
    """Create a 2 second WAV file for playback tests."""
    return write_wav(Path(temp_data_dir) / "sample.wav", make_tone(2.0))


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        # Configure mock stream
        mock_stream.read.return_value = b'\x00' * 2048  # Silent audio
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        # Configure mock PyAudio instance
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None
        mock_pyaudio_instance.get_sample_size.return_value = 2
        mock_pyaudio_instance.get_format_from_width.return_value = 8

        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }
