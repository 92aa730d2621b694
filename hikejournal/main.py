"""Command line entry point for the hike journal."""

import sys
import time
import argparse
import logging
from pathlib import Path
from typing import List, Optional, Tuple

from rich.console import Console
from rich.live import Live

from .audio.capture import AudioCaptureEngine
from .config import HikeJournalConfig
from .errors import HikeJournalError, SessionNotFound
from .models.hike import HikeSession, Recording
from .notifications.dispatcher import FileNotificationDispatcher
from .services.media_service import MediaService
from .services.reminder_scheduler import ReminderScheduler
from .services.session_manager import HikeSessionManager
from .storage.app_state import AppStateStore
from .storage.hike_store import HikeStore
from .ui import console as views

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "hikejournal.yaml"
REFRESH_INTERVAL = 0.1


class JournalApp:
    """Wires the journal services together for one CLI invocation."""

    def __init__(self, config_path: Optional[str] = None, log_level: Optional[str] = None):
        self.config = HikeJournalConfig(config_path)
        setup_logging(self.config, log_level or self.config.get('logging.level', 'INFO'))
        self.console = Console()

        data_dir = Path(self.config.get_data_directory())
        self.store = HikeStore(str(data_dir))
        self.dispatcher = FileNotificationDispatcher(str(data_dir / "notifications.json"))
        self.reminder_scheduler = ReminderScheduler(
            self.dispatcher,
            reminder_count=self.config.get('reminders.hike_reminder_count', 10),
        )
        self.session_manager = HikeSessionManager(
            self.store,
            AppStateStore(str(data_dir / "state.json")),
            self.reminder_scheduler,
            reminder_settings=self.config.get_reminder_settings(),
        )
        self._engine: Optional[AudioCaptureEngine] = None
        self._media: Optional[MediaService] = None

    @property
    def engine(self) -> AudioCaptureEngine:
        """Audio engine, created on first use so non-audio commands never touch PyAudio."""
        if self._engine is None:
            from .audio.pyaudio_device import PyAudioDevice

            sample_rate = self.config.get('audio.sample_rate', 22050)
            chunk_size = self.config.get('audio.chunk_size', 1024)
            channels = self.config.get('audio.channels', 1)
            logger.info(f"Audio settings: {sample_rate}Hz, {chunk_size} samples/chunk, {channels} channels")

            device = PyAudioDevice(sample_rate=sample_rate, chunk_size=chunk_size, channels=channels)
            self._engine = AudioCaptureEngine(
                device,
                temp_dir=self.config.get_temp_directory(),
                tick_interval=self.config.get('audio.tick_interval', 0.1),
            )
        return self._engine

    @property
    def media(self) -> MediaService:
        if self._media is None:
            self._media = MediaService(self.store, self.engine)
        return self._media

    # Lookup helpers

    def resolve_hike(self, ref: Optional[str]) -> HikeSession:
        """Find a hike by full id or unique id prefix; None means the active hike."""
        if ref is None:
            active = self.session_manager.get_active_session()
            if active is None:
                raise HikeJournalError("No hike in progress")
            return active
        matches = self.store.query(lambda h: h.id.startswith(ref))
        if len(matches) != 1:
            raise SessionNotFound(ref)
        return matches[0]

    def resolve_recording(self, ref: str) -> Tuple[HikeSession, Recording]:
        for hike in self.store.query():
            for recording in hike.recordings:
                if recording.id.startswith(ref):
                    return hike, recording
        raise HikeJournalError(f"Recording not found: {ref}")

    # Commands

    def cmd_start(self, args) -> None:
        fields = {"name": args.name or "", "hike_type": args.type or "", "start_mood": args.mood}
        if args.companions:
            fields["companions"] = args.companions
        if args.location:
            fields["start_location_name"] = args.location
        session_id = self.session_manager.start_session(**fields)
        self.console.print(f"🥾 Started hike [bold]{args.name or 'unnamed'}[/bold] ({session_id})")

    def cmd_end(self, args) -> None:
        hike = self.resolve_hike(args.hike)
        closing = {}
        if args.distance is not None:
            closing["distance"] = args.distance
        if args.rating is not None:
            closing["rating"] = args.rating
        if args.location:
            closing["end_location_name"] = args.location
        if args.reflection:
            closing["reflection"] = args.reflection
        completed = self.session_manager.end_session(hike.id, args.mood, **closing)
        self.console.print(views.hike_detail(completed))

    def cmd_status(self, args) -> None:
        if args.hike is None and self.session_manager.active_session_id is None:
            self.console.print("No hike in progress")
            return
        self.console.print(views.hike_detail(self.resolve_hike(args.hike)))

    def cmd_list(self, args) -> None:
        hikes = self.store.query()
        if not hikes:
            self.console.print("No hikes yet")
            return
        self.console.print(views.hikes_table(hikes, self.session_manager.active_session_id))

    def cmd_record(self, args) -> None:
        hike = self.resolve_hike(args.hike)
        engine = self.engine
        engine.start_recording()

        deadline = time.monotonic() + args.seconds if args.seconds else None
        try:
            with Live(views.recording_panel(engine.snapshot(), hike.name), console=self.console,
                      refresh_per_second=10) as live:
                while engine.is_recording and (deadline is None or time.monotonic() < deadline):
                    time.sleep(REFRESH_INTERVAL)
                    live.update(views.recording_panel(engine.snapshot(), hike.name))
        except KeyboardInterrupt:
            logger.info("Recording stopped by user")

        capture = engine.stop_recording()
        if capture is None:
            self.console.print("Nothing was recorded")
            return
        if capture.interrupted:
            self.console.print("⚠️  Recording was interrupted, keeping what was captured")
        recording = self.media.save_capture(hike.id, capture, args.name or "")
        self.console.print(f"🎙️  Saved [bold]{recording.name}[/bold] "
                           f"({recording.formatted_duration}) to {hike.name or hike.id}")

    def cmd_play(self, args) -> None:
        hike, recording = self.resolve_recording(args.recording)
        engine = self.engine
        self.media.play_recording(hike.id, recording.id)
        try:
            with Live(views.playback_panel(engine.snapshot(), recording.name), console=self.console,
                      refresh_per_second=10) as live:
                while engine.is_playing:
                    time.sleep(REFRESH_INTERVAL)
                    live.update(views.playback_panel(engine.snapshot(), recording.name))
        except KeyboardInterrupt:
            engine.stop_playing()

    def cmd_delete_recording(self, args) -> None:
        hike, recording = self.resolve_recording(args.recording)
        MediaService(self.store).delete_recording(hike.id, recording.id)
        self.console.print(f"🗑️  Deleted recording {recording.name}")

    def cmd_delete(self, args) -> None:
        hike = self.resolve_hike(args.hike)
        self.session_manager.delete_session(hike.id)
        self.console.print(f"🗑️  Deleted hike {hike.name or hike.id}")

    def cmd_reminders(self, args) -> None:
        if args.due:
            notifications = self.dispatcher.pop_due(self.session_manager.clock.now())
        else:
            notifications = self.dispatcher.pending()
        if not notifications:
            self.console.print("No reminders")
            return
        self.console.print(views.reminders_table(notifications))

    def cleanup(self) -> None:
        if self._engine is not None:
            self._engine.shutdown()
        self.reminder_scheduler.shutdown()


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/hikejournal.log')
    console_output = config.get('logging.console_output', True)

    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - warnings and above only, the console belongs to the UI
    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.WARNING)
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("Hike journal starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Hike journal - track hikes, voice notes and reminders",
    )
    parser.add_argument(
        "--config",
        type=str,
        help=f"Path to configuration YAML file (default: {DEFAULT_CONFIG_FILE} if present)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (overrides config)"
    )
    parser.add_argument(
        "--version",
        action="version",
        version="hikejournal v0.1.0"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    start = commands.add_parser("start", help="Start a new hike")
    start.add_argument("--name", help="Hike name")
    start.add_argument("--type", help="Kind of hike (forest walk, coastal, ...)")
    start.add_argument("--mood", type=int, default=5, help="Mood at the start, 1-10 (default: 5)")
    start.add_argument("--companions", help="Who is coming along")
    start.add_argument("--location", help="Start location name")
    start.set_defaults(handler=JournalApp.cmd_start)

    end = commands.add_parser("end", help="Complete the hike in progress")
    end.add_argument("--mood", type=int, required=True, help="Mood at the end, 1-10")
    end.add_argument("--distance", type=float, help="Distance walked in km")
    end.add_argument("--rating", type=int, help="Rating of the hike")
    end.add_argument("--location", help="End location name")
    end.add_argument("--reflection", help="Closing reflection")
    end.add_argument("--hike", help="Hike id or prefix (default: the active hike)")
    end.set_defaults(handler=JournalApp.cmd_end)

    status = commands.add_parser("status", help="Show a hike (default: the active hike)")
    status.add_argument("hike", nargs="?", help="Hike id or prefix")
    status.set_defaults(handler=JournalApp.cmd_status)

    listing = commands.add_parser("list", help="List all hikes, newest first")
    listing.set_defaults(handler=JournalApp.cmd_list)

    record = commands.add_parser("record", help="Record a voice note for a hike")
    record.add_argument("--seconds", type=float, help="Stop after this many seconds (default: until Ctrl-C)")
    record.add_argument("--name", help="Recording name (default: Recording <n>)")
    record.add_argument("--hike", help="Hike id or prefix (default: the active hike)")
    record.set_defaults(handler=JournalApp.cmd_record)

    play = commands.add_parser("play", help="Play a recording")
    play.add_argument("recording", help="Recording id or prefix")
    play.set_defaults(handler=JournalApp.cmd_play)

    delete_recording = commands.add_parser("delete-recording", help="Delete a recording")
    delete_recording.add_argument("recording", help="Recording id or prefix")
    delete_recording.set_defaults(handler=JournalApp.cmd_delete_recording)

    delete = commands.add_parser("delete", help="Delete a hike with all its media")
    delete.add_argument("hike", help="Hike id or prefix")
    delete.set_defaults(handler=JournalApp.cmd_delete)

    reminders = commands.add_parser("reminders", help="Show pending reminders")
    reminders.add_argument("--due", action="store_true", help="Pop and show reminders that are due")
    reminders.set_defaults(handler=JournalApp.cmd_reminders)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the hike journal CLI."""
    args = build_parser().parse_args(argv)

    config_path = args.config
    if config_path is None and Path(DEFAULT_CONFIG_FILE).exists():
        config_path = DEFAULT_CONFIG_FILE

    app = JournalApp(config_path, args.log_level)
    try:
        args.handler(app, args)
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
    except (HikeJournalError, ValueError) as e:
        app.console.print(f"❌ {e}")
        logger.error(f"Command {args.command} failed: {e}")
        sys.exit(1)
    except Exception as e:
        print(f"❌ Error: {e}")
        logging.error(f"Application error: {e}")
        sys.exit(1)
    finally:
        app.cleanup()


if __name__ == "__main__":
    main()
