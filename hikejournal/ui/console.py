"""Rich renderables for the hike journal terminal front end."""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from rich.console import Group
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table
from rich.text import Text

from ..models.audio import EngineSnapshot, EngineState
from ..models.hike import HikeSession
from ..models.reminders import ScheduledNotification

logger = logging.getLogger(__name__)

LEVEL_BAR_WIDTH = 20


def format_seconds(seconds: float) -> str:
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}:{secs:02d}"


def _format_time(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


def level_bar(level: float, width: int = LEVEL_BAR_WIDTH) -> Text:
    """Horizontal meter for a normalized level in [0, 1]."""
    filled = int(round(max(0.0, min(1.0, level)) * width))
    if level > 0.8:
        style = "bold red"
    elif level > 0.5:
        style = "yellow"
    else:
        style = "green"
    return Text.assemble(("█" * filled, style), ("░" * (width - filled), "dim"), f" {level:.2f}")


def recording_panel(snapshot: EngineSnapshot, session_name: str = "") -> Panel:
    """Live panel shown while a voice note is being captured."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="cyan")
    table.add_column()
    table.add_row("Hike", session_name or "-")
    table.add_row("Duration", format_seconds(snapshot.recording_duration))
    table.add_row("Level", level_bar(snapshot.audio_level))

    recording = snapshot.state is EngineState.RECORDING
    title = "🔴 Recording" if recording else "⏹️  Stopped"
    return Panel(table, title=title, border_style="red" if recording else "yellow")


def playback_panel(snapshot: EngineSnapshot, recording_name: str = "") -> Panel:
    """Live panel shown while a recording plays."""
    bar = ProgressBar(total=1.0, completed=snapshot.playback_progress, width=40)
    position = Text(f"{format_seconds(snapshot.playback_position)} / "
                    f"{format_seconds(snapshot.playback_duration)}")
    playing = snapshot.state is EngineState.PLAYING
    title = f"▶️  {recording_name}" if playing else f"⏹️  {recording_name}"
    return Panel(Group(bar, position), title=title, border_style="green" if playing else "yellow")


def hikes_table(hikes: Iterable[HikeSession], active_id: Optional[str] = None) -> Table:
    table = Table(title="🥾 Hikes", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name")
    table.add_column("Started")
    table.add_column("Status")
    table.add_column("Mood", justify="right")
    table.add_column("Notes", justify="right")

    for hike in hikes:
        if hike.id == active_id:
            status = Text("active", style="bold green")
        elif hike.is_in_progress:
            status = Text("in progress", style="yellow")
        else:
            status = Text("completed", style="blue")
        mood = f"{hike.start_mood}"
        if hike.end_mood is not None:
            mood += f" → {hike.end_mood}"
        table.add_row(hike.id[:8], hike.name or "unnamed", _format_time(hike.started_at),
                      status, mood, str(len(hike.recordings)))
    return table


def hike_detail(hike: HikeSession) -> Panel:
    """Summary of one hike with its recordings in sort order."""
    info = Table.grid(padding=(0, 2))
    info.add_column(style="cyan")
    info.add_column()
    info.add_row("ID", hike.id)
    info.add_row("Status", hike.status.value)
    info.add_row("Type", hike.hike_type or "-")
    info.add_row("Started", _format_time(hike.started_at))
    info.add_row("Ended", _format_time(hike.ended_at))
    info.add_row("Start mood", str(hike.start_mood))
    if hike.end_mood is not None:
        info.add_row("End mood", str(hike.end_mood))
    if hike.distance is not None:
        info.add_row("Distance", f"{hike.distance:.1f} km")
    if hike.reflection:
        info.add_row("Reflection", hike.reflection)

    recordings = Table(show_header=True, header_style="bold magenta", box=None)
    recordings.add_column("#", justify="right")
    recordings.add_column("ID", style="dim")
    recordings.add_column("Name")
    recordings.add_column("Length", justify="right")
    for recording in hike.sorted_recordings():
        recordings.add_row(str(recording.sort_order + 1), recording.id[:8], recording.name,
                           recording.formatted_duration)

    parts: List = [info]
    if hike.recordings:
        parts.extend([Text(""), recordings])
    return Panel(Group(*parts), title=hike.name or "unnamed hike", border_style="bright_blue")


def reminders_table(notifications: Iterable[ScheduledNotification]) -> Table:
    table = Table(title="🔔 Pending reminders", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Fires at")
    table.add_column("Message")
    for notification in notifications:
        table.add_row(notification.notification_id, _format_time(notification.fire_at),
                      notification.body)
    return table
