"""Hike session data models and their JSON representation."""

import uuid
from dataclasses import dataclass, field, fields, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


MIN_MOOD = 1
MAX_MOOD = 10


class HikeStatus(Enum):
    """Status of a hike session. Transitions only IN_PROGRESS -> COMPLETED."""
    IN_PROGRESS = "inProgress"
    COMPLETED = "completed"


def new_id() -> str:
    return str(uuid.uuid4())


def _check_mood(name: str, value: Optional[int]) -> None:
    if value is None:
        return
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if not MIN_MOOD <= value <= MAX_MOOD:
        raise ValueError(f"{name} must be between {MIN_MOOD} and {MAX_MOOD}, got {value}")


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class Recording:
    """An audio note captured during a hike."""
    id: str
    created_at: datetime
    name: str
    duration: float  # seconds, from capture elapsed time
    sort_order: int = 0
    audio_file: Optional[str] = None  # set by the store once the bytes are persisted
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def formatted_duration(self) -> str:
        minutes, seconds = divmod(int(self.duration), 60)
        return f"{minutes}:{seconds:02d}"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['created_at'] = self.created_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Recording":
        data = dict(data)
        data['created_at'] = _parse_time(data['created_at'])
        return cls(**data)


@dataclass
class Photo:
    """A photo attached to a hike."""
    id: str
    created_at: datetime
    caption: str = ""
    file_name: Optional[str] = None
    sort_order: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['created_at'] = self.created_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Photo":
        data = dict(data)
        data['created_at'] = _parse_time(data['created_at'])
        return cls(**data)


@dataclass
class HikeSession:
    """One walk, from start to completion, with its owned media."""
    id: str
    status: HikeStatus
    started_at: datetime
    start_mood: int = 5

    # Start phase
    name: str = ""
    hike_type: str = ""
    companions: str = ""
    start_location_name: Optional[str] = None
    start_latitude: Optional[float] = None
    start_longitude: Optional[float] = None
    route_name: Optional[str] = None
    route_stage: Optional[int] = None

    # During the hike
    story: str = ""
    terrain_description: str = ""
    weather_description: str = ""
    notes: str = ""
    animal_count: int = 0
    pause_count: int = 0
    meeting_count: int = 0

    # End phase
    ended_at: Optional[datetime] = None
    end_mood: Optional[int] = None
    distance: Optional[float] = None
    rating: Optional[int] = None
    end_location_name: Optional[str] = None
    end_latitude: Optional[float] = None
    end_longitude: Optional[float] = None
    reflection: str = ""

    updated_at: Optional[datetime] = None
    recordings: List[Recording] = field(default_factory=list)
    photos: List[Photo] = field(default_factory=list)

    def __post_init__(self):
        _check_mood("start_mood", self.start_mood)
        _check_mood("end_mood", self.end_mood)
        if self.status is HikeStatus.COMPLETED and self.ended_at is None:
            raise ValueError("A completed hike session must have ended_at set")
        if self.status is HikeStatus.IN_PROGRESS and self.end_mood is not None:
            raise ValueError("end_mood is only set when a hike is completed")

    @property
    def is_in_progress(self) -> bool:
        return self.status is HikeStatus.IN_PROGRESS

    def sorted_recordings(self) -> List[Recording]:
        return sorted(self.recordings, key=lambda r: r.sort_order)

    def find_recording(self, recording_id: str) -> Optional[Recording]:
        for recording in self.recordings:
            if recording.id == recording_id:
                return recording
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        data = {}
        for f in fields(self):
            if f.name in ('recordings', 'photos'):
                continue
            data[f.name] = getattr(self, f.name)
        data['status'] = self.status.value
        for key in ('started_at', 'ended_at', 'updated_at'):
            value = data[key]
            data[key] = value.isoformat() if value else None
        data['recordings'] = [r.to_dict() for r in self.recordings]
        data['photos'] = [p.to_dict() for p in self.photos]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HikeSession":
        data = dict(data)
        data['status'] = HikeStatus(data['status'])
        for key in ('started_at', 'ended_at', 'updated_at'):
            data[key] = _parse_time(data.get(key))
        data['recordings'] = [Recording.from_dict(r) for r in data.get('recordings', [])]
        data['photos'] = [Photo.from_dict(p) for p in data.get('photos', [])]
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


# Fields that lifecycle transitions own; never editable through a plain update.
PROTECTED_FIELDS = frozenset({
    'id', 'status', 'started_at', 'ended_at', 'end_mood', 'recordings', 'photos', 'updated_at',
})

# Fields written together with the status flip when a hike is completed.
CLOSING_FIELDS = frozenset({
    'distance', 'rating', 'end_location_name', 'end_latitude', 'end_longitude',
    'reflection',
})
