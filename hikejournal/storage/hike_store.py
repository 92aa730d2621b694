"""JSON file store for hike sessions and their owned media files."""

import copy
import json
import logging
import os
import shutil
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set

from ..models.hike import HikeSession

logger = logging.getLogger(__name__)

HIKE_FILE = "hike.json"
AUDIO_DIR = "audio"
PHOTOS_DIR = "photos"


def _write_atomic(path: Path, data: bytes) -> None:
    tmp_path = path.with_name(path.name + ".tmp")
    with open(tmp_path, 'wb') as f:
        f.write(data)
    os.replace(tmp_path, path)


class HikeStore:
    """Holds HikeSession entities with staged changes flushed by save().

    insert/update/delete only stage changes in memory; save() is the single unit
    of durability. rollback() discards everything staged since the last save.
    Entities are copied on the way in and out, so callers never alias stored state.
    """

    def __init__(self, data_dir: str = "./data"):
        """Initialize the store and load persisted hikes.

        Args:
            data_dir: Base directory for all journal data
        """
        self.data_dir = Path(data_dir)
        self.sessions_dir = self.data_dir / "sessions"
        self.sessions_dir.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()
        self._hikes: Dict[str, HikeSession] = {}
        self._dirty: Set[str] = set()
        self._deleted: Set[str] = set()
        self._staged_files: Dict[Path, bytes] = {}
        self._removed_files: Set[Path] = set()

        self._load()
        logger.info(f"HikeStore initialized with data_dir: {self.data_dir} ({len(self._hikes)} hikes)")

    def _load(self) -> None:
        hikes = {}
        for session_path in sorted(self.sessions_dir.iterdir()):
            info_file = session_path / HIKE_FILE
            if not info_file.is_file():
                continue
            try:
                with open(info_file, 'r', encoding='utf-8') as f:
                    hike = HikeSession.from_dict(json.load(f))
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.error(f"Skipping unreadable hike file {info_file}: {e}")
                continue
            hikes[hike.id] = hike
        self._hikes = hikes

    # Entity access

    def get(self, hike_id: str) -> Optional[HikeSession]:
        with self._lock:
            hike = self._hikes.get(hike_id)
            return copy.deepcopy(hike) if hike else None

    def query(self, predicate: Optional[Callable[[HikeSession], bool]] = None) -> List[HikeSession]:
        """Return matching hikes, newest first."""
        with self._lock:
            hikes = [copy.deepcopy(h) for h in self._hikes.values()
                     if predicate is None or predicate(h)]
        hikes.sort(key=lambda h: h.started_at, reverse=True)
        return hikes

    def insert(self, hike: HikeSession) -> None:
        with self._lock:
            if hike.id in self._hikes:
                raise ValueError(f"Hike already exists: {hike.id}")
            self._hikes[hike.id] = copy.deepcopy(hike)
            self._dirty.add(hike.id)
            self._deleted.discard(hike.id)

    def update(self, hike: HikeSession) -> None:
        with self._lock:
            if hike.id not in self._hikes:
                raise KeyError(f"Hike not found: {hike.id}")
            self._hikes[hike.id] = copy.deepcopy(hike)
            self._dirty.add(hike.id)

    def delete(self, hike: HikeSession) -> None:
        """Stage deletion of a hike together with all of its recordings and photos."""
        with self._lock:
            stored = self._hikes.pop(hike.id, None)
            if stored is None:
                raise KeyError(f"Hike not found: {hike.id}")
            session_path = self.get_session_path(hike.id)
            for recording in stored.recordings:
                if recording.audio_file:
                    self._removed_files.add(session_path / recording.audio_file)
            for photo in stored.photos:
                if photo.file_name:
                    self._removed_files.add(session_path / photo.file_name)
            self._dirty.discard(hike.id)
            self._deleted.add(hike.id)
            logger.info(f"Staged delete of hike {hike.id}: {len(stored.recordings)} recordings, "
                        f"{len(stored.photos)} photos")

    # Media files

    def get_session_path(self, hike_id: str) -> Path:
        return self.sessions_dir / hike_id

    def stage_recording_audio(self, hike_id: str, recording_id: str, audio_data: bytes) -> str:
        """Stage audio bytes for a recording; returns the store-relative file name."""
        relative = f"{AUDIO_DIR}/{recording_id}.wav"
        with self._lock:
            self._staged_files[self.get_session_path(hike_id) / relative] = audio_data
        return relative

    def stage_photo(self, hike_id: str, photo_id: str, data: bytes, extension: str = ".jpg") -> str:
        """Stage photo bytes; returns the store-relative file name."""
        relative = f"{PHOTOS_DIR}/{photo_id}{extension}"
        with self._lock:
            self._staged_files[self.get_session_path(hike_id) / relative] = data
        return relative

    def remove_file(self, hike_id: str, relative: str) -> None:
        """Stage removal of a media file owned by a hike."""
        with self._lock:
            path = self.get_session_path(hike_id) / relative
            self._staged_files.pop(path, None)
            self._removed_files.add(path)

    def media_path(self, hike_id: str, relative: str) -> Path:
        return self.get_session_path(hike_id) / relative

    # Durability

    @property
    def has_unsaved_changes(self) -> bool:
        with self._lock:
            return bool(self._dirty or self._deleted or self._staged_files or self._removed_files)

    def save(self) -> None:
        """Flush staged changes to disk.

        Media files are written before the hike JSON that references them, and
        removed after it no longer does.

        Raises:
            OSError: A write failed; staged changes are kept until rollback().
        """
        with self._lock:
            for path, data in self._staged_files.items():
                path.parent.mkdir(parents=True, exist_ok=True)
                _write_atomic(path, data)

            for hike_id in sorted(self._dirty):
                hike = self._hikes[hike_id]
                session_path = self.get_session_path(hike_id)
                session_path.mkdir(parents=True, exist_ok=True)
                payload = json.dumps(hike.to_dict(), indent=2, ensure_ascii=False)
                _write_atomic(session_path / HIKE_FILE, payload.encode('utf-8'))

            for path in self._removed_files:
                try:
                    path.unlink()
                except FileNotFoundError:
                    pass

            for hike_id in self._deleted:
                session_path = self.get_session_path(hike_id)
                hike_file = session_path / HIKE_FILE
                if hike_file.exists():
                    hike_file.unlink()
                if session_path.exists():
                    shutil.rmtree(session_path)

            logger.debug(f"Saved store: {len(self._dirty)} written, {len(self._deleted)} deleted, "
                         f"{len(self._staged_files)} files added, {len(self._removed_files)} files removed")
            self._clear_staged()

    def rollback(self) -> None:
        """Discard staged changes and reload the last saved state."""
        with self._lock:
            self._clear_staged()
            self._load()
            logger.info("HikeStore rolled back to last saved state")

    def _clear_staged(self) -> None:
        self._dirty.clear()
        self._deleted.clear()
        self._staged_files.clear()
        self._removed_files.clear()

    def get_storage_stats(self) -> Dict[str, object]:
        """Get storage usage statistics."""
        total_size = 0
        audio_files = 0
        for file_path in self.sessions_dir.rglob("*"):
            if file_path.is_file():
                total_size += file_path.stat().st_size
                if file_path.suffix == '.wav':
                    audio_files += 1
        with self._lock:
            hike_count = len(self._hikes)
        return {
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / (1024 * 1024), 2),
            "hike_count": hike_count,
            "audio_files": audio_files,
            "data_directory": str(self.data_dir),
        }
