"""Persists captured audio and photos as media owned by a hike."""

import logging
from pathlib import Path
from typing import List, Optional

from ..audio.capture import AudioCaptureEngine
from ..clock import SystemClock
from ..errors import SessionNotFound
from ..models.audio import CaptureResult
from ..models.hike import HikeSession, Photo, Recording, new_id
from ..storage.hike_store import HikeStore

logger = logging.getLogger(__name__)

DEFAULT_RECORDING_NAME = "Recording"


class MediaService:
    """Turns finished captures into Recordings and manages owned media lists."""

    def __init__(self, store: HikeStore, engine: Optional[AudioCaptureEngine] = None, clock=None):
        """Initialize media service.

        Args:
            store: Hike store owning the media files
            engine: Capture engine for reading captures and playback
            clock: Source of "now" for created_at stamps
        """
        self.store = store
        self.engine = engine
        self.clock = clock or SystemClock()

    def _get_hike(self, session_id: str) -> HikeSession:
        hike = self.store.get(session_id)
        if hike is None:
            raise SessionNotFound(session_id)
        return hike

    def _require_engine(self) -> AudioCaptureEngine:
        if self.engine is None:
            raise RuntimeError("MediaService has no audio engine")
        return self.engine

    # Recordings

    def recordings(self, session_id: str) -> List[Recording]:
        return self._get_hike(session_id).sorted_recordings()

    def save_capture(self, session_id: str, capture: CaptureResult, name: str = "") -> Recording:
        """Persist a capture returned by AudioCaptureEngine.stop_recording().

        A blank name becomes "Recording <n>". The temp file is consumed, or
        written back when the store cannot be saved.

        Raises:
            SessionNotFound: The hike does not exist; the temp file is left in place.
            OSError: Reading the capture or writing the store failed.
        """
        hike = self._get_hike(session_id)
        audio_data = self._require_engine().save_recording(capture.temp_path)

        count = len(hike.recordings)
        recording = Recording(
            id=new_id(),
            created_at=self.clock.now(),
            name=name.strip() or f"{DEFAULT_RECORDING_NAME} {count + 1}",
            duration=capture.elapsed_seconds,
            sort_order=count,
        )
        try:
            recording.audio_file = self.store.stage_recording_audio(session_id, recording.id, audio_data)
            hike.recordings.append(recording)
            hike.updated_at = recording.created_at
            self.store.update(hike)
            self.store.save()
        except OSError:
            self.store.rollback()
            self._restore_capture(capture, audio_data)
            raise

        logger.info(f"Saved recording '{recording.name}' ({recording.formatted_duration}) "
                    f"to hike {session_id}")
        return recording

    def _restore_capture(self, capture: CaptureResult, audio_data: bytes) -> None:
        # Put the bytes back so the caller can retry or discard the capture.
        try:
            Path(capture.temp_path).write_bytes(audio_data)
            logger.warning(f"Store save failed, capture kept at {capture.temp_path}")
        except OSError as e:
            logger.error(f"Could not restore capture {capture.temp_path}: {e}")

    def delete_recording(self, session_id: str, recording_id: str) -> None:
        """Delete a recording and its audio, keeping sort orders contiguous."""
        hike = self._get_hike(session_id)
        recording = hike.find_recording(recording_id)
        if recording is None:
            raise KeyError(f"Recording not found: {recording_id}")

        remaining = [r for r in hike.sorted_recordings() if r.id != recording_id]
        for index, item in enumerate(remaining):
            item.sort_order = index
        hike.recordings = remaining
        hike.updated_at = self.clock.now()

        try:
            if recording.audio_file:
                self.store.remove_file(session_id, recording.audio_file)
            self.store.update(hike)
            self.store.save()
        except OSError:
            self.store.rollback()
            raise
        logger.info(f"Deleted recording {recording_id} from hike {session_id}")

    def rename_recording(self, session_id: str, recording_id: str, name: str) -> Recording:
        hike = self._get_hike(session_id)
        recording = hike.find_recording(recording_id)
        if recording is None:
            raise KeyError(f"Recording not found: {recording_id}")
        recording.name = name.strip() or recording.name
        self.store.update(hike)
        self.store.save()
        return recording

    def recording_path(self, session_id: str, recording_id: str) -> Path:
        hike = self._get_hike(session_id)
        recording = hike.find_recording(recording_id)
        if recording is None or not recording.audio_file:
            raise KeyError(f"Recording has no stored audio: {recording_id}")
        return self.store.media_path(session_id, recording.audio_file)

    def play_recording(self, session_id: str, recording_id: str) -> Recording:
        """Play a stored recording with progress measured against its stored duration."""
        path = self.recording_path(session_id, recording_id)
        recording = self._get_hike(session_id).find_recording(recording_id)
        self._require_engine().play(path, duration=recording.duration)
        return recording

    # Photos

    def add_photo(self, session_id: str, data: bytes, caption: str = "", extension: str = ".jpg") -> Photo:
        hike = self._get_hike(session_id)
        photo = Photo(id=new_id(), created_at=self.clock.now(), caption=caption,
                      sort_order=len(hike.photos))
        try:
            photo.file_name = self.store.stage_photo(session_id, photo.id, data, extension)
            hike.photos.append(photo)
            hike.updated_at = photo.created_at
            self.store.update(hike)
            self.store.save()
        except OSError:
            self.store.rollback()
            raise
        logger.info(f"Added photo {photo.id} to hike {session_id}")
        return photo

    def delete_photo(self, session_id: str, photo_id: str) -> None:
        hike = self._get_hike(session_id)
        photo = next((p for p in hike.photos if p.id == photo_id), None)
        if photo is None:
            raise KeyError(f"Photo not found: {photo_id}")

        remaining = sorted((p for p in hike.photos if p.id != photo_id), key=lambda p: p.sort_order)
        for index, item in enumerate(remaining):
            item.sort_order = index
        hike.photos = remaining

        try:
            if photo.file_name:
                self.store.remove_file(session_id, photo.file_name)
            self.store.update(hike)
            self.store.save()
        except OSError:
            self.store.rollback()
            raise
        logger.info(f"Deleted photo {photo_id} from hike {session_id}")
