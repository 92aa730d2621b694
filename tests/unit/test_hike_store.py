"""Unit tests for HikeStore and AppStateStore."""

import json
import pytest
from datetime import datetime
from pathlib import Path

from hikejournal.models.hike import HikeSession, HikeStatus, Photo, Recording, new_id
from hikejournal.storage.app_state import AppStateStore
from hikejournal.storage.hike_store import HikeStore


def make_hike(started_at=datetime(2024, 6, 1, 9, 0), **fields):
    return HikeSession(id=new_id(), status=HikeStatus.IN_PROGRESS, started_at=started_at, **fields)


@pytest.mark.unit
class TestHikeStore:
    """Test cases for HikeStore."""

    def test_initialization(self, temp_data_dir):
        store = HikeStore(temp_data_dir)

        assert store.data_dir == Path(temp_data_dir)
        assert store.sessions_dir == Path(temp_data_dir) / "sessions"
        assert store.sessions_dir.exists()
        assert store.query() == []
        assert not store.has_unsaved_changes

    def test_insert_is_staged_until_save(self, store, temp_data_dir):
        hike = make_hike(name="Dunes")
        store.insert(hike)

        assert store.get(hike.id) == hike
        assert store.has_unsaved_changes
        assert HikeStore(temp_data_dir).get(hike.id) is None

        store.save()
        assert not store.has_unsaved_changes
        reloaded = HikeStore(temp_data_dir).get(hike.id)
        assert reloaded == hike

    def test_json_layout(self, store):
        hike = make_hike(name="Dunes", start_mood=7)
        store.insert(hike)
        store.save()

        hike_file = store.get_session_path(hike.id) / "hike.json"
        data = json.loads(hike_file.read_text(encoding="utf-8"))
        assert data["id"] == hike.id
        assert data["status"] == "inProgress"
        assert data["started_at"] == "2024-06-01T09:00:00"
        assert data["start_mood"] == 7
        assert data["recordings"] == []

    def test_insert_duplicate(self, store):
        hike = make_hike()
        store.insert(hike)
        with pytest.raises(ValueError):
            store.insert(hike)

    def test_update_missing(self, store):
        with pytest.raises(KeyError):
            store.update(make_hike())

    def test_returned_entities_are_copies(self, store):
        hike = make_hike(name="Original")
        store.insert(hike)
        hike.name = "Mutated after insert"

        fetched = store.get(hike.id)
        assert fetched.name == "Original"
        fetched.name = "Mutated after get"
        assert store.get(hike.id).name == "Original"

    def test_query_newest_first_with_predicate(self, store):
        older = make_hike(started_at=datetime(2024, 5, 1, 9, 0))
        newer = make_hike(started_at=datetime(2024, 6, 1, 9, 0))
        done = HikeSession(id=new_id(), status=HikeStatus.COMPLETED,
                           started_at=datetime(2024, 4, 1, 9, 0), ended_at=datetime(2024, 4, 1, 12, 0))
        for hike in (older, done, newer):
            store.insert(hike)

        assert [h.id for h in store.query()] == [newer.id, older.id, done.id]
        assert [h.id for h in store.query(lambda h: h.is_in_progress)] == [newer.id, older.id]

    def test_rollback_discards_staged_changes(self, store):
        saved = make_hike(name="Saved")
        store.insert(saved)
        store.save()

        store.insert(make_hike(name="Unsaved"))
        changed = store.get(saved.id)
        changed.name = "Changed"
        store.update(changed)

        store.rollback()

        assert [h.name for h in store.query()] == ["Saved"]
        assert not store.has_unsaved_changes

    def test_recording_audio_written_on_save(self, store):
        hike = make_hike()
        store.insert(hike)
        relative = store.stage_recording_audio(hike.id, "rec-1", b"audio-bytes")

        assert relative == "audio/rec-1.wav"
        path = store.media_path(hike.id, relative)
        assert not path.exists()

        store.save()
        assert path.read_bytes() == b"audio-bytes"

    def test_rollback_drops_staged_audio(self, store):
        hike = make_hike()
        store.insert(hike)
        store.save()
        relative = store.stage_recording_audio(hike.id, "rec-1", b"audio-bytes")

        store.rollback()
        store.save()
        assert not store.media_path(hike.id, relative).exists()

    def test_delete_cascades_media(self, store):
        hike = make_hike()
        recording = Recording(id="rec-1", created_at=hike.started_at, name="One", duration=1.0)
        recording.audio_file = store.stage_recording_audio(hike.id, recording.id, b"wav")
        photo = Photo(id="photo-1", created_at=hike.started_at)
        photo.file_name = store.stage_photo(hike.id, photo.id, b"jpg")
        hike.recordings.append(recording)
        hike.photos.append(photo)
        store.insert(hike)
        store.save()

        session_path = store.get_session_path(hike.id)
        assert (session_path / "audio" / "rec-1.wav").exists()
        assert (session_path / "photos" / "photo-1.jpg").exists()

        store.delete(store.get(hike.id))
        store.save()

        assert store.get(hike.id) is None
        assert not session_path.exists()

    def test_delete_missing(self, store):
        with pytest.raises(KeyError):
            store.delete(make_hike())

    def test_unreadable_hike_file_is_skipped(self, store, temp_data_dir):
        good = make_hike()
        store.insert(good)
        store.save()
        broken = Path(temp_data_dir) / "sessions" / "broken"
        broken.mkdir()
        (broken / "hike.json").write_text("{not json", encoding="utf-8")

        reloaded = HikeStore(temp_data_dir)
        assert [h.id for h in reloaded.query()] == [good.id]

    def test_storage_stats(self, store):
        hike = make_hike()
        store.insert(hike)
        store.stage_recording_audio(hike.id, "rec-1", b"12345")
        store.save()

        stats = store.get_storage_stats()
        assert stats["hike_count"] == 1
        assert stats["total_size_bytes"] > 5


@pytest.mark.unit
class TestAppStateStore:
    """Test cases for AppStateStore."""

    def test_missing_file_means_no_active_session(self, temp_data_dir):
        state = AppStateStore(str(Path(temp_data_dir) / "state.json"))
        assert state.get_active_session_id() is None

    def test_set_and_clear(self, temp_data_dir):
        path = Path(temp_data_dir) / "state.json"
        state = AppStateStore(str(path))

        state.set_active_session_id("abc")
        assert AppStateStore(str(path)).get_active_session_id() == "abc"

        state.set_active_session_id(None)
        assert state.get_active_session_id() is None
        assert json.loads(path.read_text()) == {}

    def test_corrupt_file_reads_as_empty(self, temp_data_dir):
        path = Path(temp_data_dir) / "state.json"
        path.write_text("garbage")
        assert AppStateStore(str(path)).get_active_session_id() is None
