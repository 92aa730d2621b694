"""Unit tests for MediaService."""

import pytest

from conftest import wav_duration
from hikejournal.errors import SessionNotFound
from hikejournal.services.media_service import MediaService


@pytest.fixture
def media(store, engine, clock):
    return MediaService(store, engine, clock=clock)


@pytest.fixture
def hike_id(manager):
    return manager.start_session(name="Forest")


def record(engine, device, seconds):
    engine.start_recording()
    device.elapsed = seconds
    return engine.stop_recording()


@pytest.mark.unit
class TestSaveCapture:
    """Persisting finished captures as recordings."""

    def test_save_capture_persists_audio(self, media, engine, fake_device, store, hike_id):
        capture = record(engine, fake_device, 2.5)

        recording = media.save_capture(hike_id, capture, "Woodpecker")

        assert recording.name == "Woodpecker"
        assert recording.duration == pytest.approx(2.5)
        assert recording.sort_order == 0
        assert not capture.temp_path.exists()

        path = media.recording_path(hike_id, recording.id)
        assert path.exists()
        assert wav_duration(path) == pytest.approx(capture.elapsed_seconds, abs=0.01)
        assert store.get(hike_id).recordings == [recording]

    def test_default_names_and_sort_order(self, media, engine, fake_device, hike_id):
        first = media.save_capture(hike_id, record(engine, fake_device, 1.0))
        second = media.save_capture(hike_id, record(engine, fake_device, 1.0), "  ")

        assert first.name == "Recording 1"
        assert second.name == "Recording 2"
        assert [r.sort_order for r in media.recordings(hike_id)] == [0, 1]

    def test_unknown_hike_keeps_temp_file(self, media, engine, fake_device):
        capture = record(engine, fake_device, 1.0)
        with pytest.raises(SessionNotFound):
            media.save_capture("missing", capture)
        assert capture.temp_path.exists()
        engine.discard_capture(capture)

    def test_failed_store_save_keeps_capture(self, media, engine, fake_device, store, hike_id, monkeypatch):
        capture = record(engine, fake_device, 2.0)

        def failing_save():
            raise OSError("disk full")

        monkeypatch.setattr(store, "save", failing_save)
        with pytest.raises(OSError):
            media.save_capture(hike_id, capture, "Owl")
        monkeypatch.undo()

        assert capture.temp_path.exists()
        assert wav_duration(capture.temp_path) == pytest.approx(2.0, abs=0.01)
        assert store.get(hike_id).recordings == []

        recording = media.save_capture(hike_id, capture, "Owl")
        assert not capture.temp_path.exists()
        assert store.get(hike_id).recordings == [recording]

    def test_capture_allowed_on_completed_hike(self, media, manager, engine, fake_device, hike_id):
        manager.end_session(hike_id, end_mood=7)
        recording = media.save_capture(hike_id, record(engine, fake_device, 0.5))
        assert media.recordings(hike_id) == [recording]

    def test_interrupted_capture_can_be_saved(self, media, engine, fake_device, hike_id):
        engine.start_recording()
        fake_device.elapsed = 0.8
        fake_device.interrupt()

        capture = engine.stop_recording()
        recording = media.save_capture(hike_id, capture)

        assert recording.duration == pytest.approx(0.8)
        assert engine.pending_capture is None


@pytest.mark.unit
class TestDeleteAndRename:
    """Removing and renaming recordings."""

    def test_delete_renumbers_densely(self, media, engine, fake_device, hike_id):
        recordings = [media.save_capture(hike_id, record(engine, fake_device, 1.0)) for _ in range(3)]
        deleted_path = media.recording_path(hike_id, recordings[1].id)

        media.delete_recording(hike_id, recordings[1].id)

        remaining = media.recordings(hike_id)
        assert [r.id for r in remaining] == [recordings[0].id, recordings[2].id]
        assert [r.sort_order for r in remaining] == [0, 1]
        assert not deleted_path.exists()

    def test_delete_unknown_recording(self, media, hike_id):
        with pytest.raises(KeyError):
            media.delete_recording(hike_id, "missing")

    def test_delete_works_without_engine(self, store, engine, fake_device, clock, hike_id):
        recording = MediaService(store, engine, clock=clock).save_capture(
            hike_id, record(engine, fake_device, 1.0))

        MediaService(store).delete_recording(hike_id, recording.id)
        assert store.get(hike_id).recordings == []

    def test_rename(self, media, engine, fake_device, store, hike_id):
        recording = media.save_capture(hike_id, record(engine, fake_device, 1.0))
        renamed = media.rename_recording(hike_id, recording.id, "Creek")
        assert renamed.name == "Creek"
        assert store.get(hike_id).recordings[0].name == "Creek"

        unchanged = media.rename_recording(hike_id, recording.id, "   ")
        assert unchanged.name == "Creek"


@pytest.mark.unit
class TestPlayRecording:

    def test_play_uses_stored_duration(self, media, engine, fake_device, tickers, hike_id):
        recording = media.save_capture(hike_id, record(engine, fake_device, 2.0))
        fake_device.duration = 99.0

        media.play_recording(hike_id, recording.id)

        assert engine.is_playing
        assert fake_device.source == media.recording_path(hike_id, recording.id)
        fake_device.position = 1.0
        tickers.current.fire()
        assert engine.playback_progress == pytest.approx(0.5)

    def test_play_without_engine(self, store, hike_id):
        with pytest.raises(KeyError):
            MediaService(store).play_recording(hike_id, "missing")


@pytest.mark.unit
class TestPhotos:
    """Photos follow the same ownership rules as recordings."""

    def test_add_and_delete_photo(self, media, store, hike_id):
        first = media.add_photo(hike_id, b"jpeg-1", caption="View")
        second = media.add_photo(hike_id, b"jpeg-2")
        path = store.media_path(hike_id, first.file_name)
        assert path.read_bytes() == b"jpeg-1"

        media.delete_photo(hike_id, first.id)

        photos = store.get(hike_id).photos
        assert [p.id for p in photos] == [second.id]
        assert photos[0].sort_order == 0
        assert not path.exists()

    def test_delete_unknown_photo(self, media, hike_id):
        with pytest.raises(KeyError):
            media.delete_photo(hike_id, "missing")
