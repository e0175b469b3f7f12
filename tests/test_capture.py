"""Tests for the snapshot lifecycle and the snapshot store."""

import json
from datetime import datetime

import cv2
import numpy as np
import pytest

from timescape.capture import CaptureState, CaptureStateMachine, SnapshotStore


@pytest.fixture
def store(tmp_path):
    return SnapshotStore(tmp_path / "shots", tmp_path / "shots" / "counter.json")


class FailingStore(SnapshotStore):
    def save_image(self, image_bgra, name):
        raise OSError("disk full")


def run_to(capture, times):
    return [capture.tick(t) for t in times]


class TestSnapshotStore:
    def test_default_counter(self, store):
        assert store.load_counter() == 1

    def test_counter_round_trip(self, store):
        store.save_counter(7)
        assert store.load_counter() == 7
        assert json.loads(store.counter_file.read_text()) == {"counter": 7}

    def test_corrupt_counter_file(self, store):
        store.counter_file.parent.mkdir(parents=True)
        store.counter_file.write_text("not json")
        assert store.load_counter() == 1

    def test_counter_filename(self, store):
        assert store.filename(1) == "timescape_1001.png"
        assert store.filename(42) == "timescape_1042.png"

    def test_timestamp_filename(self, tmp_path):
        store = SnapshotStore(tmp_path, tmp_path / "c.json", filename_style="timestamp")
        when = datetime(2024, 3, 5, 14, 7, 9)
        assert store.filename(1, when) == "tesseract_art_20240305_140709.png"

    def test_save_image(self, store):
        img = np.zeros((8, 8, 4), dtype=np.uint8)
        img[2:6, 2:6] = [255, 128, 0, 255]
        path = store.save_image(img, "x.png")
        assert path.exists()
        loaded = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        assert loaded.shape == (8, 8, 4)
        assert loaded[3, 3].tolist() == [255, 128, 0, 255]


class TestLifecycle:
    def test_starts_idle(self, store):
        capture = CaptureStateMachine(store, width=32, height=24)
        assert capture.state == CaptureState.IDLE
        assert capture.tick(0.0) == 100.0

    def test_art_buffer_is_oversized(self, store):
        capture = CaptureStateMachine(store, width=32, height=24, art_multiplier=2)
        assert (capture.art.width, capture.art.height) == (64, 48)
        assert capture.art.transparent

    def test_full_cycle(self, store):
        capture = CaptureStateMachine(store, width=32, height=24)
        saved = []
        capture.on_saved(saved.append)

        assert capture.trigger(0.0)
        assert capture.state == CaptureState.ENTERING

        assert capture.tick(0.5) == pytest.approx(50.0)
        assert capture.state == CaptureState.ENTERING

        assert capture.tick(1.0) == 0.0
        assert capture.state == CaptureState.ACTIVE
        assert capture.recording

        assert capture.tick(10.9) == 0.0
        assert capture.state == CaptureState.ACTIVE
        assert saved == []

        capture.tick(11.0)
        assert capture.state == CaptureState.EXITING
        assert len(saved) == 1
        assert saved[0].name == "timescape_1001.png"
        assert capture.counter == 2
        assert store.load_counter() == 2

        assert capture.tick(12.0) == pytest.approx(50.0)
        assert capture.art_opacity == pytest.approx(50.0)

        assert capture.tick(13.0) == 100.0
        assert capture.state == CaptureState.IDLE
        assert len(saved) == 1

    def test_counter_persists_across_instances(self, store):
        first = CaptureStateMachine(store, width=16, height=16)
        first.trigger(0.0)
        run_to(first, [1.0, 11.0, 13.0])
        second = CaptureStateMachine(store, width=16, height=16)
        assert second.counter == 2

    def test_manual_trigger_ignored_outside_idle(self, store):
        capture = CaptureStateMachine(store, width=16, height=16)
        assert capture.manual_trigger(0.0)
        for t, expected in [(0.5, CaptureState.ENTERING), (1.0, CaptureState.ACTIVE),
                            (11.0, CaptureState.EXITING)]:
            capture.tick(t)
            assert capture.state == expected
            assert not capture.manual_trigger(t)
            assert capture.state == expected

    def test_opacity_clamped(self, store):
        capture = CaptureStateMachine(store, width=16, height=16)
        capture.trigger(0.0)
        assert capture.tick(-1.0) == 100.0
        capture.tick(1.0)
        capture.tick(11.0)
        assert capture.tick(50.0) == 100.0

    def test_save_failure_does_not_increment(self, tmp_path):
        store = FailingStore(tmp_path, tmp_path / "counter.json")
        capture = CaptureStateMachine(store, width=16, height=16)
        capture.trigger(0.0)
        run_to(capture, [1.0, 11.0])
        assert capture.state == CaptureState.EXITING
        assert capture.counter == 1
        assert capture.last_saved is None
        assert not (tmp_path / "counter.json").exists()

    def test_art_cleared_on_entering_active(self, store):
        capture = CaptureStateMachine(store, width=16, height=16)
        capture.art.image[...] = 0.5
        capture.trigger(0.0)
        capture.tick(1.0)
        assert capture.art.image.max() == 0.0

    def test_saved_png_matches_art(self, store):
        capture = CaptureStateMachine(store, width=16, height=16)
        capture.trigger(0.0)
        capture.tick(1.0)
        capture.art.image[10:20, 10:20] = [0.0, 0.0, 1.0, 1.0]
        capture.tick(11.0)
        img = cv2.imread(str(capture.last_saved), cv2.IMREAD_UNCHANGED)
        assert img.shape == (32, 32, 4)
        assert img[15, 15].tolist() == [0, 0, 255, 255]
        assert img[0, 0, 3] == 0

    def test_resize(self, store):
        capture = CaptureStateMachine(store, width=16, height=16, art_multiplier=3)
        capture.resize(20, 10)
        assert (capture.art.width, capture.art.height) == (60, 30)
