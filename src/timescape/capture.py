"""Snapshot capture lifecycle: fade out, record an afterimage, save, fade in.

    IDLE --trigger--> ENTERING --1s--> ACTIVE --10s--> EXITING --2s--> IDLE

While ACTIVE the hypercube is drawn into a transparent art buffer that is
never cleared between frames, so the motion trail accumulates. At the end of
ACTIVE the buffer is written to a PNG and the snapshot counter persisted.

Usage:
    store = SnapshotStore("snapshots", "snapshots/counter.json")
    capture = CaptureStateMachine(store, width=1280, height=720)
    capture.manual_trigger(now)
    # Once per frame:
    opacity = capture.tick(now)
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import cv2
import numpy as np

from timescape.surface import Surface

logger = logging.getLogger("timescape.capture")

COUNTER_BASE = 1000


class CaptureState(Enum):
    IDLE = "idle"
    ENTERING = "entering"
    ACTIVE = "active"
    EXITING = "exiting"


class SnapshotStore:
    """File-backed snapshot output and the persistent snapshot counter."""

    def __init__(self, directory: str | Path = "snapshots",
                 counter_file: str | Path = "snapshots/counter.json",
                 filename_style: str = "counter"):
        self.directory = Path(directory).expanduser()
        self.counter_file = Path(counter_file).expanduser()
        self.filename_style = filename_style

    def load_counter(self) -> int:
        """Stored counter, or 1 when nothing usable is stored yet."""
        if not self.counter_file.exists():
            return 1
        try:
            data = json.loads(self.counter_file.read_text())
            return int(data["counter"])
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Ignoring unreadable counter file %s: %s", self.counter_file, e)
            return 1

    def save_counter(self, value: int):
        self.counter_file.parent.mkdir(parents=True, exist_ok=True)
        self.counter_file.write_text(json.dumps({"counter": int(value)}))

    def filename(self, counter: int, when: Optional[datetime] = None) -> str:
        if self.filename_style == "timestamp":
            when = when or datetime.now()
            return f"tesseract_art_{when:%Y%m%d_%H%M%S}.png"
        return f"timescape_{COUNTER_BASE + counter}.png"

    def save_image(self, image_bgra: np.ndarray, name: str) -> Path:
        """Write a PNG. Raises OSError when the image cannot be written."""
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / name
        if not cv2.imwrite(str(path), image_bgra):
            raise OSError(f"cv2.imwrite could not write {path}")
        return path


class CaptureStateMachine:
    """Idle/Entering/Active/Exiting lifecycle with scene opacity.

    All transitions happen inside tick(); triggers only request ENTERING and
    are ignored outside IDLE.
    """

    def __init__(
        self,
        store: SnapshotStore,
        width: int = 1280,
        height: int = 720,
        art_multiplier: int = 2,
        enter_duration: float = 1.0,
        record_duration: float = 10.0,
        exit_duration: float = 2.0,
    ):
        self.store = store
        self.art_multiplier = art_multiplier
        self.enter_duration = enter_duration
        self.record_duration = record_duration
        self.exit_duration = exit_duration

        self.state = CaptureState.IDLE
        self.scene_opacity = 100.0
        self.phase_start = 0.0
        self.counter = store.load_counter()
        self.last_saved: Optional[Path] = None

        self.art = Surface(width * art_multiplier, height * art_multiplier, transparent=True)
        self._on_saved: list[Callable[[Path], None]] = []

    def on_saved(self, callback: Callable[[Path], None]):
        """Register a callback invoked with the path of each saved snapshot."""
        self._on_saved.append(callback)

    @property
    def recording(self) -> bool:
        return self.state == CaptureState.ACTIVE

    @property
    def showing_art(self) -> bool:
        return self.state in (CaptureState.ACTIVE, CaptureState.EXITING)

    @property
    def art_opacity(self) -> float:
        """Opacity of the art buffer when composited onto the live view."""
        if self.state == CaptureState.ACTIVE:
            return 100.0
        if self.state == CaptureState.EXITING:
            return 100.0 - self.scene_opacity
        return 0.0

    def trigger(self, now: Optional[float] = None) -> bool:
        """Request ENTERING. Honoured only while IDLE."""
        if self.state != CaptureState.IDLE:
            logger.debug("Capture trigger ignored in state %s", self.state.value)
            return False
        now = now if now is not None else time.monotonic()
        self.state = CaptureState.ENTERING
        self.phase_start = now
        logger.info("Snapshot sequence started")
        return True

    def manual_trigger(self, now: Optional[float] = None) -> bool:
        """Keyboard request: same as trigger(), no gesture hold or cooldown."""
        return self.trigger(now)

    def tick(self, now: Optional[float] = None) -> float:
        """Advance the lifecycle by wall-clock time. Returns scene opacity."""
        now = now if now is not None else time.monotonic()
        elapsed = now - self.phase_start

        if self.state == CaptureState.ENTERING:
            self.scene_opacity = _ramp(elapsed, self.enter_duration, 100.0, 0.0)
            if elapsed >= self.enter_duration:
                self.state = CaptureState.ACTIVE
                self.phase_start = now
                self.art.clear()
                logger.info("Recording afterimage for %.1fs", self.record_duration)

        elif self.state == CaptureState.ACTIVE:
            self.scene_opacity = 0.0
            if elapsed >= self.record_duration:
                self._save_snapshot()
                self.state = CaptureState.EXITING
                self.phase_start = now

        elif self.state == CaptureState.EXITING:
            self.scene_opacity = _ramp(elapsed, self.exit_duration, 0.0, 100.0)
            if elapsed >= self.exit_duration:
                self.state = CaptureState.IDLE
                self.art.clear()
                logger.debug("Snapshot sequence finished")

        else:
            self.scene_opacity = 100.0

        return self.scene_opacity

    def _save_snapshot(self):
        name = self.store.filename(self.counter)
        try:
            path = self.store.save_image(self.art.to_bgra(), name)
        except (OSError, cv2.error) as e:
            logger.error("Snapshot save failed (%s): %s", name, e)
            return

        self.counter += 1
        try:
            self.store.save_counter(self.counter)
        except OSError as e:
            logger.error("Could not persist snapshot counter: %s", e)

        self.last_saved = path
        logger.info("Saved snapshot %s", path)
        for cb in self._on_saved:
            cb(path)

    def resize(self, width: int, height: int):
        self.art.resize(width * self.art_multiplier, height * self.art_multiplier)


def _ramp(elapsed: float, duration: float, start: float, end: float) -> float:
    t = min(max(elapsed / duration, 0.0), 1.0) if duration > 0 else 1.0
    return start + (end - start) * t
