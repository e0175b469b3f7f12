"""Hand-driven camera control and the fist-hold snapshot trigger.

One hand steers pitch/yaw with the mean index fingertip; a second hand adds
roll (angle between the index tips) and zoom (distance between them). All
four values chase their targets with a first-order low-pass filter.

Usage:
    controller = InteractionController(video_size=(1280, 720), base_scale=180)
    controller.update(hands, now, capture)
    rx, ry, rz = controller.state.rotation
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from timescape.capture import CaptureState, CaptureStateMachine
from timescape.gestures import GestureRecognizer
from timescape.mapping import lerp, linear_map

logger = logging.getLogger("timescape.interaction")

INDEX_TIP = 8
SCALE_RANGE = (50.0, 400.0)


@dataclass
class InteractionState:
    """Smoothed camera rotation (radians) and hypercube scale (pixels)."""
    rot_x: float = 0.0
    rot_y: float = 0.0
    rot_z: float = 0.0
    scale: float = 150.0

    @property
    def rotation(self) -> tuple[float, float, float]:
        return (self.rot_x, self.rot_y, self.rot_z)


def frame_factor(factor: float, dt: Optional[float], reference_fps: float) -> float:
    """Per-frame lerp factor, optionally corrected for elapsed time.

    With dt=None the factor is used as-is (frame-rate dependent). With dt
    the factor is rescaled so the response matches `factor` applied at
    reference_fps.
    """
    if dt is None:
        return factor
    frames = max(dt, 0.0) * reference_fps
    return 1.0 - (1.0 - factor) ** frames


class GestureHold:
    """Fist held for `duration` seconds fires once, then a cooldown applies."""

    def __init__(self, duration: float = 3.0, cooldown: float = 15.0):
        self.duration = duration
        self.cooldown = cooldown
        self.started: Optional[float] = None
        self.cooldown_until: Optional[float] = None
        self.hand_index: Optional[int] = None

    @property
    def holding(self) -> bool:
        return self.started is not None

    def progress(self, now: float) -> float:
        if self.started is None:
            return 0.0
        return min(max((now - self.started) / self.duration, 0.0), 1.0)

    def cancel(self):
        self.started = None
        self.hand_index = None

    def update(self, fist_index: Optional[int], now: float, eligible: bool) -> bool:
        """Feed this frame's first fist hand (or None). Returns True on fire."""
        cooling = self.cooldown_until is not None and now < self.cooldown_until
        if not eligible or cooling or fist_index is None:
            self.cancel()
            return False

        if self.started is None:
            self.started = now
            logger.debug("Fist hold started")
        self.hand_index = fist_index

        if now - self.started >= self.duration:
            self.cooldown_until = now + self.cooldown
            self.cancel()
            return True
        return False


class FreeLook:
    """Mouse-drag orbit for when nobody is steering with their hands."""

    def __init__(self, sensitivity: float = 0.01):
        self.sensitivity = sensitivity
        self.enabled = False
        self.yaw = 0.0
        self.pitch = 0.0
        self._dragging = False
        self._last: Optional[tuple[int, int]] = None

    def drag(self, x: int, y: int, pressed: bool):
        """Feed pointer position and button state."""
        if not pressed:
            self._dragging = False
            self._last = None
            return
        if self._dragging and self._last is not None and self.enabled:
            dx, dy = x - self._last[0], y - self._last[1]
            self.yaw += dx * self.sensitivity
            self.pitch = min(max(self.pitch - dy * self.sensitivity, -math.pi / 2), math.pi / 2)
        self._dragging = True
        self._last = (x, y)

    def reset(self):
        self.yaw = 0.0
        self.pitch = 0.0


class InteractionController:
    """Turns the current hand set into smoothed rotation/scale.

    Hands are (21, 2) pixel keypoints in a frame of `video_size`.
    """

    def __init__(
        self,
        video_size: tuple[int, int] = (1280, 720),
        base_scale: float = 150.0,
        smoothing: float = 0.1,
        hold_duration: float = 3.0,
        hold_cooldown: float = 15.0,
        elapsed_timing: bool = False,
        reference_fps: float = 60.0,
        recognizer: Optional[GestureRecognizer] = None,
    ):
        self.video_width, self.video_height = video_size
        self.smoothing = smoothing
        self.elapsed_timing = elapsed_timing
        self.reference_fps = reference_fps
        self.recognizer = recognizer or GestureRecognizer()
        self.hold = GestureHold(hold_duration, hold_cooldown)
        self.free_look = FreeLook()

        self.state = InteractionState(scale=base_scale)
        self.target_pitch = 0.0
        self.target_yaw = 0.0
        self.target_roll = 0.0
        self.target_scale = base_scale

    def resize(self, base_scale: float):
        """Reset the smoothed state for a new view size."""
        self.state = InteractionState(scale=base_scale)
        self.target_pitch = self.target_yaw = self.target_roll = 0.0
        self.target_scale = base_scale

    def _factor(self, dt: Optional[float]) -> float:
        if not self.elapsed_timing:
            return self.smoothing
        return frame_factor(self.smoothing, dt, self.reference_fps)

    def update(
        self,
        hands: Sequence[np.ndarray],
        now: Optional[float] = None,
        capture: Optional[CaptureStateMachine] = None,
        dt: Optional[float] = None,
    ) -> bool:
        """Run one frame of interaction. Returns True if a capture was triggered."""
        now = now if now is not None else time.monotonic()
        if hands:
            self._steer(hands, self._factor(dt))
        return self._update_hold(hands, now, capture)

    def _steer(self, hands: Sequence[np.ndarray], factor: float):
        tips = np.array([np.asarray(h, dtype=np.float64)[INDEX_TIP, :2] for h in hands])
        cx, cy = tips.mean(axis=0)

        self.target_yaw = linear_map(cx, 0.0, self.video_width, -math.pi, math.pi)
        self.target_pitch = linear_map(cy, 0.0, self.video_height, -math.pi, math.pi)
        self.target_roll = 0.0

        s = self.state
        if len(hands) >= 2:
            (x1, y1), (x2, y2) = tips[0], tips[1]
            d = math.hypot(x2 - x1, y2 - y1)
            self.target_scale = linear_map(d, SCALE_RANGE[0], SCALE_RANGE[1], SCALE_RANGE[0], SCALE_RANGE[1])
            self.target_roll = math.atan2(y2 - y1, x2 - x1)
            s.scale = lerp(s.scale, self.target_scale, factor)

        s.rot_x = lerp(s.rot_x, self.target_pitch, factor)
        s.rot_y = lerp(s.rot_y, self.target_yaw, factor)
        s.rot_z = lerp(s.rot_z, self.target_roll, factor)

    def _update_hold(self, hands: Sequence[np.ndarray], now: float,
                     capture: Optional[CaptureStateMachine]) -> bool:
        eligible = capture is None or capture.state == CaptureState.IDLE
        fist = self.recognizer.first_fist(hands) if hands else None
        if not self.hold.update(fist, now, eligible):
            return False

        logger.info("Fist held for %.1fs, starting snapshot", self.hold.duration)
        if capture is not None:
            return capture.trigger(now)
        return True

    @property
    def holding_hand(self) -> Optional[int]:
        return self.hold.hand_index
