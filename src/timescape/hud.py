"""Debug overlay: camera thumbnail, detector status, controls and capture state."""

from __future__ import annotations

from typing import Optional, Sequence

import cv2
import numpy as np

from timescape.capture import CaptureState

FONT = cv2.FONT_HERSHEY_SIMPLEX
WHITE = (255, 255, 255)
GREEN = (0, 255, 0)
YELLOW = (0, 255, 255)
RED = (0, 0, 255)

STATE_LINES = {
    CaptureState.IDLE: ("Press 'S' for Snapshot Mode", WHITE),
    CaptureState.ENTERING: ("PREPARING SNAPSHOT...", YELLOW),
    CaptureState.ACTIVE: ("SNAPSHOT MODE (Recording)", RED),
    CaptureState.EXITING: ("SAVED! Fading back...", GREEN),
}


def _text(frame: np.ndarray, text: str, org: tuple[int, int], color=WHITE, scale: float = 0.5):
    cv2.putText(frame, text, org, FONT, scale, color, 1, cv2.LINE_AA)


def draw_recording_indicator(frame: np.ndarray):
    h, w = frame.shape[:2]
    cv2.circle(frame, (w - 30, 30), 10, RED, -1, cv2.LINE_AA)
    _text(frame, "REC", (w - 80, 36), RED, 0.6)


def draw_debug_view(
    frame: np.ndarray,
    status: str,
    state: CaptureState,
    camera_frame: Optional[np.ndarray] = None,
    hands: Sequence[np.ndarray] = (),
    video_size: tuple[int, int] = (1280, 720),
    fps: float = 0.0,
) -> np.ndarray:
    """Draw the debug panel in the bottom-right corner of `frame` (in place)."""
    h, w = frame.shape[:2]
    vw, vh = video_size
    dw = int(w * 0.25)
    dh = int(dw / vw * vh)
    x0 = w - dw - 10
    y0 = h - dh - 90
    if x0 < 0 or y0 < 20 or dw < 1 or dh < 1:
        return frame

    if camera_frame is not None:
        thumb = cv2.resize(cv2.flip(camera_frame, 1), (dw, dh))
        frame[y0:y0 + dh, x0:x0 + dw] = thumb
    else:
        frame[y0:y0 + dh, x0:x0 + dw] = 0

    for hand in hands:
        for kx, ky in np.asarray(hand)[:, :2]:
            px = x0 + int(kx / vw * dw)
            py = y0 + int(ky / vh * dh)
            cv2.circle(frame, (px, py), 2, GREEN, -1)

    cv2.rectangle(frame, (x0, y0), (x0 + dw, y0 + dh), WHITE, 1)
    _text(frame, f"Status: {status}", (x0, y0 - 10), WHITE, 0.55)
    _text(frame, f"FPS: {fps:5.1f}", (x0 + dw - 90, y0 - 10), WHITE, 0.5)

    lines = [
        ("1 Hand: Rotate X/Y", WHITE),
        ("2 Hands: Zoom & Spin Z", WHITE),
        ("Hold a fist 3s: Snapshot", WHITE),
        ("Press 'D' to Hide Debug", WHITE),
        STATE_LINES[state],
    ]
    for i, (line, color) in enumerate(lines):
        _text(frame, line, (x0, y0 + dh + 18 + i * 17), color)
    return frame
