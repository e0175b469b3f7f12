"""Live loop: camera -> detector thread -> renderer -> OpenCV window.

Controls:
    D            toggle the debug overlay
    S            start a snapshot (only while idle)
    Esc / Q      quit
    mouse drag   orbit the view (idle, no hands)
"""

from __future__ import annotations

import logging
import time
from typing import Optional

import cv2
import numpy as np

from timescape.capture import CaptureState
from timescape.config import EngineConfig
from timescape.context import EngineContext
from timescape.detector import DetectorWorker, HandPoseChannel
from timescape.hud import draw_debug_view, draw_recording_indicator
from timescape.renderer import FrameRenderer, FrameResult

logger = logging.getLogger("timescape.engine")

WINDOW_NAME = "Timescape"


def open_camera(index: int = 0, width: int = 1280, height: int = 720) -> cv2.VideoCapture:
    """Open a camera, asking for the preferred resolution."""
    cap = cv2.VideoCapture(index)
    if not cap.isOpened():
        cap.release()
        raise RuntimeError(f"Could not open camera {index}")
    cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
    return cap


class Engine:
    """Owns the engine context, the detector worker and the window."""

    def __init__(self, config: Optional[EngineConfig] = None,
                 ctx: Optional[EngineContext] = None,
                 worker: Optional[DetectorWorker] = None):
        self.ctx = ctx or EngineContext.create(config)
        self.renderer = FrameRenderer(self.ctx)
        self.channel = HandPoseChannel()
        self.worker = worker or DetectorWorker()
        self.last_result: Optional[FrameResult] = None
        self._running = False

    def handle_key(self, key: int, now: Optional[float] = None) -> bool:
        """Apply a key press. Returns False when the loop should stop."""
        now = now if now is not None else time.monotonic()
        ch = chr(key).lower() if 0 <= key < 256 else ""
        if key == 27 or ch == "q":
            return False
        if ch == "d":
            self.ctx.show_debug = not self.ctx.show_debug
        elif ch == "s":
            if not self.ctx.capture.manual_trigger(now):
                logger.info("Snapshot already in progress")
        return True

    def on_mouse(self, event, x, y, flags, param=None):
        self.ctx.interaction.free_look.drag(x, y, bool(flags & cv2.EVENT_FLAG_LBUTTON))

    def step(self, now: Optional[float] = None, dt: Optional[float] = None) -> np.ndarray:
        """Render one frame from the latest hands and return it as BGR."""
        now = now if now is not None else time.monotonic()
        hands = self.channel.latest() if self.worker.ready else []
        size = self.worker.frame_size
        if size is not None and size != (self.ctx.interaction.video_width, self.ctx.interaction.video_height):
            self.ctx.set_video_size(*size)

        self.last_result = self.renderer.render(hands, now, dt)

        with self.ctx.profiler.stage("present"):
            frame = self.ctx.view.to_bgr()
            if self.ctx.capture.state == CaptureState.ACTIVE:
                draw_recording_indicator(frame)
            if self.ctx.show_debug:
                draw_debug_view(
                    frame,
                    self.worker.status.value,
                    self.ctx.capture.state,
                    camera_frame=self.worker.frame,
                    hands=hands,
                    video_size=(self.ctx.interaction.video_width, self.ctx.interaction.video_height),
                    fps=self.ctx.profiler.fps,
                )
        return frame

    def run(self):
        cfg = self.ctx.config
        cap = open_camera(cfg.camera_index, cfg.video_width, cfg.video_height)
        vw = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)) or cfg.video_width
        vh = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)) or cfg.video_height
        self.ctx.set_video_size(vw, vh)
        logger.info("Camera %d open at %dx%d", cfg.camera_index, vw, vh)

        self.worker.start(cap, self.channel.publish)

        cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_NORMAL)
        cv2.resizeWindow(WINDOW_NAME, cfg.width, cfg.height)
        cv2.setMouseCallback(WINDOW_NAME, self.on_mouse)

        self._running = True
        try:
            while self._running:
                now = time.monotonic()
                dt = self.ctx.profiler.tick(now)
                frame = self.step(now, dt)
                cv2.imshow(WINDOW_NAME, frame)

                key = cv2.waitKey(1) & 0xFF
                if key != 255 and not self.handle_key(key, now):
                    break
        except KeyboardInterrupt:
            pass
        finally:
            self._running = False
            if self.worker.stop():
                cap.release()
            else:
                logger.warning("Leaving camera open: detector thread is still reading it")
            cv2.destroyAllWindows()
            logger.info("Shutdown after %d frames", self.ctx.frame_count)

    def stop(self):
        self._running = False
