"""Hand landmark detection using MediaPipe, run off the render thread.

The render loop never waits on the detector. A DetectorWorker pulls camera
frames on its own thread and publishes every result into a HandPoseChannel;
the renderer reads whatever was published last.

Usage:
    channel = HandPoseChannel()
    worker = DetectorWorker()
    worker.start(camera, channel.publish)
    # each frame:
    hands = channel.latest()
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional

import cv2
import numpy as np

try:
    import mediapipe as mp
except ImportError:
    mp = None

logger = logging.getLogger("timescape.detector")

HandSet = list[np.ndarray]


class DetectorStatus(Enum):
    LOADING = "Loading Model..."
    READY = "Model Ready!"
    STOPPED = "Stopped"


class HandDetector:
    """Extracts 21 2-D hand keypoints per hand using MediaPipe Hands.

    Keypoints are pixel coordinates in the (mirrored) input frame, so a hand
    moving right on screen moves right in keypoint space.
    """

    # MediaPipe hand landmark indices
    WRIST = 0
    THUMB_TIP = 4
    INDEX_PIP, INDEX_TIP = 6, 8
    MIDDLE_MCP, MIDDLE_PIP, MIDDLE_TIP = 9, 10, 12
    RING_PIP, RING_TIP = 14, 16
    PINKY_PIP, PINKY_TIP = 18, 20

    NUM_LANDMARKS = 21

    def __init__(
        self,
        max_hands: int = 2,
        min_detection_confidence: float = 0.7,
        min_tracking_confidence: float = 0.5,
        mirror: bool = True,
    ):
        if mp is None:
            raise ImportError(
                "mediapipe is required. Install with: pip install mediapipe"
            )

        self.max_hands = max_hands
        self.mirror = mirror
        self._hands = mp.solutions.hands.Hands(
            static_image_mode=False,
            max_num_hands=max_hands,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )

    def detect(self, frame_bgr: np.ndarray) -> HandSet:
        """Detect hands in a BGR camera frame.

        Returns:
            List of (21, 2) float32 arrays in pixel coordinates.
            Empty list if no hands detected.
        """
        if self.mirror:
            frame_bgr = cv2.flip(frame_bgr, 1)
        frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        results = self._hands.process(frame_rgb)

        if not results.multi_hand_landmarks:
            return []

        h, w = frame_bgr.shape[:2]
        return [
            landmarks_to_pixels(
                [[lm.x, lm.y] for lm in hand_landmarks.landmark], w, h
            )
            for hand_landmarks in results.multi_hand_landmarks
        ]

    def close(self):
        """Release MediaPipe resources."""
        self._hands.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def landmarks_to_pixels(normalized, width: int, height: int) -> np.ndarray:
    """Scale normalized [0, 1] landmarks to a (21, 2) pixel array."""
    pts = np.asarray(normalized, dtype=np.float32)[:, :2].copy()
    pts[:, 0] *= width
    pts[:, 1] *= height
    return pts


class HandPoseChannel:
    """Single-slot mailbox holding the most recent hand set.

    publish() replaces the slot wholesale; latest() never blocks and may
    return the same set on consecutive frames.
    """

    def __init__(self):
        self._hands: HandSet = []
        self._published_at: Optional[float] = None
        self._count = 0

    def publish(self, hands: HandSet):
        self._hands = list(hands)
        self._published_at = time.monotonic()
        self._count += 1

    def latest(self) -> HandSet:
        return self._hands

    @property
    def published_at(self) -> Optional[float]:
        return self._published_at

    @property
    def publish_count(self) -> int:
        return self._count


class DetectorWorker:
    """Runs a HandDetector over a frame stream on a background thread.

    The detector is constructed on the worker thread, so status stays
    LOADING while MediaPipe loads its model. The latest camera frame is
    kept for the debug overlay.
    """

    def __init__(self, detector_factory: Optional[Callable[[], HandDetector]] = None):
        self._factory = detector_factory or HandDetector
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self.status = DetectorStatus.LOADING
        self.frame: Optional[np.ndarray] = None
        self.frame_size: Optional[tuple[int, int]] = None

    @property
    def ready(self) -> bool:
        return self.status == DetectorStatus.READY

    def start(self, stream, callback: Callable[[HandSet], None]):
        """Start detecting on `stream` (anything with read() -> (ok, frame))."""
        if self._thread is not None:
            raise RuntimeError("DetectorWorker already started")
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, args=(stream, callback), name="hand-detector", daemon=True
        )
        self._thread.start()

    def _run(self, stream, callback: Callable[[HandSet], None]):
        try:
            detector = self._factory()
        except Exception as e:
            logger.error("Hand detector failed to load: %s", e)
            self.status = DetectorStatus.STOPPED
            return

        self.status = DetectorStatus.READY
        logger.info("Hand detector ready")
        try:
            while not self._stop.is_set():
                ok, frame = stream.read()
                if not ok:
                    time.sleep(0.01)
                    continue
                self.frame = frame
                self.frame_size = (frame.shape[1], frame.shape[0])
                callback(detector.detect(frame))
        except Exception:
            logger.exception("Hand detector crashed")
        finally:
            detector.close()
            self.status = DetectorStatus.STOPPED
            logger.info("Hand detector stopped")

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def stop(self, timeout: float = 2.0) -> bool:
        """Ask the thread to finish and wait for it.

        Returns False when the thread is still running after `timeout`; the
        stream must not be released in that case.
        """
        self._stop.set()
        if self._thread is None:
            return True
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("Hand detector thread did not stop within %.1fs", timeout)
            return False
        self._thread = None
        return True
