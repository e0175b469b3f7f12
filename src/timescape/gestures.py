"""Hand pose classification: fist vs open hand from landmark geometry."""

from __future__ import annotations

from enum import Enum
from typing import Optional, Sequence

import numpy as np


class FingerState(Enum):
    """Binary finger state based on landmark positions."""
    EXTENDED = "extended"
    CURLED = "curled"


class HandGesture(Enum):
    FIST = "fist"
    OPEN = "open"


PALM = 0

# (tip, pip) for index, middle, ring, pinky. The thumb is ignored: its tip
# rarely tucks closer to the wrist than its IP joint.
FINGER_PAIRS = [(8, 6), (12, 10), (16, 14), (20, 18)]

FIST_MIN_CURLED = 3


def finger_states(hand: np.ndarray) -> list[FingerState]:
    """Extension state of index, middle, ring and pinky.

    A finger is curled when its tip sits closer to the palm keypoint than
    its PIP joint does. Distances are planar (x, y only).
    """
    pts = np.asarray(hand, dtype=np.float64)[:, :2]
    palm = pts[PALM]

    states = []
    for tip_idx, pip_idx in FINGER_PAIRS:
        tip_dist = np.linalg.norm(pts[tip_idx] - palm)
        pip_dist = np.linalg.norm(pts[pip_idx] - palm)
        if tip_dist < pip_dist:
            states.append(FingerState.CURLED)
        else:
            states.append(FingerState.EXTENDED)
    return states


def curled_count(hand: np.ndarray) -> int:
    return sum(1 for s in finger_states(hand) if s == FingerState.CURLED)


def is_fist(hand: np.ndarray) -> bool:
    """True when at least three of the four fingers are curled."""
    return curled_count(hand) >= FIST_MIN_CURLED


class GestureRecognizer:
    """Stateless fist/open classifier over a set of hands."""

    def __init__(self, min_curled: int = FIST_MIN_CURLED):
        self.min_curled = min_curled

    def classify(self, hand: np.ndarray) -> HandGesture:
        if curled_count(hand) >= self.min_curled:
            return HandGesture.FIST
        return HandGesture.OPEN

    def first_fist(self, hands: Sequence[np.ndarray]) -> Optional[int]:
        """Index of the first hand making a fist, or None."""
        for i, hand in enumerate(hands):
            if self.classify(hand) == HandGesture.FIST:
                return i
        return None
