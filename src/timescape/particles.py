"""Particle systems: a warping star field and fingertip lightning.

Both take a numpy Generator so flicker, twinkle and bolt spawning are
reproducible under a fixed seed.

Usage:
    rng = np.random.default_rng(7)
    stars = StarField(200, width=1280, height=720, rng=rng)
    stars.step(zoom_speed)
    for link in stars.links(opacity=100):
        ...

    bolts = LightningField(rng=rng)
    bolts.emit(fingertip_positions)
    bolts.step()
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional, Sequence

import numpy as np

from timescape.mapping import linear_map

DEPTH_NEAR = 0.0
DEPTH_FAR = -1000.0
WARP_FACTOR = 4.0
STREAK_MIN_SPEED = 0.5
STREAK_LENGTH = 10.0

LINK_WINDOW = 5
LINK_DISTANCE = 150.0
LINK_MAX_ALPHA = 50.0

BOLT_LIFE = 255.0
BOLT_DECAY = 15.0
BOLT_STEPS = 10
BOLT_STEP_SIZE = 20.0
BOLT_JITTER = 15.0

FINGERTIPS = (4, 8, 12, 16, 20)


@dataclass
class Star:
    x: float
    y: float
    z: float
    brightness: float  # 0-255


@dataclass
class StarLink:
    i: int
    j: int
    distance: float
    alpha: float  # percent


class StarField:
    """Fixed set of stars drifting through a depth band.

    Links are only considered between a star and the next `window` stars by
    index, an O(n*k) stand-in for full proximity linking.
    """

    def __init__(
        self,
        count: int = 200,
        width: int = 1280,
        height: int = 720,
        rng: Optional[np.random.Generator] = None,
        window: int = LINK_WINDOW,
        link_distance: float = LINK_DISTANCE,
    ):
        self.rng = rng or np.random.default_rng()
        self.window = window
        self.link_distance = link_distance
        self.stars = [
            Star(
                x=float(self.rng.uniform(-width, width)),
                y=float(self.rng.uniform(-height, height)),
                z=float(self.rng.uniform(DEPTH_FAR, -500.0)),
                brightness=float(self.rng.uniform(100.0, 255.0)),
            )
            for _ in range(count)
        ]
        self.last_zoom_speed = 0.0

    def __len__(self) -> int:
        return len(self.stars)

    def step(self, zoom_speed: float):
        """Advance depth by the zoom velocity, wrapping at the band edges."""
        self.last_zoom_speed = zoom_speed
        dz = zoom_speed * WARP_FACTOR
        for s in self.stars:
            s.z += dz
            if s.z > DEPTH_NEAR:
                s.z = DEPTH_FAR
            if s.z < DEPTH_FAR:
                s.z = DEPTH_NEAR

    @property
    def warping(self) -> bool:
        return abs(self.last_zoom_speed) > STREAK_MIN_SPEED

    def candidate_pairs(self) -> Iterator[tuple[int, int]]:
        """Index pairs checked for links: (i, j) for j in i+1 .. i+window."""
        n = len(self.stars)
        for i in range(n):
            for j in range(i + 1, min(i + 1 + self.window, n)):
                yield i, j

    def links(self, opacity: float = 100.0) -> list[StarLink]:
        """Links to draw this frame, with distance falloff and flicker."""
        threshold_sq = self.link_distance * self.link_distance
        out = []
        for i, j in self.candidate_pairs():
            a, b = self.stars[i], self.stars[j]
            d_sq = (a.x - b.x) ** 2 + (a.y - b.y) ** 2 + (a.z - b.z) ** 2
            if d_sq >= threshold_sq:
                continue
            d = d_sq ** 0.5
            flicker = float(self.rng.uniform(0.5, 1.0))
            alpha = linear_map(d, 0.0, self.link_distance, LINK_MAX_ALPHA, 0.0) * (opacity / 100.0) * flicker
            out.append(StarLink(i, j, d, alpha))
        return out

    def twinkle(self) -> np.ndarray:
        """Per-star display brightness in percent, jittered by +/-20 levels."""
        base = np.array([s.brightness for s in self.stars], dtype=np.float64)
        jitter = self.rng.uniform(-20.0, 20.0, size=len(base))
        return np.clip((base + jitter) / 255.0 * 100.0, 0.0, 100.0)

    def positions(self) -> np.ndarray:
        return np.array([[s.x, s.y, s.z] for s in self.stars], dtype=np.float64).reshape(-1, 3)


class LightningBolt:
    """Jagged polyline stepping away from an anchor, fading as life drops."""

    def __init__(self, origin: Sequence[float], direction: Sequence[float],
                 rng: np.random.Generator):
        pts = [np.asarray(origin, dtype=np.float64)]
        step = np.asarray(direction, dtype=np.float64) * BOLT_STEP_SIZE
        for _ in range(BOLT_STEPS):
            jitter = rng.uniform(-BOLT_JITTER, BOLT_JITTER, size=3)
            pts.append(pts[-1] + step + jitter)
        self.points = np.array(pts)
        self.life = BOLT_LIFE

    def update(self):
        self.life -= BOLT_DECAY

    @property
    def finished(self) -> bool:
        return self.life < 0

    def glow_alpha(self, opacity: float = 100.0) -> float:
        return linear_map(self.life, 0.0, BOLT_LIFE, 0.0, 50.0) * opacity / 100.0

    def core_alpha(self, opacity: float = 100.0) -> float:
        return linear_map(self.life, 0.0, BOLT_LIFE, 0.0, 100.0) * opacity / 100.0


class LightningField:
    """Owns all live bolts. Anchors spawn bolts with a small per-frame chance."""

    def __init__(self, chance: float = 0.002, rng: Optional[np.random.Generator] = None):
        self.chance = chance
        self.rng = rng or np.random.default_rng()
        self.bolts: list[LightningBolt] = []

    def __len__(self) -> int:
        return len(self.bolts)

    def random_direction(self) -> np.ndarray:
        while True:
            d = self.rng.uniform(-1.0, 1.0, size=3)
            norm = float(np.linalg.norm(d))
            if norm > 1e-9:
                return d / norm

    def emit(self, anchors: Sequence[Sequence[float]]) -> int:
        """Roll once per anchor; returns how many bolts spawned."""
        spawned = 0
        for anchor in anchors:
            if self.rng.random() < self.chance:
                self.bolts.append(LightningBolt(anchor, self.random_direction(), self.rng))
                spawned += 1
        return spawned

    def step(self) -> list[LightningBolt]:
        """Age every bolt and drop dead ones. Returns the bolts that are still alive."""
        for b in self.bolts:
            b.update()
        self.bolts = [b for b in self.bolts if not b.finished]
        return self.bolts

    def clear(self):
        self.bolts.clear()
