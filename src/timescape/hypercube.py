"""Tesseract geometry: vertices, edges, 4-D rotation and perspective projection.

The 16 vertices are the sign combinations of (x, y, z, w). Vertex i takes
+1 on axis k when bit k of i is set, so two vertices share an edge exactly
when their indices differ in one bit.

Usage:
    model = HypercubeModel()
    model.advance()
    points = model.project_frame(scale=180.0)  # (16, 3)
    for i, j in model.edges:
        ...
"""

from __future__ import annotations

import math
from typing import NamedTuple, Optional

import numpy as np

DEFAULT_CAMERA_DISTANCE = 2.0
DEFAULT_ANGLE_STEP = 0.02

# Keeps the perspective divide finite if camera_distance is configured
# below the largest reachable |w| (sqrt(2) after rotation).
MIN_DENOMINATOR = 1e-3

UP = np.array([0.0, 1.0, 0.0])
FALLBACK_UP = np.array([0.0, 0.0, 1.0])


class Vector4(NamedTuple):
    x: float
    y: float
    z: float
    w: float


def generate_vertices() -> list[Vector4]:
    """The 16 hypercube vertices, index bits selecting coordinate signs."""
    return [
        Vector4(*(1.0 if i & (1 << k) else -1.0 for k in range(4)))
        for i in range(16)
    ]


def is_edge(i: int, j: int) -> bool:
    """True when vertices i and j differ in exactly one coordinate."""
    diff = i ^ j
    return diff != 0 and (diff & (diff - 1)) == 0


def edges(directed: bool = False) -> list[tuple[int, int]]:
    """All hypercube edges.

    Undirected (default) yields each edge once with i < j (32 edges).
    Directed yields both (i, j) and (j, i), 64 pairs.
    """
    return [
        (i, j)
        for i in range(16)
        for j in range(16)
        if is_edge(i, j) and (directed or i < j)
    ]


def rotate_zw(v: Vector4, theta: float) -> Vector4:
    c, s = math.cos(theta), math.sin(theta)
    return Vector4(v.x, v.y, v.z * c - v.w * s, v.z * s + v.w * c)


def rotate_xy(v: Vector4, theta: float) -> Vector4:
    c, s = math.cos(theta), math.sin(theta)
    return Vector4(v.x * c - v.y * s, v.x * s + v.y * c, v.z, v.w)


def rotate(v: Vector4, angle_zw: float, angle_xy: float) -> Vector4:
    """Rotate in the Z-W plane, then in the X-Y plane."""
    return rotate_xy(rotate_zw(v, angle_zw), angle_xy)


def project(v: Vector4, camera_distance: float = DEFAULT_CAMERA_DISTANCE) -> tuple[float, float, float]:
    """Perspective divide from 4-D to 3-D."""
    s = 1.0 / max(camera_distance - v.w, MIN_DENOMINATOR)
    return (v.x * s, v.y * s, v.z * s)


def rotation_matrix_4d(angle_zw: float, angle_xy: float) -> np.ndarray:
    """4x4 matrix equivalent to rotate(v, angle_zw, angle_xy) for row vectors."""
    zw = np.eye(4)
    c, s = math.cos(angle_zw), math.sin(angle_zw)
    zw[2, 2], zw[2, 3], zw[3, 2], zw[3, 3] = c, -s, s, c

    xy = np.eye(4)
    c, s = math.cos(angle_xy), math.sin(angle_xy)
    xy[0, 0], xy[0, 1], xy[1, 0], xy[1, 1] = c, -s, s, c

    return (xy @ zw).T


def project_array(points: np.ndarray, camera_distance: float = DEFAULT_CAMERA_DISTANCE) -> np.ndarray:
    """Vectorized project() for an (N, 4) array. Returns (N, 3)."""
    denom = np.maximum(camera_distance - points[:, 3], MIN_DENOMINATOR)
    return points[:, :3] / denom[:, np.newaxis]


def edge_offset(a: np.ndarray, b: np.ndarray, spacing: float = 4.0) -> np.ndarray:
    """Perpendicular offset used to draw an edge as two parallel lines.

    Crosses the edge direction with the up axis. When the edge is (nearly)
    parallel to up the z axis is used instead.
    """
    direction = np.asarray(b, dtype=np.float64) - np.asarray(a, dtype=np.float64)
    offset = np.cross(direction, UP)
    if float(offset @ offset) < 0.001:
        offset = np.cross(direction, FALLBACK_UP)
    norm = float(np.linalg.norm(offset))
    if norm < 1e-12:
        return np.zeros(3)
    return offset / norm * spacing


class HypercubeModel:
    """Rotating tesseract with cached vertices and edges.

    The Z-W rotation runs at `angle`, the X-Y rotation at half that, giving
    the characteristic inside-out tumble.
    """

    def __init__(
        self,
        camera_distance: float = DEFAULT_CAMERA_DISTANCE,
        angle_step: float = DEFAULT_ANGLE_STEP,
        reference_fps: float = 60.0,
    ):
        self.camera_distance = camera_distance
        self.angle_step = angle_step
        self.reference_fps = reference_fps
        self.angle = 0.0

        self.vertices = generate_vertices()
        self.edges = edges()
        self._vertex_array = np.array(self.vertices, dtype=np.float64)

    def advance(self, dt: Optional[float] = None) -> float:
        """Step the rotation once.

        Without dt the fixed per-frame step is used, so rotation speed
        follows the frame rate. With dt the step is scaled to a
        reference_fps-equivalent rate.
        """
        if dt is None:
            self.angle += self.angle_step
        else:
            self.angle += self.angle_step * dt * self.reference_fps
        return self.angle

    def rotated(self) -> np.ndarray:
        """(16, 4) vertices rotated to the current angle."""
        return self._vertex_array @ rotation_matrix_4d(self.angle, self.angle * 0.5)

    def project_frame(self, scale: float = 1.0) -> np.ndarray:
        """(16, 3) projected vertices for the current angle, times scale."""
        return project_array(self.rotated(), self.camera_distance) * scale

    def reset(self):
        self.angle = 0.0
