"""Render targets: a perspective camera plus depth-sorted draw passes.

A Surface holds a premultiplied BGRA float image. 3-D primitives are
projected through the surface camera and queued; flush() (alias
clear_depth()) draws the queued pass far-to-near into a scratch layer and
composites it over the image. Anything queued after a flush lands on top of
everything before it, which is how a depth-buffer reset behaves.

Usage:
    view = Surface(1280, 720)
    view.fill()
    view.line((0, 0, 0), (100, 0, 0), hsb(200), alpha=80, thickness=2)
    view.clear_depth()
    frame_bgr = view.to_bgr()
"""

from __future__ import annotations

import colorsys
import math
from dataclasses import dataclass
from typing import Optional, Sequence

import cv2
import numpy as np

Color = tuple[float, float, float]  # BGR in [0, 1]

FOV = math.pi / 3
NEAR_FRACTION = 0.1
COORD_LIMIT = 100_000


def hsb(hue: float, saturation: float = 100.0, brightness: float = 100.0) -> Color:
    """HSB (degrees, percent, percent) to a BGR float color."""
    r, g, b = colorsys.hsv_to_rgb(
        (hue % 360.0) / 360.0,
        min(max(saturation, 0.0), 100.0) / 100.0,
        min(max(brightness, 0.0), 100.0) / 100.0,
    )
    return (b, g, r)


def gray(level: float) -> Color:
    v = min(max(level, 0.0), 100.0) / 100.0
    return (v, v, v)


def rotation_xyz(rx: float, ry: float, rz: float) -> np.ndarray:
    """Rx @ Ry @ Rz, i.e. rotateX then rotateY then rotateZ applied to a model."""
    cx, sx = math.cos(rx), math.sin(rx)
    cy, sy = math.cos(ry), math.sin(ry)
    cz, sz = math.cos(rz), math.sin(rz)
    mx = np.array([[1, 0, 0], [0, cx, -sx], [0, sx, cx]])
    my = np.array([[cy, 0, sy], [0, 1, 0], [-sy, 0, cy]])
    mz = np.array([[cz, -sz, 0], [sz, cz, 0], [0, 0, 1]])
    return mx @ my @ mz


class Camera:
    """Pinhole camera on the +z axis looking at the origin, y pointing down.

    The focal length puts the z = 0 plane at one pixel per unit, so a point
    (x, y, 0) lands at (cx + x, cy + y). `yaw`/`pitch` orbit the camera
    around the origin.
    """

    def __init__(self, width: int, height: int, fov: float = FOV):
        self.fov = fov
        self.yaw = 0.0
        self.pitch = 0.0
        self.resize(width, height)

    def resize(self, width: int, height: int):
        self.width = width
        self.height = height
        self.focal = (height / 2.0) / math.tan(self.fov / 2.0)
        self.near = self.focal * NEAR_FRACTION

    def project(self, points: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Project (N, 3) world points.

        Returns (xy, depth): pixel coordinates (N, 2) and camera distance
        (N,). Points behind the near plane get NaN coordinates.
        """
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if self.yaw or self.pitch:
            pts = pts @ rotation_xyz(self.pitch, self.yaw, 0.0).T

        depth = self.focal - pts[:, 2]
        with np.errstate(divide="ignore", invalid="ignore"):
            s = self.focal / depth
        xy = np.empty((len(pts), 2))
        xy[:, 0] = self.width / 2.0 + pts[:, 0] * s
        xy[:, 1] = self.height / 2.0 + pts[:, 1] * s
        xy[depth <= self.near] = np.nan
        return xy, depth

    def scale_at(self, depth: float) -> float:
        """Pixels per world unit at a given camera distance."""
        return self.focal / depth if depth > self.near else 0.0


@dataclass
class _Primitive:
    depth: float
    order: int
    points: np.ndarray  # (N, 2) int32 pixels
    color: tuple[float, float, float, float]  # premultiplied BGRA
    thickness: int  # -1 fills a circle
    radius: int = 0
    closed: bool = False

    @property
    def is_circle(self) -> bool:
        return self.radius > 0


class Surface:
    """Off-screen render target with a queued, depth-sorted draw pass.

    Colors are BGR floats in [0, 1]; alpha values are percentages (0-100),
    the same scale as scene opacity.
    """

    def __init__(self, width: int, height: int, transparent: bool = False):
        self.transparent = transparent
        self.camera = Camera(width, height)
        self._pending: list[_Primitive] = []
        self._order = 0
        self._allocate(width, height)

    def _allocate(self, width: int, height: int):
        self.width = width
        self.height = height
        self.image = np.zeros((height, width, 4), dtype=np.float32)
        if not self.transparent:
            self.image[..., 3] = 1.0

    def resize(self, width: int, height: int):
        self.camera.resize(width, height)
        self._pending.clear()
        self._allocate(width, height)

    @property
    def pending(self) -> int:
        return len(self._pending)

    # --- Whole-surface operations ---

    def clear(self):
        """Transparent black (opaque black for non-transparent surfaces)."""
        self._pending.clear()
        self.image[...] = 0.0
        if not self.transparent:
            self.image[..., 3] = 1.0

    def fill(self, color: Color = (0.0, 0.0, 0.0)):
        self._pending.clear()
        self.image[..., 0] = color[0]
        self.image[..., 1] = color[1]
        self.image[..., 2] = color[2]
        self.image[..., 3] = 1.0

    def fade(self, alpha: float, color: Color = (0.0, 0.0, 0.0)):
        """Blend a full-screen rectangle of `color` at `alpha` percent."""
        self.flush()
        a = min(max(alpha, 0.0), 100.0) / 100.0
        self.image *= 1.0 - a
        self.image[..., 0] += color[0] * a
        self.image[..., 1] += color[1] * a
        self.image[..., 2] += color[2] * a
        self.image[..., 3] += a

    def composite(self, src: Surface, opacity: float = 100.0):
        """Draw `src` centred on this surface at its own pixel size.

        A larger source is cropped to this surface; a smaller one is placed
        in the middle.
        """
        self.flush()
        a = min(max(opacity, 0.0), 100.0) / 100.0
        if a <= 0.0:
            return

        ox = (src.width - self.width) // 2
        oy = (src.height - self.height) // 2
        # Overlap in source coordinates
        sx0, sy0 = max(ox, 0), max(oy, 0)
        sx1, sy1 = min(ox + self.width, src.width), min(oy + self.height, src.height)
        if sx0 >= sx1 or sy0 >= sy1:
            return
        dx0, dy0 = sx0 - ox, sy0 - oy

        patch = src.image[sy0:sy1, sx0:sx1] * a
        roi = self.image[dy0:dy0 + (sy1 - sy0), dx0:dx0 + (sx1 - sx0)]
        roi *= 1.0 - patch[..., 3:4]
        roi += patch

    # --- Queued primitives ---

    def _queue(self, depth: float, points: np.ndarray, color: Color, alpha: float,
               thickness: int, radius: int = 0, closed: bool = False):
        a = min(max(alpha, 0.0), 100.0) / 100.0
        if a <= 0.0:
            return
        pts = np.clip(np.rint(points), -COORD_LIMIT, COORD_LIMIT).astype(np.int32)
        self._pending.append(_Primitive(
            depth=float(depth),
            order=self._order,
            points=pts,
            color=(color[0] * a, color[1] * a, color[2] * a, a),
            thickness=thickness,
            radius=radius,
            closed=closed,
        ))
        self._order += 1

    def polyline(self, points: Sequence, color: Color, alpha: float = 100.0,
                 thickness: int = 1, closed: bool = False) -> bool:
        """Queue a 3-D polyline. Returns False if it fell behind the camera."""
        xy, depth = self.camera.project(np.asarray(points, dtype=np.float64))
        if len(xy) < 2 or np.isnan(xy).any():
            return False
        self._queue(depth.mean(), xy, color, alpha, max(1, int(round(thickness))), closed=closed)
        return True

    def line(self, p0: Sequence[float], p1: Sequence[float], color: Color,
             alpha: float = 100.0, thickness: int = 1) -> bool:
        return self.polyline([p0, p1], color, alpha, thickness)

    def point(self, p: Sequence[float], color: Color, alpha: float = 100.0, size: float = 1.0) -> bool:
        """Queue a screen-space dot of `size` pixels diameter."""
        xy, depth = self.camera.project(np.asarray(p, dtype=np.float64))
        if np.isnan(xy).any():
            return False
        self._queue(depth[0], xy, color, alpha, -1, radius=max(1, int(round(size / 2.0))))
        return True

    def sphere(self, p: Sequence[float], radius: float, color: Color, alpha: float = 100.0) -> bool:
        """Queue a perspective-scaled disc standing in for a sphere."""
        xy, depth = self.camera.project(np.asarray(p, dtype=np.float64))
        if np.isnan(xy).any():
            return False
        r = radius * self.camera.scale_at(float(depth[0]))
        self._queue(depth[0], xy, color, alpha, -1, radius=max(1, int(round(r))))
        return True

    def flush(self) -> int:
        """Rasterize the queued pass far-to-near and composite it.

        Returns the number of primitives drawn.
        """
        if not self._pending:
            return 0
        prims = sorted(self._pending, key=lambda p: (-p.depth, p.order))
        self._pending = []

        bbox = self._bounds(prims)
        if bbox is None:
            return 0
        x0, y0, x1, y1 = bbox
        layer = np.zeros((y1 - y0, x1 - x0, 4), dtype=np.float32)
        origin = np.array([x0, y0], dtype=np.int32)

        for p in prims:
            pts = p.points - origin
            if p.is_circle:
                cv2.circle(layer, (int(pts[0, 0]), int(pts[0, 1])), p.radius, p.color, -1, cv2.LINE_AA)
            else:
                cv2.polylines(layer, [pts.reshape(-1, 1, 2)], p.closed, p.color, p.thickness, cv2.LINE_AA)

        roi = self.image[y0:y1, x0:x1]
        roi *= 1.0 - layer[..., 3:4]
        roi += layer
        return len(prims)

    clear_depth = flush

    def _bounds(self, prims: list[_Primitive]) -> Optional[tuple[int, int, int, int]]:
        lo = np.array([np.inf, np.inf])
        hi = np.array([-np.inf, -np.inf])
        for p in prims:
            pad = p.radius if p.is_circle else p.thickness // 2 + 1
            lo = np.minimum(lo, p.points.min(axis=0) - pad)
            hi = np.maximum(hi, p.points.max(axis=0) + pad + 1)
        x0, y0 = int(max(lo[0], 0)), int(max(lo[1], 0))
        x1, y1 = int(min(hi[0], self.width)), int(min(hi[1], self.height))
        if x0 >= x1 or y0 >= y1:
            return None
        return x0, y0, x1, y1

    # --- Export ---

    def to_bgr(self) -> np.ndarray:
        """uint8 BGR image as seen over black."""
        self.flush()
        return (np.clip(self.image[..., :3], 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)

    def to_bgra(self) -> np.ndarray:
        """uint8 BGRA image with straight (non-premultiplied) alpha."""
        self.flush()
        alpha = np.clip(self.image[..., 3:4], 0.0, 1.0)
        with np.errstate(divide="ignore", invalid="ignore"):
            rgb = np.where(alpha > 0, self.image[..., :3] / alpha, 0.0)
        out = np.concatenate([np.clip(rgb, 0.0, 1.0), alpha], axis=2)
        return (out * 255.0 + 0.5).astype(np.uint8)
