"""Per-frame compositing in a fixed order.

    capture tick -> background -> depth reset -> art buffer -> stars
    -> interaction -> hands, lightning, hold ring -> live hypercube

Usage:
    ctx = EngineContext.create(config)
    renderer = FrameRenderer(ctx)
    result = renderer.render(hands, now)
    cv2.imshow("timescape", ctx.view.to_bgr())
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from timescape.capture import CaptureState
from timescape.context import EngineContext
from timescape.hypercube import edge_offset
from timescape.mapping import linear_map
from timescape.particles import FINGERTIPS, STREAK_LENGTH
from timescape.surface import Surface, gray, hsb, rotation_xyz

TRAIL_ALPHA = 10.0
HAND_DEPTH = -50.0

HAND_CHAINS = [
    [0, 1, 2, 3, 4],
    [0, 5, 6, 7, 8],
    [0, 9, 10, 11, 12],
    [0, 13, 14, 15, 16],
    [0, 17, 18, 19, 20],
]

# (stroke width, color, alpha %) from the outer halo to the white core
NEON_STROKES = [
    (60, hsb(190, 100, 100), 1.0),
    (40, hsb(190, 100, 100), 2.0),
    (25, hsb(190, 100, 100), 4.0),
    (14, hsb(190, 80, 100), 10.0),
    (7, hsb(190, 0, 100), 20.0),
]

RING_RADIUS = 120.0
RING_MARKERS = 12

VERTEX_RADIUS = 6.0
EDGE_SPACING = 4.0
VERTEX_MATERIAL = hsb(200, 10, 80)
AMBIENT_LIGHT = 0.6
ACCENT_LIGHTS = [
    (np.array([200.0, -200.0, 500.0]), np.array(hsb(0, 0, 100))),
    (np.array([-200.0, 200.0, -200.0]), np.array(hsb(200, 30, 80))),
]

STAR_LINK_COLOR = hsb(200, 50, 100)
BOLT_GLOW_COLOR = hsb(200, 80, 100)
BOLT_CORE_COLOR = hsb(200, 0, 100)
RING_COLOR = hsb(200, 80, 100)


@dataclass
class FrameResult:
    """What happened during one rendered frame."""
    state: CaptureState
    scene_opacity: float
    hand_count: int
    triggered: bool = False
    hold_progress: float = 0.0


def hand_to_world(hand: np.ndarray, video_size: tuple[int, int],
                  view_size: tuple[int, int], depth: float = HAND_DEPTH) -> np.ndarray:
    """Map (21, 2) detector pixels onto the view plane at `depth`. Returns (21, 3)."""
    vw, vh = video_size
    w, h = view_size
    pts = np.asarray(hand, dtype=np.float64)[:, :2]
    out = np.empty((len(pts), 3))
    out[:, 0] = (pts[:, 0] / vw - 0.5) * w
    out[:, 1] = (pts[:, 1] / vh - 0.5) * h
    out[:, 2] = depth
    return out


def progress_polyline(progress: float, markers: int = RING_MARKERS,
                      radius: float = RING_RADIUS) -> np.ndarray:
    """Ring polyline for a hold in progress.

    Visits every fully reached marker, then ends part-way to the next one.
    Returns (N, 2) offsets from the ring centre; empty when progress <= 0.
    """
    progress = min(max(progress, 0.0), 1.0)
    if progress <= 0.0:
        return np.empty((0, 2))

    step = 2.0 * math.pi / markers
    current = progress * markers
    full = int(math.floor(current))
    partial = current - full

    def marker(idx: int) -> tuple[float, float]:
        a = min(idx, markers) * step
        return (math.cos(a) * radius, math.sin(a) * radius)

    pts = [marker(i) for i in range(full + 1)]
    if progress < 1.0:
        (x1, y1), (x2, y2) = marker(full), marker(full + 1)
        pts.append((x1 + (x2 - x1) * partial, y1 + (y2 - y1) * partial))
    return np.array(pts)


def lit_color(position: np.ndarray, material=VERTEX_MATERIAL) -> tuple[float, float, float]:
    """Ambient plus two accent point lights on a camera-facing bead."""
    normal = np.array([0.0, 0.0, 1.0])
    light = np.full(3, AMBIENT_LIGHT)
    for pos, color in ACCENT_LIGHTS:
        to_light = pos - position
        norm = np.linalg.norm(to_light)
        if norm > 1e-9:
            light = light + color * max(0.0, float(to_light @ normal) / norm)
    lit = np.clip(np.asarray(material) * light, 0.0, 1.0)
    return (float(lit[0]), float(lit[1]), float(lit[2]))


class FrameRenderer:
    """Draws one frame of the engine context onto its view surface."""

    def __init__(self, ctx: EngineContext):
        self.ctx = ctx

    def render(self, hands: Sequence[np.ndarray], now: float,
               dt: Optional[float] = None) -> FrameResult:
        ctx = self.ctx
        view = ctx.view
        capture = ctx.capture
        prof = ctx.profiler
        hands = list(hands)
        dt = dt if ctx.config.elapsed_timing else None

        ctx.frame_count += 1
        view.camera.yaw = ctx.interaction.free_look.yaw
        view.camera.pitch = ctx.interaction.free_look.pitch

        with prof.stage("capture"):
            opacity = capture.tick(now)
        state = capture.state

        with prof.stage("background"):
            if state in (CaptureState.ACTIVE, CaptureState.ENTERING):
                view.fill()
            else:
                view.fade(TRAIL_ALPHA)
            view.clear_depth()

        ctx.model.advance(dt)

        with prof.stage("art"):
            if state == CaptureState.ACTIVE:
                if hands:
                    self.draw_hypercube(capture.art, 100.0)
                    capture.art.clear_depth()
                view.composite(capture.art, 100.0)
            elif state == CaptureState.EXITING:
                view.composite(capture.art, capture.art_opacity)

        with prof.stage("stars"):
            scale = ctx.interaction.state.scale
            zoom_speed = scale - ctx.prev_scale
            ctx.prev_scale = scale
            ctx.stars.step(zoom_speed)
            if opacity > 0:
                self.draw_stars(view, opacity)
            view.clear_depth()

        with prof.stage("interaction"):
            triggered = ctx.interaction.update(hands, now, capture, dt)

        hold = ctx.interaction.hold
        with prof.stage("hands"):
            if opacity > 0:
                self.draw_hands(view, hands, opacity)
                self.draw_lightning(view, hands, opacity)
                if hold.holding and hold.hand_index is not None and hold.hand_index < len(hands):
                    self.draw_hold_ring(view, hands[hold.hand_index], hold.progress(now))
                view.clear_depth()

        with prof.stage("hypercube"):
            if capture.state != CaptureState.ACTIVE and hands and opacity > 0:
                self.draw_hypercube(view, opacity)
                view.clear_depth()

        ctx.interaction.free_look.enabled = capture.state == CaptureState.IDLE and not hands

        return FrameResult(
            state=capture.state,
            scene_opacity=opacity,
            hand_count=len(hands),
            triggered=triggered,
            hold_progress=hold.progress(now),
        )

    # --- Layers ---

    def draw_hypercube(self, surface: Surface, opacity: float = 100.0):
        ctx = self.ctx
        pts = ctx.model.project_frame(ctx.interaction.state.scale)
        rot = rotation_xyz(*ctx.interaction.state.rotation)
        world = pts @ rot.T

        for p in world:
            if opacity < 100.0:
                surface.sphere(p, VERTEX_RADIUS, VERTEX_MATERIAL, opacity)
            else:
                surface.sphere(p, VERTEX_RADIUS, lit_color(p))

        f = ctx.frame_count
        for i, j in ctx.model.edges:
            hue = linear_map(math.sin(f * 0.02 + i * 0.5), -1.0, 1.0, 190.0, 290.0)
            sat = linear_map(math.cos(f * 0.03 + j), -1.0, 1.0, 80.0, 100.0)
            color = hsb(hue, sat, 100.0)

            off = edge_offset(pts[i], pts[j], EDGE_SPACING) @ rot.T
            a, b = world[i], world[j]
            surface.line(a + off, b + off, color, opacity)
            surface.line(a - off, b - off, color, opacity)

    def draw_stars(self, surface: Surface, opacity: float):
        stars = self.ctx.stars
        pos = stars.positions()

        for link in stars.links(opacity):
            surface.line(pos[link.i], pos[link.j], STAR_LINK_COLOR, link.alpha)

        levels = stars.twinkle()
        if stars.warping:
            streak = np.array([0.0, 0.0, stars.last_zoom_speed * STREAK_LENGTH])
            for p, level in zip(pos, levels):
                surface.line(p, p - streak, gray(level), opacity, thickness=2)
        else:
            for p, level in zip(pos, levels):
                surface.point(p, gray(level), opacity, size=3)

    def _hands_world(self, hands: Sequence[np.ndarray]) -> list[np.ndarray]:
        ctx = self.ctx
        video = (ctx.interaction.video_width, ctx.interaction.video_height)
        view = (ctx.view.width, ctx.view.height)
        return [hand_to_world(h, video, view) for h in hands]

    def draw_hands(self, surface: Surface, hands: Sequence[np.ndarray], opacity: float):
        """Neon skeleton: each stroke pass is flushed so the passes stack into a glow."""
        worlds = self._hands_world(hands)
        if not worlds:
            return
        for width, color, alpha in NEON_STROKES:
            for pts in worlds:
                for chain in HAND_CHAINS:
                    surface.polyline(pts[chain], color, alpha * opacity / 100.0, thickness=width)
            surface.clear_depth()

    def draw_lightning(self, surface: Surface, hands: Sequence[np.ndarray], opacity: float):
        lightning = self.ctx.lightning
        anchors = [pts[tip] for pts in self._hands_world(hands) for tip in FINGERTIPS]
        lightning.emit(anchors)
        for bolt in lightning.step():
            surface.polyline(bolt.points, BOLT_GLOW_COLOR, bolt.glow_alpha(opacity), thickness=15)
            surface.polyline(bolt.points, BOLT_CORE_COLOR, bolt.core_alpha(opacity), thickness=5)

    def draw_hold_ring(self, surface: Surface, hand: np.ndarray, progress: float):
        """Constellation ring around the palm that fills as the fist is held."""
        pts = self._hands_world([hand])[0]
        center = (pts[0] + pts[9]) / 2.0
        f = self.ctx.frame_count

        step = 2.0 * math.pi / RING_MARKERS
        for i in range(RING_MARKERS):
            a = i * step
            marker = center + np.array([math.cos(a) * RING_RADIUS, math.sin(a) * RING_RADIUS, 0.0])
            surface.point(marker, gray(100.0), size=4.0 + math.sin(f * 0.2 + i) * 2.0)

        path = progress_polyline(progress)
        if len(path) >= 2:
            path3d = np.column_stack([path + center[:2], np.full(len(path), center[2])])
            surface.polyline(path3d, RING_COLOR, thickness=2)
