"""Tests for frame compositing and the engine context."""

import math

import numpy as np
import pytest

from timescape.capture import CaptureState
from timescape.config import EngineConfig
from timescape.context import EngineContext
from timescape.gestures import FINGER_PAIRS
from timescape.renderer import (
    HAND_DEPTH,
    RING_MARKERS,
    RING_RADIUS,
    FrameRenderer,
    hand_to_world,
    lit_color,
    progress_polyline,
)
from timescape.surface import Surface


def make_hand(index_tip=(400.0, 300.0), fist=False):
    tx, ty = index_tip
    cx, cy = tx + 10, ty + (30 if fist else 120)
    lm = np.zeros((21, 2), dtype=np.float32)
    lm[:] = [cx, cy]
    for k, (tip, pip) in enumerate(FINGER_PAIRS):
        x = cx - 10 + k * 20
        lm[pip] = [x, cy - 70]
        lm[tip] = [x, cy - (30 if fist else 120)]
    lm[8] = [tx, ty]
    return lm


@pytest.fixture
def config(tmp_path):
    return EngineConfig(
        width=160,
        height=120,
        video_width=800,
        video_height=600,
        star_count=0,
        lightning_chance=0.0,
        seed=0,
        snapshot_dir=str(tmp_path / "shots"),
        counter_file=str(tmp_path / "shots" / "counter.json"),
    )


@pytest.fixture
def ctx(config):
    return EngineContext.create(config)


class TestHelpers:
    def test_hand_to_world_centre(self):
        hand = np.full((21, 2), [400.0, 300.0])
        pts = hand_to_world(hand, (800, 600), (160, 120))
        assert pts.shape == (21, 3)
        assert pts[0] == pytest.approx([0.0, 0.0, HAND_DEPTH])

    def test_hand_to_world_corner(self):
        hand = np.zeros((21, 2))
        pts = hand_to_world(hand, (800, 600), (160, 120))
        assert pts[0, :2] == pytest.approx([-80.0, -60.0])

    def test_progress_empty(self):
        assert len(progress_polyline(0.0)) == 0
        assert len(progress_polyline(-1.0)) == 0

    def test_progress_complete_closes_ring(self):
        pts = progress_polyline(1.0)
        assert len(pts) == RING_MARKERS + 1
        assert pts[0] == pytest.approx(pts[-1])
        assert np.hypot(pts[:, 0], pts[:, 1]) == pytest.approx(np.full(len(pts), RING_RADIUS))

    def test_progress_partial_segment(self):
        pts = progress_polyline(3.5 / RING_MARKERS)
        assert len(pts) == 5
        step = 2 * math.pi / RING_MARKERS
        m3 = np.array([math.cos(3 * step), math.sin(3 * step)]) * RING_RADIUS
        m4 = np.array([math.cos(4 * step), math.sin(4 * step)]) * RING_RADIUS
        assert pts[-1] == pytest.approx((m3 + m4) / 2)

    def test_lit_color_in_range(self):
        c = lit_color(np.array([10.0, -20.0, 5.0]))
        assert len(c) == 3
        assert all(0.0 <= v <= 1.0 for v in c)


class TestEngineContext:
    def test_create_wires_config(self, ctx, config):
        assert (ctx.view.width, ctx.view.height) == (160, 120)
        assert ctx.interaction.state.scale == pytest.approx(30.0)
        assert ctx.prev_scale == pytest.approx(30.0)
        assert ctx.capture.art.width == 160 * config.art_multiplier
        assert ctx.capture.counter == 1
        assert len(ctx.stars) == 0

    def test_resize(self, ctx):
        ctx.interaction.state.rot_x = 1.0
        ctx.resize(200, 100)
        assert (ctx.view.width, ctx.view.height) == (200, 100)
        assert (ctx.capture.art.width, ctx.capture.art.height) == (400, 200)
        assert ctx.interaction.state.rot_x == 0.0
        assert ctx.interaction.state.scale == pytest.approx(25.0)

    def test_set_video_size(self, ctx):
        ctx.set_video_size(640, 480)
        assert (ctx.interaction.video_width, ctx.interaction.video_height) == (640, 480)

    def test_invalid_config_rejected(self):
        with pytest.raises(ValueError):
            EngineContext.create(EngineConfig(timing="sometimes"))


class TestFrameRenderer:
    def test_idle_without_hands(self, ctx):
        result = FrameRenderer(ctx).render([], now=0.0)
        assert result.state == CaptureState.IDLE
        assert result.scene_opacity == 100.0
        assert result.hand_count == 0
        assert not result.triggered
        assert ctx.frame_count == 1

    def test_empty_scene_stays_black(self, ctx):
        FrameRenderer(ctx).render([], now=0.0)
        assert ctx.view.to_bgr().max() == 0

    def test_hands_draw_something(self, ctx):
        FrameRenderer(ctx).render([make_hand()], now=0.0)
        assert ctx.view.to_bgr().max() > 0

    def test_draw_hypercube_centred(self, ctx):
        surface = Surface(160, 120)
        FrameRenderer(ctx).draw_hypercube(surface, 100.0)
        img = surface.to_bgr()
        assert img[40:80, 50:110].max() > 0
        assert img[:5, :5].max() == 0

    def test_hypercube_advances_each_frame(self, ctx):
        renderer = FrameRenderer(ctx)
        renderer.render([], now=0.0)
        renderer.render([], now=0.1)
        assert ctx.model.angle == pytest.approx(2 * ctx.config.angle_step)

    def test_free_look_only_when_idle_and_empty(self, ctx):
        renderer = FrameRenderer(ctx)
        renderer.render([], now=0.0)
        assert ctx.interaction.free_look.enabled
        renderer.render([make_hand()], now=0.1)
        assert not ctx.interaction.free_look.enabled

    def test_trail_fades(self, ctx):
        renderer = FrameRenderer(ctx)
        ctx.view.fill((1.0, 1.0, 1.0))
        renderer.render([], now=0.0)
        assert ctx.view.image[0, 0, 0] == pytest.approx(0.9)

    def test_active_draws_into_art(self, ctx):
        renderer = FrameRenderer(ctx)
        ctx.capture.manual_trigger(0.0)
        result = renderer.render([make_hand()], now=1.0)
        assert result.state == CaptureState.ACTIVE
        assert result.scene_opacity == 0.0
        assert ctx.capture.art.image[..., 3].max() > 0
        assert ctx.view.to_bgr().max() > 0

    def test_active_without_hands_leaves_art_empty(self, ctx):
        renderer = FrameRenderer(ctx)
        ctx.capture.manual_trigger(0.0)
        renderer.render([], now=1.0)
        assert ctx.capture.art.image.max() == 0.0

    def test_art_accumulates(self, ctx):
        renderer = FrameRenderer(ctx)
        ctx.capture.manual_trigger(0.0)
        renderer.render([make_hand()], now=1.0)
        first = (ctx.capture.art.image[..., 3] > 0).sum()
        for i in range(10):
            renderer.render([make_hand()], now=1.1 + i * 0.1)
        assert (ctx.capture.art.image[..., 3] > 0).sum() > first

    def test_full_capture_through_renderer(self, ctx, tmp_path):
        renderer = FrameRenderer(ctx)
        hands = [make_hand()]
        ctx.capture.manual_trigger(0.0)
        states = [renderer.render(hands, now=t).state for t in (0.5, 1.0, 5.0, 11.0, 12.0, 13.0)]
        assert states == [
            CaptureState.ENTERING,
            CaptureState.ACTIVE,
            CaptureState.ACTIVE,
            CaptureState.EXITING,
            CaptureState.EXITING,
            CaptureState.IDLE,
        ]
        saved = sorted((tmp_path / "shots").glob("*.png"))
        assert [p.name for p in saved] == ["timescape_1001.png"]
        assert ctx.capture.store.load_counter() == 2

    def test_fist_hold_reports_progress_and_triggers(self, ctx):
        renderer = FrameRenderer(ctx)
        fist = [make_hand(fist=True)]
        renderer.render(fist, now=0.0)
        mid = renderer.render(fist, now=1.5)
        assert mid.hold_progress == pytest.approx(0.5)
        done = renderer.render(fist, now=3.0)
        assert done.triggered
        assert ctx.capture.state == CaptureState.ENTERING

    def test_elapsed_timing_uses_dt(self, config):
        config.timing = "elapsed"
        ctx = EngineContext.create(config)
        FrameRenderer(ctx).render([], now=0.0, dt=0.5)
        assert ctx.model.angle == pytest.approx(config.angle_step * 0.5 * config.reference_fps)

    def test_frame_timing_ignores_dt(self, ctx):
        FrameRenderer(ctx).render([], now=0.0, dt=0.5)
        assert ctx.model.angle == pytest.approx(ctx.config.angle_step)

    def test_stars_and_lightning_run(self, config):
        config.star_count = 30
        config.lightning_chance = 1.0
        ctx = EngineContext.create(config)
        renderer = FrameRenderer(ctx)
        renderer.render([make_hand()], now=0.0)
        assert len(ctx.lightning) == 5
        assert ctx.view.to_bgr().max() > 0

    def test_profiler_records_stages(self, ctx):
        FrameRenderer(ctx).render([make_hand()], now=0.0)
        summary = ctx.profiler.summary()
        for stage in ("capture", "background", "stars", "interaction", "hands", "hypercube"):
            assert stage in summary
