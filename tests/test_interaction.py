"""Tests for hand steering, the fist-hold trigger and free-look."""

import math

import numpy as np
import pytest

from timescape.capture import CaptureState, CaptureStateMachine, SnapshotStore
from timescape.gestures import FINGER_PAIRS
from timescape.interaction import (
    FreeLook,
    GestureHold,
    InteractionController,
    InteractionState,
    frame_factor,
    lerp,
)


def make_hand(index_tip=(400.0, 300.0), fist=False):
    """Pixel hand whose index fingertip sits at `index_tip`."""
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


class TestHelpers:
    def test_lerp(self):
        assert lerp(0.0, 10.0, 0.1) == pytest.approx(1.0)

    def test_frame_factor_passthrough(self):
        assert frame_factor(0.1, None, 60) == 0.1

    def test_frame_factor_one_reference_frame(self):
        assert frame_factor(0.1, 1 / 60, 60) == pytest.approx(0.1)

    def test_frame_factor_two_frames(self):
        assert frame_factor(0.1, 2 / 60, 60) == pytest.approx(1 - 0.9 ** 2)

    def test_state_rotation(self):
        assert InteractionState(1.0, 2.0, 3.0).rotation == (1.0, 2.0, 3.0)


class TestSteering:
    def test_centre_hand_targets_zero(self):
        ctl = InteractionController(video_size=(800, 600))
        ctl.update([make_hand((400.0, 300.0))], now=0.0)
        assert ctl.target_yaw == pytest.approx(0.0)
        assert ctl.target_pitch == pytest.approx(0.0)

    def test_edges_map_to_pi(self):
        ctl = InteractionController(video_size=(800, 600))
        ctl.update([make_hand((800.0, 0.0))], now=0.0)
        assert ctl.target_yaw == pytest.approx(math.pi)
        assert ctl.target_pitch == pytest.approx(-math.pi)

    def test_lerp_toward_target(self):
        ctl = InteractionController(video_size=(800, 600), smoothing=0.1)
        ctl.update([make_hand((800.0, 300.0))], now=0.0)
        assert ctl.state.rot_y == pytest.approx(math.pi * 0.1)

    def test_one_hand_keeps_scale(self):
        ctl = InteractionController(video_size=(800, 600), base_scale=150.0)
        for _ in range(20):
            ctl.update([make_hand((100.0, 100.0))], now=0.0)
        assert ctl.state.scale == 150.0

    def test_one_hand_relaxes_roll(self):
        ctl = InteractionController(video_size=(800, 600))
        ctl.state.rot_z = 1.0
        ctl.update([make_hand()], now=0.0)
        assert ctl.target_roll == 0.0
        assert ctl.state.rot_z == pytest.approx(0.9)

    def test_two_hands_roll_and_scale(self):
        ctl = InteractionController(video_size=(800, 600))
        hands = [make_hand((200.0, 300.0)), make_hand((600.0, 300.0))]
        ctl.update(hands, now=0.0)
        assert ctl.target_roll == pytest.approx(0.0)
        assert ctl.target_scale == pytest.approx(400.0)

    def test_vertical_pair_rolls_quarter_turn(self):
        ctl = InteractionController(video_size=(800, 600))
        hands = [make_hand((400.0, 100.0)), make_hand((400.0, 300.0))]
        ctl.update(hands, now=0.0)
        assert ctl.target_roll == pytest.approx(math.pi / 2)
        assert ctl.target_scale == pytest.approx(200.0)

    def test_scale_converges(self):
        ctl = InteractionController(video_size=(800, 600), base_scale=150.0)
        hands = [make_hand((200.0, 300.0)), make_hand((600.0, 300.0))]
        for _ in range(200):
            ctl.update(hands, now=0.0)
        assert ctl.state.scale == pytest.approx(400.0, abs=0.01)

    def test_no_hands_holds_state(self):
        ctl = InteractionController(video_size=(800, 600))
        ctl.state.rot_x = 0.5
        ctl.update([], now=0.0)
        assert ctl.state.rot_x == 0.5

    def test_elapsed_timing_scales_factor(self):
        a = InteractionController(video_size=(800, 600), elapsed_timing=True)
        b = InteractionController(video_size=(800, 600), elapsed_timing=True)
        hand = [make_hand((800.0, 300.0))]
        a.update(hand, now=0.0, dt=1 / 60)
        b.update(hand, now=0.0, dt=2 / 60)
        assert b.state.rot_y > a.state.rot_y

    def test_resize_resets(self):
        ctl = InteractionController(video_size=(800, 600))
        ctl.update([make_hand((700.0, 100.0))], now=0.0)
        ctl.resize(90.0)
        assert ctl.state.rotation == (0.0, 0.0, 0.0)
        assert ctl.state.scale == 90.0
        assert ctl.target_scale == 90.0


class TestGestureHold:
    def test_fires_after_duration(self):
        hold = GestureHold(duration=3.0, cooldown=15.0)
        assert not hold.update(0, 0.0, True)
        assert not hold.update(0, 2.9, True)
        assert hold.update(0, 3.0, True)

    def test_progress(self):
        hold = GestureHold(duration=3.0)
        hold.update(0, 10.0, True)
        assert hold.progress(11.5) == pytest.approx(0.5)
        assert hold.progress(20.0) == 1.0

    def test_release_cancels(self):
        hold = GestureHold(duration=3.0)
        hold.update(0, 0.0, True)
        hold.update(None, 1.0, True)
        assert not hold.holding
        assert not hold.update(0, 3.5, True)

    def test_cooldown_blocks(self):
        hold = GestureHold(duration=1.0, cooldown=15.0)
        hold.update(0, 0.0, True)
        assert hold.update(0, 1.0, True)
        assert not hold.update(0, 2.0, True)
        assert not hold.holding
        assert not hold.update(0, 16.0, True)
        assert hold.holding

    def test_ineligible_cancels(self):
        hold = GestureHold(duration=1.0)
        hold.update(0, 0.0, True)
        assert not hold.update(0, 1.5, False)
        assert not hold.holding

    def test_tracks_hand_index(self):
        hold = GestureHold()
        hold.update(1, 0.0, True)
        assert hold.hand_index == 1


class TestHoldTriggersCapture:
    def test_fist_hold_enters_capture(self, tmp_path):
        store = SnapshotStore(tmp_path, tmp_path / "counter.json")
        capture = CaptureStateMachine(store, width=64, height=48)
        ctl = InteractionController(video_size=(800, 600), hold_duration=3.0)
        fist = [make_hand(fist=True)]

        assert not ctl.update(fist, now=0.0, capture=capture)
        assert ctl.holding_hand == 0
        assert ctl.update(fist, now=3.0, capture=capture)
        assert capture.state == CaptureState.ENTERING

    def test_no_hold_outside_idle(self, tmp_path):
        store = SnapshotStore(tmp_path, tmp_path / "counter.json")
        capture = CaptureStateMachine(store, width=64, height=48)
        capture.manual_trigger(0.0)
        ctl = InteractionController(video_size=(800, 600), hold_duration=1.0)
        fist = [make_hand(fist=True)]
        ctl.update(fist, now=0.0, capture=capture)
        assert not ctl.hold.holding

    def test_open_hand_never_fires(self):
        ctl = InteractionController(video_size=(800, 600), hold_duration=1.0)
        for t in range(5):
            assert not ctl.update([make_hand()], now=float(t))


class TestFreeLook:
    def test_drag_when_enabled(self):
        look = FreeLook(sensitivity=0.01)
        look.enabled = True
        look.drag(100, 100, True)
        look.drag(150, 80, True)
        assert look.yaw == pytest.approx(0.5)
        assert look.pitch == pytest.approx(0.2)

    def test_ignored_when_disabled(self):
        look = FreeLook()
        look.drag(0, 0, True)
        look.drag(300, 0, True)
        assert look.yaw == 0.0

    def test_release_stops_drag(self):
        look = FreeLook(sensitivity=0.01)
        look.enabled = True
        look.drag(0, 0, True)
        look.drag(0, 0, False)
        look.drag(100, 0, True)
        assert look.yaw == 0.0

    def test_pitch_clamped(self):
        look = FreeLook(sensitivity=1.0)
        look.enabled = True
        look.drag(0, 100, True)
        look.drag(0, 0, True)
        assert look.pitch == pytest.approx(math.pi / 2)
