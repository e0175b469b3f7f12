"""Engine context: all mutable animation state in one explicit object."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from timescape.capture import CaptureStateMachine, SnapshotStore
from timescape.config import EngineConfig
from timescape.gestures import GestureRecognizer
from timescape.hypercube import HypercubeModel
from timescape.interaction import InteractionController
from timescape.particles import LightningField, StarField
from timescape.profiler import FrameProfiler
from timescape.surface import Surface

logger = logging.getLogger("timescape.context")


@dataclass
class EngineContext:
    """Everything a frame reads or writes. Passed to the renderer explicitly."""
    config: EngineConfig
    view: Surface
    model: HypercubeModel
    recognizer: GestureRecognizer
    interaction: InteractionController
    capture: CaptureStateMachine
    stars: StarField
    lightning: LightningField
    rng: np.random.Generator
    profiler: FrameProfiler = field(default_factory=FrameProfiler)
    frame_count: int = 0
    prev_scale: float = 0.0
    show_debug: bool = True

    @classmethod
    def create(
        cls,
        config: Optional[EngineConfig] = None,
        store: Optional[SnapshotStore] = None,
    ) -> EngineContext:
        config = (config or EngineConfig()).validate()
        w, h = config.width, config.height
        rng = np.random.default_rng(config.seed)
        store = store or SnapshotStore(config.snapshot_dir, config.counter_file, config.filename_style)

        recognizer = GestureRecognizer()
        base_scale = config.scale_for(w, h)
        ctx = cls(
            config=config,
            view=Surface(w, h),
            model=HypercubeModel(config.camera_distance, config.angle_step, config.reference_fps),
            recognizer=recognizer,
            interaction=InteractionController(
                video_size=(config.video_width, config.video_height),
                base_scale=base_scale,
                smoothing=config.smoothing,
                hold_duration=config.hold_duration,
                hold_cooldown=config.hold_cooldown,
                elapsed_timing=config.elapsed_timing,
                reference_fps=config.reference_fps,
                recognizer=recognizer,
            ),
            capture=CaptureStateMachine(
                store,
                width=w,
                height=h,
                art_multiplier=config.art_multiplier,
                enter_duration=config.enter_duration,
                record_duration=config.record_duration,
                exit_duration=config.exit_duration,
            ),
            stars=StarField(
                config.star_count, w, h, rng=rng,
                window=config.star_link_window,
                link_distance=config.star_link_distance,
            ),
            lightning=LightningField(config.lightning_chance, rng=rng),
            rng=rng,
            prev_scale=base_scale,
            show_debug=config.show_debug,
        )
        logger.debug("Engine context created (%dx%d, snapshot #%d)", w, h, ctx.capture.counter)
        return ctx

    def resize(self, width: int, height: int):
        """New view size: reallocate surfaces and reset the interaction state."""
        self.view.resize(width, height)
        self.capture.resize(width, height)
        base_scale = self.config.scale_for(width, height)
        self.interaction.resize(base_scale)
        self.prev_scale = base_scale
        logger.info("Resized view to %dx%d", width, height)

    def set_video_size(self, width: int, height: int):
        """Keypoint coordinate range of the detector's input frames."""
        self.interaction.video_width = width
        self.interaction.video_height = height
