"""Engine configuration: every tunable knob in one place.

Every field has a working default. Override any subset from a YAML
file:

    enter_duration: 0.5
    record_duration: 6
    timing: elapsed
    snapshot_dir: ~/Pictures/timescape
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger("timescape.config")

TIMING_MODES = ("frame", "elapsed")
FILENAME_STYLES = ("counter", "timestamp")


@dataclass
class EngineConfig:
    # Window / camera
    width: int = 1280
    height: int = 720
    camera_index: int = 0
    video_width: int = 1280
    video_height: int = 720
    show_debug: bool = True

    # Hypercube
    camera_distance: float = 2.0  # 4-D pseudo camera, must exceed max |w|
    base_scale: Optional[float] = None  # None -> min(width, height) / 4
    angle_step: float = 0.02  # radians per frame

    # Interaction
    smoothing: float = 0.1  # lerp factor per frame
    timing: str = "frame"  # "frame" keeps per-frame constants, "elapsed" scales by dt
    reference_fps: float = 60.0

    # Capture lifecycle (seconds)
    enter_duration: float = 1.0
    record_duration: float = 10.0
    exit_duration: float = 2.0
    hold_duration: float = 3.0
    hold_cooldown: float = 15.0
    art_multiplier: int = 2

    # Particles
    star_count: int = 200
    star_link_window: int = 5
    star_link_distance: float = 150.0
    lightning_chance: float = 0.002
    seed: Optional[int] = None

    # Storage
    snapshot_dir: str = "snapshots"
    counter_file: str = "snapshots/counter.json"
    filename_style: str = "counter"

    def validate(self) -> EngineConfig:
        """Raise ValueError for values the engine cannot run with."""
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"width/height must be positive, got {self.width}x{self.height}")
        if self.video_width <= 0 or self.video_height <= 0:
            raise ValueError("video_width/video_height must be positive")
        if self.camera_distance <= 0:
            raise ValueError(f"camera_distance must be positive, got {self.camera_distance}")
        if not 0.0 < self.smoothing <= 1.0:
            raise ValueError(f"smoothing must be in (0, 1], got {self.smoothing}")
        if self.timing not in TIMING_MODES:
            raise ValueError(f"timing must be one of {TIMING_MODES}, got {self.timing!r}")
        if self.filename_style not in FILENAME_STYLES:
            raise ValueError(
                f"filename_style must be one of {FILENAME_STYLES}, got {self.filename_style!r}"
            )
        for name in ("enter_duration", "record_duration", "exit_duration", "hold_duration"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.hold_cooldown < 0:
            raise ValueError("hold_cooldown must be >= 0")
        if self.art_multiplier < 1:
            raise ValueError(f"art_multiplier must be >= 1, got {self.art_multiplier}")
        if self.star_count < 0 or self.star_link_window < 0:
            raise ValueError("star_count and star_link_window must be >= 0")
        if not 0.0 <= self.lightning_chance <= 1.0:
            raise ValueError(f"lightning_chance must be in [0, 1], got {self.lightning_chance}")
        if self.reference_fps <= 0:
            raise ValueError("reference_fps must be positive")
        return self

    @property
    def elapsed_timing(self) -> bool:
        return self.timing == "elapsed"

    def scale_for(self, width: int, height: int) -> float:
        """Base hypercube scale for a view of the given size."""
        if self.base_scale is not None:
            return float(self.base_scale)
        return min(width, height) / 4.0

    def to_dict(self) -> dict:
        return asdict(self)

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False)

    @classmethod
    def from_dict(cls, data: dict) -> EngineConfig:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
        return cls(**data).validate()

    @classmethod
    def from_yaml(cls, path: str | Path) -> EngineConfig:
        """Load a config file. Missing keys keep their defaults."""
        path = Path(path).expanduser()
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a mapping at top level")
        config = cls.from_dict(data)
        logger.info("Loaded config from %s", path)
        return config
