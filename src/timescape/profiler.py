"""Per-frame stage timing for the render loop.

Usage:
    profiler = FrameProfiler()

    with profiler.stage("stars"):
        draw_stars()

    profiler.tick()           # once per frame, feeds the FPS estimate
    print(profiler.fps, profiler.summary())
"""

from __future__ import annotations

import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional


@dataclass
class StageStats:
    """Timing statistics for a single render stage."""
    name: str
    avg_ms: float
    max_ms: float
    p95_ms: float
    call_count: int


class FrameProfiler:
    """Rolling stage timings plus a smoothed frame rate."""

    STAGES = [
        "capture",
        "background",
        "art",
        "stars",
        "interaction",
        "hands",
        "hypercube",
        "present",
    ]

    def __init__(self, window_size: int = 120):
        self._window_size = window_size
        self._timings: dict[str, deque[float]] = {
            s: deque(maxlen=window_size) for s in self.STAGES
        }
        self._counts: dict[str, int] = {s: 0 for s in self.STAGES}
        self._frame_intervals: deque[float] = deque(maxlen=window_size)
        self._last_tick: Optional[float] = None
        self.enabled = True

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        """Context manager to time a render stage."""
        if not self.enabled:
            yield
            return

        if name not in self._timings:
            self._timings[name] = deque(maxlen=self._window_size)
            self._counts[name] = 0

        t0 = time.perf_counter()
        try:
            yield
        finally:
            self._timings[name].append((time.perf_counter() - t0) * 1000.0)
            self._counts[name] += 1

    def tick(self, now: Optional[float] = None) -> float:
        """Mark a frame boundary. Returns seconds since the previous tick (0 on the first)."""
        now = now if now is not None else time.perf_counter()
        dt = 0.0 if self._last_tick is None else now - self._last_tick
        self._last_tick = now
        if dt > 0:
            self._frame_intervals.append(dt)
        return dt

    @property
    def fps(self) -> float:
        if not self._frame_intervals:
            return 0.0
        avg = sum(self._frame_intervals) / len(self._frame_intervals)
        return 1.0 / avg if avg > 0 else 0.0

    def get_stage_stats(self, name: str) -> StageStats | None:
        timings = self._timings.get(name)
        if not timings:
            return None

        sorted_t = sorted(timings)
        n = len(sorted_t)
        return StageStats(
            name=name,
            avg_ms=sum(sorted_t) / n,
            max_ms=sorted_t[-1],
            p95_ms=sorted_t[int(n * 0.95)] if n >= 2 else sorted_t[-1],
            call_count=self._counts.get(name, 0),
        )

    def summary(self) -> dict[str, dict]:
        result = {}
        for name in self._timings:
            stats = self.get_stage_stats(name)
            if stats and stats.call_count > 0:
                result[name] = {
                    "avg_ms": round(stats.avg_ms, 3),
                    "max_ms": round(stats.max_ms, 3),
                    "p95_ms": round(stats.p95_ms, 3),
                    "calls": stats.call_count,
                }
        return result

    def reset(self):
        for d in self._timings.values():
            d.clear()
        for k in self._counts:
            self._counts[k] = 0
        self._frame_intervals.clear()
        self._last_tick = None
