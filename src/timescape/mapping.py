"""Scalar interpolation helpers shared by interaction, particles and rendering."""

from __future__ import annotations


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def linear_map(value: float, in_lo: float, in_hi: float, out_lo: float, out_hi: float,
               clamp: bool = False) -> float:
    """Re-map value from [in_lo, in_hi] to [out_lo, out_hi]."""
    if in_hi == in_lo:
        return out_lo
    t = (value - in_lo) / (in_hi - in_lo)
    if clamp:
        t = min(max(t, 0.0), 1.0)
    return out_lo + (out_hi - out_lo) * t
