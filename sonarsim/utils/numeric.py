"""
Numeric guards and angle helpers shared by the detection, contact and DEMON
modules.

Bearings follow the nautical convention: 0° = +Z (north), clockwise
positive, measured from the X/Z world plane.
"""

import math
from typing import Any


def clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    """Clamp value into [lo, hi]."""
    return max(lo, min(hi, value))


def is_finite(value: Any) -> bool:
    """True for real numbers that are neither NaN nor infinite."""
    try:
        return math.isfinite(value)
    except TypeError:
        return False


def finite_or(value: Any, default: float) -> float:
    """Return value as float when finite, otherwise the default."""
    return float(value) if is_finite(value) else default


def normalize_degrees(deg: float) -> float:
    """Wrap an angle into [0, 360)."""
    wrapped = deg % 360.0
    return 0.0 if wrapped >= 360.0 else wrapped


def circular_difference(a_deg: float, b_deg: float) -> float:
    """Smallest absolute angular separation in degrees, in [0, 180]."""
    diff = abs(normalize_degrees(a_deg) - normalize_degrees(b_deg))
    return 360.0 - diff if diff > 180.0 else diff


def bearing_deg_from_delta(dx: float, dz: float) -> float:
    """
    Bearing of the vector (dx, dz) in degrees.

    Args:
        dx: East offset (world X)
        dz: North offset (world Z)

    Returns:
        Bearing in [0, 360)
    """
    return normalize_degrees(math.degrees(math.atan2(dx, dz)))
