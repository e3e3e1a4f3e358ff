"""Shared numeric helpers."""

from .numeric import (
    bearing_deg_from_delta,
    circular_difference,
    clamp,
    finite_or,
    is_finite,
    normalize_degrees,
)

__all__ = [
    "clamp",
    "is_finite",
    "finite_or",
    "normalize_degrees",
    "circular_difference",
    "bearing_deg_from_delta",
]
