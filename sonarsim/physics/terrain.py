"""
Seabed Terrain and Acoustic Line-of-Sight

Implements the terrain oracle interface used by the detection engine, a
procedural bathymetry model, and the sampled line-of-sight test that decides
whether a ridge or seamount blocks the direct acoustic path.

Features:
    - TerrainOracle protocol: height(x, z) of the seabed (negative below sea level)
    - Procedural bathymetry using multi-octave value noise plus seamounts
    - Sampled LOS between own-ship (seabed + 5) and target (seabed + 2)
    - Sensor depths derived from the local seabed height

Heights and depths are in meters; x/z are world (sim) coordinates.

References:
    - Urick, "Principles of Underwater Sound", 3rd Ed., Chapter 6 (bottom interaction)
    - Jensen et al., "Computational Ocean Acoustics", 2nd Ed., Chapter 1
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple

import numba
import numpy as np

# Offsets of the sensor reference points above the local seabed height
OWN_SHIP_HEIGHT_OFFSET = 5.0
TARGET_HEIGHT_OFFSET = 2.0

# Depths used when no terrain oracle is available
DEFAULT_OWN_SHIP_DEPTH = 5.0
DEFAULT_TARGET_DEPTH = 10.0

MIN_SENSOR_DEPTH = 1.0


class TerrainOracle(Protocol):
    """Anything that can report the seabed height at a world position."""

    def get_terrain_height(self, x: float, z: float) -> float:
        ...


# =============================================================================
# LINE-OF-SIGHT
# =============================================================================


@numba.jit(nopython=True, cache=True)
def _sight_line_blocked(heights: np.ndarray, own_y: float, target_y: float) -> bool:
    """
    JIT-compiled occlusion test over pre-sampled seabed heights.

    heights[i] is the seabed at fraction t = (i + 1) / (len + 1) of the path;
    the path is blocked when any sample rises above the straight sight line.
    """
    n = heights.shape[0] + 1
    for i in range(heights.shape[0]):
        t = (i + 1) / n
        line_y = own_y + (target_y - own_y) * t
        if heights[i] > line_y:
            return True
    return False


def _sample_height(oracle: TerrainOracle, x: float, z: float) -> Optional[float]:
    h = oracle.get_terrain_height(x, z)
    if h is None or not math.isfinite(h):
        return None
    return float(h)


def check_line_of_sight(
    oracle: Optional[TerrainOracle],
    own_x: float,
    own_z: float,
    target_x: float,
    target_z: float,
    sample_count: int = 10,
) -> bool:
    """
    Check whether terrain leaves a clear acoustic path.

    Sight line runs from own-ship (seabed + 5) to target (seabed + 2);
    terrain is sampled at the sample_count - 1 interior points
    t = i / sample_count.

    Args:
        oracle: Terrain oracle, or None for open water
        own_x, own_z: Own-ship position
        target_x, target_z: Target position
        sample_count: Path subdivisions

    Returns:
        True when the path is clear (always True without an oracle)
    """
    if oracle is None or sample_count < 2:
        return True

    own_h = _sample_height(oracle, own_x, own_z)
    target_h = _sample_height(oracle, target_x, target_z)
    if own_h is None or target_h is None:
        return True

    heights = np.empty(sample_count - 1, dtype=np.float64)
    for i in range(1, sample_count):
        t = i / sample_count
        h = _sample_height(
            oracle,
            own_x + (target_x - own_x) * t,
            own_z + (target_z - own_z) * t,
        )
        # Unknown samples never block
        heights[i - 1] = -np.inf if h is None else h

    return not _sight_line_blocked(
        heights, own_h + OWN_SHIP_HEIGHT_OFFSET, target_h + TARGET_HEIGHT_OFFSET
    )


def sensor_depths(
    oracle: Optional[TerrainOracle],
    own_x: float,
    own_z: float,
    target_x: float,
    target_z: float,
) -> Tuple[float, float]:
    """
    Own-ship and target depths derived from the seabed under each.

    depth = max(1, -h - offset); falls back to 5 m / 10 m without terrain.

    Returns:
        (own_depth_m, target_depth_m)
    """
    own_depth = DEFAULT_OWN_SHIP_DEPTH
    target_depth = DEFAULT_TARGET_DEPTH
    if oracle is None:
        return own_depth, target_depth

    own_h = _sample_height(oracle, own_x, own_z)
    if own_h is not None:
        own_depth = max(MIN_SENSOR_DEPTH, -own_h - OWN_SHIP_HEIGHT_OFFSET)

    target_h = _sample_height(oracle, target_x, target_z)
    if target_h is not None:
        target_depth = max(MIN_SENSOR_DEPTH, -target_h - TARGET_HEIGHT_OFFSET)

    return own_depth, target_depth


# =============================================================================
# PROCEDURAL BATHYMETRY
# =============================================================================


@numba.jit(nopython=True, cache=True)
def _value_noise_2d(x: float, z: float, seed: int) -> float:
    """Smooth hash-based value noise in [-1, 1]."""
    xi = int(np.floor(x))
    zi = int(np.floor(z))
    xf = x - xi
    zf = z - zi

    u = xf * xf * (3 - 2 * xf)
    v = zf * zf * (3 - 2 * zf)

    def corner(ix: int, iz: int) -> float:
        h = (ix * 374761393 + iz * 668265263 + seed * 1442695041) & 0x7FFFFFFF
        h = ((h ^ (h >> 13)) * 1274126177) & 0x7FFFFFFF
        return (h / 0x7FFFFFFF) * 2.0 - 1.0

    n00 = corner(xi, zi)
    n10 = corner(xi + 1, zi)
    n01 = corner(xi, zi + 1)
    n11 = corner(xi + 1, zi + 1)

    nx0 = n00 + u * (n10 - n00)
    nx1 = n01 + u * (n11 - n01)
    return nx0 + v * (nx1 - nx0)


@numba.jit(nopython=True, cache=True)
def _fractal_noise(x: float, z: float, octaves: int, persistence: float, seed: int) -> float:
    total = 0.0
    amplitude = 1.0
    frequency = 1.0
    max_value = 0.0
    for _ in range(octaves):
        total += _value_noise_2d(x * frequency, z * frequency, seed) * amplitude
        max_value += amplitude
        amplitude *= persistence
        frequency *= 2.0
    return total / max_value


@dataclass
class BathymetryConfig:
    """
    Procedural seabed configuration.

    Attributes:
        seed: Noise seed for reproducible terrain
        base_depth: Mean water depth [m]
        relief: Peak-to-mean seabed relief from noise [m]
        scale: Horizontal feature scale [sim units]
        octaves: Noise detail levels
        persistence: Amplitude decay per octave
        seamounts: (x, z, rise_m, radius) Gaussian features rising from the seabed
    """

    seed: int = 1337
    base_depth: float = 200.0
    relief: float = 40.0
    scale: float = 150.0
    octaves: int = 4
    persistence: float = 0.5
    seamounts: List[Tuple[float, float, float, float]] = field(default_factory=list)


class BathymetryMap:
    """
    Procedural seabed implementing the TerrainOracle protocol.

    Example:
        >>> seabed = BathymetryMap(BathymetryConfig(seamounts=[(50, 0, 220, 8)]))
        >>> seabed.get_terrain_height(50, 0) > seabed.get_terrain_height(0, 0)
        True
    """

    def __init__(self, config: Optional[BathymetryConfig] = None) -> None:
        self.config = config or BathymetryConfig()

    def get_terrain_height(self, x: float, z: float) -> float:
        """Seabed height at (x, z) [m], negative below sea level."""
        cfg = self.config
        noise_val = _fractal_noise(x / cfg.scale, z / cfg.scale, cfg.octaves, cfg.persistence, cfg.seed)
        height = -cfg.base_depth + noise_val * cfg.relief

        for sx, sz, rise, radius in cfg.seamounts:
            dist_sq = (x - sx) ** 2 + (z - sz) ** 2
            height += rise * math.exp(-dist_sq / (2.0 * radius**2))

        return height

    def get_depth_profile(
        self, start: Tuple[float, float], end: Tuple[float, float], num_points: int = 50
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Seabed heights sampled along a straight path.

        Returns:
            (fractions along path, heights)
        """
        fractions = np.linspace(0.0, 1.0, num_points)
        heights = np.array(
            [
                self.get_terrain_height(
                    start[0] + (end[0] - start[0]) * t,
                    start[1] + (end[1] - start[1]) * t,
                )
                for t in fractions
            ]
        )
        return fractions, heights
