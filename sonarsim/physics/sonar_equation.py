"""
Passive Sonar Equation

    SNR = SL - TL - NL + modifiers - thermocline - occlusion + multipath

Terms:
    SL: radiated source level from platform type, speed and shaft rate
    TL: spherical spreading loss, 20·log10(R)
    NL: ambient noise at the target depth (see environment.EnvironmentModel)

References:
    - Urick, "Principles of Underwater Sound", 3rd Ed., Chapter 2
    - Ross, "Mechanics of Underwater Noise", 1976 (radiated noise vs speed)
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict

from sonarsim.utils.numeric import finite_or

# =============================================================================
# PLATFORM TYPES
# =============================================================================


class TargetType(Enum):
    """Acoustic platform categories."""

    SHIP = "SHIP"  # Surface merchant / warship
    SUBMARINE = "SUBMARINE"  # Quiet submerged platform
    BIOLOGICAL = "BIOLOGICAL"  # Whales, shrimp beds
    STATIC = "STATIC"  # Wrecks, moored objects
    TORPEDO = "TORPEDO"  # High-speed weapon


SOURCE_LEVEL_BASE_DB: Dict[TargetType, float] = {
    TargetType.SHIP: 155.0,
    TargetType.SUBMARINE: 130.0,
    TargetType.BIOLOGICAL: 140.0,
    TargetType.STATIC: 110.0,
    TargetType.TORPEDO: 170.0,
}
"""Base radiated noise level per platform type [dB re 1 µPa @ 1 m]"""


@dataclass(frozen=True)
class PassiveDetectionParameters:
    """
    Tunables for the passive sonar equation.

    Attributes:
        detection_threshold_db: SNR above which a target is detected [dB]
        shadow_zone_attenuation_db: Loss when the thermocline separates sensor and target [dB]
        passive_occlusion_attenuation_db: Loss with no line of sight [dB]
        multipath_strength_db: Amplitude of the multipath interference ripple [dB]
        multipath_frequency: Ripple frequency per sim unit of range [rad]
    """

    detection_threshold_db: float = 6.0
    shadow_zone_attenuation_db: float = 15.0
    passive_occlusion_attenuation_db: float = 25.0
    multipath_strength_db: float = 3.0
    multipath_frequency: float = 0.5


def source_level(target_type: TargetType, speed: float, rpm: float) -> float:
    """
    Radiated source level [dB].

    SL = base(type) + 20·log10(1 + 10·speed) + 5·log10(1 + rpm/60)

    The shaft-rate term applies only for rpm > 0. Unknown types fall back
    to the SHIP base level.
    """
    speed = max(0.0, finite_or(speed, 0.0))
    rpm = max(0.0, finite_or(rpm, 0.0))

    level = SOURCE_LEVEL_BASE_DB.get(target_type, SOURCE_LEVEL_BASE_DB[TargetType.SHIP])
    level += 20.0 * math.log10(1.0 + speed * 10.0)
    if rpm > 0:
        level += 5.0 * math.log10(1.0 + rpm / 60.0)
    return level


def transmission_loss(range_m: float) -> float:
    """Spherical spreading loss 20·log10(R) [dB], with R floored at 1 m."""
    return 20.0 * math.log10(max(1.0, finite_or(range_m, 1.0)))


def multipath_term(range_sim: float, params: PassiveDetectionParameters) -> float:
    """
    Deterministic multipath interference ripple [dB].

    Uses the raw sim-unit range so the ripple period stays independent of
    the meters conversion.
    """
    return math.sin(finite_or(range_sim, 0.0) * params.multipath_frequency) * params.multipath_strength_db


def passive_snr(
    source_level_db: float,
    range_m: float,
    noise_level_db: float,
    range_sim: float,
    modifier_db: float = 0.0,
    thermocline_crossed: bool = False,
    line_of_sight: bool = True,
    params: PassiveDetectionParameters = PassiveDetectionParameters(),
) -> float:
    """
    Passive sonar SNR [dB].

    Args:
        source_level_db: Radiated source level
        range_m: Range in meters (for transmission loss)
        noise_level_db: Ambient noise at the target depth
        range_sim: Range in sim units (for multipath ripple)
        modifier_db: Surface duct / convergence-zone bonus
        thermocline_crossed: Sensor and target on opposite sides of the thermocline
        line_of_sight: False when terrain occludes the path
        params: Equation tunables

    Returns:
        SNR in dB
    """
    snr = source_level_db - transmission_loss(range_m) - noise_level_db + modifier_db
    if thermocline_crossed:
        snr -= params.shadow_zone_attenuation_db
    snr += multipath_term(range_sim, params)
    if not line_of_sight:
        snr -= params.passive_occlusion_attenuation_db
    return snr
