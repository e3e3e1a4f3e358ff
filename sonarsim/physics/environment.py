"""
Ocean Environment Model

Layered temperature/sound-speed profile, ambient noise and propagation
modifiers (surface duct trapping and convergence-zone bands) used by the
passive and active detection paths.

Features:
    - Named ocean profiles (DEEP_OCEAN, COASTAL), fixed per scenario
    - Mackenzie-style sound speed from a three-layer temperature profile
    - Wenz-style ambient noise (sea state + distant shipping)
    - Surface duct and convergence-zone SNR / echo-gain modifiers

All functions are deterministic in (depth, range) for a given profile.
The formulas are deliberately simplified approximations of real
oceanography.

References:
    - Urick, "Principles of Underwater Sound", 3rd Ed., Chapters 5-7
    - Mackenzie, JASA 70(3), 1981 (sound speed)
    - Wenz, JASA 34(12), 1962 (ambient noise)
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Union

from sonarsim.utils.numeric import finite_or

from .constants import (
    CONVERGENCE_ZONE_ECHO_GAIN,
    CONVERGENCE_ZONE_SNR_BONUS,
    DEEP_NOISE_DEPTH,
    DEEP_NOISE_REDUCTION,
    DEEP_WATER_TEMPERATURE,
    DEFAULT_NOISE_FREQUENCY,
    MIXED_LAYER_TEMPERATURE_DROP,
    REFERENCE_SALINITY,
    REFRACTION_GRADIENT,
    SEA_STATE_NOISE_BASE,
    SHIPPING_NOISE_CORNER_HZ,
    SHIPPING_NOISE_HIGH_FREQ,
    SHIPPING_NOISE_LOW_FREQ,
    SURFACE_DUCT_ECHO_GAIN,
    SURFACE_DUCT_MAX_RANGE,
    SURFACE_DUCT_MIN_RANGE,
    SURFACE_DUCT_SNR_BONUS,
    THERMOCLINE_TEMPERATURE_DROP,
)

logger = logging.getLogger(__name__)


# =============================================================================
# OCEAN PROFILES
# =============================================================================


class ProfileName(Enum):
    """Built-in ocean profile presets."""

    DEEP_OCEAN = "deep_ocean"  # Blue water, deep sound channel
    COASTAL = "coastal"  # Shallow shelf, strong mixing


@dataclass(frozen=True)
class OceanProfile:
    """
    Layered ocean profile.

    Attributes:
        name: Profile identifier
        surface_temp: Sea surface temperature [°C]
        thermocline_depth: Base of the mixed layer / top of thermocline [m]
        isothermal_depth: Base of the thermocline [m]
        bottom_depth: Water depth [m]
        surface_duct_depth: Depth of the surface sound duct [m]
        convergence_zone_start: Range of the first CZ band center [m]
        convergence_zone_interval: Spacing between CZ band centers [m]
        convergence_zone_width: Half-width of each CZ band [m]
        sea_state: Douglas sea state (0-9)
    """

    name: str
    surface_temp: float
    thermocline_depth: float
    isothermal_depth: float
    bottom_depth: float
    surface_duct_depth: float
    convergence_zone_start: float
    convergence_zone_interval: float
    convergence_zone_width: float
    sea_state: float = 2.0


DEEP_OCEAN = OceanProfile(
    name="DEEP_OCEAN",
    surface_temp=20.0,
    thermocline_depth=200.0,
    isothermal_depth=1000.0,
    bottom_depth=4000.0,
    surface_duct_depth=60.0,
    convergence_zone_start=1800.0,
    convergence_zone_interval=1800.0,
    convergence_zone_width=120.0,
)

COASTAL = OceanProfile(
    name="COASTAL",
    surface_temp=15.0,
    thermocline_depth=50.0,
    isothermal_depth=150.0,
    bottom_depth=300.0,
    surface_duct_depth=25.0,
    convergence_zone_start=1200.0,
    convergence_zone_interval=1200.0,
    convergence_zone_width=80.0,
)

OCEAN_PROFILES: Dict[str, OceanProfile] = {
    ProfileName.DEEP_OCEAN.value: DEEP_OCEAN,
    ProfileName.COASTAL.value: COASTAL,
}


def get_profile(name: Union[str, ProfileName]) -> OceanProfile:
    """
    Look up a preset profile by name.

    Raises:
        ValueError: If the profile name is unknown
    """
    key = name.value if isinstance(name, ProfileName) else str(name).strip().lower()
    if key not in OCEAN_PROFILES:
        raise ValueError(f"Unknown ocean profile: {name!r} (expected one of {sorted(OCEAN_PROFILES)})")
    return OCEAN_PROFILES[key]


# =============================================================================
# PROPAGATION MODIFIERS
# =============================================================================


@dataclass(frozen=True)
class ConvergenceZoneBand:
    """Nearest convergence-zone band for a given range."""

    in_zone: bool
    band_index: int  # 0 = first band at convergence_zone_start
    center_m: float


@dataclass(frozen=True)
class AcousticModifiers:
    """
    Propagation modifiers applied on top of the sonar equation.

    Attributes:
        snr_modifier_db: Additive SNR bonus [dB]
        echo_gain: Multiplier applied to active echo intensity
        duct_active: Both ends trapped in the surface duct
        convergence_band: CZ band index, or None outside a band
    """

    snr_modifier_db: float = 0.0
    echo_gain: float = 1.0
    duct_active: bool = False
    convergence_band: Optional[int] = None

    def to_dict(self) -> Dict:
        return {
            "snr_modifier_db": self.snr_modifier_db,
            "echo_gain": self.echo_gain,
            "duct_active": self.duct_active,
            "convergence_band": self.convergence_band,
        }


NEUTRAL_MODIFIERS = AcousticModifiers()


# =============================================================================
# ENVIRONMENT MODEL
# =============================================================================


class EnvironmentModel:
    """
    Ocean acoustics for one scenario.

    The profile is chosen at construction and never changes afterwards.

    Example:
        >>> env = EnvironmentModel("coastal")
        >>> env.sound_speed(100.0)
        >>> env.get_acoustic_modifiers(10.0, 15.0, 800.0).snr_modifier_db
        4.5
    """

    def __init__(
        self,
        profile: Union[str, ProfileName, OceanProfile] = ProfileName.DEEP_OCEAN,
        sea_state: Optional[float] = None,
    ) -> None:
        """
        Args:
            profile: Preset name or a custom OceanProfile
            sea_state: Optional sea-state override for the preset
        """
        if isinstance(profile, OceanProfile):
            base = profile
        else:
            base = get_profile(profile)

        if sea_state is not None:
            base = OceanProfile(
                name=base.name,
                surface_temp=base.surface_temp,
                thermocline_depth=base.thermocline_depth,
                isothermal_depth=base.isothermal_depth,
                bottom_depth=base.bottom_depth,
                surface_duct_depth=base.surface_duct_depth,
                convergence_zone_start=base.convergence_zone_start,
                convergence_zone_interval=base.convergence_zone_interval,
                convergence_zone_width=base.convergence_zone_width,
                sea_state=max(0.0, finite_or(sea_state, base.sea_state)),
            )

        self._profile = base
        logger.debug("Environment profile %s (sea state %.1f)", base.name, base.sea_state)

    @property
    def profile(self) -> OceanProfile:
        return self._profile

    # ═══ Water column ═══

    def temperature(self, depth: float) -> float:
        """
        Water temperature at depth [°C].

        Mixed layer: near-linear 1 °C drop down to the thermocline.
        Thermocline: linear 15 °C drop down to the isothermal depth.
        Below: constant deep-water temperature.
        """
        p = self._profile
        depth = max(0.0, finite_or(depth, 0.0))

        if depth < p.thermocline_depth:
            return p.surface_temp - (depth / p.thermocline_depth) * MIXED_LAYER_TEMPERATURE_DROP

        if depth < p.isothermal_depth:
            progress = (depth - p.thermocline_depth) / (p.isothermal_depth - p.thermocline_depth)
            return (p.surface_temp - MIXED_LAYER_TEMPERATURE_DROP) - progress * THERMOCLINE_TEMPERATURE_DROP

        return DEEP_WATER_TEMPERATURE

    def sound_speed(self, depth: float) -> float:
        """
        Sound speed at depth [m/s] (Mackenzie simplification).

        c = 1449.2 + 4.6T - 0.055T² + 0.00029T³ + (1.34 - 0.01T)(S - 35) + 0.016D
        """
        depth = max(0.0, finite_or(depth, 0.0))
        t = self.temperature(depth)
        s = REFERENCE_SALINITY
        return (
            1449.2
            + 4.6 * t
            - 0.055 * t**2
            + 0.00029 * t**3
            + (1.34 - 0.01 * t) * (s - 35.0)
            + 0.016 * depth
        )

    def ambient_noise(self, depth: float, freq: float = DEFAULT_NOISE_FREQUENCY) -> float:
        """
        Ambient noise level [dB re 1 µPa].

        NL = 40 + 20·log10(sea_state + 1) + shipping(freq) - 3 dB below 500 m
        """
        depth = finite_or(depth, 0.0)
        freq = finite_or(freq, DEFAULT_NOISE_FREQUENCY)

        shipping = SHIPPING_NOISE_LOW_FREQ if freq < SHIPPING_NOISE_CORNER_HZ else SHIPPING_NOISE_HIGH_FREQ
        sea = SEA_STATE_NOISE_BASE + 20.0 * math.log10(self._profile.sea_state + 1.0)
        depth_factor = -DEEP_NOISE_REDUCTION if depth > DEEP_NOISE_DEPTH else 0.0
        return shipping + sea + depth_factor

    def is_thermocline_between(self, depth_a: float, depth_b: float) -> bool:
        """True when the thermocline lies strictly between the two depths."""
        lo = min(depth_a, depth_b)
        hi = max(depth_a, depth_b)
        return lo < self._profile.thermocline_depth < hi

    def refraction_gradient(self) -> float:
        return REFRACTION_GRADIENT

    # ═══ Propagation effects ═══

    def is_in_surface_duct(self, depth: float) -> bool:
        return finite_or(depth, math.inf) <= self._profile.surface_duct_depth

    def get_convergence_zone_band(self, range_m: float) -> ConvergenceZoneBand:
        """
        Nearest convergence-zone band for a horizontal range.

        Bands are centered at start + k·interval (k = 0, 1, ...).
        """
        p = self._profile
        range_m = max(0.0, finite_or(range_m, 0.0))

        index = int(round((range_m - p.convergence_zone_start) / p.convergence_zone_interval))
        index = max(0, index)
        center = p.convergence_zone_start + index * p.convergence_zone_interval
        in_zone = abs(range_m - center) <= p.convergence_zone_width
        return ConvergenceZoneBand(in_zone=in_zone, band_index=index, center_m=center)

    def get_acoustic_modifiers(
        self, own_depth: float, target_depth: float, range_m: float
    ) -> AcousticModifiers:
        """
        SNR / echo-gain modifiers for a sensor-target pair.

        Surface duct: both ends at or above duct depth and
        200 m ≤ range ≤ 2200 m → +4.5 dB, echo ×1.16.
        Convergence zone: own OR target at or below duct depth and range
        inside a CZ band → +3.0 dB, echo ×1.1.
        Both effects stack.
        """
        if not (
            math.isfinite(own_depth) and math.isfinite(target_depth) and math.isfinite(range_m)
        ):
            return NEUTRAL_MODIFIERS

        p = self._profile
        snr_mod = 0.0
        echo_gain = 1.0

        duct_active = (
            own_depth <= p.surface_duct_depth
            and target_depth <= p.surface_duct_depth
            and SURFACE_DUCT_MIN_RANGE <= range_m <= SURFACE_DUCT_MAX_RANGE
        )
        if duct_active:
            snr_mod += SURFACE_DUCT_SNR_BONUS
            echo_gain *= SURFACE_DUCT_ECHO_GAIN

        convergence_band = None
        if own_depth >= p.surface_duct_depth or target_depth >= p.surface_duct_depth:
            band = self.get_convergence_zone_band(range_m)
            if band.in_zone:
                convergence_band = band.band_index
                snr_mod += CONVERGENCE_ZONE_SNR_BONUS
                echo_gain *= CONVERGENCE_ZONE_ECHO_GAIN

        return AcousticModifiers(
            snr_modifier_db=snr_mod,
            echo_gain=echo_gain,
            duct_active=duct_active,
            convergence_band=convergence_band,
        )


# =============================================================================
# VALIDATION
# =============================================================================


def validate_sound_speed_profile(profile: Union[str, OceanProfile] = "deep_ocean") -> dict:
    """
    Sanity-check the sound-speed profile of a preset.

    Checks that speed is highest at the surface within the mixed layer,
    falls through the thermocline and rises again with pressure in the
    isothermal layer (deep sound channel).

    Returns:
        Dict containing parameters, computed values and validation status
    """
    env = EnvironmentModel(profile)
    p = env.profile

    c_surface = env.sound_speed(0.0)
    c_thermocline = env.sound_speed(p.thermocline_depth)
    c_isothermal = env.sound_speed(p.isothermal_depth)
    c_deep = env.sound_speed(p.isothermal_depth + 1000.0)

    falls_through_thermocline = c_isothermal < c_thermocline
    rises_below_axis = c_deep > c_isothermal
    in_physical_range = all(1400.0 < c < 1600.0 for c in (c_surface, c_thermocline, c_isothermal, c_deep))

    return {
        "parameters": {
            "profile": p.name,
            "surface_temp_C": p.surface_temp,
            "thermocline_depth_m": p.thermocline_depth,
            "isothermal_depth_m": p.isothermal_depth,
        },
        "computed_values": {
            "c_surface_mps": c_surface,
            "c_thermocline_mps": c_thermocline,
            "c_isothermal_mps": c_isothermal,
            "c_deep_mps": c_deep,
        },
        "validation": {
            "is_valid": falls_through_thermocline and rises_below_axis and in_physical_range,
            "falls_through_thermocline": falls_through_thermocline,
            "rises_below_axis": rises_below_axis,
            "in_physical_range": in_physical_range,
            "reference": "Mackenzie, JASA 70(3), 1981",
        },
    }
