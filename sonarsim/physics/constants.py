"""
Acoustic Constants for Sonar Simulation

Units are SI unless noted. Simulation world coordinates are expressed in
"sim units"; conversion factors to meters are listed below.

References:
    - Urick, R. J., "Principles of Underwater Sound", 3rd Ed., 1983
    - Mackenzie, K. V., "Nine-term equation for sound speed in the oceans",
      JASA 70(3), 1981
    - Wenz, G. M., "Acoustic Ambient Noise in the Ocean", JASA 34(12), 1962
"""

from typing import Final

# =============================================================================
# SEAWATER PROPERTIES
# =============================================================================

NOMINAL_SOUND_SPEED: Final[float] = 1500.0
"""Nominal sound speed used for echo travel time [m/s]"""

REFERENCE_SALINITY: Final[float] = 35.0
"""Reference salinity [PSU]"""

DEEP_WATER_TEMPERATURE: Final[float] = 4.0
"""Temperature below the isothermal layer [°C]"""

THERMOCLINE_TEMPERATURE_DROP: Final[float] = 15.0
"""Temperature drop across the main thermocline [°C]"""

MIXED_LAYER_TEMPERATURE_DROP: Final[float] = 1.0
"""Temperature drop across the mixed surface layer [°C]"""

REFRACTION_GRADIENT: Final[float] = 0.5
"""Simplified ray-bending gradient (dimensionless)"""

# =============================================================================
# AMBIENT NOISE (Wenz-style simplification)
# =============================================================================

SEA_STATE_NOISE_BASE: Final[float] = 40.0
"""Wind/sea-state noise floor [dB re 1 µPa]"""

SHIPPING_NOISE_LOW_FREQ: Final[float] = 60.0
"""Distant-shipping noise below SHIPPING_NOISE_CORNER_HZ [dB]"""

SHIPPING_NOISE_HIGH_FREQ: Final[float] = 40.0
"""Distant-shipping noise at or above SHIPPING_NOISE_CORNER_HZ [dB]"""

SHIPPING_NOISE_CORNER_HZ: Final[float] = 500.0
"""Shipping-noise band edge [Hz]"""

DEEP_NOISE_DEPTH: Final[float] = 500.0
"""Depth below which ambient noise is reduced [m]"""

DEEP_NOISE_REDUCTION: Final[float] = 3.0
"""Ambient noise reduction below DEEP_NOISE_DEPTH [dB]"""

DEFAULT_NOISE_FREQUENCY: Final[float] = 1000.0
"""Default analysis frequency for ambient noise [Hz]"""

# =============================================================================
# PROPAGATION EFFECTS
# =============================================================================

SURFACE_DUCT_SNR_BONUS: Final[float] = 4.5
"""SNR bonus when both ends are inside the surface duct [dB]"""

SURFACE_DUCT_ECHO_GAIN: Final[float] = 1.16
"""Active echo gain multiplier inside the surface duct"""

SURFACE_DUCT_MIN_RANGE: Final[float] = 200.0
"""Minimum range for duct trapping [m]"""

SURFACE_DUCT_MAX_RANGE: Final[float] = 2200.0
"""Maximum range for duct trapping [m]"""

CONVERGENCE_ZONE_SNR_BONUS: Final[float] = 3.0
"""SNR bonus inside a convergence-zone band [dB]"""

CONVERGENCE_ZONE_ECHO_GAIN: Final[float] = 1.1
"""Active echo gain multiplier inside a convergence-zone band"""

# =============================================================================
# SIMULATION SCALES
# =============================================================================

SIM_UNITS_TO_METERS: Final[float] = 10.0
"""Sim units to meters for sonar-equation range"""

CONTACT_RANGE_SCALE: Final[float] = 50.0
"""Sim units to displayed contact range [m]"""

CONTACT_SPEED_SCALE: Final[float] = 20.0
"""Sim speed to displayed contact speed [kn]"""
