"""
SonarSim Physics Package

Simplified underwater acoustics for sonar simulation.

Modules:
    - constants: Acoustic constants and simulation scales
    - environment: Ocean profiles, sound speed, ambient noise, duct / CZ modifiers
    - sonar_equation: Passive sonar equation terms
    - terrain: Seabed oracle, procedural bathymetry and line-of-sight
"""

from .constants import NOMINAL_SOUND_SPEED, SIM_UNITS_TO_METERS
from .environment import (
    COASTAL,
    DEEP_OCEAN,
    AcousticModifiers,
    ConvergenceZoneBand,
    EnvironmentModel,
    OceanProfile,
    ProfileName,
    get_profile,
)
from .sonar_equation import (
    PassiveDetectionParameters,
    TargetType,
    passive_snr,
    source_level,
    transmission_loss,
)
from .terrain import BathymetryConfig, BathymetryMap, TerrainOracle, check_line_of_sight

__all__ = [
    # Constants
    "NOMINAL_SOUND_SPEED",
    "SIM_UNITS_TO_METERS",
    # Environment
    "OceanProfile",
    "ProfileName",
    "DEEP_OCEAN",
    "COASTAL",
    "EnvironmentModel",
    "AcousticModifiers",
    "ConvergenceZoneBand",
    "get_profile",
    # Sonar equation
    "TargetType",
    "PassiveDetectionParameters",
    "source_level",
    "transmission_loss",
    "passive_snr",
    # Terrain
    "TerrainOracle",
    "BathymetryConfig",
    "BathymetryMap",
    "check_line_of_sight",
]
