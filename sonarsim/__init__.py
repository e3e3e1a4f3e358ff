"""
SonarSim Source Package

Underwater acoustic simulation core with:
- Layered ocean environment (sound speed, ambient noise, ducts, convergence zones)
- Passive / active sonar detection with terrain occlusion
- Contact registry with ambiguity merging and TMA scoring
- DEMON blade-rate extraction with hysteretic lock
"""

from sonarsim.physics import EnvironmentModel, OceanProfile, TargetType
from sonarsim.signal import DemonEngine, DemonTarget, LockState, SourceMode
from sonarsim.simulation import DetectionEngine, OwnShip, SimulationEngine, Target, TrackState
from sonarsim.tracking import ContactRegistry, FilterMode, SortMode

__version__ = "1.0.0"
__author__ = "SonarSim Contributors"

__all__ = [
    # Physics
    "EnvironmentModel",
    "OceanProfile",
    "TargetType",
    # Simulation
    "Target",
    "OwnShip",
    "TrackState",
    "DetectionEngine",
    "SimulationEngine",
    # Tracking
    "ContactRegistry",
    "FilterMode",
    "SortMode",
    # Signal
    "DemonEngine",
    "DemonTarget",
    "LockState",
    "SourceMode",
]
