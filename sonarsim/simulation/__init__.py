"""
SonarSim Simulation Package

Platforms, detection engine and the fixed-tick simulation loop.
"""

from .detection import (
    DetectionConfig,
    DetectionEngine,
    DetectionResult,
    EchoEvent,
    PingTransient,
)
from .engine import SimulationEngine, SimulationLog
from .objects import BehaviorState, OwnShip, Target, TrackState

__all__ = [
    "Target",
    "OwnShip",
    "TrackState",
    "BehaviorState",
    "DetectionConfig",
    "DetectionEngine",
    "DetectionResult",
    "EchoEvent",
    "PingTransient",
    "SimulationEngine",
    "SimulationLog",
]
