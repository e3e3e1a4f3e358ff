"""
SonarSim I/O Package

YAML scenario loading.
"""

from .scenario_loader import ScenarioConfig, ScenarioLoader, load_scenario

__all__ = ["ScenarioLoader", "ScenarioConfig", "load_scenario"]
