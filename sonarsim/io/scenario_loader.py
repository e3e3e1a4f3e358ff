"""
Scenario Loader

YAML-based scenario configuration parser for SonarSim.

Loads simulation scenarios from YAML files and creates configured
SimulationEngine / DemonEngine instances.

Supported scenario elements:
    - Ocean environment (profile preset, sea state)
    - Own-ship pose and machinery
    - Targets with type, position, course, speed and machinery
    - Detection, contact registry and DEMON tunables
    - Optional procedural bathymetry with seamounts

Usage:
    loader = ScenarioLoader('scenarios/default.yaml')
    engine = loader.create_simulation_engine()
"""

import logging
import math
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

import yaml

from sonarsim.physics.environment import get_profile

logger = logging.getLogger(__name__)


@dataclass
class OwnShipConfig:
    """Own-ship configuration from scenario file."""

    x: float = 0.0
    z: float = 0.0
    course_deg: float = 0.0
    speed: float = 0.0
    rpm: float = 0.0
    blade_count: int = 5


@dataclass
class TargetConfig:
    """Target configuration from scenario file."""

    target_id: str
    target_type: str
    x: float
    z: float
    course_deg: float = 0.0
    speed: float = 0.0
    rpm: Optional[float] = None
    blade_count: Optional[int] = None
    class_id: Optional[str] = None


@dataclass
class EnvironmentConfig:
    """Environment configuration from scenario file."""

    profile: str = "deep_ocean"
    sea_state: Optional[float] = None


@dataclass
class TerrainConfig:
    """Procedural bathymetry configuration (disabled when absent)."""

    enabled: bool = False
    seed: int = 1337
    base_depth: float = 200.0
    relief: float = 40.0
    scale: float = 150.0
    seamounts: List[List[float]] = field(default_factory=list)


@dataclass
class ScenarioConfig:
    """Complete scenario configuration."""

    name: str
    description: str
    duration_s: float
    tick_seconds: float
    own_ship: OwnShipConfig
    targets: List[TargetConfig]
    environment: EnvironmentConfig
    terrain: TerrainConfig
    detection: Dict[str, Any] = field(default_factory=dict)
    contacts: Dict[str, Any] = field(default_factory=dict)
    demon: Dict[str, Any] = field(default_factory=dict)


def _apply_overrides(obj, overrides: Dict[str, Any], section: str):
    """
    Copy known keys onto a config dataclass.

    Scalar values are coerced to the type of the field's current value,
    so YAML ``120.0`` lands in an int field as ``120``.

    Raises:
        ValueError: On unknown keys or values that cannot be coerced
    """
    known = {f.name for f in fields(obj)}
    for key, value in (overrides or {}).items():
        if key not in known:
            raise ValueError(f"Unknown {section} setting: {key!r}")
        current = getattr(obj, key)
        try:
            if isinstance(current, bool):
                value = bool(value)
            elif isinstance(current, int):
                value = int(value)
            elif isinstance(current, float):
                value = float(value)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid {section} setting {key!r}: {value!r}") from None
        setattr(obj, key, value)
    return obj


class ScenarioLoader:
    """
    Loads simulation scenarios from YAML files.

    Usage:
        loader = ScenarioLoader('scenarios/default.yaml')
        config = loader.get_config()
        engine = loader.create_simulation_engine()
    """

    def __init__(self, filepath: Optional[str] = None):
        """
        Args:
            filepath: Path to YAML scenario file (optional)
        """
        self.filepath = filepath
        self.data: Dict[str, Any] = {}
        self._config: Optional[ScenarioConfig] = None

        if filepath:
            self.load(filepath)

    def load(self, filepath: str) -> bool:
        """
        Load scenario from YAML file.

        Raises:
            FileNotFoundError: If file doesn't exist
            yaml.YAMLError: If YAML parsing fails
            ValueError: If the scenario content is invalid
        """
        if not os.path.exists(filepath):
            raise FileNotFoundError(f"Scenario file not found: {filepath}")

        self.filepath = filepath
        with open(filepath, "r", encoding="utf-8") as f:
            self.load_string(f.read())
        return True

    def load_string(self, text: str) -> ScenarioConfig:
        """Parse a scenario from YAML text."""
        data = yaml.safe_load(text) or {}
        if not isinstance(data, dict):
            raise ValueError("Scenario root must be a mapping")
        self.data = data
        self._config = self._parse_config()
        logger.info("Loaded scenario '%s' (%d targets)", self._config.name, len(self._config.targets))
        return self._config

    def _parse_config(self) -> ScenarioConfig:
        scenario = self.data.get("scenario", {}) or {}
        sim = self.data.get("simulation", {}) or {}

        tick = float(sim.get("tick_seconds", 0.1))
        if not (math.isfinite(tick) and tick > 0):
            raise ValueError(f"tick_seconds must be positive, got {tick}")

        return ScenarioConfig(
            name=scenario.get("name", "Unnamed Scenario"),
            description=scenario.get("description", ""),
            duration_s=float(scenario.get("duration_seconds", 60)),
            tick_seconds=tick,
            own_ship=self._parse_own_ship(),
            targets=self._parse_targets(),
            environment=self._parse_environment(),
            terrain=self._parse_terrain(),
            detection=dict(self.data.get("detection", {}) or {}),
            contacts=dict(self.data.get("contacts", {}) or {}),
            demon=dict(self.data.get("demon", {}) or {}),
        )

    def _parse_own_ship(self) -> OwnShipConfig:
        own = self.data.get("own_ship", {}) or {}
        pos = own.get("position", {}) or {}
        return OwnShipConfig(
            x=float(pos.get("x", 0.0)),
            z=float(pos.get("z", 0.0)),
            course_deg=float(own.get("course_deg", 0.0)),
            speed=float(own.get("speed", 0.0)),
            rpm=float(own.get("rpm", 0.0)),
            blade_count=int(own.get("blade_count", 5)),
        )

    def _parse_targets(self) -> List[TargetConfig]:
        targets = []
        seen = set()
        for idx, t in enumerate(self.data.get("targets", []) or []):
            pos = t.get("position", {}) or {}
            target_id = str(t.get("id", f"target-{idx + 1:02d}"))
            if target_id in seen:
                raise ValueError(f"Duplicate target id: {target_id}")
            seen.add(target_id)

            targets.append(
                TargetConfig(
                    target_id=target_id,
                    target_type=str(t.get("type", "SHIP")).upper(),
                    x=float(pos.get("x", 0.0)),
                    z=float(pos.get("z", 0.0)),
                    course_deg=float(t.get("course_deg", 0.0)),
                    speed=float(t.get("speed", 0.0)),
                    rpm=None if t.get("rpm") is None else float(t["rpm"]),
                    blade_count=None if t.get("blade_count") is None else int(t["blade_count"]),
                    class_id=t.get("class_id"),
                )
            )
        return targets

    def _parse_environment(self) -> EnvironmentConfig:
        env = self.data.get("environment", {}) or {}
        profile = str(env.get("profile", "deep_ocean"))
        get_profile(profile)  # Validate early
        sea_state = env.get("sea_state")
        return EnvironmentConfig(
            profile=profile,
            sea_state=None if sea_state is None else float(sea_state),
        )

    def _parse_terrain(self) -> TerrainConfig:
        terrain = self.data.get("terrain")
        if not terrain:
            return TerrainConfig()
        return TerrainConfig(
            enabled=bool(terrain.get("enabled", True)),
            seed=int(terrain.get("seed", 1337)),
            base_depth=float(terrain.get("base_depth", 200.0)),
            relief=float(terrain.get("relief", 40.0)),
            scale=float(terrain.get("scale", 150.0)),
            seamounts=[[float(v) for v in s] for s in terrain.get("seamounts", []) or []],
        )

    def get_config(self) -> Optional[ScenarioConfig]:
        return self._config

    def get_scenario_name(self) -> str:
        if self._config:
            return self._config.name
        return "Unknown"

    def set_environment_profile(self, profile: str) -> None:
        """
        Override the ocean profile of the loaded scenario.

        Raises:
            ValueError: If no scenario is loaded or the profile is unknown
        """
        cfg = self._require_config()
        get_profile(profile)
        cfg.environment.profile = profile

    def _require_config(self) -> ScenarioConfig:
        if not self._config:
            raise ValueError("No scenario loaded. Call load() first.")
        return self._config

    def create_simulation_engine(self):
        """
        Create a SimulationEngine from the loaded scenario.

        Raises:
            ValueError: If no scenario is loaded or a setting is invalid
        """
        cfg = self._require_config()

        # Import here to avoid circular dependencies
        from sonarsim.physics.environment import EnvironmentModel
        from sonarsim.physics.terrain import BathymetryConfig, BathymetryMap
        from sonarsim.simulation.detection import DetectionConfig
        from sonarsim.simulation.engine import SimulationEngine
        from sonarsim.simulation.objects import OwnShip, Target
        from sonarsim.tracking.contacts import ContactRegistryConfig

        environment = EnvironmentModel(cfg.environment.profile, sea_state=cfg.environment.sea_state)

        terrain = None
        if cfg.terrain.enabled:
            terrain = BathymetryMap(
                BathymetryConfig(
                    seed=cfg.terrain.seed,
                    base_depth=cfg.terrain.base_depth,
                    relief=cfg.terrain.relief,
                    scale=cfg.terrain.scale,
                    seamounts=[tuple(s) for s in cfg.terrain.seamounts],
                )
            )

        own = cfg.own_ship
        own_ship = OwnShip(
            x=own.x,
            z=own.z,
            course=math.radians(own.course_deg),
            speed=own.speed,
            rpm=own.rpm,
            blade_count=own.blade_count,
        )

        targets = [
            Target(
                t.target_id,
                t.target_type,
                x=t.x,
                z=t.z,
                course=math.radians(t.course_deg),
                speed=t.speed,
                rpm=t.rpm,
                blade_count=t.blade_count,
                class_id=t.class_id,
            )
            for t in cfg.targets
        ]

        return SimulationEngine(
            targets=targets,
            environment=environment,
            terrain=terrain,
            own_ship=own_ship,
            detection_config=_apply_overrides(DetectionConfig(), cfg.detection, "detection"),
            registry_config=_apply_overrides(ContactRegistryConfig(), cfg.contacts, "contacts"),
            tick_seconds=cfg.tick_seconds,
        )

    def create_demon_engine(self):
        """Create a DemonEngine configured from the scenario's demon section."""
        cfg = self._require_config()

        from sonarsim.signal.demon_engine import DemonConfig, DemonEngine
        from sonarsim.signal.lock import DemonLockConfig

        demon_settings = dict(cfg.demon)
        lock_settings = demon_settings.pop("lock", {}) or {}
        responsiveness = demon_settings.pop("responsiveness", None)
        focus_width = demon_settings.pop("focus_width_hz", None)

        config = _apply_overrides(DemonConfig(), demon_settings, "demon")
        config.lock = _apply_overrides(DemonLockConfig(), lock_settings, "demon.lock")
        engine = DemonEngine(config)
        if responsiveness is not None:
            engine.set_responsiveness(float(responsiveness))
        if focus_width is not None:
            engine.set_focus_width(float(focus_width))
        return engine


def load_scenario(filepath: str) -> ScenarioConfig:
    """
    Convenience function to load a scenario file.

    Returns:
        ScenarioConfig instance
    """
    loader = ScenarioLoader(filepath)
    return loader.get_config()
