"""
SonarSim Scenario Loader Test Suite

Tests for YAML scenario parsing, validation errors, engine construction
and the headless CLI.

Test ID | Description                    | Expectation
--------|--------------------------------|--------------------------------
1       | Default scenario loads         | 8 targets, deep_ocean profile
2       | Invalid scenarios rejected     | FileNotFoundError / ValueError
3       | Engines built from scenario    | Overrides applied
4       | Headless run                   | Exit code 0
"""

import math
import os
import sys

import pytest

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

import headless
from sonarsim.io.scenario_loader import ScenarioLoader, load_scenario
from sonarsim.physics.sonar_equation import TargetType
from sonarsim.signal.demon_engine import synthesize_blade_signal
from sonarsim.tracking.contacts import ContactStatus

DEFAULT_SCENARIO = os.path.join(PROJECT_ROOT, "scenarios", "default.yaml")

MINIMAL = """
scenario:
  name: "Minimal"
own_ship:
  position: { x: 0.0, z: 0.0 }
targets:
  - id: alpha
    type: ship
    position: { x: 20.0, z: 0.0 }
    course_deg: 90
    speed: 0.8
    rpm: 120
    blade_count: 3
"""


# =============================================================================
# TEST 1: Default Scenario
# =============================================================================


class TestDefaultScenario:
    """The bundled scenario parses and runs."""

    def test_load_default(self):
        config = load_scenario(DEFAULT_SCENARIO)

        assert config.name == "Default Ocean Contacts"
        assert len(config.targets) == 8
        assert config.environment.profile == "deep_ocean"
        assert config.tick_seconds == pytest.approx(0.1)
        assert config.targets[1].target_type == "SUBMARINE"

    def test_default_engine_detects_cargo_ship(self):
        engine = ScenarioLoader(DEFAULT_SCENARIO).create_simulation_engine()
        engine.run(1.0)
        contact = engine.registry.get_contact("target-01")

        assert contact is not None
        assert contact.label == "S1"
        assert contact.status in (ContactStatus.TRACKED, ContactStatus.AMBIGUOUS)

    def test_default_demon_engine(self):
        engine = ScenarioLoader(DEFAULT_SCENARIO).create_demon_engine()

        assert engine.config.responsiveness == pytest.approx(0.55)
        assert engine.config.focus_width_hz == pytest.approx(1.3)
        assert engine.config.self_noise_suppression


# =============================================================================
# TEST 2: Validation Errors
# =============================================================================


class TestScenarioErrors:
    """Bad scenario content is rejected with a clear error."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ScenarioLoader(str(tmp_path / "nope.yaml"))

    def test_root_must_be_mapping(self):
        with pytest.raises(ValueError):
            ScenarioLoader().load_string("- just\n- a list\n")

    def test_unknown_profile(self):
        with pytest.raises(ValueError):
            ScenarioLoader().load_string(MINIMAL + "environment:\n  profile: arctic\n")

    def test_duplicate_target_ids(self):
        text = MINIMAL + "  - id: alpha\n    type: SHIP\n    position: { x: 1.0, z: 1.0 }\n"
        with pytest.raises(ValueError):
            ScenarioLoader().load_string(text)

    def test_non_positive_tick(self):
        with pytest.raises(ValueError):
            ScenarioLoader().load_string(MINIMAL + "simulation:\n  tick_seconds: 0\n")

    def test_unknown_detection_setting(self):
        loader = ScenarioLoader()
        loader.load_string(MINIMAL + "detection:\n  warp_factor: 9\n")

        with pytest.raises(ValueError):
            loader.create_simulation_engine()

    def test_unknown_target_type(self):
        loader = ScenarioLoader()
        loader.load_string(MINIMAL.replace("type: ship", "type: kraken"))

        with pytest.raises(ValueError):
            loader.create_simulation_engine()

    def test_engine_requires_loaded_scenario(self):
        loader = ScenarioLoader()

        assert loader.get_config() is None
        assert loader.get_scenario_name() == "Unknown"
        with pytest.raises(ValueError):
            loader.create_simulation_engine()


# =============================================================================
# TEST 3: Engine Construction
# =============================================================================


class TestEngineConstruction:
    """Scenario values flow into the engines."""

    def test_targets_built(self):
        loader = ScenarioLoader()
        loader.load_string(MINIMAL)
        engine = loader.create_simulation_engine()
        target = engine.get_target("alpha")

        assert target.target_type == TargetType.SHIP
        assert target.course == pytest.approx(math.pi / 2)
        assert target.rpm == 120.0
        assert target.blade_count == 3

    def test_detection_overrides(self):
        loader = ScenarioLoader()
        loader.load_string(MINIMAL + "detection:\n  detection_threshold: 50.0\ncontacts:\n  lost_timeout: 3.0\n")
        engine = loader.create_simulation_engine()

        assert engine.detection.config.detection_threshold == 50.0
        assert engine.registry.config.lost_timeout == 3.0
        engine.step()
        assert engine.registry.get_contact("alpha") is None

    def test_profile_override(self):
        loader = ScenarioLoader()
        loader.load_string(MINIMAL)
        loader.set_environment_profile("coastal")
        engine = loader.create_simulation_engine()

        assert engine.detection.environment.profile.name == "COASTAL"
        with pytest.raises(ValueError):
            loader.set_environment_profile("arctic")

    def test_terrain_section_builds_bathymetry(self):
        loader = ScenarioLoader()
        loader.load_string(MINIMAL + "terrain:\n  seed: 7\n  seamounts:\n    - [10, 0, 400, 3]\n")
        engine = loader.create_simulation_engine()

        assert engine.detection.terrain is not None
        engine.step()
        assert not engine.detection.get_result("alpha").line_of_sight

    def test_demon_lock_overrides(self):
        loader = ScenarioLoader()
        loader.load_string(MINIMAL + "demon:\n  responsiveness: 1.0\n  lock:\n    stale_timeout_sec: 5.0\n")
        engine = loader.create_demon_engine()

        assert engine.config.lock.stale_timeout_sec == 5.0
        assert engine.config.lock.attack == pytest.approx(0.36)

    def test_float_override_of_int_setting(self):
        loader = ScenarioLoader()
        loader.load_string(MINIMAL + "demon:\n  max_freq_hz: 100.0\n  analysis_interval: 2.0\n")
        engine = loader.create_demon_engine()

        assert engine.config.max_freq_hz == 100
        assert isinstance(engine.config.max_freq_hz, int)
        assert isinstance(engine.config.analysis_interval, int)
        for i, frame in enumerate(synthesize_blade_signal(10)):
            engine.update(frame, 4096.0, now=float(i))
        assert engine.raw_spectrum.shape == (101,)

    def test_non_numeric_override_rejected(self):
        loader = ScenarioLoader()
        loader.load_string(MINIMAL + "detection:\n  detection_threshold: loud\n")

        with pytest.raises(ValueError):
            loader.create_simulation_engine()


# =============================================================================
# TEST 4: Headless CLI
# =============================================================================


class TestHeadless:
    """Command-line entry point."""

    def test_quiet_run(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["headless.py", "--duration", "1", "--quiet"])

        assert headless.main() == 0
        assert int(capsys.readouterr().out.strip()) >= 1

    def test_missing_config(self, monkeypatch, tmp_path):
        monkeypatch.setattr(sys, "argv", ["headless.py", "--config", str(tmp_path / "none.yaml")])

        assert headless.main() == 1

    def test_ping_and_sort(self, monkeypatch, capsys):
        monkeypatch.setattr(
            sys, "argv", ["headless.py", "--duration", "2", "--ping", "0.5", "--sort", "RANGE"]
        )

        assert headless.main() == 0
        out = capsys.readouterr().out
        assert "Default Ocean Contacts" in out
        assert "Echoes received:" in out
