"""
SonarSim Ocean Environment Test Suite

Tests for the layered ocean profile, ambient noise, propagation modifiers
and seabed line-of-sight.

Test ID | Description                    | Reference                | Tolerance
--------|--------------------------------|--------------------------|------------
1       | Temperature profile layers     | Three-layer model        | ±0.01 °C
2       | Sound speed channel            | Mackenzie (1981)         | 1400-1600 m/s
3       | Ambient noise                  | Wenz (1962)              | ±0.01 dB
4       | Surface duct modifier          | +4.5 dB, echo ×1.16      | exact
5       | Convergence-zone bands         | +3.0 dB, echo ×1.1       | exact
6       | Terrain line-of-sight          | Sampled sight line       | True/False

References:
    - Urick, "Principles of Underwater Sound", 3rd Ed.
    - Mackenzie, JASA 70(3), 1981
"""

import math
import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sonarsim.physics.environment import (
    COASTAL,
    DEEP_OCEAN,
    NEUTRAL_MODIFIERS,
    EnvironmentModel,
    ProfileName,
    get_profile,
    validate_sound_speed_profile,
)
from sonarsim.physics.terrain import (
    BathymetryConfig,
    BathymetryMap,
    check_line_of_sight,
    sensor_depths,
)


class FlatSeabed:
    """Seabed at a constant height."""

    def __init__(self, height: float = -50.0):
        self.height = height

    def get_terrain_height(self, x, z):
        return self.height


class RidgeSeabed:
    """Flat seabed with a ridge rising above the surface between x=45 and x=55."""

    def get_terrain_height(self, x, z):
        if 45.0 <= x <= 55.0:
            return 100.0
        return -50.0


# =============================================================================
# TEST 1: Profiles and Temperature
# =============================================================================


class TestOceanProfiles:
    """Profile presets and the three-layer temperature model."""

    def test_get_profile_by_name(self):
        assert get_profile("deep_ocean") is DEEP_OCEAN
        assert get_profile("COASTAL") is COASTAL
        assert get_profile(ProfileName.COASTAL) is COASTAL

    def test_unknown_profile_raises(self):
        with pytest.raises(ValueError):
            get_profile("arctic")

    def test_temperature_layers(self):
        env = EnvironmentModel("deep_ocean")

        assert env.temperature(0.0) == pytest.approx(20.0)
        assert env.temperature(200.0) == pytest.approx(19.0)
        # Halfway through the thermocline: 19 - 7.5
        assert env.temperature(600.0) == pytest.approx(11.5)
        assert env.temperature(3000.0) == pytest.approx(4.0)

    def test_negative_depth_clamped_to_surface(self):
        env = EnvironmentModel("coastal")
        assert env.temperature(-10.0) == pytest.approx(env.temperature(0.0))

    def test_thermocline_between_is_strict(self):
        env = EnvironmentModel("deep_ocean")

        assert env.is_thermocline_between(100.0, 300.0)
        assert env.is_thermocline_between(300.0, 100.0)
        assert not env.is_thermocline_between(200.0, 300.0)
        assert not env.is_thermocline_between(5.0, 10.0)


# =============================================================================
# TEST 2: Sound Speed
# =============================================================================


class TestSoundSpeed:
    """Mackenzie sound speed forms a deep sound channel."""

    @pytest.mark.parametrize("profile", ["deep_ocean", "coastal"])
    def test_sound_speed_profile_valid(self, profile):
        result = validate_sound_speed_profile(profile)

        assert result["validation"]["is_valid"], result["computed_values"]

    def test_surface_sound_speed(self):
        env = EnvironmentModel("deep_ocean")
        # T = 20 °C, S = 35, D = 0
        assert env.sound_speed(0.0) == pytest.approx(1521.52, abs=0.01)

    def test_non_finite_depth_uses_surface(self):
        env = EnvironmentModel("deep_ocean")
        assert env.sound_speed(float("nan")) == pytest.approx(env.sound_speed(0.0))


# =============================================================================
# TEST 3: Ambient Noise
# =============================================================================


class TestAmbientNoise:
    """Sea-state and shipping noise."""

    def test_noise_at_default_frequency(self):
        env = EnvironmentModel("deep_ocean")
        # 40 (shipping above 500 Hz) + 40 + 20·log10(3)
        assert env.ambient_noise(10.0) == pytest.approx(80.0 + 20.0 * math.log10(3.0))

    def test_low_frequency_shipping_is_louder(self):
        env = EnvironmentModel("deep_ocean")
        assert env.ambient_noise(10.0, freq=100.0) - env.ambient_noise(10.0) == pytest.approx(20.0)

    def test_deep_water_is_quieter(self):
        env = EnvironmentModel("deep_ocean")
        assert env.ambient_noise(10.0) - env.ambient_noise(600.0) == pytest.approx(3.0)

    def test_sea_state_override(self):
        calm = EnvironmentModel("deep_ocean", sea_state=0)
        assert calm.ambient_noise(10.0) == pytest.approx(80.0)
        assert calm.profile.name == "DEEP_OCEAN"


# =============================================================================
# TEST 4-5: Propagation Modifiers
# =============================================================================


class TestAcousticModifiers:
    """Surface duct and convergence-zone effects."""

    def test_surface_duct_in_coastal_water(self):
        env = EnvironmentModel("coastal")
        mods = env.get_acoustic_modifiers(10.0, 15.0, 800.0)

        assert mods.duct_active
        assert mods.snr_modifier_db == pytest.approx(4.5)
        assert mods.echo_gain == pytest.approx(1.16)
        assert mods.convergence_band is None

    def test_duct_requires_range_window(self):
        env = EnvironmentModel("coastal")

        assert not env.get_acoustic_modifiers(10.0, 15.0, 150.0).duct_active
        assert not env.get_acoustic_modifiers(10.0, 15.0, 2500.0).duct_active

    def test_convergence_zone_first_band(self):
        env = EnvironmentModel("deep_ocean")
        mods = env.get_acoustic_modifiers(100.0, 100.0, 1800.0)

        assert not mods.duct_active
        assert mods.convergence_band == 0
        assert mods.snr_modifier_db == pytest.approx(3.0)
        assert mods.echo_gain == pytest.approx(1.1)

    def test_convergence_zone_second_band(self):
        env = EnvironmentModel("deep_ocean")
        assert env.get_acoustic_modifiers(100.0, 100.0, 3650.0).convergence_band == 1

    def test_between_bands(self):
        env = EnvironmentModel("deep_ocean")
        band = env.get_convergence_zone_band(2500.0)

        assert not band.in_zone
        assert band.band_index == 0
        assert env.get_acoustic_modifiers(100.0, 100.0, 2500.0).snr_modifier_db == 0.0

    def test_short_range_never_negative_band(self):
        env = EnvironmentModel("deep_ocean")
        band = env.get_convergence_zone_band(100.0)

        assert band.band_index == 0
        assert not band.in_zone

    def test_duct_and_convergence_zone_stack(self):
        env = EnvironmentModel("deep_ocean")
        # At exactly the duct depth both conditions hold
        mods = env.get_acoustic_modifiers(60.0, 60.0, 1800.0)

        assert mods.duct_active
        assert mods.convergence_band == 0
        assert mods.snr_modifier_db == pytest.approx(7.5)
        assert mods.echo_gain == pytest.approx(1.16 * 1.1)

    def test_non_finite_inputs_are_neutral(self):
        env = EnvironmentModel("deep_ocean")

        assert env.get_acoustic_modifiers(float("nan"), 10.0, 500.0) == NEUTRAL_MODIFIERS
        assert env.get_acoustic_modifiers(5.0, 10.0, float("inf")) == NEUTRAL_MODIFIERS


# =============================================================================
# TEST 6: Terrain Line-of-Sight
# =============================================================================


class TestTerrain:
    """Seabed oracle, sensor depths and occlusion."""

    def test_no_oracle_is_clear(self):
        assert check_line_of_sight(None, 0.0, 0.0, 100.0, 0.0)

    def test_flat_seabed_is_clear(self):
        assert check_line_of_sight(FlatSeabed(), 0.0, 0.0, 100.0, 0.0)

    def test_ridge_blocks_path(self):
        assert not check_line_of_sight(RidgeSeabed(), 0.0, 0.0, 100.0, 0.0)

    def test_ridge_off_path_is_clear(self):
        # Path along z never crosses x in [45, 55]
        assert check_line_of_sight(RidgeSeabed(), 0.0, 0.0, 0.0, 100.0)

    def test_sensor_depths_default(self):
        assert sensor_depths(None, 0.0, 0.0, 10.0, 10.0) == (5.0, 10.0)

    def test_sensor_depths_from_seabed(self):
        own, target = sensor_depths(FlatSeabed(-50.0), 0.0, 0.0, 10.0, 10.0)

        assert own == pytest.approx(45.0)
        assert target == pytest.approx(48.0)

    def test_sensor_depths_minimum(self):
        assert sensor_depths(FlatSeabed(-3.0), 0.0, 0.0, 10.0, 10.0) == (1.0, 1.0)

    def test_bathymetry_is_deterministic(self):
        a = BathymetryMap(BathymetryConfig(seed=7))
        b = BathymetryMap(BathymetryConfig(seed=7))

        assert a.get_terrain_height(12.5, -40.0) == b.get_terrain_height(12.5, -40.0)

    def test_bathymetry_within_relief(self):
        seabed = BathymetryMap(BathymetryConfig(base_depth=200.0, relief=40.0))
        heights = [seabed.get_terrain_height(x * 7.3, x * -3.1) for x in range(50)]

        assert all(-240.0 - 1e-9 <= h <= -160.0 + 1e-9 for h in heights)

    def test_seamount_rises_above_seabed(self):
        seabed = BathymetryMap(BathymetryConfig(relief=0.0, seamounts=[(50.0, 0.0, 250.0, 6.0)]))

        assert seabed.get_terrain_height(50.0, 0.0) == pytest.approx(50.0)
        assert not check_line_of_sight(seabed, 0.0, 0.0, 100.0, 0.0)

    def test_depth_profile_shape(self):
        seabed = BathymetryMap()
        fractions, heights = seabed.get_depth_profile((0.0, 0.0), (100.0, 0.0), num_points=11)

        assert fractions.shape == (11,)
        assert heights.shape == (11,)
        assert heights[0] == pytest.approx(seabed.get_terrain_height(0.0, 0.0))
