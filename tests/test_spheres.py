import unittest
from dataclasses import FrozenInstanceError

import numpy as np
import pytest

from spherepack import ConfigurationError, MassMode, PackingConfig, SizeDescriptor, Sphere, SphereSet
from spherepack.spheres import expected_sphere_volume, selection_probabilities, validate_descriptors


class TestSphereSet(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.descriptors = (SizeDescriptor("5_micron_Al", 5.0, 66), SizeDescriptor("400_AP", 400.0, 34))
        cls.positions = np.array([[0.0, 0.0, 0.0], [10.0, 0.0, 0.0], [0.0, 900.0, 0.0]])
        cls.radii = np.array([5.0, 5.0, 400.0])
        cls.kinds = np.array([0, 0, 1])

    def test_derived_volumes_and_surfaces(self):
        spheres = SphereSet(self.positions, self.radii, self.kinds, self.descriptors)

        np.testing.assert_allclose(spheres.volumes, 4 / 3 * np.pi * self.radii**3)
        np.testing.assert_allclose(spheres.surfaces, 4 * np.pi * self.radii**2)
        self.assertEqual(spheres.max_radius, 400.0)
        self.assertAlmostEqual(spheres.mean_radius, 410.0 / 3)

    def test_items_are_named_spheres(self):
        spheres = SphereSet(self.positions, self.radii, self.kinds, self.descriptors)

        self.assertEqual(len(spheres), 3)
        self.assertEqual(spheres[2], Sphere("400_AP", 400.0, (0.0, 900.0, 0.0)))
        self.assertEqual(spheres.names, ["5_micron_Al", "5_micron_Al", "400_AP"])
        self.assertEqual([s.radius for s in spheres], [5.0, 5.0, 400.0])

    def test_from_spheres_round_trips_the_columns(self):
        spheres = SphereSet(self.positions, self.radii, self.kinds, self.descriptors)
        rebuilt = SphereSet.from_spheres(list(spheres), self.descriptors)

        np.testing.assert_array_equal(rebuilt.positions, self.positions)
        np.testing.assert_array_equal(rebuilt.kinds, self.kinds)

    def test_copy_does_not_share_positions(self):
        spheres = SphereSet(self.positions, self.radii, self.kinds, self.descriptors)
        copied = spheres.copy()
        copied.positions[0, 0] = 123.0

        self.assertEqual(spheres.positions[0, 0], 0.0)

    def test_mismatching_columns(self):
        with self.assertRaises(ValueError):
            SphereSet(self.positions, self.radii[:2], self.kinds, self.descriptors)


def test_selection_probabilities_follow_proportions():
    descriptors = [SizeDescriptor("a", 1.0, 1), SizeDescriptor("b", 2.0, 3), SizeDescriptor("c", 3.0, 0)]
    np.testing.assert_allclose(selection_probabilities(descriptors), [0.25, 0.75, 0.0])


def test_expected_sphere_volume():
    descriptors = [SizeDescriptor("a", 1.0, 1), SizeDescriptor("b", 2.0, 1)]
    assert expected_sphere_volume(descriptors) == pytest.approx(0.5 * 4 / 3 * np.pi * (1 + 8))


def test_empty_descriptor_list():
    with pytest.raises(ConfigurationError, match="No sphere descriptors"):
        validate_descriptors([])


def test_zero_total_proportion():
    with pytest.raises(ConfigurationError, match="sum to 0"):
        validate_descriptors([SizeDescriptor("a", 1.0, 0), SizeDescriptor("b", 2.0, 0)])


@pytest.mark.parametrize("radius", [0.0, -5.0, float("nan")])
def test_non_positive_radius(radius):
    with pytest.raises(ConfigurationError, match="radius"):
        validate_descriptors([SizeDescriptor("a", radius, 100)])


@pytest.mark.parametrize("radius", [True, "1", None])
def test_radius_that_is_not_a_number(radius):
    with pytest.raises(ConfigurationError, match="Radii should be numbers"):
        validate_descriptors([SizeDescriptor("a", radius, 1)])


@pytest.mark.parametrize("proportion", [256, -1, 1.5, True])
def test_invalid_proportion(proportion):
    with pytest.raises(ConfigurationError, match="Proportions"):
        validate_descriptors([SizeDescriptor("a", 1.0, proportion)])


def test_duplicate_names():
    with pytest.raises(ConfigurationError, match="unique"):
        validate_descriptors([SizeDescriptor("a", 1.0, 1), SizeDescriptor("a", 2.0, 1)])


def test_config_defaults_and_replace():
    config = PackingConfig()
    assert config.relaxation == 0.5
    assert config.mass_mode == MassMode.volume
    assert config.max_mass_ratio == 100.0
    assert config.staging_ratio == 4.0

    changed = config.replace(relaxation=0.3, mass_mode="equal")
    assert changed.relaxation == 0.3
    assert changed.mass_mode == MassMode.equal
    assert config.relaxation == 0.5


def test_config_is_immutable():
    config = PackingConfig()
    with pytest.raises(FrozenInstanceError):
        config.relaxation = 0.1


@pytest.mark.parametrize(
    "changes",
    [
        {"relaxation": 0.0},
        {"relaxation": 1.5},
        {"tolerance": 0.0},
        {"max_iterations": 0},
        {"stagnation_window": 0},
        {"step_cap": -1.0},
        {"mass_mode": "density"},
        {"max_mass_ratio": 0.5},
        {"staging_ratio": 1.0},
        {"cell_size": -2.0},
        {"time_limit": 0.0},
        {"n_jobs": 0},
    ],
)
def test_config_validation(changes):
    with pytest.raises(ConfigurationError):
        PackingConfig(**changes)
