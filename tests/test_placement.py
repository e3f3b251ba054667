import unittest

import numpy as np
import pytest

from spherepack import Box, ConfigurationError, Cylinder, GeometryError, SizeDescriptor, generate_spheres


class TestGenerateSpheres(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.descriptors = [
            SizeDescriptor("fine", 0.1, 1),
            SizeDescriptor("coarse", 0.2, 3),
            SizeDescriptor("unused", 0.3, 0),
        ]
        cls.box = Box.cube(100.0)

    def test_radii_follow_the_proportions(self):
        spheres = generate_spheres(self.descriptors, self.box, sphere_count=20_000, seed=636)
        counts = np.bincount(spheres.kinds, minlength=3)

        self.assertEqual(len(spheres), 20_000)
        self.assertAlmostEqual(counts[1] / 20_000, 0.75, delta=0.02)
        self.assertEqual(counts[2], 0)
        np.testing.assert_array_equal(spheres.radii, np.array([0.1, 0.2, 0.3])[spheres.kinds])

    def test_spheres_start_inside_the_container(self):
        for container in [self.box, Cylinder(length=5.0, radius=1.0, axis="y")]:
            spheres = generate_spheres(self.descriptors, container, sphere_count=2_000, seed=1)
            self.assertTrue(np.all(container.contains(spheres.positions, spheres.radii, tol=1e-9)))

    def test_same_seed_same_configuration(self):
        first = generate_spheres(self.descriptors, self.box, sphere_count=100, seed=42)
        second = generate_spheres(self.descriptors, self.box, sphere_count=100, seed=42)
        third = generate_spheres(self.descriptors, self.box, sphere_count=100, seed=43)

        np.testing.assert_array_equal(first.positions, second.positions)
        np.testing.assert_array_equal(first.kinds, second.kinds)
        self.assertFalse(np.array_equal(first.positions, third.positions))

    def test_target_fraction_adds_spheres_until_reached(self):
        box = Box.cube(10.0)
        spheres = generate_spheres(self.descriptors, box, target_fraction=0.05, seed=7)
        volumes = spheres.volumes
        target = 0.05 * box.volume

        self.assertGreaterEqual(volumes.sum(), target)
        self.assertLess(volumes[:-1].sum(), target)

    def test_target_fraction_never_overfills_the_container(self):
        box = Box.cube(4.0)
        spheres = generate_spheres([SizeDescriptor("half", 2.0, 1)], box, target_fraction=0.7, seed=7)

        # Two of these spheres hold 1.05 times the box volume.
        self.assertEqual(len(spheres), 1)
        self.assertLessEqual(spheres.volumes.sum(), box.volume)

    def test_target_fraction_up_to_close_packing(self):
        box = Box.cube(4.0)
        spheres = generate_spheres([SizeDescriptor("unit", 1.0, 1)], box, target_fraction=0.74, seed=7)

        self.assertEqual(len(spheres), 12)
        self.assertLessEqual(spheres.volumes.sum(), box.volume)

    def test_zero_spheres(self):
        spheres = generate_spheres(self.descriptors, self.box, sphere_count=0, seed=1)
        self.assertEqual(len(spheres), 0)
        self.assertEqual(spheres.positions.shape, (0, 3))


def test_empty_descriptor_list_fails_before_packing():
    with pytest.raises(ConfigurationError):
        generate_spheres([], Box.cube(10.0), sphere_count=10)


def test_zero_proportions():
    with pytest.raises(ConfigurationError):
        generate_spheres([SizeDescriptor("a", 1.0, 0)], Box.cube(10.0), sphere_count=10)


def test_sphere_larger_than_the_container():
    with pytest.raises(GeometryError, match="do not fit"):
        generate_spheres([SizeDescriptor("big", 6.0, 1)], Box.cube(10.0), sphere_count=1)


def test_unselectable_large_descriptor_is_allowed():
    spheres = generate_spheres(
        [SizeDescriptor("big", 6.0, 0), SizeDescriptor("small", 1.0, 1)], Box.cube(10.0), sphere_count=3, seed=1
    )
    assert spheres.names == ["small"] * 3


@pytest.mark.parametrize(
    "kwargs",
    [
        {},
        {"sphere_count": 10, "target_fraction": 0.3},
        {"sphere_count": -1},
        {"target_fraction": 0.0},
        {"target_fraction": 1.2},
        {"target_fraction": 0.75},
    ],
)
def test_count_or_fraction(kwargs):
    with pytest.raises(ConfigurationError):
        generate_spheres([SizeDescriptor("a", 1.0, 1)], Box.cube(10.0), **kwargs)
