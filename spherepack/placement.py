from math import pi, sqrt
from typing import Iterable, Optional, Union

import numpy as np

from spherepack.containers import Container
from spherepack.errors import ConfigurationError, GeometryError
from spherepack.spheres import SizeDescriptor, SphereSet, selection_probabilities, validate_descriptors

# Upper bound on the spheres drawn per batch when filling up to a target fraction.
_FILL_BATCH = 1024

# Densest packing of equal spheres, pi / (3 sqrt 2).
CLOSE_PACKING_FRACTION = pi / (3.0 * sqrt(2.0))


def _check_geometry(descriptors, container: Container):
    for d in descriptors:
        if d.proportion > 0 and not container.fits(d.radius):
            raise GeometryError(
                f"Spheres of type {d.name} with radius {d.radius} do not fit in {container!r} "
                f"(largest admissible radius {container.half_extent})."
            )


def _draw_kinds_for_fraction(
    probabilities: np.ndarray,
    volumes: np.ndarray,
    target_volume: float,
    capacity: float,
    rng: np.random.Generator,
) -> np.ndarray:
    """Add spheres one at a time until their total volume reaches target_volume.

    A sphere that would take the total volume past capacity is not added and ends the draw.
    """
    kinds = []
    total = 0.0
    while total < target_volume:
        batch = rng.choice(len(probabilities), size=_FILL_BATCH, p=probabilities)
        cumulative = total + np.cumsum(volumes[batch])
        reached = np.flatnonzero(cumulative >= target_volume)
        if len(reached):
            last = reached[0]
            if cumulative[last] > capacity:
                kinds.append(batch[:last])
                break
            batch = batch[: last + 1]
        kinds.append(batch)
        total += float(volumes[batch].sum())
    if not kinds:
        return np.empty(0, np.int64)
    return np.concatenate(kinds).astype(np.int64)


def generate_spheres(
    descriptors: Iterable[SizeDescriptor],
    container: Container,
    sphere_count: Optional[int] = None,
    target_fraction: Optional[float] = None,
    seed: Union[int, np.random.Generator, None] = None,
) -> SphereSet:
    """Draw a random starting configuration, which may contain overlaps.

    Radii are drawn from the descriptors with probability proportion / sum(proportions) and centers uniformly from
    the container shrunk by each sphere's own radius, so no sphere initially protrudes from the container.

    Parameters
    ----------
        descriptors: The size distribution.
        container: Where the spheres are placed.
        sphere_count: Number of spheres to generate.
        target_fraction: Instead of a count, keep adding spheres until their total volume reaches this fraction of
            the container volume, at most the close packing fraction. A sphere that would overfill the container is
            never added. Exactly one of sphere_count and target_fraction should be specified.
        seed: Seed or generator making the configuration reproducible.

    Returns
    -------
        sphere_set: The generated spheres.
    """
    descriptors = validate_descriptors(descriptors)
    if (sphere_count is None) == (target_fraction is None):
        raise ConfigurationError("Exactly one of sphere_count and target_fraction should be specified.")
    if sphere_count is not None and sphere_count < 0:
        raise ConfigurationError(f"The sphere count cannot be negative, given {sphere_count}.")
    if target_fraction is not None and not 0.0 < target_fraction <= CLOSE_PACKING_FRACTION:
        raise ConfigurationError(
            f"The target fraction should lie in (0, {CLOSE_PACKING_FRACTION:.4f}], the close packing bound, "
            f"given {target_fraction}."
        )
    _check_geometry(descriptors, container)

    rng = np.random.default_rng(seed)
    probabilities = selection_probabilities(descriptors)
    radii_by_kind = np.array([d.radius for d in descriptors])

    if sphere_count is not None:
        kinds = rng.choice(len(descriptors), size=int(sphere_count), p=probabilities).astype(np.int64)
    else:
        volumes_by_kind = np.array([d.volume for d in descriptors])
        kinds = _draw_kinds_for_fraction(
            probabilities, volumes_by_kind, target_fraction * container.volume, container.volume, rng
        )

    radii = radii_by_kind[kinds]
    positions = container.random_centers(radii, rng)
    return SphereSet(positions, radii, kinds, descriptors)
