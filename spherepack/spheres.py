from dataclasses import dataclass
from math import pi
from numbers import Integral, Real
from typing import Iterable, Iterator, List, Sequence, Tuple

import numpy as np

from spherepack.errors import ConfigurationError

MAX_PROPORTION = 255


@dataclass(frozen=True)
class SizeDescriptor:
    """One entry of a size distribution.

    The proportion is a relative selection weight used while generating spheres, it is not a property of the
    generated spheres themselves.
    """

    name: str
    radius: float
    proportion: int

    @property
    def volume(self) -> float:
        return 4.0 / 3.0 * pi * self.radius**3

    @property
    def surface_area(self) -> float:
        return 4.0 * pi * self.radius**2


def validate_descriptors(descriptors: Iterable[SizeDescriptor]) -> Tuple[SizeDescriptor, ...]:
    """Check that a size distribution can generate spheres.

    Parameters
    ----------
        descriptors: The (name, radius, proportion) entries of the distribution.

    Returns
    -------
        descriptors: The same entries as a tuple, with radius coerced to float and proportion to int.
    """
    descriptors = tuple(descriptors)
    if len(descriptors) == 0:
        raise ConfigurationError("No sphere descriptors were given, at least one is needed to generate spheres.")

    validated = []
    for d in descriptors:
        if isinstance(d.radius, bool) or not isinstance(d.radius, Real):
            raise ConfigurationError(f"Radii should be numbers, {d.name} has {d.radius!r}.")
        if not np.isfinite(d.radius) or d.radius <= 0:
            raise ConfigurationError(f"Non-positive values for radius are not allowed, {d.name} has {d.radius}.")
        if isinstance(d.proportion, bool) or not isinstance(d.proportion, Integral):
            raise ConfigurationError(f"Proportions should be integers, {d.name} has {d.proportion!r}.")
        if not 0 <= d.proportion <= MAX_PROPORTION:
            raise ConfigurationError(
                f"Proportions should lie in [0, {MAX_PROPORTION}], {d.name} has {d.proportion}."
            )
        validated.append(SizeDescriptor(str(d.name), float(d.radius), int(d.proportion)))

    names = [d.name for d in validated]
    if len(set(names)) != len(names):
        raise ConfigurationError(f"Descriptor names should be unique, given {names}.")
    if sum(d.proportion for d in validated) == 0:
        raise ConfigurationError("The proportions of the descriptors sum to 0, no sphere can be drawn.")

    return tuple(validated)


def selection_probabilities(descriptors: Sequence[SizeDescriptor]) -> np.ndarray:
    weights = np.array([d.proportion for d in descriptors], dtype=float)
    return weights / weights.sum()


def expected_sphere_volume(descriptors: Sequence[SizeDescriptor]) -> float:
    """Mean volume of a sphere drawn from the distribution."""
    volumes = np.array([d.volume for d in descriptors])
    return float(np.dot(selection_probabilities(descriptors), volumes))


@dataclass(frozen=True)
class Sphere:
    name: str
    radius: float
    position: Tuple[float, ...]


class SphereSet:
    """Ordered collection of spheres stored column-wise.

    Parameters
    ----------
    positions: array, shape (n, d)
        Sphere centers. The array is owned by the set and is mutated in place during rearrangement.

    radii: array, shape (n, )
        Sphere radii.

    kinds: array, shape (n, )
        Index into `descriptors` of the entry each sphere was drawn from.

    descriptors: sequence of SizeDescriptor
        The size distribution the spheres come from.
    """

    def __init__(
        self,
        positions: np.ndarray,
        radii: np.ndarray,
        kinds: np.ndarray,
        descriptors: Sequence[SizeDescriptor],
    ):
        positions = np.asarray(positions, dtype=float)
        radii = np.asarray(radii, dtype=float)
        kinds = np.asarray(kinds, dtype=np.int64)
        if positions.ndim != 2:
            positions = positions.reshape(len(radii), -1)
        if not (len(positions) == len(radii) == len(kinds)):
            raise ValueError(
                f"Mismatching sphere arrays: {len(positions)} positions, {len(radii)} radii, {len(kinds)} kinds."
            )
        self.positions = positions
        self.radii = radii
        self.kinds = kinds
        self.descriptors = tuple(descriptors)

    @classmethod
    def from_spheres(cls, spheres: Sequence[Sphere], descriptors: Sequence[SizeDescriptor]) -> "SphereSet":
        name_to_kind = {d.name: k for k, d in enumerate(descriptors)}
        dim = len(spheres[0].position) if spheres else 3
        return cls(
            positions=np.array([s.position for s in spheres], dtype=float).reshape(len(spheres), dim),
            radii=np.array([s.radius for s in spheres], dtype=float),
            kinds=np.array([name_to_kind[s.name] for s in spheres], dtype=np.int64),
            descriptors=descriptors,
        )

    def __len__(self) -> int:
        return len(self.radii)

    def __getitem__(self, i: int) -> Sphere:
        return Sphere(
            name=self.descriptors[self.kinds[i]].name,
            radius=float(self.radii[i]),
            position=tuple(self.positions[i].tolist()),
        )

    def __iter__(self) -> Iterator[Sphere]:
        for i in range(len(self)):
            yield self[i]

    @property
    def dim(self) -> int:
        return self.positions.shape[1]

    @property
    def names(self) -> List[str]:
        return [self.descriptors[k].name for k in self.kinds]

    @property
    def volumes(self) -> np.ndarray:
        return 4.0 / 3.0 * pi * self.radii**3

    @property
    def surfaces(self) -> np.ndarray:
        return 4.0 * pi * self.radii**2

    @property
    def max_radius(self) -> float:
        return float(self.radii.max()) if len(self) else 0.0

    @property
    def mean_radius(self) -> float:
        return float(self.radii.mean()) if len(self) else 0.0

    def copy(self) -> "SphereSet":
        return SphereSet(self.positions.copy(), self.radii.copy(), self.kinds.copy(), self.descriptors)

    def with_positions(self, positions: np.ndarray) -> "SphereSet":
        return SphereSet(np.array(positions, dtype=float), self.radii.copy(), self.kinds.copy(), self.descriptors)
