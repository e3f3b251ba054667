from abc import ABC, abstractmethod
from math import pi
from typing import Sequence, Tuple

import numpy as np

from spherepack.errors import ConfigurationError
from spherepack.spheres import SizeDescriptor, expected_sphere_volume

_AXES = {"x": 0, "y": 1, "z": 2}


class Container(ABC):
    """Convex region in which spheres are packed.

    Containers are immutable. Every operation taking radii works on the sphere *centers* and keeps each sphere
    entirely inside the region, i.e. the admissible region for a center is the container shrunk by that
    sphere's radius.
    """

    @property
    @abstractmethod
    def volume(self) -> float:
        pass

    @property
    @abstractmethod
    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """Lower and upper corners of the axis-aligned bounding box."""

    @property
    @abstractmethod
    def half_extent(self) -> float:
        """Radius of the largest sphere the container can hold."""

    def fits(self, radius: float) -> bool:
        return radius <= self.half_extent * (1.0 + 1e-12)

    @abstractmethod
    def random_centers(self, radii: np.ndarray, rng: np.random.Generator) -> np.ndarray:
        """Draw one center per radius uniformly from the admissible region of each sphere.

        Parameters
        ----------
            radii: Array of shape (n, ) with the sphere radii.
            rng: Source of randomness.

        Returns
        -------
            centers: Array of shape (n, 3).
        """

    @abstractmethod
    def clamp(self, positions: np.ndarray, radii: np.ndarray) -> np.ndarray:
        """Return a copy of positions where every center is projected back onto its admissible region."""

    @abstractmethod
    def contains(self, positions: np.ndarray, radii: np.ndarray, tol: float = 0.0) -> np.ndarray:
        """Boolean mask of the spheres lying inside the container, up to tol."""


class Box(Container):
    """Axis-aligned rectangular box.

    Parameters
    ----------
    width, depth, height: float
        Box lengths along the x-, y- and z-axis.

    center: Iterable of float (default (0., 0., 0.))
        Cartesian coordinates of the center of the box.
    """

    def __init__(self, width: float, depth: float, height: float, center: Sequence[float] = (0.0, 0.0, 0.0)):
        extents = np.array([width, depth, height], dtype=float)
        if np.any(~np.isfinite(extents)) or np.any(extents <= 0):
            raise ConfigurationError(f"Box extents should be positive, given {extents.tolist()}.")
        self._extents = extents
        self._center = np.asarray(center, dtype=float)
        self._extents.setflags(write=False)
        self._center.setflags(write=False)

    @classmethod
    def cube(cls, side: float, center: Sequence[float] = (0.0, 0.0, 0.0)) -> "Box":
        return cls(side, side, side, center)

    @classmethod
    def sized_for(
        cls,
        descriptors: Sequence[SizeDescriptor],
        sphere_count: int = 1000,
        fill: float = 0.5,
        center: Sequence[float] = (0.0, 0.0, 0.0),
    ) -> "Box":
        """Cube whose volume hosts the expected volume of sphere_count spheres at the given fill fraction."""
        volume = expected_sphere_volume(descriptors) * sphere_count / fill
        return cls.cube(np.cbrt(volume), center)

    @property
    def extents(self) -> np.ndarray:
        return self._extents

    @property
    def center(self) -> np.ndarray:
        return self._center

    @property
    def volume(self) -> float:
        return float(np.prod(self._extents))

    @property
    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        return self._center - self._extents / 2, self._center + self._extents / 2

    @property
    def half_extent(self) -> float:
        return float(self._extents.min() / 2)

    def random_centers(self, radii: np.ndarray, rng: np.random.Generator) -> np.ndarray:
        r = np.asarray(radii, dtype=float)[:, None]
        lower, _ = self.bounds
        span = np.maximum(self._extents[None, :] - 2 * r, 0.0)
        return lower + r + rng.random((len(r), 3)) * span

    def clamp(self, positions: np.ndarray, radii: np.ndarray) -> np.ndarray:
        r = np.asarray(radii, dtype=float)[:, None]
        lower, upper = self.bounds
        return np.clip(positions, lower + r, np.maximum(upper - r, lower + r))

    def contains(self, positions: np.ndarray, radii: np.ndarray, tol: float = 0.0) -> np.ndarray:
        r = np.asarray(radii, dtype=float)[:, None]
        lower, upper = self.bounds
        return np.all((positions - r >= lower - tol) & (positions + r <= upper + tol), axis=1)

    def __repr__(self):
        w, d, h = self._extents.tolist()
        return f"Box(width={w}, depth={d}, height={h}, center={tuple(self._center.tolist())})"


class Cylinder(Container):
    """Right circular cylinder.

    Parameters
    ----------
    length: float
        Length of the cylinder along its axis.

    radius: float
        Radius of the cylinder.

    axis: str (default "z")
        Axis the cylinder is aligned with, one of "x", "y", "z".

    center: Iterable of float (default (0., 0., 0.))
        Cartesian coordinates of the center of the cylinder.
    """

    def __init__(
        self,
        length: float,
        radius: float,
        axis: str = "z",
        center: Sequence[float] = (0.0, 0.0, 0.0),
    ):
        if not length > 0 or not radius > 0:
            raise ConfigurationError(
                f"Cylinder length and radius should be positive, given length={length}, radius={radius}."
            )
        if axis not in _AXES:
            raise ConfigurationError(f'Invalid cylinder axis: {axis}. Please select one from: {", ".join(_AXES)}.')
        self._length = float(length)
        self._radius = float(radius)
        self._axis = axis
        self._center = np.asarray(center, dtype=float)
        self._center.setflags(write=False)

        # Rolled coordinate indices so that the last one runs along the axis.
        k = _AXES[axis]
        self._shift = [(k + 1) % 3, (k + 2) % 3, k]

    @classmethod
    def sized_for(
        cls,
        descriptors: Sequence[SizeDescriptor],
        sphere_count: int = 1000,
        fill: float = 0.5,
        aspect_ratio: float = 8.0,
        axis: str = "z",
        center: Sequence[float] = (0.0, 0.0, 0.0),
    ) -> "Cylinder":
        """Cylinder with length / radius = aspect_ratio hosting sphere_count spheres at the given fill fraction."""
        if sphere_count < 1 or not 0 < fill <= 1 or aspect_ratio <= 0:
            raise ConfigurationError(
                f"Cannot size a cylinder for {sphere_count} spheres at fill {fill} and aspect ratio {aspect_ratio}."
            )
        volume = expected_sphere_volume(descriptors) * sphere_count / fill
        radius = np.cbrt(volume / (pi * aspect_ratio))
        return cls(radius * aspect_ratio, radius, axis, center)

    @property
    def length(self) -> float:
        return self._length

    @property
    def radius(self) -> float:
        return self._radius

    @property
    def axis(self) -> str:
        return self._axis

    @property
    def center(self) -> np.ndarray:
        return self._center

    @property
    def volume(self) -> float:
        return self._length * pi * self._radius**2

    @property
    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        i, j, k = self._shift
        half = np.empty(3)
        half[i] = half[j] = self._radius
        half[k] = self._length / 2
        return self._center - half, self._center + half

    @property
    def half_extent(self) -> float:
        return min(self._radius, self._length / 2)

    def random_centers(self, radii: np.ndarray, rng: np.random.Generator) -> np.ndarray:
        r = np.asarray(radii, dtype=float)
        n = len(r)
        i, j, k = self._shift
        c = self._center

        rho = np.sqrt(rng.random(n)) * np.maximum(self._radius - r, 0.0)
        theta = rng.random(n) * 2 * pi
        axial = rng.random(n) * np.maximum(self._length - 2 * r, 0.0)

        p = np.empty((n, 3))
        p[:, i] = c[i] + rho * np.cos(theta)
        p[:, j] = c[j] + rho * np.sin(theta)
        p[:, k] = c[k] - self._length / 2 + r + axial
        return p

    def clamp(self, positions: np.ndarray, radii: np.ndarray) -> np.ndarray:
        r = np.asarray(radii, dtype=float)
        i, j, k = self._shift
        c = self._center
        p = np.array(positions, dtype=float)

        # Move offenders back along the surface normal.
        rho = np.hypot(p[:, i] - c[i], p[:, j] - c[j])
        max_rho = np.maximum(self._radius - r, 0.0)
        out = rho > max_rho
        if np.any(out):
            scale = max_rho[out] / rho[out]
            p[out, i] = c[i] + (p[out, i] - c[i]) * scale
            p[out, j] = c[j] + (p[out, j] - c[j]) * scale

        low = c[k] - self._length / 2 + r
        high = np.maximum(c[k] + self._length / 2 - r, low)
        p[:, k] = np.clip(p[:, k], low, high)
        return p

    def contains(self, positions: np.ndarray, radii: np.ndarray, tol: float = 0.0) -> np.ndarray:
        r = np.asarray(radii, dtype=float)
        i, j, k = self._shift
        c = self._center
        rho = np.hypot(positions[:, i] - c[i], positions[:, j] - c[j])
        axial = np.abs(positions[:, k] - c[k])
        return (rho + r <= self._radius + tol) & (axial + r <= self._length / 2 + tol)

    def __repr__(self):
        return (
            f"Cylinder(length={self._length}, radius={self._radius}, axis={self._axis!r}, "
            f"center={tuple(self._center.tolist())})"
        )
