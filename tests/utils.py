from typing import Set, Tuple

import numpy as np

from spherepack import PackingConfig, SizeDescriptor


def unit_descriptors():
    return [SizeDescriptor("unit", 1.0, 1)]


def bidisperse_descriptors():
    return [SizeDescriptor("small", 1.0, 1), SizeDescriptor("large", 2.0, 1)]


def propellant_descriptors():
    """Aluminium and ammonium perchlorate particles, a radius ratio of 80."""
    return [SizeDescriptor("5_micron_Al", 5.0, 66), SizeDescriptor("400_AP", 400.0, 34)]


def patient_config(**changes) -> PackingConfig:
    """A configuration that only stops on convergence or a generous iteration cap."""
    return PackingConfig(max_iterations=20_000, stagnation_window=None).replace(**changes)


def brute_force_overlapping_pairs(positions: np.ndarray, radii: np.ndarray) -> Set[Tuple[int, int]]:
    n = len(radii)
    iu, ju = np.triu_indices(n, k=1)
    dist = np.linalg.norm(positions[iu] - positions[ju], axis=1)
    mask = dist < radii[iu] + radii[ju]
    return set(zip(iu[mask].tolist(), ju[mask].tolist()))


def brute_force_max_overlap(positions: np.ndarray, radii: np.ndarray) -> float:
    n = len(radii)
    if n < 2:
        return 0.0
    iu, ju = np.triu_indices(n, k=1)
    depth = radii[iu] + radii[ju] - np.linalg.norm(positions[iu] - positions[ju], axis=1)
    return float(max(depth.max(), 0.0))


def closed_form_surface_to_volume(radii) -> float:
    radii = np.asarray(radii, float)
    return float(np.sum(4 * np.pi * radii**2) / np.sum(4 / 3 * np.pi * radii**3))
