from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from timeit import default_timer as timer
from typing import List, Optional, Tuple

import numpy as np
from tqdm import tqdm

from spherepack.cell_list import CellList, default_cell_size
from spherepack.config import MassMode, PackingConfig
from spherepack.containers import Container
from spherepack.errors import DidNotConverge
from spherepack.spheres import SphereSet


@dataclass
class RearrangementResult:
    """Outcome of a collective rearrangement run.

    Attributes
    ----------
    sphere_set: SphereSet
        The rearranged spheres. On non-convergence these are the positions of the best configuration seen.

    converged: bool
        Whether the maximum overlap depth reached the tolerance.

    iterations: int
        Number of displacement passes applied.

    max_overlap: float
        Maximum overlap depth of `sphere_set`.

    tolerance: float
        Absolute tolerance the run aimed for (relative tolerance times the mean radius).

    reason: str
        "converged", "max_iterations", "stagnation" or "time_limit".

    history: list of float
        Maximum overlap depth before each pass, plus the final one.

    elapsed: float
        Wall clock seconds spent in the run.
    """

    sphere_set: SphereSet
    converged: bool
    iterations: int
    max_overlap: float
    tolerance: float
    reason: str
    history: List[float] = field(default_factory=list)
    elapsed: float = 0.0


def inverse_masses(
    radii: np.ndarray, dim: int, mass_mode: MassMode, max_mass_ratio: Optional[float] = None
) -> np.ndarray:
    r = np.asarray(radii, float)
    if mass_mode == MassMode.volume:
        inv_m = 1.0 / (np.power(r, dim) + 1e-12)
    elif mass_mode == MassMode.radius:
        inv_m = 1.0 / (r + 1e-12)
    else:
        inv_m = np.ones_like(r)
    if max_mass_ratio is not None and len(inv_m):
        inv_m = np.minimum(inv_m, inv_m.min() * max_mass_ratio)
    return inv_m


def coarse_spheres(radii: np.ndarray, staging_ratio: Optional[float]) -> Optional[np.ndarray]:
    """Mask of the spheres resolved in the first stage, None when every sphere is within staging_ratio of the largest."""
    if staging_ratio is None or len(radii) == 0:
        return None
    coarse = radii * staging_ratio >= radii.max()
    if np.all(coarse):
        return None
    return coarse


def fallback_directions(I: np.ndarray, J: np.ndarray, dim: int) -> np.ndarray:
    """Unit vectors for pairs with coincident centers, derived from the pair indices only."""
    u = np.empty((len(I), dim))
    for row, (i, j) in enumerate(zip(I.tolist(), J.tolist())):
        v = np.random.default_rng([i, j]).standard_normal(dim)
        u[row] = v / np.linalg.norm(v)
    return u


def overlapping_pairs(
    positions: np.ndarray, radii: np.ndarray, I: np.ndarray, J: np.ndarray
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Filter candidate pairs down to the ones that overlap.

    Returns
    -------
        I, J: The overlapping pairs.
        dvec: Array of shape (m, d) with the center differences p_i - p_j.
        depth: Array of shape (m, ) with the overlap depths r_i + r_j - |p_i - p_j| (all positive).
    """
    dvec = positions[I] - positions[J]
    dist = np.linalg.norm(dvec, axis=1)
    depth = (radii[I] + radii[J]) - dist
    mask = depth > 0
    return I[mask], J[mask], dvec[mask], depth[mask]


def _accumulate(
    P: np.ndarray,
    r: np.ndarray,
    inv_m: np.ndarray,
    I: np.ndarray,
    J: np.ndarray,
    relaxation: float,
    eps: float,
    active: Optional[np.ndarray] = None,
):
    """Displacements of one pass over the candidate pairs I, J.

    Only pairs of two active spheres are pushed apart, all of them when active is None.

    Returns
    -------
        add: Array of shape (n, d) with the summed displacement of every sphere.
        worst: Array of shape (n, ) with the deepest pushed overlap of every sphere.
        max_depth: Maximum overlap depth over all pairs.
        active_depth: Maximum overlap depth over the pushed pairs.
    """
    n, d = P.shape
    add = np.zeros((n, d))
    worst = np.zeros(n)

    I2, J2, dvec, depth = overlapping_pairs(P, r, I, J)
    if len(depth) == 0:
        return add, worst, 0.0, 0.0
    max_depth = float(depth.max())

    if active is not None:
        keep = active[I2] & active[J2]
        I2, J2, dvec, depth = I2[keep], J2[keep], dvec[keep], depth[keep]
        if len(depth) == 0:
            return add, worst, max_depth, 0.0

    dist = np.linalg.norm(dvec, axis=1)
    u = np.zeros_like(dvec)
    nz = dist >= 1e-12
    u[nz] = dvec[nz] / dist[nz][:, None]
    if np.any(~nz):  # coincident fallback
        u[~nz] = fallback_directions(I2[~nz], J2[~nz], d)

    move = relaxation * (depth + eps)
    wi, wj = inv_m[I2], inv_m[J2]
    ws = wi + wj
    ti = wi / ws
    tj = wj / ws

    dPi = (ti * move)[:, None] * u
    dPj = -(tj * move)[:, None] * u

    # accumulate node increments
    for axis in range(d):
        add[:, axis] = np.bincount(I2, weights=dPi[:, axis], minlength=n) + np.bincount(
            J2, weights=dPj[:, axis], minlength=n
        )

    np.maximum.at(worst, I2, depth)
    np.maximum.at(worst, J2, depth)
    return add, worst, max_depth, float(depth.max())


def _stagnated(history: List[float], window: Optional[int], min_progress: float) -> bool:
    if window is None or len(history) <= window:
        return False
    best_before = min(history[:-window])
    best_recent = min(history[-window:])
    return best_before - best_recent < min_progress * best_before


def collective_rearrangement(
    sphere_set: SphereSet,
    container: Container,
    config: Optional[PackingConfig] = None,
    verbose: bool = False,
) -> RearrangementResult:
    """Iteratively push overlapping spheres apart until the maximum overlap depth is within tolerance.

    Every pass builds the candidate pairs from the cell list, computes for each overlapping pair the displacement
    relaxation * (depth + eps) along the line of centers (split according to the mass mode), applies all
    displacements at once with a per-sphere step cap, clamps the spheres back into the container and updates the
    cell list. The positions of `sphere_set` are updated in place.

    With a wide size distribution (see `PackingConfig.staging_ratio`) the first passes only push apart the large
    spheres. Once they no longer overlap each other, every overlap is resolved.

    Parameters
    ----------
        sphere_set: Starting configuration, possibly with overlaps.
        container: Region confining the spheres.
        config: Tuning parameters, defaults to `PackingConfig()`.
        verbose: If true, print progress messages and a progress bar.

    Returns
    -------
        result: The converged configuration.

    Raises
    ------
        DidNotConverge: When the iteration cap, the stagnation criterion or the time limit stops the run first.
            The exception carries the best configuration seen.
    """
    config = PackingConfig() if config is None else config
    start = timer()

    r = sphere_set.radii
    n, d = sphere_set.positions.shape
    eps = config.tolerance * sphere_set.mean_radius
    inv_m = inverse_masses(r, d, config.mass_mode, config.max_mass_ratio)
    coarse = coarse_spheres(r, config.staging_ratio)

    P = container.clamp(sphere_set.positions, r) if n else sphere_set.positions.copy()
    cell_size = default_cell_size(sphere_set, config.cell_size)
    index = CellList.build(sphere_set.with_positions(P), cell_size, container.bounds)

    if verbose:
        print(f"Resolving overlaps among {n} spheres on a {'x'.join(map(str, index.shape.tolist()))} cell grid...")
        if coarse is not None:
            print(f"Separating the {int(coarse.sum())} largest spheres first.")

    history: List[float] = []
    # max overlap of the pushed pairs, restarted when every pair becomes active
    progress: List[float] = []
    best_overlap = np.inf
    best_P = P.copy()
    iterations = 0
    reason = None

    executor = ThreadPoolExecutor(max_workers=config.n_jobs) if config.n_jobs > 1 else None

    def evaluate(I, J, active):
        if executor is None or len(I) <= config.n_jobs:
            return _accumulate(P, r, inv_m, I, J, config.relaxation, eps, active)
        chunks = np.array_split(np.arange(len(I)), config.n_jobs)
        parts = list(
            executor.map(lambda c: _accumulate(P, r, inv_m, I[c], J[c], config.relaxation, eps, active), chunks)
        )
        return (
            np.sum([p[0] for p in parts], axis=0),
            np.max([p[1] for p in parts], axis=0),
            max(p[2] for p in parts),
            max(p[3] for p in parts),
        )

    try:
        with tqdm(total=config.max_iterations, disable=not verbose) as pbar:
            while True:
                I, J = index.candidate_pairs()
                add, worst, max_depth, active_depth = evaluate(I, J, coarse)
                if coarse is not None and active_depth <= eps:
                    coarse = None
                    progress = []
                    if verbose:
                        print(f"Largest spheres separated after {iterations} passes, resolving all overlaps.")
                    add, worst, max_depth, active_depth = evaluate(I, J, None)

                history.append(max_depth)
                progress.append(active_depth)
                if max_depth < best_overlap:
                    best_overlap = max_depth
                    best_P = P.copy()

                if max_depth <= eps:
                    reason = "converged"
                    break
                if iterations >= config.max_iterations:
                    reason = "max_iterations"
                    break
                if _stagnated(progress, config.stagnation_window, config.min_progress):
                    reason = "stagnation"
                    break
                if config.time_limit is not None and timer() - start > config.time_limit:
                    reason = "time_limit"
                    break

                # node-wise cap vs worst incident overlap
                cap = config.step_cap * worst
                step_norm = np.linalg.norm(add, axis=1)
                scale = np.ones(n, float)
                ok = step_norm > (cap + 1e-12)
                if np.any(ok):
                    scale[ok] = cap[ok] / step_norm[ok]

                P = container.clamp(P + add * scale[:, None], r)
                index.update(P)
                iterations += 1

                if verbose:
                    pbar.set_postfix(max_overlap=f"{max_depth:.3e}", refresh=False)
                pbar.update(1)
    finally:
        if executor is not None:
            executor.shutdown()

    converged = reason == "converged"
    sphere_set.positions[...] = P if converged else best_P
    result = RearrangementResult(
        sphere_set=sphere_set,
        converged=converged,
        iterations=iterations,
        max_overlap=float(history[-1] if converged else best_overlap),
        tolerance=float(eps),
        reason=reason,
        history=history,
        elapsed=timer() - start,
    )

    if verbose:
        print(
            f"Stopped after {iterations} passes ({reason}), max overlap {result.max_overlap:.3e}, "
            f"tolerance {eps:.3e}, {result.elapsed:.2f}s."
        )
    if not converged:
        raise DidNotConverge(result, reason)
    return result
