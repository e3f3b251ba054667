import warnings
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from spherepack.config import MassMode, PackingConfig
from spherepack.containers import Container, Cylinder
from spherepack.errors import DidNotConverge
from spherepack.metrics import PackingMetrics, compute_metrics
from spherepack.placement import generate_spheres
from spherepack.rearrangement import RearrangementResult, collective_rearrangement
from spherepack.spheres import SizeDescriptor, SphereSet, validate_descriptors

DEFAULT_SPHERE_COUNT = 1000
DEFAULT_FILL = 0.5
DEFAULT_ASPECT_RATIO = 8.0


@dataclass
class PackingResult:
    sphere_set: SphereSet
    container: Container
    metrics: PackingMetrics
    rearrangement: RearrangementResult

    @property
    def converged(self) -> bool:
        return self.rearrangement.converged


class SpherePacker:
    """Dense random packing of polydisperse spheres by collective rearrangement.

    Spheres are drawn from a size distribution and dropped at random in the container, then overlapping spheres are
    pushed apart simultaneously, pass after pass, until no two spheres interpenetrate by more than the tolerance.

    Parameters
    ----------
    sphere_count: Optional[int] (default None)
        Number of spheres to pack. Exactly one of sphere_count and target_fraction may be given; when both are
        missing 1000 spheres are packed.

    target_fraction: Optional[float] (default None)
        Keep adding spheres until their volume reaches this fraction of the container.

    container: Optional[Container] (default None)
        Region to pack. If None, a cylinder with length 8 times its radius is sized so that the expected sphere
        volume fills half of it.

    random_state: Optional[int] (default None)
        Seed of the initial placement, for reproducibility.

    relaxation, tolerance, max_iterations, stagnation_window, min_progress, step_cap, mass_mode, max_mass_ratio,
    staging_ratio, cell_size, time_limit, n_jobs:
        Rearrangement parameters, see `PackingConfig`.

    strict: bool (default False)
        If true, a packing that does not converge raises `DidNotConverge`. Otherwise a RuntimeWarning is emitted
        and the best-effort packing is returned with its metrics flagged as approximate.

    Attributes
    ----------
    config: PackingConfig
        The immutable rearrangement configuration built from the parameters.

    result_: Optional[PackingResult]
        The result of the last call of `pack`.
    """

    def __init__(
        self,
        sphere_count: Optional[int] = None,
        target_fraction: Optional[float] = None,
        container: Optional[Container] = None,
        random_state: Optional[int] = None,
        relaxation: float = 0.5,
        tolerance: float = 1e-7,
        max_iterations: int = 5000,
        stagnation_window: Optional[int] = 500,
        min_progress: float = 1e-3,
        step_cap: float = 0.9,
        mass_mode: Union[str, MassMode] = "volume",
        max_mass_ratio: Optional[float] = 100.0,
        staging_ratio: Optional[float] = 4.0,
        cell_size: Optional[float] = None,
        time_limit: Optional[float] = None,
        n_jobs: int = 1,
        strict: bool = False,
    ):
        self.sphere_count = sphere_count
        self.target_fraction = target_fraction
        self.container = container
        self.random_state = random_state
        self.strict = strict
        self.config = PackingConfig(
            relaxation=relaxation,
            tolerance=tolerance,
            max_iterations=max_iterations,
            stagnation_window=stagnation_window,
            min_progress=min_progress,
            step_cap=step_cap,
            mass_mode=mass_mode,
            max_mass_ratio=max_mass_ratio,
            staging_ratio=staging_ratio,
            cell_size=cell_size,
            time_limit=time_limit,
            n_jobs=n_jobs,
        )
        self.result_: Optional[PackingResult] = None

    def _resolve_container(self, descriptors) -> Container:
        if self.container is not None:
            return self.container
        count = self.sphere_count if self.sphere_count else DEFAULT_SPHERE_COUNT
        return Cylinder.sized_for(
            descriptors, sphere_count=count, fill=DEFAULT_FILL, aspect_ratio=DEFAULT_ASPECT_RATIO
        )

    def pack(self, descriptors: Iterable[SizeDescriptor], verbose: bool = False) -> PackingResult:
        """Generate, rearrange and measure a packing.

        Parameters
        ----------
        descriptors: Iterable of SizeDescriptor
            The size distribution of the spheres.

        verbose: bool (default False)
            If true, print progress messages.
        """
        descriptors = validate_descriptors(descriptors)
        container = self._resolve_container(descriptors)
        sphere_count = self.sphere_count
        if sphere_count is None and self.target_fraction is None:
            sphere_count = DEFAULT_SPHERE_COUNT

        if verbose:
            print(f"Generating spheres from {len(descriptors)} descriptors in {container!r}...")
        sphere_set = generate_spheres(
            descriptors,
            container,
            sphere_count=sphere_count,
            target_fraction=self.target_fraction,
            seed=self.random_state,
        )

        try:
            rearrangement = collective_rearrangement(sphere_set, container, self.config, verbose=verbose)
        except DidNotConverge as e:
            if self.strict:
                raise
            warnings.warn(f"{e} Returning the best-effort packing with approximate metrics.", RuntimeWarning)
            rearrangement = e.result

        metrics = compute_metrics(
            rearrangement.sphere_set,
            container,
            approximate=not rearrangement.converged,
            residual_overlap=rearrangement.max_overlap,
        )
        if verbose:
            print(
                f"Packed {metrics.sphere_count} spheres: volume fraction {metrics.volume_fraction:.4f}, "
                f"surface to volume ratio {metrics.surface_to_volume_ratio:.4g}."
            )

        self.result_ = PackingResult(rearrangement.sphere_set, container, metrics, rearrangement)
        return self.result_


def pack(
    descriptors: Iterable[SizeDescriptor],
    container: Optional[Container] = None,
    sphere_count: Optional[int] = None,
    target_fraction: Optional[float] = None,
    config: Optional[PackingConfig] = None,
    seed: Optional[int] = None,
    strict: bool = False,
    verbose: bool = False,
) -> PackingResult:
    """Functional shortcut for `SpherePacker(...).pack(descriptors)` with an explicit configuration value."""
    config = PackingConfig() if config is None else config
    packer = SpherePacker(
        sphere_count=sphere_count,
        target_fraction=target_fraction,
        container=container,
        random_state=seed,
        relaxation=config.relaxation,
        tolerance=config.tolerance,
        max_iterations=config.max_iterations,
        stagnation_window=config.stagnation_window,
        min_progress=config.min_progress,
        step_cap=config.step_cap,
        mass_mode=config.mass_mode,
        max_mass_ratio=config.max_mass_ratio,
        staging_ratio=config.staging_ratio,
        cell_size=config.cell_size,
        time_limit=config.time_limit,
        n_jobs=config.n_jobs,
        strict=strict,
    )
    return packer.pack(descriptors, verbose=verbose)
