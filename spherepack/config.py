from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from spherepack.errors import ConfigurationError


class MassMode(str, Enum):
    """How the displacement resolving one overlap is split between the two spheres."""

    volume = "volume"
    radius = "radius"
    equal = "equal"


@dataclass(frozen=True)
class PackingConfig:
    """Tuning parameters of one rearrangement run.

    The value is immutable and handed explicitly to every engine invocation, so independent runs never share state.

    Parameters
    ----------
    relaxation: float (default 0.5)
        Under-relaxation factor alpha in (0, 1]. Each pass moves a pair apart by alpha times its overlap depth.

    tolerance: float (default 1e-7)
        Convergence threshold on the maximum overlap depth, relative to the mean sphere radius.

    max_iterations: int (default 5000)
        Hard cap on the number of passes.

    stagnation_window: Optional[int] (default 500)
        Number of passes over which the best max-overlap must improve by at least `min_progress` (relative).
        `None` disables the stagnation exit.

    min_progress: float (default 1e-3)
        Minimum relative improvement of the best max-overlap over a stagnation window.

    step_cap: float (default 0.9)
        A sphere never moves more than step_cap times the depth of its deepest overlap in a single pass.

    mass_mode: MassMode (default "volume")
        "volume" makes large spheres move less, "radius" weights by radius and "equal" splits every move in half.

    max_mass_ratio: Optional[float] (default 100.)
        Upper bound on the ratio between the largest and smallest sphere mass, so that large spheres still yield to
        small ones in wide size distributions. `None` keeps the raw masses.

    staging_ratio: Optional[float] (default 4.)
        When the largest radius is more than staging_ratio times the smallest, the passes first resolve only the
        overlaps among spheres within that ratio of the largest, and then all overlaps. `None` disables staging.

    cell_size: Optional[float] (default None)
        Edge length requested for the spatial index cells. `None` uses twice the largest radius; smaller values are
        raised to that bound since they would miss overlaps.

    time_limit: Optional[float] (default None)
        Wall clock budget in seconds, checked between passes.

    n_jobs: int (default 1)
        Number of threads evaluating candidate pairs in each pass.
    """

    relaxation: float = 0.5
    tolerance: float = 1e-7
    max_iterations: int = 5000
    stagnation_window: Optional[int] = 500
    min_progress: float = 1e-3
    step_cap: float = 0.9
    mass_mode: MassMode = MassMode.volume
    max_mass_ratio: Optional[float] = 100.0
    staging_ratio: Optional[float] = 4.0
    cell_size: Optional[float] = None
    time_limit: Optional[float] = None
    n_jobs: int = 1

    def __post_init__(self):
        try:
            object.__setattr__(self, "mass_mode", MassMode(self.mass_mode))
        except ValueError:
            raise ConfigurationError(
                f"Invalid mass mode: {self.mass_mode}. "
                f'Please select one from: {", ".join(m.value for m in MassMode)}.'
            )

        if not 0.0 < self.relaxation <= 1.0:
            raise ConfigurationError(f"The relaxation factor should lie in (0, 1], given {self.relaxation}.")
        if self.tolerance <= 0:
            raise ConfigurationError(f"The tolerance should be positive, given {self.tolerance}.")
        if self.max_iterations < 1:
            raise ConfigurationError(f"At least one iteration is needed, given {self.max_iterations}.")
        if self.stagnation_window is not None and self.stagnation_window < 1:
            raise ConfigurationError(f"The stagnation window should be positive, given {self.stagnation_window}.")
        if self.min_progress < 0:
            raise ConfigurationError(f"The minimum progress cannot be negative, given {self.min_progress}.")
        if self.step_cap <= 0:
            raise ConfigurationError(f"The step cap should be positive, given {self.step_cap}.")
        if self.max_mass_ratio is not None and not self.max_mass_ratio >= 1.0:
            raise ConfigurationError(f"The maximum mass ratio should be at least 1, given {self.max_mass_ratio}.")
        if self.staging_ratio is not None and not self.staging_ratio > 1.0:
            raise ConfigurationError(f"The staging ratio should be larger than 1, given {self.staging_ratio}.")
        if self.cell_size is not None and self.cell_size <= 0:
            raise ConfigurationError(f"The cell size should be positive, given {self.cell_size}.")
        if self.time_limit is not None and self.time_limit <= 0:
            raise ConfigurationError(f"The time limit should be positive, given {self.time_limit}.")
        if self.n_jobs < 1:
            raise ConfigurationError(f"The number of jobs should be at least 1, given {self.n_jobs}.")

    def replace(self, **changes) -> "PackingConfig":
        return replace(self, **changes)
