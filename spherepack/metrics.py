from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy.spatial import cKDTree

from spherepack.containers import Container
from spherepack.errors import EmptyPackingError, InvariantViolation
from spherepack.spheres import SphereSet

# Relative slack on the volume fraction before it is reported as impossible.
_FRACTION_SLACK = 1e-9


@dataclass(frozen=True)
class PackingMetrics:
    volume_fraction: float
    surface_to_volume_ratio: float
    sphere_count: int
    approximate: bool = False
    residual_overlap: float = 0.0


def compute_metrics(
    sphere_set: SphereSet,
    container: Container,
    approximate: bool = False,
    residual_overlap: float = 0.0,
) -> PackingMetrics:
    """Reduce a packing to its volume fraction, surface to volume ratio and sphere count.

    The surface to volume ratio is total sphere surface over total sphere volume, a property of the size
    distribution independent of the container. Pass approximate=True for packings that did not reach the overlap
    tolerance, so the numbers are flagged as such.
    """
    if len(sphere_set) == 0:
        raise EmptyPackingError("Cannot compute metrics of an empty packing, the surface to volume ratio is undefined.")

    sphere_volume = float(np.sum(sphere_set.volumes))
    surface = float(np.sum(sphere_set.surfaces))
    volume_fraction = sphere_volume / container.volume
    if volume_fraction > 1.0 + _FRACTION_SLACK:
        raise InvariantViolation(
            f"Volume fraction {volume_fraction} exceeds 1: {len(sphere_set)} spheres with total volume "
            f"{sphere_volume} cannot fit in a container of volume {container.volume}."
        )

    return PackingMetrics(
        volume_fraction=volume_fraction,
        surface_to_volume_ratio=surface / sphere_volume,
        sphere_count=len(sphere_set),
        approximate=bool(approximate),
        residual_overlap=float(residual_overlap),
    )


def residual_overlap(sphere_set: SphereSet) -> float:
    """Maximum overlap depth of a packing, computed independently of the cell list with a k-d tree."""
    if len(sphere_set) < 2:
        return 0.0
    P = sphere_set.positions
    r = sphere_set.radii
    pairs = cKDTree(P).query_pairs(2.0 * sphere_set.max_radius, output_type="ndarray")
    if len(pairs) == 0:
        return 0.0
    i, j = pairs[:, 0], pairs[:, 1]
    depth = (r[i] + r[j]) - np.linalg.norm(P[i] - P[j], axis=1)
    return float(max(depth.max(), 0.0))


def descriptor_breakdown(sphere_set: SphereSet) -> pd.DataFrame:
    """Per descriptor count, number fraction and shares of the total sphere volume and surface.

    Returns
    -------
        breakdown: A DataFrame indexed by descriptor name, listing every descriptor including unused ones.
    """
    names = [d.name for d in sphere_set.descriptors]
    frame = pd.DataFrame(
        {
            "name": [names[k] for k in sphere_set.kinds],
            "volume": sphere_set.volumes,
            "surface": sphere_set.surfaces,
        }
    )
    grouped = frame.groupby("name").agg(count=("volume", "size"), volume=("volume", "sum"), surface=("surface", "sum"))
    grouped = grouped.reindex(pd.Index(names, name="name"), fill_value=0)
    grouped["radius"] = [d.radius for d in sphere_set.descriptors]
    grouped["proportion"] = [d.proportion for d in sphere_set.descriptors]

    total = max(len(sphere_set), 1)
    grouped["number_fraction"] = grouped["count"] / total
    grouped["volume_share"] = grouped["volume"] / max(float(grouped["volume"].sum()), 1e-300)
    grouped["surface_share"] = grouped["surface"] / max(float(grouped["surface"].sum()), 1e-300)
    return grouped[["radius", "proportion", "count", "number_fraction", "volume_share", "surface_share"]]
