import json
from pathlib import Path
from typing import Tuple, Union

from spherepack.errors import ConfigurationError
from spherepack.metrics import PackingMetrics
from spherepack.spheres import SizeDescriptor, validate_descriptors

_FIELDS = ("name", "radius", "proportion")


def parse_descriptors(text: str, require_percentages: bool = False) -> Tuple[SizeDescriptor, ...]:
    """Parse a JSON list of {"name", "radius", "proportion"} objects into validated descriptors.

    With require_percentages the proportions must sum to exactly 100.
    """
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Failed to parse the sphere descriptors: {e}") from e

    if not isinstance(raw, list):
        raise ConfigurationError(f"Expected a list of sphere descriptors, got {type(raw).__name__}.")

    descriptors = []
    for position, entry in enumerate(raw):
        if not isinstance(entry, dict) or any(key not in entry for key in _FIELDS):
            raise ConfigurationError(
                f"Descriptor {position} should be an object with the fields {', '.join(_FIELDS)}, got {entry!r}."
            )
        descriptors.append(SizeDescriptor(entry["name"], entry["radius"], entry["proportion"]))

    descriptors = validate_descriptors(descriptors)
    if require_percentages:
        total = sum(d.proportion for d in descriptors)
        if total != 100:
            raise ConfigurationError(f"Invalid proportions: they sum to {total} instead of 100.")
    return descriptors


def read_descriptors(path: Union[Path, str], require_percentages: bool = False) -> Tuple[SizeDescriptor, ...]:
    return parse_descriptors(Path(path).read_text(), require_percentages=require_percentages)


def metrics_to_dict(metrics: PackingMetrics) -> dict:
    return {
        "volume_fraction": metrics.volume_fraction,
        "surface_to_volume_ratio": metrics.surface_to_volume_ratio,
        "sphere_count": metrics.sphere_count,
        "approximate": metrics.approximate,
    }


def write_metrics(path: Union[Path, str], metrics: PackingMetrics):
    Path(path).write_text(json.dumps(metrics_to_dict(metrics)))
