from enum import Enum
from pathlib import Path
from timeit import default_timer as timer
from typing import List

import pandas as pd
import typer

from spherepack import Box, DidNotConverge, PackingConfig, SizeDescriptor, collective_rearrangement
from spherepack.metrics import compute_metrics
from spherepack.placement import generate_spheres


class ScenarioGroup(str, Enum):
    small = "small"
    large = "large"


SCENARIOS = {
    "monodisperse": [SizeDescriptor("unit", 1.0, 1)],
    "bidisperse": [SizeDescriptor("small", 1.0, 1), SizeDescriptor("large", 2.0, 1)],
    "propellant": [SizeDescriptor("5_micron_Al", 5.0, 66), SizeDescriptor("40_AP", 40.0, 34)],
}

SPHERE_COUNTS = {
    ScenarioGroup.small: [100, 500],
    ScenarioGroup.large: [2000, 10000],
}


def time_function_call(f, *args, **kwargs):
    start = timer()
    result = f(*args, **kwargs)
    end = timer()
    return result, end - start


def main(
    output_path: Path,
    scenario_group: ScenarioGroup = ScenarioGroup.small,
    fractions: List[float] = typer.Option([0.3, 0.45]),
    seed: int = 5536,
    max_iterations: int = 5000,
    continue_on_error: bool = False,
    verbose: bool = False,
):
    config = PackingConfig(max_iterations=max_iterations)
    rows = []
    for name, descriptors in SCENARIOS.items():
        for count in SPHERE_COUNTS[scenario_group]:
            for fraction in fractions:
                try:
                    container = Box.sized_for(descriptors, sphere_count=count, fill=fraction)
                    spheres = generate_spheres(descriptors, container, sphere_count=count, seed=seed)
                    print(f"Packing {name} with {count} spheres at fraction {fraction}...")
                    try:
                        result, seconds = time_function_call(
                            collective_rearrangement, spheres, container, config, verbose=verbose
                        )
                    except DidNotConverge as e:
                        result, seconds = e.result, e.result.elapsed
                    metrics = compute_metrics(result.sphere_set, container, approximate=not result.converged)
                    rows.append(
                        {
                            "scenario": name,
                            "sphere_count": count,
                            "target_fraction": fraction,
                            "volume_fraction": metrics.volume_fraction,
                            "surface_to_volume_ratio": metrics.surface_to_volume_ratio,
                            "converged": result.converged,
                            "reason": result.reason,
                            "iterations": result.iterations,
                            "max_overlap": result.max_overlap,
                            "seconds": seconds,
                        }
                    )
                except Exception as e:
                    if continue_on_error:
                        print(f"Failed to run scenario {name} with {count} spheres.")
                        print(f"Error: {e}")
                    else:
                        raise e

    scores = pd.DataFrame(rows)
    scores.to_csv(output_path, index=False)
    print(scores.to_string(index=False))


if __name__ == "__main__":
    typer.run(main)
