from enum import Enum
from pathlib import Path
from typing import Optional

import typer

from spherepack.containers import Box, Cylinder
from spherepack.errors import SpherePackError
from spherepack.io import read_descriptors, write_metrics
from spherepack.metrics import descriptor_breakdown
from spherepack.packer import DEFAULT_ASPECT_RATIO, DEFAULT_FILL, DEFAULT_SPHERE_COUNT, SpherePacker


class ContainerShape(str, Enum):
    cylinder = "cylinder"
    box = "box"


def build_container(descriptors, shape: ContainerShape, size: Optional[float], sphere_count: Optional[int]):
    count = sphere_count if sphere_count else DEFAULT_SPHERE_COUNT
    if shape == ContainerShape.box:
        if size is None:
            return Box.sized_for(descriptors, sphere_count=count, fill=DEFAULT_FILL)
        return Box.cube(size)
    if size is None:
        return Cylinder.sized_for(descriptors, sphere_count=count, fill=DEFAULT_FILL, aspect_ratio=DEFAULT_ASPECT_RATIO)
    return Cylinder(DEFAULT_ASPECT_RATIO * size, size)


def main(
    input_path: Path = typer.Argument(..., help="JSON file with the sphere descriptors."),
    output_path: Path = typer.Argument(..., help="JSON file the packing metrics are written to."),
    sphere_count: Optional[int] = None,
    target_fraction: Optional[float] = None,
    container: ContainerShape = ContainerShape.cylinder,
    size: Optional[float] = typer.Option(None, help="Box side or cylinder radius. Sized from the spheres if unset."),
    seed: Optional[int] = None,
    relaxation: float = 0.5,
    tolerance: float = 1e-7,
    max_iterations: int = 5000,
    time_limit: Optional[float] = None,
    n_jobs: int = 1,
    strict: bool = False,
    require_percentages: bool = False,
    verbose: bool = False,
):
    """Attempt to pack spheres into a container and report the result."""
    try:
        descriptors = read_descriptors(input_path, require_percentages=require_percentages)
        packer = SpherePacker(
            sphere_count=sphere_count,
            target_fraction=target_fraction,
            container=build_container(descriptors, container, size, sphere_count),
            random_state=seed,
            relaxation=relaxation,
            tolerance=tolerance,
            max_iterations=max_iterations,
            time_limit=time_limit,
            n_jobs=n_jobs,
            strict=strict,
        )
        result = packer.pack(descriptors, verbose=verbose)
    except SpherePackError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    write_metrics(output_path, result.metrics)
    if verbose:
        print(descriptor_breakdown(result.sphere_set).to_string())


def run():
    typer.run(main)


if __name__ == "__main__":
    run()
