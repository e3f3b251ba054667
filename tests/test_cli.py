import json

import pytest
import typer
from typer.testing import CliRunner

from spherepack import Box, Cylinder, SizeDescriptor
from spherepack.cli import ContainerShape, build_container, main

runner = CliRunner()
app = typer.Typer()
app.command()(main)

UNIT = '[{"name": "unit", "radius": 1.0, "proportion": 100}]'


@pytest.fixture
def spheres_file(tmp_path):
    path = tmp_path / "spheres.json"
    path.write_text(UNIT)
    return path


def test_metrics_are_written(spheres_file, tmp_path):
    output = tmp_path / "metrics.json"
    result = runner.invoke(
        app,
        [str(spheres_file), str(output), "--sphere-count", "20", "--container", "box", "--size", "10", "--seed", "1"],
    )

    assert result.exit_code == 0, result.output
    metrics = json.loads(output.read_text())
    assert metrics["sphere_count"] == 20
    assert metrics["approximate"] is False
    assert metrics["volume_fraction"] == pytest.approx(20 * 4 / 3 * 3.141592653589793 / 1000)
    assert metrics["surface_to_volume_ratio"] == pytest.approx(3.0)


def test_verbose_prints_the_breakdown(spheres_file, tmp_path):
    result = runner.invoke(
        app,
        [
            str(spheres_file),
            str(tmp_path / "metrics.json"),
            "--sphere-count",
            "10",
            "--container",
            "box",
            "--size",
            "10",
            "--verbose",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "volume_share" in result.output
    assert "Packed 10 spheres" in result.output


def test_best_effort_packing_is_reported_as_approximate(spheres_file, tmp_path):
    output = tmp_path / "metrics.json"
    args = [str(spheres_file), str(output), "--sphere-count", "30", "--container", "box", "--size", "5.64"]
    args += ["--seed", "99", "--max-iterations", "50"]

    with pytest.warns(RuntimeWarning):
        result = runner.invoke(app, args)

    assert result.exit_code == 0, result.output
    assert json.loads(output.read_text())["approximate"] is True


def test_strict_failure_exits_with_an_error(spheres_file, tmp_path):
    output = tmp_path / "metrics.json"
    args = [str(spheres_file), str(output), "--sphere-count", "30", "--container", "box", "--size", "5.64"]
    args += ["--seed", "99", "--max-iterations", "50", "--strict"]

    result = runner.invoke(app, args)

    assert result.exit_code == 1
    assert "did not converge" in result.output
    assert not output.exists()


def test_percentages_are_enforced_on_request(tmp_path):
    path = tmp_path / "spheres.json"
    path.write_text('[{"name": "a", "radius": 1.0, "proportion": 60}, {"name": "b", "radius": 2.0, "proportion": 30}]')

    result = runner.invoke(app, [str(path), str(tmp_path / "m.json"), "--require-percentages"])

    assert result.exit_code == 1
    assert "sum to 90" in result.output


def test_build_container():
    descriptors = [SizeDescriptor("unit", 1.0, 1)]

    assert isinstance(build_container(descriptors, ContainerShape.box, 4.0, None), Box)
    assert build_container(descriptors, ContainerShape.box, 4.0, None).volume == pytest.approx(64.0)
    cylinder = build_container(descriptors, ContainerShape.cylinder, 2.0, None)
    assert isinstance(cylinder, Cylinder)
    assert cylinder.length == pytest.approx(16.0)
    sized = build_container(descriptors, ContainerShape.cylinder, None, 100)
    assert sized.volume == pytest.approx(100 * 4 / 3 * 3.141592653589793 / 0.5)
