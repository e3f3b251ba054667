from pathlib import Path

import setuptools

this_directory = Path(__file__).parent
long_description = (this_directory / "README.rst").read_text()

test_dependencies = ["pytest", "pre_commit"]


setuptools.setup(
    name="spherepack",
    version="0.1.0",
    description="Dense random packing of polydisperse spheres by collective rearrangement.",
    long_description=long_description,
    long_description_content_type="text/x-rst",
    packages=["spherepack"],
    classifiers=[
        "Development Status :: 3 - Alpha",
        "License :: OSI Approved :: MIT License",
        "Operating System :: Unix",
        "Operating System :: MacOS",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
    ],
    keywords="sphere packing volume fraction collective rearrangement cell list granular",
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.18",
        "scipy",
        "pandas",
        "tqdm",
        "typer",
    ],
    entry_points={"console_scripts": ["spherepack=spherepack.cli:run"]},
    test_suite="pytest",
    tests_require=test_dependencies,
    extras_require={"test": test_dependencies},
)
