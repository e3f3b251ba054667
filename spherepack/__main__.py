from spherepack.cli import run

run()
