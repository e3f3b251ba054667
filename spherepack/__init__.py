from spherepack.cell_list import CellList
from spherepack.config import MassMode, PackingConfig
from spherepack.containers import Box, Container, Cylinder
from spherepack.errors import (
    ConfigurationError,
    DidNotConverge,
    EmptyPackingError,
    GeometryError,
    InvariantViolation,
    SpherePackError,
)
from spherepack.metrics import PackingMetrics, compute_metrics, descriptor_breakdown, residual_overlap
from spherepack.packer import PackingResult, SpherePacker, pack
from spherepack.placement import generate_spheres
from spherepack.rearrangement import RearrangementResult, collective_rearrangement
from spherepack.spheres import SizeDescriptor, Sphere, SphereSet

__version__ = "0.1.0"
