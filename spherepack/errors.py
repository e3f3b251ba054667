class SpherePackError(Exception):
    """Base class of every error raised by spherepack."""


class ConfigurationError(SpherePackError, ValueError):
    """Invalid descriptors or packing parameters, e.g. an empty descriptor list or zero total proportion."""


class GeometryError(SpherePackError, ValueError):
    """A sphere cannot be placed in the container, e.g. its radius exceeds the container half-extent."""


class EmptyPackingError(SpherePackError, ValueError):
    """Metrics were requested on a packing with no spheres."""


class InvariantViolation(SpherePackError, AssertionError):
    """A computed quantity is physically impossible, e.g. a volume fraction above 1."""


class DidNotConverge(SpherePackError):
    """The rearrangement stopped before the overlap tolerance was met.

    This is a recoverable outcome: `result` holds the best configuration seen during the run, so the caller can
    accept it as an approximate packing or retry with other parameters.

    Attributes
    ----------
        result: The best-effort `RearrangementResult`.
        reason: One of "max_iterations", "stagnation" or "time_limit".
    """

    def __init__(self, result, reason: str):
        self.result = result
        self.reason = reason
        super().__init__(
            f"Packing did not converge ({reason}) after {result.iterations} passes, "
            f"residual max overlap {result.max_overlap:.3e} > tolerance {result.tolerance:.3e}."
        )

    @property
    def max_overlap(self) -> float:
        return self.result.max_overlap

    @property
    def iterations(self) -> int:
        return self.result.iterations
