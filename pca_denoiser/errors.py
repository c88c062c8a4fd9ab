"""Exception types raised by the denoising core.

Every error carries the offending values in its message so a failed run can
be diagnosed without re-running it.  Parameter-style errors also subclass
``ValueError`` so callers that only know the standard library can still
catch them.
"""

from __future__ import annotations


class DenoiseError(Exception):
    """Base class for all denoiser failures."""


class InvalidParameterError(DenoiseError, ValueError):
    """A parameter is out of bounds or not recognised."""


class UnsupportedPolicyError(InvalidParameterError):
    """Unknown threshold kind, shrink estimator or scope."""


class InsufficientSamplesError(DenoiseError):
    """Fewer samples than dimensions were passed to a PCA call."""

    def __init__(self, samples: int, dim: int):
        self.samples = samples
        self.dim = dim
        super().__init__(
            f"Cannot estimate covariance: {samples} samples for dimension {dim} "
            f"(need at least {dim})"
        )


class PatchTooLargeError(DenoiseError, ValueError):
    """Patch side exceeds the extent of the grid it is cut from."""

    def __init__(self, side: int, width: int, height: int):
        self.side = side
        self.width = width
        self.height = height
        super().__init__(f"Patch side {side} exceeds grid size {width}x{height}")


class EmptyPatchListError(DenoiseError, ValueError):
    """Reconstruction was attempted from zero patches."""


class InvalidMatrixShapeError(DenoiseError, ValueError):
    """Matrices passed between stages have incompatible shapes."""


class DenoiseCancelledError(DenoiseError):
    """A cancellation request was observed between tiles."""
