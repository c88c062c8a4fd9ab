"""Public interface for the patch-based PCA denoiser."""

from __future__ import annotations

from .config import DenoiseConfig, ShrinkKind, ThresholdKind, ThresholdPolicy, ThresholdScope
from .denoiser import denoise, denoise_global, denoise_local, denoise_patches
from .errors import (
    DenoiseCancelledError,
    DenoiseError,
    EmptyPatchListError,
    InsufficientSamplesError,
    InvalidMatrixShapeError,
    InvalidParameterError,
    PatchTooLargeError,
    UnsupportedPolicyError,
)
from .grid import PixelGrid, Tile
from .patches import Patch, extract_patches, reconstruct_patches, reconstruct_tile
from .pca import PCABasis, decompose
from .tiler import partition, stitch

__all__ = [
    "DenoiseConfig",
    "ShrinkKind",
    "ThresholdKind",
    "ThresholdPolicy",
    "ThresholdScope",
    "denoise",
    "denoise_global",
    "denoise_local",
    "denoise_patches",
    "DenoiseCancelledError",
    "DenoiseError",
    "EmptyPatchListError",
    "InsufficientSamplesError",
    "InvalidMatrixShapeError",
    "InvalidParameterError",
    "PatchTooLargeError",
    "UnsupportedPolicyError",
    "PixelGrid",
    "Tile",
    "Patch",
    "extract_patches",
    "reconstruct_patches",
    "reconstruct_tile",
    "PCABasis",
    "decompose",
    "partition",
    "stitch",
]
