"""Objective image quality metrics (MSE and PSNR)."""

from __future__ import annotations

import math
from typing import Dict

import numpy as np

from .config import MAX_PIXEL_VALUE
from .errors import InvalidParameterError
from .grid import PixelGrid


def mse(reference: PixelGrid, candidate: PixelGrid) -> float:
    """Mean squared error between two grids of equal size."""
    if (reference.width, reference.height) != (candidate.width, candidate.height):
        raise InvalidParameterError(
            f"Images must have the same size: {reference.width}x{reference.height} "
            f"vs {candidate.width}x{candidate.height}"
        )
    diff = reference.pixels.astype(np.float64) - candidate.pixels.astype(np.float64)
    return float(np.mean(diff * diff))


def psnr(mse_value: float, max_value: int = MAX_PIXEL_VALUE) -> float:
    """Peak signal-to-noise ratio in dB; infinite for identical images."""
    if mse_value < 0:
        raise InvalidParameterError(f"MSE must be >= 0, got {mse_value}")
    if mse_value == 0:
        return math.inf
    return 10.0 * math.log10((max_value * max_value) / mse_value)


def compare(reference: PixelGrid, candidate: PixelGrid) -> Dict[str, float]:
    error = mse(reference, candidate)
    return {"mse": error, "psnr": psnr(error)}
