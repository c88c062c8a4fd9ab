"""
noise.py – Synthetic additive Gaussian noise for test images.

Each pixel receives an independent N(0, sigma^2) sample; the result is
rounded and clamped back into [0, 255].
"""
from __future__ import annotations

from typing import Optional

import numpy as np

from .errors import InvalidParameterError
from .grid import PixelGrid


def add_gaussian_noise(grid: PixelGrid, sigma: float, seed: Optional[int] = None) -> PixelGrid:
    """
    Return a noisy copy of ``grid``.

    Parameters
    ----------
    grid  : source samples (left untouched)
    sigma : standard deviation of the noise, >= 0
    seed  : seed for ``numpy.random.default_rng``; fixed seeds give
            reproducible noise
    """
    if sigma < 0:
        raise InvalidParameterError(f"Noise sigma must be >= 0, got {sigma}")
    rng = np.random.default_rng(seed)
    noisy = grid.pixels.astype(np.float64) + rng.normal(0.0, sigma, grid.pixels.shape)
    return PixelGrid.from_array(noisy)
