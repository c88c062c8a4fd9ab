"""
Patch-based PCA denoising pipeline.

Implements the two strategies used by the command line tools:

1. Global: a single PCA over every patch of the image, one lambda for all
   coefficients.
2. Local: the image is split into near-square tiles, each tile gets its own
   PCA and eigenvalue-adaptive lambdas, and the tiles are stitched back.

Per call the pipeline runs extract -> decompose -> (estimate sigma) ->
compute lambda -> threshold -> reconstruct, and keeps no state between
calls.
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from typing import Callable, List, Optional, Tuple

import numpy as np

from .config import (
    DEFAULT_TILE_COUNT,
    NOISE_TRIM_FRACTION,
    ShrinkKind,
    ThresholdKind,
    ThresholdPolicy,
    ThresholdScope,
)
from .errors import DenoiseCancelledError, InvalidParameterError
from .grid import PixelGrid, Tile
from .patches import extract_patches, matrix_to_patches, patches_to_matrix, reconstruct_patches
from .pca import decompose, reconstruct
from .thresholding import compute_threshold, estimate_noise_sigma, threshold_coefficients
from .tiler import partition, stitch

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]


def _resolve_kinds(threshold_kind, shrink_kind) -> Tuple[ThresholdKind, ShrinkKind]:
    threshold = ThresholdKind.parse(threshold_kind)
    shrink = ShrinkKind.parse(shrink_kind)
    if shrink == ShrinkKind.FIXED:
        raise InvalidParameterError("Image denoising needs a 'visu' or 'bayes' shrink estimator")
    return threshold, shrink


def denoise_patches(V, policy: ThresholdPolicy, sigma: Optional[float]) -> np.ndarray:
    """
    Denoise a ``dim x M`` sample matrix.

    Args:
        V: vectorised patches, one per column.
        policy: shrinkage rule; an ``ADAPTIVE`` scope scales lambda per
            eigencomponent.
        sigma: noise standard deviation; ``None`` or ``<= 0`` estimates it
            from the weakest components.

    Returns:
        The reconstructed (unclamped) sample matrix.
    """
    basis = decompose(V)
    if sigma is None or sigma <= 0:
        sigma = estimate_noise_sigma(basis.alpha, NOISE_TRIM_FRACTION)
        logger.debug("Estimated noise sigma %.3f", sigma)
    lam = compute_threshold(policy, sigma, basis.alpha)
    logger.debug("Threshold %s/%s/%s lambda=%.3f", policy.kind.value, policy.estimator.value, policy.scope.value, lam)
    alpha = threshold_coefficients(policy, lam, basis.alpha, basis.eigenvalues)
    return reconstruct(basis.eigenvectors, alpha, basis.mean)


def _denoise_grid(
    grid: PixelGrid,
    patch_side: int,
    policy: ThresholdPolicy,
    sigma: Optional[float],
    min_overlap: Optional[int],
    blend: str,
) -> PixelGrid:
    patches = extract_patches(grid, patch_side, min_overlap)
    V = patches_to_matrix(patches)
    denoised = matrix_to_patches(denoise_patches(V, policy, sigma), patches)
    return reconstruct_patches(denoised, grid.width, grid.height, blend=blend)


def denoise_global(
    grid: PixelGrid,
    patch_side: int,
    threshold_kind="hard",
    shrink_kind="visu",
    sigma: Optional[float] = 0.0,
    min_overlap: Optional[int] = None,
    blend: str = "overwrite",
) -> PixelGrid:
    """Single PCA over all patches of ``grid`` with one fixed lambda."""
    threshold, shrink = _resolve_kinds(threshold_kind, shrink_kind)
    policy = ThresholdPolicy(kind=threshold, estimator=shrink, scope=ThresholdScope.GLOBAL)
    return _denoise_grid(grid, patch_side, policy, sigma, min_overlap, blend)


def _denoise_tile(
    tile: Tile,
    patch_side: int,
    policy: ThresholdPolicy,
    sigma: Optional[float],
    min_overlap: Optional[int],
    blend: str,
    cancel_event: Optional[threading.Event],
) -> Tile:
    if cancel_event is not None and cancel_event.is_set():
        raise DenoiseCancelledError(f"Cancelled before tile at ({tile.pos_x}, {tile.pos_y})")
    if patch_side > tile.width or patch_side > tile.height:
        logger.debug(
            "Tile at (%d, %d) is %dx%d, smaller than patch side %d; left unchanged",
            tile.pos_x, tile.pos_y, tile.width, tile.height, patch_side,
        )
        return tile
    result = _denoise_grid(tile.grid, patch_side, policy, sigma, min_overlap, blend)
    return Tile(result, tile.pos_x, tile.pos_y)


def _report_progress(callback: Optional[ProgressCallback], current: int, total: int, label: str) -> None:
    if not callback:
        return
    try:
        callback(current, total, label)
    except Exception as exc:  # pylint: disable=broad-except
        logger.warning("Progress callback failed: %s", exc)


def denoise_local(
    grid: PixelGrid,
    patch_side: int,
    tile_count: int = DEFAULT_TILE_COUNT,
    threshold_kind="hard",
    shrink_kind="visu",
    sigma: Optional[float] = 0.0,
    min_overlap: Optional[int] = None,
    blend: str = "overwrite",
    workers: int = 1,
    cancel_event: Optional[threading.Event] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> PixelGrid:
    """
    Independent PCA per tile with eigenvalue-adaptive thresholds.

    Tiles smaller than ``patch_side`` are copied through unchanged.  With
    ``workers > 1`` tiles are processed on a thread pool; ``cancel_event``
    is checked before each tile starts.
    """
    threshold, shrink = _resolve_kinds(threshold_kind, shrink_kind)
    if workers < 1:
        raise InvalidParameterError(f"workers must be >= 1, got {workers}")
    policy = ThresholdPolicy(kind=threshold, estimator=shrink, scope=ThresholdScope.ADAPTIVE)

    tiles = partition(grid, tile_count)
    total = len(tiles)
    logger.debug("Local denoise: %d tiles, patch side %d, %d worker(s)", total, patch_side, workers)
    args = (patch_side, policy, sigma, min_overlap, blend, cancel_event)

    results: List[Tile] = []
    if workers == 1:
        for idx, tile in enumerate(tiles, 1):
            results.append(_denoise_tile(tile, *args))
            _report_progress(progress_callback, idx, total, f"Tile {idx}/{total}")
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(_denoise_tile, tile, *args) for tile in tiles]
            try:
                for idx, future in enumerate(futures, 1):
                    results.append(future.result())
                    _report_progress(progress_callback, idx, total, f"Tile {idx}/{total}")
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

    return stitch(results, grid.width, grid.height)


def denoise(
    grid: PixelGrid,
    patch_side: int,
    is_global: bool,
    threshold_kind="hard",
    shrink_kind="visu",
    sigma: Optional[float] = 0.0,
    tile_count: int = DEFAULT_TILE_COUNT,
    **kwargs,
) -> PixelGrid:
    """Validate the parameters and run the global or local strategy.

    Extra keyword arguments are forwarded to :func:`denoise_global` or
    :func:`denoise_local`.
    """
    if patch_side <= 0 or patch_side > min(grid.width, grid.height):
        raise InvalidParameterError(
            f"Patch side {patch_side} must be in (0, {min(grid.width, grid.height)}] "
            f"for a {grid.width}x{grid.height} image"
        )
    threshold, shrink = _resolve_kinds(threshold_kind, shrink_kind)
    if is_global:
        return denoise_global(grid, patch_side, threshold, shrink, sigma, **kwargs)
    if tile_count < 1:
        raise InvalidParameterError(f"Tile count must be >= 1, got {tile_count}")
    return denoise_local(grid, patch_side, tile_count, threshold, shrink, sigma, **kwargs)
