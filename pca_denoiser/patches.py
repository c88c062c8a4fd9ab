"""
patches.py – Overlapping square patch extraction and patch-grid reconstruction.

extract_patches: evenly spaced patches whose overlap is never below the
  requested minimum and whose union covers every pixel.

reconstruct_patches: write patches back into a grid (last writer wins by
  default, or average every contribution).

patches_to_matrix / matrix_to_patches: convert to and from the ``dim x M``
  layout consumed by the PCA engine.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .config import BLEND_MODES
from .grid import PixelGrid, Tile, clamp_to_uint8
from .errors import (
    EmptyPatchListError,
    InvalidMatrixShapeError,
    InvalidParameterError,
    PatchTooLargeError,
)


@dataclass
class Patch:
    """Square window of ``side x side`` samples with its origin in the source grid."""

    samples: np.ndarray   # flat, length side**2, row-major inside the patch
    x: int
    y: int
    side: int

    def as_block(self) -> np.ndarray:
        return np.asarray(self.samples).reshape(self.side, self.side)


def _axis_origins(length: int, side: int, min_overlap: int) -> List[int]:
    if length == side:
        return [0]
    count = int(math.ceil((length - side) / (side - min_overlap))) + 1
    return [(i * (length - side)) // (count - 1) for i in range(count)]


def extract_patches(grid: PixelGrid, side: int, min_overlap: Optional[int] = None) -> List[Patch]:
    """
    Cut ``grid`` into overlapping ``side x side`` patches, row-major.

    Args:
        grid: source samples.
        side: patch edge length in pixels.
        min_overlap: minimum overlap between neighbouring patches
            (default ``side // 2``).

    Returns:
        Patches ordered by row, then column.  The first patch of each axis
        starts at 0 and the last one ends exactly on the grid boundary.
    """
    if side <= 0:
        raise InvalidParameterError(f"Patch side must be positive, got {side}")
    if side > grid.width or side > grid.height:
        raise PatchTooLargeError(side, grid.width, grid.height)
    if min_overlap is None:
        min_overlap = side // 2
    if not 0 <= min_overlap < side:
        raise InvalidParameterError(
            f"min_overlap must be in [0, {side}), got {min_overlap}"
        )

    xs = _axis_origins(grid.width, side, min_overlap)
    ys = _axis_origins(grid.height, side, min_overlap)
    pixels = grid.pixels
    return [
        Patch(pixels[y : y + side, x : x + side].reshape(-1).copy(), x, y, side)
        for y in ys
        for x in xs
    ]


def reconstruct_patches(
    patches: Sequence[Patch],
    width: int,
    height: int,
    blend: str = "overwrite",
) -> PixelGrid:
    """Paste ``patches`` into a new ``width x height`` grid.

    With ``blend="overwrite"`` later patches replace earlier ones where they
    overlap.  ``blend="average"`` takes the mean of all contributions.
    """
    if not patches:
        raise EmptyPatchListError("Cannot reconstruct a grid from an empty patch list")
    if blend not in BLEND_MODES:
        raise InvalidParameterError(f"Unknown blend mode {blend!r}; expected one of {BLEND_MODES}")
    if width <= 0 or height <= 0:
        raise InvalidParameterError(f"Grid dimensions must be positive, got {width}x{height}")

    if blend == "overwrite":
        out = np.zeros((height, width), dtype=np.uint8)
        for patch in patches:
            _check_fits(patch, width, height)
            out[patch.y : patch.y + patch.side, patch.x : patch.x + patch.side] = clamp_to_uint8(
                patch.as_block()
            )
        return PixelGrid(out)

    sums = np.zeros((height, width), dtype=np.float64)
    counts = np.zeros((height, width), dtype=np.int64)
    for patch in patches:
        _check_fits(patch, width, height)
        sums[patch.y : patch.y + patch.side, patch.x : patch.x + patch.side] += patch.as_block()
        counts[patch.y : patch.y + patch.side, patch.x : patch.x + patch.side] += 1
    averaged = np.divide(sums, counts, out=np.zeros_like(sums), where=counts > 0)
    return PixelGrid.from_array(averaged)


def reconstruct_tile(
    patches: Sequence[Patch],
    width: int,
    height: int,
    pos_x: int,
    pos_y: int,
    blend: str = "overwrite",
) -> Tile:
    return Tile(reconstruct_patches(patches, width, height, blend=blend), pos_x, pos_y)


def _check_fits(patch: Patch, width: int, height: int) -> None:
    if patch.x < 0 or patch.y < 0 or patch.x + patch.side > width or patch.y + patch.side > height:
        raise InvalidParameterError(
            f"Patch at ({patch.x}, {patch.y}) with side {patch.side} does not fit in {width}x{height}"
        )


def patches_to_matrix(patches: Sequence[Patch]) -> np.ndarray:
    """Stack patch vectors as columns of a ``side**2 x M`` float matrix."""
    if not patches:
        raise EmptyPatchListError("Cannot vectorise an empty patch list")
    length = patches[0].side * patches[0].side
    for patch in patches:
        if np.asarray(patch.samples).size != length:
            raise InvalidMatrixShapeError(
                f"Patch at ({patch.x}, {patch.y}) has {np.asarray(patch.samples).size} samples, expected {length}"
            )
    return np.stack([np.asarray(p.samples, dtype=np.float64).reshape(-1) for p in patches], axis=1)


def matrix_to_patches(matrix: np.ndarray, template: Sequence[Patch]) -> List[Patch]:
    """Rebuild patches from matrix columns, reusing origins from ``template``.

    Samples are rounded and clamped into [0, 255].
    """
    matrix = np.asarray(matrix)
    if matrix.ndim != 2 or matrix.shape[1] != len(template):
        raise InvalidMatrixShapeError(
            f"Matrix of shape {matrix.shape} does not match {len(template)} patches"
        )
    if template and matrix.shape[0] != template[0].side ** 2:
        raise InvalidMatrixShapeError(
            f"Matrix rows {matrix.shape[0]} do not match patch side {template[0].side}"
        )
    values = clamp_to_uint8(matrix)
    return [
        Patch(values[:, i].copy(), patch.x, patch.y, patch.side)
        for i, patch in enumerate(template)
    ]
