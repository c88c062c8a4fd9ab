"""Near-square partition of a grid into disjoint tiles, and the inverse stitch."""

from __future__ import annotations

import math
from typing import List, Sequence, Tuple

from .errors import InvalidParameterError
from .grid import PixelGrid, Tile


def choose_layout(width: int, height: int, target_count: int) -> Tuple[int, int]:
    """
    Pick ``(rows, cols)`` with ``rows * cols >= target_count``.

    The cell count is minimised first; among equal counts the layout whose
    cells are closest to square (smallest ``|ln(cell_w / cell_h)|``) wins,
    the earliest row count winning ties.
    """
    if target_count < 1:
        raise InvalidParameterError(f"Tile count must be >= 1, got {target_count}")
    if width <= 0 or height <= 0:
        raise InvalidParameterError(f"Grid dimensions must be positive, got {width}x{height}")

    best_rows, best_cols = 1, target_count
    best_aspect = math.inf
    for rows in range(1, target_count + 1):
        cols = int(math.ceil(target_count / rows))
        aspect = abs(math.log((width / cols) / (height / rows)))
        cells, best_cells = rows * cols, best_rows * best_cols
        if cells < best_cells or (cells == best_cells and aspect < best_aspect):
            best_rows, best_cols, best_aspect = rows, cols, aspect
    return best_rows, best_cols


def _span_edges(length: int, parts: int) -> List[int]:
    # round half up, so spans differ by at most one pixel
    return [int(math.floor(k * length / parts + 0.5)) for k in range(parts + 1)]


def partition(grid: PixelGrid, target_count: int) -> List[Tile]:
    """Split ``grid`` into row-major tiles that cover it exactly once."""
    rows, cols = choose_layout(grid.width, grid.height, target_count)
    xs = _span_edges(grid.width, cols)
    ys = _span_edges(grid.height, rows)

    tiles: List[Tile] = []
    for r in range(rows):
        for c in range(cols):
            x0, x1 = xs[c], xs[c + 1]
            y0, y1 = ys[r], ys[r + 1]
            if x1 <= x0 or y1 <= y0:
                continue  # more cuts than pixels along this axis
            tiles.append(Tile(grid.region(x0, y0, x1 - x0, y1 - y0), x0, y0))
    return tiles


def stitch(tiles: Sequence[Tile], width: int, height: int) -> PixelGrid:
    """Copy each tile back into a ``width x height`` grid at its offset."""
    out = PixelGrid.zeros(width, height)
    for tile in tiles:
        x0, y0, x1, y1 = tile.bounds
        if x0 < 0 or y0 < 0 or x1 > width or y1 > height:
            raise InvalidParameterError(
                f"Tile {tile.bounds} lies outside the {width}x{height} grid"
            )
        out.pixels[y0:y1, x0:x1] = tile.grid.pixels
    return out
