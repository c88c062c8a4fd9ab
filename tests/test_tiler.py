"""Tests for tile layout selection, partitioning and stitching."""

from __future__ import annotations

import numpy as np
import pytest

from pca_denoiser.errors import InvalidParameterError
from pca_denoiser.grid import PixelGrid, Tile
from pca_denoiser.tiler import choose_layout, partition, stitch


def _make_random_grid(width: int, height: int, seed: int = 0) -> PixelGrid:
    rng = np.random.default_rng(seed)
    return PixelGrid(rng.integers(0, 256, (height, width), dtype=np.uint8))


class TestChooseLayout:
    @pytest.mark.parametrize(
        "width,height,target,expected",
        [
            (64, 64, 16, (4, 4)),
            (200, 100, 8, (2, 4)),
            (100, 200, 8, (4, 2)),
            (100, 100, 1, (1, 1)),
            (100, 100, 5, (1, 5)),
        ],
    )
    def test_layouts(self, width, height, target, expected):
        assert choose_layout(width, height, target) == expected

    @pytest.mark.parametrize("target", [1, 2, 3, 7, 16, 30])
    def test_enough_cells(self, target):
        rows, cols = choose_layout(120, 80, target)
        assert rows * cols >= target

    def test_rejects_bad_target(self):
        with pytest.raises(InvalidParameterError):
            choose_layout(10, 10, 0)


class TestPartition:
    @pytest.mark.parametrize(
        "width,height,target",
        [(64, 64, 16), (37, 23, 6), (5, 7, 30), (2, 2, 9), (200, 90, 16), (1, 1, 4)],
    )
    def test_tiles_cover_grid_exactly_once(self, width, height, target):
        grid = _make_random_grid(width, height)
        covered = np.zeros((height, width), dtype=int)
        for tile in partition(grid, target):
            x0, y0, x1, y1 = tile.bounds
            assert x1 > x0 and y1 > y0
            covered[y0:y1, x0:x1] += 1
        assert np.all(covered == 1)

    @pytest.mark.parametrize("width,height,target", [(64, 64, 16), (37, 23, 6), (2, 2, 9)])
    def test_stitch_is_lossless(self, width, height, target):
        grid = _make_random_grid(width, height, seed=7)
        out = stitch(partition(grid, target), width, height)
        np.testing.assert_array_equal(out.pixels, grid.pixels)

    def test_spans_differ_by_at_most_one(self):
        tiles = partition(_make_random_grid(37, 23), 16)
        assert max(t.width for t in tiles) - min(t.width for t in tiles) <= 1
        assert max(t.height for t in tiles) - min(t.height for t in tiles) <= 1

    def test_row_major_order(self):
        tiles = partition(_make_random_grid(64, 64), 16)
        assert len(tiles) == 16
        origins = [(t.pos_y, t.pos_x) for t in tiles]
        assert origins == sorted(origins)
        assert all(t.width == 16 and t.height == 16 for t in tiles)

    def test_tile_contents_match_source(self):
        grid = _make_random_grid(30, 20, seed=3)
        for tile in partition(grid, 6):
            x0, y0, x1, y1 = tile.bounds
            np.testing.assert_array_equal(tile.grid.pixels, grid.pixels[y0:y1, x0:x1])

    def test_stitch_rejects_tile_outside(self):
        tile = Tile(PixelGrid.zeros(4, 4), 6, 0)
        with pytest.raises(InvalidParameterError):
            stitch([tile], 8, 8)
