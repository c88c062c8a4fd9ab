"""Tests for patch extraction, reconstruction and matrix conversion."""

from __future__ import annotations

import math

import numpy as np
import pytest

from pca_denoiser.errors import (
    EmptyPatchListError,
    InvalidMatrixShapeError,
    InvalidParameterError,
    PatchTooLargeError,
)
from pca_denoiser.grid import PixelGrid
from pca_denoiser.patches import (
    Patch,
    extract_patches,
    matrix_to_patches,
    patches_to_matrix,
    reconstruct_patches,
    reconstruct_tile,
)


def _make_random_grid(width: int, height: int, seed: int = 0) -> PixelGrid:
    rng = np.random.default_rng(seed)
    return PixelGrid(rng.integers(0, 256, (height, width), dtype=np.uint8))


def _constant_patch(value: int, x: int, y: int, side: int) -> Patch:
    return Patch(np.full(side * side, value, dtype=np.uint8), x, y, side)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

class TestExtraction:
    @pytest.mark.parametrize(
        "width,height,side,min_overlap",
        [(64, 64, 8, None), (37, 23, 8, None), (50, 50, 7, 0), (30, 19, 5, 4), (8, 8, 8, None), (9, 40, 8, 2)],
    )
    def test_patches_cover_every_pixel(self, width, height, side, min_overlap):
        grid = _make_random_grid(width, height)
        patches = extract_patches(grid, side, min_overlap)
        covered = np.zeros((height, width), dtype=int)
        for patch in patches:
            assert 0 <= patch.x <= width - side
            assert 0 <= patch.y <= height - side
            covered[patch.y : patch.y + side, patch.x : patch.x + side] += 1
        assert covered.min() >= 1

    @pytest.mark.parametrize("length,side,min_overlap", [(64, 8, 4), (37, 8, 4), (50, 7, 0), (30, 5, 4)])
    def test_neighbours_respect_min_overlap(self, length, side, min_overlap):
        grid = _make_random_grid(length, side)
        xs = [p.x for p in extract_patches(grid, side, min_overlap)]
        assert xs[0] == 0
        assert xs[-1] == length - side
        for a, b in zip(xs, xs[1:]):
            assert b > a
            assert side - (b - a) >= min_overlap

    def test_patch_count(self):
        grid = _make_random_grid(64, 64)
        patches = extract_patches(grid, 8)
        per_axis = math.ceil((64 - 8) / (8 - 4)) + 1
        assert per_axis == 15
        assert len(patches) == per_axis * per_axis

    def test_single_patch_when_side_equals_size(self):
        grid = _make_random_grid(8, 8)
        patches = extract_patches(grid, 8)
        assert len(patches) == 1
        np.testing.assert_array_equal(patches[0].as_block(), grid.pixels)

    def test_row_major_order(self):
        patches = extract_patches(_make_random_grid(24, 16), 8)
        origins = [(p.y, p.x) for p in patches]
        assert origins == sorted(origins)

    def test_samples_match_source(self):
        grid = _make_random_grid(20, 20, seed=5)
        for patch in extract_patches(grid, 6):
            np.testing.assert_array_equal(
                patch.as_block(), grid.pixels[patch.y : patch.y + 6, patch.x : patch.x + 6]
            )

    def test_patch_too_large(self):
        with pytest.raises(PatchTooLargeError):
            extract_patches(_make_random_grid(10, 6), 8)

    def test_invalid_arguments(self):
        grid = _make_random_grid(16, 16)
        with pytest.raises(InvalidParameterError):
            extract_patches(grid, 0)
        with pytest.raises(InvalidParameterError):
            extract_patches(grid, 8, min_overlap=8)
        with pytest.raises(InvalidParameterError):
            extract_patches(grid, 8, min_overlap=-1)


# ---------------------------------------------------------------------------
# Reconstruction
# ---------------------------------------------------------------------------

class TestReconstruction:
    @pytest.mark.parametrize("blend", ["overwrite", "average"])
    def test_unmodified_patches_rebuild_source(self, blend):
        grid = _make_random_grid(37, 23, seed=2)
        patches = extract_patches(grid, 8)
        rebuilt = reconstruct_patches(patches, grid.width, grid.height, blend=blend)
        np.testing.assert_array_equal(rebuilt.pixels, grid.pixels)

    def test_last_writer_wins(self):
        patches = [_constant_patch(10, 0, 0, 4), _constant_patch(200, 2, 0, 4)]
        out = reconstruct_patches(patches, 6, 4)
        assert np.all(out.pixels[:, :2] == 10)
        assert np.all(out.pixels[:, 2:] == 200)

    def test_average_blend(self):
        patches = [_constant_patch(10, 0, 0, 4), _constant_patch(200, 2, 0, 4)]
        out = reconstruct_patches(patches, 6, 4, blend="average")
        assert np.all(out.pixels[:, :2] == 10)
        assert np.all(out.pixels[:, 2:4] == 105)
        assert np.all(out.pixels[:, 4:] == 200)

    def test_uncovered_pixels_are_zero(self):
        out = reconstruct_patches([_constant_patch(50, 0, 0, 2)], 4, 4)
        assert out.pixels[0, 0] == 50
        assert out.pixels[3, 3] == 0

    def test_empty_patch_list(self):
        with pytest.raises(EmptyPatchListError):
            reconstruct_patches([], 8, 8)

    def test_patch_outside_grid(self):
        with pytest.raises(InvalidParameterError):
            reconstruct_patches([_constant_patch(1, 6, 0, 4)], 8, 8)

    def test_unknown_blend(self):
        with pytest.raises(InvalidParameterError):
            reconstruct_patches([_constant_patch(1, 0, 0, 4)], 8, 8, blend="median")

    def test_reconstruct_tile_keeps_offset(self):
        grid = _make_random_grid(16, 12)
        tile = reconstruct_tile(extract_patches(grid, 4), 16, 12, 32, 48)
        assert (tile.pos_x, tile.pos_y) == (32, 48)
        assert tile.bounds == (32, 48, 48, 60)
        np.testing.assert_array_equal(tile.grid.pixels, grid.pixels)


# ---------------------------------------------------------------------------
# Matrix conversion
# ---------------------------------------------------------------------------

class TestMatrixConversion:
    def test_columns_are_patch_vectors(self):
        grid = _make_random_grid(16, 16)
        patches = extract_patches(grid, 4)
        V = patches_to_matrix(patches)
        assert V.shape == (16, len(patches))
        assert V.dtype == np.float64
        np.testing.assert_array_equal(V[:, 3], patches[3].samples)

    def test_matrix_to_patches_rounds_and_clamps(self):
        template = [_constant_patch(0, 0, 0, 2), _constant_patch(0, 1, 1, 2)]
        matrix = np.array([[-5.0, 300.0], [12.4, 12.6], [0.0, 255.0], [128.0, 64.0]])
        patches = matrix_to_patches(matrix, template)
        np.testing.assert_array_equal(patches[0].samples, [0, 12, 0, 128])
        np.testing.assert_array_equal(patches[1].samples, [255, 13, 255, 64])
        assert (patches[1].x, patches[1].y) == (1, 1)

    def test_matrix_shape_mismatch(self):
        template = [_constant_patch(0, 0, 0, 2)]
        with pytest.raises(InvalidMatrixShapeError):
            matrix_to_patches(np.zeros((4, 2)), template)
        with pytest.raises(InvalidMatrixShapeError):
            matrix_to_patches(np.zeros((9, 1)), template)

    def test_empty_patch_list(self):
        with pytest.raises(EmptyPatchListError):
            patches_to_matrix([])
