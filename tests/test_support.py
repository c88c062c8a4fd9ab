"""Tests for the supporting modules: grid, config, noise, metrics, image io."""

from __future__ import annotations

import math
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from pca_denoiser.config import DenoiseConfig, DenoiseMode, ShrinkKind, ThresholdKind, format_sigma
from pca_denoiser.errors import InvalidParameterError, UnsupportedPolicyError
from pca_denoiser.grid import PixelGrid
from pca_denoiser.io import load_grid, save_grid, to_grayscale
from pca_denoiser.metrics import compare, mse, psnr
from pca_denoiser.noise import add_gaussian_noise


# ---------------------------------------------------------------------------
# PixelGrid
# ---------------------------------------------------------------------------

class TestPixelGrid:
    def test_dimensions(self):
        grid = PixelGrid.zeros(5, 3)
        assert (grid.width, grid.height) == (5, 3)
        assert grid.pixels.shape == (3, 5)

    def test_set_clamps(self):
        grid = PixelGrid.zeros(2, 2)
        grid.set(0, 0, 300)
        grid.set(1, 0, -7)
        grid.set(0, 1, 99.6)
        assert grid.get(0, 0) == 255
        assert grid.get(1, 0) == 0
        assert grid.get(0, 1) == 100

    def test_out_of_bounds(self):
        grid = PixelGrid.zeros(2, 2)
        with pytest.raises(InvalidParameterError):
            grid.get(2, 0)
        with pytest.raises(InvalidParameterError):
            grid.set(0, -1, 5)

    def test_from_array_rounds_and_clamps(self):
        grid = PixelGrid.from_array([[-3.0, 12.5], [254.6, 999.0]])
        assert grid.pixels.dtype == np.uint8
        np.testing.assert_array_equal(grid.pixels, [[0, 12], [255, 255]])

    def test_rejects_bad_shapes(self):
        with pytest.raises(InvalidParameterError):
            PixelGrid(np.zeros((2, 2, 3), dtype=np.uint8))
        with pytest.raises(InvalidParameterError):
            PixelGrid(np.zeros((0, 4), dtype=np.uint8))

    def test_region_is_a_copy(self):
        grid = PixelGrid(np.arange(20, dtype=np.uint8).reshape(4, 5))
        sub = grid.region(1, 2, 3, 2)
        np.testing.assert_array_equal(sub.pixels, [[11, 12, 13], [16, 17, 18]])
        sub.set(0, 0, 0)
        assert grid.get(1, 2) == 11
        with pytest.raises(InvalidParameterError):
            grid.region(3, 0, 3, 1)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

class TestConfig:
    def test_defaults(self):
        cfg = DenoiseConfig()
        assert cfg.mode == DenoiseMode.LOCAL
        assert not cfg.is_global
        assert cfg.patch_side == 8
        assert cfg.tile_count == 16
        assert cfg.label() == "local_hard_visu"

    def test_from_dict_accepts_aliases(self):
        cfg = DenoiseConfig.from_dict({"mode": "global", "threshold": "SOFT", "shrink": "b", "sigma": 12})
        assert cfg.is_global
        assert cfg.threshold == ThresholdKind.SOFT
        assert cfg.shrink == ShrinkKind.BAYES
        assert cfg.sigma == 12.0
        assert cfg.label() == "global_soft_bayes"

    def test_dict_round_trip(self):
        cfg = DenoiseConfig(mode=DenoiseMode.GLOBAL, sigma=7.5, min_overlap=2, workers=4, blend="average")
        assert DenoiseConfig.from_dict(cfg.to_dict()) == cfg

    def test_from_dict_rejects_unknown_values(self):
        with pytest.raises(InvalidParameterError):
            DenoiseConfig.from_dict({"mode": "tiled"})
        with pytest.raises(UnsupportedPolicyError):
            DenoiseConfig.from_dict({"threshold": "garrote"})
        with pytest.raises(InvalidParameterError):
            DenoiseConfig.from_dict({"blend": "median"})

    def test_from_dict_converts_min_overlap(self):
        assert DenoiseConfig.from_dict({"min_overlap": "4"}).min_overlap == 4
        assert DenoiseConfig.from_dict({"min_overlap": None}).min_overlap is None
        with pytest.raises(ValueError):
            DenoiseConfig.from_dict({"min_overlap": "half"})

    @pytest.mark.parametrize("sigma,expected", [(20, "20"), (20.0, "20"), (12.5, "12.5"), (0.0, "0")])
    def test_format_sigma(self, sigma, expected):
        assert format_sigma(sigma) == expected


# ---------------------------------------------------------------------------
# Noise and metrics
# ---------------------------------------------------------------------------

class TestNoise:
    def test_seed_is_reproducible(self):
        grid = PixelGrid(np.full((32, 32), 128, dtype=np.uint8))
        a = add_gaussian_noise(grid, 20, seed=42)
        b = add_gaussian_noise(grid, 20, seed=42)
        np.testing.assert_array_equal(a.pixels, b.pixels)
        assert not np.array_equal(a.pixels, grid.pixels)

    def test_noise_level(self):
        grid = PixelGrid(np.full((128, 128), 128, dtype=np.uint8))
        noisy = add_gaussian_noise(grid, 10, seed=0)
        std = noisy.pixels.astype(float).std()
        assert 9.0 < std < 11.0

    def test_zero_sigma_is_identity(self):
        grid = PixelGrid(np.random.default_rng(0).integers(0, 256, (8, 8), dtype=np.uint8))
        np.testing.assert_array_equal(add_gaussian_noise(grid, 0).pixels, grid.pixels)

    def test_source_untouched(self):
        grid = PixelGrid(np.full((8, 8), 100, dtype=np.uint8))
        add_gaussian_noise(grid, 30, seed=1)
        assert np.all(grid.pixels == 100)

    def test_negative_sigma(self):
        with pytest.raises(InvalidParameterError):
            add_gaussian_noise(PixelGrid.zeros(4, 4), -1)


class TestMetrics:
    def test_identical_images(self):
        grid = PixelGrid(np.full((4, 4), 77, dtype=np.uint8))
        scores = compare(grid, grid.copy())
        assert scores["mse"] == 0.0
        assert math.isinf(scores["psnr"])

    def test_known_values(self):
        a = PixelGrid.zeros(4, 4)
        b = PixelGrid(np.full((4, 4), 10, dtype=np.uint8))
        assert mse(a, b) == pytest.approx(100.0)
        assert psnr(100.0) == pytest.approx(10 * math.log10(255 ** 2 / 100.0))

    def test_size_mismatch(self):
        with pytest.raises(InvalidParameterError):
            mse(PixelGrid.zeros(4, 4), PixelGrid.zeros(4, 5))


# ---------------------------------------------------------------------------
# Image io
# ---------------------------------------------------------------------------

class TestImageIO:
    def test_png_round_trip(self, tmp_path):
        grid = PixelGrid(np.random.default_rng(0).integers(0, 256, (12, 20), dtype=np.uint8))
        path = save_grid(grid, tmp_path / "nested" / "gray.png")
        assert path.exists()
        loaded = load_grid(path)
        np.testing.assert_array_equal(loaded.pixels, grid.pixels)

    def test_colour_images_become_gray(self, tmp_path):
        rgb = np.zeros((6, 9, 3), dtype=np.uint8)
        rgb[..., 0] = 200
        Image.fromarray(rgb).save(tmp_path / "red.png")
        rgba = np.dstack([rgb, np.full((6, 9), 255, dtype=np.uint8)])
        Image.fromarray(rgba).save(tmp_path / "red_alpha.png")

        for name in ("red.png", "red_alpha.png"):
            grid = load_grid(tmp_path / name)
            assert (grid.width, grid.height) == (9, 6)
            assert np.all(grid.pixels == grid.pixels[0, 0])
            assert 50 < grid.pixels[0, 0] < 70

    def test_to_grayscale_rejects_odd_shapes(self):
        with pytest.raises(InvalidParameterError):
            to_grayscale(np.zeros((4, 4, 2), dtype=np.uint8))

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            load_grid(Path(tmp_path) / "missing.png")
