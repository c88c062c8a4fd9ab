"""Grayscale sample buffers shared by every stage of the denoiser."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .config import MAX_PIXEL_VALUE
from .errors import InvalidParameterError


def clamp_to_uint8(values: np.ndarray) -> np.ndarray:
    """Round to the nearest integer and clip into [0, 255]."""
    return np.clip(np.rint(values), 0, MAX_PIXEL_VALUE).astype(np.uint8)


@dataclass
class PixelGrid:
    """Rectangular 8-bit grayscale buffer stored as ``pixels[y, x]``."""

    pixels: np.ndarray

    def __post_init__(self):
        if self.pixels.ndim != 2:
            raise InvalidParameterError(
                f"PixelGrid expects a 2-D array, got shape {self.pixels.shape}"
            )
        if self.pixels.shape[0] <= 0 or self.pixels.shape[1] <= 0:
            raise InvalidParameterError(
                f"PixelGrid dimensions must be positive, got {self.pixels.shape[1]}x{self.pixels.shape[0]}"
            )
        if self.pixels.dtype != np.uint8:
            self.pixels = clamp_to_uint8(self.pixels)

    @classmethod
    def from_array(cls, array) -> "PixelGrid":
        """Build a grid from any 2-D numeric array (rounded and clamped)."""
        return cls(clamp_to_uint8(np.asarray(array, dtype=np.float64)))

    @classmethod
    def zeros(cls, width: int, height: int) -> "PixelGrid":
        if width <= 0 or height <= 0:
            raise InvalidParameterError(f"Grid dimensions must be positive, got {width}x{height}")
        return cls(np.zeros((height, width), dtype=np.uint8))

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def _check_bounds(self, x: int, y: int) -> None:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise InvalidParameterError(
                f"Pixel ({x}, {y}) outside grid {self.width}x{self.height}"
            )

    def get(self, x: int, y: int) -> int:
        self._check_bounds(x, y)
        return int(self.pixels[y, x])

    def set(self, x: int, y: int, value: float) -> None:
        """Write one sample, clamped into [0, 255]."""
        self._check_bounds(x, y)
        self.pixels[y, x] = min(MAX_PIXEL_VALUE, max(0, int(round(value))))

    def copy(self) -> "PixelGrid":
        return PixelGrid(self.pixels.copy())

    def region(self, x: int, y: int, width: int, height: int) -> "PixelGrid":
        """Return a copy of a sub-rectangle."""
        if x < 0 or y < 0 or width <= 0 or height <= 0 or x + width > self.width or y + height > self.height:
            raise InvalidParameterError(
                f"Region ({x}, {y}, {width}x{height}) outside grid {self.width}x{self.height}"
            )
        return PixelGrid(self.pixels[y : y + height, x : x + width].copy())


@dataclass
class Tile:
    """A sub-grid plus its offset in the parent grid."""

    grid: PixelGrid
    pos_x: int
    pos_y: int

    @property
    def width(self) -> int:
        return self.grid.width

    @property
    def height(self) -> int:
        return self.grid.height

    @property
    def bounds(self) -> tuple:
        """(x0, y0, x1, y1) in parent coordinates, exclusive end."""
        return (self.pos_x, self.pos_y, self.pos_x + self.width, self.pos_y + self.height)
