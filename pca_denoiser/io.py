"""Image file boundary: decode to and encode from :class:`PixelGrid`."""

from __future__ import annotations

from pathlib import Path
from typing import Union

import cv2
import numpy as np
from PIL import Image

from .errors import InvalidParameterError
from .grid import PixelGrid

PathLike = Union[str, Path]


def to_grayscale(array: np.ndarray) -> np.ndarray:
    """Collapse RGB/RGBA (or already gray) pixel data to one 8-bit channel."""
    if array.ndim == 2:
        return array.astype(np.uint8, copy=False)
    if array.ndim == 3 and array.shape[2] == 4:
        return cv2.cvtColor(array, cv2.COLOR_RGBA2GRAY)
    if array.ndim == 3 and array.shape[2] == 3:
        return cv2.cvtColor(array, cv2.COLOR_RGB2GRAY)
    raise InvalidParameterError(f"Unsupported image shape: {array.shape}")


def load_grid(path: PathLike) -> PixelGrid:
    """Read an image file as an 8-bit grayscale grid."""
    with Image.open(path) as img:
        if img.mode not in ("L", "RGB", "RGBA"):
            img = img.convert("RGBA" if "A" in img.getbands() else "RGB")
        array = np.array(img)
    return PixelGrid(to_grayscale(array))


def save_grid(grid: PixelGrid, path: PathLike) -> Path:
    """Write ``grid`` as a grayscale image, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(grid.pixels).save(path)
    return path
