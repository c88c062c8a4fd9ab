"""Visual diagnostics for denoising runs.

Generates inspection-friendly images:
  - Side-by-side comparison: input | denoised | amplified difference
  - Tile boundaries overlaid on the denoised panel (local mode)
  - Eigenvalue spectrum plot of one PCA decomposition
"""

import logging
from pathlib import Path
from typing import Optional, Sequence

import cv2
import numpy as np
from PIL import Image

from .grid import PixelGrid, Tile
from .pca import PCABasis

logger = logging.getLogger(__name__)

# Tile outline colour (red)
TILE_COLOR = (255, 0, 0)


def render_tile_overlay(grid: PixelGrid, tiles: Sequence[Tile], color=TILE_COLOR) -> np.ndarray:
    """Draw tile rectangles over a grayscale grid, returning RGB."""
    overlay = cv2.cvtColor(grid.pixels, cv2.COLOR_GRAY2RGB)
    for tile in tiles:
        x0, y0, x1, y1 = tile.bounds
        cv2.rectangle(overlay, (x0, y0), (x1 - 1, y1 - 1), color, 1)
    return overlay


def render_comparison_panel(
    source: PixelGrid,
    denoised: PixelGrid,
    metrics: Optional[dict] = None,
    tiles: Optional[Sequence[Tile]] = None,
    source_name: str = "",
    diff_gain: float = 4.0,
) -> np.ndarray:
    """Create a panel: input | denoised (with tiles) | |input - denoised| x gain.

    Returns:
        RGB numpy array of the composite image.
    """
    left = cv2.cvtColor(source.pixels, cv2.COLOR_GRAY2RGB)
    if tiles:
        middle = render_tile_overlay(denoised, tiles)
    else:
        middle = cv2.cvtColor(denoised.pixels, cv2.COLOR_GRAY2RGB)
    diff = cv2.absdiff(source.pixels, denoised.pixels)
    diff = cv2.convertScaleAbs(diff, alpha=diff_gain)
    right = cv2.applyColorMap(diff, cv2.COLORMAP_INFERNO)[:, :, ::-1]

    h = source.height
    sep = np.full((h, 3, 3), 128, dtype=np.uint8)
    composite = np.hstack([left, sep, middle, sep, right])

    bar_h = 40
    bar = np.full((bar_h, composite.shape[1], 3), 30, dtype=np.uint8)
    metrics = metrics or {}
    text = source_name
    if "mse" in metrics:
        text += f"  |  mse: {metrics['mse']:.2f}  psnr: {metrics.get('psnr', float('nan')):.2f} dB"
    cv2.putText(bar, text, (6, 24), cv2.FONT_HERSHEY_SIMPLEX,
                0.4, (220, 220, 220), 1, cv2.LINE_AA)
    return np.vstack([composite, bar])


def save_comparison(
    source: PixelGrid,
    denoised: PixelGrid,
    output_path: Path,
    metrics: Optional[dict] = None,
    tiles: Optional[Sequence[Tile]] = None,
    source_name: str = "",
) -> Path:
    panel = render_comparison_panel(source, denoised, metrics, tiles, source_name)
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(panel).save(output_path)
    logger.info("Comparison image saved: %s", output_path)
    return output_path


def save_spectrum_plot(basis: PCABasis, output_path: Path, title: str = "") -> Path:
    """Plot the eigenvalue spectrum (log scale) of one decomposition."""
    import matplotlib
    try:
        matplotlib.use("Agg")
    except Exception:
        # Backend may already be initialised
        pass
    import matplotlib.pyplot as plt

    eigenvalues = np.clip(basis.eigenvalues, 1e-12, None)
    fig, ax = plt.subplots(figsize=(6, 4))
    ax.semilogy(np.arange(eigenvalues.shape[0]), eigenvalues, marker=".")
    ax.set_xlabel("Component index")
    ax.set_ylabel("Eigenvalue")
    ax.set_title(title or f"PCA spectrum ({basis.dim} dims, {basis.samples} patches)")
    fig.tight_layout()
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path)
    plt.close(fig)
    return output_path
