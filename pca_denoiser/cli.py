"""Command line interface for the PCA denoiser.

Usage:
    python -m pca_denoiser.cli noise     <inputs> --sigma 20 [-o output]
    python -m pca_denoiser.cli denoise   <inputs> [-o output] [--global|--local]
                                         [--threshold hard|soft] [--shrink visu|bayes]
                                         [--sigma S] [--patch-side 8] [--tiles 16]
    python -m pca_denoiser.cli eval      <reference> <candidate>
    python -m pca_denoiser.cli benchmark <input> --sigma 20 [-o output]

Each subcommand maps onto one library entry point:
  noise     - add Gaussian noise (pca_denoiser.noise)
  denoise   - patch PCA denoising (pca_denoiser.denoiser)
  eval      - MSE / PSNR between two images (pca_denoiser.metrics)
  benchmark - every configuration on one image (pca_denoiser.benchmark)

Sigma <= 0 (the default) means the noise level is estimated from the image.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .config import IMAGE_EXTENSIONS, DenoiseConfig, DenoiseMode, ShrinkKind, ThresholdKind, format_sigma
from .errors import DenoiseError

logger = logging.getLogger("pca_denoiser")


def _setup_logging(debug: bool = False):
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _gather_images(sources: Sequence[str], recursive: bool = False) -> List[Path]:
    """Collect image paths from file/directory arguments."""
    seen: set = set()
    images: List[Path] = []
    for source in sources:
        path = Path(source)
        if path.is_dir():
            candidates = path.rglob("*") if recursive else path.iterdir()
            for candidate in candidates:
                if candidate.is_file() and candidate.suffix.lower() in IMAGE_EXTENSIONS:
                    resolved = candidate.resolve()
                    if resolved not in seen:
                        seen.add(resolved)
                        images.append(resolved)
        elif path.is_file():
            if path.suffix.lower() not in IMAGE_EXTENSIONS:
                logger.warning("Skipping unsupported file: %s", path)
                continue
            resolved = path.resolve()
            if resolved not in seen:
                seen.add(resolved)
                images.append(resolved)
        else:
            logger.warning("Input path not found: %s", path)
    images.sort()
    return images


# ---- Subcommand: noise ----

def cmd_noise(args):
    from .io import load_grid, save_grid
    from .noise import add_gaussian_noise

    images = _gather_images(args.inputs, recursive=args.recursive)
    if not images:
        logger.error("No images found in %s", args.inputs)
        return 1

    output_dir = Path(args.output)
    failures = 0
    for image_path in images:
        try:
            noisy = add_gaussian_noise(load_grid(image_path), args.sigma, seed=args.seed)
            out = save_grid(noisy, output_dir / f"{image_path.stem}_noised_{format_sigma(args.sigma)}.png")
        except (DenoiseError, OSError) as exc:
            logger.error("Failed to noise %s: %s", image_path.name, exc)
            failures += 1
            continue
        logger.info("Noised image saved: %s", out)
    return 1 if failures else 0


# ---- Subcommand: denoise ----

def _build_denoise_config(args) -> DenoiseConfig:
    """Defaults, then the JSON file, then explicit flags."""
    values = {}
    if args.config:
        values.update(json.loads(Path(args.config).read_text()))
    overrides = {
        "mode": args.mode,
        "threshold": args.threshold,
        "shrink": args.shrink,
        "sigma": args.sigma,
        "patch_side": args.patch_side,
        "min_overlap": args.min_overlap,
        "tile_count": args.tiles,
        "workers": args.workers,
        "blend": args.blend,
        "output_dir": args.output,
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return DenoiseConfig.from_dict(values)


def _denoise_one(image_path: Path, cfg: DenoiseConfig, args) -> Path:
    from .denoiser import denoise
    from .io import load_grid, save_grid

    grid = load_grid(image_path)
    kwargs = {"min_overlap": cfg.min_overlap, "blend": cfg.blend}
    if not cfg.is_global:
        kwargs["workers"] = cfg.workers
    result = denoise(
        grid,
        cfg.patch_side,
        cfg.is_global,
        cfg.threshold,
        cfg.shrink,
        cfg.sigma,
        tile_count=cfg.tile_count,
        **kwargs,
    )
    output_path = save_grid(result, cfg.output_dir / f"{image_path.stem}_denoised_{cfg.label()}.png")

    if args.qc:
        from .diagnostics import save_comparison
        from .metrics import compare
        from .tiler import partition

        tiles = None if cfg.is_global else partition(grid, cfg.tile_count)
        save_comparison(
            grid,
            result,
            cfg.output_dir / "qc" / f"{image_path.stem}_qc.png",
            metrics=compare(grid, result),
            tiles=tiles,
            source_name=image_path.name,
        )
    if args.spectrum_debug:
        _save_spectrum(grid, cfg, image_path)
    return output_path


def _save_spectrum(grid, cfg: DenoiseConfig, image_path: Path) -> Optional[Path]:
    """Plot the spectrum of the PCA the run used; the first usable tile in local mode."""
    from .diagnostics import save_spectrum_plot
    from .patches import extract_patches, patches_to_matrix
    from .pca import decompose
    from .tiler import partition

    if cfg.is_global:
        source, scope = grid, "global"
    else:
        usable = [
            t for t in partition(grid, cfg.tile_count)
            if t.width >= cfg.patch_side and t.height >= cfg.patch_side
        ]
        if not usable:
            logger.warning(
                "No tile of %s fits patch side %d; spectrum plot skipped",
                image_path.name, cfg.patch_side,
            )
            return None
        tile = usable[0]
        source, scope = tile.grid, f"tile at ({tile.pos_x}, {tile.pos_y})"

    try:
        basis = decompose(patches_to_matrix(extract_patches(source, cfg.patch_side, cfg.min_overlap)))
        return save_spectrum_plot(
            basis,
            cfg.output_dir / "spectrum_debug" / f"{image_path.stem}_spectrum.png",
            title=f"{image_path.name}: {scope} PCA spectrum",
        )
    except (DenoiseError, OSError) as exc:
        logger.warning("Spectrum plot for %s failed: %s", image_path.name, exc)
        return None


def cmd_denoise(args):
    images = _gather_images(args.inputs, recursive=args.recursive)
    if not images:
        logger.error("No images found in %s", args.inputs)
        return 1

    try:
        cfg = _build_denoise_config(args)
    except (DenoiseError, OSError, ValueError, TypeError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1

    logger.info("Found %d image(s) to denoise [%s] -> %s", len(images), cfg.label(), cfg.output_dir)
    failures = 0
    for image_path in images:
        try:
            out = _denoise_one(image_path, cfg, args)
        except (DenoiseError, OSError) as exc:
            logger.error("Failed to denoise %s: %s", image_path.name, exc)
            failures += 1
            continue
        logger.info("Denoised image saved: %s", out)
    return 1 if failures else 0


# ---- Subcommand: eval ----

def cmd_eval(args):
    from .io import load_grid
    from .metrics import compare

    try:
        scores = compare(load_grid(args.reference), load_grid(args.candidate))
    except (DenoiseError, OSError) as exc:
        logger.error("Evaluation failed: %s", exc)
        return 1
    print(f"MSE: {scores['mse']:.2f}")
    print(f"PSNR: {scores['psnr']:.2f} dB")
    return 0


# ---- Subcommand: benchmark ----

def cmd_benchmark(args):
    from .benchmark import run_benchmark

    try:
        records = run_benchmark(
            Path(args.input),
            args.sigma,
            Path(args.output),
            patch_side=args.patch_side,
            tile_count=args.tiles,
            seed=args.seed,
        )
    except (DenoiseError, OSError) as exc:
        logger.error("Benchmark failed: %s", exc)
        return 1
    failed = [r["config"] for r in records if r["error"]]
    if failed:
        logger.warning("%d configuration(s) failed: %s", len(failed), ", ".join(failed))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pca-denoiser",
        description="Patch-based PCA denoising of grayscale images.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    # -- noise --
    p_noise = sub.add_parser("noise", help="Add Gaussian noise to images")
    p_noise.add_argument("inputs", nargs="+", help="Image files or directories")
    p_noise.add_argument("--sigma", type=float, required=True,
                         help="Noise standard deviation")
    p_noise.add_argument("-o", "--output", default="output",
                         help="Output directory (default: ./output)")
    p_noise.add_argument("--seed", type=int, default=None,
                         help="Random seed for reproducible noise")
    p_noise.add_argument("--recursive", "-r", action="store_true")
    p_noise.set_defaults(func=cmd_noise)

    # -- denoise --
    p_den = sub.add_parser("denoise", help="Denoise images with patch PCA")
    p_den.add_argument("inputs", nargs="+", help="Image files or directories")
    p_den.add_argument("-o", "--output", default=None,
                       help="Output directory (default: ./output)")
    mode = p_den.add_mutually_exclusive_group()
    mode.add_argument("--global", dest="mode", action="store_const", const=DenoiseMode.GLOBAL.value,
                      help="One PCA over the whole image")
    mode.add_argument("--local", dest="mode", action="store_const", const=DenoiseMode.LOCAL.value,
                      help="Independent PCA per tile (default)")
    p_den.add_argument("--threshold", "-t", default=None,
                       choices=[k.value for k in ThresholdKind],
                       help="Shrinkage operator (default: hard)")
    p_den.add_argument("--shrink", default=None,
                       choices=[ShrinkKind.VISU.value, ShrinkKind.BAYES.value, "v", "b"],
                       help="Threshold estimator (default: visu)")
    p_den.add_argument("--sigma", "-s", type=float, default=None,
                       help="Noise standard deviation; <= 0 estimates it (default)")
    p_den.add_argument("--patch-side", type=int, default=None,
                       help="Patch edge length in pixels (default: 8)")
    p_den.add_argument("--min-overlap", type=int, default=None,
                       help="Minimum overlap between patches (default: half the side)")
    p_den.add_argument("--tiles", type=int, default=None,
                       help="Target tile count in local mode (default: 16)")
    p_den.add_argument("--workers", type=int, default=None,
                       help="Threads used for tiles in local mode (default: 1)")
    p_den.add_argument("--blend", default=None, choices=["overwrite", "average"],
                       help="How overlapping patches are merged (default: overwrite)")
    p_den.add_argument("--config", default=None,
                       help="JSON file with denoise settings; flags override it")
    p_den.add_argument("--qc", action="store_true",
                       help="Save input | output | difference panels to <output>/qc/")
    p_den.add_argument("--spectrum-debug", action="store_true",
                       help="Save PCA eigenvalue plots to <output>/spectrum_debug/")
    p_den.add_argument("--recursive", "-r", action="store_true")
    p_den.set_defaults(func=cmd_denoise)

    # -- eval --
    p_eval = sub.add_parser("eval", help="Compare a denoised image with its reference")
    p_eval.add_argument("reference", help="Clean reference image")
    p_eval.add_argument("candidate", help="Image to score")
    p_eval.set_defaults(func=cmd_eval)

    # -- benchmark --
    p_bench = sub.add_parser("benchmark", help="Run every configuration on one image")
    p_bench.add_argument("input", help="Clean source image")
    p_bench.add_argument("--sigma", type=float, required=True,
                         help="Noise standard deviation to inject")
    p_bench.add_argument("-o", "--output", default="output",
                         help="Output directory (default: ./output)")
    p_bench.add_argument("--patch-side", type=int, default=8)
    p_bench.add_argument("--tiles", type=int, default=16)
    p_bench.add_argument("--seed", type=int, default=None)
    p_bench.set_defaults(func=cmd_benchmark)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.debug)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
