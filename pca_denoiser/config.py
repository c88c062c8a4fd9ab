"""Denoiser configuration: defaults, policy enums, run presets."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

from .errors import InvalidParameterError, UnsupportedPolicyError


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------
DEFAULT_PATCH_SIDE = 8
DEFAULT_TILE_COUNT = 16          # local mode aims at a 4x4 arrangement
NOISE_TRIM_FRACTION = 0.25       # lowest-eigenvalue share used to estimate sigma
BAYES_EPSILON = 1e-6             # floor on the estimated signal variance
MAX_PIXEL_VALUE = 255

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff", ".webp"}
BLEND_MODES = ("overwrite", "average")


def format_sigma(sigma: float) -> str:
    """Sigma as used in output names: `20` for 20.0, `12.5` for 12.5."""
    return str(int(sigma)) if float(sigma).is_integer() else f"{sigma:g}"


class ThresholdKind(str, Enum):
    HARD = "hard"
    SOFT = "soft"

    @classmethod
    def parse(cls, value) -> "ThresholdKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise UnsupportedPolicyError(f"Unknown threshold kind: {value!r}") from None


class ShrinkKind(str, Enum):
    FIXED = "fixed"
    VISU = "visu"
    BAYES = "bayes"

    @classmethod
    def parse(cls, value) -> "ShrinkKind":
        if isinstance(value, cls):
            return value
        name = _SHRINK_ALIASES.get(str(value).lower(), str(value).lower())
        try:
            return cls(name)
        except ValueError:
            raise UnsupportedPolicyError(f"Unknown shrink kind: {value!r}") from None


_SHRINK_ALIASES: Dict[str, str] = {
    "v": "visu",
    "visushrink": "visu",
    "b": "bayes",
    "bayesshrink": "bayes",
}


class ThresholdScope(str, Enum):
    GLOBAL = "global"
    ADAPTIVE = "adaptive"      # one lambda per eigencomponent


class DenoiseMode(str, Enum):
    GLOBAL = "global"
    LOCAL = "local"


@dataclass(frozen=True)
class ThresholdPolicy:
    """How projected coefficients are shrunk.

    ``fixed_lambda`` is only read when ``estimator`` is ``FIXED``.
    """
    kind: ThresholdKind = ThresholdKind.HARD
    estimator: ShrinkKind = ShrinkKind.VISU
    scope: ThresholdScope = ThresholdScope.GLOBAL
    fixed_lambda: float = 0.0

    def __post_init__(self):
        if not isinstance(self.kind, ThresholdKind):
            object.__setattr__(self, "kind", ThresholdKind.parse(self.kind))
        if not isinstance(self.estimator, ShrinkKind):
            object.__setattr__(self, "estimator", ShrinkKind.parse(self.estimator))
        if not isinstance(self.scope, ThresholdScope):
            try:
                object.__setattr__(self, "scope", ThresholdScope(str(self.scope).lower()))
            except ValueError:
                raise UnsupportedPolicyError(f"Unknown threshold scope: {self.scope!r}") from None
        if self.fixed_lambda < 0:
            raise InvalidParameterError(f"fixed_lambda must be >= 0, got {self.fixed_lambda}")


@dataclass
class DenoiseConfig:
    """One denoising run, as selected on the command line or in a JSON file."""
    mode: DenoiseMode = DenoiseMode.LOCAL
    threshold: ThresholdKind = ThresholdKind.HARD
    shrink: ShrinkKind = ShrinkKind.VISU
    sigma: float = 0.0                      # <= 0 means "estimate from the data"
    patch_side: int = DEFAULT_PATCH_SIDE
    min_overlap: Optional[int] = None       # None -> patch_side // 2
    tile_count: int = DEFAULT_TILE_COUNT
    workers: int = 1
    blend: str = "overwrite"
    output_dir: Path = field(default_factory=lambda: Path("output"))

    @property
    def is_global(self) -> bool:
        return self.mode == DenoiseMode.GLOBAL

    def label(self) -> str:
        """Suffix used in default output file names."""
        return f"{self.mode.value}_{self.threshold.value}_{self.shrink.value}"

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "threshold": self.threshold.value,
            "shrink": self.shrink.value,
            "sigma": float(self.sigma),
            "patch_side": int(self.patch_side),
            "min_overlap": self.min_overlap,
            "tile_count": int(self.tile_count),
            "workers": int(self.workers),
            "blend": self.blend,
            "output_dir": str(self.output_dir),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "DenoiseConfig":
        try:
            mode = DenoiseMode(d.get("mode", "local"))
        except ValueError:
            raise InvalidParameterError(f"Unknown denoise mode: {d.get('mode')!r}") from None
        min_overlap = d.get("min_overlap")
        if min_overlap is not None:
            min_overlap = int(min_overlap)
        blend = d.get("blend", "overwrite")
        if blend not in BLEND_MODES:
            raise InvalidParameterError(f"Unknown blend mode {blend!r}; expected one of {BLEND_MODES}")
        return cls(
            mode=mode,
            threshold=ThresholdKind.parse(d.get("threshold", "hard")),
            shrink=ShrinkKind.parse(d.get("shrink", "visu")),
            sigma=float(d.get("sigma", 0.0)),
            patch_side=int(d.get("patch_side", DEFAULT_PATCH_SIDE)),
            min_overlap=min_overlap,
            tile_count=int(d.get("tile_count", DEFAULT_TILE_COUNT)),
            workers=int(d.get("workers", 1)),
            blend=blend,
            output_dir=Path(d.get("output_dir", "output")),
        )
