"""Shrinkage operators and threshold estimators for PCA coefficients."""

from __future__ import annotations

import math

import numpy as np

from .config import BAYES_EPSILON, NOISE_TRIM_FRACTION, ShrinkKind, ThresholdKind, ThresholdPolicy, ThresholdScope
from .errors import InvalidMatrixShapeError, InvalidParameterError, UnsupportedPolicyError


def hard(lam, x):
    """Keep ``x`` where ``|x| > lam``, zero elsewhere."""
    x = np.asarray(x, dtype=np.float64)
    result = np.where(np.abs(x) > lam, x, 0.0)
    return float(result) if result.ndim == 0 else result


def soft(lam, x):
    """Shrink ``x`` towards zero by ``lam``."""
    x = np.asarray(x, dtype=np.float64)
    result = np.sign(x) * np.maximum(np.abs(x) - lam, 0.0)
    return float(result) if result.ndim == 0 else result


_OPERATORS = {
    ThresholdKind.HARD: hard,
    ThresholdKind.SOFT: soft,
}


def shrink(kind, lam, x):
    return _OPERATORS[ThresholdKind.parse(kind)](lam, x)


def visu_shrink_threshold(sigma: float, n: int) -> float:
    """Universal threshold ``sigma * sqrt(2 ln n)``."""
    if sigma < 0:
        raise InvalidParameterError(f"sigma must be >= 0, got {sigma}")
    if n < 1:
        raise InvalidParameterError(f"VisuShrink needs at least one sample, got n={n}")
    return sigma * math.sqrt(2.0 * math.log(n))


def bayes_shrink_threshold(sigma: float, coefficient_variance: float) -> float:
    """``sigma^2 / sqrt(max(var - sigma^2, eps))``.

    When the coefficient variance does not exceed the noise variance the
    floor makes the threshold very large, suppressing the component.
    """
    if sigma < 0:
        raise InvalidParameterError(f"sigma must be >= 0, got {sigma}")
    signal_variance = max(coefficient_variance - sigma * sigma, BAYES_EPSILON)
    return (sigma * sigma) / math.sqrt(signal_variance)


def adaptive_component_threshold(base_lambda: float, eigenvalue: float, max_eigenvalue: float) -> float:
    if max_eigenvalue <= 0:
        raise InvalidParameterError(
            f"Maximum eigenvalue must be positive, got {max_eigenvalue}"
        )
    return base_lambda * math.sqrt(max(eigenvalue, 0.0) / max_eigenvalue)


def _check_alpha(alpha) -> np.ndarray:
    alpha = np.asarray(alpha, dtype=np.float64)
    if alpha.ndim != 2 or alpha.size == 0:
        raise InvalidMatrixShapeError(f"Coefficient matrix must be non-empty 2-D, got shape {alpha.shape}")
    return alpha


def estimate_noise_sigma(alpha, fraction_trim: float = NOISE_TRIM_FRACTION) -> float:
    """
    Noise level from the weakest principal components.

    The last ``ceil(fraction_trim * dim)`` rows of ``alpha`` (lowest
    eigenvalues) are assumed to carry mostly noise; their standard deviation
    is returned.
    """
    alpha = _check_alpha(alpha)
    if not 0 < fraction_trim <= 1:
        raise InvalidParameterError(f"fraction_trim must be in (0, 1], got {fraction_trim}")
    rows = max(1, int(math.ceil(fraction_trim * alpha.shape[0])))
    return float(np.std(alpha[-rows:]))


def coefficient_variance(alpha) -> float:
    """Average of the per-component variances of ``alpha``."""
    alpha = _check_alpha(alpha)
    return float(np.mean(np.var(alpha, axis=1)))


def apply_threshold(kind, lam: float, alpha) -> np.ndarray:
    """Shrink every coefficient with the same ``lam``."""
    alpha = _check_alpha(alpha)
    return shrink(kind, lam, alpha)


def apply_adaptive_threshold(kind, base_lambda: float, alpha, eigenvalues) -> np.ndarray:
    """Shrink row ``i`` of ``alpha`` with a lambda scaled by ``eigenvalues[i]``."""
    alpha = _check_alpha(alpha)
    eigenvalues = np.asarray(eigenvalues, dtype=np.float64).reshape(-1)
    if eigenvalues.shape[0] != alpha.shape[0]:
        raise InvalidMatrixShapeError(
            f"{alpha.shape[0]} components but {eigenvalues.shape[0]} eigenvalues"
        )
    max_eigenvalue = float(eigenvalues.max())
    if max_eigenvalue <= 0:
        # flat data: every coefficient is already zero up to rounding
        return shrink(kind, base_lambda, alpha)
    lambdas = np.array(
        [adaptive_component_threshold(base_lambda, ev, max_eigenvalue) for ev in eigenvalues]
    )
    return shrink(kind, lambdas[:, np.newaxis], alpha)


def compute_threshold(policy: ThresholdPolicy, sigma: float, alpha) -> float:
    """Base lambda for ``alpha`` under ``policy``."""
    alpha = _check_alpha(alpha)
    if policy.estimator == ShrinkKind.FIXED:
        return float(policy.fixed_lambda)
    if policy.estimator == ShrinkKind.VISU:
        return visu_shrink_threshold(sigma, alpha.size)
    if policy.estimator == ShrinkKind.BAYES:
        return bayes_shrink_threshold(sigma, coefficient_variance(alpha))
    raise UnsupportedPolicyError(f"Unknown shrink estimator: {policy.estimator!r}")


def threshold_coefficients(policy: ThresholdPolicy, lam: float, alpha, eigenvalues=None) -> np.ndarray:
    if policy.scope == ThresholdScope.ADAPTIVE:
        if eigenvalues is None:
            raise InvalidParameterError("Adaptive thresholding needs the eigenvalues")
        return apply_adaptive_threshold(policy.kind, lam, alpha, eigenvalues)
    return apply_threshold(policy.kind, lam, alpha)
