"""
Principal component analysis over a matrix of vectorised patches.

The sample matrix is laid out ``dim x M``: one column per patch, one row per
pixel position inside the patch.  The covariance is the biased (1/M)
estimate, and a decomposition requires at least as many samples as
dimensions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .errors import InsufficientSamplesError, InvalidMatrixShapeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PCABasis:
    """Result of one decomposition.

    ``eigenvectors[:, i]`` pairs with ``eigenvalues[i]``; pairs are sorted by
    decreasing eigenvalue so the highest indices hold the weakest components.
    """
    mean: np.ndarray          # (dim,)
    eigenvectors: np.ndarray  # (dim, dim), orthonormal columns
    eigenvalues: np.ndarray   # (dim,)
    alpha: np.ndarray         # (dim, M) coefficients of the centred samples

    @property
    def dim(self) -> int:
        return int(self.mean.shape[0])

    @property
    def samples(self) -> int:
        return int(self.alpha.shape[1])


def _as_sample_matrix(V) -> np.ndarray:
    V = np.asarray(V, dtype=np.float64)
    if V.ndim != 2 or V.shape[0] == 0 or V.shape[1] == 0:
        raise InvalidMatrixShapeError(f"Sample matrix must be non-empty 2-D, got shape {V.shape}")
    return V


def compute_mean_and_covariance(V) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Mean vector, covariance matrix and centred samples.

    Args:
        V: ``dim x M`` sample matrix.

    Returns:
        ``(mean, covariance, centered)`` with shapes ``(dim,)``,
        ``(dim, dim)`` and ``(dim, M)``.
    """
    V = _as_sample_matrix(V)
    dim, count = V.shape
    if count < dim:
        raise InsufficientSamplesError(count, dim)

    mean = V.mean(axis=1)
    centered = V - mean[:, np.newaxis]
    covariance = (centered @ centered.T) / count
    # symmetric by construction; remove rounding asymmetry before eigh
    covariance = 0.5 * (covariance + covariance.T)
    return mean, covariance, centered


def project_on_basis(U, centered) -> np.ndarray:
    """alpha = U^T . centered"""
    U = np.asarray(U, dtype=np.float64)
    centered = np.asarray(centered, dtype=np.float64)
    if U.ndim != 2 or centered.ndim != 2 or U.shape[0] != centered.shape[0]:
        raise InvalidMatrixShapeError(
            f"Cannot project samples of shape {centered.shape} on basis of shape {U.shape}"
        )
    return U.T @ centered


def decompose(V) -> PCABasis:
    """Eigendecomposition of the sample covariance and projection of the samples."""
    mean, covariance, centered = compute_mean_and_covariance(V)
    eigenvalues, eigenvectors = np.linalg.eigh(covariance)
    order = np.argsort(eigenvalues)[::-1]
    eigenvalues = eigenvalues[order]
    eigenvectors = eigenvectors[:, order]
    alpha = project_on_basis(eigenvectors, centered)
    logger.debug(
        "PCA on %dx%d samples: eigenvalues %.3g..%.3g",
        centered.shape[0], centered.shape[1], eigenvalues[0], eigenvalues[-1],
    )
    return PCABasis(mean=mean, eigenvectors=eigenvectors, eigenvalues=eigenvalues, alpha=alpha)


def reconstruct(U, alpha, mean) -> np.ndarray:
    """Inverse of :func:`decompose`: ``mean + U . alpha``."""
    U = np.asarray(U, dtype=np.float64)
    alpha = np.asarray(alpha, dtype=np.float64)
    mean = np.asarray(mean, dtype=np.float64).reshape(-1)
    if U.ndim != 2 or alpha.ndim != 2 or U.shape[1] != alpha.shape[0] or U.shape[0] != mean.shape[0]:
        raise InvalidMatrixShapeError(
            f"Incompatible shapes: basis {U.shape}, coefficients {alpha.shape}, mean {mean.shape}"
        )
    return mean[:, np.newaxis] + U @ alpha
