from __future__ import annotations

import math

import numpy as np
import scipy.linalg

__all__ = ["compute_covariance", "covariance_from_moments", "log_determinant"]


def compute_covariance(
    frames: np.ndarray,
    regularization: float = 1e-6,
    default_dim: int = 13,
) -> np.ndarray:
    """Bessel-corrected sample covariance with a small diagonal load.

    Fewer than two frames carry no spread, so the result is just the
    diagonal load.
    """

    x = np.asarray(frames, dtype=np.float64)
    if x.ndim != 2 or x.shape[1] == 0:
        dim = x.shape[1] if x.ndim == 2 and x.shape[1] > 0 else default_dim
        return np.eye(dim, dtype=np.float64) * regularization
    n, dim = x.shape
    if n <= 1:
        return np.eye(dim, dtype=np.float64) * regularization
    centered = x - x.mean(axis=0, keepdims=True)
    cov = (centered.T @ centered) / float(n - 1)
    cov[np.diag_indices(dim)] += regularization
    return cov


def covariance_from_moments(
    count: int,
    total: np.ndarray,
    outer_total: np.ndarray,
    regularization: float = 1e-6,
) -> np.ndarray:
    """Covariance from ``sum(x)`` and ``sum(x x^T)`` over ``count`` frames."""

    dim = int(total.shape[0])
    if count <= 1:
        return np.eye(dim, dtype=np.float64) * regularization
    mean = total / float(count)
    cov = (outer_total - float(count) * np.outer(mean, mean)) / float(count - 1)
    cov[np.diag_indices(dim)] += regularization
    return cov


def log_determinant(matrix: np.ndarray) -> float:
    """``log |matrix|`` via Cholesky; ``-inf`` when the matrix is not positive definite."""

    m = np.asarray(matrix, dtype=np.float64)
    if m.ndim != 2 or m.shape[0] != m.shape[1] or m.shape[0] == 0:
        return -math.inf
    if not np.all(np.isfinite(m)):
        return -math.inf
    sym = 0.5 * (m + m.T)
    try:
        lower = scipy.linalg.cholesky(sym, lower=True, check_finite=False)
    except (np.linalg.LinAlgError, ValueError):
        return -math.inf
    diag = np.diag(lower)
    if np.any(diag <= 0.0) or not np.all(np.isfinite(diag)):
        return -math.inf
    value = 2.0 * float(np.sum(np.log(diag)))
    if not math.isfinite(value):
        return -math.inf
    return value
