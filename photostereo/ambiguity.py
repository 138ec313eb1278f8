"""Resolution of the factorization ambiguity.

The pseudo-lighting L_hat from the factorization relates to the physical
light directions by an unknown invertible transform: L = inv(A) @ L_hat and
N = N_hat @ A. Given approximate light directions, inv(A) is the least-squares
solution of Ldir.T ~ X @ L_hat. The light directions are calibration hints,
so the result is only as accurate as they are.
"""

from __future__ import annotations

import logging
from typing import Tuple

import numpy as np
from scipy import linalg

from photostereo.errors import DimensionMismatchError, SingularTransformError

logger = logging.getLogger(__name__)


def solve_left_least_squares(B: np.ndarray, M: np.ndarray) -> np.ndarray:
    """Solve B ~ X @ M for X in the least-squares sense.

    Uses the SVD pseudo-inverse of M rather than the normal equations, which
    stays stable when M is ill-conditioned.

    Args:
        B: mxn right-hand side
        M: pxn system matrix

    Returns:
        mxp matrix X
    """
    if B.size == 0 or M.size == 0:
        raise DimensionMismatchError("Empty matrix passed to least-squares solve")
    if B.shape[1] != M.shape[1]:
        raise DimensionMismatchError(
            f"Column mismatch: B has {B.shape[1]} columns, M has {M.shape[1]}"
        )

    return B @ linalg.pinv(M)


def estimate_ambiguity(
    L_hat: np.ndarray,
    light_directions: np.ndarray,
    singular_tol: float = 1e-10,
) -> Tuple[np.ndarray, np.ndarray]:
    """Estimate the ambiguity transform A from approximate light directions.

    Args:
        L_hat: 3xK pseudo-lighting matrix
        light_directions: Kx3 light directions, one row per image
        singular_tol: Relative singular value below which X counts as singular

    Returns:
        Tuple of (A, X) where X = inv(A) maps pseudo-lighting to the lights
    """
    n_images = L_hat.shape[1]
    if light_directions.ndim != 2 or light_directions.shape != (n_images, 3):
        raise DimensionMismatchError(
            f"Expected {n_images}x3 light directions, got shape {light_directions.shape}"
        )

    X = solve_left_least_squares(light_directions.T, L_hat)

    s = linalg.svd(X, compute_uv=False)
    if s[0] == 0 or s[-1] <= singular_tol * s[0]:
        raise SingularTransformError(
            f"Ambiguity transform is singular (singular values {s})"
        )

    A = linalg.pinv(X)

    logger.debug(
        f"Ambiguity transform: condition={s[0]/s[-1]:.2f}, "
        f"det={np.linalg.det(A):.4e}"
    )

    # How well the corrected lighting reproduces the hints
    fit = X @ L_hat - light_directions.T
    rmse = np.sqrt(np.mean(fit ** 2))
    logger.info(f"Ambiguity resolved: light-direction fit RMSE {rmse:.4f}")

    return A, X


def resolve_normals(N_hat: np.ndarray, A: np.ndarray) -> np.ndarray:
    """Apply the ambiguity transform to the pseudo-normals.

    Args:
        N_hat: (R*C)x3 pseudo-normals
        A: 3x3 ambiguity transform

    Returns:
        (R*C)x3 calibrated normals (not yet unit length)
    """
    return N_hat @ A
