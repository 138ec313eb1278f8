"""Rank-3 factorization of the observation matrix.

Under the Lambertian model every pixel intensity is the dot product of a
scaled surface normal with a scaled light vector, so the observation matrix
has rank at most 3. Truncating its SVD to three components gives the best
rank-3 approximation I ~ N_hat @ L_hat, correct up to an invertible 3x3
transform.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import numpy as np
from scipy import linalg

from photostereo.errors import DegenerateIlluminationError, InsufficientImagesError

logger = logging.getLogger(__name__)

RANK = 3


def factorize(
    I: np.ndarray, rank_tol: Optional[float] = None
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Factor the observation matrix into pseudo-normals and pseudo-lighting.

    Args:
        I: (R*C)xK observation matrix
        rank_tol: Singular values at or below this are treated as zero.
            Defaults to max(I.shape) * eps * largest singular value.

    Returns:
        Tuple of (N_hat, L_hat, S) with N_hat (R*C)x3, L_hat 3xK and S the
        full vector of singular values in descending order
    """
    n_pixels, n_images = I.shape
    if n_images < RANK:
        raise InsufficientImagesError(
            f"At least {RANK} images required, got {n_images}"
        )
    if n_pixels < RANK:
        raise InsufficientImagesError(
            f"At least {RANK} pixels required, got {n_pixels}"
        )

    # Thin SVD: only the first K left singular vectors are ever needed
    U, S, Vt = linalg.svd(I, full_matrices=False)

    if rank_tol is None:
        rank_tol = max(I.shape) * np.finfo(np.float64).eps * S[0]

    if S[RANK - 1] <= rank_tol:
        raise DegenerateIlluminationError(
            f"Leading singular values {S[:RANK]} fall below {rank_tol:.3e}; "
            f"the lighting does not vary enough"
        )

    S_sqrt = np.diag(np.sqrt(S[:RANK]))
    N_hat = U[:, :RANK] @ S_sqrt
    L_hat = S_sqrt @ Vt[:RANK, :]

    residual = S[RANK:]
    energy = np.sum(residual ** 2) / np.sum(S ** 2)
    logger.debug(
        f"Factorization: singular values=[{S[0]:.4f}, {S[1]:.4f}, {S[2]:.4f}], "
        f"residual energy beyond rank {RANK}: {energy:.2e}"
    )

    return N_hat, L_hat, S
