"""Validity and shape masks.

A pixel belongs to the object when it is lit in enough images of the stack
(its glow count) and its calibrated normal has a usable length.
"""

from __future__ import annotations

import logging
from typing import Tuple

import numpy as np

logger = logging.getLogger(__name__)


def glow_count(I: np.ndarray, brightness_threshold: float = 20) -> np.ndarray:
    """Count, per pixel, the images in which it is brighter than the threshold.

    Args:
        I: (R*C)xK observation matrix
        brightness_threshold: Intensity (0-255 scale) a sample must exceed

    Returns:
        Integer array of length R*C
    """
    return np.count_nonzero(I > brightness_threshold, axis=1)


def normalize_valid_normals(
    N: np.ndarray,
    I: np.ndarray,
    image_shape: Tuple[int, int],
    brightness_threshold: float = 20,
    min_glow: int = 10,
    norm_eps: float = 1e-12,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Select valid pixels and scale their normals to unit length.

    Args:
        N: (R*C)x3 calibrated normals
        I: (R*C)xK observation matrix
        image_shape: (R, C)
        brightness_threshold: Intensity a sample must exceed to count as lit
        min_glow: A pixel must be lit in more than this many images
        norm_eps: Normals with a norm at or below this are rejected

    Returns:
        Tuple of (normals, valid, scaffold): RxCx3 unit normals (zero on
        invalid pixels), RxC boolean validity mask, and an RxCx3 point
        field scaffold holding the column (x) and row (y) of valid pixels
    """
    rows, cols = image_shape
    n_pixels = rows * cols
    if N.shape != (n_pixels, 3) or I.shape[0] != n_pixels:
        raise ValueError(
            f"Normals {N.shape} and observations {I.shape} do not match image shape {image_shape}"
        )

    lit = glow_count(I, brightness_threshold) > min_glow
    norms = np.linalg.norm(N, axis=1)
    usable = norms > norm_eps

    degenerate = np.count_nonzero(lit & ~usable)
    if degenerate:
        logger.warning(f"Excluded {degenerate} lit pixels with zero-length normals")

    valid = lit & usable

    normals = np.zeros((n_pixels, 3))
    normals[valid] = N[valid] / norms[valid, np.newaxis]

    # Pixel index p = row * C + col
    index = np.arange(n_pixels)
    scaffold = np.zeros((n_pixels, 3))
    scaffold[valid, 0] = index[valid] % cols
    scaffold[valid, 1] = index[valid] // cols

    logger.info(
        f"Validity mask: {np.count_nonzero(valid)}/{n_pixels} pixels "
        f"({np.count_nonzero(lit)} lit)"
    )

    return (
        normals.reshape(rows, cols, 3),
        valid.reshape(rows, cols),
        scaffold.reshape(rows, cols, 3),
    )


def shape_mask(normals: np.ndarray, eps: float = 0.0) -> np.ndarray:
    """Mark pixels where any normal component is distinguishably non-zero.

    Args:
        normals: RxCx3 normal field
        eps: Components with magnitude at or below this count as zero

    Returns:
        RxC boolean mask
    """
    axis_masks = [np.abs(normals[..., axis]) > eps for axis in range(3)]
    shape = axis_masks[0] | axis_masks[1] | axis_masks[2]

    logger.debug(f"Shape mask: {np.count_nonzero(shape)} pixels")
    return shape
