"""Observation matrix construction.

Stacks an aligned grayscale image set into a single (pixels x images) matrix.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from photostereo.errors import DimensionMismatchError, EmptyInputError

logger = logging.getLogger(__name__)


def build_observation_matrix(
    images: Sequence[Optional[np.ndarray]]
) -> Tuple[np.ndarray, Tuple[int, int], List[int]]:
    """Flatten an image stack into the observation matrix.

    Each image becomes one column, flattened in row-major order so that
    pixel (r, c) lands on row r * C + c. Column order follows the order of
    ``images``, which must match the order of the light directions.

    Args:
        images: Sequence of HxW grayscale images. ``None`` entries mark
            images that failed to decode and are skipped.

    Returns:
        Tuple of (I, (R, C), kept) where I is a float64 (R*C)xK matrix and
        kept lists the input index behind each column of I
    """
    decoded: List[np.ndarray] = []
    kept: List[int] = []
    for idx, image in enumerate(images):
        if image is None:
            logger.warning(f"Skipping image {idx}: not decoded")
            continue
        decoded.append(np.asarray(image))
        kept.append(idx)

    if not decoded:
        raise EmptyInputError("No images were decoded")

    shape = decoded[0].shape
    if len(shape) != 2:
        raise DimensionMismatchError(f"Expected 2D grayscale images, got shape {shape}")

    for idx, image in zip(kept, decoded):
        if image.shape != shape:
            raise DimensionMismatchError(
                f"Image {idx} has shape {image.shape}, expected {shape}"
            )

    rows, cols = shape
    n_pixels = rows * cols

    I = np.empty((n_pixels, len(decoded)), dtype=np.float64)
    for j, image in enumerate(decoded):
        I[:, j] = image.reshape(n_pixels)

    logger.debug(
        f"Observation matrix: shape={I.shape}, "
        f"range=[{I.min():.1f}, {I.max():.1f}]"
    )
    return I, (rows, cols), kept
