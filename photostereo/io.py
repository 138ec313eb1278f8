"""Reading image stacks and light directions, and saving results."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

import cv2
import numpy as np
from tqdm import tqdm

from photostereo.errors import EmptyInputError, InputError, LightDirectionParseError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def list_image_files(image_dir: PathLike, extensions: Sequence[str] = (".png",)) -> List[Path]:
    """List image files in a directory, sorted by name.

    The sorted order is the image order, and must match the row order of the
    light-direction file.

    Args:
        image_dir: Directory containing the image stack
        extensions: File extensions to accept (case-insensitive)

    Returns:
        Sorted list of paths
    """
    image_dir = Path(image_dir)
    if not image_dir.is_dir():
        raise InputError(f"Image directory not found: {image_dir}")

    wanted = {ext.lower() for ext in extensions}
    return sorted(
        path for path in image_dir.iterdir()
        if path.is_file() and path.suffix.lower() in wanted
    )


def decode_grayscale(path: PathLike) -> Optional[np.ndarray]:
    """Decode an image file as 8-bit grayscale, or return None on failure."""
    # Reading the bytes and decoding avoids cv2.imread's trouble with non-ASCII paths
    buf = np.fromfile(str(path), dtype=np.uint8)
    if buf.size == 0:
        return None
    return cv2.imdecode(buf, cv2.IMREAD_GRAYSCALE)


def read_images(
    image_dir: PathLike, extensions: Sequence[str] = (".png",)
) -> Tuple[List[Optional[np.ndarray]], List[Path]]:
    """Read the grayscale image stack from a directory.

    Files that fail to decode are kept as ``None`` with a warning, so the
    stack stays aligned with the rows of the light-direction file.

    Args:
        image_dir: Directory containing the images
        extensions: File extensions to accept

    Returns:
        Tuple of (images, paths) with one entry per listed file
    """
    logger.info(f"Reading images from {image_dir}")

    image_files = list_image_files(image_dir, extensions)
    if not image_files:
        raise EmptyInputError(f"No {', '.join(extensions)} images found in {image_dir}")

    images = []
    for image_file in tqdm(image_files, desc="Reading images"):
        image = decode_grayscale(image_file)
        if image is None:
            logger.warning(f"Failed to decode {image_file}")
        images.append(image)

    decoded = [image for image in images if image is not None]
    if not decoded:
        raise EmptyInputError(f"No images could be decoded in {image_dir}")

    logger.info(
        f"Read {len(decoded)} of {len(image_files)} images of size {decoded[0].shape}"
    )
    return images, image_files


def read_light_directions(path: PathLike) -> np.ndarray:
    """Read light directions from a whitespace-separated text file.

    One row per image with three columns (x y z). Blank lines and lines
    starting with '#' are ignored.

    Args:
        path: Path to the light-direction file

    Returns:
        Kx3 float64 array
    """
    path = Path(path)
    if not path.is_file():
        raise InputError(f"Light direction file not found: {path}")

    rows = []
    n_cols = None
    with open(path, "r") as f:
        for line_no, line in enumerate(f, start=1):
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue

            try:
                values = [float(token) for token in stripped.split()]
            except ValueError as e:
                raise LightDirectionParseError(
                    f"{path}:{line_no}: non-numeric value ({e})"
                ) from e

            if n_cols is None:
                n_cols = len(values)
            elif len(values) != n_cols:
                raise LightDirectionParseError(
                    f"{path}:{line_no}: expected {n_cols} columns, got {len(values)}"
                )
            rows.append(values)

    if not rows:
        raise LightDirectionParseError(f"{path}: no light directions found")
    if n_cols != 3:
        raise LightDirectionParseError(f"{path}: expected 3 columns, got {n_cols}")

    light_directions = np.array(rows, dtype=np.float64)
    logger.info(f"Read {light_directions.shape[0]} light directions from {path}")
    return light_directions


def save_results(
    output_dir: PathLike,
    normals: np.ndarray,
    valid: np.ndarray,
    depth: np.ndarray,
    points: np.ndarray,
    metrics: Optional[Dict] = None,
) -> None:
    """Save reconstruction results to an output directory.

    Args:
        output_dir: Path to output directory
        normals: RxCx3 unit normal field
        valid: RxC validity mask
        depth: RxC depth map
        points: RxCx3 point field
        metrics: Reconstruction metrics (optional)
    """
    logger.info(f"Saving results to {output_dir}")
    os.makedirs(output_dir, exist_ok=True)

    arrays = {
        "normals.npy": normals,
        "mask.npy": valid,
        "depth.npy": depth,
        "points.npy": points,
    }
    for filename, array in arrays.items():
        with open(os.path.join(output_dir, filename), "wb") as f:
            np.save(f, array)

    if metrics is not None:
        with open(os.path.join(output_dir, "report.json"), "w") as f:
            json.dump(metrics, f, indent=2)

    logger.info("Results saved successfully")
