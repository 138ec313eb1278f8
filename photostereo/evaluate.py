"""Evaluation metrics for photometric stereo reconstructions.

This module implements normal-accuracy measures against a reference field,
a stage timer, and a container for per-run reconstruction statistics.
"""

from __future__ import annotations

import logging
import time
from typing import Dict, Optional, Union

import numpy as np

logger = logging.getLogger(__name__)


def cosine_similarity(
    normals: np.ndarray, reference: np.ndarray, mask: Optional[np.ndarray] = None
) -> np.ndarray:
    """Per-pixel cosine between two normal fields.

    Args:
        normals: RxCx3 (or Nx3) estimated normals
        reference: Reference normals of the same shape
        mask: Optional boolean mask selecting the pixels to compare

    Returns:
        1D array of cosines for the selected pixels
    """
    if normals.shape != reference.shape:
        raise ValueError(f"Shape mismatch: {normals.shape} vs {reference.shape}")

    a = normals.reshape(-1, 3)
    b = reference.reshape(-1, 3)
    if mask is not None:
        keep = mask.reshape(-1)
        a = a[keep]
        b = b[keep]

    if a.shape[0] == 0:
        logger.warning("No pixels selected for normal comparison")
        return np.zeros(0)

    norms = np.linalg.norm(a, axis=1) * np.linalg.norm(b, axis=1)
    norms[norms == 0] = np.inf
    return np.sum(a * b, axis=1) / norms


def angular_error_deg(
    normals: np.ndarray, reference: np.ndarray, mask: Optional[np.ndarray] = None
) -> float:
    """Mean angular error in degrees between two normal fields."""
    cosines = cosine_similarity(normals, reference, mask)
    if cosines.size == 0:
        return float("inf")
    return float(np.degrees(np.mean(np.arccos(np.clip(cosines, -1.0, 1.0)))))


class Timer:
    """Utility class for timing operations with context manager support."""

    def __init__(self, name: str = "Timer", logger: Optional[logging.Logger] = None):
        self.name = name
        self.logger = logger or logging.getLogger(__name__)
        self.start_time = None
        self.end_time = None

    def start(self) -> None:
        self.start_time = time.perf_counter()
        self.end_time = None

    def stop(self) -> float:
        """Stop the timer and return elapsed time.

        Returns:
            Elapsed time in seconds
        """
        if self.start_time is None:
            self.logger.warning(f"{self.name}: Timer stopped without being started")
            return 0.0

        self.end_time = time.perf_counter()
        elapsed = self.end_time - self.start_time
        self.logger.debug(f"{self.name}: {elapsed:.4f}s")
        return elapsed

    def __enter__(self) -> "Timer":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    @property
    def elapsed(self) -> float:
        """Elapsed time in seconds; frozen once the timer is stopped."""
        if self.start_time is None:
            return 0.0
        end = self.end_time if self.end_time is not None else time.perf_counter()
        return end - self.start_time


class ReconstructionMetrics:
    """Statistics collected over one reconstruction run."""

    def __init__(self):
        self.metrics = {
            "n_images": 0,
            "skipped_images": 0,
            "image_shape": None,
            "singular_values": [],
            "transform_condition": None,
            "valid_pixels": 0,
            "shape_pixels": 0,
            "visited_pixels": 0,
            "unvisited_pixels": 0,
            "sweeps": 0,
            "integration_status": None,
            "runtime_s": 0.0,
            "stage_timings": {},
        }

    def update(self, metric_name: str, value: Union[int, float, str, list, Dict, None]) -> None:
        self.metrics[metric_name] = value

    def update_stage_timing(self, stage_name: str, time_s: float) -> None:
        self.metrics["stage_timings"][stage_name] = time_s

    def to_dict(self) -> Dict:
        return self.metrics.copy()

    def summary(self) -> str:
        """Generate a human-readable summary of metrics.

        Returns:
            Summary string
        """
        lines = [
            "Reconstruction Metrics:",
            f"  Images: {self.metrics['n_images']} ({self.metrics['skipped_images']} skipped)",
            f"  Image shape: {self.metrics['image_shape']}",
        ]

        singular_values = self.metrics["singular_values"]
        if singular_values:
            leading = ", ".join(f"{s:.2f}" for s in singular_values[:4])
            lines.append(f"  Singular values: [{leading}{', ...' if len(singular_values) > 4 else ''}]")

        if self.metrics["transform_condition"] is not None:
            lines.append(f"  Ambiguity transform condition: {self.metrics['transform_condition']:.2f}")

        lines.append(f"  Valid pixels: {self.metrics['valid_pixels']}")
        lines.append(f"  Shape pixels: {self.metrics['shape_pixels']}")
        lines.append(
            f"  Integrated pixels: {self.metrics['visited_pixels']} "
            f"({self.metrics['unvisited_pixels']} unvisited, {self.metrics['sweeps']} sweeps, "
            f"{self.metrics['integration_status']})"
        )
        lines.append(f"  Total runtime: {self.metrics['runtime_s']:.2f}s")

        if self.metrics["stage_timings"]:
            lines.append("  Stage timings:")
            for stage, time_s in self.metrics["stage_timings"].items():
                lines.append(f"    {stage}: {time_s:.3f}s")

        return "\n".join(lines)
