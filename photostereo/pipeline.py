"""Reconstruction pipeline.

Runs the stages in order: observation matrix, rank-3 factorization,
ambiguity resolution, validity mask and depth integration. Each stage only
consumes the output of earlier ones.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence

import numpy as np

from photostereo import ambiguity, evaluate, factorize, integrate, mask, observation
from photostereo.config import DEFAULT_CONFIG, merge_config
from photostereo.errors import DimensionMismatchError

logger = logging.getLogger(__name__)


class ReconstructionResult:
    """Outputs of one pipeline run."""

    def __init__(
        self,
        normals: np.ndarray,
        valid: np.ndarray,
        shape: np.ndarray,
        transform: np.ndarray,
        singular_values: np.ndarray,
        integration: integrate.IntegrationResult,
        points: np.ndarray,
        metrics: evaluate.ReconstructionMetrics,
    ):
        self.normals = normals
        self.valid = valid
        self.shape = shape
        self.transform = transform
        self.singular_values = singular_values
        self.integration = integration
        self.points = points
        self.metrics = metrics

    @property
    def depth(self) -> np.ndarray:
        return self.integration.depth


def reconstruct(
    images: Sequence[Optional[np.ndarray]],
    light_directions: np.ndarray,
    config: Optional[Dict] = None,
) -> ReconstructionResult:
    """Reconstruct normals and depth from an image stack.

    Args:
        images: Grayscale images in the same order as ``light_directions``.
            ``None`` entries are skipped together with their light row.
        light_directions: Kx3 approximate light direction per image, with
            one row per entry of ``images`` or one per decoded image
        config: Configuration dictionary; missing keys use the defaults

    Returns:
        ReconstructionResult
    """
    config = merge_config(DEFAULT_CONFIG, config or {})
    metrics = evaluate.ReconstructionMetrics()

    pipeline_timer = evaluate.Timer("Reconstruction")
    pipeline_timer.start()

    # === Stage 1: Observation matrix ===
    with evaluate.Timer("Observation Matrix") as timer:
        I, image_shape, kept = observation.build_observation_matrix(images)
        metrics.update_stage_timing("observation_matrix", timer.elapsed)

    metrics.update("n_images", I.shape[1])
    metrics.update("skipped_images", len(images) - len(kept))
    metrics.update("image_shape", list(image_shape))
    logger.info(f"Observation matrix built from {I.shape[1]} images of size {image_shape}")

    light_directions = np.asarray(light_directions, dtype=np.float64)
    if light_directions.ndim != 2:
        raise DimensionMismatchError(
            f"Light directions must be a 2D array, got shape {light_directions.shape}"
        )
    if light_directions.shape[0] == len(images) and len(kept) < len(images):
        # Drop the rows of the images that failed to decode
        light_directions = light_directions[kept]
    if light_directions.shape[0] != I.shape[1]:
        raise DimensionMismatchError(
            f"{I.shape[1]} images but light directions have shape {light_directions.shape}"
        )

    # === Stage 2: Factorization ===
    with evaluate.Timer("Factorization") as timer:
        N_hat, L_hat, S = factorize.factorize(I, config["factorization"]["rank_tol"])
        metrics.update_stage_timing("factorization", timer.elapsed)

    metrics.update("singular_values", S.tolist())

    # === Stage 3: Ambiguity resolution ===
    with evaluate.Timer("Ambiguity Resolution") as timer:
        A, _ = ambiguity.estimate_ambiguity(
            L_hat, light_directions, config["ambiguity"]["singular_tol"]
        )
        N = ambiguity.resolve_normals(N_hat, A)
        metrics.update_stage_timing("ambiguity_resolution", timer.elapsed)

    metrics.update("transform_condition", float(np.linalg.cond(A)))

    # === Stage 4: Validity and shape masks ===
    mask_config = config["mask"]
    with evaluate.Timer("Validity Mask") as timer:
        normals, valid, scaffold = mask.normalize_valid_normals(
            N,
            I,
            image_shape,
            brightness_threshold=mask_config["brightness_threshold"],
            min_glow=mask_config["min_glow"],
            norm_eps=mask_config["norm_eps"],
        )
        shape = mask.shape_mask(normals, mask_config["shape_eps"])
        metrics.update_stage_timing("validity_mask", timer.elapsed)

    metrics.update("valid_pixels", int(np.count_nonzero(valid)))
    metrics.update("shape_pixels", int(np.count_nonzero(shape)))

    # === Stage 5: Depth integration ===
    integration_config = config["integration"]
    with evaluate.Timer("Depth Integration") as timer:
        integration = integrate.integrate_depth(
            shape,
            normals,
            seed_depth=integration_config["seed_depth"],
            max_sweeps=integration_config["max_sweeps"],
            termination=integration_config["termination"],
            nz_eps=integration_config["nz_eps"],
        )
        points = integration.point_field(scaffold)
        metrics.update_stage_timing("depth_integration", timer.elapsed)

    metrics.update("visited_pixels", integration.n_visited)
    metrics.update("unvisited_pixels", integration.unvisited)
    metrics.update("sweeps", integration.sweeps)
    metrics.update("integration_status", integration.status.value)
    metrics.update("runtime_s", pipeline_timer.stop())

    return ReconstructionResult(
        normals=normals,
        valid=valid,
        shape=shape,
        transform=A,
        singular_values=S,
        integration=integration,
        points=points,
        metrics=metrics,
    )
