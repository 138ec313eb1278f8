"""Depth integration by constrained gradient propagation.

Depth is grown outward from a seed pixel across the shape mask. Each visited
pixel passes its depth to one unvisited neighbour per sweep, adding the
surface gradient given by its normal:

    right: z(i, j+1) = z(i, j) + ny / nz
    down:  z(i+1, j) = z(i, j) + nx / nz
    left:  z(i, j-1) = z(i, j) - ny / nz
    up:    z(i-1, j) = z(i, j) - nx / nz

Integration along a path accumulates error along that path, so the result
depends on the traversal order. The order here is fixed (row-major sweeps,
neighbour priority right, down, left, up) which keeps the output
deterministic.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

# (row offset, column offset, gradient component, sign)
NEIGHBOURS = (
    (0, 1, 1, 1.0),    # right, ny
    (1, 0, 0, 1.0),    # down, nx
    (0, -1, 1, -1.0),  # left, ny
    (-1, 0, 0, -1.0),  # up, nx
)

TERMINATION_RULES = ("coverage", "first_nonzero")


class IntegrationStatus(Enum):
    """Why the sweep loop stopped."""

    COMPLETE = "complete"
    STALLED = "stalled"
    FIRST_NONZERO = "first_nonzero"
    SWEEP_CAP = "sweep_cap"
    EMPTY_SHAPE = "empty_shape"


class IntegrationState:
    """Visited flags and accumulated depth for every pixel."""

    def __init__(self, shape: Tuple[int, int]):
        self.visited = np.zeros(shape, dtype=bool)
        self.depth = np.zeros(shape, dtype=np.float64)

    def visit(self, pixel: Tuple[int, int], depth: float) -> None:
        self.visited[pixel] = True
        self.depth[pixel] = depth

    def copy(self) -> "IntegrationState":
        state = IntegrationState(self.visited.shape)
        state.visited[...] = self.visited
        state.depth[...] = self.depth
        return state

    @property
    def n_visited(self) -> int:
        return int(np.count_nonzero(self.visited))


class IntegrationResult:
    """Outcome of a depth integration run."""

    def __init__(
        self,
        state: IntegrationState,
        shape: np.ndarray,
        status: IntegrationStatus,
        sweeps: int,
        seed: Optional[Tuple[int, int]],
    ):
        self.depth = state.depth
        self.visited = state.visited
        self.status = status
        self.sweeps = sweeps
        self.seed = seed
        self.n_shape = int(np.count_nonzero(shape))
        self.n_visited = state.n_visited

    @property
    def unvisited(self) -> int:
        """Number of shape pixels the propagation never reached."""
        return self.n_shape - self.n_visited

    @property
    def partial(self) -> bool:
        return self.unvisited > 0

    def point_field(self, scaffold: np.ndarray) -> np.ndarray:
        """Combine an (x, y) scaffold with the depth map.

        Args:
            scaffold: RxCx3 array with x and y in the first two channels

        Returns:
            RxCx3 point field (x, y, z)
        """
        points = scaffold.copy()
        points[..., 2] = self.depth
        return points


def select_seed(shape: np.ndarray) -> Optional[Tuple[int, int]]:
    """Return the first shape pixel in row-major order, or None."""
    flat = np.flatnonzero(shape)
    if flat.size == 0:
        return None
    row, col = np.unravel_index(flat[0], shape.shape)
    return int(row), int(col)


def sweep(
    state: IntegrationState,
    shape: np.ndarray,
    normals: np.ndarray,
    nz_eps: float = 0.0,
) -> int:
    """Run one row-major propagation pass over the grid.

    Every visited shape pixel advances at most one neighbour. Updates are made
    in place, so pixels later in the same pass already see them.

    Args:
        state: Integration state, updated in place
        shape: RxC boolean shape mask
        normals: RxCx3 unit normal field
        nz_eps: Pixels with |nz| at or below this do not propagate

    Returns:
        Number of pixels newly visited during the pass
    """
    rows, cols = shape.shape
    visited = state.visited
    depth = state.depth
    newly_visited = 0

    for i, j in np.argwhere(shape):
        if not visited[i, j]:
            continue

        nz = normals[i, j, 2]
        if abs(nz) <= nz_eps:
            continue

        for di, dj, component, sign in NEIGHBOURS:
            ni, nj = i + di, j + dj
            if not (0 <= ni < rows and 0 <= nj < cols):
                continue
            if visited[ni, nj] or not shape[ni, nj]:
                continue

            depth[ni, nj] = depth[i, j] + sign * normals[i, j, component] / nz
            visited[ni, nj] = True
            newly_visited += 1
            break

    return newly_visited


def integrate_depth(
    shape: np.ndarray,
    normals: np.ndarray,
    seed_depth: float = 0.001,
    max_sweeps: int = 2000,
    termination: str = "coverage",
    nz_eps: float = 0.0,
) -> IntegrationResult:
    """Integrate a normal field into a depth map over the shape mask.

    Termination rules:
        coverage: stop once every shape pixel is visited, or when a sweep
            visits nothing new (the remaining pixels are unreachable).
        first_nonzero: stop as soon as the depth map has a non-zero entry.
            The seed is non-zero, so this stops after the first sweep.

    Either way the loop stops after ``max_sweeps`` sweeps.

    Args:
        shape: RxC boolean shape mask
        normals: RxCx3 unit normal field
        seed_depth: Depth assigned to the seed pixel
        max_sweeps: Maximum number of sweeps
        termination: "coverage" or "first_nonzero"
        nz_eps: Pixels with |nz| at or below this do not propagate

    Returns:
        IntegrationResult
    """
    if termination not in TERMINATION_RULES:
        raise ValueError(
            f"Unknown termination rule: {termination} (expected one of {TERMINATION_RULES})"
        )
    if max_sweeps < 1:
        raise ValueError(f"max_sweeps must be positive, got {max_sweeps}")
    if normals.shape != shape.shape + (3,):
        raise ValueError(
            f"Normal field {normals.shape} does not match shape mask {shape.shape}"
        )

    state = IntegrationState(shape.shape)

    seed = select_seed(shape)
    if seed is None:
        logger.warning("Shape mask is empty; skipping depth integration")
        return IntegrationResult(state, shape, IntegrationStatus.EMPTY_SHAPE, 0, None)

    state.visit(seed, seed_depth)
    n_shape = int(np.count_nonzero(shape))

    status = IntegrationStatus.SWEEP_CAP
    sweeps = 0
    while sweeps < max_sweeps:
        newly_visited = sweep(state, shape, normals, nz_eps)
        sweeps += 1

        if termination == "first_nonzero":
            if np.count_nonzero(state.depth):
                status = IntegrationStatus.FIRST_NONZERO
                break
        elif state.n_visited == n_shape:
            status = IntegrationStatus.COMPLETE
            break
        elif newly_visited == 0:
            status = IntegrationStatus.STALLED
            break

    result = IntegrationResult(state, shape, status, sweeps, seed)

    if status is IntegrationStatus.SWEEP_CAP:
        logger.warning(
            f"Depth integration hit the sweep cap ({max_sweeps}); "
            f"{result.unvisited} shape pixels unvisited"
        )
    elif result.partial:
        logger.warning(
            f"Depth integration stopped ({status.value}) with "
            f"{result.unvisited}/{n_shape} shape pixels unvisited"
        )

    logger.info(
        f"Depth integration: {result.n_visited}/{n_shape} pixels visited "
        f"in {sweeps} sweeps (seed {seed}, {status.value})"
    )
    return result
