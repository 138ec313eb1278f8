"""Tests for depth integration.

Small masks with uniform normals make every propagation step checkable by
hand: with n = (0.48, 0.36, 0.8), nx / nz = 0.6 and ny / nz = 0.45.
"""

import sys
import unittest
from pathlib import Path

import numpy as np

# Add parent directory to path
sys.path.append(str(Path(__file__).resolve().parent.parent))

from photostereo import integrate, synthetic
from photostereo.integrate import IntegrationState, IntegrationStatus


def uniform_normals(shape, normal=(0.48, 0.36, 0.8)):
    normals = np.zeros(shape + (3,))
    normals[...] = normal
    return normals


class TestSeedAndSweep(unittest.TestCase):
    """Test single sweeps in isolation."""

    def test_select_seed(self):
        shape = np.zeros((3, 4), dtype=bool)
        self.assertIsNone(integrate.select_seed(shape))

        shape[2, 0] = True
        shape[1, 3] = True
        self.assertEqual(integrate.select_seed(shape), (1, 3))

    def test_sweep_right_chain(self):
        """Rightward updates made early in a sweep propagate in the same sweep."""
        shape = np.ones((1, 3), dtype=bool)
        normals = uniform_normals((1, 3))
        state = IntegrationState(shape.shape)
        state.visit((0, 0), 0.001)

        newly_visited = integrate.sweep(state, shape, normals)

        self.assertEqual(newly_visited, 2)
        np.testing.assert_allclose(state.depth, [[0.001, 0.451, 0.901]])
        self.assertTrue(np.all(state.visited))

    def test_sweep_neighbour_priority(self):
        """Down, left and up are tried in order when right is unavailable."""
        shape = np.array([
            [True, False, True],
            [True, True, True],
        ])
        normals = uniform_normals((2, 3))
        state = IntegrationState(shape.shape)
        state.visit((0, 0), 0.001)

        integrate.sweep(state, shape, normals)

        # (0,0) down -> (1,0) right -> (1,1) right -> (1,2) up -> (0,2)
        expected = np.array([
            [0.001, 0.0, 0.901],
            [0.601, 1.051, 1.501],
        ])
        np.testing.assert_allclose(state.depth, expected)
        np.testing.assert_array_equal(state.visited, shape)

    def test_one_update_per_source(self):
        """Each visited pixel advances a single neighbour per sweep."""
        shape = np.ones((3, 3), dtype=bool)
        normals = uniform_normals((3, 3))
        state = IntegrationState(shape.shape)
        state.visit((1, 1), 1.0)

        newly_visited = integrate.sweep(state, shape, normals)

        # (1,1) goes right to (1,2), which goes down to (2,2), which goes left
        self.assertEqual(newly_visited, 3)
        self.assertFalse(state.visited[0, 1])
        self.assertFalse(state.visited[1, 0])

    def test_sweep_does_not_touch_other_state(self):
        shape = np.ones((2, 2), dtype=bool)
        normals = uniform_normals((2, 2))
        state = IntegrationState(shape.shape)
        state.visit((0, 0), 0.001)

        snapshot = state.copy()
        integrate.sweep(state, shape, normals)

        self.assertEqual(snapshot.n_visited, 1)
        self.assertEqual(state.n_visited, 4)

    def test_zero_nz_does_not_propagate(self):
        shape = np.ones((1, 2), dtype=bool)
        normals = np.zeros((1, 2, 3))
        normals[0, 0] = [1.0, 0.0, 0.0]
        normals[0, 1] = [0.0, 0.0, 1.0]
        state = IntegrationState(shape.shape)
        state.visit((0, 0), 0.001)

        self.assertEqual(integrate.sweep(state, shape, normals), 0)
        self.assertTrue(np.all(np.isfinite(state.depth)))


class TestIntegrateDepth(unittest.TestCase):
    """Test the sweep loop and its termination rules."""

    def setUp(self):
        # Needs two sweeps: (1,1) is reached only at the end of the first one
        self.shape = np.array([
            [False, False, True],
            [True, True, True],
        ])
        self.normals = uniform_normals((2, 3))

    def test_coverage_runs_until_complete(self):
        result = integrate.integrate_depth(self.shape, self.normals)

        self.assertEqual(result.status, IntegrationStatus.COMPLETE)
        self.assertEqual(result.sweeps, 2)
        self.assertEqual(result.seed, (0, 2))
        self.assertEqual(result.unvisited, 0)
        self.assertFalse(result.partial)

        # Sweep 1: (0,2) down -> (1,2) left -> (1,1); sweep 2: (1,1) left -> (1,0)
        expected = np.array([
            [0.0, 0.0, 0.001],
            [-0.299, 0.151, 0.601],
        ])
        np.testing.assert_allclose(result.depth, expected)

    def test_first_nonzero_stops_after_one_sweep(self):
        result = integrate.integrate_depth(self.shape, self.normals, termination="first_nonzero")

        self.assertEqual(result.status, IntegrationStatus.FIRST_NONZERO)
        self.assertEqual(result.sweeps, 1)
        self.assertEqual(result.unvisited, 1)
        self.assertTrue(result.partial)
        self.assertFalse(result.visited[1, 0])

    def test_sweep_cap(self):
        result = integrate.integrate_depth(self.shape, self.normals, max_sweeps=1)

        self.assertEqual(result.status, IntegrationStatus.SWEEP_CAP)
        self.assertEqual(result.sweeps, 1)
        self.assertEqual(result.unvisited, 1)

    def test_seed_depth(self):
        result = integrate.integrate_depth(self.shape, self.normals, seed_depth=2.0)
        self.assertEqual(result.depth[0, 2], 2.0)

    def test_empty_shape(self):
        shape = np.zeros((3, 3), dtype=bool)
        result = integrate.integrate_depth(shape, np.zeros((3, 3, 3)))

        self.assertEqual(result.status, IntegrationStatus.EMPTY_SHAPE)
        self.assertEqual(result.sweeps, 0)
        self.assertIsNone(result.seed)
        np.testing.assert_array_equal(result.depth, 0.0)

    def test_isolated_pixels(self):
        """Unreachable pixels end the run without crashing; only the seed has depth."""
        shape = np.zeros((3, 3), dtype=bool)
        shape[0, 0] = True
        shape[2, 2] = True
        normals = uniform_normals((3, 3))

        for termination in integrate.TERMINATION_RULES:
            result = integrate.integrate_depth(shape, normals, termination=termination)

            self.assertEqual(np.count_nonzero(result.depth), 1)
            self.assertEqual(result.depth[0, 0], 0.001)
            self.assertEqual(result.unvisited, 1)

        result = integrate.integrate_depth(shape, normals)
        self.assertEqual(result.status, IntegrationStatus.STALLED)

    def test_single_pixel(self):
        shape = np.zeros((2, 2), dtype=bool)
        shape[1, 1] = True

        result = integrate.integrate_depth(shape, uniform_normals((2, 2)))

        self.assertEqual(result.status, IntegrationStatus.COMPLETE)
        self.assertEqual(np.count_nonzero(result.depth), 1)

    def test_sphere_stays_inside_mask(self):
        normals, inside = synthetic.sphere_normals((32, 32), radius=0.9)

        result = integrate.integrate_depth(inside, normals)

        self.assertEqual(result.status, IntegrationStatus.COMPLETE)
        self.assertFalse(np.any(result.visited & ~inside))
        np.testing.assert_array_equal(result.visited, inside)
        np.testing.assert_array_equal(result.depth[~inside], 0.0)
        self.assertTrue(np.all(np.isfinite(result.depth)))

    def test_point_field(self):
        result = integrate.integrate_depth(self.shape, self.normals)
        scaffold = np.zeros((2, 3, 3))
        scaffold[..., 0] = [[0, 1, 2], [0, 1, 2]]
        scaffold[..., 1] = [[0, 0, 0], [1, 1, 1]]

        points = result.point_field(scaffold)

        np.testing.assert_array_equal(points[..., :2], scaffold[..., :2])
        np.testing.assert_allclose(points[..., 2], result.depth)
        np.testing.assert_array_equal(scaffold[..., 2], 0.0)

    def test_invalid_arguments(self):
        with self.assertRaises(ValueError):
            integrate.integrate_depth(self.shape, self.normals, termination="bfs")
        with self.assertRaises(ValueError):
            integrate.integrate_depth(self.shape, self.normals, max_sweeps=0)
        with self.assertRaises(ValueError):
            integrate.integrate_depth(self.shape, self.normals[:, :2])


if __name__ == "__main__":
    unittest.main()
