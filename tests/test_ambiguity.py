"""Tests for ambiguity resolution against supplied light directions."""

import sys
import unittest
from pathlib import Path

import numpy as np

# Add parent directory to path
sys.path.append(str(Path(__file__).resolve().parent.parent))

from photostereo import ambiguity, factorize
from photostereo.errors import DimensionMismatchError, SingularTransformError


class TestLeftLeastSquares(unittest.TestCase):
    """Test the pseudo-inverse least-squares solve."""

    def test_exact_solution(self):
        rng = np.random.default_rng(1)
        X_true = rng.normal(size=(3, 3))
        M = rng.normal(size=(3, 10))

        X = ambiguity.solve_left_least_squares(X_true @ M, M)

        np.testing.assert_allclose(X, X_true, atol=1e-10)

    def test_matches_normal_equations(self):
        """Overdetermined case agrees with B M^T (M M^T)^-1."""
        rng = np.random.default_rng(2)
        M = rng.normal(size=(3, 12))
        B = rng.normal(size=(3, 12))

        X = ambiguity.solve_left_least_squares(B, M)

        expected = B @ M.T @ np.linalg.inv(M @ M.T)
        np.testing.assert_allclose(X, expected, atol=1e-10)

    def test_column_mismatch(self):
        with self.assertRaises(DimensionMismatchError):
            ambiguity.solve_left_least_squares(np.ones((3, 4)), np.ones((3, 5)))

    def test_empty(self):
        with self.assertRaises(DimensionMismatchError):
            ambiguity.solve_left_least_squares(np.ones((3, 0)), np.ones((3, 0)))


class TestEstimateAmbiguity(unittest.TestCase):
    """Test recovery of the ambiguity transform."""

    def setUp(self):
        # Three 2x2 images with fabricated intensities
        self.I = np.array([
            [10, 30, 60],
            [40, 20, 80],
            [70, 50, 25],
            [100, 90, 45],
        ], dtype=np.float64)
        self.light_directions = np.array([
            [0.5, 0.0, 0.866],
            [0.0, 0.5, 0.866],
            [-0.5, -0.5, 0.707],
        ])
        self.N_hat, self.L_hat, _ = factorize.factorize(self.I)

    def test_hand_solved_transform(self):
        """With K = 3, X = Ldir^T inv(L_hat), so A = L_hat inv(Ldir^T)."""
        A, X = ambiguity.estimate_ambiguity(self.L_hat, self.light_directions)

        expected_X = self.light_directions.T @ np.linalg.inv(self.L_hat)
        expected_A = self.L_hat @ np.linalg.inv(self.light_directions.T)
        np.testing.assert_allclose(X, expected_X, atol=1e-10)
        np.testing.assert_allclose(A, expected_A, atol=1e-8)
        np.testing.assert_allclose(A @ X, np.eye(3), atol=1e-10)

    def test_calibrated_normals(self):
        """N_hat A reduces to classic calibrated photometric stereo I inv(Ldir^T)."""
        A, _ = ambiguity.estimate_ambiguity(self.L_hat, self.light_directions)

        N = ambiguity.resolve_normals(self.N_hat, A)

        expected = self.I @ np.linalg.inv(self.light_directions.T)
        np.testing.assert_allclose(N, expected, atol=1e-8)

    def test_recovers_known_transform(self):
        """A synthetic mixing of true normals and lights is undone."""
        rng = np.random.default_rng(3)
        normals = rng.normal(size=(40, 3))
        lights = rng.normal(size=(6, 3))
        mixing = np.array([[1.0, 0.2, 0.0], [0.0, 0.8, 0.3], [0.1, 0.0, 1.5]])

        N_hat = normals @ np.linalg.inv(mixing)
        L_hat = mixing @ lights.T

        A, _ = ambiguity.estimate_ambiguity(L_hat, lights)

        np.testing.assert_allclose(A, mixing, atol=1e-8)
        np.testing.assert_allclose(ambiguity.resolve_normals(N_hat, A), normals, atol=1e-8)

    def test_light_count_mismatch(self):
        with self.assertRaises(DimensionMismatchError):
            ambiguity.estimate_ambiguity(self.L_hat, self.light_directions[:2])

    def test_light_columns_mismatch(self):
        with self.assertRaises(DimensionMismatchError):
            ambiguity.estimate_ambiguity(self.L_hat, self.light_directions[:, :2])

    def test_collinear_lights_are_singular(self):
        """Lights all along one direction cannot fix a 3x3 transform."""
        lights = np.tile([0.0, 0.0, 1.0], (3, 1)) * np.array([[1.0], [2.0], [3.0]])

        with self.assertRaises(SingularTransformError):
            ambiguity.estimate_ambiguity(self.L_hat, lights)


if __name__ == "__main__":
    unittest.main()
