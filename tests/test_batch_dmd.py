"""Tests for the direct (mini-batch) DMD fits."""
import numpy as np
import pytest

from rt_dmd import WindowOperator, minibatch_dmd, recency_weights, weighted_fit


class TestRecencyWeights:
    def test_newest_column_has_unit_weight(self):
        np.testing.assert_allclose(recency_weights(4, 0.5), [0.125, 0.25, 0.5, 1.0])

    def test_uniform(self):
        np.testing.assert_array_equal(recency_weights(3), np.ones(3))

    @pytest.mark.parametrize("weighting", [0.0, 1.1])
    def test_bad_weighting(self, weighting):
        with pytest.raises(ValueError):
            recency_weights(3, weighting)


class TestWeightedFit:
    def test_recovers_exact_operator(self):
        rng = np.random.default_rng(1)
        A = rng.standard_normal((3, 3))
        X = rng.standard_normal((3, 8))
        np.testing.assert_allclose(weighted_fit(X, A @ X, weighting=0.7), A, atol=1e-12)

    def test_rank_deficient_gives_minimum_norm(self):
        X = np.array([[1.0, 2.0, 3.0], [0.0, 0.0, 0.0]])
        Y = np.array([[2.0, 4.0, 6.0], [1.0, 2.0, 3.0]])
        np.testing.assert_allclose(weighted_fit(X, Y), Y @ np.linalg.pinv(X), atol=1e-12)

    def test_ridge_solution(self):
        rng = np.random.default_rng(2)
        X = rng.standard_normal((3, 6))
        Y = rng.standard_normal((3, 6))
        expected = Y @ X.T @ np.linalg.inv(X @ X.T + 0.3 * np.eye(3))
        np.testing.assert_allclose(weighted_fit(X, Y, regularization=0.3), expected, rtol=1e-10)

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            weighted_fit(np.ones((2, 4)), np.ones((2, 5)))

    def test_negative_regularization(self):
        with pytest.raises(ValueError):
            weighted_fit(np.eye(2), np.eye(2), regularization=-1.0)


class TestMinibatchDMD:
    def test_nan_before_window_fills(self, random_stream):
        x, y = random_stream
        operators = minibatch_dmd(x, y, 12)
        assert operators.shape == (80, 4, 4)
        assert np.all(np.isnan(operators[:11]))
        assert np.all(np.isfinite(operators[11:]))

    def test_matches_pseudo_inverse(self, random_stream):
        x, y = random_stream
        operators = minibatch_dmd(x, y, 12)
        k = 40
        expected = y[:, k - 11 : k + 1] @ np.linalg.pinv(x[:, k - 11 : k + 1])
        np.testing.assert_allclose(operators[k], expected, atol=1e-10)

    def test_agrees_with_window_operator(self, drifting_stream):
        x, y, _ = drifting_stream
        w = 10
        operators = minibatch_dmd(x, y, w, weighting=0.5)
        op = WindowOperator(2, w, 0.5)
        op.initialize(x[:, :w], y[:, :w])
        for k in range(w, x.shape[1]):
            op.update(x[:, k], y[:, k])
            np.testing.assert_allclose(op.A, operators[k], atol=1e-9)

    def test_start_skips_early_windows(self, random_stream):
        x, y = random_stream
        operators = minibatch_dmd(x, y, 12, start=30)
        assert np.all(np.isnan(operators[:30]))
        assert np.all(np.isfinite(operators[30:]))

    def test_too_few_snapshots(self):
        with pytest.raises(ValueError):
            minibatch_dmd(np.ones((2, 3)), np.ones((2, 3)), 5)

    def test_numpy_integer_window_size(self, random_stream):
        x, y = random_stream
        np.testing.assert_array_equal(minibatch_dmd(x, y, np.int64(12)), minibatch_dmd(x, y, 12))
        assert WindowOperator(4, np.int64(12)).window_size == 12

    @pytest.mark.parametrize("window_size", [12.0, True])
    def test_non_integer_window_size(self, random_stream, window_size):
        x, y = random_stream
        with pytest.raises(ValueError):
            minibatch_dmd(x, y, window_size)
