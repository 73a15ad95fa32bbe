"""
Tests for the partial correlation decomposition.
"""

import numpy as np
import pandas as pd
import pytest

from exactinf.errors import ConfigurationError, DegenerateInputError, InsufficientDataError
from exactinf.pcd import Decomposition, decompose, residual_pairs

from conftest import ar1


def _manual_partial_corr(X, Y, W, j, i):
    """Single partial correlation computed from scratch."""
    Xc = X - X.mean(axis=0)
    Yc = Y - Y.mean(axis=0)
    Wc = W - W.mean(axis=0)
    C = np.hstack([Wc, Yc[:, :i], Xc[:, :j]])
    if C.shape[1] == 0:
        ex, ey = Xc[:, j], Yc[:, i]
    else:
        P = C @ np.linalg.pinv(C)
        ex = Xc[:, j] - P @ Xc[:, j]
        ey = Yc[:, i] - P @ Yc[:, i]
    return np.corrcoef(ex, ey)[0, 1]


class TestOutputs:
    """Shapes, bounds and the row-major ordering."""

    def test_bounds_and_types(self, iid_xyw):
        X, Y, W = iid_xyw
        pr, eta, cs = decompose(X, Y, W)
        assert pr.shape == eta.shape == cs.shape == (6,)
        assert np.all((pr >= -1) & (pr <= 1))
        assert np.all(eta > 0)
        assert np.issubdtype(cs.dtype, np.integer)

    def test_returns_named_decomposition(self, iid_xyw):
        X, Y, W = iid_xyw
        dec = decompose(X, Y, W, taper="parzen")
        assert isinstance(dec, Decomposition)
        assert dec.partial_correlations is dec[0]

    def test_conditioning_sizes_follow_nesting(self, rng):
        X = rng.standard_normal((100, 2))
        Y = rng.standard_normal((100, 3))
        _, _, cs = decompose(X, Y)
        np.testing.assert_array_equal(cs, [0, 1, 2, 1, 2, 3])
        W = rng.standard_normal((100, 2))
        _, _, cs = decompose(X, Y, W)
        np.testing.assert_array_equal(cs, [2, 3, 4, 3, 4, 5])

    def test_row_major_ordering(self, rng):
        # X_0 tracks Y_1 and X_1 tracks Y_2: only pairs (0, 1) and (1, 2)
        # carry dependence, i.e. linear indices 0*3+1 = 1 and 1*3+2 = 5.
        T = 500
        Y = rng.standard_normal((T, 3))
        X = np.column_stack([
            Y[:, 1] + 0.5 * rng.standard_normal(T),
            Y[:, 2] + 0.5 * rng.standard_normal(T),
        ])
        pr, _, _ = decompose(X, Y)
        strong = np.abs(pr) > 0.8
        weak = np.abs(pr) < 0.2
        assert strong[[1, 5]].all()
        assert weak[[0, 2, 3, 4]].all()

    def test_matches_direct_computation(self, iid_xyw):
        X, Y, W = iid_xyw
        pr, _, _ = decompose(X, Y, W)
        L = Y.shape[1]
        for j in range(X.shape[1]):
            for i in range(L):
                assert pr[j * L + i] == pytest.approx(_manual_partial_corr(X, Y, W, j, i), abs=1e-10)

    def test_residual_pairs_layout(self, iid_xyw):
        X, Y, W = iid_xyw
        res, pr, cs = residual_pairs(X, Y, W)
        assert res.shape == (X.shape[0], 6, 2)
        # Residuals are orthogonal to W.
        Wc = W - W.mean(axis=0)
        np.testing.assert_allclose(Wc.T @ res[:, 0, 0], 0.0, atol=1e-8)

    def test_accepts_dataframes_and_vectors(self, rng):
        T = 120
        X = pd.DataFrame(rng.standard_normal((T, 2)), columns=["a", "b"])
        y = pd.Series(rng.standard_normal(T))
        pr, eta, cs = decompose(X, y)
        assert pr.shape == (2,)
        pr2, _, _ = decompose(X.to_numpy(), y.to_numpy())
        np.testing.assert_allclose(pr, pr2)

    def test_multivariate_option(self, iid_xyw):
        X, Y, W = iid_xyw
        _, eta_uni, _ = decompose(X, Y, W, "tukey")
        _, eta_mv, _ = decompose(X, Y, W, "tukey", multivariate=True)
        np.testing.assert_allclose(eta_mv, eta_uni, rtol=1e-8)


class TestFailureModes:
    """Preconditions and degenerate inputs."""

    def test_row_mismatch_raises(self, rng):
        with pytest.raises(ValueError):
            decompose(rng.standard_normal((50, 1)), rng.standard_normal((49, 1)))
        with pytest.raises(ValueError):
            decompose(rng.standard_normal((50, 1)), rng.standard_normal((50, 1)),
                      rng.standard_normal((40, 2)))

    def test_insufficient_data_raises(self, rng):
        with pytest.raises(InsufficientDataError):
            decompose(rng.standard_normal((5, 2)), rng.standard_normal((5, 2)))

    def test_non_finite_input_raises(self, rng):
        X = rng.standard_normal((50, 1))
        X[3, 0] = np.nan
        with pytest.raises(ValueError):
            decompose(X, rng.standard_normal((50, 1)))

    def test_constant_column_raises(self, rng):
        X = rng.standard_normal((100, 2))
        X[:, 0] = 3.0
        with pytest.raises(DegenerateInputError):
            decompose(X, rng.standard_normal((100, 1)))

    def test_column_spanned_by_conditioning_raises(self, rng):
        W = rng.standard_normal((100, 2))
        X = np.column_stack([W[:, 0] - 2 * W[:, 1], rng.standard_normal(100)])
        with pytest.raises(DegenerateInputError):
            decompose(X, rng.standard_normal((100, 1)), W)

    def test_rank_deficient_conditioning_is_tolerated(self, iid_xyw):
        X, Y, W = iid_xyw
        pr, eta, _ = decompose(X, Y, W)
        pr_dup, eta_dup, cs_dup = decompose(X, Y, np.hstack([W, W]))
        np.testing.assert_allclose(pr_dup, pr, atol=1e-8)
        np.testing.assert_allclose(eta_dup, eta, rtol=1e-6)
        assert cs_dup[0] == 2 * W.shape[1]

    def test_small_scale_data_matches_unit_scale(self, iid_xyw):
        X, Y, W = iid_xyw
        ref = decompose(X, Y, W, "tukey")
        small = decompose(X * 1e-14, Y * 1e-14, W * 1e-14, "tukey")
        np.testing.assert_allclose(small.partial_correlations, ref.partial_correlations, atol=1e-8)
        np.testing.assert_allclose(small.variances, ref.variances, rtol=1e-6)
        np.testing.assert_array_equal(small.conditioning_sizes, ref.conditioning_sizes)

    def test_unknown_taper_raises(self, iid_xyw):
        X, Y, W = iid_xyw
        with pytest.raises(ConfigurationError):
            decompose(X, Y, W, taper="welch")


class TestNullBehaviour:
    """Statistical properties under independence."""

    def test_partial_correlations_are_uncorrelated_across_trials(self, rng):
        trials, T = 300, 100
        prs = np.empty((trials, 4))
        for t in range(trials):
            W = rng.standard_normal((T, 1))
            X = W + rng.standard_normal((T, 2))
            Y = W + rng.standard_normal((T, 2))
            prs[t] = decompose(X, Y, W)[0]
        C = np.corrcoef(prs, rowvar=False)
        off = C[~np.eye(4, dtype=bool)]
        assert np.max(np.abs(off)) < 0.25

    def test_confidence_intervals_are_calibrated_for_ar1(self, rng):
        # Independent AR(1) series (phi = 0.5): the Bartlett-corrected 95%
        # interval around each partial correlation should cover zero.
        trials, T = 1000, 500
        covered = 0
        for _ in range(trials):
            Z = ar1(T, 0.5, rng, n_series=2)
            pr, eta, _ = decompose(Z[:, :1], Z[:, 1:], None, "none")
            covered += int(abs(pr[0]) <= 1.96 * np.sqrt(eta[0]))
        assert covered / trials >= 0.9
