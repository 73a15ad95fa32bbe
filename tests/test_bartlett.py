"""
Tests for the Bartlett / Roy variance corrections.
"""

import numpy as np
import pytest

from exactinf import bartlett
from exactinf.bartlett import bartlett_variance, roy_covariance
from exactinf.errors import DegenerateInputError, NumericOverflowWarning
from exactinf.utils import pearson

from conftest import ar1


def _pairs(x, y):
    return np.stack([x, y], axis=-1)[:, None, :]


@pytest.fixture
def correlated_white(rng):
    T = 8000
    x = rng.standard_normal(T)
    y = 0.6 * x + 0.8 * rng.standard_normal(T)
    return x, y


class TestUnivariate:
    """Bartlett's formula for single residual pairs."""

    def test_lag_zero_only_is_textbook_formula(self, correlated_white):
        # A bandwidth-1 Bartlett window keeps only lag 0, where the
        # bracket is exactly (1 - r^2)^2.
        x, y = correlated_white
        r = pearson(x, y)
        eta = bartlett_variance(_pairs(x, y), "bartlett", bandwidth=1)
        assert eta.shape == (1,)
        assert eta[0] == pytest.approx((1 - r ** 2) ** 2 / len(x), rel=1e-10)

    def test_no_taper_reduces_to_textbook_for_white_residuals(self, rng):
        T = 8000
        x = rng.standard_normal(T)
        y = rng.standard_normal(T)
        r = pearson(x, y)
        eta = bartlett_variance(_pairs(x, y), "none")
        assert eta[0] == pytest.approx((1 - r ** 2) ** 2 / T, rel=0.15)

    def test_tapered_textbook_with_correlation(self, correlated_white):
        x, y = correlated_white
        r = pearson(x, y)
        eta = bartlett_variance(_pairs(x, y), "tukey")
        assert eta[0] == pytest.approx((1 - r ** 2) ** 2 / len(x), rel=0.1)

    @pytest.mark.parametrize("taper", ["none", "tukey", "parzen", "bartlett"])
    def test_ar1_inflation(self, rng, taper):
        # Independent AR(1) series: T * Var(r) -> (1 + phi^2) / (1 - phi^2).
        phi, T = 0.5, 6000
        Z = ar1(T, phi, rng, n_series=2)
        eta = bartlett_variance(_pairs(Z[:, 0], Z[:, 1]), taper)
        expected = (1 + phi ** 2) / (1 - phi ** 2)
        assert T * eta[0] == pytest.approx(expected, rel=0.2)

    def test_positive_for_every_pair(self, rng):
        res = rng.standard_normal((200, 6, 2))
        for taper in ["none", "tukey", "parzen", "bartlett"]:
            assert np.all(bartlett_variance(res, taper) > 0)


class TestMultivariate:
    """Roy's joint covariance."""

    def test_diagonal_matches_univariate(self, rng):
        res = ar1(500, 0.4, rng, n_series=8).reshape(500, 4, 2)
        uni = bartlett_variance(res, "tukey")
        multi = bartlett_variance(res, "tukey", multivariate=True)
        np.testing.assert_allclose(multi, uni, rtol=1e-8)

    def test_covariance_is_symmetric(self, rng):
        res = rng.standard_normal((300, 3, 2))
        cov = roy_covariance(res, "parzen")
        assert cov.shape == (3, 3)
        np.testing.assert_allclose(cov, cov.T)
        assert np.all(np.diag(cov) > 0)

    def test_shared_series_are_correlated(self, rng):
        # Two pairs sharing the same X residual and strongly related Y
        # residuals have strongly correlated sample correlations.
        T = 2000
        x = rng.standard_normal(T)
        y1 = rng.standard_normal(T)
        y2 = y1 + 0.1 * rng.standard_normal(T)
        res = np.stack([np.stack([x, y1], -1), np.stack([x, y2], -1)], axis=1)
        cov = roy_covariance(res, "tukey")
        corr = cov[0, 1] / np.sqrt(cov[0, 0] * cov[1, 1])
        assert corr > 0.9


class TestFailureModes:
    """Shape errors, degenerate series and clamping."""

    def test_bad_shape_raises(self, rng):
        with pytest.raises(ValueError):
            bartlett_variance(rng.standard_normal((100, 2)))
        with pytest.raises(ValueError):
            bartlett_variance(rng.standard_normal((100, 2, 3)))

    def test_constant_residual_raises(self, rng):
        res = rng.standard_normal((100, 2, 2))
        res[:, 1, 0] = 0.0
        with pytest.raises(DegenerateInputError):
            bartlett_variance(res)

    def test_offset_constant_residual_raises(self, rng):
        res = rng.standard_normal((100, 1, 2))
        res[:, 0, 1] = 3.0
        with pytest.raises(DegenerateInputError):
            bartlett_variance(res)

    def test_small_scale_residuals_are_accepted(self, correlated_white):
        x, y = correlated_white
        ref = bartlett_variance(_pairs(x, y), "tukey")
        eta = bartlett_variance(_pairs(x * 1e-14, y * 1e-14), "tukey")
        np.testing.assert_allclose(eta, ref, rtol=1e-8)

    def test_identical_series_are_floored_with_warning(self, rng):
        x = rng.standard_normal(100)
        with pytest.warns(NumericOverflowWarning):
            eta = bartlett_variance(_pairs(x, x))
        assert eta[0] > 0

    def test_estimate_above_sanity_bound_warns_and_is_kept(self, rng, monkeypatch):
        res = _pairs(rng.standard_normal(50), rng.standard_normal(50))
        expected = bartlett_variance(res, "tukey")
        monkeypatch.setattr(bartlett, "VARIANCE_SANITY_BOUND", 0.5 * float(expected[0]))
        with pytest.warns(NumericOverflowWarning, match="exceed"):
            eta = bartlett_variance(res, "tukey")
        np.testing.assert_array_equal(eta, expected)
        assert np.all(np.isfinite(eta)) and np.all(eta > 0)

    def test_unknown_taper_raises(self, rng):
        from exactinf.errors import ConfigurationError

        with pytest.raises(ConfigurationError):
            bartlett_variance(rng.standard_normal((50, 1, 2)), "cosine")
