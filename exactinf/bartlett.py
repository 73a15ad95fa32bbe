"""Autocorrelation-corrected variances of sample (partial) correlations.

For two stationary series x and y with sample correlation r, Bartlett's
formula gives the large-T variance of r under serial dependence:

    Var(r) = T^{-1} sum_v w(v) [ rho_xx rho_yy + rho_xy(v) rho_yx(v)
                                 - r (rho_xx + rho_yy)(rho_xy(v) + rho_yx(v))
                                 + r^2/2 (rho_xx^2 + rho_yy^2
                                          + rho_xy(v)^2 + rho_yx(v)^2) ]

where every rho is evaluated at lag v and w is the lag window from
``exactinf.taper``.  With no serial dependence only v = 0 survives
(rho_xx = rho_yy = 1, rho_xy = rho_yx = r) and the bracket collapses to
(1 - r^2)^2, the textbook i.i.d. variance.

Roy's multivariate generalisation gives the full covariance between the
correlations of two pairs (a, b) and (c, d) from the joint matrix
autocorrelation of all series involved:

    Cov(r_ab, r_cd) = T^{-1} sum_v w(v) [ rho_ac rho_bd + rho_ad rho_bc
                         - r_ab (rho_ac rho_ad + rho_bc rho_bd)
                         - r_cd (rho_ac rho_bc + rho_ad rho_bd)
                         + r_ab r_cd / 2 (rho_ac^2 + rho_ad^2
                                          + rho_bc^2 + rho_bd^2) ]

whose diagonal is Bartlett's formula.  The covariance matrix is exposed for
inspecting cross-pair dependence; the exact test itself only consumes the
per-pair variances.
"""

import warnings

import numpy as np

from exactinf.config import DEGENERATE_RTOL, EPS, VARIANCE_SANITY_BOUND, Taper
from exactinf.errors import DegenerateInputError, NumericOverflowWarning
from exactinf.taper import max_lag_for, taper_weights
from exactinf.utils import correlation_functions


def _check_residuals(residuals: np.ndarray) -> np.ndarray:
    residuals = np.asarray(residuals, dtype=np.float64)
    if residuals.ndim != 3 or residuals.shape[2] != 2:
        raise ValueError(
            f"residuals must have shape (T, KL, 2), got {residuals.shape}"
        )
    if residuals.shape[0] < 2 or residuals.shape[1] == 0:
        raise ValueError(f"residuals are empty: shape {residuals.shape}")
    sd = residuals.std(axis=0)
    scale = np.max(np.abs(residuals), axis=0)
    # Relative to each series' own magnitude.
    flat = (scale == 0.0) | (sd <= DEGENERATE_RTOL * scale)
    if np.any(flat):
        bad = sorted({int(k) for k in np.argwhere(flat)[:, 0]})
        raise DegenerateInputError(f"Zero-variance residual series for pair(s) {bad}")
    return residuals


def _bracket(ac, bd, ad, bc, r_p, r_q):
    """Summand of Roy's formula (Bartlett's when the two pairs coincide)."""
    return (
        ac * bd + ad * bc
        - r_p * (ac * ad + bc * bd)
        - r_q * (ac * bc + ad * bd)
        + 0.5 * r_p * r_q * (ac ** 2 + ad ** 2 + bc ** 2 + bd ** 2)
    )


def _finalize(eta: np.ndarray) -> np.ndarray:
    if not np.all(np.isfinite(eta)):
        raise DegenerateInputError("Non-finite variance estimate.")
    low = eta <= EPS
    if np.any(low):
        warnings.warn(
            f"{int(low.sum())} variance estimate(s) <= {EPS:g}; floored.",
            NumericOverflowWarning,
            stacklevel=3,
        )
        eta = np.where(low, EPS, eta)
    high = eta > VARIANCE_SANITY_BOUND
    if np.any(high):
        warnings.warn(
            f"{int(high.sum())} variance estimate(s) exceed {VARIANCE_SANITY_BOUND:g} "
            f"(max {eta.max():.3g}); the effective sample size is below one.",
            NumericOverflowWarning,
            stacklevel=3,
        )
    return eta


def roy_covariance(residuals: np.ndarray, taper=Taper.NONE, *, bandwidth=None) -> np.ndarray:
    """Joint asymptotic covariance of the KL residual correlations.

    Parameters
    ----------
    residuals : (T, KL, 2) array
        Residual pairs; [..., 0] is the X side and [..., 1] the Y side.
    taper : Taper or str
    bandwidth : int or None
        Window bandwidth; None uses floor(sqrt(T)).  Ignored for "none".

    Returns
    -------
    (KL, KL) symmetric array.
    """
    residuals = _check_residuals(residuals)
    T, KL, _ = residuals.shape
    max_lag = max_lag_for(taper, T, bandwidth)

    Z = np.concatenate([residuals[:, :, 0], residuals[:, :, 1]], axis=1)
    lags, rho = correlation_functions(Z, max_lag)
    w = taper_weights(taper, lags, max_lag)

    A = np.arange(KL)
    B = KL + A
    ac = rho[np.ix_(A, A)]
    bd = rho[np.ix_(B, B)]
    ad = rho[np.ix_(A, B)]
    bc = rho[np.ix_(B, A)]
    r = np.diagonal(ad[:, :, max_lag])

    terms = _bracket(ac, bd, ad, bc, r[:, None, None], r[None, :, None])
    cov = terms @ w / T
    return 0.5 * (cov + cov.T)


def bartlett_variance(residuals: np.ndarray, taper=Taper.NONE, multivariate: bool = False,
                      *, bandwidth=None) -> np.ndarray:
    """Bartlett-corrected variance of each residual-pair correlation.

    Parameters
    ----------
    residuals : (T, KL, 2) array
        Residual pairs from the partial correlation decomposition.
    taper : Taper or str
        Lag window: "none", "tukey", "parzen" or "bartlett".
    multivariate : bool
        If True, compute Roy's joint covariance and return its diagonal.
    bandwidth : int or None
        Window bandwidth for tapered sums (default floor(sqrt(T))).

    Returns
    -------
    eta : (KL,) array of strictly positive variances.

    Warns
    -----
    NumericOverflowWarning
        When an estimate is floored at EPS or exceeds the sanity bound.
    """
    taper = Taper.parse(taper)
    if multivariate:
        return _finalize(np.diag(roy_covariance(residuals, taper, bandwidth=bandwidth)).copy())

    residuals = _check_residuals(residuals)
    T, KL, _ = residuals.shape
    max_lag = max_lag_for(taper, T, bandwidth)

    eta = np.empty(KL, dtype=np.float64)
    for ij in range(KL):
        lags, rho = correlation_functions(residuals[:, ij, :], max_lag)
        w = taper_weights(taper, lags, max_lag)
        rxx, ryy = rho[0, 0], rho[1, 1]
        rxy, ryx = rho[0, 1], rho[1, 0]
        r = rxy[max_lag]
        eta[ij] = float(np.dot(_bracket(rxx, ryy, rxy, ryx, r, r), w)) / T
    return _finalize(eta)
