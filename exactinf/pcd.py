"""Partial correlation decomposition (PCD) of multivariate linear dependence.

For a K-variate X and an L-variate Y (optionally conditioned on a
C-variate W), the Gaussian mutual information factorises exactly into K*L
partial correlations:

    I(X; Y | W) = -1/2 sum_{j, i} log(1 - r_ji^2)

with r_ji the correlation of X_j and Y_i after both are regressed on

    C_ji = [W, Y_1 .. Y_{i-1}, X_1 .. X_{j-1}].

The nesting of the conditioning sets is what makes the K*L correlations
mutually independent under the null of no dependence, so the null
distribution of the sum is a sum of independent one-dimensional nulls.

Outputs are ordered row-major with X outer and Y inner: the pair
(j, i) (0-based) is stored at index j * L + i.

Example::

    from exactinf import decompose
    pr, eta, cs = decompose(X, Y, W, taper="tukey")
"""

from typing import NamedTuple, Tuple

import numpy as np

from exactinf.bartlett import bartlett_variance
from exactinf.config import Taper
from exactinf.errors import DegenerateInputError, InsufficientDataError
from exactinf.utils import (
    as_series_matrix,
    center_columns,
    check_same_length,
    is_degenerate,
    ols_residuals,
    pearson,
)


class Decomposition(NamedTuple):
    """Partial correlations, their corrected variances and conditioning sizes."""

    partial_correlations: np.ndarray
    variances: np.ndarray
    conditioning_sizes: np.ndarray


def _prepare(X, Y, W) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    X = as_series_matrix(X, name="X")
    Y = as_series_matrix(Y, name="Y")
    T = check_same_length(X=X, Y=Y)
    W = as_series_matrix(W, name="W", allow_empty=True, n_rows=T)
    if W.shape[1] > 0:
        check_same_length(X=X, W=W)
    elif W.shape[0] != T:
        W = np.zeros((T, 0), dtype=np.float64)

    K, L, C = X.shape[1], Y.shape[1], W.shape[1]
    if T <= 1 + C + K + L:
        raise InsufficientDataError(
            f"T={T} time points cannot support K={K}, L={L} and C={C} "
            f"conditioning columns (need T > {1 + C + K + L})."
        )
    return center_columns(X), center_columns(Y), center_columns(W)


def residual_pairs(X, Y, W=None) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Residualise every (X_j, Y_i) pair on its nested conditioning set.

    Parameters
    ----------
    X : (T, K) array-like
    Y : (T, L) array-like
    W : (T, C) array-like or None

    Returns
    -------
    residuals : (T, K*L, 2) array
        [:, ij, 0] is the X_j residual and [:, ij, 1] the Y_i residual.
    partial_correlations : (K*L,) array in [-1, 1]
    conditioning_sizes : (K*L,) int array, C + i + j for pair (j, i).

    Raises
    ------
    ValueError
        Row counts differ or inputs are malformed.
    InsufficientDataError
        T <= 1 + C + K + L.
    DegenerateInputError
        A residual vanishes: constant column, or a column spanned by its
        conditioning set.
    """
    X, Y, W = _prepare(X, Y, W)
    T, K = X.shape
    L = Y.shape[1]

    residuals = np.empty((T, K * L, 2), dtype=np.float64)
    pr = np.empty(K * L, dtype=np.float64)
    cs = np.empty(K * L, dtype=np.int64)

    for j in range(K):
        x_j = X[:, j]
        for i in range(L):
            ij = j * L + i
            y_i = Y[:, i]
            C_ij = np.hstack([W, Y[:, :i], X[:, :j]])

            e_x = ols_residuals(x_j, C_ij)
            e_y = ols_residuals(y_i, C_ij)
            if is_degenerate(e_x, x_j):
                raise DegenerateInputError(
                    f"X column {j} has no variance left after conditioning "
                    f"on {C_ij.shape[1]} column(s)."
                )
            if is_degenerate(e_y, y_i):
                raise DegenerateInputError(
                    f"Y column {i} has no variance left after conditioning "
                    f"on {C_ij.shape[1]} column(s)."
                )

            residuals[:, ij, 0] = e_x
            residuals[:, ij, 1] = e_y
            pr[ij] = pearson(e_x, e_y)
            cs[ij] = C_ij.shape[1]

    return residuals, pr, cs


def decompose(X, Y, W=None, taper=Taper.NONE, multivariate: bool = False,
              *, bandwidth=None) -> Decomposition:
    """Partial correlation decomposition between X and Y given W.

    Parameters
    ----------
    X : (T, K) array-like
        Columns are time series, rows are time points.
    Y : (T, L) array-like
    W : (T, C) array-like or None
        Optional conditioning series.
    taper : Taper or str
        Lag window for Bartlett's formula ("none", "tukey", "parzen",
        "bartlett").
    multivariate : bool
        Use Roy's multivariate formula for the variances.
    bandwidth : int or None
        Window bandwidth; None uses floor(sqrt(T)).

    Returns
    -------
    Decomposition
        ``(partial_correlations, variances, conditioning_sizes)``, each of
        length K*L, ordered row-major (X outer, Y inner).
    """
    taper = Taper.parse(taper)
    residuals, pr, cs = residual_pairs(X, Y, W)
    # One batched call so the multivariate formula sees every pair.
    eta = bartlett_variance(residuals, taper, multivariate, bandwidth=bandwidth)
    return Decomposition(pr, eta, cs)
