"""Numerical building blocks shared by the decomposition and the estimators.

* **Input coercion** -- turns arrays, DataFrames and 1-d series into
  validated (T x K) float64 matrices.
* **Centering** -- removes column means once, which is equivalent to
  carrying an intercept through every conditioning regression.
* **Residualisation** -- least-squares projection onto the orthogonal
  complement of a conditioning matrix, tolerant of rank deficiency.
* **Correlation functions** -- biased (1/T) sample auto- and
  cross-correlations for every pair of columns, via FFT.

Key notation throughout:
  - T : number of time points (rows)
  - C : conditioning matrix, (T x c)
  - v : lag; rho_ab(v) = corr(a_t, b_{t+v})
"""

from typing import Optional, Tuple

import numpy as np
import pandas as pd
from scipy import fft
from sklearn.utils import check_array

from exactinf.config import DEGENERATE_RTOL


def as_series_matrix(X, *, name: str = "X", allow_empty: bool = False,
                     n_rows: Optional[int] = None) -> np.ndarray:
    """Coerce *X* into a finite (T x K) float64 matrix.

    A 1-d input is treated as a single column.  ``None`` (or a matrix with
    zero columns) is only accepted when *allow_empty* is set, in which case
    a (n_rows x 0) matrix is returned so it can be concatenated as-is.
    """
    if X is None:
        if not allow_empty:
            raise ValueError(f"{name} is required.")
        return np.zeros((n_rows or 0, 0), dtype=np.float64)
    if isinstance(X, (pd.DataFrame, pd.Series)):
        X = X.to_numpy()
    X = np.asarray(X, dtype=np.float64)
    if X.ndim == 1:
        X = X[:, None]
    if X.ndim != 2:
        raise ValueError(f"{name} must be 1-d or 2-d, got shape {X.shape}.")
    if X.shape[1] == 0:
        if not allow_empty:
            raise ValueError(f"{name} has no columns.")
        return X
    # Rejects NaN / inf and empty row sets.
    return check_array(X, dtype=np.float64, ensure_min_samples=2, input_name=name)


def check_same_length(**matrices: np.ndarray) -> int:
    """Return the shared row count, raising if the matrices disagree."""
    lengths = {name: M.shape[0] for name, M in matrices.items()}
    if len(set(lengths.values())) != 1:
        raise ValueError(f"Row counts differ: {lengths}")
    return next(iter(lengths.values()))


def center_columns(X: np.ndarray) -> np.ndarray:
    """Subtract each column's mean (accumulated in float64)."""
    return X - X.mean(axis=0, keepdims=True)


def ols_residuals(y: np.ndarray, C: np.ndarray) -> np.ndarray:
    """Residual of *y* after least-squares regression on the columns of *C*.

    ``np.linalg.lstsq`` returns the minimum-norm solution, so repeated or
    collinear conditioning columns give the same projection as their
    linearly independent subset instead of failing.
    """
    if C.shape[1] == 0:
        return y.copy()
    beta, *_ = np.linalg.lstsq(C, y, rcond=None)
    return y - C @ beta


def is_degenerate(resid: np.ndarray, reference: np.ndarray, *,
                  rtol: float = DEGENERATE_RTOL) -> bool:
    """True if *resid* is numerically zero relative to *reference*.

    A zero reference (constant input column) is always degenerate.
    """
    scale = float(np.linalg.norm(reference))
    return scale == 0.0 or float(np.linalg.norm(resid)) <= rtol * scale


def pearson(x: np.ndarray, y: np.ndarray) -> float:
    """Sample correlation of two vectors, clipped to [-1, 1]."""
    xc = x - x.mean()
    yc = y - y.mean()
    r = float(np.dot(xc, yc) / np.sqrt(np.dot(xc, xc) * np.dot(yc, yc)))
    return float(np.clip(r, -1.0, 1.0))


def correlation_functions(Z: np.ndarray, max_lag: int) -> Tuple[np.ndarray, np.ndarray]:
    """Sample auto/cross-correlation functions of every pair of columns.

    Computes

        rho_ab(v) = sum_t z_a(t) z_b(t+v) / (T * s_a * s_b),   |v| <= max_lag

    with centred columns and s the (1/T) standard deviation, i.e. the usual
    biased estimator.  All products are formed in the frequency domain:
    zero-padding to at least 2T - 1 points makes the circular correlation
    equal to the linear one, and negative lags live at the end of the
    inverse transform.

    Parameters
    ----------
    Z : (T, m) array
    max_lag : int
        Largest |v|, at most T - 1.

    Returns
    -------
    lags : (2*max_lag + 1,) int array, from -max_lag to max_lag.
    rho : (m, m, 2*max_lag + 1) array, rho[a, b, k] = rho_ab(lags[k]).
    """
    T, m = Z.shape
    max_lag = int(min(max_lag, T - 1))
    Zc = Z - Z.mean(axis=0, keepdims=True)
    sd = np.sqrt(np.mean(Zc ** 2, axis=0))

    n = fft.next_fast_len(2 * T - 1)
    F = fft.rfft(Zc, n=n, axis=0)                       # (n//2+1, m)
    # cc[:, a, b][v] = sum_t z_a(t) z_b(t+v)
    cc = fft.irfft(np.conj(F)[:, :, None] * F[:, None, :], n=n, axis=0)

    lags = np.arange(-max_lag, max_lag + 1)
    rho = cc[lags % n] / (T * np.outer(sd, sd))[None, :, :]
    return lags, np.moveaxis(rho, 0, -1)
