"""History embeddings for Granger causality and transfer entropy.

``order`` picks an autoregressive order from the partial autocorrelation
function; ``embed`` builds the aligned future / past matrices that the
measures feed into the decomposition.

Example::

    p = order(X)
    q = order(Y)
    Xf, Yp, Xp, _ = embed(X, Y, p, q)
    te = mvmi(Xf, Yp, Xp)[0]      # transfer entropy Y -> X
    gc = mvgc(X, Y, embedding=(p, q))[0]
    # gc == 2 * te
"""

from typing import Optional, Tuple

import numpy as np
from statsmodels.tsa.stattools import pacf

from exactinf.config import ORDER_CRITICAL_Z
from exactinf.utils import as_series_matrix, check_same_length


def order(X) -> int:
    """Optimal AR order of the (T, D) series X.

    For each column the partial autocorrelation is computed up to
    M = round(T/3) lags (or the largest lag the estimator allows); the
    column's order is the number of lags before the first one with
    |pacf| < 1.96 / sqrt(T), or M if every lag is significant.  The
    result is the maximum over columns and at least 1.
    """
    X = as_series_matrix(X, name="X")
    T, D = X.shape
    M = int(round(T / 3))
    M = max(1, min(M, T // 2 - 1))
    crit = ORDER_CRITICAL_Z / np.sqrt(T)

    ps = np.zeros(D, dtype=int)
    for d in range(D):
        # Levinson-Durbin on the biased autocovariance keeps |pacf| <= 1.
        pc = pacf(X[:, d], nlags=M, method="ldb")
        below = np.flatnonzero(np.abs(pc) < crit)
        # pc[0] == 1, so the first hit is at lag >= 1.
        ps[d] = M if below.size == 0 else int(below[0]) - 1
    return max(int(ps.max()), 1)


def lagged(X: np.ndarray, lags: int, start: int) -> np.ndarray:
    """Stack X[t-1], ..., X[t-lags] for t = start .. T-1.

    Returns a (T - start, D * lags) matrix whose column blocks are ordered
    by increasing lag.
    """
    T, D = X.shape
    if lags < 1:
        return np.zeros((T - start, 0), dtype=X.dtype)
    if start < lags:
        raise ValueError(f"start={start} must be >= lags={lags}")
    return np.hstack([X[start - k:T - k] for k in range(1, lags + 1)])


def embed(X, Y, p: int, q: int, W=None) -> Tuple[np.ndarray, np.ndarray, np.ndarray, Optional[np.ndarray]]:
    """Future of X and pasts of Y, X (and W), aligned on common rows.

    Parameters
    ----------
    X, Y : (T, K), (T, L) array-like
    p : int
        History length of X (and of W).
    q : int
        History length of Y.
    W : (T, C) array-like or None

    Returns
    -------
    Xf : (T - m, K) future of X, m = max(p, q)
    Yp : (T - m, L * q) past of Y
    Xp : (T - m, K * p) past of X
    Wp : (T - m, C * p) past of W, or None
    """
    p, q = int(p), int(q)
    if p < 1 or q < 1:
        raise ValueError(f"Embedding lengths must be >= 1, got p={p}, q={q}")
    X = as_series_matrix(X, name="X")
    Y = as_series_matrix(Y, name="Y")
    T = check_same_length(X=X, Y=Y)
    m = max(p, q)
    if T - m < 2:
        raise ValueError(f"T={T} is too short for an embedding of length {m}")

    Xf = X[m:]
    Yp = lagged(Y, q, m)
    Xp = lagged(X, p, m)
    Wp = None
    if W is not None:
        W = as_series_matrix(W, name="W", allow_empty=True, n_rows=T)
        if W.shape[1] > 0:
            check_same_length(X=X, W=W)
            Wp = lagged(W, p, m)
    return Xf, Yp, Xp, Wp
