"""Lag windows for autocorrelation sums.

Bartlett's variance formula sums products of sample autocorrelations over
lags.  High-lag sample autocorrelations are noisy, so a lag window w(v)
with w(0) = 1 can be used to down-weight them.  With u = |v| / M for a
bandwidth M:

    none      w = 1                                  (every lag, no window)
    tukey     w = (1 + cos(pi u)) / 2                u <= 1
    parzen    w = 1 - 6u^2 + 6u^3                    u <= 1/2
              w = 2 (1 - u)^3                        1/2 < u <= 1
    bartlett  w = 1 - u                              u <= 1

and w = 0 beyond the bandwidth for every window except "none".
"""

import numpy as np

from exactinf.config import Taper
from exactinf.errors import ConfigurationError


def default_bandwidth(T: int) -> int:
    """Largest lag kept by a tapered sum: floor(sqrt(T)), at least 1."""
    return max(1, int(np.floor(np.sqrt(T))))


def max_lag_for(taper, T: int, bandwidth=None) -> int:
    """Largest lag that can receive non-zero weight."""
    taper = Taper.parse(taper)
    if taper is Taper.NONE:
        return max(T - 1, 0)
    M = default_bandwidth(T) if bandwidth is None else int(bandwidth)
    return int(min(M, T - 1))


def taper_weights(taper, lags, max_lag: int) -> np.ndarray:
    """Window weights for an array of (possibly negative) lags."""
    taper = Taper.parse(taper)
    lags = np.abs(np.asarray(lags, dtype=float))

    if taper is Taper.NONE:
        return np.ones_like(lags)
    if max_lag <= 0:
        return (lags == 0).astype(float)

    u = lags / float(max_lag)
    inside = u <= 1.0
    if taper is Taper.TUKEY:
        w = 0.5 * (1.0 + np.cos(np.pi * np.minimum(u, 1.0)))
    elif taper is Taper.PARZEN:
        w = np.where(
            u <= 0.5,
            1.0 - 6.0 * u ** 2 + 6.0 * u ** 3,
            2.0 * (1.0 - np.minimum(u, 1.0)) ** 3,
        )
    elif taper is Taper.BARTLETT:
        w = 1.0 - np.minimum(u, 1.0)
    else:
        raise ConfigurationError(f"No window defined for taper {taper!r}")
    return np.where(inside, w, 0.0)


def taper_weight(taper, lag: int, max_lag: int) -> float:
    """Scalar form of :func:`taper_weights`."""
    return float(taper_weights(taper, [lag], max_lag)[0])
