"""Shared fixtures and generators for the exactinf test-suite."""

import numpy as np
import pytest
from scipy import signal


def ar1(T, phi, rng, n_series=1, burn_in=200):
    """(T, n_series) independent AR(1) processes with coefficient phi."""
    e = rng.standard_normal((T + burn_in, n_series))
    return signal.lfilter([1.0], [1.0, -phi], e, axis=0)[burn_in:]


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def iid_xyw(rng):
    """Independent white-noise X (3 cols), Y (2 cols) and W (2 cols)."""
    T = 300
    return (
        rng.standard_normal((T, 3)),
        rng.standard_normal((T, 2)),
        rng.standard_normal((T, 2)),
    )
