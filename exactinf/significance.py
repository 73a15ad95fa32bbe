"""Significance engine: statistic + null descriptor -> p-value.

Two tests are available for every measure built on the partial correlation
decomposition:

1. Likelihood-ratio (asymptotic)::

    p = significance(measure, null, "lr")

2. Exact (finite-sample, autocorrelation-corrected)::

    p = significance(measure, null, "exact", sample_size=5000, rng=0)
    p = significance(measure, null, "exact", evaluation="analytic")

The returned p-value is always in [0, 1].  0 and 1 are legitimate values
at the extremes of the null; anything non-finite is reported with a
``NumericOverflowWarning`` and replaced by the nearest valid boundary.
"""

import math
import warnings

import numpy as np

from exactinf.config import (
    DEFAULT_SAMPLE_SIZE,
    ExactEvaluation,
    InferenceMethod,
    SignificanceOptions,
)
from exactinf.errors import NumericOverflowWarning
from exactinf.null_models import NullDistribution


def _clamp(p: float, fallback: float) -> float:
    if not math.isfinite(p):
        warnings.warn(
            f"p-value evaluated to {p}; returning {fallback}.",
            NumericOverflowWarning,
            stacklevel=3,
        )
        return fallback
    return min(max(p, 0.0), 1.0)


def significance(statistic: float, null: NullDistribution, method=InferenceMethod.EXACT,
                 sample_size: int = DEFAULT_SAMPLE_SIZE, *,
                 evaluation=ExactEvaluation.MONTE_CARLO, rng=None) -> float:
    """p-value of an observed dependence measure.

    Parameters
    ----------
    statistic : float
        Observed measure (MI-scale or GC-scale, matching ``null.measure``).
    null : NullDistribution
        Descriptor from :func:`exactinf.null_models.build_null_distribution`.
    method : InferenceMethod or str
        "lr" for the asymptotic chi-squared test, "exact" for the exact test.
    sample_size : int
        Monte-Carlo draws for the exact test.
    evaluation : ExactEvaluation or str
        "monte_carlo" (empirical tail of the simulated null) or "analytic"
        (numerical inversion of the weighted chi-squared sum).
    rng : int, numpy.random.Generator or None
        Seed or generator for the Monte-Carlo draws.

    Returns
    -------
    float in [0, 1].

    Raises
    ------
    ConfigurationError
        Unknown *method* or *evaluation*.
    """
    method = InferenceMethod.parse(method)
    evaluation = ExactEvaluation.parse(evaluation)
    statistic = float(statistic)

    if math.isnan(statistic):
        return _clamp(statistic, 1.0)
    if statistic == math.inf:
        return 0.0

    if method is InferenceMethod.LR:
        p = float(null.lr_reference().sf(null.lr_statistic(statistic)))
        return _clamp(p, 1.0)

    if evaluation is ExactEvaluation.ANALYTIC:
        return _clamp(null.sf_analytic(statistic), 1.0)

    draws = null.sample(sample_size, rng=rng)
    return _clamp(float(np.mean(draws >= statistic)), 1.0)


def significance_with(statistic: float, null: NullDistribution,
                      options: SignificanceOptions) -> float:
    """:func:`significance` driven by a :class:`SignificanceOptions` bundle."""
    return significance(
        statistic,
        null,
        options.method,
        options.sample_size,
        evaluation=options.evaluation,
        rng=options.seed,
    )
