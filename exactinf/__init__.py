"""
exactinf -- exact inference of linear dependence between autocorrelated time series.

Mutual information, conditional mutual information, transfer entropy and
Granger causality between multivariate linear-Gaussian processes all
factorise into a set of independent partial correlations.  Autocorrelation
inflates the variance of each of those correlations; the classical
likelihood-ratio test ignores this and over-rejects.  The "exact" test
replaces the chi-squared reference by a sum of Bartlett-corrected,
variance-scaled chi-squared terms, one per partial correlation.

Key exports
-----------
decompose : function
    Partial correlation decomposition of X and Y given W: partial
    correlations, their Bartlett-corrected variances and conditioning-set
    sizes, ordered row-major (X outer, Y inner).
bartlett_variance, roy_covariance : functions
    Univariate and multivariate variance corrections, with optional
    Tukey / Parzen / Bartlett lag windows.
NullDistribution, build_null_distribution : class, function
    Null descriptor of an aggregate measure (exact and LR references).
significance : function
    p-value of a statistic under the LR or exact test.
mvmi, mvgc, dependence_test : functions
    Measure wrappers and a one-shot test returning ``DependenceResult``.
order, embed : functions
    AR order heuristic and history embedding.
"""

from exactinf.bartlett import bartlett_variance, roy_covariance
from exactinf.config import (
    DecompositionOptions,
    ExactEvaluation,
    InferenceMethod,
    Measure,
    SignificanceOptions,
    Taper,
)
from exactinf.embedding import embed, order
from exactinf.errors import (
    ConfigurationError,
    DegenerateInputError,
    ExactInferenceError,
    InsufficientDataError,
    NumericOverflowWarning,
)
from exactinf.measures import DependenceResult, dependence_test, mvgc, mvmi
from exactinf.null_models import NullDistribution, build_null_distribution
from exactinf.pcd import Decomposition, decompose, residual_pairs
from exactinf.significance import significance, significance_with

__all__ = [
    "decompose",
    "residual_pairs",
    "Decomposition",
    "bartlett_variance",
    "roy_covariance",
    "NullDistribution",
    "build_null_distribution",
    "significance",
    "significance_with",
    "mvmi",
    "mvgc",
    "dependence_test",
    "DependenceResult",
    "order",
    "embed",
    "Taper",
    "InferenceMethod",
    "ExactEvaluation",
    "Measure",
    "DecompositionOptions",
    "SignificanceOptions",
    "ExactInferenceError",
    "ConfigurationError",
    "InsufficientDataError",
    "DegenerateInputError",
    "NumericOverflowWarning",
]
