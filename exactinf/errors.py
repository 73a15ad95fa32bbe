"""Exception and warning types raised by the inference engine.

Errors propagate to the caller from the point where they are detected.
Rank deficiency in the conditioning regressions is *not* an error: it is
resolved by the least-squares (pseudo-inverse) solve in ``exactinf.utils``.
"""


class ExactInferenceError(Exception):
    """Base class for all errors raised by ``exactinf``."""


class ConfigurationError(ExactInferenceError, ValueError):
    """Unrecognised taper, test method or evaluation strategy."""


class InsufficientDataError(ExactInferenceError, ValueError):
    """Too few time points for the requested number of regressors."""


class DegenerateInputError(ExactInferenceError, ValueError):
    """A residual series has zero variance (constant or collinear input)."""


class NumericOverflowWarning(RuntimeWarning):
    """A variance or p-value had to be clamped to stay in its valid range."""
