"""Package-wide constants, enumerated options and option bundles.

This module centralizes every tuneable parameter of the inference engine
-- numerical floors, the default Monte-Carlo sample size, the bandwidth
rule for tapered autocorrelation sums, etc. -- so that the decomposition,
the significance layer and the drivers import a single source of truth.

Options are expressed as enums plus frozen dataclasses.  Every string
accepted by a public function is parsed into its enum here, and anything
unrecognised raises ``ConfigurationError`` instead of falling back to a
default.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from exactinf.errors import ConfigurationError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Numerical floor for variances and denominators.
EPS = 1e-12

# Default seed used by the drivers (never by the library core, which takes
# an explicit generator or seed).
SEED = 42

# Number of Monte-Carlo draws for the exact test.
DEFAULT_SAMPLE_SIZE = 5000

# A correlation cannot have a variance above 1; an estimate beyond this
# bound means the autocorrelation sum has blown up and is reported.
VARIANCE_SANITY_BOUND = 1.0

# Two-sided 95% critical value used by the AR order heuristic.
ORDER_CRITICAL_Z = 1.96

# A residual whose norm falls below this fraction of the centred input's
# norm is treated as identically zero.
DEGENERATE_RTOL = 1e-10


# ---------------------------------------------------------------------------
# Enumerated options
# ---------------------------------------------------------------------------


class _ParsableEnum(str, Enum):
    """String enum whose ``parse`` fails fast on unknown values."""

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise ConfigurationError(
                f"Unknown {cls.__name__} {value!r}; expected one of: {allowed}"
            ) from None


class Taper(_ParsableEnum):
    """Lag window applied to autocorrelation sums in Bartlett's formula."""

    NONE = "none"
    TUKEY = "tukey"
    PARZEN = "parzen"
    BARTLETT = "bartlett"


class InferenceMethod(_ParsableEnum):
    """Reference distribution used to turn a statistic into a p-value."""

    LR = "lr"
    EXACT = "exact"


class ExactEvaluation(_ParsableEnum):
    """How the exact null distribution is evaluated."""

    MONTE_CARLO = "monte_carlo"
    ANALYTIC = "analytic"


class Measure(_ParsableEnum):
    """Dependence measure built from the partial correlations.

    MI-scale measures (mutual information, conditional MI, transfer
    entropy) are -1/2 sum log(1 - r^2); Granger causality is twice that.
    """

    MI = "mi"
    GC = "gc"

    @property
    def scale(self) -> float:
        return 0.5 if self is Measure.MI else 1.0


# ---------------------------------------------------------------------------
# Option bundles
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DecompositionOptions:
    """Options for the partial correlation decomposition.

    Parameters
    ----------
    taper : Taper or str
        Lag window for the Bartlett variance estimate.
    multivariate : bool
        Use Roy's multivariate formula (diagonal of the joint covariance).
    bandwidth : int or None
        Largest lag kept by a non-trivial taper.  None uses floor(sqrt(T)).
    """

    taper: Taper = Taper.NONE
    multivariate: bool = False
    bandwidth: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "taper", Taper.parse(self.taper))
        if self.bandwidth is not None and int(self.bandwidth) < 1:
            raise ConfigurationError(f"bandwidth must be >= 1, got {self.bandwidth}")


@dataclass(frozen=True)
class SignificanceOptions:
    """Options for the significance engine.

    Parameters
    ----------
    method : InferenceMethod or str
        "lr" (asymptotic chi-squared) or "exact".
    sample_size : int
        Monte-Carlo draws for the exact test.
    evaluation : ExactEvaluation or str
        "monte_carlo" or "analytic" evaluation of the exact null.
    seed : int or None
        Seed for the Monte-Carlo generator.
    """

    method: InferenceMethod = InferenceMethod.EXACT
    sample_size: int = DEFAULT_SAMPLE_SIZE
    evaluation: ExactEvaluation = ExactEvaluation.MONTE_CARLO
    seed: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "method", InferenceMethod.parse(self.method))
        object.__setattr__(self, "evaluation", ExactEvaluation.parse(self.evaluation))
        if int(self.sample_size) < 1:
            raise ConfigurationError(f"sample_size must be >= 1, got {self.sample_size}")
