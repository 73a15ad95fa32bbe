"""Null distributions for aggregate linear-dependence measures.

Under the null of no dependence the K*L partial correlations from the
decomposition are independent, and each squared correlation behaves like a
variance-scaled chi-squared(1) variable.  Two references are built from the
decomposition:

- Exact null: the measure m = s * sum_k -log(1 - r_k^2) (s = 1/2 for MI,
  1 for Granger causality) is simulated term by term from

      r_k^2 / (1 - r_k^2) = lambda_k * chi2_1,

  i.e. m* = s * sum_k log(1 + lambda_k chi2_1), or evaluated analytically
  through its first-order form s * sum_k lambda_k chi2_1 by numerical
  inversion of the characteristic function (Imhof, 1961).
- Likelihood-ratio null: T * m / s ~ chi2(K*L) asymptotically.

The per-term weight lambda_k folds both finite-sample corrections together.
Bartlett's variance eta_k is T^{-1} times an inflation factor T * eta_k;
the residual degrees of freedom T - c_k - 2 are deflated by that factor to
give the effective degrees of freedom nu_k, and lambda_k = 1 / nu_k.  For
white residuals and small conditioning sets lambda_k ~= eta_k.

Small samples: the draws treat the effective degrees of freedom as fixed,
i.e. r_k^2 / (1 - r_k^2) is modelled as lambda_k chi2_1 rather than
chi2_1 / chi2_nu.  The F(1, nu) tail is heavier, so when nu_k is small
(a few tens) the exact test over-rejects; for white noise at T = 20 it
rejects about 15% of the time at a nominal 5%.  Keep T well above the
size of the largest conditioning set.
"""

from dataclasses import dataclass

import numpy as np
from scipy import integrate, stats

from exactinf.config import EPS, Measure
from exactinf.pcd import Decomposition


@dataclass(frozen=True, eq=False)
class NullDistribution:
    """Description of the null distribution of one dependence measure.

    Attributes
    ----------
    variances : (KL,) array
        Bartlett-corrected variances of the partial correlations.
    conditioning_sizes : (KL,) int array
        Number of conditioning columns behind each partial correlation.
    n_samples : int
        Number of time points the decomposition was computed on.
    measure : Measure
        Scale of the statistic (MI-scale or GC-scale).
    """

    variances: np.ndarray
    conditioning_sizes: np.ndarray
    n_samples: int
    measure: Measure = Measure.MI

    def __post_init__(self):
        eta = np.atleast_1d(np.asarray(self.variances, dtype=np.float64))
        cs = np.atleast_1d(np.asarray(self.conditioning_sizes, dtype=np.int64))
        if eta.shape != cs.shape:
            raise ValueError(
                f"variances {eta.shape} and conditioning_sizes {cs.shape} differ in shape"
            )
        if eta.size == 0 or np.any(~np.isfinite(eta)) or np.any(eta <= 0):
            raise ValueError("variances must be a non-empty vector of positive values")
        object.__setattr__(self, "variances", eta)
        object.__setattr__(self, "conditioning_sizes", cs)
        object.__setattr__(self, "n_samples", int(self.n_samples))
        object.__setattr__(self, "measure", Measure.parse(self.measure))

    @property
    def dof(self) -> int:
        """Degrees of freedom of the LR reference: one per partial correlation."""
        return int(self.variances.size)

    @property
    def scale(self) -> float:
        return self.measure.scale

    @property
    def effective_dof(self) -> np.ndarray:
        """nu_k = (T - c_k - 2) / (T * eta_k), floored at 1."""
        T = self.n_samples
        inflation = T * self.variances
        nu = (T - self.conditioning_sizes - 2) / inflation
        return np.maximum(nu, 1.0)

    @property
    def weights(self) -> np.ndarray:
        """Chi-squared weights lambda_k = 1 / nu_k."""
        return 1.0 / self.effective_dof

    def lr_statistic(self, statistic: float) -> float:
        """Map the measure onto its asymptotic chi-squared scale."""
        return self.n_samples * float(statistic) / self.scale

    def lr_reference(self):
        """Frozen ``scipy.stats.chi2`` with the LR degrees of freedom."""
        return stats.chi2(df=self.dof)

    def sample(self, size: int, rng=None) -> np.ndarray:
        """Monte-Carlo draws of the measure under the null.

        Parameters
        ----------
        size : int
            Number of draws S.
        rng : int, numpy.random.Generator or None
            Seed or generator; the only source of randomness.

        Returns
        -------
        (S,) array of simulated measure values.
        """
        rng = np.random.default_rng(rng)
        z = rng.chisquare(1.0, size=(int(size), self.dof))
        return self.scale * np.log1p(z * self.weights[None, :]).sum(axis=1)

    def sf_analytic(self, statistic: float) -> float:
        """Tail probability of s * sum_k lambda_k chi2_1 at *statistic*."""
        return weighted_chi2_sf(float(statistic) / self.scale, self.weights)


def weighted_chi2_sf(q: float, weights, *, limit: int = 200) -> float:
    """P(sum_k w_k chi2_1 > q) for positive weights.

    Equal weights reduce to a scaled chi-squared with len(w) degrees of
    freedom.  Otherwise Imhof's inversion formula is integrated:

        P(Q > q) = 1/2 + 1/pi int_0^inf sin(theta(u)) / (u rho(u)) du
        theta(u) = phi(u) - q u / 2,   phi(u) = 1/2 sum_k arctan(w_k u)
        rho(u)   = prod_k (1 + w_k^2 u^2)^{1/4}

    Weights and q are first divided by max(w) so the integrand lives on a
    unit scale regardless of T.  The first period of the oscillation is
    integrated directly.  Beyond it the integrand is split as

        sin(theta) = sin(phi) cos(q u / 2) - cos(phi) sin(q u / 2)

    with phi bounded and monotone, and each half goes to QUADPACK's Fourier
    integrator (QAWF), which extrapolates over whole periods instead of
    truncating.  Quadrature diagnostics are collected through
    ``full_output`` and never surface as warnings.

    Returns NaN if the quadrature itself does; callers clamp.
    """
    w = np.atleast_1d(np.asarray(weights, dtype=np.float64))
    if q <= 0:
        return 1.0
    top = float(w.max())
    lam = w / top
    x = q / top
    if np.allclose(lam, 1.0, rtol=1e-10, atol=0.0):
        return float(stats.chi2.sf(x, df=lam.size))

    omega = 0.5 * x

    def phi(u):
        return 0.5 * np.sum(np.arctan(lam * u))

    def rho(u):
        return np.prod((1.0 + (lam * u) ** 2) ** 0.25)

    def integrand(u):
        if u < EPS:
            return 0.5 * (lam.sum() - x)
        return np.sin(phi(u) - omega * u) / (u * rho(u))

    split = 2.0 * np.pi / omega
    head = integrate.quad(integrand, 0.0, split, limit=limit, full_output=1)[0]
    cos_part = integrate.quad(
        lambda u: np.sin(phi(u)) / (u * rho(u)), split, np.inf,
        weight="cos", wvar=omega, limlst=limit, full_output=1,
    )[0]
    sin_part = integrate.quad(
        lambda u: np.cos(phi(u)) / (u * rho(u)), split, np.inf,
        weight="sin", wvar=omega, limlst=limit, full_output=1,
    )[0]
    return float(0.5 + (head + cos_part - sin_part) / np.pi)


def build_null_distribution(decomposition: Decomposition, n_samples: int,
                            measure=Measure.MI) -> NullDistribution:
    """Null descriptor for a measure built from *decomposition*.

    Parameters
    ----------
    decomposition : Decomposition
        Output of :func:`exactinf.pcd.decompose`.
    n_samples : int
        Number of rows the decomposition was computed on.
    measure : Measure or str
        "mi" for MI / CMI / transfer entropy, "gc" for Granger causality.
    """
    return NullDistribution(
        variances=decomposition.variances,
        conditioning_sizes=decomposition.conditioning_sizes,
        n_samples=n_samples,
        measure=Measure.parse(measure),
    )
