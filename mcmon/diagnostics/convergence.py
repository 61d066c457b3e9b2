"""
Convergence diagnostics for multi-chain MCMC output.

Given one variable's draws laid out as an (n_samples, n_chains) matrix,
this module computes:
- Empirical quantiles of the pooled draws
- Between/within-chain variance decomposition
- Gelman-Rubin potential scale reduction factor (R̂)
- Approximate 97.5% upper bound for R̂ (Brooks-Gelman df correction)
- Effective sample size based on the between-chain variance

References:
    [1] Gelman & Rubin (1992). "Inference from Iterative Simulation Using
        Multiple Sequences"
    [2] Brooks & Gelman (1998). "General Methods for Monitoring
        Convergence of Iterative Simulations"
"""

import warnings
from dataclasses import dataclass, replace
from typing import Dict, Optional

import numpy as np
from scipy import stats
from scipy.stats import chi2

from ..errors import InvalidInput


QUANTILE_PROBS = (0.025, 0.25, 0.5, 0.75, 0.975)
QUANTILE_LABELS = ('2.5%', '25%', '50%', '75%', '97.5%')

# Upper bound is reported at this quantile of the F approximation
UPPER_BOUND_LEVEL = 0.975


@dataclass(frozen=True, eq=False)
class VarianceDecomposition:
    """Between/within-chain variance components for one variable."""

    chain_means: np.ndarray  # x̄_j, one per chain
    chain_vars: np.ndarray  # s_j², divisor n - 1
    grand_mean: float
    between: float  # B
    within: float  # W
    var_hat: float  # pooled posterior variance estimate
    n_samples: int
    n_chains: int

    @property
    def degenerate(self) -> bool:
        """True when no chain moved at all (W == 0)."""
        return self.within == 0


@dataclass(frozen=True)
class ScaleReduction:
    """Potential scale reduction estimate and optional upper bound."""
    estimate: float
    upper_bound: Optional[float] = None


@dataclass(frozen=True, eq=False)
class DiagnosticResult:
    """
    Diagnostics for one variable.

    Single-chain results carry quantiles only; scale_reduction, n_eff
    and variance are None and are left out of to_dict().
    """
    quantiles: np.ndarray
    scale_reduction: Optional[ScaleReduction] = None
    n_eff: Optional[float] = None
    variance: Optional[VarianceDecomposition] = None

    @property
    def multi_chain(self) -> bool:
        return self.scale_reduction is not None

    @property
    def r_hat(self) -> Optional[float]:
        if self.scale_reduction is None:
            return None
        return self.scale_reduction.estimate

    @property
    def r_upper(self) -> Optional[float]:
        if self.scale_reduction is None:
            return None
        return self.scale_reduction.upper_bound

    def with_quantiles(self, quantiles: np.ndarray) -> 'DiagnosticResult':
        """Copy of this result with the quantiles replaced."""
        return replace(self, quantiles=np.asarray(quantiles, dtype=float))

    def to_dict(self) -> Dict[str, float]:
        """Flatten into summary-table columns."""
        row = {label: float(q) for label, q in zip(QUANTILE_LABELS, self.quantiles)}
        if self.scale_reduction is not None:
            row['Rhat'] = self.scale_reduction.estimate
            if self.scale_reduction.upper_bound is not None:
                row['Rupper'] = self.scale_reduction.upper_bound
            row['n.eff'] = self.n_eff
        return row


def _as_matrix(draws) -> np.ndarray:
    """Validate draws and return them as an (n_samples, n_chains) float array."""
    try:
        x = np.asarray(draws, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"Draws must be numeric: {e}") from e

    if x.ndim == 1:
        x = x[:, np.newaxis]
    if x.ndim != 2:
        raise InvalidInput(
            f"Expected draws of shape (n_samples, n_chains), got {x.ndim}-D array"
        )

    n_samples, n_chains = x.shape
    if n_samples < 2:
        raise InvalidInput(f"Need at least 2 samples per chain, got {n_samples}")
    if n_chains < 1:
        raise InvalidInput("Need at least 1 chain")
    if not np.all(np.isfinite(x)):
        raise InvalidInput("Draws contain NaN or infinite values")

    return x


def _chisq_df(estimate: float, variance: float) -> float:
    """Degrees of freedom of a scaled chi-squared matching mean and variance."""
    if variance <= 0:
        return float('inf')
    return 2 * estimate ** 2 / variance


def _f_quantile(q: float, dfn: float, dfd: float) -> float:
    """F quantile that accepts an infinite denominator df."""
    if np.isfinite(dfd):
        value = stats.f.ppf(q, dfn, dfd)
        if np.isfinite(value):
            return value
    # Limit as dfd -> inf
    return chi2.ppf(q, dfn) / dfn


class GelmanRubinDiagnostic:
    """
    Gelman-Rubin convergence diagnostic (potential scale reduction factor).

    Tests whether multiple MCMC chains have converged to the same
    distribution by comparing between-chain and within-chain variance.
    R̂ near 1 indicates convergence; values persistently above ~1.1 do not.

    Reference:
        Gelman & Rubin (1992) "Inference from Iterative Simulation Using Multiple Sequences"
    """

    def __init__(self, want_upper_bound: bool = False, min_samples: int = 100):
        """
        Args:
            want_upper_bound: Also compute the 97.5% upper bound for R̂
            min_samples: Warn when chains are shorter than this
        """
        self.want_upper_bound = want_upper_bound
        self.min_samples = min_samples

    @staticmethod
    def quantiles(x: np.ndarray) -> np.ndarray:
        """Linear-interpolation quantiles of all draws pooled across chains."""
        return np.quantile(x.ravel(order='F'), QUANTILE_PROBS)

    @staticmethod
    def decompose(x: np.ndarray) -> VarianceDecomposition:
        """
        Split the variance of an (n_samples, n_chains) matrix.

        B = n/(m-1) Σ (x̄_j - x̄)²
        W = mean(s_j²)
        var_hat = (n-1)/n W + B/n
        """
        n_samples, n_chains = x.shape

        chain_means = np.mean(x, axis=0)
        chain_vars = np.var(x, axis=0, ddof=1)
        # Constant chains have zero variance exactly, not rounding residue
        chain_vars[np.ptp(x, axis=0) == 0] = 0.0
        grand_mean = float(np.mean(chain_means))

        # Between-chain variance
        if np.ptp(chain_means) == 0:
            B = 0.0
        else:
            B = float(n_samples * np.var(chain_means, ddof=1))

        # Within-chain variance
        W = float(np.mean(chain_vars))

        var_hat = ((n_samples - 1) / n_samples) * W + B / n_samples

        return VarianceDecomposition(
            chain_means=chain_means,
            chain_vars=chain_vars,
            grand_mean=grand_mean,
            between=B,
            within=W,
            var_hat=var_hat,
            n_samples=n_samples,
            n_chains=n_chains,
        )

    @staticmethod
    def scale_reduction(dec: VarianceDecomposition) -> float:
        """R̂ = sqrt(var_hat / W), with W == 0 handled explicitly."""
        if dec.within > 0:
            return float(np.sqrt(dec.var_hat / dec.within))
        if dec.between == 0:
            # Every draw identical
            return 1.0
        return float('inf')

    def upper_bound(self, dec: VarianceDecomposition, r_hat: float) -> float:
        """
        Approximate 97.5% upper bound for R̂.

        var_hat/W = (n-1)/n + (1/n)(B/W); the sampling distribution of B/W
        is approximated by an F distribution whose degrees of freedom come
        from chi-squared approximations to B and W. The result is scaled by
        the Brooks-Gelman correction (df+3)/(df+1), df being the degrees of
        freedom of the pooled posterior variance.
        """
        if dec.degenerate:
            return r_hat

        n = dec.n_samples
        m = dec.n_chains
        B = dec.between
        W = dec.within
        s2 = dec.chain_vars
        xbar = dec.chain_means
        muhat = dec.grand_mean

        # Sampling variances of W and B, and their covariance
        var_w = np.var(s2, ddof=1) / m
        var_b = 2 * B ** 2 / (m - 1)
        cov_wb = (n / m) * (
            np.cov(s2, xbar ** 2)[0, 1] - 2 * muhat * np.cov(s2, xbar)[0, 1]
        )

        # Posterior interval variance includes the sampling variance of muhat
        postvar = dec.var_hat + B / (m * n)
        varpostvar = max(0.0, (
            (n - 1) ** 2 * var_w
            + (1 + 1 / m) ** 2 * var_b
            + 2 * (n - 1) * (1 + 1 / m) * cov_wb
        ) / n ** 2)

        post_df = _chisq_df(postvar, varpostvar)
        within_df = _chisq_df(W, var_w)

        ratio = (n - 1) / n + (1 + 1 / m) * (1 / n) * (B / W) * _f_quantile(
            UPPER_BOUND_LEVEL, m - 1, within_df
        )
        correction = 1.0 if np.isinf(post_df) else (post_df + 3) / (post_df + 1)

        # Both factors are >= their R̂ counterparts; max only absorbs rounding
        return max(float(np.sqrt(ratio * correction)), r_hat)

    @staticmethod
    def effective_sample_size(dec: VarianceDecomposition) -> float:
        """n_eff = m n min(var_hat / B, 1)."""
        total = dec.n_chains * dec.n_samples
        if dec.between == 0:
            return float(total)
        return float(total * min(dec.var_hat / dec.between, 1.0))

    def compute(self, draws, multi_chain: Optional[bool] = None) -> DiagnosticResult:
        """
        Run the diagnostics on one variable.

        Args:
            draws: Array of shape (n_samples, n_chains); 1-D means one chain
            multi_chain: Compute R̂ and n_eff (default: n_chains > 1)

        Returns:
            DiagnosticResult; quantiles only when multi_chain is False
        """
        x = _as_matrix(draws)
        n_samples, n_chains = x.shape

        if multi_chain is None:
            multi_chain = n_chains > 1
        if multi_chain and n_chains < 2:
            raise InvalidInput("Need at least 2 chains for Gelman-Rubin diagnostic")

        if n_samples < self.min_samples:
            warnings.warn(f"Only {n_samples} samples per chain - diagnostics may be unreliable")

        quantiles = self.quantiles(x)
        if not multi_chain:
            return DiagnosticResult(quantiles=quantiles)

        dec = self.decompose(x)
        r_hat = self.scale_reduction(dec)
        r_upper = self.upper_bound(dec, r_hat) if self.want_upper_bound else None

        return DiagnosticResult(
            quantiles=quantiles,
            scale_reduction=ScaleReduction(estimate=r_hat, upper_bound=r_upper),
            n_eff=self.effective_sample_size(dec),
            variance=dec,
        )


def diagnose(
    draws,
    multi_chain: Optional[bool] = None,
    want_upper_bound: bool = False
) -> DiagnosticResult:
    """
    Diagnose one variable with default settings.

    Args:
        draws: Array of shape (n_samples, n_chains)
        multi_chain: Compute R̂ and n_eff (default: n_chains > 1)
        want_upper_bound: Also compute the R̂ upper bound

    Returns:
        DiagnosticResult
    """
    return GelmanRubinDiagnostic(want_upper_bound=want_upper_bound).compute(
        draws, multi_chain=multi_chain
    )


def potential_scale_reduction(draws) -> float:
    """R̂ for an (n_samples, n_chains) matrix with at least 2 chains."""
    return diagnose(draws, multi_chain=True).r_hat


def effective_sample_size(draws) -> float:
    """Between-chain effective sample size for an (n_samples, n_chains) matrix."""
    return diagnose(draws, multi_chain=True).n_eff
