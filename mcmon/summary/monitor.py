"""
Per-variable summary table for completed multi-chain MCMC output.

The monitor takes an (n_iterations, n_chains, n_variables) array of
draws, discards the first half as burn-in, transforms bounded variables
onto the real line, runs the Gelman-Rubin diagnostics on every variable
and collects the results into a pandas DataFrame with columns

    mean, sd, 2.5%, 25%, 50%, 75%, 97.5%[, Rhat[, Rupper], n.eff]

Rhat, Rupper and n.eff are only present for more than one chain.
"""

import logging
import warnings
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..diagnostics.convergence import (
    DiagnosticResult,
    GelmanRubinDiagnostic,
    QUANTILE_LABELS,
)
from ..errors import DomainViolation, InvalidInput, InvalidShape
from ..transforms.selector import (
    Transform,
    TransformHint,
    forward,
    inverse,
    resolve_transforms,
)

logger = logging.getLogger(__name__)


SUMMARY_COLUMNS = ('mean', 'sd') + QUANTILE_LABELS


@dataclass
class MonitorConfig:
    """Default settings for ConvergenceMonitor."""

    keep_all: bool = False  # False: discard first half as burn-in
    want_upper_bound: bool = False  # Report Rupper next to Rhat
    rhat_threshold: float = 1.1  # Warn for variables above this R̂
    min_samples: int = 100  # Warn for chains shorter than this

    def __post_init__(self):
        if self.rhat_threshold < 1:
            raise ValueError(f"rhat_threshold must be >= 1, got {self.rhat_threshold}")
        if self.min_samples < 2:
            raise ValueError(f"min_samples must be >= 2, got {self.min_samples}")


@dataclass
class VariableSummary:
    """Summary of one variable: raw-scale moments plus diagnostics."""
    label: Any
    transform: Transform
    mean: float
    sd: float
    diagnostics: DiagnosticResult

    def to_dict(self) -> Dict[str, float]:
        row = {'mean': self.mean, 'sd': self.sd}
        row.update(self.diagnostics.to_dict())
        return row


@dataclass
class _VariableTask:
    """Work item for one variable; module level so process pools can pickle it."""
    label: Any
    draws: np.ndarray  # (n_samples, n_chains), untransformed
    transform: Transform
    multi_chain: bool
    want_upper_bound: bool
    min_samples: int


def round_n_eff(n_eff: float, max_value: Optional[float] = None) -> float:
    """
    Round an effective sample size for display.

    Keeps two significant digits for values of 10 and above and rounds
    smaller values to integers; never exceeds max_value.
    """
    if not np.isfinite(n_eff) or n_eff <= 0:
        return n_eff
    digits = min(0, 1 - int(np.floor(np.log10(n_eff))))
    rounded = float(np.round(n_eff, digits))
    if max_value is not None:
        rounded = min(rounded, float(max_value))
    return rounded


def as_draws_array(draws) -> np.ndarray:
    """Return draws as an (n_iterations, n_chains, n_variables) float array."""
    try:
        a = np.asarray(draws, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"Draws must be numeric: {e}") from e

    if a.ndim == 2:
        a = a[:, :, np.newaxis]
    if a.ndim != 3:
        raise InvalidShape(
            f"Expected draws of shape (n_iterations, n_chains[, n_variables]), "
            f"got {a.ndim}-D array"
        )
    if a.shape[0] < 2:
        raise InvalidShape(f"Need at least 2 iterations, got {a.shape[0]}")
    if not np.all(np.isfinite(a)):
        raise InvalidInput("Draws contain NaN or infinite values")
    return a


def discard_burn_in(a: np.ndarray) -> np.ndarray:
    """Keep the second half of the iterations; odd counts drop one extra leading row."""
    half = a.shape[0] // 2
    return a[half:2 * half]


def _diagnose_variable(task: _VariableTask) -> DiagnosticResult:
    with np.errstate(divide='ignore', invalid='ignore'):
        z = forward(task.draws, task.transform)
    if not np.all(np.isfinite(z)):
        raise DomainViolation(task.label, task.transform.value)

    engine = GelmanRubinDiagnostic(
        want_upper_bound=task.want_upper_bound,
        min_samples=task.min_samples,
    )
    result = engine.compute(z, multi_chain=task.multi_chain)
    return result.with_quantiles(inverse(result.quantiles, task.transform))


class ConvergenceMonitor:
    """
    Summary statistics and convergence diagnostics for every variable
    of a multi-chain MCMC run.
    """

    def __init__(self, config: Optional[MonitorConfig] = None, pool=None):
        """
        Args:
            config: Default settings (MonitorConfig() if None)
            pool: Optional pool with a map method used to diagnose
                variables concurrently
        """
        self.config = config if config is not None else MonitorConfig()
        if pool is not None and not hasattr(pool, 'map'):
            raise ValueError("Pool object must have a map() method")
        self.pool = pool

    def _map(self, func, tasks):
        if self.pool is None:
            return list(map(func, tasks))
        return list(self.pool.map(func, tasks))

    def diagnose_all(
        self,
        draws,
        n_chains: Optional[int] = None,
        transforms: Optional[Sequence[TransformHint]] = None,
        keep_all: Optional[bool] = None,
        want_upper_bound: Optional[bool] = None,
        labels: Optional[Sequence[Any]] = None,
    ) -> List[VariableSummary]:
        """
        Diagnose every variable.

        Args:
            draws: Array of shape (n_iterations, n_chains, n_variables) or
                (n_iterations, n_chains)
            n_chains: Number of chains (default: size of the chain axis)
            transforms: One hint per variable ('', 'log', 'logit' or None),
                or None to pick log for all-positive variables
            keep_all: Keep the first half instead of discarding it
            want_upper_bound: Also compute Rupper
            labels: One label per variable

        Returns:
            List of VariableSummary in variable order
        """
        if keep_all is None:
            keep_all = self.config.keep_all
        if want_upper_bound is None:
            want_upper_bound = self.config.want_upper_bound

        a = as_draws_array(draws)
        _, n_axis_chains, n_vars = a.shape

        if n_chains is None:
            n_chains = n_axis_chains
        elif n_chains != n_axis_chains:
            raise InvalidShape(
                f"n_chains={n_chains} does not match chain axis of size {n_axis_chains}"
            )

        if labels is None:
            labels = list(range(n_vars))
        else:
            labels = list(labels)
            if len(labels) != n_vars:
                raise InvalidShape(f"Got {len(labels)} labels for {n_vars} variables")

        if not keep_all:
            a = discard_burn_in(a)
            if a.shape[0] < 2:
                raise InvalidShape(
                    f"Only {a.shape[0]} iteration(s) left after discarding burn-in"
                )
        logger.debug(
            "Diagnosing %d variable(s): %d iterations x %d chains (keep_all=%s)",
            n_vars, a.shape[0], n_chains, keep_all
        )

        resolved = resolve_transforms(a, transforms)
        tasks = [
            _VariableTask(
                label=labels[i],
                draws=a[:, :, i],
                transform=resolved[i],
                multi_chain=n_chains > 1,
                want_upper_bound=want_upper_bound,
                min_samples=self.config.min_samples,
            )
            for i in range(n_vars)
        ]
        results = self._map(_diagnose_variable, tasks)

        summaries = []
        for task, result in zip(tasks, results):
            logger.debug("Variable %r: transform=%r r_hat=%s", task.label,
                         task.transform.value, result.r_hat)
            summaries.append(VariableSummary(
                label=task.label,
                transform=task.transform,
                mean=float(np.mean(task.draws)),
                sd=float(np.std(task.draws, ddof=1)),
                diagnostics=result,
            ))
        return summaries

    def summarize(
        self,
        draws,
        n_chains: Optional[int] = None,
        transforms: Optional[Sequence[TransformHint]] = None,
        keep_all: Optional[bool] = None,
        want_upper_bound: Optional[bool] = None,
        labels: Optional[Sequence[Any]] = None,
    ) -> pd.DataFrame:
        """
        Build the summary table.

        Takes the same arguments as diagnose_all. Returns a DataFrame with
        one row per variable; n.eff is rounded for display.
        """
        if want_upper_bound is None:
            want_upper_bound = self.config.want_upper_bound

        a = as_draws_array(draws)
        if n_chains is None:
            n_chains = a.shape[1]

        summaries = self.diagnose_all(
            a,
            n_chains=n_chains,
            transforms=transforms,
            keep_all=keep_all,
            want_upper_bound=want_upper_bound,
            labels=labels,
        )

        columns = list(SUMMARY_COLUMNS)
        multi_chain = n_chains > 1
        if multi_chain:
            columns.append('Rhat')
            if want_upper_bound:
                columns.append('Rupper')
            columns.append('n.eff')

        rows = []
        for s in summaries:
            row = s.to_dict()
            if multi_chain:
                dec = s.diagnostics.variance
                row['n.eff'] = round_n_eff(row['n.eff'], dec.n_chains * dec.n_samples)
            rows.append(row)

        table = pd.DataFrame(rows, columns=columns, index=[s.label for s in summaries])

        if multi_chain:
            self._warn_not_converged(table)
        return table

    def _warn_not_converged(self, table: pd.DataFrame) -> None:
        threshold = self.config.rhat_threshold
        flagged = table.index[table['Rhat'] > threshold]
        if len(flagged) > 0:
            warnings.warn(
                f"R̂ > {threshold} for {len(flagged)} variable(s): "
                f"{', '.join(map(str, flagged[:10]))}",
                category=UserWarning
            )


def summarize(
    draws,
    n_chains: Optional[int] = None,
    transforms: Optional[Sequence[TransformHint]] = None,
    keep_all: bool = False,
    want_upper_bound: bool = False,
    labels: Optional[Sequence[Any]] = None,
    pool=None,
) -> pd.DataFrame:
    """
    Summary table with default monitor settings.

    Args:
        draws: Array of shape (n_iterations, n_chains, n_variables) or
            (n_iterations, n_chains)
        n_chains: Number of chains (default: size of the chain axis)
        transforms: Per-variable hints ('', 'log', 'logit'), or None for
            automatic selection
        keep_all: If False, discard the first half of the iterations
        want_upper_bound: Add the Rupper column
        labels: Row labels, one per variable
        pool: Optional pool with a map method

    Returns:
        DataFrame with one row per variable
    """
    monitor = ConvergenceMonitor(
        MonitorConfig(keep_all=keep_all, want_upper_bound=want_upper_bound),
        pool=pool,
    )
    return monitor.summarize(draws, n_chains=n_chains, transforms=transforms, labels=labels)
