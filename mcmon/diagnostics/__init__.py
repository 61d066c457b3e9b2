"""
Convergence diagnostics for multi-chain MCMC output.

This module computes per-variable quantiles, the Gelman-Rubin potential
scale reduction factor with its optional upper bound, and an effective
sample size.
"""

from .convergence import (
    GelmanRubinDiagnostic,
    DiagnosticResult,
    ScaleReduction,
    VarianceDecomposition,
    QUANTILE_PROBS,
    QUANTILE_LABELS,
    diagnose,
    potential_scale_reduction,
    effective_sample_size,
)

__all__ = [
    'GelmanRubinDiagnostic',
    'DiagnosticResult',
    'ScaleReduction',
    'VarianceDecomposition',
    'QUANTILE_PROBS',
    'QUANTILE_LABELS',
    'diagnose',
    'potential_scale_reduction',
    'effective_sample_size',
]
