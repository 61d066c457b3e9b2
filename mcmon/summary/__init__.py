"""
Summary tables for completed multi-chain MCMC runs.
"""

from .monitor import (
    ConvergenceMonitor,
    MonitorConfig,
    VariableSummary,
    SUMMARY_COLUMNS,
    as_draws_array,
    discard_burn_in,
    round_n_eff,
    summarize,
)

__all__ = [
    'ConvergenceMonitor',
    'MonitorConfig',
    'VariableSummary',
    'SUMMARY_COLUMNS',
    'as_draws_array',
    'discard_burn_in',
    'round_n_eff',
    'summarize',
]
