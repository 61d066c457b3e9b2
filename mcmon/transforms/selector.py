"""
Monotone reparametrizations applied before convergence diagnostics.

Bounded parameters are mapped to the real line so that the
between/within variance decomposition behaves like it does for
near-normal quantities:

- log: strictly positive parameters (scales, rates, variances)
- logit: parameters restricted to (0, 1) (probabilities, fractions)

Only quantiles are mapped back to the original scale; scale-reduction
and effective sample size are reported on the transformed scale.
"""

from enum import Enum
from typing import List, Optional, Sequence, Union

import numpy as np
from scipy.special import expit, logit

from ..errors import InvalidTransform


class Transform(Enum):
    """Transform applied to one variable's draws."""
    IDENTITY = ""
    LOG = "log"
    LOGIT = "logit"


TransformHint = Union[None, str, Transform]


def parse_transform(hint: Union[str, Transform]) -> Transform:
    """Turn a hint ('', 'log', 'logit' or a Transform) into a Transform."""
    if isinstance(hint, Transform):
        return hint
    try:
        return Transform(hint)
    except ValueError:
        raise InvalidTransform(
            f"Unknown transform {hint!r}; expected one of '', 'log', 'logit'"
        ) from None


def select_transform(draws: np.ndarray, hint: TransformHint = None) -> Transform:
    """
    Choose the transform for one variable.

    A hint is used verbatim, without checking it against the data.
    Without a hint, strictly positive draws get LOG and everything else
    IDENTITY. LOGIT is never picked automatically: positivity says
    nothing about an upper bound.
    """
    if hint is not None:
        return parse_transform(hint)

    if np.all(np.asarray(draws) > 0):
        return Transform.LOG
    return Transform.IDENTITY


def resolve_transforms(
    draws: np.ndarray,
    hints: Optional[Sequence[TransformHint]] = None
) -> List[Transform]:
    """
    Resolve one transform per variable of an (n, m, k) array.

    Args:
        draws: Array of shape (n_iterations, n_chains, n_variables)
        hints: None to auto-select every variable, or one hint per
            variable (None entries are auto-selected)

    Returns:
        List of k transforms, in variable order
    """
    n_vars = draws.shape[2]

    if hints is None:
        hints = [None] * n_vars
    elif isinstance(hints, (str, Transform)):
        raise InvalidTransform(
            "Transform hints must be a sequence with one entry per variable"
        )
    elif len(hints) != n_vars:
        raise InvalidTransform(
            f"Got {len(hints)} transform hints for {n_vars} variables"
        )

    return [select_transform(draws[:, :, i], hint) for i, hint in enumerate(hints)]


def forward(values: np.ndarray, transform: Transform) -> np.ndarray:
    """Map draws onto the unconstrained scale."""
    values = np.asarray(values, dtype=float)
    if transform is Transform.LOG:
        return np.log(values)
    if transform is Transform.LOGIT:
        # log(x / (1 - x))
        return logit(values)
    return values


def inverse(values: np.ndarray, transform: Transform) -> np.ndarray:
    """Map values from the unconstrained scale back to the original one."""
    values = np.asarray(values, dtype=float)
    if transform is Transform.LOG:
        return np.exp(values)
    if transform is Transform.LOGIT:
        return expit(values)
    return values
