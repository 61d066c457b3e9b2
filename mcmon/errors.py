"""
Error kinds raised while summarizing MCMC output.

All of them derive from ValueError, so callers that already guard
diagnostics with ``except ValueError`` keep working.
"""

from typing import Optional


class MonitorError(ValueError):
    """Base class for every error raised by mcmon."""


class InvalidInput(MonitorError):
    """Draws handed to the diagnostic engine cannot be diagnosed."""


class InvalidShape(InvalidInput):
    """Array rank, iteration count or chain axis is unusable."""


class InvalidTransform(MonitorError):
    """A transform hint is not one of '', 'log' or 'logit'."""


class DomainViolation(InvalidInput):
    """A forward transform produced non-finite values."""

    def __init__(self, label, transform: str, message: Optional[str] = None):
        self.label = label
        self.transform = transform
        if message is None:
            message = (
                f"'{transform}' transform of variable {label!r} produced "
                f"non-finite values"
            )
        super().__init__(message)
