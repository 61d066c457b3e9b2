"""
Variable transforms used to stabilize the variance decomposition for
bounded parameters.
"""

from .selector import (
    Transform,
    parse_transform,
    select_transform,
    resolve_transforms,
    forward,
    inverse,
)

__all__ = [
    'Transform',
    'parse_transform',
    'select_transform',
    'resolve_transforms',
    'forward',
    'inverse',
]
