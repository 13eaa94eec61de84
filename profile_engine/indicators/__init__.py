"""Derived series used by the profile engine."""

from .cumulative_delta import CumulativeDelta

__all__ = [
    "CumulativeDelta",
]
