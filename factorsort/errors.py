"""
Error conditions raised by the sorting kernel.

Each condition is local to a single period or (period, bucket) group.
The single-group functions raise them; the panel-level functions catch
them per group and record an explicit missing value instead, unless the
caller asks for fail-fast behaviour.  Regressions that see too few
aligned observations raise :class:`InsufficientObservations`; summary
functions report such a row as missing statistics.
"""

from __future__ import annotations

from typing import Any, Hashable, Optional

__all__ = [
    "FactorSortError",
    "DegenerateBreakpoints",
    "UndefinedAggregate",
    "MissingBucketForFactor",
    "InsufficientObservations",
]


class FactorSortError(ValueError):
    """Base class for data-quality conditions in a single period."""

    def __init__(self, message: str, *, period: Optional[Hashable] = None) -> None:
        self.period = period
        if period is not None:
            message = f"{message} (period={period!r})"
        super().__init__(message)


class DegenerateBreakpoints(FactorSortError):
    """Too few distinct values to form the requested breakpoints."""


class UndefinedAggregate(FactorSortError):
    """A group has no valid rows or a non-positive total weight."""

    def __init__(
        self,
        message: str,
        *,
        period: Optional[Hashable] = None,
        bucket: Any = None,
    ) -> None:
        self.bucket = bucket
        if bucket is not None:
            message = f"{message} (bucket={bucket!r})"
        super().__init__(message, period=period)


class MissingBucketForFactor(FactorSortError):
    """A bucket required by a long or short leg is absent."""

    def __init__(
        self,
        message: str,
        *,
        period: Optional[Hashable] = None,
        bucket: Any = None,
    ) -> None:
        self.bucket = bucket
        if bucket is not None:
            message = f"{message} (bucket={bucket!r})"
        super().__init__(message, period=period)


class InsufficientObservations(FactorSortError):
    """Too few aligned observations to estimate a regression."""

    def __init__(self, message: str, *, n_obs: int = 0) -> None:
        self.n_obs = n_obs
        super().__init__(f"{message} (n_obs={n_obs})")
