"""
factorsort
==========

Portfolio sorts and long-short factors for empirical asset pricing.

The package turns the portfolio-sorting recipes of empirical finance
(univariate sorts on a characteristic, 2x3 size/book-to-market sorts,
SMB and HML replication) into small, testable functions:

* Functions are pure: inputs are never mutated and nothing is cached
  between calls.
* Data flows through tidy pandas ``DataFrame`` objects, one row per
  stock and period.
* Every period is processed independently.  A period that cannot be
  sorted, a portfolio without a defined return, or a factor leg with a
  missing portfolio shows up as an explicit missing value (``<NA>`` or
  ``NaN``), never as zero.

Subpackages and modules
-----------------------

``asset_pricing``
    Breakpoints, portfolio assignment, weighted portfolio returns,
    long-short factors, univariate and double sorts, and performance
    regressions.

``reporting``
    Markdown and LaTeX tables of sort summaries, factor series and
    regression results.

``io``
    Loaders for panels and reference factors (Parquet, SQLite or
    in-memory frames).

``errors``
    The per-period conditions :class:`DegenerateBreakpoints`,
    :class:`UndefinedAggregate` and :class:`MissingBucketForFactor`.

Plotting helpers live in ``factorsort.vis`` and the end-to-end driver in
``factorsort.pipeline``; neither is imported by default so that
matplotlib is only loaded when needed.
"""

from . import asset_pricing, reporting  # noqa: F401  # re-export subpackages
from .errors import (  # noqa: F401
    DegenerateBreakpoints,
    FactorSortError,
    InsufficientObservations,
    MissingBucketForFactor,
    UndefinedAggregate,
)

__version__ = "0.1.0"

__all__ = [
    "asset_pricing",
    "reporting",
    "FactorSortError",
    "DegenerateBreakpoints",
    "UndefinedAggregate",
    "MissingBucketForFactor",
    "InsufficientObservations",
]
