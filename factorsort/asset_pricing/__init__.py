"""
Portfolio sorts, long-short factors and performance regressions.

This subpackage exposes the sorting kernel and the drivers built on it:

* Breakpoints and portfolio assignment (:func:`assign_portfolios`,
  :func:`assign_double`), with reference-universe breakpoints such as
  NYSE stocks via :func:`on_exchange`.
* Weighted portfolio returns (:func:`aggregate_portfolios`).
* Long-short combinations (:func:`combine_factor`) and the Fama-French
  size and value factors (:func:`size_value_factors`).
* Univariate and double sorts (:func:`univariate_sort`,
  :func:`double_sort`) configured by :class:`SortConfig` and
  :class:`DoubleSortConfig`.
* Mean tests, CAPM regressions and factor replication checks.

Importing this module brings the most commonly used routines into the
``factorsort.asset_pricing`` namespace.
"""

from .breakpoints import (  # noqa: F401
    assign_buckets,
    assign_double,
    assign_portfolios,
    compute_breakpoints,
    on_exchange,
    percentiles,
)
from .aggregate import aggregate_portfolios, weighted_mean  # noqa: F401
from .factors import (  # noqa: F401
    FactorConfig,
    annual_sorting_date,
    combine_factor,
    long_short,
    size_value_factors,
)
from .univariate import SortConfig, univariate_sort  # noqa: F401
from .double_sort import DoubleSortConfig, double_sort  # noqa: F401
from .performance import (  # noqa: F401
    capm_regression,
    mean_test,
    performance_summary,
    replication_check,
    replication_summary,
)

__all__ = [
    "assign_buckets",
    "assign_double",
    "assign_portfolios",
    "compute_breakpoints",
    "on_exchange",
    "percentiles",
    "aggregate_portfolios",
    "weighted_mean",
    "FactorConfig",
    "annual_sorting_date",
    "combine_factor",
    "long_short",
    "size_value_factors",
    "SortConfig",
    "univariate_sort",
    "DoubleSortConfig",
    "double_sort",
    "capm_regression",
    "mean_test",
    "performance_summary",
    "replication_check",
    "replication_summary",
]
