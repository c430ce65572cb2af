"""Reporting utilities for sort and factor tables.

This subpackage contains simple functions to transform the outputs of
sorting, factor construction and regression routines into Markdown and
LaTeX tables.  The design emphasises minimal dependencies and
journal-style formatting.

Example
-------
>>> from factorsort.reporting.tables import sort_summary_table
>>> table = sort_summary_table(res["summary"])
>>> print(table["markdown"])
"""

from .tables import (
    factor_table,
    performance_table,
    portfolio_returns_table,
    sort_summary_table,
)

__all__ = [
    "sort_summary_table",
    "portfolio_returns_table",
    "factor_table",
    "performance_table",
]
