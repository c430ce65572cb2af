"""
Table formatting for portfolio sorts and factor regressions.

This module provides helper functions to convert the outputs of
portfolio sorts, factor replications and performance regressions into
Markdown and LaTeX tables.  The emphasis is on producing clean tables
without external styling dependencies.

The functions return a dictionary with two keys: ``markdown`` and
``latex``.  The value associated with ``markdown`` is a string
containing a GitHub-flavoured Markdown table, while ``latex``
contains LaTeX code compatible with the ``tabular`` environment.

Usage
-----
>>> from factorsort.reporting.tables import portfolio_returns_table
>>> res = double_sort(...)
>>> tables = portfolio_returns_table(res['summary'], value_weighted=False)
>>> print(tables['markdown'])
>>> print(tables['latex'])

Notes
-----
Undefined values (``NaN``) are rendered as empty cells so that a
portfolio without a defined return is never shown as zero.  Floats are
rounded to three decimal places; users seeking greater control over
table appearance should post-process the returned strings.
"""

from __future__ import annotations

from typing import Dict, Optional, Sequence

import pandas as pd

__all__ = [
    "sort_summary_table",
    "portfolio_returns_table",
    "factor_table",
    "performance_table",
]


def _format_table(df: pd.DataFrame, digits: int = 3) -> Dict[str, str]:
    """Internal helper to format a DataFrame into Markdown and LaTeX.

    Floats are rounded to ``digits`` decimal places and missing values
    become empty strings.  The index and column names are included in
    the output.
    """
    fmt_df = df.copy()
    for col in fmt_df.columns:
        if pd.api.types.is_float_dtype(fmt_df[col]):
            fmt_df[col] = fmt_df[col].map(
                lambda x: f"{x:.{digits}f}" if pd.notna(x) else ""
            )
        elif pd.api.types.is_object_dtype(fmt_df[col]):
            fmt_df[col] = fmt_df[col].map(lambda x: "" if _is_missing(x) else x)
    # keep the fixed-digit strings as formatted
    md = fmt_df.to_markdown(index=True, disable_numparse=True)
    latex = fmt_df.to_latex(index=True, escape=False)
    return {"markdown": md, "latex": latex}


def _is_missing(x: object) -> bool:
    try:
        return bool(pd.isna(x))
    except (TypeError, ValueError):
        return False


def sort_summary_table(
    summary: pd.DataFrame, *, percent: bool = False
) -> Dict[str, str]:
    """
    Format the summary of a univariate sort.

    Parameters
    ----------
    summary : DataFrame
        Output of :func:`factorsort.asset_pricing.univariate_sort` keyed
        by ``'summary'``: columns ``bin``, ``ret_ew`` and ``ret_vw`` with
        a final ``L-S`` row.
    percent : bool, default False
        Multiply returns by 100.

    Returns
    -------
    dict
        Dictionary with keys ``markdown`` and ``latex``; one row per
        portfolio.
    """
    for col in ("bin", "ret_ew", "ret_vw"):
        if col not in summary.columns:
            raise KeyError(f"summary must contain column '{col}'")
    df = summary.set_index("bin")[["ret_ew", "ret_vw"]].astype(float)
    if percent:
        df = df * 100.0
    return _format_table(df)


def portfolio_returns_table(
    summary: pd.DataFrame,
    *,
    value_weighted: bool = False,
) -> Dict[str, str]:
    """
    Generate a 2D portfolio return table from a double sort summary.

    Parameters
    ----------
    summary : DataFrame
        Output of :func:`factorsort.asset_pricing.double_sort` keyed by
        ``'summary'``.  Must contain columns ``bin1``, ``bin2`` and
        either ``ret_ew`` or ``ret_vw`` depending on the desired
        weighting.
    value_weighted : bool, default False
        If True, use the value-weighted returns (``ret_vw``); if
        False, use equal-weighted returns (``ret_ew``).

    Returns
    -------
    dict
        Dictionary with keys ``markdown`` and ``latex`` containing
        formatted tables.  The index corresponds to ``bin1`` and
        columns correspond to ``bin2``.  Combinations never observed
        are left empty.
    """
    col = "ret_vw" if value_weighted else "ret_ew"
    if col not in summary.columns:
        raise KeyError(f"summary must contain column '{col}'")
    pivot = summary.pivot(index="bin1", columns="bin2", values=col)
    pivot = pivot.sort_index(axis=0).sort_index(axis=1).astype(float)
    pivot.index.name = "bin1"
    pivot.columns.name = "bin2"
    return _format_table(pivot)


def factor_table(
    factors: pd.DataFrame,
    columns: Optional[Sequence[str]] = None,
    *,
    date_col: str = "date",
    average: bool = True,
) -> Dict[str, str]:
    """
    Create a table of factor or high-low return series.

    Parameters
    ----------
    factors : DataFrame
        Series such as the output of
        :func:`factorsort.asset_pricing.size_value_factors` or the
        ``hl_series`` of a sort.
    columns : sequence of str, optional
        Columns to report; defaults to every column except ``date_col``.
    date_col : str, default "date"
        Period column.
    average : bool, default True
        If True, report the sample mean and the number of defined
        periods of each series.  If False, return the time series with
        missing periods left blank.

    Returns
    -------
    dict
        Dictionary with keys ``markdown`` and ``latex``.
    """
    if columns is None:
        columns = [c for c in factors.columns if c != date_col]
    missing = [c for c in columns if c not in factors.columns]
    if missing:
        raise KeyError(f"factors is missing columns: {missing}")
    if average:
        df = pd.DataFrame(
            {
                "mean": factors[list(columns)].mean(),
                "n_obs": factors[list(columns)].notna().sum(),
            }
        )
    else:
        df = factors[[date_col, *columns]].set_index(date_col)
    return _format_table(df)


def performance_table(results: pd.DataFrame) -> Dict[str, str]:
    """
    Format regression output (mean tests, CAPM or replication checks).

    Parameters
    ----------
    results : DataFrame
        One row per series, e.g. from
        :func:`factorsort.asset_pricing.performance_summary` or from
        :func:`factorsort.asset_pricing.replication_summary`.

    Notes
    -----
    ``n_obs`` is shown as an integer; all other statistics are rounded
    to three decimal places.
    """
    df = results.copy()
    if "n_obs" in df.columns:
        df["n_obs"] = df["n_obs"].astype("Int64")
    return _format_table(df)
