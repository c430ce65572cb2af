"""Charts for portfolio and factor return series.

Missing periods are drawn as gaps.  Cumulative lines skip a period
without a defined return and resume from the last defined level.
"""

from __future__ import annotations

from typing import Optional, Sequence

import matplotlib.pyplot as plt
import pandas as pd
from matplotlib.axes import Axes

__all__ = ["cumulative_growth", "line_cumret", "plot_factor_comparison"]


def _axes(ax: Optional[Axes]) -> Axes:
    if ax is None:
        _, ax = plt.subplots()
    return ax


def cumulative_growth(returns: pd.Series) -> pd.Series:
    """Growth of $1; NaN where the period's return is missing."""
    return (1.0 + returns.astype(float)).cumprod()


def line_cumret(
    df: pd.DataFrame,
    date_col: str,
    ret_cols: Sequence[str],
    title: str = "Cumulative Return",
    ax: Optional[Axes] = None,
) -> Axes:
    ax = _axes(ax)
    for col in ret_cols:
        ax.plot(df[date_col], cumulative_growth(df[col]), label=col)
    ax.set_title(title)
    ax.set_xlabel("Date")
    ax.set_ylabel("Growth of $1")
    if len(ret_cols) > 1:
        ax.legend()
    ax.figure.tight_layout()
    return ax


def plot_factor_comparison(
    df: pd.DataFrame,
    date_col: str,
    original: str,
    replicated: str,
    title: Optional[str] = None,
    ax: Optional[Axes] = None,
) -> Axes:
    """Plot an original factor against its replication."""
    ax = _axes(ax)
    ax.plot(df[date_col], df[original].astype(float), label=f"Original {original}")
    ax.plot(
        df[date_col],
        df[replicated].astype(float),
        label=f"Replicated {replicated}",
        linestyle="--",
    )
    ax.set_title(title or f"{original} vs {replicated}")
    ax.set_xlabel("Date")
    ax.set_ylabel("Return")
    ax.legend()
    ax.figure.tight_layout()
    return ax
