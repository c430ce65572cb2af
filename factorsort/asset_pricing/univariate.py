"""
Univariate portfolio sorts and high-minus-low (L-S) series.

Given a panel of stock returns and a cross-sectional sorting variable,
stocks are ranked into portfolios each period using breakpoints from
either the full universe or a reference subset (e.g. NYSE stocks).
Equal-weighted (EW) and value-weighted (VW) portfolio returns are
computed per period, averaged over time, and the top portfolio minus
the bottom portfolio forms the long-short series.

The function :func:`univariate_sort` chains the three kernel steps:

1. :func:`~factorsort.asset_pricing.breakpoints.assign_portfolios`
2. :func:`~factorsort.asset_pricing.aggregate.aggregate_portfolios`
3. :func:`~factorsort.asset_pricing.factors.combine_factor`

Periods whose breakpoints are degenerate contribute no portfolio
returns and show up as ``NaN`` in the L-S series.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd

from .aggregate import aggregate_portfolios
from .breakpoints import (
    BreakpointSpec,
    Reference,
    Selector,
    assign_portfolios,
    percentiles,
)
from .factors import combine_factor

__all__ = ["SortConfig", "univariate_sort", "LS_LABEL"]

LS_LABEL = "L-S"


@dataclass(frozen=True)
class SortConfig:
    """
    Configuration for univariate sorts.

    Parameters
    ----------
    n_bins : int, default 5
        Number of portfolios to form each period (10 deciles, 5 quintiles).
    percentiles : tuple of float, optional
        Explicit breakpoint probabilities, e.g. ``(0, 0.3, 0.7, 1)``.
        Overrides ``n_bins`` when given.
    min_obs : int, default 1
        Minimum number of observations in the breakpoint universe for a
        period to be sorted.
    on_degenerate : {"missing", "fallback", "raise"}, default "missing"
        Handling of periods whose breakpoints cannot be formed.
    """

    n_bins: int = 5
    percentiles: Optional[Tuple[float, ...]] = None
    min_obs: int = 1
    on_degenerate: str = "missing"

    @property
    def breakpoints(self) -> BreakpointSpec:
        return self.percentiles if self.percentiles is not None else self.n_bins

    @property
    def k(self) -> int:
        return percentiles(self.breakpoints).size - 1


def _portfolio_returns(
    data: pd.DataFrame,
    outcome: str,
    weight: Optional[str],
    *,
    period_col: str,
    bucket_cols: list[str],
) -> pd.DataFrame:
    """EW and VW returns per (period, portfolio) side by side."""
    keys = [period_col] + bucket_cols
    ew = aggregate_portfolios(
        data,
        outcome,
        None,
        period_col=period_col,
        bucket_cols=bucket_cols,
        value_col="ret_ew",
    )
    if weight is None:
        ew["ret_vw"] = np.nan
        return ew[keys + ["ret_ew", "ret_vw", "n"]]
    vw = aggregate_portfolios(
        data,
        outcome,
        weight,
        period_col=period_col,
        bucket_cols=bucket_cols,
        value_col="ret_vw",
    )
    out = ew.merge(vw[keys + ["ret_vw"]], on=keys, how="left")
    return out[keys + ["ret_ew", "ret_vw", "n"]]


def univariate_sort(
    panel: pd.DataFrame,
    sort_variable: Selector,
    *,
    config: SortConfig = SortConfig(),
    period_col: str = "date",
    outcome: str = "ret_excess",
    weight: Optional[str] = "mktcap_lag",
    reference: Reference = None,
) -> Dict[str, pd.DataFrame]:
    """
    Perform univariate portfolio sorts.

    Parameters
    ----------
    panel : DataFrame
        Long panel with ``period_col``, ``outcome``, ``weight`` and the
        sorting variable.
    sort_variable : str or callable
        Column name of the sorting variable, or a function of ``panel``
        returning it.
    config : SortConfig, optional
        Sort settings (portfolios, percentiles, minimum observations).
    period_col : str, default "date"
        Period column.
    outcome : str, default "ret_excess"
        Return column.
    weight : str or None, default "mktcap_lag"
        Weight for value-weighted returns.  If None, ``ret_vw`` is NaN.
    reference : str or callable, optional
        Breakpoint universe (boolean column or predicate), e.g.
        :func:`~factorsort.asset_pricing.breakpoints.on_exchange`.

    Returns
    -------
    dict with keys:
      - ``time_series``: columns ``period_col``, ``bin``, ``ret_ew``,
        ``ret_vw``, ``n``
      - ``summary``: time-series mean of ``ret_ew``/``ret_vw`` by bin plus
        one ``L-S`` row
      - ``hl_series``: columns ``period_col``, ``hl_ew``, ``hl_vw`` with one
        row per period of ``panel``; NaN where the spread is undefined
    """
    required = {period_col, outcome} | ({weight} if weight is not None else set())
    missing = required - set(panel.columns)
    if missing:
        raise KeyError(f"panel is missing required columns: {sorted(missing)}")

    bins = assign_portfolios(
        panel,
        sort_variable,
        config.breakpoints,
        period_col=period_col,
        reference=reference,
        on_degenerate=config.on_degenerate,
        min_obs=config.min_obs,
        name="bin",
    )
    cols = [period_col, outcome] + ([weight] if weight is not None else [])
    data = panel[cols].assign(bin=bins)
    ts = _portfolio_returns(
        data, outcome, weight, period_col=period_col, bucket_cols=["bin"]
    )

    k = config.k
    periods = panel[period_col]
    hl = pd.concat(
        [
            combine_factor(
                ts,
                [k],
                [1],
                period_col=period_col,
                bucket_cols="bin",
                value_col=col,
                periods=periods,
                name=hl_col,
            )
            for col, hl_col in (("ret_ew", "hl_ew"), ("ret_vw", "hl_vw"))
        ],
        axis=1,
    )

    summ = ts.groupby("bin", as_index=False)[["ret_ew", "ret_vw"]].mean()
    if k >= 2:
        ls = pd.DataFrame(
            {
                "bin": [LS_LABEL],
                "ret_ew": [hl["hl_ew"].mean()],
                "ret_vw": [hl["hl_vw"].mean()],
            }
        )
        summ = pd.concat([summ.astype({"bin": object}), ls], ignore_index=True)
    return {"time_series": ts, "summary": summ, "hl_series": hl.reset_index()}

