"""
Two-dimensional (double) portfolio sorts.

Double sorts form portfolios on two characteristics at once.  In an
independent sort each characteristic gets its own breakpoints from the
reference universe of the period and the portfolios are the cross
product of the two one-dimensional sorts.  In a conditional (dependent)
sort the breakpoints of the second characteristic are computed within
each portfolio of the first, which guarantees populated cells when the
characteristics are correlated.

High-minus-low spreads are reported along both dimensions: along the
first, the top minus bottom ``bin1`` portfolio averaged over ``bin2``
portfolios, and symmetrically along the second.

Examples
--------
>>> from factorsort.asset_pricing.double_sort import double_sort, DoubleSortConfig
>>> res = double_sort(
...     panel,
...     "size",
...     "bm",
...     reference=on_exchange("NYSE"),
...     config=DoubleSortConfig(percentiles_1=(0, 0.5, 1), n_bins_2=3),
... )
>>> res["summary"].head()
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import pandas as pd

from .breakpoints import (
    BreakpointSpec,
    Reference,
    Selector,
    assign_double,
    percentiles,
)
from .factors import combine_factor
from .univariate import _portfolio_returns

__all__ = ["DoubleSortConfig", "double_sort"]


@dataclass(frozen=True)
class DoubleSortConfig:
    """
    Configuration for double portfolio sorts.

    Parameters
    ----------
    n_bins_1 : int, default 3
        Number of portfolios along the first characteristic (rows).
    n_bins_2 : int, default 3
        Number of portfolios along the second characteristic (columns).
    percentiles_1, percentiles_2 : tuple of float, optional
        Explicit breakpoint probabilities overriding ``n_bins_1`` /
        ``n_bins_2``.
    conditional : bool, default False
        If True, compute breakpoints for the second characteristic
        within each portfolio of the first.  If False, the two
        characteristics are sorted independently.
    min_obs : int, default 1
        Minimum number of breakpoint observations per period (and per
        first-dimension portfolio in conditional sorts).
    on_degenerate : {"missing", "fallback", "raise"}, default "missing"
        Handling of groups whose breakpoints cannot be formed.
    """

    n_bins_1: int = 3
    n_bins_2: int = 3
    percentiles_1: Optional[Tuple[float, ...]] = None
    percentiles_2: Optional[Tuple[float, ...]] = None
    conditional: bool = False
    min_obs: int = 1
    on_degenerate: str = "missing"

    @property
    def breakpoints(self) -> Tuple[BreakpointSpec, BreakpointSpec]:
        first = self.percentiles_1 if self.percentiles_1 is not None else self.n_bins_1
        second = (
            self.percentiles_2 if self.percentiles_2 is not None else self.n_bins_2
        )
        return first, second


def double_sort(
    panel: pd.DataFrame,
    sort_variable_1: Selector,
    sort_variable_2: Selector,
    *,
    config: DoubleSortConfig = DoubleSortConfig(),
    period_col: str = "date",
    outcome: str = "ret_excess",
    weight: Optional[str] = "mktcap_lag",
    reference: Reference = None,
) -> dict[str, pd.DataFrame]:
    """
    Perform double portfolio sorts on two characteristics.

    Parameters
    ----------
    panel : DataFrame
        Long panel with ``period_col``, ``outcome``, ``weight`` and both
        sorting variables.
    sort_variable_1, sort_variable_2 : str or callable
        Sorting variables (column names or accessors).
    config : DoubleSortConfig, optional
        Sort settings.
    period_col, outcome, weight : str
        Column names; ``weight=None`` leaves ``ret_vw`` as NaN.
    reference : str or callable, optional
        Breakpoint universe for both characteristics.

    Returns
    -------
    dict
        ``time_series``: columns ``period_col``, ``bin1``, ``bin2``,
        ``ret_ew``, ``ret_vw`` and ``n``.
        ``summary``: mean ``ret_ew`` and ``ret_vw`` by (bin1, bin2).
        ``hl_dim1`` and ``hl_dim2``: columns ``period_col``, ``hl_ew``,
        ``hl_vw``; one row per period of ``panel``.
    """
    required = {period_col, outcome} | ({weight} if weight is not None else set())
    missing = required - set(panel.columns)
    if missing:
        raise KeyError(f"panel is missing required columns: {sorted(missing)}")

    spec_1, spec_2 = config.breakpoints
    labels = assign_double(
        panel,
        (sort_variable_1, sort_variable_2),
        (spec_1, spec_2),
        period_col=period_col,
        reference=reference,
        on_degenerate=config.on_degenerate,
        min_obs=config.min_obs,
        conditional=config.conditional,
        names=("bin1", "bin2"),
    )
    cols = [period_col, outcome] + ([weight] if weight is not None else [])
    data = pd.concat([panel[cols], labels], axis=1)
    ts = _portfolio_returns(
        data, outcome, weight, period_col=period_col, bucket_cols=["bin1", "bin2"]
    )

    k1 = percentiles(spec_1).size - 1
    k2 = percentiles(spec_2).size - 1
    legs = {
        "hl_dim1": (
            [(k1, j) for j in range(1, k2 + 1)],
            [(1, j) for j in range(1, k2 + 1)],
        ),
        "hl_dim2": (
            [(i, k2) for i in range(1, k1 + 1)],
            [(i, 1) for i in range(1, k1 + 1)],
        ),
    }
    periods = panel[period_col]
    spreads: dict[str, pd.DataFrame] = {}
    for key, (long_leg, short_leg) in legs.items():
        spreads[key] = pd.concat(
            [
                combine_factor(
                    ts,
                    long_leg,
                    short_leg,
                    period_col=period_col,
                    bucket_cols=["bin1", "bin2"],
                    value_col=col,
                    periods=periods,
                    name=hl_col,
                )
                for col, hl_col in (("ret_ew", "hl_ew"), ("ret_vw", "hl_vw"))
            ],
            axis=1,
        ).reset_index()

    summary = ts.groupby(["bin1", "bin2"], as_index=False)[["ret_ew", "ret_vw"]].mean()
    return {"time_series": ts, "summary": summary, **spreads}
