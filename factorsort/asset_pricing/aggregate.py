r"""
Weighted portfolio returns.

Once observations carry portfolio labels, the return of a portfolio in
a period is the weight-adjusted mean of its members' outcomes,

.. math::

    r_{p,t} = \frac{\sum_i w_{i,t} \, r_{i,t}}{\sum_i w_{i,t}},

computed over members with both an outcome and a weight.  Value
weighting uses lagged market capitalisation as ``w``; equal weighting
sets ``w = 1``.

A portfolio whose members carry no valid data, or whose weights sum to
zero or less, has no defined return.  :func:`weighted_mean` raises
:class:`~factorsort.errors.UndefinedAggregate` in that case and
:func:`aggregate_portfolios` records ``NaN``; the value is never
replaced by zero.
"""

from __future__ import annotations

from typing import Any, Hashable, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..errors import UndefinedAggregate
from ..util.arrays import ArrayLike, as_float
from ..util.logging import get_logger

__all__ = ["weighted_mean", "aggregate_portfolios"]

log = get_logger("factorsort.aggregate")


def _valid(y: np.ndarray, w: np.ndarray) -> np.ndarray:
    return np.isfinite(y) & np.isfinite(w)


def weighted_mean(
    outcome: ArrayLike,
    weight: Optional[ArrayLike] = None,
    *,
    period: Optional[Hashable] = None,
    bucket: Any = None,
) -> float:
    """
    Weighted mean of ``outcome`` for a single group.

    Parameters
    ----------
    outcome : array-like
        Outcome values (e.g. excess returns).
    weight : array-like, optional
        Non-negative weights of the same length.  If None, all rows get
        weight one (equal weighting).
    period, bucket : optional
        Group labels attached to the error for diagnostics.

    Returns
    -------
    float

    Raises
    ------
    UndefinedAggregate
        If no row has both an outcome and a weight, or the total weight
        of those rows is not strictly positive.
    """
    y = as_float(outcome)
    w = np.ones_like(y) if weight is None else as_float(weight)
    if w.shape != y.shape:
        raise ValueError("outcome and weight must have the same length")
    ok = _valid(y, w)
    if not ok.any():
        raise UndefinedAggregate(
            "no rows with both outcome and weight", period=period, bucket=bucket
        )
    total = float(w[ok].sum())
    if not total > 0:
        raise UndefinedAggregate(
            f"total weight {total:g} is not positive", period=period, bucket=bucket
        )
    return float(np.dot(w[ok], y[ok]) / total)


def aggregate_portfolios(
    data: pd.DataFrame,
    outcome: str = "ret_excess",
    weight: Optional[str] = "mktcap_lag",
    *,
    period_col: str = "date",
    bucket_cols: Union[str, Sequence[str]] = "portfolio",
    value_col: str = "ret",
    on_undefined: str = "missing",
) -> pd.DataFrame:
    """
    Weighted mean outcome for every (period, portfolio) group.

    Parameters
    ----------
    data : DataFrame
        Observations with a period column, one or more portfolio columns,
        the outcome and (optionally) the weight.
    outcome : str, default "ret_excess"
        Column to average.
    weight : str or None, default "mktcap_lag"
        Weight column.  None gives equal-weighted means.
    period_col : str, default "date"
        Period column.
    bucket_cols : str or sequence of str, default "portfolio"
        Portfolio label column(s).  Rows with any missing label are
        excluded.
    value_col : str, default "ret"
        Name of the output column holding the means.
    on_undefined : {"missing", "raise"}, default "missing"
        ``"missing"`` reports undefined groups as ``NaN``; ``"raise"``
        propagates :class:`UndefinedAggregate`.

    Returns
    -------
    DataFrame
        Columns ``period_col``, the portfolio columns, ``value_col`` and
        ``n`` (number of contributing rows), sorted by period and
        portfolio.
    """
    if on_undefined not in ("missing", "raise"):
        raise ValueError(
            f"on_undefined must be 'missing' or 'raise', got {on_undefined!r}"
        )
    buckets = [bucket_cols] if isinstance(bucket_cols, str) else list(bucket_cols)
    keys = [period_col] + buckets
    required = keys + [outcome] + ([weight] if weight is not None else [])
    missing = [c for c in required if c not in data.columns]
    if missing:
        raise KeyError(f"data is missing required columns: {missing}")

    labelled = data.dropna(subset=keys)
    rows: list[dict[str, Any]] = []
    n_undefined = 0
    for key, grp in labelled.groupby(keys, sort=True):
        key = key if isinstance(key, tuple) else (key,)
        period = key[0]
        bucket = key[1] if len(key) == 2 else key[1:]
        y = grp[outcome]
        w = grp[weight] if weight is not None else None
        try:
            value = weighted_mean(y, w, period=period, bucket=bucket)
        except UndefinedAggregate as exc:
            if on_undefined == "raise":
                raise
            log.debug("%s", exc)
            n_undefined += 1
            value = np.nan
        y_arr = as_float(y)
        w_arr = np.ones_like(y_arr) if w is None else as_float(w)
        rows.append(
            {
                **dict(zip(keys, key)),
                value_col: value,
                "n": int(_valid(y_arr, w_arr).sum()),
            }
        )
    if n_undefined:
        log.warning(
            "%d of %d portfolio groups have no defined %s; reported as NaN",
            n_undefined,
            len(rows),
            value_col,
        )

    out = pd.DataFrame(rows, columns=keys + [value_col, "n"])
    for col in buckets:
        if pd.api.types.is_integer_dtype(data[col]):
            out[col] = out[col].astype("Int64")
    out[value_col] = out[value_col].astype(float)
    out["n"] = out["n"].astype("int64")
    return out
