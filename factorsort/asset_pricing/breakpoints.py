"""
Per-period breakpoints and portfolio assignment.

Portfolio sorts proceed period by period: within each cross-section
the breakpoints of a sorting variable are computed as quantiles, often
from a reference subset only (NYSE stocks in the Fama-French
convention), and every observation of the period is then mapped to an
integer portfolio by interval lookup.

Breakpoints are requested either as a number of portfolios ``n``
(equally spaced probabilities ``0, 1/n, ..., 1``) or as an explicit
ascending sequence of probabilities such as ``[0, 0.3, 0.7, 1]``.
Quantiles use linear interpolation, matching pandas'
``Series.quantile(interpolation="linear")``.

Assignment rule
---------------
Given breakpoints ``b_0 < b_1 < ... < b_K`` a value ``v`` goes to
portfolio ``j`` with ``b_{j-1} < v <= b_j``.  Ties go to the lower
portfolio and values at or beyond the outer breakpoints are clamped
into portfolios ``1`` and ``K``, so every non-missing value in a period
receives a portfolio in ``1..K``.  Missing values receive ``<NA>``.

Examples
--------
>>> from factorsort.asset_pricing.breakpoints import assign_portfolios
>>> panel["portfolio_bm"] = assign_portfolios(
...     panel,
...     "bm",
...     [0, 0.3, 0.7, 1],
...     reference=lambda d: d["exchange"] == "NYSE",
... )
"""

from __future__ import annotations

from typing import Callable, Dict, Hashable, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from ..errors import DegenerateBreakpoints
from ..util.arrays import ArrayLike, as_float
from ..util.logging import get_logger

__all__ = [
    "BreakpointSpec",
    "percentiles",
    "compute_breakpoints",
    "assign_buckets",
    "assign_portfolios",
    "assign_double",
    "on_exchange",
]

log = get_logger("factorsort.breakpoints")

BreakpointSpec = Union[int, Sequence[float]]
Selector = Union[str, Callable[[pd.DataFrame], pd.Series]]
Reference = Optional[Selector]

ON_DEGENERATE = ("missing", "fallback", "raise")


def percentiles(spec: BreakpointSpec) -> np.ndarray:
    """Normalise a breakpoint specification into an array of probabilities.

    Parameters
    ----------
    spec : int or sequence of float
        Either the number of portfolios or explicit probabilities that
        start at 0, end at 1 and are strictly increasing.

    Returns
    -------
    ndarray
        Probabilities ``p_0 = 0 < p_1 < ... < p_K = 1``.

    Raises
    ------
    ValueError
        If the specification is malformed.
    """
    if isinstance(spec, (bool, np.bool_)):
        raise ValueError("breakpoint spec must be an int or a sequence of floats")
    if isinstance(spec, (int, np.integer)):
        if spec < 1:
            raise ValueError(f"number of portfolios must be positive, got {spec}")
        return np.linspace(0.0, 1.0, num=int(spec) + 1)
    probs = np.asarray(list(spec), dtype=float)
    if probs.ndim != 1 or probs.size < 2:
        raise ValueError("percentiles must contain at least two probabilities")
    if not np.all(np.isfinite(probs)):
        raise ValueError("percentiles must be finite")
    if probs[0] != 0.0 or probs[-1] != 1.0:
        raise ValueError("percentiles must start at 0 and end at 1")
    if np.any(np.diff(probs) <= 0):
        raise ValueError("percentiles must be strictly increasing")
    return probs


def compute_breakpoints(
    values: ArrayLike,
    spec: BreakpointSpec,
    *,
    min_obs: int = 1,
    period: Optional[Hashable] = None,
) -> np.ndarray:
    """
    Compute breakpoints of ``values`` at the probabilities given by ``spec``.

    Parameters
    ----------
    values : array-like
        Sorting variable of the breakpoint universe.  Missing and
        non-finite values are ignored.
    spec : int or sequence of float
        See :func:`percentiles`.
    min_obs : int, default 1
        Minimum number of valid values required.
    period : hashable, optional
        Period label, only used in error messages.

    Returns
    -------
    ndarray
        ``K + 1`` breakpoints ``b_0, ..., b_K``.

    Raises
    ------
    DegenerateBreakpoints
        If there are no valid values, fewer than ``min_obs`` values, or
        fewer than ``max(2, K)`` distinct values.

    Notes
    -----
    Heavily tied values can repeat a breakpoint.  The lower-tie rule of
    :func:`assign_buckets` then sends the tied mass to the lower
    portfolio, and a portfolio may stay empty for the period.
    """
    probs = percentiles(spec)
    k = probs.size - 1
    x = as_float(values)
    x = x[np.isfinite(x)]
    if x.size == 0:
        raise DegenerateBreakpoints("no valid values for breakpoints", period=period)
    if x.size < min_obs:
        raise DegenerateBreakpoints(
            f"{x.size} observations is below min_obs={min_obs}", period=period
        )
    n_distinct = np.unique(x).size
    if n_distinct < max(2, k):
        raise DegenerateBreakpoints(
            f"{n_distinct} distinct value(s) cannot form {k} portfolios",
            period=period,
        )
    return np.quantile(x, probs)


def _bucket_index(x: np.ndarray, bps: np.ndarray) -> np.ndarray:
    # v <= b_1 -> 1, b_{j-1} < v <= b_j -> j, v > b_{K-1} -> K
    return np.searchsorted(bps[1:-1], x, side="left").astype("int64") + 1


def assign_buckets(
    values: ArrayLike,
    breakpoints: Union[Sequence[float], np.ndarray],
) -> pd.Series:
    """Map values to 1-based portfolios given precomputed breakpoints.

    Returns an ``Int64`` series aligned with ``values``; missing values
    stay ``<NA>``.
    """
    bps = np.asarray(breakpoints, dtype=float)
    if bps.ndim != 1 or bps.size < 2:
        raise ValueError("breakpoints must contain at least two values")
    index = values.index if isinstance(values, pd.Series) else None
    x = as_float(values)
    out = pd.arrays.IntegerArray(_bucket_index(x, bps), np.isnan(x))
    return pd.Series(out, index=index, name="portfolio")


def _select(panel: pd.DataFrame, selector: Selector, what: str) -> pd.Series:
    if callable(selector):
        s = selector(panel)
        if not isinstance(s, pd.Series):
            s = pd.Series(s, index=panel.index)
        return s
    if selector not in panel.columns:
        raise KeyError(f"panel is missing {what} column '{selector}'")
    return panel[selector]


def _reference_mask(panel: pd.DataFrame, reference: Reference) -> np.ndarray:
    if reference is None:
        return np.ones(len(panel), dtype=bool)
    flag = _select(panel, reference, "reference")
    return flag.eq(True).fillna(False).to_numpy(dtype=bool)


def on_exchange(
    exchange: str, column: str = "exchange"
) -> Callable[[pd.DataFrame], pd.Series]:
    """Reference predicate selecting the stocks listed on ``exchange``."""

    def predicate(panel: pd.DataFrame) -> pd.Series:
        if column not in panel.columns:
            raise KeyError(f"panel is missing exchange column '{column}'")
        return panel[column] == exchange

    return predicate


def _check_on_degenerate(on_degenerate: str) -> None:
    if on_degenerate not in ON_DEGENERATE:
        raise ValueError(
            f"on_degenerate must be one of {ON_DEGENERATE}, got {on_degenerate!r}"
        )


def _group_breakpoints(
    x: np.ndarray,
    ref: np.ndarray,
    probs: np.ndarray,
    *,
    period: Hashable,
    on_degenerate: str,
    min_obs: int,
) -> Optional[np.ndarray]:
    """Breakpoints for one group, or None when the group is left missing."""
    try:
        return compute_breakpoints(x[ref], probs, min_obs=min_obs, period=period)
    except DegenerateBreakpoints as exc:
        if on_degenerate == "raise":
            raise
        reason = str(exc)
    if on_degenerate == "fallback" and not ref.all():
        try:
            bps = compute_breakpoints(x, probs, min_obs=min_obs, period=period)
        except DegenerateBreakpoints as exc:
            reason = str(exc)
        else:
            log.warning("%s; using the full population instead", reason)
            return bps
    log.warning("%s; portfolios set to missing", reason)
    return None


def _assign_groups(
    x: np.ndarray,
    ref: np.ndarray,
    groups: Dict[Hashable, np.ndarray],
    probs: np.ndarray,
    *,
    on_degenerate: str,
    min_obs: int,
) -> pd.arrays.IntegerArray:
    bucket = np.zeros(x.size, dtype="int64")
    missing = np.ones(x.size, dtype=bool)
    for key, pos in groups.items():
        xs = x[pos]
        bps = _group_breakpoints(
            xs,
            ref[pos],
            probs,
            period=key,
            on_degenerate=on_degenerate,
            min_obs=min_obs,
        )
        if bps is None:
            continue
        bucket[pos] = _bucket_index(xs, bps)
        missing[pos] = np.isnan(xs)
    return pd.arrays.IntegerArray(bucket, missing)


def assign_portfolios(
    panel: pd.DataFrame,
    sort_variable: Selector,
    breakpoints: BreakpointSpec = 5,
    *,
    period_col: str = "date",
    reference: Reference = None,
    on_degenerate: str = "missing",
    min_obs: int = 1,
    name: str = "portfolio",
) -> pd.Series:
    """
    Assign every observation to a portfolio within its period.

    Parameters
    ----------
    panel : DataFrame
        Long panel with one row per entity and period.
    sort_variable : str or callable
        Column holding the sorting variable, or a function returning it
        from ``panel``.
    breakpoints : int or sequence of float, default 5
        Number of portfolios or explicit percentiles.
    period_col : str, default "date"
        Column identifying the cross-sections.
    reference : str or callable, optional
        Boolean column (or function of ``panel``) selecting the rows that
        determine the breakpoints, e.g. ``lambda d: d["exchange"] == "NYSE"``.
        All rows are used when None.
    on_degenerate : {"missing", "fallback", "raise"}, default "missing"
        What to do when a period cannot form breakpoints.  ``"missing"``
        leaves the period's portfolios as ``<NA>``; ``"fallback"`` retries
        with every row of the period before giving up; ``"raise"``
        propagates :class:`DegenerateBreakpoints`.
    min_obs : int, default 1
        Minimum number of valid reference values per period.
    name : str, default "portfolio"
        Name of the returned series.

    Returns
    -------
    Series
        ``Int64`` portfolio numbers aligned with ``panel.index``.
    """
    _check_on_degenerate(on_degenerate)
    probs = percentiles(breakpoints)
    if period_col not in panel.columns:
        raise KeyError(f"panel must contain period column '{period_col}'")
    x = as_float(_select(panel, sort_variable, "sort"))
    ref = _reference_mask(panel, reference)
    groups = panel.groupby(period_col, sort=True).indices
    out = _assign_groups(
        x, ref, groups, probs, on_degenerate=on_degenerate, min_obs=min_obs
    )
    return pd.Series(out, index=panel.index, name=name)


def assign_double(
    panel: pd.DataFrame,
    sort_variables: Tuple[Selector, Selector],
    breakpoints: Tuple[BreakpointSpec, BreakpointSpec] = (2, 3),
    *,
    period_col: str = "date",
    reference: Reference = None,
    on_degenerate: str = "missing",
    min_obs: int = 1,
    conditional: bool = False,
    names: Tuple[str, str] = ("portfolio_1", "portfolio_2"),
) -> pd.DataFrame:
    """
    Assign portfolios along two sorting variables.

    With ``conditional=False`` (the default) the two sorts are
    independent: each variable gets its own breakpoints from the
    reference rows of the period, and the composite portfolio is the
    pair ``(portfolio_1, portfolio_2)``.  With ``conditional=True`` the
    second variable's breakpoints are computed within each portfolio of
    the first (a dependent sort).

    Returns
    -------
    DataFrame
        Two ``Int64`` columns named by ``names`` aligned with ``panel``.
        A row whose composite portfolio cannot be formed has ``<NA>`` in
        at least one column.
    """
    if len(sort_variables) != 2 or len(breakpoints) != 2:
        raise ValueError("double sorts need exactly two variables and two specs")
    first = assign_portfolios(
        panel,
        sort_variables[0],
        breakpoints[0],
        period_col=period_col,
        reference=reference,
        on_degenerate=on_degenerate,
        min_obs=min_obs,
        name=names[0],
    )
    if not conditional:
        second = assign_portfolios(
            panel,
            sort_variables[1],
            breakpoints[1],
            period_col=period_col,
            reference=reference,
            on_degenerate=on_degenerate,
            min_obs=min_obs,
            name=names[1],
        )
    else:
        probs = percentiles(breakpoints[1])
        x = as_float(_select(panel, sort_variables[1], "sort"))
        ref = _reference_mask(panel, reference)
        keys = [panel[period_col].reset_index(drop=True), first.reset_index(drop=True)]
        groups = pd.DataFrame(index=pd.RangeIndex(len(panel))).groupby(keys).indices
        out = _assign_groups(
            x, ref, groups, probs, on_degenerate=on_degenerate, min_obs=min_obs
        )
        # rows without a first-dimension portfolio belong to no group and stay <NA>
        second = pd.Series(out, index=panel.index, name=names[1])
    return pd.concat([first, second], axis=1)
