"""
Long-short factor returns from portfolio returns.

A long-short factor is the difference between the average return of a
set of "long" portfolios and the average return of a set of "short"
portfolios in the same period.  The two-portfolio case (top minus
bottom decile) and the Fama-French six-portfolio case are both
instances:

* SMB averages the three small portfolios and subtracts the average of
  the three big portfolios of a 2x3 size/book-to-market sort.
* HML averages the two high book-to-market portfolios and subtracts the
  average of the two low ones.

Portfolio keys are integers for one-dimensional sorts and tuples
``(portfolio_1, portfolio_2)`` for two-dimensional sorts.  A leg is
given as a list of keys; a bare key is accepted for a single portfolio.

If a listed portfolio is absent in a period (for example because its
breakpoints were degenerate), the factor for that period is missing and
reported as ``NaN``.

References
----------
Fama, E. F., and K. R. French, 1993, Common risk factors in the returns
  on stocks and bonds. *Journal of Financial Economics* 33, 3-56.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import (
    Any,
    Hashable,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

import numpy as np
import pandas as pd

from ..errors import MissingBucketForFactor
from ..util.logging import get_logger
from .aggregate import aggregate_portfolios
from .breakpoints import assign_double, on_exchange, percentiles

__all__ = [
    "long_short",
    "combine_factor",
    "FactorConfig",
    "annual_sorting_date",
    "size_value_factors",
]

log = get_logger("factorsort.factors")

Leg = Union[Hashable, Iterable[Hashable]]


def _leg(buckets: Leg, side: str) -> List[Hashable]:
    if isinstance(buckets, (list, set, frozenset, np.ndarray, pd.Index)):
        keys = list(buckets)
    else:
        keys = [buckets]
    if not keys:
        raise ValueError(f"{side} leg must list at least one portfolio")
    return keys


def long_short(
    means: Mapping[Hashable, float],
    long_buckets: Leg,
    short_buckets: Leg,
    *,
    period: Optional[Hashable] = None,
) -> float:
    """
    Long-short return for a single period.

    Parameters
    ----------
    means : mapping
        Portfolio key -> mean return for the period.
    long_buckets, short_buckets : key or list of keys
        Portfolios forming each leg.
    period : hashable, optional
        Period label, only used in error messages.

    Returns
    -------
    float
        ``mean(long) - mean(short)``.  ``NaN`` if any listed portfolio
        has an undefined (``NaN``) return.

    Raises
    ------
    MissingBucketForFactor
        If a listed portfolio is absent from ``means``.
    """
    legs = []
    for side, buckets in (("long", long_buckets), ("short", short_buckets)):
        values = []
        for b in _leg(buckets, side):
            if b not in means:
                raise MissingBucketForFactor(
                    f"{side} leg portfolio is absent", period=period, bucket=b
                )
            values.append(float(means[b]))
        legs.append(float(np.mean(values)))
    return legs[0] - legs[1]


def _bucket_keys(frame: pd.DataFrame, bucket_cols: List[str]) -> List[Any]:
    if len(bucket_cols) == 1:
        return frame[bucket_cols[0]].tolist()
    return list(zip(*(frame[c].tolist() for c in bucket_cols)))


def combine_factor(
    portfolio_returns: pd.DataFrame,
    long_buckets: Leg,
    short_buckets: Leg,
    *,
    period_col: str = "date",
    bucket_cols: Union[str, Sequence[str]] = "portfolio",
    value_col: str = "ret",
    periods: Optional[Iterable[Hashable]] = None,
    name: str = "factor",
) -> pd.Series:
    """
    Long-short factor series from a table of portfolio returns.

    Parameters
    ----------
    portfolio_returns : DataFrame
        Output of :func:`~factorsort.asset_pricing.aggregate.aggregate_portfolios`.
    long_buckets, short_buckets : key or list of keys
        Portfolios forming the long and short legs.  Use tuples as keys
        when ``bucket_cols`` names two columns.
    period_col, bucket_cols, value_col : str
        Columns of ``portfolio_returns``.
    periods : iterable, optional
        Full set of periods to report.  Periods absent from
        ``portfolio_returns`` (e.g. every portfolio was degenerate) are
        reported as ``NaN`` instead of being dropped.
    name : str, default "factor"
        Name of the returned series.

    Returns
    -------
    Series
        Factor return indexed by period; ``NaN`` where undefined.
    """
    buckets = [bucket_cols] if isinstance(bucket_cols, str) else list(bucket_cols)
    required = [period_col, value_col] + buckets
    missing = [c for c in required if c not in portfolio_returns.columns]
    if missing:
        raise KeyError(f"portfolio_returns is missing required columns: {missing}")
    # validate legs before touching data
    _leg(long_buckets, "long")
    _leg(short_buckets, "short")

    index: list[Hashable] = []
    values: list[float] = []
    n_missing = 0
    for period, grp in portfolio_returns.groupby(period_col, sort=True):
        means = dict(zip(_bucket_keys(grp, buckets), grp[value_col].astype(float)))
        try:
            value = long_short(means, long_buckets, short_buckets, period=period)
        except MissingBucketForFactor as exc:
            log.debug("%s", exc)
            n_missing += 1
            value = np.nan
        index.append(period)
        values.append(value)
    if n_missing:
        log.warning(
            "%s: %d period(s) lack a required portfolio; reported as NaN",
            name,
            n_missing,
        )

    out = pd.Series(
        values, index=pd.Index(index, name=period_col), name=name, dtype=float
    )
    if periods is not None:
        full = pd.Index(list(periods), name=period_col).dropna().unique()
        full = full.sort_values()
        absent = full.difference(out.index)
        if len(absent):
            log.warning(
                "%s: %d period(s) have no portfolios; reported as NaN",
                name,
                len(absent),
            )
        out = out.reindex(full)
    return out


@dataclass(frozen=True)
class FactorConfig:
    """
    Settings for the size and value factor replication.

    Parameters
    ----------
    size_percentiles : tuple of float, default (0, 0.5, 1)
        Size breakpoints (median split).
    value_percentiles : tuple of float, default (0, 0.3, 0.7, 1)
        Book-to-market breakpoints (30th and 70th percentiles).
    reference_exchange : str or None, default "NYSE"
        Exchange whose stocks determine the breakpoints.  None uses all
        stocks.
    min_obs : int, default 1
        Minimum number of reference stocks per period.
    on_degenerate : str, default "missing"
        Passed to :func:`~factorsort.asset_pricing.breakpoints.assign_portfolios`.
    """

    size_percentiles: Tuple[float, ...] = (0.0, 0.5, 1.0)
    value_percentiles: Tuple[float, ...] = (0.0, 0.3, 0.7, 1.0)
    reference_exchange: Optional[str] = "NYSE"
    min_obs: int = 1
    on_degenerate: str = "missing"


def annual_sorting_date(dates: pd.Series, month: int = 7) -> pd.Series:
    """
    Sorting date of the annual rebalancing that holds each date.

    Portfolios formed on the first day of ``month`` are held for twelve
    months, so with the default July rebalancing every date from July
    2000 through June 2001 maps to 2000-07-01.  Missing dates stay
    ``NaT``.
    """
    if not 1 <= month <= 12:
        raise ValueError(f"month must be between 1 and 12, got {month}")
    d = pd.to_datetime(pd.Series(dates))
    out = pd.Series(pd.NaT, index=d.index, dtype="datetime64[ns]", name="sorting_date")
    ok = d.notna()
    if ok.any():
        valid = d[ok]
        year = valid.dt.year - (valid.dt.month < month).astype(int)
        out[ok] = pd.to_datetime(pd.DataFrame({"year": year, "month": month, "day": 1}))
    return out


def _held_labels(
    panel: pd.DataFrame,
    names: Tuple[str, str],
    *,
    sort_col: str,
    entity_col: str,
    period_col: str,
    **sort_kwargs: Any,
) -> pd.DataFrame:
    """Sort once per ``sort_col`` value and carry labels to every held row."""
    # characteristics are read from the first held period of each stock
    formation = panel.sort_values(period_col, kind="mergesort").drop_duplicates(
        [sort_col, entity_col]
    )
    formed = assign_double(formation, period_col=sort_col, names=names, **sort_kwargs)
    keys = pd.concat([formation[[sort_col, entity_col]], formed], axis=1)
    held = panel[[sort_col, entity_col]].merge(
        keys, on=[sort_col, entity_col], how="left"
    )
    held.index = panel.index
    return held[list(names)]


def size_value_factors(
    panel: pd.DataFrame,
    *,
    size_col: str = "size",
    bm_col: str = "bm",
    period_col: str = "date",
    sort_col: Optional[str] = None,
    entity_col: str = "permno",
    outcome: str = "ret_excess",
    weight: Optional[str] = "mktcap_lag",
    exchange_col: str = "exchange",
    config: FactorConfig = FactorConfig(),
) -> pd.DataFrame:
    """
    Replicate the SMB and HML factors from independent 2x3 sorts.

    Stocks are sorted independently on size and on book-to-market using
    breakpoints from ``config.reference_exchange`` stocks.
    Value-weighted returns of the six portfolios are combined into SMB
    and HML for every return period.

    Parameters
    ----------
    panel : DataFrame
        Stock panel with one row per ``entity_col`` and ``period_col``.
    size_col, bm_col : str
        Size and book-to-market columns.
    period_col : str, default "date"
        Return period.
    sort_col : str, optional
        Sorting date for annual rebalancing (see
        :func:`annual_sorting_date`).  Stocks are sorted once per sorting
        date, on the characteristics of their first row for that date,
        and keep those portfolios in every period they are held.  When
        None, stocks are re-sorted every ``period_col``.
    entity_col : str, default "permno"
        Stock identifier, used only with ``sort_col``.
    outcome, weight, exchange_col : str
        Return, weight and exchange columns.
    config : FactorConfig, optional
        Breakpoints and degenerate-period handling.

    Returns
    -------
    DataFrame
        Columns ``period_col``, ``smb`` and ``hml``, one row per period of
        ``panel``.  Periods where a portfolio could not be formed are
        ``NaN``.

    Examples
    --------
    >>> panel["sorting_date"] = annual_sorting_date(panel["date"])
    >>> factors = size_value_factors(panel, sort_col="sorting_date")
    """
    required = [period_col, size_col, bm_col, outcome]
    if weight is not None:
        required.append(weight)
    if config.reference_exchange is not None:
        required.append(exchange_col)
    if sort_col is not None:
        required += [sort_col, entity_col]
    missing = [c for c in required if c not in panel.columns]
    if missing:
        raise KeyError(f"panel is missing required columns: {missing}")

    reference = None
    if config.reference_exchange is not None:
        reference = on_exchange(config.reference_exchange, column=exchange_col)

    names = ("portfolio_size", "portfolio_bm")
    sort_kwargs: dict[str, Any] = dict(
        sort_variables=(size_col, bm_col),
        breakpoints=(config.size_percentiles, config.value_percentiles),
        reference=reference,
        on_degenerate=config.on_degenerate,
        min_obs=config.min_obs,
    )
    if sort_col is None:
        labels = assign_double(panel, period_col=period_col, names=names, **sort_kwargs)
    else:
        labels = _held_labels(
            panel,
            names,
            sort_col=sort_col,
            entity_col=entity_col,
            period_col=period_col,
            **sort_kwargs,
        )
    cols = [period_col, outcome] + ([weight] if weight is not None else [])
    data = pd.concat([panel[cols], labels], axis=1)
    rets = aggregate_portfolios(
        data,
        outcome,
        weight,
        period_col=period_col,
        bucket_cols=list(names),
        value_col="ret",
    )

    k_size = percentiles(config.size_percentiles).size - 1
    k_bm = percentiles(config.value_percentiles).size - 1
    small = [(1, j) for j in range(1, k_bm + 1)]
    big = [(k_size, j) for j in range(1, k_bm + 1)]
    high = [(i, k_bm) for i in range(1, k_size + 1)]
    low = [(i, 1) for i in range(1, k_size + 1)]

    periods = panel[period_col]
    common: dict[str, Any] = dict(
        period_col=period_col,
        bucket_cols=list(names),
        value_col="ret",
        periods=periods,
    )
    smb = combine_factor(rets, small, big, name="smb", **common)
    hml = combine_factor(rets, high, low, name="hml", **common)
    log.info("Replicated SMB/HML for %d periods", len(smb))
    return pd.concat([smb, hml], axis=1).reset_index()
