"""Simple performance regressions for portfolio and factor returns.

Three checks recur when evaluating a sort or a replicated factor:

* :func:`mean_test` -- is the average return different from zero?  The
  standard error uses the Newey-West (HAC) long-run variance, so
  autocorrelation in monthly spreads does not overstate significance.
* :func:`capm_regression` -- does the return survive a market
  adjustment?  Regress it on the market excess return and test the
  intercept (alpha) with HAC standard errors.
* :func:`replication_check` -- does a replicated factor track the
  original?  Regress the original on the replication and report slope,
  R-squared and correlation.

Missing observations are dropped (and the count logged) before
estimation; they are never treated as zero returns.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
import pandas as pd
import statsmodels.api as sm

from ..errors import InsufficientObservations
from ..util.arrays import ArrayLike
from ..util.logging import get_logger

__all__ = [
    "newey_west_lags",
    "mean_test",
    "capm_regression",
    "replication_check",
    "performance_summary",
    "replication_summary",
]

log = get_logger("factorsort.performance")

MIN_REGRESSION_OBS = 3
CAPM_FIELDS = ("alpha", "alpha_tstat", "beta", "beta_tstat", "r2", "n_obs")
REPLICATION_FIELDS = (
    "intercept",
    "slope",
    "slope_tstat",
    "r2",
    "correlation",
    "n_obs",
)


def _long_run_variance(series: np.ndarray, lags: int) -> float:
    r"""Compute the Newey-West long-run variance for a 1-D array.

    Parameters
    ----------
    series : ndarray
        One-dimensional array of demeaned observations.
    lags : int
        Number of lags to include in the HAC estimator.  A lag of zero
        yields the usual sample variance.

    Notes
    -----
    The estimator used is

    .. math::

       \gamma_0 + 2 \sum_{k=1}^L \left(1 - \frac{k}{L+1}\right) \gamma_k,

    where ``gamma_k`` is the lag-k autocovariance of ``series``.
    """
    n = len(series)
    if n == 0:
        return np.nan
    var = np.dot(series, series) / n
    for k in range(1, min(lags, n - 1) + 1):
        cov = np.dot(series[k:], series[:-k]) / n
        var += 2.0 * (1.0 - k / (lags + 1)) * cov
    return var


def newey_west_lags(n_obs: int) -> int:
    """Rule-of-thumb lag length ``floor(4 * (T/100) ** (2/9))``."""
    return int(np.floor(4 * (n_obs / 100.0) ** (2.0 / 9.0)))


def _dropna(frame: pd.DataFrame, what: str) -> pd.DataFrame:
    clean = frame.dropna()
    dropped = len(frame) - len(clean)
    if dropped:
        log.info("%s: dropping %d period(s) with missing values", what, dropped)
    return clean


def _require_obs(frame: pd.DataFrame, what: str) -> None:
    if len(frame) < MIN_REGRESSION_OBS:
        raise InsufficientObservations(
            f"{what} needs at least {MIN_REGRESSION_OBS} aligned observations",
            n_obs=len(frame),
        )


def _undefined(fields: Sequence[str], n_obs: int) -> pd.Series:
    out = pd.Series(np.nan, index=list(fields), dtype=float)
    out["n_obs"] = n_obs
    return out


def mean_test(series: ArrayLike, nw_lags: Optional[int] = None) -> pd.Series:
    """
    Test whether the mean of a return series differs from zero.

    Parameters
    ----------
    series : array-like
        Return series; missing values are dropped.
    nw_lags : int, optional
        Newey-West lags.  Defaults to :func:`newey_west_lags` of the
        number of valid observations.

    Returns
    -------
    Series
        ``mean``, ``se``, ``tstat`` and ``n_obs``.
    """
    s = pd.to_numeric(pd.Series(series), errors="coerce").astype(float)
    x = _dropna(s.to_frame("x"), "mean_test")["x"].to_numpy()
    n = x.size
    if n == 0:
        return pd.Series({"mean": np.nan, "se": np.nan, "tstat": np.nan, "n_obs": 0})
    lags = newey_west_lags(n) if nw_lags is None else int(nw_lags)
    mean = float(x.mean())
    se = float(np.sqrt(_long_run_variance(x - mean, lags) / n))
    tstat = mean / se if se > 0 else np.nan
    return pd.Series({"mean": mean, "se": se, "tstat": tstat, "n_obs": n})


def capm_regression(
    returns: ArrayLike,
    market: ArrayLike,
    nw_lags: int = 6,
) -> pd.Series:
    """
    CAPM alpha and beta with Newey-West standard errors.

    Parameters
    ----------
    returns : array-like
        Portfolio excess returns.
    market : array-like
        Market excess returns, aligned with ``returns`` (by index when
        both are Series).
    nw_lags : int, default 6
        Maximum lag of the HAC covariance estimator.

    Returns
    -------
    Series
        ``alpha``, ``alpha_tstat``, ``beta``, ``beta_tstat``, ``r2`` and
        ``n_obs``.

    Raises
    ------
    InsufficientObservations
        If fewer than three periods have both returns.
    """
    frame = pd.concat(
        {
            "ret": pd.Series(returns, dtype=float),
            "mkt": pd.Series(market, dtype=float),
        },
        axis=1,
    )
    frame = _dropna(frame, "capm_regression")
    _require_obs(frame, "capm_regression")
    X = sm.add_constant(frame["mkt"], has_constant="add")
    res = sm.OLS(frame["ret"], X).fit(cov_type="HAC", cov_kwds={"maxlags": nw_lags})
    return pd.Series(
        {
            "alpha": float(res.params["const"]),
            "alpha_tstat": float(res.tvalues["const"]),
            "beta": float(res.params["mkt"]),
            "beta_tstat": float(res.tvalues["mkt"]),
            "r2": float(res.rsquared),
            "n_obs": int(res.nobs),
        }
    )


def replication_check(original: ArrayLike, replicated: ArrayLike) -> pd.Series:
    """
    Compare a replicated factor with the original series.

    The original is regressed on the replication by OLS.  A close
    replication has slope near one, a small intercept and high R-squared.

    Returns
    -------
    Series
        ``intercept``, ``slope``, ``slope_tstat``, ``r2``, ``correlation``
        and ``n_obs``.

    Raises
    ------
    InsufficientObservations
        If fewer than three periods have both series.
    """
    frame = pd.concat(
        {
            "original": pd.Series(original, dtype=float),
            "replicated": pd.Series(replicated, dtype=float),
        },
        axis=1,
    )
    frame = _dropna(frame, "replication_check")
    _require_obs(frame, "replication_check")
    X = sm.add_constant(frame["replicated"], has_constant="add")
    res = sm.OLS(frame["original"], X).fit()
    return pd.Series(
        {
            "intercept": float(res.params["const"]),
            "slope": float(res.params["replicated"]),
            "slope_tstat": float(res.tvalues["replicated"]),
            "r2": float(res.rsquared),
            "correlation": float(frame["original"].corr(frame["replicated"])),
            "n_obs": int(res.nobs),
        }
    )


def performance_summary(
    returns: pd.DataFrame,
    columns: Optional[Sequence[str]] = None,
    *,
    market: Optional[ArrayLike] = None,
    nw_lags: Optional[int] = None,
) -> pd.DataFrame:
    """Mean test (and CAPM alpha when ``market`` is given) per column.

    Returns one row per column of ``returns``.  A column with fewer than
    three periods aligned with ``market`` keeps its mean test and gets
    ``NaN`` CAPM statistics; the shortfall is logged.
    """
    columns = list(returns.columns) if columns is None else list(columns)
    rows: dict[str, pd.Series] = {}
    for col in columns:
        row = mean_test(returns[col], nw_lags=nw_lags)
        if market is not None:
            try:
                capm = capm_regression(
                    returns[col], market, nw_lags=6 if nw_lags is None else nw_lags
                )
            except InsufficientObservations as exc:
                log.warning("%s: %s; CAPM statistics set to NaN", col, exc)
                capm = _undefined(CAPM_FIELDS, exc.n_obs)
            row = pd.concat([row, capm[["alpha", "alpha_tstat", "beta"]]])
        rows[col] = row
    return pd.DataFrame(rows).T


def replication_summary(
    original: pd.DataFrame,
    replicated: pd.DataFrame,
    names: Sequence[str],
    *,
    date_col: str = "date",
) -> pd.DataFrame:
    """
    :func:`replication_check` for several factors matched on ``date_col``.

    Factors missing from ``original`` are skipped.  A factor with fewer
    than three matched periods (for instance when the two tables date
    the same month differently) is reported as a row of ``NaN`` with its
    ``n_obs``, and a warning is logged.

    Returns
    -------
    DataFrame
        One row per reported factor, columns as :func:`replication_check`.
    """
    merged = replicated.merge(
        original, on=date_col, how="inner", suffixes=("_replicated", "")
    )
    rows: dict[str, pd.Series] = {}
    for name in names:
        if name not in original.columns:
            continue
        try:
            rows[name] = replication_check(merged[name], merged[f"{name}_replicated"])
        except InsufficientObservations as exc:
            log.warning("%s: %s; replication statistics set to NaN", name, exc)
            rows[name] = _undefined(REPLICATION_FIELDS, exc.n_obs)
    return pd.DataFrame(rows, index=list(REPLICATION_FIELDS)).T
