from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from factorsort.asset_pricing.performance import (
    _long_run_variance,
    capm_regression,
    mean_test,
    newey_west_lags,
    performance_summary,
    replication_check,
    replication_summary,
)
from factorsort.errors import InsufficientObservations


def _market(n: int = 120, seed: int = 0) -> pd.Series:
    rng = np.random.default_rng(seed)
    months = pd.date_range("2000-01-31", periods=n, freq="ME")
    return pd.Series(rng.normal(0.005, 0.04, size=n), index=months, name="mkt")


def test_long_run_variance_without_lags_is_sample_variance() -> None:
    x = np.array([1.0, -2.0, 0.5, 0.5])
    assert _long_run_variance(x, 0) == pytest.approx(np.mean(x**2))
    assert np.isnan(_long_run_variance(np.array([]), 3))


def test_newey_west_lag_rule() -> None:
    assert newey_west_lags(100) == 4
    assert newey_west_lags(1) == 1


def test_mean_test_matches_iid_formula_without_lags() -> None:
    x = _market().to_numpy()
    out = mean_test(x, nw_lags=0)
    se = np.sqrt(np.mean((x - x.mean()) ** 2) / x.size)
    assert out["mean"] == pytest.approx(x.mean())
    assert out["se"] == pytest.approx(se)
    assert out["tstat"] == pytest.approx(x.mean() / se)
    assert out["n_obs"] == x.size


def test_mean_test_drops_missing_periods() -> None:
    s = _market(24)
    s.iloc[[3, 7]] = np.nan
    out = mean_test(s)
    assert out["n_obs"] == 22
    assert out["mean"] == pytest.approx(s.mean())


def test_mean_test_on_empty_series() -> None:
    out = mean_test(pd.Series([np.nan, np.nan]))
    assert out["n_obs"] == 0
    assert np.isnan(out["mean"])


def test_capm_recovers_alpha_and_beta() -> None:
    mkt = _market()
    rng = np.random.default_rng(1)
    ret = 0.01 + 1.5 * mkt + rng.normal(0.0, 0.002, size=len(mkt))
    out = capm_regression(ret, mkt)
    assert out["beta"] == pytest.approx(1.5, abs=0.05)
    assert out["alpha"] == pytest.approx(0.01, abs=0.002)
    assert out["alpha_tstat"] > 5
    assert out["n_obs"] == len(mkt)


def test_capm_aligns_on_index_and_needs_observations() -> None:
    mkt = _market()
    ret = (0.5 * mkt + np.random.default_rng(3).normal(0, 0.01, len(mkt))).iloc[:60]
    out = capm_regression(ret, mkt)
    assert out["n_obs"] == 60
    with pytest.raises(InsufficientObservations) as info:
        capm_regression(ret.iloc[:2], mkt)
    assert info.value.n_obs == 2


def test_replication_check_of_close_copy() -> None:
    original = _market()
    rng = np.random.default_rng(2)
    replicated = original / 0.9 + rng.normal(0.0, 0.004, size=len(original))
    out = replication_check(original, replicated)
    assert out["slope"] == pytest.approx(0.9, abs=0.05)
    assert out["r2"] > 0.9
    assert out["correlation"] == pytest.approx(np.sqrt(out["r2"]))


def test_performance_summary_rows_per_series() -> None:
    mkt = _market()
    rng = np.random.default_rng(4)
    frame = pd.DataFrame(
        {
            "smb": rng.normal(0.002, 0.03, size=len(mkt)),
            "hml": 0.3 * mkt.to_numpy() + rng.normal(0.003, 0.01, size=len(mkt)),
        },
        index=mkt.index,
    )
    plain = performance_summary(frame)
    assert list(plain.index) == ["smb", "hml"]
    assert list(plain.columns) == ["mean", "se", "tstat", "n_obs"]

    capm = performance_summary(frame, ["hml"], market=mkt)
    assert list(capm.index) == ["hml"]
    assert {"alpha", "alpha_tstat", "beta"} <= set(capm.columns)
    assert capm.loc["hml", "beta"] == pytest.approx(0.3, abs=0.15)


def test_performance_summary_keeps_rows_without_enough_market_overlap() -> None:
    mkt = _market(24)
    frame = pd.DataFrame(
        {"smb": np.nan, "hml": np.linspace(-0.01, 0.02, len(mkt))}, index=mkt.index
    )
    out = performance_summary(frame, market=mkt)
    assert out.loc["smb", "n_obs"] == 0
    assert out.loc["smb", ["mean", "alpha", "beta"]].isna().all()
    assert np.isfinite(out.loc["hml", "alpha"])

    # market dated at month start never lines up with month-end returns
    shifted = mkt.copy()
    shifted.index = shifted.index.to_period("M").to_timestamp()
    out = performance_summary(frame[["hml"]], market=shifted)
    assert out.loc["hml", "n_obs"] == 24
    assert np.isnan(out.loc["hml", "alpha"])


def test_replication_summary_reports_unmatched_dates_as_missing() -> None:
    mkt = _market(24)
    replicated = pd.DataFrame(
        {"date": mkt.index, "smb": mkt.to_numpy(), "hml": -mkt.to_numpy()}
    )
    rng = np.random.default_rng(6)
    published = replicated.assign(
        smb=replicated["smb"] + rng.normal(0.0, 0.001, size=len(mkt))
    ).drop(columns="hml")

    out = replication_summary(published, replicated, ["smb", "hml"])
    assert list(out.index) == ["smb"]
    assert out.loc["smb", "r2"] > 0.9

    published["date"] = published["date"].dt.to_period("M").dt.to_timestamp()
    out = replication_summary(published, replicated, ["smb", "hml"])
    assert out.loc["smb", "n_obs"] == 0
    assert out.loc["smb", ["slope", "r2", "correlation"]].isna().all()
