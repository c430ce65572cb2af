"""
Integration test for the factor pipeline.

This test constructs a synthetic monthly panel and a set of published
factors and verifies that the full end-to-end pipeline executes without
error and returns non-empty, correctly shaped outputs.
"""

from __future__ import annotations

import numpy as np
import pandas as pd

from factorsort.asset_pricing import annual_sorting_date, size_value_factors
from factorsort.pipeline import run_factor_pipeline
from factorsort.pipeline.run_factor_pipeline import run_pipeline


def _make_panel(n_months: int = 36, n_firms: int = 90, seed: int = 0) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    dates = pd.date_range("2010-01-31", periods=n_months, freq="ME")
    idx = pd.MultiIndex.from_product([dates, range(n_firms)], names=["date", "permno"])
    df = idx.to_frame(index=False)
    df["exchange"] = np.where(df["permno"] % 3 == 0, "NYSE", "NASDAQ")
    df["mktcap_lag"] = np.exp(rng.normal(6.0, 1.0, size=len(df)))
    df["size"] = np.log(df["mktcap_lag"])
    df["bm"] = np.exp(rng.normal(-0.5, 0.5, size=len(df)))
    mkt = pd.Series(rng.normal(0.005, 0.04, size=n_months), index=dates)
    df["ret_excess"] = (
        df["date"].map(mkt).to_numpy()
        - 0.003 * (df["size"] - float(df["size"].mean()))
        + rng.normal(0.0, 0.05, size=len(df))
    )
    return df


def _published(panel: pd.DataFrame, seed: int = 1) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    factors = size_value_factors(panel)
    factors["smb"] += rng.normal(0.0, 0.001, size=len(factors))
    factors["hml"] += rng.normal(0.0, 0.001, size=len(factors))
    factors["mkt_excess"] = panel.groupby("date")["ret_excess"].mean().to_numpy()
    return factors


def test_factor_pipeline_integration() -> None:
    panel = _make_panel()
    res = run_pipeline(panel=panel, factors=_published(panel), n_bins=4)

    summ = res["sort_summary"]
    # Summary should have n_bins + 1 rows (including L-S)
    assert len(summ) == 4 + 1
    assert (summ["bin"] == "L-S").any()
    assert len(res["hl_series"]) == 36

    factors = res["factors"]
    assert list(factors.columns) == ["date", "smb", "hml"]
    assert factors[["smb", "hml"]].notna().all().all()

    perf = res["performance"]
    assert list(perf.index) == ["size_ls", "smb", "hml"]
    assert {"mean", "tstat", "alpha", "beta"} <= set(perf.columns)

    rep = res["replication"]
    assert list(rep.index) == ["smb", "hml"]
    assert (rep["slope"] > 0.9).all()
    assert (rep["r2"] > 0.9).all()


def test_pipeline_without_reference_data() -> None:
    panel = _make_panel(n_months=12).drop(columns="exchange")
    res = run_pipeline(panel=panel, sort_variable="bm", n_bins=3)
    assert res["replication"] is None
    assert "alpha" not in res["performance"].columns
    assert list(res["performance"].index) == ["bm_ls", "smb", "hml"]


def test_main_reads_default_cache(tmp_path, monkeypatch, capsys) -> None:
    panel = _make_panel(n_months=12)
    cache = tmp_path / "data" / "cache"
    cache.mkdir(parents=True)
    panel.to_parquet(cache / "panel.parquet", index=False)
    _published(panel).to_parquet(cache / "factors.parquet", index=False)
    monkeypatch.chdir(tmp_path)

    run_factor_pipeline.main()

    out = capsys.readouterr().out
    assert "# Portfolio Sorts" in out
    assert "L-S" in out
    assert "# Replication Regressions" in out


def test_pipeline_with_undefined_factor_series() -> None:
    panel = _make_panel(n_months=12)
    published = _published(panel)
    panel["bm"] = np.nan
    res = run_pipeline(panel=panel, factors=published)

    assert res["factors"][["smb", "hml"]].isna().all().all()
    perf = res["performance"]
    assert perf.loc["hml", "n_obs"] == 0
    assert perf.loc[["smb", "hml"], "alpha"].isna().all()
    assert np.isfinite(perf.loc["size_ls", "alpha"])

    rep = res["replication"]
    assert list(rep.index) == ["smb", "hml"]
    assert (rep["n_obs"] == 0).all()
    assert rep["slope"].isna().all()


def test_pipeline_with_month_start_reference_factors() -> None:
    panel = _make_panel(n_months=12)
    published = _published(panel)
    published["date"] = published["date"].dt.to_period("M").dt.to_timestamp()
    res = run_pipeline(panel=panel, factors=published)

    assert res["performance"]["alpha"].isna().all()
    assert res["performance"].loc["smb", "n_obs"] == 12
    assert (res["replication"]["n_obs"] == 0).all()


def test_pipeline_with_annual_rebalancing() -> None:
    panel = _make_panel(n_months=24)
    panel["sorting_date"] = annual_sorting_date(panel["date"])
    res = run_pipeline(panel=panel, sort_col="sorting_date")
    factors = res["factors"]
    assert len(factors) == 24
    assert factors[["smb", "hml"]].notna().all().all()
