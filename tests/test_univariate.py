from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from factorsort.asset_pricing import SortConfig, on_exchange, univariate_sort


def _make_panel(n_months: int = 18, n_firms: int = 80, seed: int = 123) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    months = pd.date_range("2000-01-31", periods=n_months, freq="ME")
    idx = pd.MultiIndex.from_product(
        [months, pd.Index(range(10001, 10001 + n_firms))], names=["date", "permno"]
    )
    panel = idx.to_frame(index=False)
    panel["exchange"] = np.where(panel["permno"] % 2 == 0, "NYSE", "NASDAQ")
    panel["mktcap_lag"] = np.exp(rng.normal(10.0, 0.5, size=len(panel)))
    panel["size"] = np.log(panel["mktcap_lag"])
    panel["ret_excess"] = (
        0.01
        - 0.20 * (panel["size"] - float(panel["size"].mean()))
        + rng.normal(0.0, 0.01, size=len(panel))
    )
    return panel


def test_univariate_sort_shapes() -> None:
    panel = _make_panel()
    res = univariate_sort(
        panel, "size", config=SortConfig(n_bins=5), reference=on_exchange("NYSE")
    )
    ts = res["time_series"]
    summ = res["summary"]
    hl = res["hl_series"]

    assert list(ts.columns) == ["date", "bin", "ret_ew", "ret_vw", "n"]
    assert len(ts) == 18 * 5
    assert ts.groupby("date")["n"].sum().eq(80).all()

    assert len(summ) == 5 + 1
    assert summ["bin"].iloc[-1] == "L-S"
    assert list(hl.columns) == ["date", "hl_ew", "hl_vw"]
    assert len(hl) == 18


def test_long_short_row_is_mean_of_spread() -> None:
    panel = _make_panel()
    res = univariate_sort(panel, "size", config=SortConfig(n_bins=5))
    summ = res["summary"].set_index("bin")
    hl = res["hl_series"]
    assert summ.loc["L-S", "ret_ew"] == pytest.approx(hl["hl_ew"].mean())
    assert summ.loc["L-S", "ret_vw"] == pytest.approx(hl["hl_vw"].mean())
    # returns fall with size, so top minus bottom is negative every month
    assert (hl["hl_ew"] < 0).all()


def test_explicit_percentiles_override_bin_count() -> None:
    panel = _make_panel()
    config = SortConfig(n_bins=10, percentiles=(0.0, 0.3, 0.7, 1.0))
    assert config.k == 3
    res = univariate_sort(panel, "size", config=config)
    assert sorted(res["time_series"]["bin"].unique().tolist()) == [1, 2, 3]


def test_degenerate_month_shows_as_missing_spread() -> None:
    panel = _make_panel(n_months=3)
    first = panel["date"] == panel["date"].min()
    panel.loc[first, "size"] = 1.0
    res = univariate_sort(panel, "size", config=SortConfig(n_bins=5))
    hl = res["hl_series"].set_index("date")
    assert len(hl) == 3
    assert hl.loc[panel["date"].min()].isna().all()
    assert hl.drop(index=panel["date"].min()).notna().all().all()


def test_no_weight_leaves_value_weighted_missing() -> None:
    panel = _make_panel(n_months=2)
    res = univariate_sort(panel, "size", config=SortConfig(n_bins=3), weight=None)
    assert res["time_series"]["ret_vw"].isna().all()
    assert res["time_series"]["ret_ew"].notna().all()


def test_missing_columns_raise() -> None:
    panel = _make_panel(n_months=2).drop(columns="mktcap_lag")
    with pytest.raises(KeyError):
        univariate_sort(panel, "size")
