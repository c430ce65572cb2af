from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from factorsort.asset_pricing import (
    FactorConfig,
    annual_sorting_date,
    combine_factor,
    long_short,
    size_value_factors,
)
from factorsort.errors import MissingBucketForFactor


def test_long_short_single_buckets() -> None:
    assert long_short({1: 0.15, 2: 0.10}, 2, 1) == pytest.approx(-0.05)


def test_long_short_averages_each_leg() -> None:
    means = {(1, 1): 0.01, (1, 2): 0.03, (2, 1): 0.0, (2, 2): 0.02}
    value = long_short(means, [(1, 1), (1, 2)], [(2, 1), (2, 2)])
    assert value == pytest.approx(0.01)


def test_absent_bucket_raises() -> None:
    with pytest.raises(MissingBucketForFactor) as info:
        long_short({1: 0.1, 2: 0.2}, [3], [1], period="2020-01")
    assert info.value.bucket == 3
    assert info.value.period == "2020-01"


def test_undefined_bucket_mean_propagates_nan() -> None:
    assert np.isnan(long_short({1: 0.1, 2: np.nan}, 2, 1))


def test_empty_leg_is_rejected() -> None:
    with pytest.raises(ValueError):
        long_short({1: 0.1}, [], [1])


def test_combine_factor_marks_missing_periods() -> None:
    rets = pd.DataFrame(
        {
            "date": ["2020-01", "2020-01", "2020-02"],
            "portfolio": [1, 2, 1],
            "ret": [0.01, 0.04, 0.02],
        }
    )
    factor = combine_factor(
        rets, [2], [1], periods=["2020-01", "2020-02", "2020-03"], name="hl"
    )
    assert factor.name == "hl"
    assert factor.index.tolist() == ["2020-01", "2020-02", "2020-03"]
    assert factor.loc["2020-01"] == pytest.approx(0.03)
    assert np.isnan(factor.loc["2020-02"])
    assert np.isnan(factor.loc["2020-03"])


def test_combine_factor_requires_columns() -> None:
    with pytest.raises(KeyError):
        combine_factor(pd.DataFrame({"date": [1]}), [2], [1])


def _two_by_three_panel() -> pd.DataFrame:
    # Twelve NYSE stocks: size 1..12 splits at 6.5; bm 1..12 splits at 4.3 / 8.7
    size = np.arange(1, 13, dtype=float)
    bm = np.array([1, 2, 5, 6, 9, 10, 3, 4, 7, 8, 11, 12], dtype=float)
    ret = np.where(size <= 6, 0.02, 0.01) + np.where(bm >= 9, 0.01, 0.0)
    nyse = pd.DataFrame(
        {
            "date": pd.Timestamp("2020-01-31"),
            "permno": range(12),
            "size": size,
            "bm": bm,
            "ret_excess": ret,
            "mktcap_lag": 1.0,
            "exchange": "NYSE",
        }
    )
    # a large NASDAQ stock that would move the breakpoints if it were used
    nasdaq = pd.DataFrame(
        {
            "date": [pd.Timestamp("2020-01-31")],
            "permno": [99],
            "size": [100.0],
            "bm": [100.0],
            "ret_excess": [0.02],
            "mktcap_lag": [1.0],
            "exchange": ["NASDAQ"],
        }
    )
    # a second month with a single NYSE stock cannot be sorted
    thin = nyse.iloc[:1].assign(date=pd.Timestamp("2020-02-29"))
    return pd.concat([nyse, nasdaq, thin], ignore_index=True)


def test_size_value_factors_from_two_by_three_sort() -> None:
    out = size_value_factors(_two_by_three_panel())
    assert list(out.columns) == ["date", "smb", "hml"]
    assert len(out) == 2
    first = out.iloc[0]
    assert first["smb"] == pytest.approx(0.01)
    assert first["hml"] == pytest.approx(0.01)
    assert out.iloc[1][["smb", "hml"]].isna().all()


def test_size_value_factors_without_exchange_breakpoints() -> None:
    panel = _two_by_three_panel().drop(columns="exchange")
    with pytest.raises(KeyError):
        size_value_factors(panel)
    out = size_value_factors(panel, config=FactorConfig(reference_exchange=None))
    assert np.isfinite(out.iloc[0]["smb"])


def test_size_value_factors_with_renamed_bm_column() -> None:
    panel = _two_by_three_panel().rename(columns={"bm": "book_to_market"})
    out = size_value_factors(panel, bm_col="book_to_market")
    assert out.iloc[0]["hml"] == pytest.approx(0.01)


def test_annual_sorting_date() -> None:
    dates = pd.Series(pd.to_datetime(["2000-06-30", "2000-07-31", "2001-06-30", None]))
    out = annual_sorting_date(dates)
    assert out.iloc[:3].tolist() == [
        pd.Timestamp("1999-07-01"),
        pd.Timestamp("2000-07-01"),
        pd.Timestamp("2000-07-01"),
    ]
    assert pd.isna(out.iloc[3])
    assert annual_sorting_date(dates, month=1).iloc[0] == pd.Timestamp("2000-01-01")
    with pytest.raises(ValueError):
        annual_sorting_date(dates, month=13)


def _annual_panel() -> pd.DataFrame:
    # July 2020 sizes drive the 2020 sort; afterwards every size ranking flips
    size = np.arange(1, 13, dtype=float)
    bm = np.array([1, 2, 5, 6, 9, 10, 3, 4, 7, 8, 11, 12], dtype=float)
    ret = np.where(size <= 6, 0.02, 0.01) + np.where(bm >= 9, 0.01, 0.0)
    months = pd.date_range("2020-07-31", periods=13, freq="ME")
    frames = [
        pd.DataFrame(
            {
                "date": month,
                "permno": range(12),
                "size": size if i == 0 else 13.0 - size,
                "bm": bm,
                "ret_excess": ret,
                "mktcap_lag": 1.0,
                "exchange": "NYSE",
            }
        )
        for i, month in enumerate(months)
    ]
    panel = pd.concat(frames, ignore_index=True)
    panel["sorting_date"] = annual_sorting_date(panel["date"])
    return panel


def test_july_portfolios_are_held_until_june() -> None:
    panel = _annual_panel()
    out = size_value_factors(panel, sort_col="sorting_date")
    assert len(out) == 13
    # July 2020 through June 2021 keep the July 2020 portfolios
    assert out["smb"].iloc[:12].tolist() == pytest.approx([0.01] * 12)
    # July 2021 rebalances on the flipped sizes
    assert out["smb"].iloc[12] == pytest.approx(-0.01)
    assert out["hml"].tolist() == pytest.approx([0.01] * 13)

    monthly = size_value_factors(panel)
    assert monthly["smb"].iloc[1] == pytest.approx(-0.01)


def test_held_portfolios_need_identifier_column() -> None:
    panel = _annual_panel().drop(columns="permno")
    with pytest.raises(KeyError):
        size_value_factors(panel, sort_col="sorting_date")
