from __future__ import annotations
from pathlib import Path
import numpy as np
import pandas as pd

from factorsort.asset_pricing import size_value_factors


def main() -> None:
    out_dir = Path("data/cache")
    out_dir.mkdir(parents=True, exist_ok=True)

    rng = np.random.default_rng(7)

    # --- Synthetic monthly stock panel ---
    months = pd.date_range("2000-01-31", periods=60, freq="ME")
    permnos = list(range(10001, 10201))
    idx = pd.MultiIndex.from_product(
        [months, pd.Index(permnos)], names=["date", "permno"]
    )
    panel = idx.to_frame(index=False)
    n = len(panel)
    # one third of the firms list on NYSE
    panel["exchange"] = np.where(panel["permno"] % 3 == 0, "NYSE", "NASDAQ")
    panel["mktcap_lag"] = np.exp(rng.normal(6.0, 1.2, size=n))
    panel["size"] = np.log(panel["mktcap_lag"])
    panel["bm"] = np.exp(rng.normal(-0.5, 0.6, size=n))

    mkt = pd.Series(rng.normal(0.006, 0.045, size=len(months)), index=months)
    beta = rng.normal(1.0, 0.3, size=n)
    panel["ret_excess"] = (
        beta * panel["date"].map(mkt).to_numpy()
        - 0.002 * (panel["size"] - panel["size"].mean())
        + 0.004 * np.log(panel["bm"])
        + rng.normal(0.0, 0.08, size=n)
    )
    (out_dir / "panel.parquet").unlink(missing_ok=True)
    panel.to_parquet(out_dir / "panel.parquet", index=False)

    # --- Reference factors: replicated SMB/HML plus noise ---
    factors = size_value_factors(panel)
    factors["smb"] += rng.normal(0.0, 0.002, size=len(factors))
    factors["hml"] += rng.normal(0.0, 0.002, size=len(factors))
    factors["mkt_excess"] = factors["date"].map(mkt).to_numpy()
    (out_dir / "factors.parquet").unlink(missing_ok=True)
    factors.to_parquet(out_dir / "factors.parquet", index=False)

    print(f"Wrote demo cache to {out_dir.resolve()}")


if __name__ == "__main__":
    main()
