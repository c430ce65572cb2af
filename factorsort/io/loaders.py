"""
Data loaders for the sorting pipeline.

These functions provide a thin abstraction layer over reading inputs.
In practice, users may wish to supply their own DataFrames directly
(for example in unit tests), and each loader accepts a fallback
DataFrame via the ``df`` argument.

Files on disk are read from Parquet.  Tables kept in a SQLite database
(the layout used by the empirical finance chapters, e.g. a
``crsp_monthly`` table) are read with :func:`read_sqlite`.

Loaders normalise the date column to timezone-free timestamps and
check that the required columns are present; they do not fill or drop
missing values, which stay ``NaN`` for the sorting kernel to handle.
"""

from __future__ import annotations

import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Optional, Sequence, Union

import pandas as pd

from ..util.logging import get_logger

__all__ = ["load_panel", "load_factors", "read_sqlite", "PANEL_COLUMNS"]

log = get_logger("factorsort.io")

PANEL_COLUMNS = ("date", "permno", "ret_excess", "mktcap_lag")


def _read_parquet(path: Path) -> pd.DataFrame:
    """Internal helper to read a Parquet file via pandas."""
    return pd.read_parquet(path)


def _normalise(
    df: pd.DataFrame, required: Sequence[str], date_col: str, what: str
) -> pd.DataFrame:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise KeyError(f"{what} is missing required columns: {missing}")
    if date_col in df.columns:
        df[date_col] = pd.to_datetime(df[date_col], errors="coerce").dt.tz_localize(
            None
        )
    return df


def _load(
    path: Optional[Union[str, Path]], df: Optional[pd.DataFrame], what: str
) -> pd.DataFrame:
    if df is not None:
        return df.copy()
    if path is None:
        raise FileNotFoundError(
            f"Either a {what} DataFrame or file path must be provided."
        )
    out = _read_parquet(Path(path))
    log.info("Loaded %s from %s (%d rows)", what, path, len(out))
    return out


def load_panel(
    *,
    path: Optional[Union[str, Path]] = None,
    df: Optional[pd.DataFrame] = None,
    required: Sequence[str] = PANEL_COLUMNS,
    date_col: str = "date",
) -> pd.DataFrame:
    """
    Load a stock-level panel.

    Parameters
    ----------
    path : str or Path, optional
        Location of a Parquet file.  Ignored if ``df`` is provided.
    df : DataFrame, optional
        Provide the panel directly instead of reading from disk.
    required : sequence of str
        Columns that must be present.  Defaults to
        ``date, permno, ret_excess, mktcap_lag``.
    date_col : str, default "date"
        Date column to normalise.

    Returns
    -------
    DataFrame
        A copy of the panel.

    Raises
    ------
    FileNotFoundError
        If neither ``df`` nor ``path`` is given.
    KeyError
        If a required column is missing.
    """
    return _normalise(_load(path, df, "panel"), required, date_col, "panel")


def load_factors(
    *,
    path: Optional[Union[str, Path]] = None,
    df: Optional[pd.DataFrame] = None,
    columns: Sequence[str] = (),
    date_col: str = "date",
) -> pd.DataFrame:
    """
    Load reference factor returns (e.g. the published SMB and HML).

    Parameters
    ----------
    path : str or Path, optional
        Location of a Parquet file.  Ignored if ``df`` is provided.
    df : DataFrame, optional
        Provide the factors directly.
    columns : sequence of str, optional
        Factor columns that must be present in addition to ``date_col``.
    date_col : str, default "date"
        Date column to normalise.

    Returns
    -------
    DataFrame
        The factor table sorted by date.
    """
    out = _normalise(
        _load(path, df, "factors"), [date_col, *columns], date_col, "factors"
    )
    return out.sort_values(date_col).reset_index(drop=True)


def read_sqlite(
    database: Union[str, Path],
    sql: str,
    *,
    parse_dates: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """
    Run a query against a SQLite database and return the result.

    Examples
    --------
    >>> crsp_monthly = read_sqlite(
    ...     "data/tidy_finance_python.sqlite",
    ...     "SELECT permno, date, ret_excess, mktcap_lag, exchange FROM crsp_monthly",
    ...     parse_dates=["date"],
    ... )
    """
    if not Path(database).exists():
        raise FileNotFoundError(f"SQLite database not found: {database}")
    with closing(sqlite3.connect(str(database))) as con:
        out = pd.read_sql_query(
            sql, con, parse_dates=list(parse_dates) if parse_dates else None
        )
    log.info("Read %d rows from %s", len(out), database)
    return out
