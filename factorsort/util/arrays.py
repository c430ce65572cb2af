from __future__ import annotations

from typing import Sequence, Union

import numpy as np
import pandas as pd

ArrayLike = Union[pd.Series, Sequence[float], np.ndarray]


def as_float(values: ArrayLike) -> np.ndarray:
    """Coerce to a float array; unparseable entries and ``<NA>`` become NaN."""
    s = values if isinstance(values, pd.Series) else pd.Series(values)
    return pd.to_numeric(s, errors="coerce").to_numpy(dtype=float, na_value=np.nan)
