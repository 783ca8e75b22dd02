from __future__ import annotations

from datetime import date
from typing import Literal, Optional

import pandas as pd

from avdeck.transforms import filter_rows, in_date_range

Extremum = Literal["min", "max"]


def find_extremum(
    df: pd.DataFrame,
    column: str,
    kind: Extremum = "max",
    *,
    date_col: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> pd.DataFrame:
    """Rows holding the min/max of ``column``, ties included, in original order."""
    if kind not in ("min", "max"):
        raise ValueError(f"kind must be 'min' or 'max', got {kind!r}")
    subset = df
    if date_col is not None and (start is not None or end is not None):
        subset = filter_rows(df, in_date_range(date_col, start, end))
    values = pd.to_numeric(subset[column], errors="coerce")
    if values.dropna().empty:
        return subset.iloc[0:0].copy()
    target = values.max() if kind == "max" else values.min()
    return subset[values == target].copy()


def extremum_markers(
    df: pd.DataFrame,
    column: str,
    *,
    date_col: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> pd.DataFrame:
    frames = []
    for kind in ("min", "max"):
        rows = find_extremum(df, column, kind, date_col=date_col, start=start, end=end)
        frames.append(rows.assign(marker=kind))
    return pd.concat(frames, ignore_index=True)


def ratio(df: pd.DataFrame, numerator: str, denominator: str, out: str) -> pd.DataFrame:
    result = df.copy()
    den = pd.to_numeric(result[denominator], errors="coerce").astype(float)
    num = pd.to_numeric(result[numerator], errors="coerce").astype(float)
    result[out] = num / den.where(den != 0)
    return result
