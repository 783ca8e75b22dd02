from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd

from avdeck.config import InvalidPolicy
from avdeck.errors import ColumnIndexOutOfRange, InvalidDateLiteral, InvalidNumericLiteral


logger = logging.getLogger(__name__)

ColumnRef = Union[int, str]
Selection = Sequence[Tuple[ColumnRef, str]]

DATE_FORMAT = "%Y-%m-%d"


# ---------------- Selection ----------------
def select_columns(df: pd.DataFrame, selection: Selection) -> pd.DataFrame:
    """Pick columns by position or header name and rename them.

    Row count and order are untouched.
    """
    width = len(df.columns)
    positions: List[int] = []
    targets: List[str] = []
    for ref, target in selection:
        if isinstance(ref, int) and not isinstance(ref, bool):
            if ref < 0 or ref >= width:
                raise ColumnIndexOutOfRange(ref, width)
            positions.append(ref)
        else:
            matches = [i for i, c in enumerate(df.columns) if c == ref]
            if not matches:
                raise ColumnIndexOutOfRange(ref, width)
            positions.append(matches[0])
        targets.append(target)
    out = df.iloc[:, positions].copy()
    out.columns = targets
    return out


# ---------------- Coercion ----------------
def _is_missing(value: object) -> bool:
    return value is None or (not isinstance(value, str) and pd.isna(value))


def strip_separators(value: object, thousands: str = ",") -> object:
    if _is_missing(value):
        return None
    if isinstance(value, str):
        s = value.strip()
        if thousands:
            s = s.replace(thousands, "")
        return s or None
    return value


def _report_invalid(bad: pd.Series, col: str, on_invalid: InvalidPolicy, raw: pd.Series, error: Callable) -> None:
    if not bad.any():
        return
    if on_invalid == "raise":
        row = bad.idxmax()
        raise error(col, row, raw.loc[row])
    logger.warning("Coerced %d invalid value(s) to missing in column %s", int(bad.sum()), col)


def coerce_numeric(
    df: pd.DataFrame,
    cols: Iterable[str],
    *,
    thousands: str = ",",
    on_invalid: InvalidPolicy = "raise",
) -> pd.DataFrame:
    out = df.copy()
    for col in cols:
        raw = out[col]
        cleaned = raw.map(lambda v: strip_separators(v, thousands)).astype(object)
        parsed = pd.to_numeric(cleaned, errors="coerce")
        bad = parsed.isna() & cleaned.notna()
        _report_invalid(bad, col, on_invalid, raw, InvalidNumericLiteral)
        out[col] = parsed.astype(float)
    return out


def coerce_dates(
    df: pd.DataFrame,
    cols: Iterable[str],
    *,
    fmt: str = DATE_FORMAT,
    on_invalid: InvalidPolicy = "raise",
) -> pd.DataFrame:
    out = df.copy()
    for col in cols:
        raw = out[col]
        cleaned = raw.map(lambda v: strip_separators(v, "")).astype(object)
        parsed = pd.to_datetime(cleaned, format=fmt, errors="coerce")
        bad = parsed.isna() & cleaned.notna()
        _report_invalid(bad, col, on_invalid, raw, lambda c, r, v: InvalidDateLiteral(c, r, v, fmt))
        out[col] = parsed
    return out


def fill_missing(df: pd.DataFrame, cols: Iterable[str], value: float = 0) -> pd.DataFrame:
    """Replace nulls in summed fields; display fields should not go through here."""
    out = df.copy()
    for col in cols:
        if col in out.columns:
            out[col] = out[col].fillna(value)
    return out


# ---------------- Filters ----------------
@dataclass(frozen=True)
class Predicate:
    description: str
    mask: Callable[[pd.DataFrame], pd.Series]

    def __call__(self, df: pd.DataFrame) -> pd.Series:
        return self.mask(df)


def equals(col: str, value: object) -> Predicate:
    return Predicate(f"{col} == {value!r}", lambda d: d[col] == value)


def not_equals(col: str, value: object) -> Predicate:
    return Predicate(f"{col} != {value!r}", lambda d: d[col] != value)


def in_date_range(col: str, start: Optional[date] = None, end: Optional[date] = None) -> Predicate:
    """Inclusive on both ends; a missing bound leaves that side open."""

    def _mask(d: pd.DataFrame) -> pd.Series:
        values = pd.to_datetime(d[col]).dt.normalize()
        mask = values.notna()
        if start is not None:
            mask &= values >= pd.Timestamp(start)
        if end is not None:
            mask &= values <= pd.Timestamp(end)
        return mask

    return Predicate(f"{start} <= {col} <= {end}", _mask)


def filter_rows(df: pd.DataFrame, *predicates: Predicate) -> pd.DataFrame:
    mask = pd.Series(True, index=df.index)
    for predicate in predicates:
        mask &= predicate(df).fillna(False).astype(bool)
    return df[mask].copy()
