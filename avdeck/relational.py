from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Union

import pandas as pd

from avdeck.errors import SchemaMismatch
from avdeck.transforms import fill_missing


logger = logging.getLogger(__name__)


def _require(df: pd.DataFrame, cols: Iterable[str], label: str) -> None:
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise SchemaMismatch(label, missing, found=[str(c) for c in df.columns])


def left_join(
    left: pd.DataFrame,
    right: pd.DataFrame,
    left_on: str,
    right_on: Optional[str] = None,
    *,
    suffix: str = "_right",
) -> pd.DataFrame:
    """Left join on a natural key; key names may differ on each side.

    Every left row is kept. A right key that appears more than once fans the
    matching left rows out, one output row per right match.
    """
    right_on = right_on or left_on
    _require(left, [left_on], "left_join.left")
    _require(right, [right_on], "left_join.right")

    dupes = right[right_on].dropna().duplicated()
    if dupes.any():
        logger.warning("Right key %s has %d duplicate value(s); matching rows will fan out", right_on, int(dupes.sum()))

    # null keys never match
    keyed = right[right[right_on].notna()]
    merged = left.merge(keyed, left_on=left_on, right_on=right_on, how="left", suffixes=("", suffix))
    if right_on != left_on and right_on in merged.columns and right_on not in left.columns:
        merged = merged.drop(columns=[right_on])
    matched = left[left_on].notna() & left[left_on].isin(keyed[right_on])
    unmatched = len(left) - int(matched.sum())
    if unmatched:
        logger.info("%d of %d left row(s) had no match on %s", unmatched, len(left), left_on)
    return merged


def aggregate(
    df: pd.DataFrame,
    by: Union[str, List[str]],
    columns: Iterable[str],
    *,
    how: str = "sum",
    sort_by: Optional[str] = None,
    ascending: bool = False,
    top_n: Optional[int] = None,
) -> pd.DataFrame:
    keys = [by] if isinstance(by, str) else list(by)
    columns = list(columns)
    _require(df, keys + columns, "aggregate")

    base = df[keys + columns].copy()
    if how == "sum":
        base = fill_missing(base, columns, 0)
    grouped = base.groupby(keys, sort=False, dropna=False)[columns].agg(how).reset_index()

    if sort_by is not None:
        grouped = grouped.sort_values(sort_by, ascending=ascending, kind="stable").reset_index(drop=True)
    if top_n is not None:
        grouped = grouped.head(top_n).reset_index(drop=True)
    return grouped
