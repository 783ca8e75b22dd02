from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd
from openpyxl import load_workbook
from openpyxl.utils.cell import get_column_letter, range_boundaries

from avdeck.errors import ColumnIndexOutOfRange, RangeOutOfBounds, SheetNotFound, SourceNotFound


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SheetSource:
    """A rectangle of one worksheet.

    ``cell_range`` ("A5:F45") wins over the populated extent. ``skip_rows``
    drops leading rows before the rectangle starts. When ``names`` is given the
    rectangle has no header row and every row is data.
    """

    path: Path
    sheet: str
    cell_range: Optional[str] = None
    skip_rows: int = 0
    names: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class DelimitedSource:
    path: Path
    delimiter: str = ","
    skip_rows: int = 0
    names: Optional[Tuple[str, ...]] = None


Source = Union[SheetSource, DelimitedSource]


def file_signature(files: Iterable[Path]) -> Tuple[Tuple[str, float], ...]:
    return tuple((str(f), f.stat().st_mtime) for f in files if f.exists())


def header_names(values: Sequence[object]) -> List[str]:
    out: List[str] = []
    seen: dict = {}
    for idx, value in enumerate(values):
        name = "" if value is None or pd.isna(value) else str(value).strip()
        if not name or name.startswith("Unnamed:"):
            name = f"column_{idx + 1}"
        if name in seen:
            seen[name] += 1
            name = f"{name}.{seen[name]}"
        else:
            seen[name] = 0
        out.append(name)
    return out


def coerce_str_safe(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            series = df[col].astype("string").str.strip()
            series = series.replace({"nan": pd.NA, "None": pd.NA, "": pd.NA})
            df[col] = series
    return df


def _extent(min_col: int, min_row: int, max_col: int, max_row: int) -> str:
    return f"{get_column_letter(min_col)}{min_row}:{get_column_letter(max_col)}{max_row}"


def _frame_from_rows(rows: List[List[object]], names: Optional[Sequence[str]], source: object) -> pd.DataFrame:
    width = len(rows[0]) if rows else 0
    if names is not None:
        if len(names) != width:
            raise ColumnIndexOutOfRange(len(names), width)
        columns = header_names(names)
        data = rows
    else:
        columns = header_names(rows[0]) if rows else []
        data = rows[1:]
    df = pd.DataFrame(data, columns=columns, dtype=object)
    logger.info("Loaded %d rows x %d columns from %s", len(df), len(df.columns), source)
    return df


# ---------------- Loaders ----------------
def load_sheet(source: SheetSource) -> pd.DataFrame:
    path = Path(source.path)
    if not path.exists():
        raise SourceNotFound(path)

    wb = load_workbook(path, data_only=True)
    try:
        if source.sheet not in wb.sheetnames:
            raise SheetNotFound(path, source.sheet, wb.sheetnames)
        ws = wb[source.sheet]
        max_row, max_col = ws.max_row, ws.max_column
        populated = _extent(1, 1, max_col, max_row)

        if source.cell_range:
            min_col, min_row, end_col, end_row = range_boundaries(source.cell_range)
            min_col = min_col or 1
            min_row = (min_row or 1) + source.skip_rows
            end_col = end_col or max_col
            end_row = end_row or max_row
            requested = source.cell_range
        else:
            min_col, min_row, end_col, end_row = 1, source.skip_rows + 1, max_col, max_row
            requested = f"{_extent(1, 1, max_col, max_row)} skipping {source.skip_rows} rows"

        if end_row > max_row or end_col > max_col or min_row > end_row or min_col > end_col:
            raise RangeOutOfBounds(requested, populated)

        rows = [
            list(r)
            for r in ws.iter_rows(
                min_row=min_row,
                max_row=end_row,
                min_col=min_col,
                max_col=end_col,
                values_only=True,
            )
        ]
    finally:
        wb.close()

    return _frame_from_rows(rows, source.names, f"{path.name}[{source.sheet}]")


def load_delimited(source: DelimitedSource) -> pd.DataFrame:
    path = Path(source.path)
    if not path.exists():
        raise SourceNotFound(path)

    df = pd.read_csv(
        path,
        sep=source.delimiter,
        skiprows=source.skip_rows,
        header=None if source.names is not None else 0,
        dtype=str,
        encoding="utf-8-sig",
        keep_default_na=False,
        na_values=[""],
    )
    if source.names is not None:
        if len(source.names) != df.shape[1]:
            raise ColumnIndexOutOfRange(len(source.names), df.shape[1])
        df.columns = header_names(source.names)
    else:
        df.columns = header_names(list(df.columns))
    df = df.astype(object).where(df.notna(), None)
    logger.info("Loaded %d rows x %d columns from %s", len(df), len(df.columns), path.name)
    return df


def load_source(source: Source) -> pd.DataFrame:
    if isinstance(source, SheetSource):
        return load_sheet(source)
    if isinstance(source, DelimitedSource):
        return load_delimited(source)
    raise TypeError(f"Unsupported source: {type(source).__name__}")
