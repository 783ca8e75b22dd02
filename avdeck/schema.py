"""Declared table schemas.

A ``TableSchema`` names the columns (and their logical types) a transform
expects to receive or promises to return. Slide pipelines validate their
inputs against one before touching them, so a table built from the wrong
source fails early with ``SchemaMismatch`` instead of producing a chart with
empty series.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal, Tuple

import pandas as pd

from avdeck.errors import SchemaMismatch

ColumnType = Literal["string", "number", "date"]


@dataclass(frozen=True)
class Column:
    name: str
    dtype: ColumnType = "string"


@dataclass(frozen=True)
class TableSchema:
    name: str
    columns: Tuple[Column, ...]

    @classmethod
    def of(cls, name: str, **columns: ColumnType) -> "TableSchema":
        return cls(name=name, columns=tuple(Column(col, dtype) for col, dtype in columns.items()))

    @property
    def names(self) -> List[str]:
        return [c.name for c in self.columns]

    def columns_of(self, dtype: ColumnType) -> List[str]:
        return [c.name for c in self.columns if c.dtype == dtype]

    def missing(self, df: pd.DataFrame) -> List[str]:
        return [c for c in self.names if c not in df.columns]

    def validate(self, df: pd.DataFrame) -> pd.DataFrame:
        missing = self.missing(df)
        if missing:
            raise SchemaMismatch(self.name, missing, found=[str(c) for c in df.columns])
        return df

    def conform(self, df: pd.DataFrame) -> pd.DataFrame:
        """Validate, then return only the declared columns in declared order."""
        self.validate(df)
        return df[self.names].copy()
