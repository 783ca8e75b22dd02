from __future__ import annotations

from typing import Iterable, Optional


class PipelineError(Exception):
    """Base class for every build-fatal data preparation error."""


class SourceNotFound(PipelineError):
    def __init__(self, path: object) -> None:
        self.path = str(path)
        super().__init__(f"Source not found: {self.path}")


class SheetNotFound(PipelineError):
    def __init__(self, path: object, sheet: str, available: Iterable[str] = ()) -> None:
        self.path = str(path)
        self.sheet = sheet
        self.available = list(available)
        super().__init__(f"Sheet {sheet!r} not found in {self.path} (available: {', '.join(self.available) or 'none'})")


class RangeOutOfBounds(PipelineError):
    def __init__(self, requested: str, populated: str) -> None:
        self.requested = requested
        self.populated = populated
        super().__init__(f"Range {requested} exceeds populated area {populated}")


class ColumnIndexOutOfRange(PipelineError):
    def __init__(self, column: object, width: int) -> None:
        self.column = column
        self.width = width
        super().__init__(f"Column {column!r} not available in a table of {width} columns")


class InvalidNumericLiteral(PipelineError):
    def __init__(self, column: str, row: object, value: object) -> None:
        self.column = column
        self.row = row
        self.value = value
        super().__init__(f"Invalid numeric value {value!r} in column {column!r} (row {row})")


class InvalidDateLiteral(PipelineError):
    def __init__(self, column: str, row: object, value: object, fmt: str = "%Y-%m-%d") -> None:
        self.column = column
        self.row = row
        self.value = value
        self.fmt = fmt
        super().__init__(f"Invalid date value {value!r} in column {column!r} (row {row}, expected {fmt})")


class MissingExchangeRate(PipelineError):
    def __init__(self, codes: Iterable[str], base: str) -> None:
        self.codes = sorted(set(codes))
        self.base = base
        super().__init__(f"No exchange rate to {base} for: {', '.join(self.codes)}")


class ExchangeRateUnavailable(PipelineError):
    """The live rate service could not be reached or returned an unusable payload."""


class SchemaMismatch(PipelineError):
    def __init__(self, schema: str, missing: Iterable[str], found: Optional[Iterable[str]] = None) -> None:
        self.schema = schema
        self.missing = list(missing)
        self.found = list(found or [])
        super().__init__(f"Table does not match schema {schema!r}; missing columns: {', '.join(self.missing)}")


class UnknownSlide(PipelineError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown slide: {name}")
