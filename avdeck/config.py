from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Literal, Optional

import pandas as pd


DATA_DIR = Path(__file__).resolve().parents[1] / "data"
DEFAULT_RATES_URL = "https://api.frankfurter.app/latest"
DEFAULT_BASE_CURRENCY = "EUR"

InvalidPolicy = Literal["raise", "coerce"]
INVALID_POLICIES = ("raise", "coerce")


@dataclass(frozen=True)
class PipelineConfig:
    data_dir: Path = DATA_DIR
    base_currency: str = DEFAULT_BASE_CURRENCY
    rates_url: str = DEFAULT_RATES_URL
    rates_timeout: float = 30.0
    on_invalid: InvalidPolicy = "raise"
    thousands: str = ","
    top_n: int = 10
    year: Optional[int] = None
    extremum_start: Optional[date] = None
    extremum_end: Optional[date] = None


def _as_date(value: object) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    parsed = pd.to_datetime(str(value), format="%Y-%m-%d", errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date()


def _as_int(value: object, default: Optional[int]) -> Optional[int]:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def normalize_config(raw: Optional[dict] = None) -> PipelineConfig:
    raw = raw or {}

    data_dir = raw.get("data_dir") or DATA_DIR
    base_currency = str(raw.get("base_currency") or DEFAULT_BASE_CURRENCY).strip().upper()
    rates_url = str(raw.get("rates_url") or DEFAULT_RATES_URL)

    try:
        rates_timeout = float(raw.get("rates_timeout", 30.0))
    except (TypeError, ValueError):
        rates_timeout = 30.0
    if rates_timeout <= 0:
        rates_timeout = 30.0

    on_invalid = str(raw.get("on_invalid") or "raise").strip().lower()
    if on_invalid not in INVALID_POLICIES:
        on_invalid = "raise"

    thousands = raw.get("thousands")
    thousands = "," if thousands is None else str(thousands)

    top_n = _as_int(raw.get("top_n"), 10)
    top_n = max(1, min(200, top_n))

    return PipelineConfig(
        data_dir=Path(data_dir),
        base_currency=base_currency,
        rates_url=rates_url,
        rates_timeout=rates_timeout,
        on_invalid=on_invalid,  # type: ignore[arg-type]
        thousands=thousands,
        top_n=top_n,
        year=_as_int(raw.get("year"), None),
        extremum_start=_as_date(raw.get("extremum_start")),
        extremum_end=_as_date(raw.get("extremum_end")),
    )
