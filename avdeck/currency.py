from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

import pandas as pd
import requests

from avdeck.config import DEFAULT_BASE_CURRENCY, DEFAULT_RATES_URL
from avdeck.errors import ExchangeRateUnavailable, MissingExchangeRate
from avdeck.transforms import coerce_numeric


logger = logging.getLogger(__name__)


def normalize_currency_code(value: object) -> Optional[str]:
    if value is None or pd.isna(value):
        return None
    s = str(value).strip().upper()
    return s or None


@dataclass(frozen=True)
class ExchangeRates:
    """Units of each currency per one unit of ``base``."""

    base: str = DEFAULT_BASE_CURRENCY
    rates: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, base: str, mapping: Mapping[str, object]) -> "ExchangeRates":
        rates: Dict[str, float] = {}
        for code, rate in mapping.items():
            norm = normalize_currency_code(code)
            if norm is None:
                continue
            value = float(rate)  # type: ignore[arg-type]
            if value <= 0:
                raise ValueError(f"Exchange rate for {norm} must be positive, got {value}")
            rates[norm] = value
        base = normalize_currency_code(base) or DEFAULT_BASE_CURRENCY
        rates[base] = 1.0
        return cls(base=base, rates=rates)

    def rate_for(self, code: str) -> Optional[float]:
        if code == self.base:
            return 1.0
        return self.rates.get(code)


def fetch_exchange_rates(
    base: str = DEFAULT_BASE_CURRENCY,
    url: str = DEFAULT_RATES_URL,
    timeout: float = 30.0,
) -> ExchangeRates:
    """Fetch current rates relative to ``base`` from a frankfurter-style service."""
    try:
        resp = requests.get(url, params={"from": base}, timeout=timeout)
        resp.raise_for_status()
        payload = resp.json()
    except requests.exceptions.RequestException as exc:
        raise ExchangeRateUnavailable(f"Failed to fetch exchange rates from {url}: {exc}") from exc
    except ValueError as exc:
        raise ExchangeRateUnavailable(f"Exchange rate service at {url} returned invalid JSON") from exc

    rates = payload.get("rates") if isinstance(payload, dict) else None
    if not isinstance(rates, dict) or not rates:
        raise ExchangeRateUnavailable(f"Exchange rate service at {url} returned no rates")
    payload_base = payload.get("base") or base
    if normalize_currency_code(payload_base) != normalize_currency_code(base):
        raise ExchangeRateUnavailable(f"Requested rates for {base}, service answered for {payload_base}")
    logger.info("Fetched %d exchange rates relative to %s", len(rates), base)
    return ExchangeRates.from_mapping(base, rates)


def normalize_currency(
    df: pd.DataFrame,
    amount_col: str,
    currency_col: str,
    rates: ExchangeRates,
    out_col: Optional[str] = None,
) -> pd.DataFrame:
    """Rescale ``amount_col`` into ``rates.base`` as ``amount / rate[currency]``.

    Rows already in the base currency use a rate of 1.0 whether or not the
    table lists it. Both subsets are converted separately and stitched back
    together in their original order under one monetary column.
    """
    out_col = out_col or f"{amount_col}_{rates.base.lower()}"
    if df.empty:
        out = df.copy()
        out[out_col] = pd.Series(dtype=float)
        return out

    codes = df[currency_col].map(normalize_currency_code)
    missing = sorted({c for c in codes.dropna().unique() if rates.rate_for(c) is None})
    if codes.isna().any():
        missing.append("<blank>")
    if missing:
        raise MissingExchangeRate(missing, rates.base)

    amounts = coerce_numeric(df[[amount_col]], [amount_col])[amount_col]
    work = df.reset_index(drop=True).assign(_amount=amounts.to_numpy())
    codes = codes.reset_index(drop=True)
    is_base = codes == rates.base
    base_rows = work[is_base].copy()
    other_rows = work[~is_base].copy()

    base_rows[out_col] = base_rows["_amount"] / 1.0
    other_rates = codes[~is_base].map(rates.rate_for).astype(float)
    other_rows[out_col] = other_rows["_amount"] / other_rates

    combined = pd.concat([base_rows, other_rows]).sort_index().drop(columns=["_amount"])
    combined.index = df.index
    logger.info(
        "Converted %d row(s) into %s (%d already in %s)",
        len(other_rows),
        rates.base,
        len(base_rows),
        rates.base,
    )
    return combined
