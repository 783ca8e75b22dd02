from __future__ import annotations

import pandas as pd
import pytest
import requests

from avdeck import currency
from avdeck.currency import ExchangeRates, fetch_exchange_rates, normalize_currency
from avdeck.errors import ExchangeRateUnavailable, InvalidNumericLiteral, MissingExchangeRate


def test_converts_into_base_currency() -> None:
    df = pd.DataFrame({"amount": [1000.0], "ccy": ["XXX"]})
    rates = ExchangeRates.from_mapping("EUR", {"XXX": 2.0})

    out = normalize_currency(df, "amount", "ccy", rates, out_col="amount_eur")

    assert out["amount_eur"].iloc[0] == 500.0
    assert out["amount"].iloc[0] == 1000.0


def test_base_rows_pass_through_even_without_rate_entry() -> None:
    df = pd.DataFrame({"amount": [123.45, 1000.0], "ccy": ["EUR", "eur "]})
    rates = ExchangeRates(base="EUR", rates={})

    out = normalize_currency(df, "amount", "ccy", rates)

    assert out["amount_eur"].tolist() == [123.45, 1000.0]


def test_base_rows_ignore_a_bogus_base_rate() -> None:
    df = pd.DataFrame({"amount": [10.0], "ccy": ["EUR"]})
    rates = ExchangeRates(base="EUR", rates={"EUR": 3.0})

    out = normalize_currency(df, "amount", "ccy", rates)

    assert out["amount_eur"].iloc[0] == 10.0


def test_mixed_rows_are_restitched_in_original_order() -> None:
    df = pd.DataFrame(
        {"ansp": ["a", "b", "c", "d"], "amount": [100.0, 80.0, 50.0, 1000.0], "ccy": ["EUR", "GBP", "EUR", "SEK"]},
        index=[10, 11, 12, 13],
    )
    rates = ExchangeRates.from_mapping("EUR", {"GBP": 0.8, "SEK": 10.0})

    out = normalize_currency(df, "amount", "ccy", rates, out_col="amount_base")

    assert out["ansp"].tolist() == ["a", "b", "c", "d"]
    assert out.index.tolist() == [10, 11, 12, 13]
    assert out["amount_base"].tolist() == pytest.approx([100.0, 100.0, 50.0, 100.0])


def test_missing_rate_is_an_error() -> None:
    df = pd.DataFrame({"amount": [1.0, 2.0, 3.0], "ccy": ["EUR", "NOK", "PLN"]})
    rates = ExchangeRates.from_mapping("EUR", {"GBP": 0.8})

    with pytest.raises(MissingExchangeRate) as excinfo:
        normalize_currency(df, "amount", "ccy", rates)

    assert excinfo.value.codes == ["NOK", "PLN"]
    assert excinfo.value.base == "EUR"


def test_blank_currency_is_an_error() -> None:
    df = pd.DataFrame({"amount": [1.0], "ccy": [None]})
    with pytest.raises(MissingExchangeRate):
        normalize_currency(df, "amount", "ccy", ExchangeRates.from_mapping("EUR", {}))


def test_non_numeric_amount_is_an_invalid_literal() -> None:
    df = pd.DataFrame({"amount": ["1,000", "n/a"], "ccy": ["EUR", "GBP"]}, index=[7, 8])
    rates = ExchangeRates.from_mapping("EUR", {"GBP": 0.8})

    with pytest.raises(InvalidNumericLiteral) as excinfo:
        normalize_currency(df, "amount", "ccy", rates)

    assert excinfo.value.column == "amount"
    assert excinfo.value.row == 8


def test_string_amounts_with_separators_are_converted() -> None:
    df = pd.DataFrame({"amount": ["1,000", "80"], "ccy": ["EUR", "GBP"]})
    out = normalize_currency(df, "amount", "ccy", ExchangeRates.from_mapping("EUR", {"GBP": 0.8}))

    assert out["amount_eur"].tolist() == pytest.approx([1000.0, 100.0])
    assert out["amount"].tolist() == ["1,000", "80"]


def test_empty_table_gets_the_column() -> None:
    df = pd.DataFrame({"amount": pd.Series(dtype=float), "ccy": pd.Series(dtype=object)})
    out = normalize_currency(df, "amount", "ccy", ExchangeRates.from_mapping("EUR", {}))
    assert "amount_eur" in out.columns
    assert out.empty


def test_from_mapping_normalises_codes_and_rejects_non_positive() -> None:
    rates = ExchangeRates.from_mapping("eur", {" usd ": "1.1"})
    assert rates.base == "EUR"
    assert rates.rate_for("USD") == 1.1
    assert rates.rate_for("EUR") == 1.0

    with pytest.raises(ValueError):
        ExchangeRates.from_mapping("EUR", {"USD": 0})


class _FakeResponse:
    def __init__(self, payload, status: int = 200) -> None:
        self._payload = payload
        self.status_code = status

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


def test_fetch_exchange_rates(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = {}

    def fake_get(url, params=None, timeout=None):
        calls.update(url=url, params=params, timeout=timeout)
        return _FakeResponse({"amount": 1.0, "base": "EUR", "date": "2024-05-01", "rates": {"USD": 1.07, "GBP": 0.85}})

    monkeypatch.setattr(currency.requests, "get", fake_get)
    rates = fetch_exchange_rates("EUR", url="https://rates.example/latest", timeout=5)

    assert calls == {"url": "https://rates.example/latest", "params": {"from": "EUR"}, "timeout": 5}
    assert rates.base == "EUR"
    assert rates.rate_for("GBP") == 0.85
    assert rates.rate_for("EUR") == 1.0


@pytest.mark.parametrize(
    "response",
    [
        _FakeResponse({}, status=503),
        _FakeResponse(ValueError("not json")),
        _FakeResponse({"base": "EUR", "rates": {}}),
        _FakeResponse({"base": "USD", "rates": {"EUR": 0.9}}),
    ],
)
def test_fetch_exchange_rates_failures(monkeypatch: pytest.MonkeyPatch, response: _FakeResponse) -> None:
    monkeypatch.setattr(currency.requests, "get", lambda *a, **k: response)
    with pytest.raises(ExchangeRateUnavailable):
        fetch_exchange_rates("EUR")


def test_fetch_exchange_rates_connection_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def boom(*args, **kwargs):
        raise requests.exceptions.ConnectionError("offline")

    monkeypatch.setattr(currency.requests, "get", boom)
    with pytest.raises(ExchangeRateUnavailable) as excinfo:
        fetch_exchange_rates("EUR")
    assert "offline" in str(excinfo.value)
