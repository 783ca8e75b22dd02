"""Shared fixtures: small on-disk copies of every deck source."""

from __future__ import annotations

import csv
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Dict, List

import pytest
from openpyxl import Workbook

from avdeck.config import normalize_config
from avdeck.currency import ExchangeRates
from avdeck.slides import ACE_SHEET_NAME, ACE_XLSX, AIRPORT_TRAFFIC_CSV, AIRPORTS_CSV, NETWORK_SHEET_NAME, NETWORK_XLSX

# code, name, country, daily departures in 2019
AIRPORTS = [
    ("EGLL", "London Heathrow", "United Kingdom", 650),
    ("LFPG", "Paris-Charles-de-Gaulle", "France", 700),
    ("EHAM", "Amsterdam Schiphol", "Netherlands", 725),
    ("EDDF", "Frankfurt", "Germany", 600),
    ("LEMD", "Madrid Barajas", "Spain", 500),
    ("LFPO", "Paris Orly", "France", 300),
    ("ZZZZ", "Test Field", "Testland", 3),
]
COORDINATES = {
    "EGLL": (51.4706, -0.461941),
    "LFPG": (49.012798, 2.55),
    "EHAM": (52.308601, 4.76389),
    "EDDF": (50.033333, 8.570556),
    "LEMD": (40.471926, -3.56264),
    "LFPO": (48.7233, 2.37944),
}
TRAFFIC_DATES = [date(2019, 1, d) for d in (1, 2, 3)] + [date(2020, 1, d) for d in (1, 2, 3)]

ACE_ROWS = 40
ACE_CURRENCIES = {5: "GBP", 12: "CHF", 27: "SEK"}

NETWORK_FLIGHTS = [25000, 27000, 31000, 31000, 12000, 9000, 9000, 15000]
NETWORK_START = date(2020, 3, 1)


def traffic_records() -> List[Dict[str, object]]:
    records = []
    for day in TRAFFIC_DATES:
        shrink = 0 if day.year == 2019 else 100
        for code, name, country, base in AIRPORTS:
            dep = max(base - shrink, 1) + day.day
            arr = max(base - shrink, 1)
            records.append(
                {
                    "YEAR": day.year,
                    "MONTH_NUM": day.month,
                    "FLT_DATE": day.isoformat(),
                    "APT_ICAO": code,
                    "APT_NAME": name,
                    "STATE_NAME": country,
                    "FLT_DEP_1": f"{dep:,}",
                    "FLT_ARR_1": f"{arr:,}",
                    "FLT_TOT_1": f"{dep + arr:,}",
                }
            )
    return records


def write_traffic_csv(path: Path) -> Path:
    records = traffic_records()
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=list(records[0].keys()))
        writer.writeheader()
        writer.writerows(records)
    return path


def write_airports_csv(path: Path) -> Path:
    lines = ["Airport reference extract", "ident;name;latitude_deg;longitude_deg;iso_country"]
    for code, (lat, lon) in COORDINATES.items():
        lines.append(f"{code};{code} airport;{lat};{lon};XX")
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def write_ace_xlsx(path: Path) -> Path:
    wb = Workbook()
    ws = wb.active
    ws.title = ACE_SHEET_NAME
    ws["A1"] = "ATM cost-effectiveness benchmarking"
    ws["A2"] = "Costs in nominal national currency"
    ws.append([])
    ws.append([])
    ws.append(["ANSP", "State", "Currency", "Total ATM/CNS costs", "Year", "Composite flight-hours"])
    for i in range(1, ACE_ROWS + 1):
        cost = i * 10000
        ws.append(
            [
                f"ANSP {i:02d}",
                f"State {i:02d}",
                ACE_CURRENCIES.get(i, "EUR"),
                f"{cost:,}" if i % 2 else cost,
                2022,
                i * 100,
            ]
        )
    notes = wb.create_sheet("Notes")
    notes["A1"] = "free text"
    wb.save(path)
    return path


def write_network_xlsx(path: Path) -> Path:
    wb = Workbook()
    ws = wb.active
    ws.title = NETWORK_SHEET_NAME
    ws.append(["Daily network traffic"])
    ws.append(["IFR flights per day"])
    ws.append(["Day", "Flights", "Flights (2019)"])
    for offset, flights in enumerate(NETWORK_FLIGHTS):
        day = NETWORK_START + timedelta(days=offset)
        first_cell = datetime(day.year, day.month, day.day) if offset % 2 else day.isoformat()
        ws.append([first_cell, flights, 30000])
    wb.save(path)
    return path


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    write_traffic_csv(tmp_path / AIRPORT_TRAFFIC_CSV)
    write_airports_csv(tmp_path / AIRPORTS_CSV)
    write_ace_xlsx(tmp_path / ACE_XLSX)
    write_network_xlsx(tmp_path / NETWORK_XLSX)
    return tmp_path


@pytest.fixture
def config(data_dir: Path):
    return normalize_config({"data_dir": data_dir, "top_n": 3, "year": 2019})


@pytest.fixture
def rates() -> ExchangeRates:
    return ExchangeRates.from_mapping("EUR", {"GBP": 0.8, "CHF": 0.5, "SEK": 10.0, "USD": 1.1})
