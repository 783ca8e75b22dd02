from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import pandas as pd

from avdeck.config import PipelineConfig
from avdeck.currency import ExchangeRates, normalize_currency
from avdeck.data import DelimitedSource, SheetSource, Source, coerce_str_safe, file_signature, load_source
from avdeck.errors import UnknownSlide
from avdeck.relational import aggregate, left_join
from avdeck.schema import TableSchema
from avdeck.stats import extremum_markers, ratio
from avdeck.transforms import Selection, coerce_dates, coerce_numeric, equals, filter_rows, select_columns


logger = logging.getLogger(__name__)

AIRPORT_TRAFFIC_CSV = "airport_traffic.csv"
AIRPORTS_CSV = "airports.csv"
ACE_XLSX = "ace_benchmarking.xlsx"
NETWORK_XLSX = "network_traffic.xlsx"

ACE_SHEET_NAME = "ANSP costs"
ACE_RANGE = "A5:F45"
NETWORK_SHEET_NAME = "Daily"
NETWORK_SKIP_ROWS = 3


# ---------------- Declared schemas ----------------
TRAFFIC_SCHEMA = TableSchema.of(
    "airport_traffic",
    date="date",
    airport_code="string",
    airport_name="string",
    country="string",
    departures="number",
    arrivals="number",
    flights="number",
)
AIRPORTS_SCHEMA = TableSchema.of("airports", icao="string", latitude="number", longitude="number")
ACE_SCHEMA = TableSchema.of(
    "ace_costs",
    ansp="string",
    currency="string",
    total_cost_local="number",
    service_units="number",
)
NETWORK_SCHEMA = TableSchema.of("network_traffic", date="date", flights="number")

TRAFFIC_SELECTION: Selection = [
    ("FLT_DATE", "date"),
    ("APT_ICAO", "airport_code"),
    ("APT_NAME", "airport_name"),
    ("STATE_NAME", "country"),
    ("FLT_DEP_1", "departures"),
    ("FLT_ARR_1", "arrivals"),
    ("FLT_TOT_1", "flights"),
]
AIRPORTS_SELECTION: Selection = [("ident", "icao"), ("latitude_deg", "latitude"), ("longitude_deg", "longitude")]
# The ACE sheet headers are multi-line labels that change between editions; address by position.
ACE_SELECTION: Selection = [(0, "ansp"), (2, "currency"), (3, "total_cost_local"), (5, "service_units")]
NETWORK_SELECTION: Selection = [(0, "date"), (1, "flights")]


@dataclass(frozen=True)
class DeckSources:
    airport_traffic: DelimitedSource
    airports: DelimitedSource
    ace: SheetSource
    network: SheetSource

    def all(self) -> List[Source]:
        return [self.airport_traffic, self.airports, self.ace, self.network]


def default_sources(data_dir: Path) -> DeckSources:
    data_dir = Path(data_dir)
    return DeckSources(
        airport_traffic=DelimitedSource(data_dir / AIRPORT_TRAFFIC_CSV, delimiter=","),
        airports=DelimitedSource(data_dir / AIRPORTS_CSV, delimiter=";", skip_rows=1),
        ace=SheetSource(data_dir / ACE_XLSX, sheet=ACE_SHEET_NAME, cell_range=ACE_RANGE),
        network=SheetSource(
            data_dir / NETWORK_XLSX,
            sheet=NETWORK_SHEET_NAME,
            skip_rows=NETWORK_SKIP_ROWS,
            names=("date", "flights", "flights_prev_year"),
        ),
    )


# ---------------- Normalisation ----------------
def normalize_table(raw: pd.DataFrame, selection: Selection, schema: TableSchema, config: PipelineConfig) -> pd.DataFrame:
    df = select_columns(raw, selection)
    df = coerce_str_safe(df, schema.columns_of("string"))
    df = coerce_numeric(df, schema.columns_of("number"), thousands=config.thousands, on_invalid=config.on_invalid)
    df = coerce_dates(df, schema.columns_of("date"), on_invalid=config.on_invalid)
    return schema.conform(df)


def prepare_traffic(raw: pd.DataFrame, config: PipelineConfig) -> pd.DataFrame:
    df = normalize_table(raw, TRAFFIC_SELECTION, TRAFFIC_SCHEMA, config)
    df = df.dropna(subset=["airport_code"]).reset_index(drop=True)
    df["year"] = df["date"].dt.year.astype("Int64")
    return df


def prepare_airports(raw: pd.DataFrame, config: PipelineConfig) -> pd.DataFrame:
    df = normalize_table(raw, AIRPORTS_SELECTION, AIRPORTS_SCHEMA, config)
    df["icao"] = df["icao"].str.upper()
    return df.dropna(subset=["icao"]).reset_index(drop=True)


def prepare_ace(raw: pd.DataFrame, config: PipelineConfig) -> pd.DataFrame:
    df = normalize_table(raw, ACE_SELECTION, ACE_SCHEMA, config)
    return df.dropna(subset=["ansp"]).reset_index(drop=True)


def prepare_network(raw: pd.DataFrame, config: PipelineConfig) -> pd.DataFrame:
    df = normalize_table(raw, NETWORK_SELECTION, NETWORK_SCHEMA, config)
    return df.dropna(subset=["date"]).sort_values("date", kind="stable").reset_index(drop=True)


# ---------------- Slide pipelines ----------------
def _traffic_for_year(traffic: pd.DataFrame, config: PipelineConfig) -> pd.DataFrame:
    TRAFFIC_SCHEMA.validate(traffic)
    if config.year is None:
        return traffic
    if "year" not in traffic.columns:
        traffic = traffic.assign(year=pd.to_datetime(traffic["date"]).dt.year)
    return filter_rows(traffic, equals("year", config.year))


def _with_airport_labels(totals: pd.DataFrame, traffic: pd.DataFrame) -> pd.DataFrame:
    """Attach the first non-null name and country per airport code."""
    labels = traffic.groupby("airport_code", sort=False)[["airport_name", "country"]].first().reset_index()
    return left_join(totals, labels, "airport_code")


def airport_daily_flights(traffic: pd.DataFrame, config: PipelineConfig) -> pd.DataFrame:
    """Daily flights of the busiest airports, one row per airport-day (box plot)."""
    df = _traffic_for_year(traffic, config)
    top = aggregate(df, "airport_code", ["flights"], sort_by="flights", top_n=config.top_n)
    df = df[df["airport_code"].isin(top["airport_code"])]
    rank = {code: i for i, code in enumerate(top["airport_code"])}
    df = df.assign(_rank=df["airport_code"].map(rank)).sort_values(["_rank", "date"], kind="stable")
    return df[["airport_code", "airport_name", "date", "flights"]].reset_index(drop=True)


def country_movements(traffic: pd.DataFrame, config: PipelineConfig) -> pd.DataFrame:
    """Departures and arrivals of the top-N countries by total flights (stacked bar)."""
    df = _traffic_for_year(traffic, config)
    totals = aggregate(df, "country", ["departures", "arrivals", "flights"], sort_by="flights", top_n=config.top_n)
    long = totals.melt(
        id_vars=["country", "flights"],
        value_vars=["departures", "arrivals"],
        var_name="movement",
        value_name="movement_flights",
    )
    order = {c: i for i, c in enumerate(totals["country"])}
    long = long.assign(_rank=long["country"].map(order)).sort_values(["_rank", "movement"], kind="stable")
    long = long.drop(columns=["flights", "_rank"]).rename(columns={"movement_flights": "flights"})
    return long[["country", "movement", "flights"]].reset_index(drop=True)


def ansp_costs(ace: pd.DataFrame, rates: ExchangeRates, config: PipelineConfig) -> pd.DataFrame:
    """ANSP total costs in the base currency against service units (scatter)."""
    ACE_SCHEMA.validate(ace)
    df = normalize_currency(ace, "total_cost_local", "currency", rates, out_col="total_cost")
    df = ratio(df, "total_cost", "service_units", "cost_per_unit")
    df["base_currency"] = rates.base
    return df[["ansp", "currency", "total_cost_local", "total_cost", "service_units", "cost_per_unit", "base_currency"]]


def network_traffic(network: pd.DataFrame, config: PipelineConfig) -> pd.DataFrame:
    """Daily network flights with min/max markers inside the configured window (time series)."""
    NETWORK_SCHEMA.validate(network)
    markers = extremum_markers(
        network,
        "flights",
        date_col="date",
        start=config.extremum_start,
        end=config.extremum_end,
    )
    if markers.empty:
        return network.assign(marker=None)[["date", "flights", "marker"]]
    per_date = markers.groupby("date", sort=False)["marker"].agg("/".join).reset_index()
    df = left_join(network, per_date, "date")
    return df[["date", "flights", "marker"]]


def airport_map(traffic: pd.DataFrame, airports: pd.DataFrame, config: PipelineConfig) -> pd.DataFrame:
    """Total flights per airport with coordinates; airports missing from the reference keep null coordinates."""
    AIRPORTS_SCHEMA.validate(airports)
    df = _traffic_for_year(traffic, config)
    totals = aggregate(df, "airport_code", ["flights"], sort_by="flights")
    totals = _with_airport_labels(totals, df)
    joined = left_join(totals, airports, "airport_code", "icao")
    missing = int(joined["latitude"].isna().sum())
    if missing:
        logger.warning("%d airport(s) have no coordinates in the reference table", missing)
    return joined[["airport_code", "airport_name", "flights", "latitude", "longitude"]]


def airport_table(traffic: pd.DataFrame, config: PipelineConfig) -> pd.DataFrame:
    df = _traffic_for_year(traffic, config)
    totals = aggregate(df, "airport_code", ["departures", "arrivals", "flights"], sort_by="flights", top_n=config.top_n)
    totals = _with_airport_labels(totals, df)
    totals = totals[["airport_code", "airport_name", "country", "departures", "arrivals", "flights"]]
    totals.insert(0, "rank", totals.index + 1)
    return totals


@dataclass(frozen=True)
class Slide:
    name: str
    kind: str
    title: str
    build: Callable[[Dict[str, pd.DataFrame], Optional[ExchangeRates], PipelineConfig], pd.DataFrame]
    needs_rates: bool = False


SLIDES: Dict[str, Slide] = {
    s.name: s
    for s in [
        Slide(
            "airport_daily_flights",
            "boxplot",
            "Daily flights at the busiest airports",
            lambda ctx, rates, cfg: airport_daily_flights(ctx["traffic"], cfg),
        ),
        Slide(
            "country_movements",
            "stacked_bar",
            "Departures and arrivals by country",
            lambda ctx, rates, cfg: country_movements(ctx["traffic"], cfg),
        ),
        Slide(
            "ansp_costs",
            "scatter",
            "ANSP costs versus service units",
            lambda ctx, rates, cfg: ansp_costs(ctx["ace"], rates, cfg),  # type: ignore[arg-type]
            needs_rates=True,
        ),
        Slide(
            "network_traffic",
            "timeseries",
            "Daily network traffic",
            lambda ctx, rates, cfg: network_traffic(ctx["network"], cfg),
        ),
        Slide(
            "airport_map",
            "map",
            "Airport traffic map",
            lambda ctx, rates, cfg: airport_map(ctx["traffic"], ctx["airports"], cfg),
        ),
        Slide(
            "airport_table",
            "table",
            "Busiest airports",
            lambda ctx, rates, cfg: airport_table(ctx["traffic"], cfg),
        ),
    ]
}


def get_slide(name: str) -> Slide:
    slide = SLIDES.get(name)
    if slide is None:
        raise UnknownSlide(name)
    return slide


# ---------------- Public API ----------------
@lru_cache(maxsize=4)
def _load_deck_data_cached(
    files_sig: Tuple[Tuple[str, float], ...],
    sources: DeckSources,
    config: PipelineConfig,
) -> Dict[str, pd.DataFrame]:
    return {
        "traffic": prepare_traffic(load_source(sources.airport_traffic), config),
        "airports": prepare_airports(load_source(sources.airports), config),
        "ace": prepare_ace(load_source(sources.ace), config),
        "network": prepare_network(load_source(sources.network), config),
    }


def load_deck_data(config: PipelineConfig, sources: Optional[DeckSources] = None) -> Dict[str, pd.DataFrame]:
    sources = sources or default_sources(config.data_dir)
    sig = file_signature(Path(s.path) for s in sources.all())
    data_ctx = _load_deck_data_cached(sig, sources, config)
    # Callers get their own frames; the cached ones stay untouched.
    return {name: df.copy() for name, df in data_ctx.items()}


def build_slide(
    name: str,
    data_ctx: Dict[str, pd.DataFrame],
    config: PipelineConfig,
    rates: Optional[ExchangeRates] = None,
) -> pd.DataFrame:
    slide = get_slide(name)
    if slide.needs_rates and rates is None:
        raise ValueError(f"Slide {name} needs an exchange-rate table")
    df = slide.build(data_ctx, rates, config)
    logger.info("Prepared slide %s: %d rows", name, len(df))
    return df


def build_slides(
    data_ctx: Dict[str, pd.DataFrame],
    config: PipelineConfig,
    rates: Optional[ExchangeRates] = None,
) -> Dict[str, pd.DataFrame]:
    return {name: build_slide(name, data_ctx, config, rates) for name in SLIDES}
