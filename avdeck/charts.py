from __future__ import annotations

from typing import Any, Dict, List, Optional

import altair as alt
import pandas as pd

from avdeck.schema import TableSchema

alt.data_transformers.disable_max_rows()


# Columns each chart kind reads; the slide pipelines must hand over exactly these.
CHART_COLUMNS: Dict[str, TableSchema] = {
    "boxplot": TableSchema.of("boxplot", airport_code="string", flights="number"),
    "stacked_bar": TableSchema.of("stacked_bar", country="string", movement="string", flights="number"),
    "scatter": TableSchema.of("scatter", ansp="string", total_cost="number", service_units="number"),
    "timeseries": TableSchema.of("timeseries", date="date", flights="number"),
    "map": TableSchema.of("map", airport_code="string", flights="number", latitude="number", longitude="number"),
    "table": TableSchema.of("table"),
}


def _build_chart(kind: str, df: pd.DataFrame) -> Optional[alt.TopLevelMixin]:
    if kind == "boxplot":
        return alt.Chart(df).mark_boxplot().encode(x="airport_code:N", y="flights:Q")
    if kind == "stacked_bar":
        return alt.Chart(df).mark_bar().encode(x="country:N", y=alt.Y("flights:Q", stack="zero"), color="movement:N")
    if kind == "scatter":
        return alt.Chart(df).mark_point().encode(x="service_units:Q", y="total_cost:Q", tooltip=["ansp"])
    if kind == "timeseries":
        line = alt.Chart(df).mark_line().encode(x="date:T", y="flights:Q")
        if "marker" in df.columns:
            points = alt.Chart(df[df["marker"].notna()]).mark_point().encode(x="date:T", y="flights:Q", color="marker:N")
            return line + points
        return line
    if kind == "map":
        return alt.Chart(df).mark_circle().encode(longitude="longitude:Q", latitude="latitude:Q", size="flights:Q")
    return None


def to_vega_spec(kind: str, df: pd.DataFrame) -> Optional[Dict[str, Any]]:
    """Check ``df`` against the chart contract and return a Vega-Lite spec dict (JSON-serializable)."""
    if kind not in CHART_COLUMNS:
        raise ValueError(f"Unknown chart kind: {kind}")
    CHART_COLUMNS[kind].validate(df)
    chart = _build_chart(kind, df)
    if chart is None:
        return None
    return chart.to_dict()


def chart_columns(kind: str) -> List[str]:
    return CHART_COLUMNS[kind].names
