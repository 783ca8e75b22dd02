from __future__ import annotations

import logging
import math
from typing import Optional, Tuple

import numpy as np
import pandas as pd
from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import MetaSlidesResponse, PipelineConfigModel, SlideMeta
from avdeck.charts import chart_columns, to_vega_spec
from avdeck.config import PipelineConfig, normalize_config
from avdeck.currency import ExchangeRates, fetch_exchange_rates
from avdeck.errors import SourceNotFound, UnknownSlide
from avdeck.slides import SLIDES, Slide, build_slide, get_slide, load_deck_data


app = FastAPI(title="Aviation Deck Data API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _config_from_model(model: PipelineConfigModel) -> PipelineConfig:
    raw = model.model_dump()
    return normalize_config(raw)


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                type(pd.NaT): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.date().isoformat() if ts == ts.normalize() else ts.isoformat(),
            },
        )
    )


def _error(exc: Exception) -> JSONResponse:
    status = 404 if isinstance(exc, (UnknownSlide, SourceNotFound)) else 500
    return JSONResponse(status_code=status, content={"error": str(exc), "type": type(exc).__name__})


def _prepare(name: str, config: PipelineConfig) -> Tuple[Slide, pd.DataFrame]:
    slide = get_slide(name)
    data_ctx = load_deck_data(config)
    rates: Optional[ExchangeRates] = None
    if slide.needs_rates:
        rates = fetch_exchange_rates(config.base_currency, config.rates_url, config.rates_timeout)
    return slide, build_slide(name, data_ctx, config, rates)


@app.get("/meta/slides", response_model=MetaSlidesResponse)
def meta_slides():
    slides = [
        SlideMeta(name=s.name, kind=s.kind, title=s.title, columns=chart_columns(s.kind))
        for s in SLIDES.values()
    ]
    return MetaSlidesResponse(slides=slides)


@app.post("/slides/{name}")
def slide(name: str, config: PipelineConfigModel):
    try:
        cfg = _config_from_model(config)
        meta, df = _prepare(name, cfg)
        return _json(
            {
                "slide": meta.name,
                "kind": meta.kind,
                "title": meta.title,
                "columns": [str(c) for c in df.columns],
                "records": df.to_dict(orient="records"),
                "chart": to_vega_spec(meta.kind, df),
            }
        )
    except Exception as exc:
        logger.exception("slide %s failed", name)
        return _error(exc)


@app.post("/export/{name}")
def export_slide(name: str, config: PipelineConfigModel):
    try:
        cfg = _config_from_model(config)
        meta, df = _prepare(name, cfg)
    except Exception as exc:
        logger.exception("export %s failed", name)
        return _error(exc)

    filename = f"{meta.name}.csv"
    csv_bytes = df.to_csv(index=False).encode("utf-8")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})
