from __future__ import annotations

from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class PipelineConfigModel(BaseModel):
    data_dir: Optional[str] = None
    base_currency: str = "EUR"
    on_invalid: Literal["raise", "coerce"] = "raise"
    thousands: str = ","
    top_n: int = Field(default=10, ge=1, le=200)
    year: Optional[int] = None
    extremum_start: Optional[date] = None
    extremum_end: Optional[date] = None


class SlideMeta(BaseModel):
    name: str
    kind: str
    title: str
    columns: List[str]


class MetaSlidesResponse(BaseModel):
    slides: List[SlideMeta]
