"""Pydantic models shared across routers."""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    service: Literal["mrms-radar"] = "mrms-radar"
    status: Literal["ok", "error"] = "ok"
    ok: bool = True
    checks: dict[str, str] = Field(default_factory=dict)


class Bounds(BaseModel):
    north: float
    south: float
    east: float
    west: float


class RadarDataResponse(BaseModel):
    success: Literal[True] = True
    timestamp: str = Field(description="ISO-8601 UTC instant with millisecond precision.")
    tile_url: str = Field(description="Slippy-map template containing {z}/{x}/{y} placeholders.")
    source: str
    coverage: str
    bounds: Bounds


class RadarErrorResponse(BaseModel):
    success: Literal[False] = False
    error: str
    message: str


__all__ = [
    "HealthResponse",
    "Bounds",
    "RadarDataResponse",
    "RadarErrorResponse",
]
