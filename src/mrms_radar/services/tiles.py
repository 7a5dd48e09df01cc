"""Translate a resolved MRMS reference into the tile payload served to clients.

The GRIB content itself is never rendered. Whichever path is taken, the tile
template points at the secondary NEXRAD mosaic; only the timestamp and source
label reveal whether MRMS resolution succeeded.
"""
from __future__ import annotations

from datetime import datetime, timezone

from ..config import Settings
from ..models import DatasetReference
from ..schemas import Bounds, RadarDataResponse


def format_timestamp(value: datetime) -> str:
    """Render an instant as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return f"{value:%Y-%m-%dT%H:%M:%S}.{value.microsecond // 1000:03d}Z"


def build_radar_payload(
    reference: DatasetReference | None,
    settings: Settings,
    *,
    now: datetime,
) -> RadarDataResponse:
    if reference is not None:
        timestamp, source = reference.timestamp, settings.primary_source_label
    else:
        timestamp, source = now, settings.secondary_source_label

    return RadarDataResponse(
        timestamp=format_timestamp(timestamp),
        tile_url=settings.tile_url_template,
        source=source,
        coverage=settings.coverage,
        bounds=Bounds(**settings.bounding_box.to_bounds()),
    )


__all__ = ["build_radar_payload", "format_timestamp"]
