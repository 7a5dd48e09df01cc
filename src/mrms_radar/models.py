"""Domain records for resolved MRMS datasets and the resolver cache."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class BoundingBox:
    lat_min: float
    lat_max: float
    lon_min: float
    lon_max: float

    def to_bounds(self) -> dict[str, float]:
        """Return the north/south/east/west form used on the wire."""
        return {
            "north": self.lat_max,
            "south": self.lat_min,
            "east": self.lon_max,
            "west": self.lon_min,
        }


@dataclass(frozen=True)
class DatasetReference:
    """One resolved RALA file: when it was valid, where it lives, what it covers."""

    timestamp: datetime
    source_file_url: str
    bounding_box: BoundingBox
    grib_edition: int | None = None


@dataclass(frozen=True)
class CacheEntry:
    reference: DatasetReference
    fetched_at: datetime


__all__ = ["BoundingBox", "DatasetReference", "CacheEntry"]
