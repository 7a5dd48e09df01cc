"""Exceptions raised while locating and validating MRMS data."""
from __future__ import annotations


class RadarDataError(Exception):
    """Base class for failures while locating MRMS data."""


class UpstreamUnavailableError(RadarDataError):
    """Raised when the listing or a file cannot be fetched."""

    def __init__(self, url: str, status_code: int | None = None, reason: str = ""):
        detail = f"status {status_code}" if status_code is not None else reason or "request failed"
        super().__init__(f"GET {url} failed: {detail}")
        self.url = url
        self.status_code = status_code


class GribParseError(RadarDataError):
    """Raised when a payload is not a readable GRIB message."""


class ResolutionExhaustedError(RadarDataError):
    """Raised when neither the listing nor the time-windowed probe found a file."""


__all__ = [
    "RadarDataError",
    "UpstreamUnavailableError",
    "GribParseError",
    "ResolutionExhaustedError",
]
