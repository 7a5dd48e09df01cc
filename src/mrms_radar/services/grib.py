"""Minimal GRIB2 payload inspection.

Only the indicator section (section 0) is read: the ``GRIB`` marker and the
edition byte. Grid definition and data sections are never decoded, so the
bounding box attached to the result is the configured CONUS extent rather
than anything taken from the file.
"""
from __future__ import annotations

import gzip
import logging
import zlib
from dataclasses import dataclass

from ..errors import GribParseError
from ..models import BoundingBox

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b\x08"
GRIB_MARKER = b"GRIB"
_EDITION_OFFSET = 7


@dataclass(frozen=True)
class GribMetadata:
    bounding_box: BoundingBox
    edition: int | None = None


def is_gzip(payload: bytes) -> bool:
    return payload[:3] == GZIP_MAGIC


def inspect_grib2(payload: bytes, bounding_box: BoundingBox) -> GribMetadata:
    """Validate a (possibly gzipped) GRIB payload and return its metadata."""
    buffer = payload
    if is_gzip(payload):
        try:
            buffer = gzip.decompress(payload)
        except (OSError, EOFError, zlib.error) as exc:
            raise GribParseError(f"Corrupt gzip stream: {exc}") from exc

    if buffer[:4] != GRIB_MARKER:
        raise GribParseError("Invalid GRIB2 file")

    edition = buffer[_EDITION_OFFSET] if len(buffer) > _EDITION_OFFSET else None
    if edition is not None and edition != 2:
        logger.warning("Unexpected GRIB edition %s; continuing with assumed CONUS bounds", edition)

    return GribMetadata(bounding_box=bounding_box, edition=edition)


__all__ = ["GribParseError", "GribMetadata", "inspect_grib2", "is_gzip", "GZIP_MAGIC", "GRIB_MARKER"]
