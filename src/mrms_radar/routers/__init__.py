"""Router collection for the MRMS radar API."""
from __future__ import annotations

from . import health, radar  # type: ignore

__all__ = ["health", "radar"]
