"""Health probe helpers."""
from __future__ import annotations

from typing import Dict

from ..schemas import HealthResponse
from .resolver import ResolverService


class HealthService:
    """Report on the resolver cache without touching upstream providers."""

    def __init__(self, resolver: ResolverService) -> None:
        self._resolver = resolver

    async def probe(self) -> HealthResponse:
        checks: Dict[str, str] = {}

        entry = self._resolver.cache_entry
        if entry is None:
            checks["cache"] = "empty"
        elif self._resolver.is_fresh(entry):
            checks["cache"] = "ok"
        else:
            checks["cache"] = "stale"

        if entry is not None:
            checks["latest"] = entry.reference.timestamp.isoformat()
        checks["refresh"] = "in-flight" if self._resolver.refresh_in_flight else "idle"

        overall = checks["cache"] == "ok"
        return HealthResponse(ok=overall, status="ok" if overall else "error", checks=checks)


__all__ = ["HealthService"]
