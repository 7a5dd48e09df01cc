"""Resolver health endpoint."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from ..deps import get_health_service
from ..schemas import HealthResponse
from ..services.health import HealthService

router = APIRouter(prefix="/v1", tags=["health"])


@router.get(
    "/healthz",
    response_model=HealthResponse,
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": HealthResponse}},
)
async def healthz(response: Response, service: HealthService = Depends(get_health_service)) -> HealthResponse:
    """Report the MRMS cache state; 503 until a reference has been resolved."""
    report = await service.probe()
    if report.checks.get("cache") == "empty":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return report


__all__ = ["router"]
