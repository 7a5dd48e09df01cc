"""Radar tile endpoint backed by the MRMS resolver cache."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..config import Settings
from ..deps import get_resolver_service, get_settings
from ..errors import RadarDataError
from ..models import DatasetReference
from ..schemas import RadarDataResponse, RadarErrorResponse
from ..services.resolver import ResolverService, utcnow
from ..services.tiles import build_radar_payload

router = APIRouter(prefix="/api", tags=["radar"])

logger = logging.getLogger(__name__)


@router.get(
    "/radar-data",
    response_model=RadarDataResponse,
    responses={500: {"model": RadarErrorResponse}},
)
async def radar_data(
    settings: Settings = Depends(get_settings),
    resolver: ResolverService = Depends(get_resolver_service),
):
    """Return the radar tile template and the freshest MRMS timestamp.

    Resolution failures degrade to the secondary tile source; only a fault
    while building the payload produces a 500.
    """
    try:
        reference: DatasetReference | None = None
        try:
            reference = await resolver.resolve()
        except RadarDataError as exc:
            logger.info("MRMS data unavailable (%s), using secondary radar tile service", exc)
        return build_radar_payload(reference, settings, now=utcnow())
    except Exception as exc:  # noqa: BLE001 - surfaced as a 500 payload
        logger.exception("Radar data request failed")
        body = RadarErrorResponse(
            error=str(exc) or "Unknown error occurred",
            message="Failed to fetch radar data.",
        )
        return JSONResponse(status_code=500, content=body.model_dump())


__all__ = ["router"]
