"""Client-side radar display: map surface contract, refresh signals and controller."""
from __future__ import annotations

from .controller import FetchFailedError, MapInitError, RadarDisplayController, ViewState
from .events import REFRESH_RADAR, EventBus, RefreshSignal, request_refresh
from .surface import MapFactory, MapSurface, MapViewOptions, TileLayerOptions

__all__ = [
    "RadarDisplayController",
    "ViewState",
    "FetchFailedError",
    "MapInitError",
    "EventBus",
    "RefreshSignal",
    "REFRESH_RADAR",
    "request_refresh",
    "MapFactory",
    "MapSurface",
    "MapViewOptions",
    "TileLayerOptions",
]
