"""Radar overlay controller: owns the map, the refresh loop and the view state."""
from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Literal

import httpx

from ..config import DisplaySettings
from .events import REFRESH_RADAR, EventBus, RefreshSignal
from .surface import MapFactory, MapSurface, MapViewOptions, TileLayerOptions

logger = logging.getLogger(__name__)

MAP_INIT_FAILED_MESSAGE = "Failed to load map library"
FETCH_FAILED_MESSAGE = "Failed to fetch radar data"


class FetchFailedError(Exception):
    """Raised when the radar-data endpoint cannot supply a tile template."""


class MapInitError(Exception):
    """Raised when the map surface or its basemap cannot be created."""


@dataclass
class ViewState:
    phase: Literal["initializing", "ready"] = "initializing"
    last_update: str | None = None
    is_loading: bool = False
    error_message: str | None = None
    data_age_seconds: int = 0

    @property
    def has_error(self) -> bool:
        return self.error_message is not None


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class RadarDisplayController:
    """Drive a :class:`MapSurface` with a periodically refreshed radar overlay.

    ``mount`` creates the map and basemap, performs one fetch, then installs
    the refresh interval, the data-age tick and the ``refresh-radar``
    listener. Triggers may overlap; each fetch carries a sequence number and
    a response older than the latest settled fetch (applied or failed) is
    discarded. A failed fetch never removes a working overlay.
    """

    def __init__(
        self,
        map_factory: MapFactory,
        *,
        settings: DisplaySettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        bus: EventBus | None = None,
        on_last_update_change: Callable[[str], None] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings or DisplaySettings()
        self._map_factory = map_factory
        self._transport = transport
        self._bus = bus or EventBus()
        self._on_last_update_change = on_last_update_change
        self._clock = clock or _utcnow

        self.state = ViewState()
        self._map: MapSurface | None = None
        self._overlay: Any = None
        self._issued = 0
        self._settled = 0
        self._mounted = False
        self._listening = False
        self._interval_task: asyncio.Task[None] | None = None
        self._age_task: asyncio.Task[None] | None = None

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def overlay(self) -> Any:
        return self._overlay

    async def mount(self) -> None:
        self._mounted = True
        try:
            self._init_map()
        except MapInitError as exc:
            logger.error("Failed to initialize map: %s", exc)
            try:
                self._release_map()
            except Exception:  # noqa: BLE001
                logger.exception("Failed to release partially initialized map")
            self.state.phase = "ready"
            self.state.error_message = MAP_INIT_FAILED_MESSAGE
            return

        await self.refresh()
        if not self._mounted:
            # unmounted while the first fetch was in flight
            return

        self._interval_task = asyncio.create_task(self._run_interval(), name="radar-refresh-interval")
        self._age_task = asyncio.create_task(self._run_age_tick(), name="radar-age-tick")
        self._bus.subscribe(REFRESH_RADAR, self._handle_refresh_signal)
        self._listening = True

    def _init_map(self) -> None:
        settings = self._settings
        try:
            self._map = self._map_factory(
                MapViewOptions(center=(settings.center_lat, settings.center_lon), zoom=settings.zoom)
            )
            self._map.add_tile_layer(
                TileLayerOptions(
                    url=settings.basemap_url,
                    attribution=settings.basemap_attribution,
                    max_zoom=19,
                    class_name="grayscale",
                )
            )
        except Exception as exc:  # noqa: BLE001 - any map backend failure
            raise MapInitError(str(exc) or type(exc).__name__) from exc

    async def refresh(self) -> bool:
        """Fetch the current tile template and swap the overlay.

        Returns True when this call's result was applied to the map.
        """
        if self._map is None:
            return False

        self._issued += 1
        seq = self._issued
        self.state.is_loading = True
        self.state.error_message = None
        try:
            payload = await self._fetch_payload()
            if seq < self._settled or self._map is None:
                logger.debug("Discarding radar response %d; %d already settled", seq, self._settled)
                return False
            self._apply(payload)
            self._settled = seq
            return True
        except (FetchFailedError, MapInitError) as exc:
            if seq > self._settled:
                self._settled = seq
                logger.warning("Radar refresh failed: %s", exc)
                self.state.error_message = str(exc) or "Unknown error"
            return False
        finally:
            self.state.phase = "ready"
            if seq == self._issued:
                self.state.is_loading = False

    async def _fetch_payload(self) -> dict[str, Any]:
        async with httpx.AsyncClient(
            timeout=self._settings.http_timeout_seconds,
            transport=self._transport,
        ) as client:
            try:
                response = await client.get(self._settings.radar_data_url)
            except httpx.HTTPError as exc:
                raise FetchFailedError(FETCH_FAILED_MESSAGE) from exc

        if response.is_error:
            raise FetchFailedError(FETCH_FAILED_MESSAGE)
        try:
            data = response.json()
        except ValueError as exc:
            raise FetchFailedError("Malformed radar data response") from exc
        if not isinstance(data, dict):
            raise FetchFailedError("Malformed radar data response")
        if data.get("error"):
            raise FetchFailedError(str(data["error"]))
        return data

    def _apply(self, payload: dict[str, Any]) -> None:
        tile_url = payload.get("tile_url")
        if not tile_url:
            return
        settings = self._settings
        try:
            if self._overlay is not None:
                self._map.remove_layer(self._overlay)
                self._overlay = None
            self._overlay = self._map.add_tile_layer(
                TileLayerOptions(
                    url=tile_url,
                    opacity=settings.overlay_opacity,
                    min_zoom=settings.overlay_min_zoom,
                    max_zoom=settings.overlay_max_zoom,
                )
            )
        except Exception as exc:  # noqa: BLE001 - surfaced in the view state
            raise MapInitError(f"Failed to install radar layer: {exc}") from exc

        self.state.last_update = payload.get("timestamp")
        self._tick_age()
        if self._on_last_update_change is not None and self.state.last_update:
            self._on_last_update_change(self.state.last_update)

    def _tick_age(self) -> None:
        if not self.state.last_update:
            return
        try:
            delta = self._clock() - _parse_timestamp(self.state.last_update)
        except ValueError:
            logger.warning("Unparseable radar timestamp %r", self.state.last_update)
            return
        self.state.data_age_seconds = math.floor(delta.total_seconds())

    def _handle_refresh_signal(self, signal: RefreshSignal | None):
        logger.info("Manual radar refresh requested at %s", getattr(signal, "timestamp", None))
        return self.refresh()

    async def _run_interval(self) -> None:
        while True:
            await asyncio.sleep(self._settings.refresh_interval_seconds)
            if self._map is not None:
                await self.refresh()

    async def _run_age_tick(self) -> None:
        while True:
            await asyncio.sleep(self._settings.age_tick_seconds)
            self._tick_age()

    async def unmount(self) -> list[BaseException]:
        """Cancel timers, drop the listener and release the map.

        Every step runs even when an earlier one fails; failures are logged
        and returned.
        """
        self._mounted = False
        errors: list[BaseException] = []
        try:
            await self._cancel_timers()
        except Exception as exc:  # noqa: BLE001
            logger.exception("Failed to cancel radar timers")
            errors.append(exc)
        finally:
            try:
                self._stop_listening()
            except Exception as exc:  # noqa: BLE001
                logger.exception("Failed to remove refresh listener")
                errors.append(exc)
            finally:
                try:
                    self._release_map()
                except Exception as exc:  # noqa: BLE001
                    logger.exception("Failed to release map")
                    errors.append(exc)
        return errors

    async def _cancel_timers(self) -> None:
        tasks = [task for task in (self._interval_task, self._age_task) if task is not None]
        self._interval_task = self._age_task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _stop_listening(self) -> None:
        if self._listening:
            self._listening = False
            self._bus.unsubscribe(REFRESH_RADAR, self._handle_refresh_signal)

    def _release_map(self) -> None:
        surface, self._map, self._overlay = self._map, None, None
        if surface is not None:
            surface.remove()


__all__ = [
    "RadarDisplayController",
    "ViewState",
    "FetchFailedError",
    "MapInitError",
    "MAP_INIT_FAILED_MESSAGE",
    "FETCH_FAILED_MESSAGE",
]
