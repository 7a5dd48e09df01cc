"""Abstract map surface driven by the display controller.

Rendering is left to whatever implements :class:`MapSurface` (a Leaflet
bridge, a desktop widget, a test fake). The controller only creates the
surface, adds and removes tile layers, and releases it.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Protocol


@dataclass(frozen=True)
class MapViewOptions:
    center: tuple[float, float]
    zoom: int
    prefer_canvas: bool = True


@dataclass(frozen=True)
class TileLayerOptions:
    url: str
    attribution: str = ""
    opacity: float = 1.0
    min_zoom: int = 0
    max_zoom: int = 19
    class_name: str = ""


class MapSurface(Protocol):
    def add_tile_layer(self, options: TileLayerOptions) -> Any:
        """Add a layer and return an opaque handle for later removal."""

    def remove_layer(self, layer: Any) -> None:
        ...

    def remove(self) -> None:
        """Release the surface and everything attached to it."""


MapFactory = Callable[[MapViewOptions], MapSurface]


__all__ = ["MapViewOptions", "TileLayerOptions", "MapSurface", "MapFactory"]
