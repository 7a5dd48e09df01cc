"""Configuration models for the MRMS radar service and display controller."""
from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import BoundingBox


def _discover_env_file() -> Path | None:
    """Discover the .env file in the nearest config directory."""
    here = Path(__file__).resolve()
    for candidate in here.parents:
        maybe = candidate / "config" / ".env"
        if maybe.exists():
            return maybe
    return None


_ENV_FILE = _discover_env_file()


class Settings(BaseSettings):
    """Load resolver configuration from environment variables or `.env`."""

    api_title: str = Field(default="MRMS Radar API", alias="API_TITLE")
    api_version: str = Field(default="0.1.0", alias="API_VERSION")
    cors_origins_raw: str = Field(
        default="http://localhost:3000",
        alias="API_CORS_ORIGINS",
        description="Comma-separated list of origins allowed for CORS requests.",
    )

    # Primary dataset (MRMS RALA on the NCEP HTTP mirror)
    mrms_base_url: str = Field(
        default="https://mrms.ncep.noaa.gov/data/2D/ReflectivityAtLowestAltitude/",
        alias="MRMS_BASE_URL",
        description="Directory that lists the RALA GRIB2 files. Must end with a slash.",
    )
    mrms_file_prefix: str = Field(
        default="MRMS_ReflectivityAtLowestAltitude_00.50",
        alias="MRMS_FILE_PREFIX",
        description="File name stem preceding the _YYYYmmdd-HHMMSS.grib2.gz suffix.",
    )
    listing_timeout_seconds: float = Field(default=10.0, alias="MRMS_LISTING_TIMEOUT_SECONDS", gt=0)
    file_timeout_seconds: float = Field(default=15.0, alias="MRMS_FILE_TIMEOUT_SECONDS", gt=0)
    max_redirects: int = Field(default=5, alias="MRMS_MAX_REDIRECTS", ge=0)

    # Cache and fallback search
    refresh_interval_seconds: float = Field(
        default=120.0,
        alias="RADAR_REFRESH_INTERVAL_SECONDS",
        gt=0,
        description="Cache lifetime and background refresh period.",
    )
    lookback_minutes: int = Field(
        default=60,
        alias="RADAR_LOOKBACK_MINUTES",
        ge=0,
        description="How far back the time-windowed probe searches for a file.",
    )
    probe_step_minutes: int = Field(default=2, alias="RADAR_PROBE_STEP_MINUTES", ge=1)
    background_refresh: bool = Field(
        default=True,
        alias="RADAR_BACKGROUND_REFRESH",
        description="Keep the cache warm with a timer for the lifetime of the app.",
    )

    # Secondary tile provider and response constants
    tile_url_template: str = Field(
        default="https://mesonet.agron.iastate.edu/cache/tile.py/1.0.0/nexrad-n0q-900913/{z}/{x}/{y}.png",
        alias="RADAR_TILE_URL_TEMPLATE",
    )
    primary_source_label: str = Field(
        default="MRMS_ReflectivityAtLowestAltitude (Cached)",
        alias="RADAR_PRIMARY_SOURCE_LABEL",
    )
    secondary_source_label: str = Field(
        default="Iowa Environmental Mesonet NEXRAD",
        alias="RADAR_SECONDARY_SOURCE_LABEL",
    )
    coverage: str = Field(default="Continental United States (CONUS) only", alias="RADAR_COVERAGE")
    bounds_north: float = Field(default=50.0, alias="RADAR_BOUNDS_NORTH")
    bounds_south: float = Field(default=20.0, alias="RADAR_BOUNDS_SOUTH")
    bounds_east: float = Field(default=-60.0, alias="RADAR_BOUNDS_EAST")
    bounds_west: float = Field(default=-130.0, alias="RADAR_BOUNDS_WEST")

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE else None,
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def cors_origins(self) -> list[str]:
        """Return a list of CORS origins."""
        return [origin.strip() for origin in self.cors_origins_raw.split(",") if origin.strip()]

    @property
    def bounding_box(self) -> BoundingBox:
        """CONUS extent assumed for every MRMS file; not decoded from the grid."""
        return BoundingBox(
            lat_min=self.bounds_south,
            lat_max=self.bounds_north,
            lon_min=self.bounds_west,
            lon_max=self.bounds_east,
        )


class DisplaySettings(BaseSettings):
    """Configuration for the radar display controller."""

    api_base_url: str = Field(default="http://localhost:8000", alias="RADAR_API_BASE_URL")
    refresh_interval_seconds: float = Field(default=120.0, alias="DISPLAY_REFRESH_INTERVAL_SECONDS", gt=0)
    age_tick_seconds: float = Field(default=10.0, alias="DISPLAY_AGE_TICK_SECONDS", gt=0)
    http_timeout_seconds: float = Field(default=30.0, alias="DISPLAY_HTTP_TIMEOUT_SECONDS", gt=0)

    basemap_url: str = Field(
        default="https://{s}.basemaps.cartocdn.com/dark_all/{z}/{x}/{y}{r}.png",
        alias="DISPLAY_BASEMAP_URL",
    )
    basemap_attribution: str = Field(default="&copy; CartoDB contributors", alias="DISPLAY_BASEMAP_ATTRIBUTION")
    center_lat: float = Field(default=39.8, alias="DISPLAY_CENTER_LAT")
    center_lon: float = Field(default=-95.583, alias="DISPLAY_CENTER_LON")
    zoom: int = Field(default=4, alias="DISPLAY_ZOOM", ge=0)

    overlay_opacity: float = Field(default=0.7, alias="DISPLAY_OVERLAY_OPACITY", ge=0, le=1)
    overlay_min_zoom: int = Field(default=0, alias="DISPLAY_OVERLAY_MIN_ZOOM", ge=0)
    overlay_max_zoom: int = Field(default=19, alias="DISPLAY_OVERLAY_MAX_ZOOM", ge=0)

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE else None,
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def radar_data_url(self) -> str:
        return f"{self.api_base_url.rstrip('/')}/api/radar-data"


__all__ = ["Settings", "DisplaySettings"]
