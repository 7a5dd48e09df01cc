"""Locate the freshest MRMS RALA file and keep it cached."""
from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Callable

import httpx

from ..config import Settings
from ..errors import RadarDataError, ResolutionExhaustedError, UpstreamUnavailableError
from ..models import CacheEntry, DatasetReference
from .grib import inspect_grib2

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def filename_pattern(prefix: str) -> re.Pattern[str]:
    return re.compile(re.escape(prefix) + r"_(\d{8}-\d{6})\.grib2\.gz")


def parse_file_timestamp(value: str) -> datetime:
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def latest_listed_file(html: str, pattern: re.Pattern[str]) -> tuple[str, datetime] | None:
    """Return ``(filename, timestamp)`` for the newest file named in a listing.

    Timestamps are fixed-width and zero padded, so the lexicographic maximum
    is also the most recent. Names whose stamp is not a real date are skipped.
    """
    best: tuple[str, str, datetime] | None = None
    for match in pattern.finditer(html):
        filename, stamp = match.group(0), match.group(1)
        if best is not None and stamp <= best[1]:
            continue
        try:
            timestamp = parse_file_timestamp(stamp)
        except ValueError:
            logger.warning("Ignoring listed file with invalid timestamp: %s", filename)
            continue
        best = (filename, stamp, timestamp)
    if best is None:
        return None
    return best[0], best[2]


def probe_times(now: datetime, lookback_minutes: int, step_minutes: int) -> list[datetime]:
    """Candidate file times from ``now`` backwards, rounded down to even minutes."""
    candidates: list[datetime] = []
    for minutes_back in range(0, lookback_minutes + 1, step_minutes):
        check = now - timedelta(minutes=minutes_back)
        candidates.append(check.replace(minute=check.minute // 2 * 2, second=0, microsecond=0))
    return candidates


class ResolverService:
    """Resolve and memoise the latest RALA dataset reference.

    The cache holds a single entry. Refreshes are single-flight: callers that
    arrive while a refresh is running await that refresh instead of starting
    another one. A background timer, started with :meth:`start`, keeps the
    entry warm; request-driven refresh only covers the gap before the first
    timer run.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._clock = clock or utcnow
        self._pattern = filename_pattern(settings.mrms_file_prefix)
        self._interval = timedelta(seconds=settings.refresh_interval_seconds)
        self._entry: CacheEntry | None = None
        self._inflight: asyncio.Task[DatasetReference | None] | None = None
        self._timer: asyncio.Task[None] | None = None

    @property
    def cache_entry(self) -> CacheEntry | None:
        return self._entry

    @property
    def refresh_in_flight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def is_fresh(self, entry: CacheEntry) -> bool:
        age = self._clock() - entry.fetched_at
        return timedelta(0) <= age < self._interval

    async def resolve(self) -> DatasetReference:
        entry = self._entry
        if entry is not None and self.is_fresh(entry):
            logger.debug("Using cached MRMS reference from %s", entry.reference.timestamp.isoformat())
            return entry.reference

        logger.info("MRMS cache expired or empty, refreshing")
        await self.refresh()

        # A failed refresh leaves the previous entry in place; stale beats nothing.
        if self._entry is not None:
            return self._entry.reference
        raise ResolutionExhaustedError("Failed to fetch MRMS data")

    async def refresh(self) -> DatasetReference | None:
        """Run one refresh, or join the one already in flight."""
        if not self.refresh_in_flight:
            self._inflight = asyncio.create_task(self._refresh_once(), name="mrms-refresh")
        else:
            logger.info("MRMS refresh already in flight, awaiting it")
        return await asyncio.shield(self._inflight)

    async def _refresh_once(self) -> DatasetReference | None:
        try:
            reference = await self.locate_latest()
        except RadarDataError as exc:
            logger.error("MRMS refresh failed: %s", exc)
            return None
        self._entry = CacheEntry(reference=reference, fetched_at=self._clock())
        logger.info("Cached MRMS reference from %s", reference.timestamp.isoformat())
        return reference

    async def locate_latest(self) -> DatasetReference:
        """Run the listing strategy, then the time-windowed probe."""
        async with httpx.AsyncClient(
            transport=self._transport,
            follow_redirects=True,
            max_redirects=self._settings.max_redirects,
        ) as client:
            try:
                return await self._from_listing(client)
            except RadarDataError as exc:
                logger.info("Directory listing failed (%s), falling back to time-based search", exc)
            return await self._from_probe(client)

    async def _from_listing(self, client: httpx.AsyncClient) -> DatasetReference:
        base_url = self._settings.mrms_base_url
        logger.info("Fetching MRMS directory listing from %s", base_url)
        response = await self._get(client, base_url, self._settings.listing_timeout_seconds)

        latest = latest_listed_file(response.text, self._pattern)
        if latest is None:
            raise RadarDataError(f"No {self._settings.mrms_file_prefix} files in listing")
        filename, timestamp = latest
        logger.info("Found latest file: %s", filename)
        return await self._fetch_reference(client, base_url + filename, timestamp)

    async def _from_probe(self, client: httpx.AsyncClient) -> DatasetReference:
        settings = self._settings
        for check_time in probe_times(self._clock(), settings.lookback_minutes, settings.probe_step_minutes):
            url = f"{settings.mrms_base_url}{settings.mrms_file_prefix}_{check_time:%Y%m%d-%H%M%S}.grib2.gz"
            try:
                return await self._fetch_reference(client, url, check_time)
            except RadarDataError as exc:
                logger.debug("File not available for %s (%s), trying earlier", check_time.isoformat(), exc)
        raise ResolutionExhaustedError(
            f"Could not find recent MRMS RALA data within last {settings.lookback_minutes} minutes"
        )

    async def _fetch_reference(
        self, client: httpx.AsyncClient, url: str, timestamp: datetime
    ) -> DatasetReference:
        response = await self._get(client, url, self._settings.file_timeout_seconds)
        metadata = inspect_grib2(response.content, self._settings.bounding_box)
        logger.info("Fetched MRMS data from %s", timestamp.isoformat())
        return DatasetReference(
            timestamp=timestamp,
            source_file_url=url,
            bounding_box=metadata.bounding_box,
            grib_edition=metadata.edition,
        )

    async def _get(self, client: httpx.AsyncClient, url: str, timeout: float) -> httpx.Response:
        try:
            response = await client.get(url, timeout=timeout)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise UpstreamUnavailableError(url, reason=str(exc) or type(exc).__name__) from exc
        if response.status_code != 200:
            raise UpstreamUnavailableError(url, status_code=response.status_code)
        return response

    async def start(self) -> None:
        """Start the background refresh timer. Calling it twice is a no-op."""
        if self._timer is not None:
            return
        logger.info(
            "Starting MRMS background refresh every %s seconds", self._settings.refresh_interval_seconds
        )
        self._timer = asyncio.create_task(self._run_timer(), name="mrms-refresh-timer")

    async def _run_timer(self) -> None:
        while True:
            try:
                await self.refresh()
            except Exception:  # noqa: BLE001 - keep the timer alive
                logger.exception("Background MRMS refresh raised")
            await asyncio.sleep(self._settings.refresh_interval_seconds)

    async def close(self) -> None:
        """Stop the timer and abandon any refresh still running."""
        tasks = [task for task in (self._timer, self._inflight) if task is not None and not task.done()]
        self._timer = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass


__all__ = [
    "ResolverService",
    "RadarDataError",
    "UpstreamUnavailableError",
    "ResolutionExhaustedError",
    "filename_pattern",
    "latest_listed_file",
    "parse_file_timestamp",
    "probe_times",
]
