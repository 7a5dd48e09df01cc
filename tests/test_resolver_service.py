import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from mrms_radar.errors import ResolutionExhaustedError
from mrms_radar.services.resolver import (
    ResolverService,
    filename_pattern,
    latest_listed_file,
    probe_times,
)

from .support import BASE_URL, PREFIX, file_url, gz_grib_bytes, listing_html


class _Upstream:
    """Scriptable fake of the MRMS HTTP directory."""

    def __init__(self, listing: str | None = None, files: dict[str, bytes] | None = None):
        self.listing = listing
        self.files = files or {}
        self.requests: list[str] = []

    @property
    def listing_calls(self) -> int:
        return self.requests.count(BASE_URL)

    @property
    def file_calls(self) -> list[str]:
        return [url for url in self.requests if url != BASE_URL]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if url == BASE_URL:
            if self.listing is None:
                return httpx.Response(503, text="unavailable")
            return httpx.Response(200, text=self.listing)
        if url in self.files:
            return httpx.Response(200, content=self.files[url])
        return httpx.Response(404)


def test_latest_listed_file_picks_greatest_timestamp():
    html = listing_html("20240101-000000", "20240101-001000", "20240101-000500")
    filename, timestamp = latest_listed_file(html, filename_pattern(PREFIX))
    assert timestamp == datetime(2024, 1, 1, 0, 10, tzinfo=timezone.utc)
    assert filename == f"{PREFIX}_20240101-001000.grib2.gz"


def test_latest_listed_file_ignores_other_products():
    html = "<a>MRMS_ReflectivityAtLowestAltitude_01.00_20240101-001000.grib2.gz</a>"
    assert latest_listed_file(html, filename_pattern(PREFIX)) is None


def test_latest_listed_file_skips_impossible_dates():
    html = listing_html("20240615-120000", "20241399-999999")
    filename, timestamp = latest_listed_file(html, filename_pattern(PREFIX))
    assert filename == f"{PREFIX}_20240615-120000.grib2.gz"
    assert timestamp == datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def test_latest_listed_file_with_only_impossible_dates():
    assert latest_listed_file(listing_html("20240230-250000"), filename_pattern(PREFIX)) is None


def test_probe_times_round_down_to_even_minutes():
    now = datetime(2024, 6, 15, 12, 5, 30, tzinfo=timezone.utc)
    candidates = probe_times(now, 60, 2)
    assert len(candidates) == 31
    assert candidates[:3] == [
        datetime(2024, 6, 15, 12, 4, tzinfo=timezone.utc),
        datetime(2024, 6, 15, 12, 2, tzinfo=timezone.utc),
        datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc),
    ]
    assert candidates[-1] == datetime(2024, 6, 15, 11, 4, tzinfo=timezone.utc)
    assert all(c.minute % 2 == 0 and c.second == 0 for c in candidates)


@pytest.mark.asyncio
async def test_listing_strategy_resolves_latest_file(settings, clock):
    upstream = _Upstream(
        listing=listing_html("20240101-000000", "20240101-001000", "20240101-000500"),
        files={file_url("20240101-001000"): gz_grib_bytes()},
    )
    service = ResolverService(settings, transport=httpx.MockTransport(upstream), clock=clock)

    reference = await service.resolve()

    assert reference.timestamp == datetime(2024, 1, 1, 0, 10, tzinfo=timezone.utc)
    assert reference.source_file_url == file_url("20240101-001000")
    assert reference.bounding_box.lat_max == 50.0
    assert reference.grib_edition == 2
    assert upstream.file_calls == [file_url("20240101-001000")]
    assert service.cache_entry.fetched_at == clock.now


@pytest.mark.asyncio
async def test_resolve_twice_within_interval_hits_upstream_once(settings, clock):
    upstream = _Upstream(
        listing=listing_html("20240615-120000"),
        files={file_url("20240615-120000"): gz_grib_bytes()},
    )
    service = ResolverService(settings, transport=httpx.MockTransport(upstream), clock=clock)

    first = await service.resolve()
    clock.now += timedelta(seconds=119)
    second = await service.resolve()

    assert first is second
    assert len(upstream.requests) == 2


@pytest.mark.asyncio
async def test_stale_entry_is_refreshed(settings, clock):
    upstream = _Upstream(
        listing=listing_html("20240615-120000"),
        files={
            file_url("20240615-120000"): gz_grib_bytes(),
            file_url("20240615-120200"): gz_grib_bytes(),
        },
    )
    service = ResolverService(settings, transport=httpx.MockTransport(upstream), clock=clock)
    await service.resolve()

    upstream.listing = listing_html("20240615-120000", "20240615-120200")
    clock.now += timedelta(seconds=120)
    reference = await service.resolve()

    assert reference.timestamp == datetime(2024, 6, 15, 12, 2, tzinfo=timezone.utc)
    assert upstream.listing_calls == 2


@pytest.mark.asyncio
async def test_probe_fallback_walks_back_to_first_available(settings, clock):
    upstream = _Upstream(listing=None, files={file_url("20240615-115800"): gz_grib_bytes()})
    service = ResolverService(settings, transport=httpx.MockTransport(upstream), clock=clock)

    reference = await service.resolve()

    assert reference.timestamp == datetime(2024, 6, 15, 11, 58, tzinfo=timezone.utc)
    assert upstream.file_calls == [
        file_url("20240615-120400"),
        file_url("20240615-120200"),
        file_url("20240615-120000"),
        file_url("20240615-115800"),
    ]


@pytest.mark.asyncio
async def test_empty_listing_falls_back_to_probe(settings, clock):
    upstream = _Upstream(listing="<html></html>", files={file_url("20240615-120400"): gz_grib_bytes()})
    service = ResolverService(settings, transport=httpx.MockTransport(upstream), clock=clock)

    reference = await service.resolve()

    assert reference.timestamp == datetime(2024, 6, 15, 12, 4, tzinfo=timezone.utc)
    assert upstream.listing_calls == 1


@pytest.mark.asyncio
async def test_unparseable_listed_file_falls_back_to_probe(settings, clock):
    upstream = _Upstream(
        listing=listing_html("20240615-120400"),
        files={file_url("20240615-120400"): b"<html>maintenance</html>"},
    )
    upstream.files[file_url("20240615-120200")] = gz_grib_bytes()
    service = ResolverService(settings, transport=httpx.MockTransport(upstream), clock=clock)

    reference = await service.resolve()

    assert reference.source_file_url == file_url("20240615-120200")


@pytest.mark.asyncio
async def test_invalid_listed_date_does_not_hide_valid_files(settings, clock):
    upstream = _Upstream(
        listing=listing_html("20240615-120000", "20241399-999999"),
        files={file_url("20240615-120000"): gz_grib_bytes()},
    )
    service = ResolverService(settings, transport=httpx.MockTransport(upstream), clock=clock)

    reference = await service.resolve()

    assert reference.source_file_url == file_url("20240615-120000")
    assert upstream.file_calls == [file_url("20240615-120000")]


@pytest.mark.asyncio
async def test_listing_of_only_invalid_dates_falls_back_to_time_search(settings, clock):
    upstream = _Upstream(
        listing=listing_html("20241399-999999"),
        files={file_url("20240615-120200"): gz_grib_bytes()},
    )
    service = ResolverService(settings, transport=httpx.MockTransport(upstream), clock=clock)

    reference = await service.resolve()

    assert reference.source_file_url == file_url("20240615-120200")


@pytest.mark.asyncio
async def test_invalid_url_is_treated_as_unavailable(settings, clock):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.InvalidURL("bad host")

    service = ResolverService(settings, transport=httpx.MockTransport(handler), clock=clock)

    with pytest.raises(ResolutionExhaustedError):
        await service.resolve()


@pytest.mark.asyncio
async def test_exhausted_window_raises(settings, clock):
    upstream = _Upstream(listing=None)
    service = ResolverService(settings, transport=httpx.MockTransport(upstream), clock=clock)

    with pytest.raises(ResolutionExhaustedError):
        await service.resolve()

    assert len(upstream.file_calls) == 31
    assert upstream.file_calls[-1] == file_url("20240615-110400")
    assert service.cache_entry is None


@pytest.mark.asyncio
async def test_network_errors_are_not_fatal(settings, clock):
    good = file_url("20240615-120200")

    def handler(request: httpx.Request) -> httpx.Response:
        if str(request.url) == good:
            return httpx.Response(200, content=gz_grib_bytes())
        raise httpx.ConnectTimeout("timed out", request=request)

    service = ResolverService(settings, transport=httpx.MockTransport(handler), clock=clock)

    reference = await service.resolve()
    assert reference.source_file_url == good


@pytest.mark.asyncio
async def test_failed_refresh_keeps_previous_entry(settings, clock):
    upstream = _Upstream(
        listing=listing_html("20240615-120000"),
        files={file_url("20240615-120000"): gz_grib_bytes()},
    )
    service = ResolverService(settings, transport=httpx.MockTransport(upstream), clock=clock)
    await service.resolve()
    entry = service.cache_entry

    upstream.listing = None
    upstream.files.clear()
    clock.now += timedelta(minutes=5)
    reference = await service.resolve()

    assert service.cache_entry is entry
    assert reference is entry.reference
    assert not service.is_fresh(entry)


@pytest.mark.asyncio
async def test_concurrent_resolves_share_one_refresh(settings, clock):
    gate = asyncio.Event()
    listing_calls = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal listing_calls
        if str(request.url) == BASE_URL:
            listing_calls += 1
            await gate.wait()
            return httpx.Response(200, text=listing_html("20240615-120000"))
        return httpx.Response(200, content=gz_grib_bytes())

    service = ResolverService(settings, transport=httpx.MockTransport(handler), clock=clock)

    first = asyncio.create_task(service.resolve())
    second = asyncio.create_task(service.resolve())
    await asyncio.sleep(0.01)
    assert service.refresh_in_flight
    gate.set()
    a, b = await asyncio.gather(first, second)

    assert a is b
    assert listing_calls == 1
    assert not service.refresh_in_flight


@pytest.mark.asyncio
async def test_background_timer_lifecycle(settings, clock):
    upstream = _Upstream(
        listing=listing_html("20240615-120000"),
        files={file_url("20240615-120000"): gz_grib_bytes()},
    )
    service = ResolverService(settings, transport=httpx.MockTransport(upstream), clock=clock)

    await service.start()
    await service.start()
    reference = await service.resolve()
    await asyncio.sleep(0)
    await service.close()
    await service.close()

    assert reference.timestamp == datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)
    assert upstream.listing_calls == 1
    assert not service.refresh_in_flight


class _FlakyListing(_Upstream):
    """Fails the first listing request, then behaves normally."""

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if str(request.url) == BASE_URL and self.listing_calls == 0:
            self.requests.append(BASE_URL)
            return httpx.Response(503, text="unavailable")
        return super().__call__(request)


@pytest.mark.asyncio
async def test_background_timer_keeps_refreshing_after_a_failure(settings, clock):
    settings = settings.model_copy(update={"refresh_interval_seconds": 0.01, "lookback_minutes": 0})
    upstream = _FlakyListing(
        listing=listing_html("20240615-120000"),
        files={file_url("20240615-120000"): gz_grib_bytes()},
    )
    service = ResolverService(settings, transport=httpx.MockTransport(upstream), clock=clock)

    await service.start()
    for _ in range(200):
        if service.cache_entry is not None and upstream.listing_calls >= 3:
            break
        await asyncio.sleep(0.01)
    await service.close()

    assert upstream.listing_calls >= 3
    assert service.cache_entry.reference.source_file_url == file_url("20240615-120000")
