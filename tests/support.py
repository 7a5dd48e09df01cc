import gzip
from datetime import datetime

BASE_URL = "https://mrms.example.test/data/2D/ReflectivityAtLowestAltitude/"
PREFIX = "MRMS_ReflectivityAtLowestAltitude_00.50"


def grib_bytes(edition: int = 2) -> bytes:
    # Section 0: "GRIB", two reserved bytes, discipline, edition, 8-byte total length
    return b"GRIB" + b"\x00\x00" + b"\x00" + bytes([edition]) + (16).to_bytes(8, "big")


def gz_grib_bytes(edition: int = 2) -> bytes:
    return gzip.compress(grib_bytes(edition))


def file_url(stamp: str) -> str:
    return f"{BASE_URL}{PREFIX}_{stamp}.grib2.gz"


def listing_html(*stamps: str) -> str:
    rows = "".join(
        f'<a href="{PREFIX}_{stamp}.grib2.gz">{PREFIX}_{stamp}.grib2.gz</a>\n' for stamp in stamps
    )
    return f"<html><body><pre>\n{rows}</pre></body></html>"


class MutableClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now
