from datetime import datetime, timezone

import pytest

from mrms_radar.config import Settings

from .support import BASE_URL, PREFIX, MutableClock


@pytest.fixture
def settings():
    return Settings(
        MRMS_BASE_URL=BASE_URL,
        MRMS_FILE_PREFIX=PREFIX,
        RADAR_BACKGROUND_REFRESH=False,
    )


@pytest.fixture
def clock():
    return MutableClock(datetime(2024, 6, 15, 12, 5, 30, tzinfo=timezone.utc))
