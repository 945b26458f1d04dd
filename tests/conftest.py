"""Shared test fixtures."""

import os
import sys
from datetime import UTC, date, datetime, timedelta
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

# Deterministic settings for every test run
os.environ.setdefault("HA_STORAGE_BACKEND", "memory")
os.environ.setdefault("HA_PROVIDER_MODE", "fixture")
os.environ.setdefault("HA_PLATFORM", "android")
os.environ.setdefault("HA_TIMEZONE", "UTC")

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from health.domain.models import (  # noqa: E402
    METRIC_UNITS,
    DailyHealthMetric,
    HealthMetricKind,
    WeeklyHealthData,
)
from health.providers.android import AndroidHealthProvider  # noqa: E402
from health.providers.android_mapper import SDK_AVAILABLE  # noqa: E402
from health.providers.fixture_client import FixtureHealthClient  # noqa: E402
from health.providers.ios import IOSHealthProvider  # noqa: E402
from health.providers.ios_mapper import AVAILABLE  # noqa: E402
from health.storage import InMemoryKeyValueStore  # noqa: E402
from shared.exceptions import PersistenceError  # noqa: E402

UTC_ZONE = ZoneInfo("UTC")
# Thursday
NOW = datetime(2024, 3, 14, 12, 0, tzinfo=UTC)
TODAY = date(2024, 3, 14)


def at(day: date, hour: int = 12, minute: int = 0) -> str:
    """ISO timestamp (UTC) on `day`."""
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=UTC).isoformat()


def fixed_clock() -> datetime:
    return NOW


# --- Health Connect record builders ---


def hc_steps(count: int, day: date = TODAY, hour: int = 9) -> dict:
    return {"count": count, "startTime": at(day, hour), "endTime": at(day, hour, 30)}


def hc_distance(meters: float, day: date = TODAY, hour: int = 9) -> dict:
    return {"distance": {"inMeters": meters}, "startTime": at(day, hour), "endTime": at(day, hour, 30)}


def hc_heart_rate(*bpms: float, day: date = TODAY, hour: int = 10) -> dict:
    return {
        "startTime": at(day, hour),
        "endTime": at(day, hour, 30),
        "samples": [{"time": at(day, hour, i), "beatsPerMinute": bpm} for i, bpm in enumerate(bpms)],
    }


def hc_temperature(celsius: float, day: date = TODAY, hour: int = 8) -> dict:
    return {"temperature": {"inCelsius": celsius}, "time": at(day, hour)}


def hc_hydration(liters: float, day: date = TODAY, hour: int = 11) -> dict:
    return {"volume": {"inLiters": liters}, "startTime": at(day, hour), "endTime": at(day, hour, 5)}


def hc_weight(kilograms: float, day: date = TODAY, hour: int = 7) -> dict:
    return {"weight": {"inKilograms": kilograms}, "time": at(day, hour)}


def hc_height(meters: float, day: date = TODAY, hour: int = 7) -> dict:
    return {"height": {"inMeters": meters}, "time": at(day, hour)}


def hc_blood_pressure(systolic: float, diastolic: float, day: date = TODAY, hour: int = 8) -> dict:
    return {
        "systolic": {"inMillimetersOfMercury": systolic},
        "diastolic": {"inMillimetersOfMercury": diastolic},
        "time": at(day, hour),
    }


def hc_sleep(start: datetime, hours: float) -> dict:
    return {"startTime": start.isoformat(), "endTime": (start + timedelta(hours=hours)).isoformat()}


# --- Fixtures ---


@pytest.fixture
def android_client():
    """Available Health Connect client with read/write access already granted."""
    return FixtureHealthClient(SDK_AVAILABLE, granted=True)


@pytest.fixture
def android_provider(android_client):
    return AndroidHealthProvider(android_client, tz=UTC_ZONE, clock=fixed_clock)


@pytest.fixture
def ios_client():
    return FixtureHealthClient(AVAILABLE, granted=True)


@pytest.fixture
def ios_provider(ios_client):
    return IOSHealthProvider(ios_client, tz=UTC_ZONE, clock=fixed_clock)


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def ungranted_client():
    """Available Health Connect client that has not been granted access yet."""
    return FixtureHealthClient(SDK_AVAILABLE)


# --- Weekly series builders ---


def weekly_data(start: date = TODAY - timedelta(days=6), **values: list) -> WeeklyHealthData:
    """WeeklyHealthData with the given per-kind values; unspecified kinds are zero."""
    days = [start + timedelta(days=i) for i in range(7)]
    series = {}
    for kind in HealthMetricKind:
        kind_values = values.get(kind.value, [0] * 7)
        series[kind] = [
            DailyHealthMetric(
                day=day,
                day_name=day.strftime("%a"),
                value=value,
                unit=METRIC_UNITS[kind],
                is_today=day == TODAY,
            )
            for day, value in zip(days, kind_values, strict=True)
        ]
    return WeeklyHealthData(start=days[0], end=days[-1], series=series)


class BrokenStore(InMemoryKeyValueStore):
    """Store whose backend is unreachable."""

    async def get(self, key):
        raise PersistenceError("get", key, "connection refused")

    async def set(self, key, value):
        raise PersistenceError("set", key, "connection refused")

    async def multi_remove(self, keys):
        raise PersistenceError("multi_remove", ",".join(keys), "connection refused")
