"""Health Connect ↔ canonical record mapper.

Inbound anti-corruption layer: translates Health Connect record types, field
names and unit wrappers ({"inMeters": ...}, {"inLiters": ...}) into the
canonical HealthRecord models, and builds Health Connect records for writes.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from health.domain.models import (
    BloodPressureRecord,
    BodyTemperatureRecord,
    DistanceRecord,
    HealthDataWrite,
    HealthMetricKind,
    HealthRecord,
    HeartRateRecord,
    HeartRateSample,
    HeightRecord,
    HydrationRecord,
    PermissionScope,
    SleepRecord,
    StepsRecord,
    WeightRecord,
)

# SdkAvailabilityStatus values reported by getSdkStatus()
SDK_UNAVAILABLE = 1
SDK_UNAVAILABLE_PROVIDER_UPDATE_REQUIRED = 2
SDK_AVAILABLE = 3

RECORD_TYPES: dict[HealthMetricKind, str] = {
    HealthMetricKind.STEPS: "Steps",
    HealthMetricKind.HEART_RATE: "HeartRate",
    HealthMetricKind.DISTANCE: "Distance",
    HealthMetricKind.WEIGHT: "Weight",
    HealthMetricKind.HEIGHT: "Height",
    HealthMetricKind.BLOOD_PRESSURE: "BloodPressure",
    HealthMetricKind.BODY_TEMPERATURE: "BodyTemperature",
    HealthMetricKind.HYDRATION: "Hydration",
    HealthMetricKind.SLEEP: "SleepSession",
}


def _ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _iso(value: datetime) -> str:
    return value.isoformat()


class HealthConnectMapper:
    platform = "android"
    available_status = SDK_AVAILABLE

    def record_type(self, kind: HealthMetricKind) -> str:
        return RECORD_TYPES[kind]

    def time_range_filter(self, start: datetime, end: datetime) -> dict[str, str]:
        return {"operator": "between", "startTime": _iso(start), "endTime": _iso(end)}

    def permission_request(self, scopes: Iterable[PermissionScope]) -> list[dict[str, str]]:
        return [
            {"accessType": s.access_type.value, "recordType": RECORD_TYPES[s.kind]} for s in scopes
        ]

    def parse(self, kind: HealthMetricKind, raw_records: list[dict[str, Any]]) -> list[HealthRecord]:
        """Parse Health Connect records of one type into canonical records."""
        parser = _PARSERS[kind]
        return [parser(entry) for entry in raw_records]

    def to_platform_records(self, data: HealthDataWrite, now: datetime) -> list[dict[str, Any]]:
        """Build the Health Connect insert batch for the present fields of a partial snapshot."""
        at = _iso(now)
        records: list[dict[str, Any]] = []

        if data.steps is not None:
            records.append({"recordType": "Steps", "count": data.steps, "startTime": at, "endTime": at})
        if data.heart_rate is not None:
            records.append(
                {
                    "recordType": "HeartRate",
                    "samples": [{"time": at, "beatsPerMinute": data.heart_rate}],
                    "startTime": at,
                    "endTime": at,
                }
            )
        if data.distance is not None:
            records.append(
                {
                    "recordType": "Distance",
                    "distance": {"inMeters": data.distance * 1000},
                    "startTime": at,
                    "endTime": at,
                }
            )
        if data.weight is not None:
            records.append({"recordType": "Weight", "weight": {"inKilograms": data.weight}, "time": at})
        if data.height is not None:
            records.append({"recordType": "Height", "height": {"inMeters": data.height / 100}, "time": at})
        if data.blood_pressure is not None:
            records.append(
                {
                    "recordType": "BloodPressure",
                    "systolic": {"inMillimetersOfMercury": data.blood_pressure.systolic},
                    "diastolic": {"inMillimetersOfMercury": data.blood_pressure.diastolic},
                    "time": at,
                }
            )
        if data.body_temperature is not None:
            records.append(
                {
                    "recordType": "BodyTemperature",
                    "temperature": {"inCelsius": data.body_temperature},
                    "time": at,
                }
            )
        if data.hydration is not None:
            records.append(
                {
                    "recordType": "Hydration",
                    "volume": {"inLiters": data.hydration / 1000},
                    "startTime": at,
                    "endTime": at,
                }
            )
        return records


def _heart_rate(entry: dict[str, Any]) -> HeartRateRecord:
    samples = entry.get("samples")
    if samples is None and "beatsPerMinute" in entry:
        # Older SDK builds flatten single-sample records
        samples = [{"time": entry.get("time") or entry["startTime"], "beatsPerMinute": entry["beatsPerMinute"]}]
    start = _ts(entry.get("startTime") or entry.get("time"))
    end = _ts(entry.get("endTime")) or start
    return HeartRateRecord(
        start=start,
        end=end,
        samples=[
            HeartRateSample(time=_ts(s["time"]), bpm=s["beatsPerMinute"])
            for s in samples or []
            if s.get("beatsPerMinute") is not None
        ],
    )


_PARSERS = {
    HealthMetricKind.STEPS: lambda e: StepsRecord(
        start=_ts(e["startTime"]), end=_ts(e["endTime"]), count=e.get("count") or 0
    ),
    HealthMetricKind.DISTANCE: lambda e: DistanceRecord(
        start=_ts(e["startTime"]), end=_ts(e["endTime"]), meters=e["distance"]["inMeters"]
    ),
    HealthMetricKind.HYDRATION: lambda e: HydrationRecord(
        start=_ts(e["startTime"]), end=_ts(e["endTime"]), liters=e["volume"]["inLiters"]
    ),
    HealthMetricKind.SLEEP: lambda e: SleepRecord(start=_ts(e["startTime"]), end=_ts(e["endTime"])),
    HealthMetricKind.HEART_RATE: _heart_rate,
    HealthMetricKind.BODY_TEMPERATURE: lambda e: BodyTemperatureRecord(
        time=_ts(e["time"]), celsius=e["temperature"]["inCelsius"]
    ),
    HealthMetricKind.WEIGHT: lambda e: WeightRecord(
        time=_ts(e["time"]), kilograms=e["weight"]["inKilograms"]
    ),
    HealthMetricKind.HEIGHT: lambda e: HeightRecord(time=_ts(e["time"]), meters=e["height"]["inMeters"]),
    HealthMetricKind.BLOOD_PRESSURE: lambda e: BloodPressureRecord(
        time=_ts(e["time"]),
        systolic=e["systolic"]["inMillimetersOfMercury"],
        diastolic=e["diastolic"]["inMillimetersOfMercury"],
    ),
}
