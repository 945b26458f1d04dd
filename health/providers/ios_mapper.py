"""HealthKit ↔ canonical record mapper.

HealthKit returns flat samples ({value, unit, startDate, endDate}) keyed by
type identifier, with the unit chosen by the caller or the user's locale.
Units are normalized here: mL/L, m/km/cm, kg/lb, degC/degF.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from health.domain.models import (
    AccessType,
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

AVAILABLE = "available"

BLOOD_PRESSURE_TYPE = "HKCorrelationTypeIdentifierBloodPressure"

TYPE_IDENTIFIERS: dict[HealthMetricKind, str] = {
    HealthMetricKind.STEPS: "HKQuantityTypeIdentifierStepCount",
    HealthMetricKind.HEART_RATE: "HKQuantityTypeIdentifierHeartRate",
    HealthMetricKind.DISTANCE: "HKQuantityTypeIdentifierDistanceWalkingRunning",
    HealthMetricKind.WEIGHT: "HKQuantityTypeIdentifierBodyMass",
    HealthMetricKind.HEIGHT: "HKQuantityTypeIdentifierHeight",
    HealthMetricKind.BLOOD_PRESSURE: BLOOD_PRESSURE_TYPE,
    HealthMetricKind.BODY_TEMPERATURE: "HKQuantityTypeIdentifierBodyTemperature",
    HealthMetricKind.HYDRATION: "HKQuantityTypeIdentifierDietaryWater",
    HealthMetricKind.SLEEP: "HKCategoryTypeIdentifierSleepAnalysis",
}

_METERS = {"m": 1.0, "km": 1000.0, "cm": 0.01, "mi": 1609.344}
_LITERS = {"L": 1.0, "l": 1.0, "mL": 0.001, "ml": 0.001}
_KILOGRAMS = {"kg": 1.0, "g": 0.001, "lb": 0.45359237}


def _ts(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _scaled(sample: dict[str, Any], table: dict[str, float], default_unit: str) -> float:
    unit = sample.get("unit") or default_unit
    try:
        factor = table[unit]
    except KeyError:
        raise ValueError(f"Unsupported HealthKit unit '{unit}'") from None
    return float(sample["value"]) * factor


def _celsius(sample: dict[str, Any]) -> float:
    value = float(sample["value"])
    if sample.get("unit") == "degF":
        return (value - 32) * 5 / 9
    return value


def _is_asleep(sample: dict[str, Any]) -> bool:
    # INBED and AWAKE intervals are not sleep
    return str(sample.get("value", "")).upper().startswith("ASLEEP")


class HealthKitMapper:
    platform = "ios"
    available_status = AVAILABLE

    def record_type(self, kind: HealthMetricKind) -> str:
        return TYPE_IDENTIFIERS[kind]

    def time_range_filter(self, start: datetime, end: datetime) -> dict[str, str]:
        return {"startDate": start.isoformat(), "endDate": end.isoformat()}

    def permission_request(self, scopes: Iterable[PermissionScope]) -> dict[str, list[str]]:
        """HealthKit authorizes read and write sets in one request."""
        request: dict[str, list[str]] = {"read": [], "write": []}
        for scope in scopes:
            bucket = "read" if scope.access_type == AccessType.READ else "write"
            request[bucket].append(TYPE_IDENTIFIERS[scope.kind])
        return request

    def parse(self, kind: HealthMetricKind, raw_records: list[dict[str, Any]]) -> list[HealthRecord]:
        if kind == HealthMetricKind.SLEEP:
            raw_records = [s for s in raw_records if _is_asleep(s)]
        parser = _PARSERS[kind]
        return [parser(sample) for sample in raw_records]

    def to_platform_records(self, data: HealthDataWrite, now: datetime) -> list[dict[str, Any]]:
        at = now.isoformat()

        def sample(kind: HealthMetricKind, value: float, unit: str) -> dict[str, Any]:
            return {
                "type": TYPE_IDENTIFIERS[kind],
                "value": value,
                "unit": unit,
                "startDate": at,
                "endDate": at,
            }

        samples: list[dict[str, Any]] = []
        if data.steps is not None:
            samples.append(sample(HealthMetricKind.STEPS, data.steps, "count"))
        if data.heart_rate is not None:
            samples.append(sample(HealthMetricKind.HEART_RATE, data.heart_rate, "count/min"))
        if data.distance is not None:
            samples.append(sample(HealthMetricKind.DISTANCE, data.distance, "km"))
        if data.weight is not None:
            samples.append(sample(HealthMetricKind.WEIGHT, data.weight, "kg"))
        if data.height is not None:
            samples.append(sample(HealthMetricKind.HEIGHT, data.height, "cm"))
        if data.blood_pressure is not None:
            samples.append(
                {
                    "type": BLOOD_PRESSURE_TYPE,
                    "systolic": data.blood_pressure.systolic,
                    "diastolic": data.blood_pressure.diastolic,
                    "unit": "mmHg",
                    "startDate": at,
                    "endDate": at,
                }
            )
        if data.body_temperature is not None:
            samples.append(sample(HealthMetricKind.BODY_TEMPERATURE, data.body_temperature, "degC"))
        if data.hydration is not None:
            samples.append(sample(HealthMetricKind.HYDRATION, data.hydration, "mL"))
        return samples


def _heart_rate(s: dict[str, Any]) -> HeartRateRecord:
    start = _ts(s["startDate"])
    return HeartRateRecord(
        start=start,
        end=_ts(s.get("endDate") or s["startDate"]),
        samples=[HeartRateSample(time=start, bpm=float(s["value"]))],
    )


_PARSERS = {
    HealthMetricKind.STEPS: lambda s: StepsRecord(
        start=_ts(s["startDate"]), end=_ts(s["endDate"]), count=round(float(s["value"]))
    ),
    HealthMetricKind.DISTANCE: lambda s: DistanceRecord(
        start=_ts(s["startDate"]), end=_ts(s["endDate"]), meters=_scaled(s, _METERS, "m")
    ),
    HealthMetricKind.HYDRATION: lambda s: HydrationRecord(
        start=_ts(s["startDate"]), end=_ts(s["endDate"]), liters=_scaled(s, _LITERS, "mL")
    ),
    HealthMetricKind.SLEEP: lambda s: SleepRecord(start=_ts(s["startDate"]), end=_ts(s["endDate"])),
    HealthMetricKind.HEART_RATE: _heart_rate,
    HealthMetricKind.BODY_TEMPERATURE: lambda s: BodyTemperatureRecord(
        time=_ts(s["startDate"]), celsius=_celsius(s)
    ),
    HealthMetricKind.WEIGHT: lambda s: WeightRecord(
        time=_ts(s["startDate"]), kilograms=_scaled(s, _KILOGRAMS, "kg")
    ),
    HealthMetricKind.HEIGHT: lambda s: HeightRecord(
        time=_ts(s["startDate"]), meters=_scaled(s, _METERS, "cm")
    ),
    HealthMetricKind.BLOOD_PRESSURE: lambda s: BloodPressureRecord(
        time=_ts(s["startDate"]), systolic=s["systolic"], diastolic=s["diastolic"]
    ),
}
