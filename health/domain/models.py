"""Canonical health domain models.

Platform records (Health Connect / HealthKit shapes) are translated into the
HealthRecord union by the provider mappers; everything downstream of the
providers works only with the types in this module.

Design principles:
- One canonical time representation: every timestamp is a tz-aware UTC instant
- Canonical record units: meters, liters, kilograms, degrees Celsius, mmHg
- Snapshot display units: km, mL, cm, bpm, hours
- Absence is explicit: latest-of-period metrics are None when nothing was recorded,
  sum and mean metrics are 0
"""

import math
from datetime import UTC, date, datetime, timedelta
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class HealthMetricKind(StrEnum):
    STEPS = "steps"
    HEART_RATE = "heart_rate"
    DISTANCE = "distance"
    WEIGHT = "weight"
    HEIGHT = "height"
    BLOOD_PRESSURE = "blood_pressure"
    BODY_TEMPERATURE = "body_temperature"
    HYDRATION = "hydration"
    SLEEP = "sleep"


class AggregationPolicy(StrEnum):
    SUM_OVER_INTERVAL = "sum-over-interval"
    MEAN_OF_SAMPLES = "mean-of-samples"
    LATEST_OF_PERIOD = "latest-of-period"


AGGREGATION_POLICIES: dict[HealthMetricKind, AggregationPolicy] = {
    HealthMetricKind.STEPS: AggregationPolicy.SUM_OVER_INTERVAL,
    HealthMetricKind.DISTANCE: AggregationPolicy.SUM_OVER_INTERVAL,
    HealthMetricKind.HYDRATION: AggregationPolicy.SUM_OVER_INTERVAL,
    HealthMetricKind.SLEEP: AggregationPolicy.SUM_OVER_INTERVAL,
    HealthMetricKind.HEART_RATE: AggregationPolicy.MEAN_OF_SAMPLES,
    HealthMetricKind.BODY_TEMPERATURE: AggregationPolicy.MEAN_OF_SAMPLES,
    HealthMetricKind.WEIGHT: AggregationPolicy.LATEST_OF_PERIOD,
    HealthMetricKind.HEIGHT: AggregationPolicy.LATEST_OF_PERIOD,
    HealthMetricKind.BLOOD_PRESSURE: AggregationPolicy.LATEST_OF_PERIOD,
}

# Units of the values exposed in snapshots and weekly series
METRIC_UNITS: dict[HealthMetricKind, str] = {
    HealthMetricKind.STEPS: "steps",
    HealthMetricKind.HEART_RATE: "bpm",
    HealthMetricKind.DISTANCE: "km",
    HealthMetricKind.WEIGHT: "kg",
    HealthMetricKind.HEIGHT: "cm",
    HealthMetricKind.BLOOD_PRESSURE: "mmHg",
    HealthMetricKind.BODY_TEMPERATURE: "°C",
    HealthMetricKind.HYDRATION: "mL",
    HealthMetricKind.SLEEP: "h",
}


def policy_for(kind: HealthMetricKind) -> AggregationPolicy:
    return AGGREGATION_POLICIES[kind]


def _as_utc(value: datetime) -> datetime:
    """Reject naive timestamps and normalize aware ones to UTC."""
    if value.tzinfo is None:
        raise ValueError("timestamp must be timezone-aware")
    return value.astimezone(UTC)


# --- Permissions ---


class AccessType(StrEnum):
    READ = "read"
    WRITE = "write"


class PermissionScope(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_type: AccessType
    kind: HealthMetricKind


class PermissionStatus(StrEnum):
    UNGRANTED = "ungranted"
    CHECKING = "checking"
    GRANTED = "granted"
    DENIED = "denied"


WRITABLE_KINDS: tuple[HealthMetricKind, ...] = tuple(
    k for k in HealthMetricKind if k != HealthMetricKind.SLEEP
)

DEFAULT_PERMISSION_SCOPES: tuple[PermissionScope, ...] = (
    *(PermissionScope(access_type=AccessType.READ, kind=k) for k in HealthMetricKind),
    *(PermissionScope(access_type=AccessType.WRITE, kind=k) for k in WRITABLE_KINDS),
)


class PermissionState(BaseModel):
    """Permission state for one provider.

    Not sticky: the user can revoke access outside the app, so callers
    re-check rather than trust a stored GRANTED.
    """

    status: PermissionStatus = PermissionStatus.UNGRANTED
    granted_metrics: set[PermissionScope] = Field(default_factory=set)
    settings_redirect: bool = False

    @property
    def granted(self) -> bool:
        return self.status == PermissionStatus.GRANTED

    def can_read(self, kind: HealthMetricKind) -> bool:
        return PermissionScope(access_type=AccessType.READ, kind=kind) in self.granted_metrics


# --- Records ---


class _IntervalRecord(BaseModel):
    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def normalize_timestamps(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @model_validator(mode="after")
    def check_interval(self) -> "_IntervalRecord":
        if self.end < self.start:
            raise ValueError("record end precedes start")
        return self

    @property
    def bucket_time(self) -> datetime:
        return self.start


class _PointRecord(BaseModel):
    time: datetime

    @field_validator("time")
    @classmethod
    def normalize_time(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @property
    def bucket_time(self) -> datetime:
        return self.time


class StepsRecord(_IntervalRecord):
    kind: Literal[HealthMetricKind.STEPS] = HealthMetricKind.STEPS
    count: int = Field(ge=0)

    @property
    def quantity(self) -> float:
        return float(self.count)


class DistanceRecord(_IntervalRecord):
    kind: Literal[HealthMetricKind.DISTANCE] = HealthMetricKind.DISTANCE
    meters: float = Field(ge=0)

    @property
    def quantity(self) -> float:
        return self.meters


class HydrationRecord(_IntervalRecord):
    kind: Literal[HealthMetricKind.HYDRATION] = HealthMetricKind.HYDRATION
    liters: float = Field(ge=0)

    @property
    def quantity(self) -> float:
        return self.liters


class SleepRecord(_IntervalRecord):
    """A sleep session. Attributed to the day the session ends (wake-up day)."""

    kind: Literal[HealthMetricKind.SLEEP] = HealthMetricKind.SLEEP

    @property
    def bucket_time(self) -> datetime:
        return self.end

    @property
    def quantity(self) -> float:
        return (self.end - self.start) / timedelta(hours=1)


class HeartRateSample(BaseModel):
    time: datetime
    bpm: float

    @field_validator("time")
    @classmethod
    def normalize_time(cls, v: datetime) -> datetime:
        return _as_utc(v)


class HeartRateRecord(_IntervalRecord):
    kind: Literal[HealthMetricKind.HEART_RATE] = HealthMetricKind.HEART_RATE
    samples: list[HeartRateSample] = Field(default_factory=list)

    @property
    def sample_values(self) -> list[float]:
        return [s.bpm for s in self.samples]


class BodyTemperatureRecord(_PointRecord):
    kind: Literal[HealthMetricKind.BODY_TEMPERATURE] = HealthMetricKind.BODY_TEMPERATURE
    celsius: float

    @property
    def sample_values(self) -> list[float]:
        return [self.celsius]


class WeightRecord(_PointRecord):
    kind: Literal[HealthMetricKind.WEIGHT] = HealthMetricKind.WEIGHT
    kilograms: float = Field(gt=0)


class HeightRecord(_PointRecord):
    kind: Literal[HealthMetricKind.HEIGHT] = HealthMetricKind.HEIGHT
    meters: float = Field(gt=0)


class BloodPressureReading(BaseModel):
    systolic: float = Field(gt=0)
    diastolic: float = Field(gt=0)


class BloodPressureRecord(_PointRecord):
    kind: Literal[HealthMetricKind.BLOOD_PRESSURE] = HealthMetricKind.BLOOD_PRESSURE
    systolic: float = Field(gt=0)
    diastolic: float = Field(gt=0)

    @property
    def reading(self) -> BloodPressureReading:
        return BloodPressureReading(systolic=self.systolic, diastolic=self.diastolic)


HealthRecord = Annotated[
    StepsRecord
    | DistanceRecord
    | HydrationRecord
    | SleepRecord
    | HeartRateRecord
    | BodyTemperatureRecord
    | WeightRecord
    | HeightRecord
    | BloodPressureRecord,
    Field(discriminator="kind"),
]


# --- Snapshots and series ---


class DailyHealthSnapshot(BaseModel):
    """Aggregated per-day values, one field per HealthMetricKind."""

    day: date
    steps: int = 0
    heart_rate: int = 0
    distance: float = 0.0
    weight: float | None = None
    height: float | None = None
    blood_pressure: BloodPressureReading | None = None
    body_temperature: float = 0.0
    hydration: int = 0
    sleep: float = 0.0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("distance", "body_temperature", "sleep", "weight", "height")
    @classmethod
    def reject_non_finite(cls, v: float | None) -> float | None:
        if v is not None and not math.isfinite(v):
            raise ValueError("snapshot values must be finite")
        return v

    @classmethod
    def empty(cls, day: date) -> "DailyHealthSnapshot":
        return cls(day=day)

    def value_for(self, kind: HealthMetricKind) -> float | BloodPressureReading | None:
        return getattr(self, kind.value)


class DailyHealthMetric(BaseModel):
    """One day's entry in a per-metric series."""

    day: date
    day_name: str
    value: float | None
    unit: str
    is_today: bool = False
    # Diastolic reading for blood pressure series; None elsewhere
    secondary: float | None = None


class HealthDataRange(BaseModel):
    """Inclusive range of calendar days."""

    start: date
    end: date

    @model_validator(mode="after")
    def check_order(self) -> "HealthDataRange":
        if self.start > self.end:
            raise ValueError("range start must not be after end")
        return self

    @property
    def length(self) -> int:
        return (self.end - self.start).days + 1

    def days(self) -> list[date]:
        return [self.start + timedelta(days=i) for i in range(self.length)]


class WeeklyHealthData(BaseModel):
    """Per-metric daily series over a range; every series has one entry per day."""

    start: date
    end: date
    series: dict[HealthMetricKind, list[DailyHealthMetric]]

    def values(self, kind: HealthMetricKind) -> list[float | None]:
        return [entry.value for entry in self.series.get(kind, [])]


class StoredWeeklyData(BaseModel):
    """Archive entry. Identity is (week_start, week_end)."""

    week_start: date
    week_end: date
    data: WeeklyHealthData
    archived_at: datetime

    @property
    def key(self) -> tuple[date, date]:
        return (self.week_start, self.week_end)


# --- Writes ---


class HealthDataWrite(BaseModel):
    """Partial snapshot submitted for writing. Units follow the snapshot display units."""

    steps: int | None = None
    heart_rate: float | None = None
    distance: float | None = None  # km
    weight: float | None = None  # kg
    height: float | None = None  # cm
    blood_pressure: BloodPressureReading | None = None  # mmHg
    body_temperature: float | None = None  # °C
    hydration: float | None = None  # mL

    def present_fields(self) -> dict[str, object]:
        return {
            name: getattr(self, name)
            for name in type(self).model_fields
            if getattr(self, name) is not None
        }


# --- Projections and summaries ---


class ProjectionSource(StrEnum):
    LIVE = "live"
    CACHE = "cache"
    DEFAULT = "default"


class WidgetProjection(BaseModel):
    current_value: float
    goal: float
    source: ProjectionSource


class WidgetGoalUpdate(BaseModel):
    goal: float = Field(gt=0)


class InAppEntry(BaseModel):
    """Values entered in the app for one day, shown on widgets without a platform read."""

    steps: int | None = Field(None, ge=0)
    hydration: int | None = Field(None, ge=0)  # mL
    day: date | None = None

    @model_validator(mode="after")
    def _has_value(self) -> "InAppEntry":
        if self.steps is None and self.hydration is None:
            raise ValueError("at least one of steps or hydration is required")
        return self


class AppStateChange(BaseModel):
    state: Literal["active", "background", "inactive"]


class ArchiveSummary(BaseModel):
    total_weeks_tracked: int = 0
    average_steps_per_week: int = 0
    average_heart_rate_per_week: int = 0
    average_water_intake_per_week: float = 0.0
    average_temperature_per_week: float = 0.0


class ProfileHealthData(BaseModel):
    current_week: StoredWeeklyData | None = None
    historical_weeks: list[StoredWeeklyData] = Field(default_factory=list)
    summary: ArchiveSummary = Field(default_factory=ArchiveSummary)
