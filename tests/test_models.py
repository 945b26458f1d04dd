"""Tests for the canonical health domain models."""

from datetime import UTC, date, datetime, timedelta, timezone

import pytest
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from health.domain.models import (
    AGGREGATION_POLICIES,
    DEFAULT_PERMISSION_SCOPES,
    METRIC_UNITS,
    AccessType,
    AggregationPolicy,
    DailyHealthSnapshot,
    HealthDataRange,
    HealthDataWrite,
    HealthMetricKind,
    HealthRecord,
    PermissionScope,
    PermissionState,
    PermissionStatus,
    SleepRecord,
    StepsRecord,
    WeightRecord,
)


class TestMetricKinds:
    def test_every_kind_has_policy_and_unit(self):
        for kind in HealthMetricKind:
            assert kind in AGGREGATION_POLICIES
            assert kind in METRIC_UNITS

    def test_policy_assignment(self):
        assert AGGREGATION_POLICIES[HealthMetricKind.STEPS] == AggregationPolicy.SUM_OVER_INTERVAL
        assert AGGREGATION_POLICIES[HealthMetricKind.HEART_RATE] == AggregationPolicy.MEAN_OF_SAMPLES
        assert AGGREGATION_POLICIES[HealthMetricKind.WEIGHT] == AggregationPolicy.LATEST_OF_PERIOD
        assert AGGREGATION_POLICIES[HealthMetricKind.SLEEP] == AggregationPolicy.SUM_OVER_INTERVAL


class TestRecords:
    def test_naive_timestamp_rejected(self):
        with pytest.raises(PydanticValidationError):
            StepsRecord(start=datetime(2024, 3, 14, 9), end=datetime(2024, 3, 14, 10), count=5)

    def test_timestamps_normalized_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        record = WeightRecord(time=datetime(2024, 3, 14, 9, tzinfo=plus_two), kilograms=70)
        assert record.time == datetime(2024, 3, 14, 7, tzinfo=UTC)
        assert record.time.tzinfo == UTC

    def test_interval_end_before_start_rejected(self):
        with pytest.raises(PydanticValidationError):
            StepsRecord(
                start=datetime(2024, 3, 14, 10, tzinfo=UTC),
                end=datetime(2024, 3, 14, 9, tzinfo=UTC),
                count=5,
            )

    def test_negative_steps_rejected(self):
        with pytest.raises(PydanticValidationError):
            StepsRecord(
                start=datetime(2024, 3, 14, 9, tzinfo=UTC),
                end=datetime(2024, 3, 14, 10, tzinfo=UTC),
                count=-1,
            )

    def test_sleep_buckets_on_session_end(self):
        record = SleepRecord(
            start=datetime(2024, 3, 13, 23, tzinfo=UTC),
            end=datetime(2024, 3, 14, 6, 30, tzinfo=UTC),
        )
        assert record.bucket_time == record.end
        assert record.quantity == 7.5

    def test_union_discriminates_on_kind(self):
        adapter = TypeAdapter(HealthRecord)
        record = adapter.validate_python(
            {"kind": "weight", "time": "2024-03-14T07:00:00+00:00", "kilograms": 72.5}
        )
        assert isinstance(record, WeightRecord)


class TestSnapshot:
    def test_empty_snapshot_defaults(self):
        snapshot = DailyHealthSnapshot.empty(date(2024, 3, 14))
        assert snapshot.steps == 0
        assert snapshot.heart_rate == 0
        assert snapshot.hydration == 0
        assert snapshot.weight is None
        assert snapshot.height is None
        assert snapshot.blood_pressure is None

    def test_non_finite_values_rejected(self):
        with pytest.raises(PydanticValidationError):
            DailyHealthSnapshot(day=date(2024, 3, 14), distance=float("nan"))

    def test_value_for_kind(self):
        snapshot = DailyHealthSnapshot(day=date(2024, 3, 14), steps=1200, weight=70.5)
        assert snapshot.value_for(HealthMetricKind.STEPS) == 1200
        assert snapshot.value_for(HealthMetricKind.WEIGHT) == 70.5


class TestRange:
    def test_days_are_inclusive(self):
        data_range = HealthDataRange(start=date(2024, 3, 8), end=date(2024, 3, 14))
        assert data_range.length == 7
        assert data_range.days()[0] == date(2024, 3, 8)
        assert data_range.days()[-1] == date(2024, 3, 14)

    def test_inverted_range_rejected(self):
        with pytest.raises(PydanticValidationError):
            HealthDataRange(start=date(2024, 3, 15), end=date(2024, 3, 14))


class TestPermissions:
    def test_default_scopes_cover_reads_for_every_kind(self):
        reads = {s.kind for s in DEFAULT_PERMISSION_SCOPES if s.access_type == AccessType.READ}
        assert reads == set(HealthMetricKind)

    def test_sleep_is_read_only(self):
        writes = {s.kind for s in DEFAULT_PERMISSION_SCOPES if s.access_type == AccessType.WRITE}
        assert HealthMetricKind.SLEEP not in writes

    def test_can_read(self):
        state = PermissionState(
            status=PermissionStatus.GRANTED,
            granted_metrics={PermissionScope(access_type=AccessType.READ, kind=HealthMetricKind.STEPS)},
        )
        assert state.granted
        assert state.can_read(HealthMetricKind.STEPS)
        assert not state.can_read(HealthMetricKind.WEIGHT)


class TestHealthDataWrite:
    def test_present_fields_skips_none(self):
        write = HealthDataWrite(steps=100, weight=70.0)
        assert write.present_fields() == {"steps": 100, "weight": 70.0}
