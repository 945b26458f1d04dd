"""Aggregation policies: pure reducers from canonical records to one daily value.

- sum-over-interval: total of record quantities (steps, distance, hydration, sleep)
- mean-of-samples: arithmetic mean of finite positive samples (heart rate, temperature)
- latest-of-period: the record with the greatest timestamp (weight, height, blood pressure)

Results are converted to snapshot display units and rounded here so every
caller reports identical values for identical records.
"""

import math
from collections.abc import Sequence

from health.domain.models import (
    AggregationPolicy,
    BloodPressureRecord,
    DailyHealthSnapshot,
    HealthMetricKind,
    HealthRecord,
    policy_for,
)


def sum_over_interval(records: Sequence[HealthRecord]) -> float:
    """Sum record quantities. Non-finite quantities are dropped."""
    return sum(q for r in records if math.isfinite(q := r.quantity))


def mean_of_samples(records: Sequence[HealthRecord]) -> float:
    """Mean over all samples of all records; only finite values > 0 count. Zero when none remain."""
    values = [v for r in records for v in r.sample_values if math.isfinite(v) and v > 0]
    if not values:
        return 0.0
    return sum(values) / len(values)


def latest_of_period(records: Sequence[HealthRecord]) -> HealthRecord | None:
    if not records:
        return None
    return max(records, key=lambda r: r.bucket_time)


def default_value(kind: HealthMetricKind):
    """Value reported when a metric has no data or its read failed."""
    if policy_for(kind) == AggregationPolicy.LATEST_OF_PERIOD:
        return None
    if kind in (HealthMetricKind.STEPS, HealthMetricKind.HEART_RATE, HealthMetricKind.HYDRATION):
        return 0
    return 0.0


def reduce_records(kind: HealthMetricKind, records: Sequence[HealthRecord]):
    """Reduce one metric's in-window records to its display value."""
    policy = policy_for(kind)

    if policy == AggregationPolicy.SUM_OVER_INTERVAL:
        total = sum_over_interval(records)
        if kind == HealthMetricKind.STEPS:
            return int(round(total))
        if kind == HealthMetricKind.DISTANCE:
            return round(total / 1000, 2)  # m → km
        if kind == HealthMetricKind.HYDRATION:
            return int(round(total * 1000))  # L → mL
        return round(total, 1)  # sleep hours

    if policy == AggregationPolicy.MEAN_OF_SAMPLES:
        mean = mean_of_samples(records)
        if kind == HealthMetricKind.HEART_RATE:
            return int(round(mean))
        return round(mean, 1)

    latest = latest_of_period(records)
    if latest is None:
        return None
    if isinstance(latest, BloodPressureRecord):
        return latest.reading
    if kind == HealthMetricKind.HEIGHT:
        return round(latest.meters * 100, 1)  # m → cm
    return round(latest.kilograms, 1)


def build_snapshot(day, values: dict[HealthMetricKind, object]) -> DailyHealthSnapshot:
    """Assemble a snapshot; kinds missing from `values` take their default."""
    fields = {kind.value: values.get(kind, default_value(kind)) for kind in HealthMetricKind}
    return DailyHealthSnapshot(day=day, **fields)
