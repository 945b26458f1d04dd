"""Weekly aggregation: per-metric daily series over a range of days.

Days are read through the DailyAggregator with bounded concurrency
(settings.weekly_read_concurrency; 1 reads days one after another). A day
whose read fails is zero-filled so every series keeps one entry per day.
Permission failures and loss of the platform are not absorbed and propagate
to the caller; the provider is initialized once before any day is read.
"""

import asyncio
from datetime import date, timedelta

import structlog

from health.aggregation.daily import DailyAggregator
from health.domain.models import (
    METRIC_UNITS,
    BloodPressureReading,
    DailyHealthMetric,
    DailyHealthSnapshot,
    HealthDataRange,
    HealthMetricKind,
    WeeklyHealthData,
)
from shared.exceptions import PermissionDeniedError, PlatformUnavailableError

logger = structlog.get_logger()


def get_week_range(today: date, weeks_ago: int = 0) -> HealthDataRange:
    """The 7-day range ending `weeks_ago` weeks before `today` (inclusive)."""
    end = today - timedelta(weeks=weeks_ago)
    return HealthDataRange(start=end - timedelta(days=6), end=end)


def _metric_entry(
    snapshot: DailyHealthSnapshot, kind: HealthMetricKind, today: date
) -> DailyHealthMetric:
    value = snapshot.value_for(kind)
    secondary = None
    if isinstance(value, BloodPressureReading):
        value, secondary = value.systolic, value.diastolic
    return DailyHealthMetric(
        day=snapshot.day,
        day_name=snapshot.day.strftime("%a"),
        value=value,
        unit=METRIC_UNITS[kind],
        is_today=snapshot.day == today,
        secondary=secondary,
    )


class WeeklyAggregator:
    def __init__(self, daily: DailyAggregator, concurrency: int = 1) -> None:
        self._daily = daily
        self._concurrency = max(1, concurrency)

    async def read(self, data_range: HealthDataRange | None = None) -> WeeklyHealthData:
        today = self._daily.today()
        data_range = data_range or get_week_range(today)
        await self._daily.ensure_platform()
        semaphore = asyncio.Semaphore(self._concurrency)

        async def read_day(day: date) -> DailyHealthSnapshot:
            async with semaphore:
                try:
                    return await self._daily.read(day)
                except (PermissionDeniedError, PlatformUnavailableError):
                    raise
                except Exception as exc:
                    logger.warning(
                        "day_read_failed",
                        day=day.isoformat(),
                        error=str(exc),
                        error_type=type(exc).__name__,
                    )
                    return DailyHealthSnapshot.empty(day)

        snapshots = await asyncio.gather(
            *(read_day(day) for day in data_range.days()), return_exceptions=True
        )
        for result in snapshots:
            if isinstance(result, BaseException):
                raise result

        series = {
            kind: [_metric_entry(snapshot, kind, today) for snapshot in snapshots]
            for kind in HealthMetricKind
        }
        logger.info(
            "weekly_series_read",
            start=data_range.start.isoformat(),
            end=data_range.end.isoformat(),
            days=data_range.length,
        )
        return WeeklyHealthData(start=data_range.start, end=data_range.end, series=series)
