"""Daily aggregation: one snapshot per local calendar day.

For each readable metric kind, one bounded read is issued concurrently:
- sum and mean kinds read the local day window [00:00, next 00:00)
- weight and height read a lookback window ending at the day's end

Records are re-bucketed on their canonical instant (interval start, sleep
session end, point time) before reduction, so platform filters that return
overlapping records cannot double count across days.

Failure handling:
- A permission failure on any metric aborts the whole read (PermissionDeniedError)
- A platform SDK failure with no metric read successfully means the health
  service is gone (PlatformUnavailableError), not an empty day
- Any other per-metric failure is logged and that metric falls back to its default
"""

import asyncio
from collections.abc import Callable
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo

import structlog

from health.aggregation.policies import build_snapshot, reduce_records
from health.domain.models import (
    AggregationPolicy,
    DailyHealthSnapshot,
    HealthMetricKind,
    policy_for,
)
from health.providers.protocol import PlatformSdkError, is_security_error
from shared.exceptions import PermissionDeniedError, PlatformUnavailableError, RemediationAction
from shared.metrics import daily_read_duration_seconds, metric_reads_total

logger = structlog.get_logger()


def local_day_window(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """UTC bounds of a local calendar day. DST days are 23 or 25 hours long."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(UTC), end.astimezone(UTC)


class DailyAggregator:
    def __init__(
        self,
        provider,
        tz: ZoneInfo,
        weight_lookback_days: int = 30,
        height_lookback_days: int = 365,
        clock: Callable[[], datetime] | None = None,
        remediation: Callable[[], RemediationAction] | None = None,
    ) -> None:
        self._provider = provider
        self.tz = tz
        self._lookbacks = {
            HealthMetricKind.WEIGHT: weight_lookback_days,
            HealthMetricKind.HEIGHT: height_lookback_days,
        }
        self._clock = clock or (lambda: datetime.now(UTC))
        self._remediation = remediation

    def today(self) -> date:
        return self._clock().astimezone(self.tz).date()

    async def ensure_platform(self) -> None:
        """Initialize the provider, raising PlatformUnavailableError when it cannot be opened."""
        if not await self._provider.initialize():
            raise PlatformUnavailableError(
                self._provider.platform,
                remediation=self._remediation() if self._remediation else None,
            )

    def window_for(self, kind: HealthMetricKind, day: date) -> tuple[datetime, datetime]:
        lookback = self._lookbacks.get(kind)
        if lookback is None:
            return local_day_window(day, self.tz)
        start, _ = local_day_window(day - timedelta(days=lookback - 1), self.tz)
        _, end = local_day_window(day, self.tz)
        return start, end

    def readable_kinds(self) -> list[HealthMetricKind]:
        state = self._provider.permission_state
        if not state.granted_metrics:
            return list(HealthMetricKind)
        return [kind for kind in HealthMetricKind if state.can_read(kind)]

    async def _read_kind(self, kind: HealthMetricKind, day: date):
        start, end = self.window_for(kind, day)
        records = await self._provider.read_records(kind, start, end)
        in_window = [r for r in records if start <= r.bucket_time < end]
        return reduce_records(kind, in_window)

    async def read(self, day: date) -> DailyHealthSnapshot:
        """Aggregate every readable metric for `day`."""
        platform = self._provider.platform
        kinds = self.readable_kinds()

        with daily_read_duration_seconds.labels(platform=platform).time():
            results = await asyncio.gather(
                *(self._read_kind(kind, day) for kind in kinds), return_exceptions=True
            )

        values: dict[HealthMetricKind, object] = {}
        denied: BaseException | None = None
        sdk_failure: BaseException | None = None
        failed = 0
        for kind, result in zip(kinds, results, strict=True):
            if not isinstance(result, BaseException):
                values[kind] = result
                metric_reads_total.labels(platform=platform, kind=kind, status="ok").inc()
                continue
            if is_security_error(result):
                denied = denied or result
                metric_reads_total.labels(platform=platform, kind=kind, status="denied").inc()
                continue
            if isinstance(result, PlatformSdkError):
                sdk_failure = sdk_failure or result
            failed += 1
            metric_reads_total.labels(platform=platform, kind=kind, status="failed").inc()
            logger.warning(
                "metric_read_failed",
                platform=platform,
                kind=kind.value,
                day=day.isoformat(),
                policy=policy_for(kind).value,
                error=str(result),
                error_type=type(result).__name__,
            )

        if denied is not None:
            raise PermissionDeniedError(
                detail=f"Reading {platform} health data was denied: {denied}",
                remediation=self._remediation() if self._remediation else None,
            ) from denied

        if sdk_failure is not None and not values:
            logger.error(
                "platform_lost_during_read",
                platform=platform,
                day=day.isoformat(),
                error=str(sdk_failure),
            )
            raise PlatformUnavailableError(
                platform, remediation=self._remediation() if self._remediation else None
            ) from sdk_failure

        snapshot = build_snapshot(day, values)
        logger.info(
            "daily_snapshot_read",
            platform=platform,
            day=day.isoformat(),
            kinds_read=len(kinds),
            kinds_failed=failed,
            latest_missing=[
                k.value
                for k in kinds
                if policy_for(k) == AggregationPolicy.LATEST_OF_PERIOD and values.get(k) is None
            ],
        )
        return snapshot
