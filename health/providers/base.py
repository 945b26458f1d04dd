"""Shared provider logic for both platform variants.

A provider wraps one PlatformHealthClient and one mapper. Everything that is
not shape translation lives here:
- initialization is idempotent and cached after the first success
- permission state is derived from a real bounded read, never from the
  platform's claimed-permission list
- writes are validated, mapped and inserted as a single batch
- every client call is timed in provider_call_duration_seconds
"""

from datetime import UTC, date, datetime
from typing import Any

import structlog

from health.aggregation.daily import DailyAggregator, local_day_window
from health.domain.models import (
    DEFAULT_PERMISSION_SCOPES,
    DailyHealthSnapshot,
    HealthDataWrite,
    HealthMetricKind,
    HealthRecord,
    PermissionScope,
    PermissionState,
    PermissionStatus,
)
from health.domain.validation import validate_health_write
from health.providers.protocol import PlatformHealthClient, is_security_error
from shared.config import settings
from shared.exceptions import RemediationAction
from shared.metrics import (
    health_writes_total,
    permission_checks_total,
    provider_call_duration_seconds,
)

logger = structlog.get_logger()


class PlatformHealthProvider:
    platform: str

    def __init__(
        self,
        client: PlatformHealthClient,
        mapper: Any,
        *,
        tz=None,
        weight_lookback_days: int | None = None,
        height_lookback_days: int | None = None,
        clock=None,
    ) -> None:
        self._client = client
        self._mapper = mapper
        self.platform = mapper.platform
        self.permission_state = PermissionState()
        self._initialized = False
        self._clock = clock or (lambda: datetime.now(UTC))
        self.daily = DailyAggregator(
            self,
            tz=tz or settings.tz,
            weight_lookback_days=weight_lookback_days or settings.weight_lookback_days,
            height_lookback_days=height_lookback_days or settings.height_lookback_days,
            clock=self._clock,
            remediation=self.settings_remediation,
        )

    def settings_remediation(self) -> RemediationAction:
        return RemediationAction(
            action="open_settings",
            label="Open Health Settings",
            href=f"/api/{settings.api_version}/health/settings/open",
            callback=self.open_settings,
        )

    def _timed(self, operation: str):
        return provider_call_duration_seconds.labels(
            platform=self.platform, operation=operation
        ).time()

    async def initialize(self) -> bool:
        if self._initialized:
            return True
        if not await self.is_available():
            logger.warning("platform_unavailable", platform=self.platform)
            return False
        try:
            with self._timed("initialize"):
                self._initialized = bool(await self._client.initialize())
        except Exception as exc:
            logger.error("provider_initialize_failed", platform=self.platform, error=str(exc))
            return False
        logger.info("provider_initialized", platform=self.platform, ok=self._initialized)
        return self._initialized

    async def is_available(self) -> bool:
        try:
            with self._timed("availability"):
                status = await self._client.get_availability_status()
        except Exception as exc:
            logger.warning("availability_check_failed", platform=self.platform, error=str(exc))
            return False
        return status == self._mapper.available_status

    async def request_permissions(
        self, scopes: list[PermissionScope] | None = None
    ) -> PermissionState:
        """Prompt for `scopes`, then confirm access with a probe read.

        The prompt result alone is not trusted: some platform versions report
        success for dismissed dialogs.
        """
        requested = tuple(scopes or DEFAULT_PERMISSION_SCOPES)
        if not await self.initialize():
            return self._set_state(PermissionStatus.DENIED, "request", "sdk_error", redirect=True)

        self.permission_state = PermissionState(status=PermissionStatus.CHECKING)
        try:
            with self._timed("request_permission"):
                await self._client.request_permission(self._mapper.permission_request(requested))
        except Exception as exc:
            logger.error(
                "permission_request_failed",
                platform=self.platform,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return self._set_state(PermissionStatus.DENIED, "request", "sdk_error", redirect=True)

        if await self._probe_read():
            return self._set_state(
                PermissionStatus.GRANTED, "request", "granted", granted=set(requested)
            )
        return self._set_state(PermissionStatus.DENIED, "request", "denied", redirect=True)

    async def check_permissions(self) -> PermissionState:
        if not await self.initialize():
            return self._set_state(PermissionStatus.DENIED, "check", "sdk_error", redirect=True)
        if await self._probe_read():
            granted = self.permission_state.granted_metrics or set(DEFAULT_PERMISSION_SCOPES)
            return self._set_state(PermissionStatus.GRANTED, "check", "granted", granted=granted)
        return self._set_state(PermissionStatus.DENIED, "check", "denied", redirect=True)

    def _set_state(
        self,
        status: PermissionStatus,
        operation: str,
        outcome: str,
        *,
        granted: set[PermissionScope] | None = None,
        redirect: bool = False,
    ) -> PermissionState:
        self.permission_state = PermissionState(
            status=status, granted_metrics=granted or set(), settings_redirect=redirect
        )
        permission_checks_total.labels(
            platform=self.platform, operation=operation, outcome=outcome
        ).inc()
        logger.info(
            "permission_state_changed",
            platform=self.platform,
            operation=operation,
            status=status.value,
            granted_scopes=len(self.permission_state.granted_metrics),
        )
        return self.permission_state

    async def _probe_read(self) -> bool:
        """Read today's steps; any failure means access is not usable."""
        start, end = local_day_window(self.daily.today(), self.daily.tz)
        try:
            await self.read_records(HealthMetricKind.STEPS, start, end)
        except Exception as exc:
            logger.info(
                "permission_probe_failed",
                platform=self.platform,
                security=is_security_error(exc),
                error=str(exc),
            )
            return False
        return True

    async def read_records(
        self, kind: HealthMetricKind, start: datetime, end: datetime
    ) -> list[HealthRecord]:
        with self._timed("read_records"):
            response = await self._client.read_records(
                self._mapper.record_type(kind), self._mapper.time_range_filter(start, end)
            )
        raw = response.get("records", []) if isinstance(response, dict) else list(response or [])
        return self._mapper.parse(kind, raw)

    async def read_daily_data(self, day: date) -> DailyHealthSnapshot:
        await self.daily.ensure_platform()
        return await self.daily.read(day)

    async def write_health_data(self, data: HealthDataWrite) -> bool:
        """Write present fields as one batch. Partial success is never reported as success."""
        if not await self.initialize():
            health_writes_total.labels(platform=self.platform, outcome="failed").inc()
            return False

        errors = validate_health_write(data.model_dump())
        if errors:
            health_writes_total.labels(platform=self.platform, outcome="rejected").inc()
            logger.warning(
                "health_write_rejected",
                platform=self.platform,
                violations=[{"field": e.field, "reason": e.reason} for e in errors],
            )
            return False

        records = self._mapper.to_platform_records(data, self._clock())
        try:
            with self._timed("insert_records"):
                await self._client.insert_records(records)
        except Exception as exc:
            health_writes_total.labels(platform=self.platform, outcome="failed").inc()
            logger.error(
                "health_write_failed",
                platform=self.platform,
                records=len(records),
                security=is_security_error(exc),
                error=str(exc),
            )
            return False

        health_writes_total.labels(platform=self.platform, outcome="written").inc()
        logger.info("health_write_completed", platform=self.platform, records=len(records))
        return True

    async def open_settings(self) -> None:
        try:
            with self._timed("open_settings"):
                await self._client.open_settings()
        except Exception as exc:
            logger.error("open_settings_failed", platform=self.platform, error=str(exc))

