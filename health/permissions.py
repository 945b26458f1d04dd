"""Permission-gated facade over one health provider.

State machine:
    uninitialized → initializing → ready_granted | ready_no_permission | error

Every data-loading call first ensures ready_granted, attempting a single
permission request when access is missing. Problems the user can fix are
raised with a RemediationAction (open the platform health settings):
- PlatformUnavailableError when the health service is missing or disabled
- PermissionDeniedError when access is still refused after the request

Any other failure is recorded on last_error and reported as None / False.
Exposed state is last-write-wins; concurrent loads are not serialized.
"""

from datetime import date
from enum import StrEnum

import structlog

from health.aggregation.weekly import WeeklyAggregator
from health.archive import HistoricalArchive
from health.domain.models import (
    DailyHealthSnapshot,
    HealthDataRange,
    HealthDataWrite,
    PermissionScope,
    PermissionState,
    WeeklyHealthData,
)
from health.providers.protocol import HealthProvider
from health.widgets import WidgetSyncBridge
from shared.config import settings
from shared.exceptions import PermissionDeniedError, PlatformUnavailableError, RemediationAction

logger = structlog.get_logger()


class ManagerState(StrEnum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY_NO_PERMISSION = "ready_no_permission"
    READY_GRANTED = "ready_granted"
    ERROR = "error"


class PermissionManager:
    def __init__(
        self,
        provider: HealthProvider,
        archive: HistoricalArchive | None = None,
        widgets: WidgetSyncBridge | None = None,
        weekly_concurrency: int | None = None,
    ) -> None:
        self.provider = provider
        self.archive = archive
        self.widgets = widgets
        self.state = ManagerState.UNINITIALIZED
        self.last_error: Exception | None = None
        self.daily_data: DailyHealthSnapshot | None = None
        self.weekly_data: WeeklyHealthData | None = None
        self.is_loading = False
        self._weekly = WeeklyAggregator(
            provider.daily, concurrency=weekly_concurrency or settings.weekly_read_concurrency
        )

    @property
    def has_permissions(self) -> bool:
        return self.state == ManagerState.READY_GRANTED

    @property
    def permission_state(self) -> PermissionState:
        return self.provider.permission_state

    def remediation(self) -> RemediationAction:
        return RemediationAction(
            action="open_settings",
            label="Open Health Settings",
            href=f"/api/{settings.api_version}/health/settings/open",
            callback=self.open_health_settings,
        )

    def _apply(self, permission: PermissionState) -> PermissionState:
        self.state = (
            ManagerState.READY_GRANTED if permission.granted else ManagerState.READY_NO_PERMISSION
        )
        return permission

    async def initialize(self) -> bool:
        """Open the provider and determine the current permission state."""
        self.state = ManagerState.INITIALIZING
        if not await self.provider.initialize():
            self.state = ManagerState.ERROR
            self.last_error = PlatformUnavailableError(
                self.provider.platform, remediation=self.remediation()
            )
            logger.warning("manager_initialize_failed", platform=self.provider.platform)
            return False
        self._apply(await self.provider.check_permissions())
        logger.info("manager_initialized", platform=self.provider.platform, state=self.state.value)
        return True

    async def request_permissions(
        self, scopes: list[PermissionScope] | None = None
    ) -> PermissionState:
        if self.state in (ManagerState.UNINITIALIZED, ManagerState.ERROR):
            if not await self.initialize():
                return self.provider.permission_state
        return self._apply(await self.provider.request_permissions(scopes))

    async def check_permissions(self) -> PermissionState:
        if self.state in (ManagerState.UNINITIALIZED, ManagerState.ERROR):
            if not await self.initialize():
                return self.provider.permission_state
            return self.provider.permission_state
        return self._apply(await self.provider.check_permissions())

    async def _ensure_permission(self) -> None:
        if self.state in (ManagerState.UNINITIALIZED, ManagerState.ERROR):
            if not await self.initialize():
                raise PlatformUnavailableError(
                    self.provider.platform, remediation=self.remediation()
                )
        if self.has_permissions:
            return
        await self.request_permissions()
        if not self.has_permissions:
            raise PermissionDeniedError(remediation=self.remediation())

    async def load_daily_data(self, day: date | None = None) -> DailyHealthSnapshot | None:
        """Aggregate one day (today when None) and remember it as daily_data."""
        await self._ensure_permission()
        day = day or self.provider.daily.today()
        self.is_loading = True
        try:
            snapshot = await self.provider.read_daily_data(day)
        except PermissionDeniedError as exc:
            self.state = ManagerState.READY_NO_PERMISSION
            exc.remediation = exc.remediation or self.remediation()
            raise
        except PlatformUnavailableError as exc:
            self.state = ManagerState.ERROR
            self.last_error = exc
            exc.remediation = exc.remediation or self.remediation()
            raise
        except Exception as exc:
            self.last_error = exc
            logger.error("daily_load_failed", day=day.isoformat(), error=str(exc))
            return None
        finally:
            self.is_loading = False

        self.daily_data = snapshot
        self.last_error = None
        if self.widgets is not None:
            self.widgets.schedule_push()
        return snapshot

    async def load_weekly_data(
        self, data_range: HealthDataRange | None = None, archive: bool = True
    ) -> WeeklyHealthData | None:
        """Read the per-day series for a range (the last 7 days when None).

        The result is saved to the archive unless `archive` is False.
        """
        await self._ensure_permission()
        self.is_loading = True
        try:
            weekly = await self._weekly.read(data_range)
        except PermissionDeniedError as exc:
            self.state = ManagerState.READY_NO_PERMISSION
            exc.remediation = exc.remediation or self.remediation()
            raise
        except PlatformUnavailableError as exc:
            self.state = ManagerState.ERROR
            self.last_error = exc
            exc.remediation = exc.remediation or self.remediation()
            raise
        except Exception as exc:
            self.last_error = exc
            logger.error("weekly_load_failed", error=str(exc))
            return None
        finally:
            self.is_loading = False

        self.weekly_data = weekly
        self.last_error = None
        if archive and self.archive is not None:
            await self.archive.save_weekly_data(weekly, weekly.start, weekly.end)
        return weekly

    async def write_health_data(self, data: HealthDataWrite) -> bool:
        await self._ensure_permission()
        written = await self.provider.write_health_data(data)
        if not written:
            return False
        # Refresh so exposed state reflects the write; the write itself has landed
        try:
            await self.load_daily_data()
        except (PermissionDeniedError, PlatformUnavailableError) as exc:
            logger.warning(
                "post_write_refresh_failed", error=str(exc), error_type=type(exc).__name__
            )
        return True

    async def open_health_settings(self) -> None:
        await self.provider.open_settings()

    async def is_health_available(self) -> bool:
        return await self.provider.is_available()
