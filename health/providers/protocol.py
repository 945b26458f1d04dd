"""Provider protocols for platform health stores.

Two layers:
- PlatformHealthClient: the platform capability itself (Health Connect or
  HealthKit surface, reached in-process for fixtures or over the device bridge).
- HealthProvider: what the rest of the system depends on. Both platform
  variants implement it; the domain layer never touches a client directly.
"""

from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from health.domain.models import (
    DailyHealthSnapshot,
    HealthDataWrite,
    HealthMetricKind,
    HealthRecord,
    PermissionScope,
    PermissionState,
)

if TYPE_CHECKING:
    from health.aggregation.daily import DailyAggregator


class PlatformSecurityError(Exception):
    """The platform refused a call because the app lacks the permission (SecurityException)."""


class PlatformSdkError(Exception):
    """The platform health service is missing, outdated or not set up."""


def is_security_error(exc: BaseException) -> bool:
    """True for permission failures, including ones only recognizable by message."""
    return isinstance(exc, PlatformSecurityError) or "SecurityException" in str(exc)


@runtime_checkable
class PlatformHealthClient(Protocol):
    """The consumed platform capability. Payload shapes are platform-specific."""

    async def initialize(self) -> bool: ...

    async def get_availability_status(self) -> Any: ...

    async def request_permission(self, scopes: Any) -> Any: ...

    async def read_records(
        self, record_type: str, time_range_filter: dict[str, str]
    ) -> dict[str, Any]: ...

    async def insert_records(self, records: list[dict[str, Any]]) -> list[str]: ...

    async def open_settings(self) -> None: ...


@runtime_checkable
class HealthProvider(Protocol):
    """Common interface for the Android and iOS health providers."""

    platform: str
    permission_state: PermissionState
    daily: "DailyAggregator"

    async def initialize(self) -> bool:
        """Open the platform health service. Idempotent; success is cached."""
        ...

    async def is_available(self) -> bool:
        """Query platform availability without side effects."""
        ...

    async def request_permissions(
        self, scopes: list[PermissionScope] | None = None
    ) -> PermissionState:
        """Prompt for the given scopes (all default scopes when None)."""
        ...

    async def check_permissions(self) -> PermissionState:
        """Determine access with a bounded real read rather than the claimed-permission API."""
        ...

    async def read_records(
        self, kind: HealthMetricKind, start: datetime, end: datetime
    ) -> list[HealthRecord]:
        """One bounded read for one metric, mapped into canonical records."""
        ...

    async def read_daily_data(self, day: date) -> DailyHealthSnapshot:
        """Aggregate all readable metrics for one local calendar day."""
        ...

    async def write_health_data(self, data: HealthDataWrite) -> bool:
        """Write the present fields as one batch. Returns False instead of raising."""
        ...

    async def open_settings(self) -> None:
        """Best-effort deep link to the platform health permission settings."""
        ...
