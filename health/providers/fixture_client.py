"""In-memory platform client for fixture mode and tests.

Holds platform-native records per record type and serves them through the
same PlatformHealthClient surface as the device bridge. Availability,
permission prompts and per-record-type failures are configurable so every
provider path can be exercised without a device.
"""

import itertools
from datetime import datetime
from typing import Any

from health.providers.protocol import PlatformSdkError, PlatformSecurityError

_ids = itertools.count(1)


def _span(record: dict[str, Any]) -> tuple[datetime, datetime]:
    start = record.get("startTime") or record.get("startDate") or record.get("time")
    end = record.get("endTime") or record.get("endDate") or start
    return datetime.fromisoformat(start), datetime.fromisoformat(end)


class FixtureHealthClient:
    def __init__(
        self,
        available_status: Any,
        records: dict[str, list[dict[str, Any]]] | None = None,
        *,
        granted: bool = False,
        grant_on_request: bool = True,
    ) -> None:
        self.available_status = available_status
        self.records: dict[str, list[dict[str, Any]]] = {
            k: list(v) for k, v in (records or {}).items()
        }
        self.granted = granted
        self.grant_on_request = grant_on_request
        self.initialized = False
        self.failures: dict[str, Exception] = {}
        self.permission_error: Exception | None = None
        self.insert_error: Exception | None = None
        self.settings_error: Exception | None = None
        self.permission_requests: list[Any] = []
        self.read_calls: list[tuple[str, dict[str, str]]] = []
        self.inserted: list[dict[str, Any]] = []
        self.settings_opened = 0

    def add(self, record_type: str, *records: dict[str, Any]) -> None:
        self.records.setdefault(record_type, []).extend(records)

    def fail(self, record_type: str, error: Exception) -> None:
        self.failures[record_type] = error

    async def initialize(self) -> bool:
        self.initialized = self.available_status == self.status_when_available
        return self.initialized

    @property
    def status_when_available(self) -> Any:
        # Health Connect reports an int SDK status, HealthKit a string
        return 3 if isinstance(self.available_status, int) else "available"

    async def get_availability_status(self) -> Any:
        return self.available_status

    async def request_permission(self, scopes: Any) -> Any:
        self.permission_requests.append(scopes)
        if self.permission_error is not None:
            raise self.permission_error
        if self.grant_on_request:
            self.granted = True
        return scopes if self.granted else []

    async def read_records(
        self, record_type: str, time_range_filter: dict[str, str]
    ) -> dict[str, Any]:
        self.read_calls.append((record_type, time_range_filter))
        if not self.initialized:
            raise PlatformSdkError("client not initialized")
        if record_type in self.failures:
            raise self.failures[record_type]
        if not self.granted:
            raise PlatformSecurityError(f"SecurityException: no read access to {record_type}")

        start = datetime.fromisoformat(
            time_range_filter.get("startTime") or time_range_filter["startDate"]
        )
        end = datetime.fromisoformat(
            time_range_filter.get("endTime") or time_range_filter["endDate"]
        )
        matched = []
        for record in self.records.get(record_type, []):
            rec_start, rec_end = _span(record)
            # Overlap with [start, end); the aggregator buckets precisely
            if rec_start < end and rec_end >= start:
                matched.append(record)
        return {"records": matched}

    async def insert_records(self, records: list[dict[str, Any]]) -> list[str]:
        if self.insert_error is not None:
            raise self.insert_error
        if not self.granted:
            raise PlatformSecurityError("SecurityException: no write access")
        ids = []
        for record in records:
            record_type = record.get("recordType") or record["type"]
            self.add(record_type, record)
            self.inserted.append(record)
            ids.append(f"fixture-{next(_ids)}")
        return ids

    async def open_settings(self) -> None:
        if self.settings_error is not None:
            raise self.settings_error
        self.settings_opened += 1
