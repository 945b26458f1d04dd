"""Last-known metric values for surfaces that must render without the platform.

Keys (under the "fallback:" prefix):
- last:{kind}        JSON {"value", "day", "updated_at"}: most recent value seen
- goal:{kind}        user goal for the metric, as a number
- day:{kind}:{date}  value recorded for one specific day

Reads never raise: backend failures and undecodable values resolve to None.
Writes log failures and return normally.
"""

import json
from datetime import UTC, date, datetime

import structlog

from health.domain.models import HealthMetricKind
from health.storage import KeyValueStore, NamespacedStore
from shared.exceptions import PersistenceError

logger = structlog.get_logger()


class FallbackCache:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = NamespacedStore(store, "fallback")

    async def _get(self, key: str):
        try:
            raw = await self._store.get(key)
        except PersistenceError as exc:
            logger.warning("fallback_read_failed", key=key, error=str(exc))
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("fallback_value_corrupt", key=key)
            return None

    async def _set(self, key: str, value) -> None:
        try:
            await self._store.set(key, json.dumps(value))
        except PersistenceError as exc:
            logger.warning("fallback_write_failed", key=key, error=str(exc))

    async def get_last(self, kind: HealthMetricKind) -> float | None:
        entry = await self._get(f"last:{kind.value}")
        if not isinstance(entry, dict):
            return None
        value = entry.get("value")
        return value if isinstance(value, (int, float)) else None

    async def set_last(self, kind: HealthMetricKind, value: float, day: date | None = None) -> None:
        await self._set(
            f"last:{kind.value}",
            {
                "value": value,
                "day": day.isoformat() if day else None,
                "updated_at": datetime.now(UTC).isoformat(),
            },
        )

    async def get_goal(self, kind: HealthMetricKind) -> float | None:
        value = await self._get(f"goal:{kind.value}")
        return value if isinstance(value, (int, float)) else None

    async def set_goal(self, kind: HealthMetricKind, goal: float) -> None:
        await self._set(f"goal:{kind.value}", goal)

    async def get_day(self, kind: HealthMetricKind, day: date) -> float | None:
        value = await self._get(f"day:{kind.value}:{day.isoformat()}")
        return value if isinstance(value, (int, float)) else None

    async def set_day(self, kind: HealthMetricKind, day: date, value: float) -> None:
        await self._set(f"day:{kind.value}:{day.isoformat()}", value)
