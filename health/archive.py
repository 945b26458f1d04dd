"""Rolling archive of weekly series.

Storage layout (under the "archive:" prefix):
- current_week:      the most recently saved StoredWeeklyData
- historical_weeks:  JSON list of StoredWeeklyData, newest first

Invariants:
- at most settings.archive_max_weeks entries (52 by default)
- one entry per (week_start, week_end); saving a week again replaces it
- sorted by archived_at descending, so the oldest entries are evicted first

The read-modify-write of historical_weeks runs under a lock keyed by the
fully-qualified storage key, shared by every archive on the same store.
Persistence failures are logged and the operation becomes a no-op.
"""

from datetime import UTC, date, datetime

import structlog
from pydantic import TypeAdapter, ValidationError

from health.domain.models import (
    ArchiveSummary,
    HealthMetricKind,
    ProfileHealthData,
    StoredWeeklyData,
    WeeklyHealthData,
)
from health.storage import KeyValueStore, NamespacedStore, key_lock
from shared.config import settings
from shared.exceptions import PersistenceError
from shared.metrics import archive_saves_total

logger = structlog.get_logger()

CURRENT_WEEK_KEY = "current_week"
HISTORICAL_WEEKS_KEY = "historical_weeks"

_entries = TypeAdapter(list[StoredWeeklyData])


def _mean(values: list[float | None]) -> float:
    present = [v for v in values if v is not None]
    if not present:
        return 0.0
    return sum(present) / len(present)


def summarize(weeks: list[StoredWeeklyData]) -> ArchiveSummary:
    """Average of per-week averages for steps, heart rate, water and temperature."""
    if not weeks:
        return ArchiveSummary()

    def across(kind: HealthMetricKind) -> float:
        return _mean([_mean(week.data.values(kind)) for week in weeks])

    return ArchiveSummary(
        total_weeks_tracked=len(weeks),
        average_steps_per_week=round(across(HealthMetricKind.STEPS)),
        average_heart_rate_per_week=round(across(HealthMetricKind.HEART_RATE)),
        average_water_intake_per_week=round(across(HealthMetricKind.HYDRATION), 2),
        average_temperature_per_week=round(across(HealthMetricKind.BODY_TEMPERATURE), 2),
    )


class HistoricalArchive:
    def __init__(self, store: KeyValueStore, max_weeks: int | None = None) -> None:
        self._store = NamespacedStore(store, "archive")
        self.max_weeks = max_weeks or settings.archive_max_weeks

    async def _load_entries(self) -> list[StoredWeeklyData]:
        raw = await self._store.get(HISTORICAL_WEEKS_KEY)
        if raw is None:
            return []
        try:
            return _entries.validate_json(raw)
        except ValidationError as exc:
            logger.warning("archive_corrupt", key=HISTORICAL_WEEKS_KEY, errors=exc.error_count())
            return []

    async def save_weekly_data(
        self, data: WeeklyHealthData, week_start: date, week_end: date
    ) -> None:
        entry = StoredWeeklyData(
            week_start=week_start,
            week_end=week_end,
            data=data,
            archived_at=datetime.now(UTC),
        )
        try:
            await self._store.set(CURRENT_WEEK_KEY, entry.model_dump_json())
            async with key_lock(self._store, HISTORICAL_WEEKS_KEY):
                entries = await self._load_entries()
                replaced = any(e.key == entry.key for e in entries)
                entries = [e for e in entries if e.key != entry.key]
                # Newest first; on equal timestamps the new entry stays ahead
                entries.insert(0, entry)
                entries.sort(key=lambda e: e.archived_at, reverse=True)
                entries = entries[: self.max_weeks]
                await self._store.set(HISTORICAL_WEEKS_KEY, _entries.dump_json(entries).decode())
        except PersistenceError as exc:
            archive_saves_total.labels(outcome="failed").inc()
            logger.error(
                "archive_save_failed",
                week_start=week_start.isoformat(),
                week_end=week_end.isoformat(),
                error=str(exc),
            )
            return

        archive_saves_total.labels(outcome="replaced" if replaced else "inserted").inc()
        logger.info(
            "archive_saved",
            week_start=week_start.isoformat(),
            week_end=week_end.isoformat(),
            replaced=replaced,
            entries=len(entries),
        )

    async def get_current_week_data(self) -> StoredWeeklyData | None:
        try:
            raw = await self._store.get(CURRENT_WEEK_KEY)
        except PersistenceError as exc:
            logger.error("archive_read_failed", key=CURRENT_WEEK_KEY, error=str(exc))
            return None
        if raw is None:
            return None
        try:
            return StoredWeeklyData.model_validate_json(raw)
        except ValidationError:
            logger.warning("archive_corrupt", key=CURRENT_WEEK_KEY)
            return None

    async def get_historical_data(self, weeks: int = 4) -> list[StoredWeeklyData]:
        """The `weeks` most recently archived entries, newest first."""
        try:
            entries = await self._load_entries()
        except PersistenceError as exc:
            logger.error("archive_read_failed", key=HISTORICAL_WEEKS_KEY, error=str(exc))
            return []
        entries.sort(key=lambda e: e.archived_at, reverse=True)
        return entries[: max(weeks, 0)]

    async def get_all_data_for_profile(self) -> ProfileHealthData:
        """Current week plus recent history, with rolling averages.

        The current week is also the newest archive entry, so it counts twice
        in the summary.
        """
        current = await self.get_current_week_data()
        history = await self.get_historical_data(settings.profile_history_weeks)
        weeks = ([current] if current else []) + history
        return ProfileHealthData(
            current_week=current,
            historical_weeks=history,
            summary=summarize(weeks),
        )

    async def clear_all_data(self) -> None:
        try:
            async with key_lock(self._store, HISTORICAL_WEEKS_KEY):
                await self._store.multi_remove([CURRENT_WEEK_KEY, HISTORICAL_WEEKS_KEY])
        except PersistenceError as exc:
            logger.error("archive_clear_failed", error=str(exc))
            return
        logger.info("archive_cleared")
