"""Tests for the rolling weekly archive."""

import asyncio
from datetime import UTC, date, datetime, timedelta

from health.archive import CURRENT_WEEK_KEY, HistoricalArchive, summarize
from health.domain.models import HealthMetricKind, StoredWeeklyData
from tests.conftest import BrokenStore, TODAY, weekly_data


def _week(weeks_ago: int, steps: int = 1000):
    start = TODAY - timedelta(days=6 + 7 * weeks_ago)
    return weekly_data(start, steps=[steps] * 7)


async def _save(archive: HistoricalArchive, weekly) -> None:
    await archive.save_weekly_data(weekly, weekly.start, weekly.end)


def _stored(weekly) -> StoredWeeklyData:
    return StoredWeeklyData(
        week_start=weekly.start,
        week_end=weekly.end,
        data=weekly,
        archived_at=datetime(2024, 3, 14, tzinfo=UTC),
    )


class TestSave:
    async def test_save_sets_current_week(self, store):
        archive = HistoricalArchive(store)
        weekly = _week(0)
        await _save(archive, weekly)
        current = await archive.get_current_week_data()
        assert current.week_start == weekly.start
        assert current.week_end == weekly.end
        assert store.keys() == ["archive:current_week", "archive:historical_weeks"]

    async def test_saving_same_week_replaces_entry(self, store):
        archive = HistoricalArchive(store)
        await _save(archive, _week(0, steps=1000))
        await _save(archive, _week(0, steps=2000))
        history = await archive.get_historical_data(52)
        assert len(history) == 1
        assert history[0].data.values(HealthMetricKind.STEPS)[0] == 2000

    async def test_oldest_weeks_are_evicted(self, store):
        archive = HistoricalArchive(store, max_weeks=3)
        for weeks_ago in range(5, -1, -1):
            await _save(archive, _week(weeks_ago))
        history = await archive.get_historical_data(52)
        assert len(history) == 3
        assert [h.week_end for h in history] == [
            TODAY,
            TODAY - timedelta(days=7),
            TODAY - timedelta(days=14),
        ]

    async def test_default_bound_is_52(self, store):
        archive = HistoricalArchive(store)
        for weeks_ago in range(53, -1, -1):
            await _save(archive, _week(weeks_ago))
        history = await archive.get_historical_data(100)
        assert len(history) == 52
        assert history[0].week_end == TODAY

    async def test_concurrent_saves_keep_every_week(self, store):
        first = HistoricalArchive(store)
        second = HistoricalArchive(store)
        await asyncio.gather(
            *(_save(first if i % 2 else second, _week(i)) for i in range(8))
        )
        history = await first.get_historical_data(52)
        assert len(history) == 8
        assert len({h.key for h in history}) == 8

    async def test_persistence_failure_is_a_no_op(self):
        archive = HistoricalArchive(BrokenStore())
        await _save(archive, _week(0))
        assert await archive.get_current_week_data() is None
        assert await archive.get_historical_data() == []

    async def test_corrupt_current_week_reads_as_none(self, store):
        await store.set(f"archive:{CURRENT_WEEK_KEY}", "{not json")
        assert await HistoricalArchive(store).get_current_week_data() is None


class TestReads:
    async def test_history_is_newest_first_and_limited(self, store):
        archive = HistoricalArchive(store)
        for weeks_ago in range(5, -1, -1):
            await _save(archive, _week(weeks_ago))
        history = await archive.get_historical_data(2)
        assert [h.week_end for h in history] == [TODAY, TODAY - timedelta(days=7)]

    async def test_empty_archive_profile(self, store):
        profile = await HistoricalArchive(store).get_all_data_for_profile()
        assert profile.current_week is None
        assert profile.historical_weeks == []
        assert profile.summary.total_weeks_tracked == 0

    async def test_profile_counts_current_week_twice(self, store):
        archive = HistoricalArchive(store)
        await _save(archive, _week(1, steps=1000))
        await _save(archive, _week(0, steps=4000))
        profile = await archive.get_all_data_for_profile()
        assert profile.current_week.week_end == TODAY
        assert len(profile.historical_weeks) == 2
        assert profile.summary.total_weeks_tracked == 3
        assert profile.summary.average_steps_per_week == 3000


class TestClear:
    async def test_clear_removes_both_keys(self, store):
        archive = HistoricalArchive(store)
        await store.set("fallback:last:steps", "{}")
        await _save(archive, _week(0))
        await archive.clear_all_data()
        assert await archive.get_current_week_data() is None
        assert await archive.get_historical_data() == []
        assert store.keys() == ["fallback:last:steps"]

    async def test_clear_failure_is_logged(self):
        await HistoricalArchive(BrokenStore()).clear_all_data()


class TestSummarize:
    def test_averages_of_weekly_means(self):
        weeks = [
            _stored(weekly_data(date(2024, 3, 1), hydration=[1000] * 7, body_temperature=[36.5] * 7)),
            _stored(weekly_data(date(2024, 3, 8), hydration=[2000] * 7, body_temperature=[37.0] * 7)),
        ]
        summary = summarize(weeks)
        assert summary.total_weeks_tracked == 2
        assert summary.average_water_intake_per_week == 1500
        assert summary.average_temperature_per_week == 36.75

    def test_missing_values_are_ignored(self):
        summary = summarize([_stored(weekly_data(weight=[None] * 7, heart_rate=[60] * 7))])
        assert summary.average_heart_rate_per_week == 60
