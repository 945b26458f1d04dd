"""Tests for widget projections and pushes."""

from datetime import timedelta
from unittest.mock import AsyncMock

from health.domain.models import HealthMetricKind, ProjectionSource
from health.fallback import FallbackCache
from health.providers.android import AndroidHealthProvider
from health.providers.android_mapper import SDK_UNAVAILABLE
from health.providers.fixture_client import FixtureHealthClient
from health.providers.protocol import PlatformSecurityError
from health.widgets import WidgetSyncBridge
from tests.conftest import TODAY, UTC_ZONE, fixed_clock, hc_hydration, hc_steps


class RecordingPublisher:
    def __init__(self) -> None:
        self.published = []

    async def publish(self, widget, projection):
        self.published.append((widget, projection))


def _offline_provider():
    return AndroidHealthProvider(
        FixtureHealthClient(SDK_UNAVAILABLE), tz=UTC_ZONE, clock=fixed_clock
    )


class TestProjections:
    async def test_live_value_is_written_through(self, android_client, android_provider, store):
        android_client.add("Steps", hc_steps(4321))
        cache = FallbackCache(store)
        projection = await WidgetSyncBridge(android_provider, cache).get_steps_projection()
        assert projection.source == ProjectionSource.LIVE
        assert projection.current_value == 4321
        assert projection.goal == 10000
        assert await cache.get_last(HealthMetricKind.STEPS) == 4321

    async def test_hydration_is_in_millilitres(self, android_client, android_provider, store):
        android_client.add("Hydration", hc_hydration(0.25), hc_hydration(0.5, hour=15))
        projection = await WidgetSyncBridge(
            android_provider, FallbackCache(store)
        ).get_hydration_projection()
        assert projection.current_value == 750
        assert projection.goal == 2500

    async def test_cache_used_when_platform_unavailable(self, store):
        cache = FallbackCache(store)
        await cache.set_last(HealthMetricKind.STEPS, 5000, TODAY)
        projection = await WidgetSyncBridge(_offline_provider(), cache).get_steps_projection()
        assert projection.source == ProjectionSource.CACHE
        assert projection.current_value == 5000

    async def test_cache_used_when_read_fails(self, android_client, android_provider, store):
        android_client.fail("Steps", PlatformSecurityError("SecurityException: revoked"))
        cache = FallbackCache(store)
        await cache.set_last(HealthMetricKind.STEPS, 1200)
        projection = await WidgetSyncBridge(android_provider, cache).get_steps_projection()
        assert projection.source == ProjectionSource.CACHE

    async def test_default_when_nothing_known(self, store):
        projection = await WidgetSyncBridge(
            _offline_provider(), FallbackCache(store)
        ).get_hydration_projection()
        assert projection.source == ProjectionSource.DEFAULT
        assert projection.current_value == 0
        assert projection.goal == 2500

    async def test_cached_goal_overrides_default(self, store):
        cache = FallbackCache(store)
        await cache.set_goal(HealthMetricKind.STEPS, 8000)
        projection = await WidgetSyncBridge(_offline_provider(), cache).get_steps_projection()
        assert projection.goal == 8000

    async def test_zero_goal_is_not_replaced_by_default(self, store):
        cache = FallbackCache(store)
        await cache.set_goal(HealthMetricKind.STEPS, 0)
        projection = await WidgetSyncBridge(_offline_provider(), cache).get_steps_projection()
        assert projection.goal == 0

    async def test_yesterdays_hydration_is_not_shown_today(self, store):
        cache = FallbackCache(store)
        await cache.set_last(HealthMetricKind.HYDRATION, 1800, TODAY - timedelta(days=1))
        await cache.set_day(HealthMetricKind.HYDRATION, TODAY - timedelta(days=1), 1800)
        projection = await WidgetSyncBridge(_offline_provider(), cache).get_hydration_projection()
        assert projection.source == ProjectionSource.DEFAULT
        assert projection.current_value == 0

    async def test_in_app_hydration_wins_over_empty_live_total(self, android_provider, store):
        cache = FallbackCache(store)
        await cache.set_day(HealthMetricKind.HYDRATION, TODAY, 600)
        projection = await WidgetSyncBridge(android_provider, cache).get_hydration_projection()
        assert projection.source == ProjectionSource.CACHE
        assert projection.current_value == 600
        assert await cache.get_day(HealthMetricKind.HYDRATION, TODAY) == 600

    async def test_set_goal_updates_projection(self, store):
        cache = FallbackCache(store)
        bridge = WidgetSyncBridge(_offline_provider(), cache)
        projection = await bridge.set_goal("hydration", 3000)
        await bridge.drain()
        assert projection.goal == 3000
        assert await cache.get_goal(HealthMetricKind.HYDRATION) == 3000


class TestPush:
    async def test_push_publishes_both_widgets(self, android_provider, store):
        publisher = RecordingPublisher()
        await WidgetSyncBridge(android_provider, FallbackCache(store), publisher).push_update()
        assert [widget for widget, _ in publisher.published] == ["steps", "hydration"]

    async def test_push_failure_is_not_raised(self, android_provider, store):
        publisher = AsyncMock()
        publisher.publish.side_effect = RuntimeError("widget host gone")
        await WidgetSyncBridge(android_provider, FallbackCache(store), publisher).push_update()
        assert publisher.publish.await_count == 2

    async def test_app_becoming_active_schedules_push(self, android_provider, store):
        publisher = RecordingPublisher()
        bridge = WidgetSyncBridge(android_provider, FallbackCache(store), publisher)
        assert not await bridge.on_app_state_change("background")
        await bridge.drain()
        assert publisher.published == []
        assert await bridge.on_app_state_change("active")
        await bridge.drain()
        assert len(publisher.published) == 2

    async def test_recorded_entries_reach_widgets_offline(self, store):
        publisher = RecordingPublisher()
        cache = FallbackCache(store)
        bridge = WidgetSyncBridge(_offline_provider(), cache, publisher)
        await bridge.record_steps(2500, TODAY)
        await bridge.record_hydration(600, TODAY)
        await bridge.drain()
        assert await cache.get_day(HealthMetricKind.STEPS, TODAY) == 2500
        latest = dict(publisher.published)
        assert latest["steps"].current_value == 2500
        assert latest["hydration"].current_value == 600
        assert latest["hydration"].source == ProjectionSource.CACHE

    async def test_recorded_hydration_survives_push_when_online(self, android_provider, store):
        publisher = RecordingPublisher()
        bridge = WidgetSyncBridge(android_provider, FallbackCache(store), publisher)
        await bridge.record_hydration(600, TODAY)
        await bridge.drain()
        latest = dict(publisher.published)
        assert latest["hydration"].current_value == 600
