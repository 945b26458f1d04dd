"""Home-screen widget projections for steps and hydration.

Each projection resolves in a fixed order:
1. live: the platform is available and today's read succeeds; the value is
   written through to the FallbackCache
2. cache: the last value stored in the FallbackCache; hydration only counts
   the value stored for today, and an in-app entry for today wins over a live
   total of zero
3. default: zero progress against the default goal

Pushing a projection to the display surface is fire-and-forget: publisher
failures are logged and never reach the caller.
"""

import asyncio
from datetime import date
from typing import Protocol

import structlog

from health.aggregation.daily import local_day_window
from health.aggregation.policies import reduce_records
from health.domain.models import HealthMetricKind, ProjectionSource, WidgetProjection
from health.fallback import FallbackCache
from health.providers.protocol import HealthProvider
from shared.config import settings
from shared.metrics import widget_updates_total

logger = structlog.get_logger()

STEPS_WIDGET = "steps"
HYDRATION_WIDGET = "hydration"
WIDGET_KINDS = {
    STEPS_WIDGET: HealthMetricKind.STEPS,
    HYDRATION_WIDGET: HealthMetricKind.HYDRATION,
}


class WidgetPublisher(Protocol):
    """External display surface (home-screen widget host)."""

    async def publish(self, widget: str, projection: WidgetProjection) -> None: ...


class LogWidgetPublisher:
    async def publish(self, widget: str, projection: WidgetProjection) -> None:
        logger.info(
            "widget_published",
            widget=widget,
            current_value=projection.current_value,
            goal=projection.goal,
            source=projection.source.value,
        )


class WidgetSyncBridge:
    def __init__(
        self,
        provider: HealthProvider,
        cache: FallbackCache,
        publisher: WidgetPublisher | None = None,
    ) -> None:
        self._provider = provider
        self._cache = cache
        self._publisher = publisher or LogWidgetPublisher()
        self._tasks: set[asyncio.Task] = set()
        self._defaults = {
            HealthMetricKind.STEPS: settings.steps_goal_default,
            HealthMetricKind.HYDRATION: settings.hydration_goal_default_ml,
        }

    async def _read_today(self, kind: HealthMetricKind) -> float | None:
        if not await self._provider.initialize():
            return None
        daily = self._provider.daily
        start, end = local_day_window(daily.today(), daily.tz)
        try:
            records = await self._provider.read_records(kind, start, end)
        except Exception as exc:
            logger.info("widget_live_read_failed", kind=kind.value, error=str(exc))
            return None
        # Hydration is reduced to mL, the unit the widget displays
        return reduce_records(kind, [r for r in records if start <= r.bucket_time < end])

    async def _cached(self, kind: HealthMetricKind, today: date) -> float | None:
        if kind == HealthMetricKind.HYDRATION:
            # Intake is per day; yesterday's total is not today's progress
            return await self._cache.get_day(kind, today)
        return await self._cache.get_last(kind)

    async def _project(self, widget: str, kind: HealthMetricKind) -> WidgetProjection:
        stored_goal = await self._cache.get_goal(kind)
        goal = self._defaults[kind] if stored_goal is None else stored_goal
        today = self._provider.daily.today()

        live = await self._read_today(kind)
        cached = await self._cached(kind, today)
        if live == 0 and cached and kind == HealthMetricKind.HYDRATION:
            # No platform records yet; in-app entries for today take over
            live = None

        if live is not None:
            await self._cache.set_last(kind, live, today)
            await self._cache.set_day(kind, today, live)
            projection = WidgetProjection(
                current_value=live, goal=goal, source=ProjectionSource.LIVE
            )
        elif cached is not None:
            projection = WidgetProjection(
                current_value=cached, goal=goal, source=ProjectionSource.CACHE
            )
        else:
            projection = WidgetProjection(current_value=0, goal=goal, source=ProjectionSource.DEFAULT)

        widget_updates_total.labels(widget=widget, source=projection.source.value).inc()
        return projection

    async def get_steps_projection(self) -> WidgetProjection:
        return await self._project(STEPS_WIDGET, HealthMetricKind.STEPS)

    async def get_hydration_projection(self) -> WidgetProjection:
        return await self._project(HYDRATION_WIDGET, HealthMetricKind.HYDRATION)

    async def push_update(self) -> None:
        """Recompute both projections and publish them. Never raises."""
        for widget, resolve in (
            (STEPS_WIDGET, self.get_steps_projection),
            (HYDRATION_WIDGET, self.get_hydration_projection),
        ):
            try:
                await self._publisher.publish(widget, await resolve())
            except Exception as exc:
                logger.error("widget_push_failed", widget=widget, error=str(exc))

    def schedule_push(self) -> asyncio.Task:
        """Run push_update in the background; the task is kept until it finishes."""
        task = asyncio.create_task(self.push_update())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for scheduled pushes. Used on shutdown."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def set_goal(self, widget: str, goal: float) -> WidgetProjection:
        kind = WIDGET_KINDS[widget]
        await self._cache.set_goal(kind, goal)
        logger.info("widget_goal_set", widget=widget, goal=goal)
        self.schedule_push()
        return await self._project(widget, kind)

    async def on_app_state_change(self, state: str) -> bool:
        """Push when the app comes to the foreground. Returns whether a push was scheduled."""
        if state != "active":
            return False
        self.schedule_push()
        return True

    async def record_steps(self, steps: int, day: date | None = None) -> None:
        """Store an in-app steps entry so widgets show it without a platform read."""
        day = day or self._provider.daily.today()
        await self._cache.set_last(HealthMetricKind.STEPS, steps, day)
        await self._cache.set_day(HealthMetricKind.STEPS, day, steps)
        self.schedule_push()

    async def record_hydration(self, intake_ml: int, day: date | None = None) -> None:
        day = day or self._provider.daily.today()
        await self._cache.set_last(HealthMetricKind.HYDRATION, intake_ml, day)
        await self._cache.set_day(HealthMetricKind.HYDRATION, day, intake_ml)
        self.schedule_push()
