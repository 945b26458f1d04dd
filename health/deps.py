"""Process-wide component wiring for the API.

One provider is chosen at startup; the archive, fallback cache, widget
bridge and permission manager are built on top of it and shared by all
requests. Tests replace these through app.dependency_overrides.
"""

from functools import lru_cache

from health.archive import HistoricalArchive
from health.fallback import FallbackCache
from health.permissions import PermissionManager
from health.providers.factory import get_provider
from health.providers.protocol import HealthProvider
from health.storage import InMemoryKeyValueStore, KeyValueStore, SqlKeyValueStore
from health.widgets import WidgetSyncBridge
from shared.config import settings
from shared.database import get_session_factory


@lru_cache(maxsize=1)
def get_store() -> KeyValueStore:
    if settings.storage_backend == "memory":
        return InMemoryKeyValueStore()
    return SqlKeyValueStore(get_session_factory())


@lru_cache(maxsize=1)
def get_health_provider() -> HealthProvider:
    return get_provider()


@lru_cache(maxsize=1)
def get_archive() -> HistoricalArchive:
    return HistoricalArchive(get_store())


@lru_cache(maxsize=1)
def get_fallback_cache() -> FallbackCache:
    return FallbackCache(get_store())


@lru_cache(maxsize=1)
def get_widget_bridge() -> WidgetSyncBridge:
    return WidgetSyncBridge(get_health_provider(), get_fallback_cache())


@lru_cache(maxsize=1)
def get_manager() -> PermissionManager:
    return PermissionManager(
        get_health_provider(), archive=get_archive(), widgets=get_widget_bridge()
    )
