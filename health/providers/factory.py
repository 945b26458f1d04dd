"""Provider factory: picks the platform variant and the client mode from config.

In fixture mode, providers read an in-memory FixtureHealthClient.
In live mode, providers talk to the device bridge over HTTP.
Both variants implement the same HealthProvider protocol.
"""

import platform as host_platform

from health.providers.android_mapper import SDK_AVAILABLE
from health.providers.ios_mapper import AVAILABLE
from health.providers.protocol import HealthProvider, PlatformHealthClient
from shared.config import settings

PLATFORMS = ("android", "ios")


def detect_platform() -> str:
    """Configured platform, or a guess from the host OS when set to "auto"."""
    if settings.platform != "auto":
        return settings.platform
    return "ios" if host_platform.system() == "Darwin" else "android"


def get_provider(
    platform: str | None = None, client: PlatformHealthClient | None = None
) -> HealthProvider:
    """Return the provider for `platform` (detected when None).

    - fixture mode: in-memory client, available and ungranted
    - live mode: device bridge client
    """
    platform = platform or detect_platform()
    if platform not in PLATFORMS:
        raise ValueError(f"Unsupported platform: {platform}. Must be one of: {list(PLATFORMS)}")

    if client is None:
        client = _live_client(platform) if settings.provider_mode == "live" else _fixture_client(platform)

    if platform == "ios":
        from health.providers.ios import IOSHealthProvider

        return IOSHealthProvider(client)

    from health.providers.android import AndroidHealthProvider

    return AndroidHealthProvider(client)


def _fixture_client(platform: str) -> PlatformHealthClient:
    from health.providers.fixture_client import FixtureHealthClient

    return FixtureHealthClient(AVAILABLE if platform == "ios" else SDK_AVAILABLE)


def _live_client(platform: str) -> PlatformHealthClient:
    from health.providers.bridge_client import BridgeHealthClient

    return BridgeHealthClient(
        platform,
        settings.bridge_base_url,
        settings.bridge_access_token,
        timeout=settings.bridge_timeout_seconds,
    )
