"""iOS provider backed by HealthKit."""

from health.providers.base import PlatformHealthProvider
from health.providers.ios_mapper import HealthKitMapper
from health.providers.protocol import PlatformHealthClient


class IOSHealthProvider(PlatformHealthProvider):
    """HealthKit variant.

    HealthKit hides read authorization: a denied read returns no samples
    instead of failing. A successful probe therefore only proves the store is
    reachable, and a denied user sees an all-zero snapshot.
    """

    def __init__(self, client: PlatformHealthClient, **kwargs) -> None:
        super().__init__(client, HealthKitMapper(), **kwargs)
