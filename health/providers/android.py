"""Android provider backed by Health Connect."""

from health.providers.android_mapper import HealthConnectMapper
from health.providers.base import PlatformHealthProvider
from health.providers.protocol import PlatformHealthClient


class AndroidHealthProvider(PlatformHealthProvider):
    """Health Connect variant.

    Health Connect raises SecurityException on reads without permission, so
    the probe read in check_permissions detects revocation reliably.
    """

    def __init__(self, client: PlatformHealthClient, **kwargs) -> None:
        super().__init__(client, HealthConnectMapper(), **kwargs)
