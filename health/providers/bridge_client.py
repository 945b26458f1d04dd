"""Live platform client: talks to the companion device bridge over HTTP.

The bridge runs next to Health Connect or HealthKit on the device and exposes
the platform capability as JSON endpoints under /v1/{platform}. Payloads are
passed through in the platform's native shape; mapping happens in the
provider's mapper.
"""

from typing import Any

import httpx

from health.providers.http_client import fetch_with_retry


class BridgeHealthClient:
    def __init__(
        self,
        platform: str,
        base_url: str,
        access_token: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.platform = platform
        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/v1/{platform}",
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=timeout,
            transport=transport,
        )

    async def _call(self, method: str, path: str, **kwargs) -> Any:
        response = await fetch_with_retry(self._client, method, path, **kwargs)
        if not response.content:
            return None
        return response.json()

    async def initialize(self) -> bool:
        body = await self._call("POST", "/initialize")
        return bool(body and body.get("initialized"))

    async def get_availability_status(self) -> Any:
        body = await self._call("GET", "/status")
        return body.get("status") if body else None

    async def request_permission(self, scopes: Any) -> Any:
        body = await self._call("POST", "/permissions", json={"scopes": scopes})
        return body.get("granted", []) if body else []

    async def read_records(
        self, record_type: str, time_range_filter: dict[str, str]
    ) -> dict[str, Any]:
        body = await self._call(
            "POST",
            "/records/query",
            json={"recordType": record_type, "timeRangeFilter": time_range_filter},
        )
        return body or {"records": []}

    async def insert_records(self, records: list[dict[str, Any]]) -> list[str]:
        body = await self._call("POST", "/records", json={"records": records})
        return body.get("ids", []) if body else []

    async def open_settings(self) -> None:
        await self._call("POST", "/settings/open")

    async def aclose(self) -> None:
        await self._client.aclose()
