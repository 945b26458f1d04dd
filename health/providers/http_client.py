"""HTTP client with tenacity retry for device bridge calls.

Retry policy:
- Retry on transient errors (429, 500, 502, 504, timeouts)
- Never retry permission or SDK failures; they are mapped to platform errors
- Exponential backoff with jitter, bounded by settings.retry_max_attempts
"""

import logging

import httpx
import structlog
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from health.providers.protocol import PlatformSdkError, PlatformSecurityError
from shared.config import settings

logger = structlog.get_logger()

TRANSIENT_STATUS_CODES = {429, 500, 502, 504}
SECURITY_STATUS_CODES = {401, 403}
# Bridge reports a missing or outdated platform health service with these
SDK_STATUS_CODES = {404, 409, 503}


class TransientHTTPError(Exception):
    """Raised for bridge responses that are safe to retry."""

    def __init__(self, status_code: int, detail: str = ""):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"HTTP {status_code}: {detail}")


def raise_for_platform_status(response: httpx.Response) -> None:
    """Translate bridge status codes into the platform error vocabulary."""
    code = response.status_code
    detail = response.text[:200]
    if code in TRANSIENT_STATUS_CODES:
        raise TransientHTTPError(code, detail)
    if code in SECURITY_STATUS_CODES:
        raise PlatformSecurityError(f"SecurityException: {detail or 'permission denied'}")
    if code in SDK_STATUS_CODES:
        raise PlatformSdkError(detail or f"health service unavailable (HTTP {code})")
    response.raise_for_status()


@retry(
    retry=retry_if_exception_type((TransientHTTPError, httpx.TimeoutException)),
    wait=wait_exponential_jitter(initial=1, max=settings.retry_max_wait_seconds, jitter=2),
    stop=stop_after_attempt(settings.retry_max_attempts),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def fetch_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs,
) -> httpx.Response:
    """Make a bridge request, retrying transient failures only."""
    response = await client.request(method, url, **kwargs)
    raise_for_platform_status(response)
    return response
