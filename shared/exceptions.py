"""RFC 9457 Problem Details exception hierarchy.

All API errors extend ProblemDetailError and are converted to
application/problem+json responses by the exception handler middleware.
Errors that the user can resolve carry a RemediationAction describing the
next step (grant access or open the platform settings).
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

PROBLEM_BASE_URI = "https://api.health-aggregator.dev/problems"


@dataclass
class RemediationAction:
    """An actionable next step attached to an error.

    `callback` performs the action (e.g. deep-links into the platform health
    settings); `href` is the API route that triggers it for HTTP callers.
    """

    action: str
    label: str
    href: str | None = None
    callback: Callable[[], Awaitable[None]] | None = None

    def to_dict(self) -> dict:
        return {"action": self.action, "label": self.label, "href": self.href}


class ProblemDetailError(Exception):
    def __init__(
        self,
        type_uri: str,
        title: str,
        status: int,
        detail: str,
        violations: list[dict] | None = None,
        remediation: RemediationAction | None = None,
    ):
        self.type_uri = type_uri
        self.title = title
        self.status = status
        self.detail = detail
        self.violations = violations
        self.remediation = remediation
        super().__init__(detail)


class ValidationError(ProblemDetailError):
    def __init__(self, violations: list[dict]):
        super().__init__(
            type_uri=f"{PROBLEM_BASE_URI}/validation-error",
            title="Validation Error",
            status=422,
            detail=f"Request body contains {len(violations)} validation error(s)",
            violations=violations,
        )


class InvalidDateRangeError(ProblemDetailError):
    def __init__(self, start: str, end: str):
        super().__init__(
            type_uri=f"{PROBLEM_BASE_URI}/invalid-date-range",
            title="Invalid Date Range",
            status=400,
            detail=f"Parameter 'start' ({start}) must not be after 'end' ({end})",
        )


class PermissionDeniedError(ProblemDetailError):
    """The platform health store refused access. Recoverable via the settings surface."""

    def __init__(self, detail: str = "", remediation: RemediationAction | None = None):
        super().__init__(
            type_uri=f"{PROBLEM_BASE_URI}/permission-denied",
            title="Health Permissions Required",
            status=403,
            detail=detail
            or "Health data access was denied. Grant permissions in the health settings.",
            remediation=remediation,
        )


class PlatformUnavailableError(ProblemDetailError):
    """The platform health service is not installed or not enabled."""

    def __init__(self, platform: str, remediation: RemediationAction | None = None):
        self.platform = platform
        super().__init__(
            type_uri=f"{PROBLEM_BASE_URI}/platform-unavailable",
            title="Health Platform Unavailable",
            status=503,
            detail=(
                f"The {platform} health service is not available on this device. "
                "Install or enable it, then try again."
            ),
            remediation=remediation,
        )


class PersistenceError(Exception):
    """Raised by key-value stores when the backend read or write fails."""

    def __init__(self, operation: str, key: str | None = None, detail: str = ""):
        self.operation = operation
        self.key = key
        super().__init__(f"{operation} failed for key {key!r}: {detail}")
