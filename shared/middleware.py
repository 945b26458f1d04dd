"""FastAPI middleware for request IDs, request metrics and problem-details errors."""

import time
from collections.abc import Callable
from contextvars import ContextVar
from uuid import uuid4

import structlog
from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from shared.exceptions import PROBLEM_BASE_URI, ProblemDetailError
from shared.metrics import api_requests_total, api_response_duration_seconds

logger = structlog.get_logger()

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def _endpoint_label(request: Request) -> str:
    """Use the route template so label cardinality stays bounded."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Inject a request ID into every request and response and record request metrics.

    Header name: X-Request-ID. Default format: UUID v4.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Callable[..., Response]]
    ):
        rid = request.headers.get("X-Request-ID", str(uuid4()))
        request_id_var.set(rid)
        structlog.contextvars.bind_contextvars(request_id=rid)
        start_time = time.monotonic()

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = rid
            endpoint = _endpoint_label(request)
            api_requests_total.labels(
                endpoint=endpoint, method=request.method, status_code=str(response.status_code)
            ).inc()
            api_response_duration_seconds.labels(endpoint=endpoint).observe(
                time.monotonic() - start_time
            )
            return response
        finally:
            structlog.contextvars.unbind_contextvars("request_id")


def _problem_response(status: int, body: dict) -> JSONResponse:
    return JSONResponse(status_code=status, content=body, media_type="application/problem+json")


async def problem_detail_handler(request: Request, exc: ProblemDetailError) -> JSONResponse:
    """Convert ProblemDetailError exceptions into RFC 9457 responses.

    Remediation actions are rendered without their callback so the client can
    offer the next step (e.g. open the health settings) itself.
    """
    body: dict = {
        "type": exc.type_uri,
        "title": exc.title,
        "status": exc.status,
        "detail": exc.detail,
        "instance": str(request.url.path),
    }
    if exc.violations:
        body["violations"] = exc.violations
    if exc.remediation is not None:
        body["remediation"] = exc.remediation.to_dict()
    logger.info("problem_response", status=exc.status, title=exc.title, path=request.url.path)
    return _problem_response(exc.status, body)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render query/body validation failures as a 422 problem with a violations array."""
    violations = []
    for err in exc.errors():
        loc = err.get("loc", ())
        field = ".".join(str(part) for part in loc if part not in ("body", "query"))
        violations.append(
            {
                "field": field or "(root)",
                "message": err.get("msg", "Validation error"),
                "constraint": err.get("type", "validation"),
            }
        )

    return _problem_response(
        422,
        {
            "type": f"{PROBLEM_BASE_URI}/validation-error",
            "title": "Validation Error",
            "status": 422,
            "detail": f"Request contains {len(violations)} validation error(s)",
            "instance": str(request.url.path),
            "violations": violations,
        },
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Convert generic HTTP exceptions into RFC 9457 format."""
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _problem_response(
        exc.status_code,
        {
            "type": "about:blank",
            "title": detail,
            "status": exc.status_code,
            "detail": detail,
            "instance": str(request.url.path),
        },
    )
