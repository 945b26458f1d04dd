"""FastAPI application entry point.

Wires together: middleware, exception handlers, routes, metrics.
Validates config at startup, initializes the platform provider and drains
pending widget pushes on shutdown.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from health.api import router as health_router
from health.deps import get_manager, get_widget_bridge
from shared.config import settings
from shared.database import dispose_engine
from shared.exceptions import ProblemDetailError
from shared.logging import configure_logging
from shared.metrics import create_metrics_app
from shared.middleware import (
    RequestIdMiddleware,
    http_exception_handler,
    problem_detail_handler,
    request_validation_handler,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    configure_logging(json_output=True)
    logger.info(
        "app_starting",
        provider_mode=settings.provider_mode,
        platform=settings.platform,
        storage_backend=settings.storage_backend,
        timezone=settings.timezone,
    )
    manager = get_manager()
    await manager.initialize()
    logger.info("health_manager_ready", state=manager.state.value)
    yield
    await get_widget_bridge().drain()
    await dispose_engine()
    logger.info("app_shutting_down")


app = FastAPI(
    title="Health Aggregator API",
    description=(
        "Reads health metrics from the device health platform (Health Connect, HealthKit), "
        "aggregates them into daily snapshots and weekly series, archives weekly history "
        "and serves home-screen widget projections."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestIdMiddleware)

# All errors emit application/problem+json (RFC 9457)
app.add_exception_handler(ProblemDetailError, problem_detail_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)

app.include_router(health_router)

metrics_app = create_metrics_app()
app.mount("/metrics", metrics_app)


@app.get("/health")
async def health():
    return {"status": "ok"}
