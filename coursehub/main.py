from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from coursehub.api.catalog import router as catalog_router
from coursehub.api.enrollments import router as enrollments_router
from coursehub.api.errors import register_exception_handlers
from coursehub.api.health import router as health_router
from coursehub.api.metrics_endpoint import router as metrics_router
from coursehub.api.payments import router as payments_router
from coursehub.core.config import SETTINGS
from coursehub.core.logging import setup_logging
from coursehub.db.engine import lifespan_db
from coursehub.db.redis import lifespan_redis
from coursehub.middleware.metrics import MetricsMiddleware
from coursehub.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order of startup
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="coursehub",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# Last-added runs first: RequestContext (outermost) -> Metrics -> route
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

register_exception_handlers(app)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(catalog_router)
app.include_router(enrollments_router)
app.include_router(payments_router)

logger.info(
    "coursehub started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
