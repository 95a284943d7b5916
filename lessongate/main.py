from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lessongate.api.access import router as access_router
from lessongate.api.admin import router as admin_router
from lessongate.api.groups import router as groups_router
from lessongate.api.health import router as health_router
from lessongate.api.lessons import router as lessons_router
from lessongate.api.metrics_endpoint import router as metrics_router
from lessongate.api.progress import router as progress_router
from lessongate.api.viewing import router as viewing_router
from lessongate.core.config import SETTINGS
from lessongate.core.logging import setup_logging
from lessongate.db.engine import lifespan_db
from lessongate.db.redis import lifespan_redis
from lessongate.middleware.metrics import MetricsMiddleware
from lessongate.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order of startup.
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="lessongate",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last-added runs first: RequestContext → Metrics → CORS → route handler,
# so every request has an id before metrics are recorded.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(access_router)
app.include_router(lessons_router)
app.include_router(progress_router)
app.include_router(viewing_router)
app.include_router(groups_router)
app.include_router(admin_router)

logger.info(
    "lessongate started  env=%s log_level=%s port=%d preview_budget=%ds docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    SETTINGS.preview_budget_seconds,
    "on" if SETTINGS.is_dev else "off",
)
