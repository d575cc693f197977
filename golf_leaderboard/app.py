from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from golf_leaderboard.api.health import health as _health_handler
from golf_leaderboard.config import get_settings
from golf_leaderboard.metrics import MetricsMiddleware, metrics_app

from .routes.leaderboard import router as leaderboard_router
from .routes.realtime import router as realtime_router
from .routes.tournaments import router as tournaments_router

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    package_logger = logging.getLogger("golf_leaderboard")
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        logger.warning("unknown LOG_LEVEL %r, using INFO", level)
        resolved = logging.INFO
    package_logger.setLevel(resolved)
    if not logging.getLogger().handlers and not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        package_logger.addHandler(handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("leaderboard service starting with %s data store", settings.backend)
    yield


settings = get_settings()

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(MetricsMiddleware)

app.include_router(tournaments_router)
app.include_router(leaderboard_router)
app.include_router(realtime_router)
app.add_api_route(
    "/health",
    _health_handler,
    methods=["GET"],
    response_model=None,
    tags=["health"],
)


_metrics_router = APIRouter()


@_metrics_router.get("/metrics", include_in_schema=False)
async def _metrics_endpoint(request: Request):
    return await metrics_app(request)


app.include_router(_metrics_router)
