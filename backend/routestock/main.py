import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from routestock.core.config import get_settings, load_env_files

# ---- load .env files before anything reads DATABASE_URL -------------------
load_env_files()
settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("routestock")

# routers import the engine, so they come after the env is loaded
from routestock.core.celery_app import init_celery  # noqa: E402
from routestock.routers import (  # noqa: E402
    assignments,
    billing,
    catalog,
    notifications,
    reports,
    warehouse,
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_celery()
    logger.info("RouteStock API started (log level %s)", settings.log_level)
    yield


app = FastAPI(title="RouteStock API", lifespan=lifespan)


# ---- CORS (dev-friendly) ----------------------------------------------
_default_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
origins = sorted(set(_default_origins) | set(settings.frontend_origins))

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=86400,
)

# ---- register routers ------------------------------------------------------
app.include_router(catalog.router)
app.include_router(assignments.router)
app.include_router(billing.router)
app.include_router(warehouse.router)
app.include_router(reports.router)
app.include_router(notifications.router)


# ---- simple health check ---------------------------------------------------
@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe for the container / process."""
    return {"status": "ok"}
