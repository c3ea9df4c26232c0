# app/main.py
# Tutor Connect FastAPI application entry point
#
# Startup:  logging, DB connection check, change-feed backend check
# Shutdown: Clean connection pool disposal
# Routes:   /health, /api/v1/* (all endpoints via master router)

import logging
from contextlib import asynccontextmanager

import redis as redis_lib
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import app.db.events  # noqa: F401 -- registers change-capture session listeners
from app.api.v1.router import api_router
from app.core.config import settings
from app.core.exceptions import EngineError
from app.db.session import check_db_connection, engine

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)


def check_realtime_backend() -> bool:
    """The in-process feed is always up; Redis must answer a ping."""
    if settings.realtime_backend != "redis":
        return True
    try:
        r = redis_lib.from_url(settings.redis_url, socket_connect_timeout=1)
        r.ping()
        r.close()
        return True
    except redis_lib.RedisError:
        return False


# ── Lifespan ──────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log.info("Starting %s v%s [%s]", settings.app_name, settings.app_version, settings.app_env)

    if check_db_connection():
        log.info("Database connection: OK")
    else:
        log.warning("Database connection failed -- check DATABASE_URL")

    if check_realtime_backend():
        log.info("Change feed (%s): OK", settings.realtime_backend)
    else:
        log.warning("Change feed Redis unreachable -- check REDIS_URL")

    yield  # App runs here

    # Shutdown
    log.info("Shutting down -- disposing DB connection pool")
    engine.dispose()


# ── App Instance ──────────────────────────────────────────────────────────────

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Tutor Connect -- request board, applications and teacher engagements.",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
    debug=settings.debug,
)


# ── CORS ──────────────────────────────────────────────────────────────────────

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error Mapping ─────────────────────────────────────────────────────────────

@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# ── Routes ────────────────────────────────────────────────────────────────────

app.include_router(api_router, prefix="/api/v1")


# ── Health Check ──────────────────────────────────────────────────────────────

@app.get("/health", tags=["Health"], include_in_schema=False)
def health_check():
    """
    Returns 200 OK if the app is running.
    DB and change-feed status included for observability.
    """
    db_ok = check_db_connection()
    feed_ok = check_realtime_backend()

    return JSONResponse(
        status_code=200,
        content={
            "status": "ok",
            "app": settings.app_name,
            "version": settings.app_version,
            "environment": settings.app_env,
            "services": {
                "database": "ok" if db_ok else "unavailable",
                "realtime": {
                    "backend": settings.realtime_backend,
                    "status": "ok" if feed_ok else "unavailable",
                },
            },
        },
    )


@app.get("/", include_in_schema=False)
def root():
    return JSONResponse(
        content={
            "message": "Tutor Connect API",
            "docs": "/api/docs",
            "health": "/health",
        }
    )
