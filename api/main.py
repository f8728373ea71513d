"""
api/main.py -- FastAPI application entry point for AuthGate.

Run with:  python main.py serve
           uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware -- adds CORS headers for allowed browser origins. Credentials
     are allowed because the refresh token travels in a cookie.
  2. log_requests   -- one log line per request with status and latency.

Lifespan is the composition root: it builds the user store, seeds demo users,
and wires TokenCodec + InMemorySessionStore + UserStore into one AuthEngine on
app.state. Nothing in auth/ holds module-level state.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, HealthResponse, ServerInfoResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.ping import router as ping_router
from auth.seed import seed_demo_users
from auth.service import AuthEngine
from auth.sessions import InMemorySessionStore
from auth.store import UserStore
from auth.tokens import TokenCodec
from core.config import Settings, get_settings

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authgate.api")

_settings = get_settings()
_RUN_DATE = datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Composition root
# ---------------------------------------------------------------------------


def build_auth_engine(settings: Settings, user_store: UserStore) -> AuthEngine:
    """Wire the token codec, a fresh session store and the user store together."""
    return AuthEngine(
        users=user_store,
        codec=TokenCodec.from_settings(settings),
        sessions=InMemorySessionStore(),
    )


# ---------------------------------------------------------------------------
# Lifespan -- startup / shutdown
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown.
    """
    settings = get_settings()
    logger.info("%s %s starting up", settings.app_name, settings.app_version)
    app.state.settings = settings
    app.state.user_store = UserStore(settings.database_url)
    if settings.use_mock_data:
        logger.warning("Seeding demo users. Set USE_MOCK_DATA=false in production!")
        seed_demo_users(app.state.user_store)
    app.state.auth_engine = build_auth_engine(settings, app.state.user_store)
    logger.info("Auth initialized (users_present=%s)", app.state.user_store.has_users())

    yield

    app.state.user_store.close()
    logger.info("%s shutdown complete", settings.app_name)


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title=f"{_settings.app_name} API",
    description="Email/password login with rotating refresh tokens and multi-device sessions.",
    version=_settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(ping_router, prefix="/api/v1", tags=["Ping"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="VALIDATION_ERROR",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Dependencies raise HTTPException with a {"code", "message"} dict as detail.
    When detail is already structured, use it directly as the error field.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=exc.headers,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"HTTP_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="INTERNAL_ERROR",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health and server info
#
# Defined directly in main.py (not in a router) so they are always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=_settings.app_version)


@app.get("/", tags=["Health"])
async def server_info() -> ServerInfoResponse:
    return ServerInfoResponse(server=_settings.app_name, version=_settings.app_version, run_date=_RUN_DATE)
