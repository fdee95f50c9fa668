"""
api/main.py -- FastAPI application entry point for the Padrón API.

Run with:      python main.py serve
               uvicorn api.main:app --reload --port 3000

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for the SPA origins
  3. SlowAPIMiddleware     -- global per-IP limit from api.limiter

Lifespan opens the database engine, creates the schema if needed and wires
the stores and the login attempt tracker into app.state. Shutdown disposes
the engine.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, FieldError, HealthResponse
from api.routes.admin import router as admin_router
from api.routes.auth import router as auth_router
from api.routes.personas import router as personas_router
from api.routes.users import router as users_router
from api.routes.villas import router as villas_router
from audit.store import AuditStore
from auth.bruteforce import LoginAttemptTracker
from auth.store import UserStore
from core.config import get_settings
from core.database import create_db_engine
from core.errors import AppError
from registry.store import RegistryStore

settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("padron.api")

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the database and wire the stores for the server lifetime.

    All stores share one Engine so the capacity check, the user/villa
    references and the audit join see the same database.
    """
    logger.info("Padrón API starting up")
    engine = create_db_engine(settings.database_url)
    app.state.engine = engine
    app.state.user_store = UserStore(engine)
    app.state.registry = RegistryStore(engine)
    app.state.audit = AuditStore(engine)
    app.state.login_tracker = LoginAttemptTracker(
        max_attempts=settings.login_max_attempts,
        window_seconds=settings.login_window_seconds,
    )
    logger.info("Database ready (%s)", engine.url.render_as_string(hide_password=True))

    yield

    engine.dispose()
    logger.info("Padrón API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Padrón JJVV API",
    description="Registro municipal de residentes por villa, con cupos y bitácora de auditoría.",
    version="1.0.0",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPIMiddleware looks for app.state.limiter by convention.
app.state.limiter = limiter

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

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(personas_router, prefix="/api", tags=["Personas"])
app.include_router(users_router, prefix="/api", tags=["Usuarios"])
app.include_router(villas_router, prefix="/api", tags=["Villas"])
app.include_router(admin_router, prefix="/api", tags=["Admin"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every error leaves the API as {message, code, errors?} so the SPA can show
# `message` without inspecting the status code.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, message: str, code: str, errors: list | None = None) -> JSONResponse:
    body = ErrorResponse(
        message=message,
        code=code,
        errors=[FieldError(**e) for e in errors] if errors else None,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def _field_message(error: dict) -> str:
    """Spanish message for one pydantic error item.

    Validators raise ValueError with the user-facing text; pydantic prefixes
    it with "Value error, ".
    """
    kind = error.get("type", "")
    if kind == "value_error":
        ctx_error = (error.get("ctx") or {}).get("error")
        if ctx_error is not None:
            return str(ctx_error)
        return str(error.get("msg", "")).removeprefix("Value error, ")
    if kind == "missing":
        return "Campo obligatorio"
    if kind.startswith("int") or kind.startswith("float"):
        return "Debe ser un número entero"
    return "Valor inválido"


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return _error_response(exc.status_code, exc.message, exc.code, exc.errors)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 when the global per-IP limit is exceeded.

    Retry-After tells clients how many seconds to wait before retrying.
    """
    retry_after = int(getattr(exc, "retry_after", 60) or 60)
    logger.warning("Rate limit exceeded for %s on %s", request.client.host if request.client else "unknown", request.url.path)
    response = _error_response(
        429,
        "Demasiadas solicitudes desde esta IP, intenta nuevamente más tarde.",
        "rate_limited",
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with one {campo, mensaje} item per failing field."""
    errors = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"campo": ".".join(loc) or "body", "mensaje": _field_message(error)})
    return _error_response(400, "Datos inválidos", "validation_error", errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown routes, wrong methods and any HTTPException raised by a dependency."""
    message = "Recurso no encontrado" if exc.status_code == 404 else str(exc.detail)
    response = _error_response(exc.status_code, message, f"http_{exc.status_code}")
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "Error interno del servidor", "internal_error")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Not rate limited: health checks from load balancers and monitors must not
# be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/health", response_model=HealthResponse, tags=["Health"])
@limiter.exempt
async def health(request: Request) -> HealthResponse:
    return HealthResponse()
