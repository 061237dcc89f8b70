"""
main.py — Alpha API: app factory wiring, middleware and error envelopes.

The lifespan builds the Database, AlphaStore, model client, owner notifier
and AgentRunner once and parks them on app.state for the routers.

    uvicorn main:app --reload
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from config import settings
from database import Database
from routers import agents, auth, health, information, investment, learning, messages, preferences
from routers import status as status_router
from src.integrations.owner_notifier import OwnerNotifier
from src.services.agent_runner import AgentRunner, build_agents
from src.services.llm_service import LLMClient
from src.services.store import AlphaStore
from src.utils.exceptions import AlphaError, ConfigurationError, ModelInvocationError

# ─────────────────────────────────────────────
# Logging
# ─────────────────────────────────────────────

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

# Per-request access lines come from RequestLoggingMiddleware
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


# ─────────────────────────────────────────────
# Sentry
# ─────────────────────────────────────────────

def _init_sentry() -> None:
    if not settings.sentry_dsn:
        logger.info("Sentry DSN not set — error reporting disabled")
        return
    try:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment,
            release=f"alpha@{settings.app_version}",
            traces_sample_rate=0.1 if settings.is_production else 1.0,
            send_default_pii=False,
        )
        logger.info("Sentry enabled (%s)", settings.environment)
    except Exception as exc:
        logger.warning("Sentry init failed, continuing without it: %s", exc)


_init_sentry()

# ─────────────────────────────────────────────
# Rate limiting (one global default per client IP)
# ─────────────────────────────────────────────

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit_general])


# ─────────────────────────────────────────────
# Middleware
# ─────────────────────────────────────────────

_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cache-Control": "no-store",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Dashboard responses are private and never framed."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for header, value in _SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains"
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One log line per request, tagged with an X-Request-ID."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "[%s] %s %s → %d in %.1fms",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        response.headers["X-Request-ID"] = request_id
        return response


# ─────────────────────────────────────────────
# Lifespan (startup / shutdown)
# ─────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the persistence client, model client and agent runner; tear down on exit."""
    logger.info("Starting %s v%s (%s)", settings.app_name, settings.app_version, settings.environment)

    # 1. Database + store
    database = Database(config=settings)
    await database.connect()
    store = AlphaStore(database)

    # 2. Collaborators — credentials are checked when first used, not here
    llm = LLMClient(settings)
    notifier = OwnerNotifier(settings)
    if llm.is_configured:
        logger.info("Anthropic API key: configured")
    else:
        logger.warning("Anthropic API key: NOT configured — agent runs will fail")
    if not settings.notifications_enabled:
        logger.warning("Owner notifications: NOT configured — failed runs will only be logged")
    if not settings.product_hunt_api_key:
        logger.info("Product Hunt: NOT configured — source will be skipped")

    # 3. Agents
    runner = AgentRunner(store, build_agents(store, llm, notifier, settings))

    app.state.database = database
    app.state.store = store
    app.state.llm = llm
    app.state.notifier = notifier
    app.state.runner = runner

    yield

    # ── Cleanup ──────────────────────────────────────────────────────────────
    await runner.shutdown()
    await llm.aclose()
    await database.disconnect()
    logger.info("%s stopped", settings.app_name)


# ─────────────────────────────────────────────
# App
# ─────────────────────────────────────────────

app = FastAPI(
    title="Alpha API",
    description="Personal dashboard: information, learning and investment agents",
    version=settings.app_version,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None,
    lifespan=lifespan,
)

app.state.limiter = limiter

# ─────────────────────────────────────────────
# Middleware stack (last added runs outermost)
# ─────────────────────────────────────────────

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SlowAPIMiddleware)

# ─────────────────────────────────────────────
# Error envelopes: {"status": "error", "error": ...}
# ─────────────────────────────────────────────

@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"status": "error", "error": f"Rate limit exceeded ({exc.detail})"},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in e["loc"] if part != "body"), "message": e["msg"]}
        for e in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"status": "error", "error": "Validation failed", "details": errors},
    )


@app.exception_handler(AlphaError)
async def alpha_error_handler(request: Request, exc: AlphaError):
    if isinstance(exc, ConfigurationError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(exc, ModelInvocationError):
        code = status.HTTP_502_BAD_GATEWAY
    else:
        code = status.HTTP_400_BAD_REQUEST
    logger.warning("%s on %s %s: %s", exc.__class__.__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=code, content={"status": "error", "error": exc.message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"status": "error", "error": "Internal server error"},
    )


# ─────────────────────────────────────────────
# Routers
# ─────────────────────────────────────────────

for _router in (
    health.router,
    auth.router,
    agents.router,
    information.router,
    learning.router,
    investment.router,
    messages.router,
    preferences.router,
    status_router.router,
):
    app.include_router(_router)


# ─────────────────────────────────────────────
# Root
# ─────────────────────────────────────────────

@app.get("/", include_in_schema=False)
async def root():
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "time": datetime.now(timezone.utc).isoformat(),
    }
