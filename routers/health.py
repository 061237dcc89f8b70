"""
routers/health.py — Health check endpoints for Alpha.

Endpoints:
    GET /health                — Basic application liveness
    GET /health/database       — Database connectivity
    GET /health/ai             — Model API connectivity
    GET /health/notifications  — Owner-notification configuration
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from config import settings
from routers.auth import get_store
from schemas import HealthResponse, ServiceStatus
from src.services.store import AlphaStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


def _report(name: str, service: ServiceStatus) -> HealthResponse:
    overall = "healthy" if service.status == "healthy" else "degraded"
    return HealthResponse(
        status=overall,
        timestamp=datetime.now(timezone.utc),
        services={name: service},
    )


# ─────────────────────────────────────────────
# GET /health
# ─────────────────────────────────────────────

@router.get("", response_model=HealthResponse, summary="Application liveness")
async def health_check():
    """Return basic application status. Always 200 if the server is running."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
    )


# ─────────────────────────────────────────────
# GET /health/database
# ─────────────────────────────────────────────

@router.get("/database", response_model=HealthResponse, summary="Database connectivity")
async def database_health(store: AlphaStore = Depends(get_store)):
    """Verify that the database can accept connections and execute queries."""
    if await store.ping():
        db_status = ServiceStatus(status="healthy")
    else:
        db_status = ServiceStatus(status="error", detail="Cannot connect to database")
    return _report("database", db_status)


# ─────────────────────────────────────────────
# GET /health/ai
# ─────────────────────────────────────────────

@router.get("/ai", response_model=HealthResponse, summary="Model API connectivity")
async def ai_health(request: Request):
    """Verify that the Anthropic API key is configured and the API is reachable."""
    llm = request.app.state.llm
    if not llm.is_configured:
        return _report(
            "ai", ServiceStatus(status="error", detail="ANTHROPIC_API_KEY not configured")
        )

    try:
        # Minimal call to verify key validity
        await llm.invoke([{"role": "user", "content": "ping"}], max_tokens=5)
        ai_status = ServiceStatus(status="healthy")
    except Exception as exc:
        logger.error("Anthropic health check failed: %s", exc)
        ai_status = ServiceStatus(status="error", detail=f"Anthropic error: {str(exc)[:80]}")
    return _report("ai", ai_status)


# ─────────────────────────────────────────────
# GET /health/notifications
# ─────────────────────────────────────────────

@router.get("/notifications", response_model=HealthResponse, summary="Owner notification config")
async def notifications_health():
    """Owner alerts need both NOTIFICATION_API_URL and NOTIFICATION_API_KEY."""
    if settings.notifications_enabled:
        status = ServiceStatus(status="healthy", detail="Notification service configured")
    else:
        status = ServiceStatus(
            status="error", detail="NOTIFICATION_API_URL / NOTIFICATION_API_KEY not configured"
        )
    return _report("notifications", status)
