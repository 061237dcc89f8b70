"""
routers/preferences.py — Per-user settings.

Endpoints:
    GET /api/preferences   — Current preferences (defaults if never saved)
    PUT /api/preferences   — Partial update
"""

import logging

from fastapi import APIRouter, Depends

from models import User
from routers.auth import get_current_user, get_store
from schemas import PreferencesRequest, PreferencesResponse
from src.agents.information_agent import DEFAULT_INTERESTS
from src.services.store import AlphaStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/preferences", tags=["Preferences"])


def _defaults() -> PreferencesResponse:
    return PreferencesResponse(
        interests=list(DEFAULT_INTERESTS),
        notification_email=None,
        notification_enabled=True,
        summary_time=None,
        learning_time=None,
        investment_check_time=None,
        timezone="UTC",
        theme="light",
    )


@router.get("", response_model=PreferencesResponse)
async def get_preferences(
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
):
    row = await store.get_preferences(current_user.id)
    return row if row is not None else _defaults()


@router.put("", response_model=PreferencesResponse)
async def update_preferences(
    body: PreferencesRequest,
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
):
    changes = body.model_dump(exclude_unset=True)
    # Columns with a NOT NULL default cannot be cleared
    for key in ("notification_enabled", "timezone", "theme"):
        if key in changes and changes[key] is None:
            del changes[key]
    row = await store.upsert_preferences(current_user.id, **changes)
    logger.info("Preferences updated for user=%s: %s", current_user.id, sorted(changes))
    return row
