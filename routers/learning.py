"""
routers/learning.py — Daily lessons produced by the Learning agent.

Endpoints:
    GET  /api/learning/content                 — Recent lessons, newest first
    GET  /api/learning/content/today           — Today's lesson (404 if none yet)
    POST /api/learning/content/{id}/complete   — Mark a lesson completed
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status

from models import User
from routers.auth import get_current_user, get_store
from schemas import LearningContentResponse
from src.agents.base import local_date
from src.services.store import AlphaStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/learning", tags=["Learning"])


# ─────────────────────────────────────────────────────────────────────────────
# GET /api/learning/content
# ─────────────────────────────────────────────────────────────────────────────

@router.get("/content")
async def list_content(
    limit: int = Query(30, ge=1, le=365),
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
):
    rows = await store.list_learning_content(current_user.id, limit=limit)
    return {
        "content": [LearningContentResponse.model_validate(c) for c in rows],
        "count": len(rows),
        "completed": sum(1 for c in rows if c.is_completed),
    }


# ─────────────────────────────────────────────────────────────────────────────
# GET /api/learning/content/today
# ─────────────────────────────────────────────────────────────────────────────

@router.get("/content/today", response_model=LearningContentResponse)
async def today_content(
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
):
    prefs = await store.get_preferences(current_user.id)
    today = local_date(datetime.now(timezone.utc), prefs.timezone if prefs else None)
    row = await store.get_learning_for_date(current_user.id, today.isoformat())
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No lesson for today yet")
    return row


# ─────────────────────────────────────────────────────────────────────────────
# POST /api/learning/content/{content_id}/complete
# ─────────────────────────────────────────────────────────────────────────────

@router.post("/content/{content_id}/complete", response_model=LearningContentResponse)
async def complete_content(
    content_id: str,
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
):
    row = await store.mark_learning_completed(content_id, current_user.id)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lesson not found")
    return row
