"""
routers/messages.py — Dashboard inbox.

Endpoints:
    GET  /api/messages              — Messages, newest first
    POST /api/messages/{id}/read    — Mark one read
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from models import User
from routers.auth import get_current_user, get_store
from schemas import SystemMessageResponse
from src.services.store import AlphaStore

router = APIRouter(prefix="/api/messages", tags=["Messages"])


@router.get("")
async def list_messages(
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
):
    rows = await store.list_messages(current_user.id, unread_only=unread_only, limit=limit)
    return {
        "messages": [SystemMessageResponse.model_validate(m) for m in rows],
        "count": len(rows),
        "unread": await store.count_unread_messages(current_user.id),
    }


@router.post("/{message_id}/read", response_model=SystemMessageResponse)
async def mark_read(
    message_id: str,
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
):
    row = await store.mark_message_read(message_id, current_user.id)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    return row
