"""
routers/information.py — Articles, daily summaries and user feeds.

Endpoints:
    GET  /api/information/articles               — Classified articles
    POST /api/information/articles/{id}/read     — Mark read
    POST /api/information/articles/{id}/save     — Toggle saved
    GET  /api/information/summaries              — Recent daily summaries
    GET  /api/information/sources                — Active RSS feeds
    POST /api/information/sources                — Add an RSS feed
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from models import User
from routers.auth import get_current_user, get_store
from schemas import (
    ArticleResponse,
    DailySummaryResponse,
    InformationSourceRequest,
    InformationSourceResponse,
)
from src.agents.replies import ARTICLE_CATEGORIES
from src.services.store import AlphaStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/information", tags=["Information"])


# ─────────────────────────────────────────────────────────────────────────────
# Articles
# ─────────────────────────────────────────────────────────────────────────────

@router.get("/articles")
async def list_articles(
    category: str | None = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
):
    """Newest first; optionally filtered by category."""
    if category and category not in ARTICLE_CATEGORIES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"category must be one of {', '.join(ARTICLE_CATEGORIES)}",
        )
    rows = await store.list_articles(current_user.id, limit=limit, offset=offset, category=category)
    return {
        "articles": [ArticleResponse.model_validate(a) for a in rows],
        "count": len(rows),
    }


@router.post("/articles/{article_id}/read", response_model=ArticleResponse)
async def mark_read(
    article_id: str,
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
):
    row = await store.mark_article_read(article_id, current_user.id)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Article not found")
    return row


@router.post("/articles/{article_id}/save", response_model=ArticleResponse)
async def toggle_saved(
    article_id: str,
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
):
    row = await store.toggle_article_saved(article_id, current_user.id)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Article not found")
    return row


# ─────────────────────────────────────────────────────────────────────────────
# Summaries
# ─────────────────────────────────────────────────────────────────────────────

@router.get("/summaries")
async def list_summaries(
    days: int = Query(7, ge=1, le=90),
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
):
    rows = await store.list_daily_summaries(current_user.id, days=days)
    return {
        "summaries": [DailySummaryResponse.model_validate(s) for s in rows],
        "count": len(rows),
    }


# ─────────────────────────────────────────────────────────────────────────────
# Sources
# ─────────────────────────────────────────────────────────────────────────────

@router.get("/sources")
async def list_sources(
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
):
    rows = await store.list_active_sources(current_user.id)
    return {
        "sources": [InformationSourceResponse.model_validate(s) for s in rows],
        "count": len(rows),
    }


@router.post("/sources", response_model=InformationSourceResponse, status_code=status.HTTP_201_CREATED)
async def add_source(
    body: InformationSourceRequest,
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
):
    row = await store.create_information_source(
        current_user.id, body.source_type, body.name, {"url": body.url}
    )
    logger.info("User %s added %s source %r", current_user.id, body.source_type, body.name)
    return row
