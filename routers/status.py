"""
routers/status.py — Dashboard header counters.

Endpoints:
    GET /api/status  — Unread messages, today's article count, active signals,
                       portfolio size and the last run of each agent
"""

from fastapi import APIRouter, Depends

from models import User
from routers.auth import get_current_user, get_runner, get_store
from schemas import ExecutionLogResponse
from src.services.agent_runner import AgentRunner
from src.services.store import AlphaStore

router = APIRouter(prefix="/api/status", tags=["Status"])


@router.get("")
async def dashboard_status(
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
    runner: AgentRunner = Depends(get_runner),
):
    user_id = current_user.id
    last_runs = {}
    for name in runner.agent_names:
        rows = await store.list_executions(user_id, agent_name=name, limit=1)
        last_runs[name] = ExecutionLogResponse.model_validate(rows[0]) if rows else None

    return {
        "unread_messages": await store.count_unread_messages(user_id),
        "articles_last_24h": await store.count_articles(user_id, since=store.since(1)),
        "active_signals": len(await store.list_signals(user_id, limit=200, active_only=True)),
        "portfolio_items": len(await store.list_portfolio(user_id)),
        "last_runs": last_runs,
        "runs_in_flight": runner.in_flight,
    }
