"""
routers/agents.py — Trigger agents and follow their runs.

Endpoints:
    POST /api/agents/{agent_name}/run  — Queue a run, returns its run_id
    GET  /api/agents/runs/{run_id}     — One execution log row
    GET  /api/agents/logs              — Recent execution logs
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from models import User
from routers.auth import get_current_user, get_runner, get_store
from schemas import AgentTriggerResponse, ExecutionLogResponse
from src.services.agent_runner import AgentRunner, UnknownAgentError
from src.services.store import AlphaStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/agents", tags=["Agents"])


# ─────────────────────────────────────────────────────────────────────────────
# POST /api/agents/{agent_name}/run
# ─────────────────────────────────────────────────────────────────────────────

@router.post("/{agent_name}/run", response_model=AgentTriggerResponse)
async def trigger_agent(
    agent_name: str,
    current_user: User = Depends(get_current_user),
    runner: AgentRunner = Depends(get_runner),
):
    """Start an agent in the background and return immediately."""
    try:
        run_id = await runner.trigger(agent_name, current_user.id)
    except UnknownAgentError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown agent '{agent_name}'. Available: {', '.join(runner.agent_names)}",
        )

    if run_id is None:
        return AgentTriggerResponse(status="skipped", agent=agent_name)
    return AgentTriggerResponse(status="started", agent=agent_name, run_id=run_id)


# ─────────────────────────────────────────────────────────────────────────────
# GET /api/agents/runs/{run_id}
# ─────────────────────────────────────────────────────────────────────────────

@router.get("/runs/{run_id}", response_model=ExecutionLogResponse)
async def get_run(
    run_id: str,
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
):
    row = await store.get_execution(run_id, user_id=current_user.id)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Run not found")
    return row


# ─────────────────────────────────────────────────────────────────────────────
# GET /api/agents/logs
# ─────────────────────────────────────────────────────────────────────────────

@router.get("/logs")
async def list_logs(
    agent_name: str | None = None,
    limit: int = Query(20, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
):
    rows = await store.list_executions(current_user.id, agent_name=agent_name, limit=limit)
    return {
        "logs": [ExecutionLogResponse.model_validate(r) for r in rows],
        "count": len(rows),
    }
