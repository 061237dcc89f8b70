"""
routers/auth.py — Request-scoped dependencies shared by every /api router.

    get_current_user  — Bearer JWT → User row (created on first sight)
    get_store         — the AlphaStore built in main.lifespan
    get_runner        — the AgentRunner built in main.lifespan

Endpoints:
    GET /api/auth/me  — Current user profile
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from models import User
from security import verify_token
from src.services.agent_runner import AgentRunner
from src.services.store import AlphaStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])
bearer_scheme = HTTPBearer(auto_error=False)


# ─────────────────────────────────────────────
# Shared dependencies
# ─────────────────────────────────────────────

def get_store(request: Request) -> AlphaStore:
    return request.app.state.store


def get_runner(request: Request) -> AgentRunner:
    return request.app.state.runner


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    store: AlphaStore = Depends(get_store),
) -> User:
    """Validate the Bearer token and return the active User."""
    exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise exc

    try:
        claims = verify_token(credentials.credentials)
    except JWTError:
        raise exc
    user_id = claims.get("sub")
    if not user_id or claims.get("type", "access") != "access":
        raise exc

    user = await store.ensure_user(str(user_id), email=claims.get("email"), name=claims.get("name"))
    if not user.is_active:
        raise exc
    return user


# ─────────────────────────────────────────────
# GET /api/auth/me
# ─────────────────────────────────────────────

@router.get("/me")
async def me(current_user: User = Depends(get_current_user)):
    return {
        "id": current_user.id,
        "email": current_user.email,
        "name": current_user.name,
        "role": current_user.role,
    }
