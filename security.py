"""
security.py — JWT helpers.

Alpha has no password login of its own: bearer tokens are minted by the
owner's identity service (or `create_access_token` below for local use) and
carry the user id in the `sub` claim.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from config import settings


# ─────────────────────────────────────────────
# JWT Token Management
# ─────────────────────────────────────────────

def create_access_token(
    user_id: str,
    extra_claims: dict[str, Any] | None = None,
    expires_in: timedelta | None = None,
) -> str:
    """Create a signed access token for the given user.

    Args:
        user_id: The user's UUID string.
        extra_claims: Optional additional claims to embed (e.g. email).
        expires_in: Lifetime; defaults to ACCESS_TOKEN_EXPIRE_HOURS.
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_in or timedelta(hours=settings.access_token_expire_hours))
    payload: dict[str, Any] = {
        "sub": user_id,
        "exp": expire,
        "iat": now,
        "type": "access",
    }
    if extra_claims:
        payload.update(extra_claims)
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict[str, Any]:
    """Decode and validate a JWT, returning the full payload.

    Raises:
        JWTError: if the token is invalid, expired, or tampered with.
    """
    return jwt.decode(
        token,
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm],
    )
