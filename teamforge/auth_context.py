"""
teamforge/auth_context.py

Shared authentication context primitives for FastAPI dependency injection.

The identity provider issues HS256 bearer tokens; this backend only verifies
them. The token's `sub` claim is the stable user id used as the actor in
every membership decision.

Contains:
- AuthContext: Immutable identity derived from a verified token
- verify_token: JWT token verification
- get_current_actor: Optional actor (anonymous allowed)
- require_auth_context: Actor required (401 otherwise)
"""

from __future__ import annotations

from typing import Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from teamforge.config import ALGORITHM, IS_DEV, SECRET_KEY
from teamforge.errors import MembershipError

# auto_error=False so anonymous requests reach endpoints that allow them
security = HTTPBearer(auto_error=False)


# ---------------------------------------------------------
# JWT Token Verification
# ---------------------------------------------------------
def verify_token(token: str) -> dict:
    """
    Verify JWT access token and return decoded payload.

    Raises:
        HTTPException(401): If token is expired or invalid
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return payload
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


# ---------------------------------------------------------
# AuthContext
# ---------------------------------------------------------
class AuthContext(BaseModel):
    """
    Identity of the caller, derived from server-side token verification.
    Never trust user ids from request bodies or query params.
    """
    user_id: str
    email: Optional[str] = None

    class Config:
        frozen = True


def get_auth_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[AuthContext]:
    """
    Resolve the caller's identity, or None for anonymous requests.

    A token that is present but invalid is still an error (401); only a
    missing Authorization header yields None.
    """
    if credentials is None:
        return None

    payload = verify_token(credentials.credentials)
    user_id = payload.get("sub")

    if not user_id:
        print("[AUTH] Missing user_id in token payload")
        raise HTTPException(status_code=401, detail="Invalid token payload")

    ctx = AuthContext(user_id=str(user_id), email=payload.get("email"))

    if IS_DEV:
        print(f"[AUTH] Authenticated: user_id={ctx.user_id}")

    return ctx


def get_current_actor(ctx: Optional[AuthContext] = Depends(get_auth_context)) -> Optional[str]:
    """Current actor id, or None when unauthenticated."""
    return ctx.user_id if ctx else None


def require_auth_context(ctx: Optional[AuthContext] = Depends(get_auth_context)) -> AuthContext:
    """
    Auth context dependency for routes that need a signed-in actor.

    Raises:
        HTTPException(401): No bearer token supplied
    """
    if ctx is None:
        raise HTTPException(
            status_code=401,
            detail={
                "error": MembershipError.NOT_AUTHENTICATED.value,
                "message": "Sign in required",
                "retryable": False,
            },
        )
    return ctx
