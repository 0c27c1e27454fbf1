# app/api/deps/auth.py - Bearer token authentication
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from app.core.db import get_db
from app.core.security import decode_token
from app.models.user import User
from uuid import UUID
from typing import Dict, Any

security = HTTPBearer()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Resolve the signed-in user from an access token.
    Returns: {"user": User, "claims": dict}
    """
    claims = decode_token(credentials.credentials)

    try:
        user_id = UUID(claims.get("sub") or "")
    except ValueError:
        raise _unauthorized("Token has no valid subject")

    user = db.get(User, user_id)
    if user is None:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise _unauthorized("Account deactivated")

    return {"user": user, "claims": claims}
