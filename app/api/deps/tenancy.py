from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session
from typing import Optional, Dict, Any, List
from uuid import UUID

from app.core.db import get_db
from app.api.deps.auth import get_current_user
from app.models.campus import Campus, CampusMember


def require_campus(
    ctx: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db),
    x_campus_id: Optional[str] = Header(default=None, alias="X-Campus-ID"),
) -> Dict[str, Any]:
    """
    Resolve the active campus for the request and return context dict
    """
    claims = ctx["claims"]
    user = ctx["user"]

    campus_id = x_campus_id or claims.get("active_campus_id")

    if not campus_id:
        memberships = (
            db.query(CampusMember.campus_id)
              .filter(CampusMember.user_id == user.id)
              .all()
        )
        if not memberships:
            raise HTTPException(status_code=404, detail="You are not a member of any campus")
        if len(memberships) == 1:
            campus_id = memberships[0][0]
        else:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Multiple campuses detected. Provide X-Campus-ID or call /api/auth/activate-campus to set an active campus."
            )

    if not isinstance(campus_id, UUID):
        try:
            campus_id = UUID(str(campus_id))
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid campus ID")

    membership = (
        db.query(CampusMember)
          .filter(CampusMember.campus_id == campus_id, CampusMember.user_id == user.id)
          .first()
    )
    if not membership:
        raise HTTPException(status_code=403, detail="Not a member of this campus")

    if not db.query(Campus.id).filter(Campus.id == campus_id).first():
        raise HTTPException(status_code=404, detail="Campus not found")

    return {"user": user, "campus_id": campus_id, "role": membership.role}


def require_campus_roles(roles: List[str]):
    """
    Require one of the given campus roles. Owners, campus admins and
    system admins always pass.
    """
    def checker(ctx: Dict[str, Any] = Depends(require_campus)) -> Dict[str, Any]:
        if ctx["role"] in ("OWNER", "ADMIN") or ctx["role"] in roles:
            return ctx
        if ctx["user"].is_admin():
            return ctx
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Access denied. Required campus roles: {roles}"
        )
    return checker
