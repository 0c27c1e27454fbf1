# app/api/routers/campuses.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Dict, Any, List, Optional
from uuid import UUID

from app.core.db import get_db
from app.api.deps.auth import get_current_user
from app.api.deps.tenancy import require_campus, require_campus_roles
from app.services.campus_service import CampusService
from app.services.audit_service import AuditService
from app.schemas.campus import (
    CampusCreate,
    CampusUpdate,
    CampusOut,
    MyCampusOut,
    MemberAdd,
    MemberOut,
    AuditLogOut,
)

router = APIRouter()


@router.post("", response_model=CampusOut, status_code=status.HTTP_201_CREATED)
async def create_campus(
    data: CampusCreate,
    ctx: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create a campus owned by the current user"""
    return CampusService(db).create_campus(ctx["user"], data.model_dump())


@router.get("/mine", response_model=List[MyCampusOut])
async def my_campuses(
    ctx: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return CampusService(db).list_my_campuses(ctx["user"].id)


@router.get("/current", response_model=CampusOut)
async def current_campus(
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return CampusService(db).get_campus(ctx["campus_id"])


@router.patch("/current", response_model=CampusOut)
async def update_current_campus(
    data: CampusUpdate,
    ctx: Dict[str, Any] = Depends(require_campus_roles(["OWNER", "ADMIN"])),
    db: Session = Depends(get_db)
):
    return CampusService(db).update_campus(ctx["campus_id"], data.model_dump(exclude_unset=True))


@router.get("/members", response_model=List[MemberOut])
async def list_members(
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return CampusService(db).list_members(ctx["campus_id"])


@router.post("/members", response_model=MemberOut, status_code=status.HTTP_201_CREATED)
async def add_member(
    data: MemberAdd,
    ctx: Dict[str, Any] = Depends(require_campus_roles(["OWNER", "ADMIN"])),
    db: Session = Depends(get_db)
):
    """Add an existing user to the active campus"""
    return CampusService(db).add_member(ctx["campus_id"], data.email, data.role, added_by=ctx["user"].id)


@router.get("/audit-logs", response_model=List[AuditLogOut])
async def audit_logs(
    action: Optional[str] = Query(None),
    entity: Optional[str] = Query(None),
    user_id: Optional[UUID] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    ctx: Dict[str, Any] = Depends(require_campus_roles(["OWNER", "ADMIN"])),
    db: Session = Depends(get_db)
):
    return AuditService(db).list_entries(
        ctx["campus_id"], action=action, entity=entity, user_id=user_id, skip=skip, limit=limit
    )
