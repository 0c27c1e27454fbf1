# app/api/routers/admissions.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Dict, Any, List, Optional
from uuid import UUID

from app.core.db import get_db
from app.api.deps.tenancy import require_campus, require_campus_roles
from app.services.admission_service import AdmissionService
from app.schemas.admission import (
    ApplicationCreate,
    ApplicationReview,
    ApplicationOut,
    ApplicationEnrollOut,
    AdmissionStatsOut,
)

router = APIRouter()

registrar = require_campus_roles(["REGISTRAR"])


@router.post("/applications", response_model=ApplicationOut, status_code=status.HTTP_201_CREATED)
async def submit_application(
    data: ApplicationCreate,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return AdmissionService(db).submit(ctx["campus_id"], data.model_dump())


@router.get("/applications", response_model=List[ApplicationOut])
async def list_applications(
    application_status: Optional[str] = Query(None, alias="status"),
    program_id: Optional[UUID] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    return AdmissionService(db).list_applications(
        ctx["campus_id"], status=application_status, program_id=program_id, skip=skip, limit=limit
    )


@router.get("/statistics", response_model=AdmissionStatsOut)
async def admission_statistics(
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    return AdmissionService(db).statistics(ctx["campus_id"])


@router.get("/applications/{application_id}", response_model=ApplicationOut)
async def get_application(
    application_id: UUID,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    return AdmissionService(db).get_application(ctx["campus_id"], application_id)


@router.post("/applications/{application_id}/review", response_model=ApplicationOut)
async def review_application(
    application_id: UUID,
    data: ApplicationReview,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    return AdmissionService(db).review(
        ctx["campus_id"], application_id, data.status, ctx["user"].id, data.notes
    )


@router.post("/applications/{application_id}/enroll", response_model=ApplicationEnrollOut)
async def enroll_application(
    application_id: UUID,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    """Create the student record and portal account for an approved application"""
    return AdmissionService(db).enroll(ctx["campus_id"], application_id, enrolled_by=ctx["user"].id)
