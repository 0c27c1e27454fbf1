# app/api/routers/enrollments.py - Class registration
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Dict, Any, List, Optional
from uuid import UUID

from app.core.db import get_db
from app.api.deps.tenancy import require_campus, require_campus_roles
from app.services.enrollment_service import EnrollmentService
from app.services.student_service import StudentService
from app.schemas.enrollment import (
    EnrollmentCreate,
    BulkEnrollIn,
    EnrollmentOut,
    BulkEnrollOut,
)

router = APIRouter()


@router.post("", response_model=EnrollmentOut, status_code=status.HTTP_201_CREATED)
async def enroll_student(
    data: EnrollmentCreate,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    """
    Register a student in a class section.
    Students may register themselves; prerequisite overrides need registrar rights.
    """
    if ctx["role"] == "STUDENT":
        own = StudentService(db).get_student_by_user(ctx["campus_id"], ctx["user"].id)
        if own is None or own.id != data.student_id:
            raise HTTPException(status_code=403, detail="Students can only enroll themselves")
        if data.override_prerequisites:
            raise HTTPException(status_code=403, detail="Prerequisite overrides require registrar approval")

    return EnrollmentService(db).enroll(
        ctx["campus_id"],
        data.student_id,
        data.class_id,
        override_prerequisites=data.override_prerequisites,
        override_reason=data.override_reason,
        enrolled_by=ctx["user"].id,
    )


@router.post("/bulk", response_model=BulkEnrollOut)
async def bulk_enroll(
    data: BulkEnrollIn,
    ctx: Dict[str, Any] = Depends(require_campus_roles(["REGISTRAR"])),
    db: Session = Depends(get_db)
):
    return EnrollmentService(db).bulk_enroll(ctx["campus_id"], data.student_ids, data.class_id, ctx["user"].id)


@router.get("", response_model=List[EnrollmentOut])
async def list_enrollments(
    class_id: Optional[UUID] = Query(None),
    student_id: Optional[UUID] = Query(None),
    semester_id: Optional[UUID] = Query(None),
    enrollment_status: Optional[str] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    ctx: Dict[str, Any] = Depends(require_campus_roles(["REGISTRAR", "LECTURER"])),
    db: Session = Depends(get_db)
):
    return EnrollmentService(db).list_enrollments(
        ctx["campus_id"],
        class_id=class_id,
        student_id=student_id,
        semester_id=semester_id,
        status=enrollment_status,
        skip=skip,
        limit=limit,
    )


@router.get("/{enrollment_id}", response_model=EnrollmentOut)
async def get_enrollment(
    enrollment_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return EnrollmentService(db).get_enrollment(ctx["campus_id"], enrollment_id)


@router.post("/{enrollment_id}/drop", response_model=EnrollmentOut)
async def drop_enrollment(
    enrollment_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    service = EnrollmentService(db)
    if ctx["role"] == "STUDENT":
        enrollment = service.get_enrollment(ctx["campus_id"], enrollment_id)
        own = StudentService(db).get_student_by_user(ctx["campus_id"], ctx["user"].id)
        if own is None or own.id != enrollment.student_id:
            raise HTTPException(status_code=403, detail="Students can only drop their own classes")
    return service.drop(ctx["campus_id"], enrollment_id, dropped_by=ctx["user"].id)
