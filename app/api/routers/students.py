# app/api/routers/students.py - Student records, holds and academic history
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Dict, Any, List, Optional
from uuid import UUID
import logging

from app.core.db import get_db
from app.api.deps.tenancy import require_campus, require_campus_roles
from app.services.student_service import StudentService
from app.services.enrollment_service import EnrollmentService
from app.services.grade_calculation_service import GradeCalculationService
from app.schemas.student import (
    StudentCreate,
    StudentUpdate,
    StudentOut,
    StudentList,
    HoldCreate,
    HoldResolve,
    HoldOut,
)
from app.schemas.enrollment import AvailableClassOut
from app.schemas.grading import GpaOut, TranscriptOut

logger = logging.getLogger(__name__)
router = APIRouter()

registrar = require_campus_roles(["REGISTRAR"])


def _ensure_own_record(ctx: Dict[str, Any], db: Session, student_id: UUID) -> None:
    """Students may only read their own record"""
    if ctx["role"] != "STUDENT":
        return
    own = StudentService(db).get_student_by_user(ctx["campus_id"], ctx["user"].id)
    if own is None or own.id != student_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Students can only access their own records"
        )


@router.post("", response_model=StudentOut, status_code=status.HTTP_201_CREATED)
async def create_student(
    data: StudentCreate,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    """Create a student; the student number is generated"""
    return StudentService(db).create_student(ctx["campus_id"], data.model_dump(), created_by=ctx["user"].id)


@router.get("", response_model=StudentList)
async def list_students(
    search: Optional[str] = Query(None, description="Name, student number or email"),
    student_status: Optional[str] = Query(None, alias="status"),
    program_id: Optional[UUID] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    ctx: Dict[str, Any] = Depends(require_campus_roles(["REGISTRAR", "LECTURER", "ACCOUNTANT"])),
    db: Session = Depends(get_db)
):
    return StudentService(db).list_students(
        ctx["campus_id"],
        search=search,
        status=student_status,
        program_id=program_id,
        skip=skip,
        limit=limit,
    )


@router.get("/me", response_model=StudentOut)
async def my_student_record(
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    student = StudentService(db).get_student_by_user(ctx["campus_id"], ctx["user"].id)
    if student is None:
        raise HTTPException(status_code=404, detail="No student record linked to this account")
    return student


@router.get("/{student_id}", response_model=StudentOut)
async def get_student(
    student_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    _ensure_own_record(ctx, db, student_id)
    return StudentService(db).get_student(ctx["campus_id"], student_id)


@router.get("/{student_id}/profile")
async def student_profile(
    student_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    _ensure_own_record(ctx, db, student_id)
    return StudentService(db).get_profile(ctx["campus_id"], student_id)


@router.patch("/{student_id}", response_model=StudentOut)
async def update_student(
    student_id: UUID,
    data: StudentUpdate,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    return StudentService(db).update_student(
        ctx["campus_id"], student_id, data.model_dump(exclude_unset=True), updated_by=ctx["user"].id
    )


# Holds

@router.post("/{student_id}/holds", response_model=HoldOut, status_code=status.HTTP_201_CREATED)
async def place_hold(
    student_id: UUID,
    data: HoldCreate,
    ctx: Dict[str, Any] = Depends(require_campus_roles(["REGISTRAR", "ACCOUNTANT"])),
    db: Session = Depends(get_db)
):
    return StudentService(db).place_hold(ctx["campus_id"], student_id, data.model_dump(), placed_by=ctx["user"].id)


@router.get("/{student_id}/holds", response_model=List[HoldOut])
async def list_holds(
    student_id: UUID,
    active_only: bool = Query(False),
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    _ensure_own_record(ctx, db, student_id)
    return StudentService(db).list_holds(ctx["campus_id"], student_id, active_only)


@router.post("/holds/{hold_id}/resolve", response_model=HoldOut)
async def resolve_hold(
    hold_id: UUID,
    data: HoldResolve,
    ctx: Dict[str, Any] = Depends(require_campus_roles(["REGISTRAR", "ACCOUNTANT"])),
    db: Session = Depends(get_db)
):
    return StudentService(db).resolve_hold(ctx["campus_id"], hold_id, ctx["user"].id, data.notes)


# Timetable and academic history

@router.get("/{student_id}/schedule")
async def student_schedule(
    student_id: UUID,
    semester_id: UUID = Query(...),
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    _ensure_own_record(ctx, db, student_id)
    return EnrollmentService(db).student_schedule(ctx["campus_id"], student_id, semester_id)


@router.get("/{student_id}/available-classes", response_model=List[AvailableClassOut])
async def available_classes(
    student_id: UUID,
    semester_id: UUID = Query(...),
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    _ensure_own_record(ctx, db, student_id)
    return EnrollmentService(db).available_classes(ctx["campus_id"], student_id, semester_id)


@router.get("/{student_id}/gpa", response_model=GpaOut)
async def student_gpa(
    student_id: UUID,
    semester_id: Optional[UUID] = Query(None),
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    """Semester GPA when a semester is given, otherwise the cumulative GPA"""
    _ensure_own_record(ctx, db, student_id)
    StudentService(db).get_student(ctx["campus_id"], student_id)
    service = GradeCalculationService(db)
    if semester_id:
        gpa = service.semester_gpa(student_id, semester_id)
    else:
        gpa = service.cumulative_gpa(student_id)
    return GpaOut(student_id=student_id, semester_id=semester_id, gpa=gpa)


@router.get("/{student_id}/transcript", response_model=TranscriptOut)
async def student_transcript(
    student_id: UUID,
    official: bool = Query(False),
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    _ensure_own_record(ctx, db, student_id)
    return GradeCalculationService(db).transcript(ctx["campus_id"], student_id, official)
