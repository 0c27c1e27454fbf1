# app/api/routers/attendance.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Dict, Any, List, Optional
from datetime import date
from uuid import UUID

from app.core.db import get_db
from app.api.deps.tenancy import require_campus, require_campus_roles
from app.services.attendance_service import AttendanceService
from app.schemas.attendance import (
    MarkAttendanceIn,
    AttendanceOut,
    AttendanceSummaryOut,
    ExcuseCreate,
    ExcuseReview,
    ExcuseOut,
)

router = APIRouter()

lecturer = require_campus_roles(["LECTURER", "REGISTRAR"])


@router.post("", response_model=List[AttendanceOut])
async def mark_attendance(
    data: MarkAttendanceIn,
    ctx: Dict[str, Any] = Depends(lecturer),
    db: Session = Depends(get_db)
):
    entries = [entry.model_dump() for entry in data.entries]
    return AttendanceService(db).mark(ctx["campus_id"], data.class_id, data.date, entries, ctx["user"].id)


@router.get("/classes/{class_id}", response_model=List[AttendanceOut])
async def class_attendance(
    class_id: UUID,
    on_date: Optional[date] = Query(None, alias="date"),
    ctx: Dict[str, Any] = Depends(lecturer),
    db: Session = Depends(get_db)
):
    return AttendanceService(db).list_for_class(ctx["campus_id"], class_id, on_date)


@router.get("/classes/{class_id}/report", response_model=List[AttendanceSummaryOut])
async def class_report(
    class_id: UUID,
    ctx: Dict[str, Any] = Depends(lecturer),
    db: Session = Depends(get_db)
):
    return AttendanceService(db).class_report(ctx["campus_id"], class_id)


@router.get("/classes/{class_id}/below-threshold", response_model=List[AttendanceSummaryOut])
async def below_threshold(
    class_id: UUID,
    threshold: Optional[int] = Query(None, ge=0, le=100),
    ctx: Dict[str, Any] = Depends(lecturer),
    db: Session = Depends(get_db)
):
    """Students whose attendance is under the campus threshold"""
    return AttendanceService(db).below_threshold(ctx["campus_id"], class_id, threshold)


@router.get("/students/{student_id}/summary", response_model=AttendanceSummaryOut)
async def student_summary(
    student_id: UUID,
    class_id: Optional[UUID] = Query(None),
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return AttendanceService(db).student_summary(ctx["campus_id"], student_id, class_id)


# Excuses

@router.post("/excuses", response_model=ExcuseOut, status_code=status.HTTP_201_CREATED)
async def submit_excuse(
    data: ExcuseCreate,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return AttendanceService(db).submit_excuse(
        ctx["campus_id"], data.attendance_id, data.student_id, data.reason, data.document_url
    )


@router.get("/excuses", response_model=List[ExcuseOut])
async def list_excuses(
    excuse_status: Optional[str] = Query(None, alias="status"),
    student_id: Optional[UUID] = Query(None),
    ctx: Dict[str, Any] = Depends(lecturer),
    db: Session = Depends(get_db)
):
    return AttendanceService(db).list_excuses(ctx["campus_id"], excuse_status, student_id)


@router.post("/excuses/{excuse_id}/review", response_model=ExcuseOut)
async def review_excuse(
    excuse_id: UUID,
    data: ExcuseReview,
    ctx: Dict[str, Any] = Depends(lecturer),
    db: Session = Depends(get_db)
):
    return AttendanceService(db).review_excuse(ctx["campus_id"], excuse_id, data.approve, ctx["user"].id, data.notes)
