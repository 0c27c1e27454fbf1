# app/api/routers/schedules.py - Weekly class timetable
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Dict, Any, List
from uuid import UUID

from app.core.db import get_db
from app.api.deps.tenancy import require_campus, require_campus_roles
from app.services.schedule_service import ScheduleService
from app.schemas.room import (
    ScheduleCreate,
    ScheduleUpdate,
    ScheduleOut,
    BulkScheduleIn,
    BulkScheduleOut,
    CopySchedulesIn,
    LecturerWeekOut,
)

router = APIRouter()

registrar = require_campus_roles(["REGISTRAR"])


@router.post("", response_model=ScheduleOut, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    data: ScheduleCreate,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    """Book a weekly slot; room and lecturer clashes are rejected with 409"""
    return ScheduleService(db).create_schedule(ctx["campus_id"], data.model_dump())


@router.post("/bulk", response_model=BulkScheduleOut)
async def bulk_create_schedules(
    data: BulkScheduleIn,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    items = [item.model_dump() for item in data.items]
    return ScheduleService(db).bulk_create(ctx["campus_id"], items)


@router.post("/copy")
async def copy_schedules(
    data: CopySchedulesIn,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    return ScheduleService(db).copy_schedules(ctx["campus_id"], data.from_semester_id, data.to_semester_id)


@router.get("/class/{class_id}", response_model=List[ScheduleOut])
async def class_schedule(
    class_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return ScheduleService(db).list_for_class(ctx["campus_id"], class_id)


@router.get("/lecturer/{lecturer_id}", response_model=LecturerWeekOut)
async def lecturer_schedule(
    lecturer_id: UUID,
    semester_id: UUID = Query(...),
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return ScheduleService(db).lecturer_schedule(ctx["campus_id"], lecturer_id, semester_id)


@router.get("/{schedule_id}", response_model=ScheduleOut)
async def get_schedule(
    schedule_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return ScheduleService(db).get_schedule(ctx["campus_id"], schedule_id)


@router.patch("/{schedule_id}", response_model=ScheduleOut)
async def update_schedule(
    schedule_id: UUID,
    data: ScheduleUpdate,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    return ScheduleService(db).update_schedule(ctx["campus_id"], schedule_id, data.model_dump(exclude_unset=True))


@router.delete("/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_schedule(
    schedule_id: UUID,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    ScheduleService(db).delete_schedule(ctx["campus_id"], schedule_id)
