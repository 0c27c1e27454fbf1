# app/api/routers/rooms.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Dict, Any, List, Optional
from uuid import UUID

from app.core.db import get_db
from app.api.deps.tenancy import require_campus, require_campus_roles
from app.services.room_service import RoomService
from app.schemas.room import RoomCreate, RoomUpdate, RoomOut, ScheduleOut, AvailabilityOut

router = APIRouter()

registrar = require_campus_roles(["REGISTRAR"])


@router.post("", response_model=RoomOut, status_code=status.HTTP_201_CREATED)
async def create_room(
    data: RoomCreate,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    return RoomService(db).create_room(ctx["campus_id"], data.model_dump())


@router.get("", response_model=List[RoomOut])
async def list_rooms(
    building: Optional[str] = Query(None),
    room_type: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    min_capacity: Optional[int] = Query(None, ge=1),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return RoomService(db).list_rooms(
        ctx["campus_id"],
        building=building,
        room_type=room_type,
        is_active=is_active,
        min_capacity=min_capacity,
        skip=skip,
        limit=limit,
    )


@router.get("/buildings", response_model=List[str])
async def list_buildings(
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return RoomService(db).buildings(ctx["campus_id"])


@router.get("/{room_id}", response_model=RoomOut)
async def get_room(
    room_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return RoomService(db).get_room(ctx["campus_id"], room_id)


@router.patch("/{room_id}", response_model=RoomOut)
async def update_room(
    room_id: UUID,
    data: RoomUpdate,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    return RoomService(db).update_room(ctx["campus_id"], room_id, data.model_dump(exclude_unset=True))


@router.delete("/{room_id}", response_model=RoomOut)
async def deactivate_room(
    room_id: UUID,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    """Soft delete the room"""
    return RoomService(db).deactivate_room(ctx["campus_id"], room_id)


@router.get("/{room_id}/availability", response_model=AvailabilityOut)
async def room_availability(
    room_id: UUID,
    day_of_week: int = Query(..., ge=0, le=6),
    start_time: str = Query(...),
    end_time: str = Query(...),
    semester_id: Optional[UUID] = Query(None),
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return RoomService(db).check_availability(
        ctx["campus_id"], room_id, day_of_week, start_time, end_time, semester_id=semester_id
    )


@router.get("/{room_id}/schedule", response_model=List[ScheduleOut])
async def room_schedule(
    room_id: UUID,
    semester_id: Optional[UUID] = Query(None),
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return RoomService(db).room_schedule(ctx["campus_id"], room_id, semester_id)
