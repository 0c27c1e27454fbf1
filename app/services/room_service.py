# app/services/room_service.py - Rooms and room availability
from sqlalchemy.orm import Session
from sqlalchemy import select
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.class_model import ClassSection
from app.models.room import Room, Schedule

logger = logging.getLogger(__name__)


def slots_overlap(a_start: str, a_end: str, b_start: str, b_end: str) -> bool:
    """Half-open interval overlap on zero-padded HH:MM strings"""
    return a_start < b_end and a_end > b_start


class RoomService:
    def __init__(self, db: Session):
        self.db = db

    def _ensure_unique_name(self, campus_id: UUID, name: str, exclude_id: Optional[UUID] = None) -> None:
        query = select(Room.id).where(Room.campus_id == campus_id, Room.name == name)
        if exclude_id:
            query = query.where(Room.id != exclude_id)
        if self.db.execute(query).scalar_one_or_none():
            raise ConflictError(f"Room '{name}' already exists")

    def create_room(self, campus_id: UUID, data: Dict[str, Any]) -> Room:
        self._ensure_unique_name(campus_id, data["name"])
        room = Room(campus_id=campus_id, **data)
        self.db.add(room)
        self.db.commit()
        self.db.refresh(room)
        logger.info(f"Room created: {room.name}")
        return room

    def get_room(self, campus_id: UUID, room_id: UUID) -> Room:
        room = self.db.execute(
            select(Room).where(Room.id == room_id, Room.campus_id == campus_id)
        ).scalar_one_or_none()
        if room is None:
            raise NotFoundError("Room", room_id)
        return room

    def list_rooms(
        self,
        campus_id: UUID,
        building: Optional[str] = None,
        room_type: Optional[str] = None,
        is_active: Optional[bool] = None,
        min_capacity: Optional[int] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Room]:
        query = select(Room).where(Room.campus_id == campus_id)
        if building:
            query = query.where(Room.building == building)
        if room_type:
            query = query.where(Room.room_type == room_type)
        if is_active is not None:
            query = query.where(Room.is_active.is_(is_active))
        if min_capacity:
            query = query.where(Room.capacity >= min_capacity)
        query = query.order_by(Room.building, Room.name).offset(skip).limit(limit)
        return list(self.db.execute(query).scalars().all())

    def update_room(self, campus_id: UUID, room_id: UUID, changes: Dict[str, Any]) -> Room:
        room = self.get_room(campus_id, room_id)
        if "name" in changes and changes["name"] != room.name:
            self._ensure_unique_name(campus_id, changes["name"], exclude_id=room.id)
        for field, value in changes.items():
            setattr(room, field, value)
        self.db.commit()
        self.db.refresh(room)
        return room

    def _active_schedules(self, room_id: UUID):
        return (
            select(Schedule)
            .join(ClassSection, ClassSection.id == Schedule.class_id)
            .where(Schedule.room_id == room_id, ClassSection.status != "CANCELLED")
        )

    def deactivate_room(self, campus_id: UUID, room_id: UUID) -> Room:
        """Soft delete; refused while live classes are scheduled in the room"""
        room = self.get_room(campus_id, room_id)
        if self.db.execute(self._active_schedules(room.id)).scalars().first():
            raise ValidationError("Room has scheduled classes and cannot be deactivated")
        room.is_active = False
        self.db.commit()
        self.db.refresh(room)
        logger.info(f"Room deactivated: {room.name}")
        return room

    def check_availability(
        self,
        campus_id: UUID,
        room_id: UUID,
        day_of_week: int,
        start_time: str,
        end_time: str,
        exclude_schedule_id: Optional[UUID] = None,
        semester_id: Optional[UUID] = None,
    ) -> Dict[str, Any]:
        """
        Whether the room is free for a weekly slot, optionally within one semester.

        Returns:
            {"available": bool, "reason": str | None, "conflicts": [Schedule]}
        """
        room = self.get_room(campus_id, room_id)
        if not room.is_active:
            return {"available": False, "reason": "Room is not active", "conflicts": []}

        query = self._active_schedules(room.id).where(
            Schedule.day_of_week == day_of_week,
            Schedule.start_time < end_time,
            Schedule.end_time > start_time,
        )
        if exclude_schedule_id:
            query = query.where(Schedule.id != exclude_schedule_id)
        if semester_id:
            query = query.where(ClassSection.semester_id == semester_id)

        conflicts = list(self.db.execute(query).scalars().all())
        if conflicts:
            return {"available": False, "reason": "Room is already booked for this time", "conflicts": conflicts}
        return {"available": True, "reason": None, "conflicts": []}

    def room_schedule(self, campus_id: UUID, room_id: UUID, semester_id: Optional[UUID] = None) -> List[Schedule]:
        room = self.get_room(campus_id, room_id)
        query = (
            select(Schedule)
            .join(ClassSection, ClassSection.id == Schedule.class_id)
            .where(Schedule.room_id == room.id)
        )
        if semester_id:
            query = query.where(ClassSection.semester_id == semester_id)
        query = query.order_by(Schedule.day_of_week, Schedule.start_time)
        return list(self.db.execute(query).scalars().all())

    def buildings(self, campus_id: UUID) -> List[str]:
        rows = self.db.execute(
            select(Room.building)
            .where(Room.campus_id == campus_id, Room.building.is_not(None))
            .distinct()
            .order_by(Room.building)
        ).scalars().all()
        return list(rows)
