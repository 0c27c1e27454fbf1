# app/schemas/room.py - Rooms and weekly class schedules
from pydantic import BaseModel, Field
from typing import Dict, List, Literal, Optional
from uuid import UUID

RoomType = Literal["LECTURE_HALL", "LAB", "SEMINAR", "OFFICE", "OTHER"]


class RoomCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=64)
    building: Optional[str] = Field(None, max_length=64)
    capacity: int = Field(default=30, gt=0)
    room_type: RoomType = "LECTURE_HALL"


class RoomUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=64)
    building: Optional[str] = Field(None, max_length=64)
    capacity: Optional[int] = Field(None, gt=0)
    room_type: Optional[RoomType] = None
    is_active: Optional[bool] = None


class RoomOut(BaseModel):
    id: UUID
    name: str
    building: Optional[str]
    capacity: int
    room_type: str
    is_active: bool

    class Config:
        from_attributes = True


class ScheduleCreate(BaseModel):
    class_id: UUID
    room_id: UUID
    day_of_week: int
    start_time: str = Field(..., description="HH:MM, 24-hour clock")
    end_time: str = Field(..., description="HH:MM, 24-hour clock")


class ScheduleUpdate(BaseModel):
    room_id: Optional[UUID] = None
    day_of_week: Optional[int] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None


class ScheduleOut(BaseModel):
    id: UUID
    class_id: UUID
    room_id: UUID
    day_of_week: int
    day_name: str
    start_time: str
    end_time: str

    class Config:
        from_attributes = True


class AvailabilityOut(BaseModel):
    available: bool
    reason: Optional[str]
    conflicts: List[ScheduleOut]


class BulkScheduleIn(BaseModel):
    items: List[ScheduleCreate] = Field(..., min_length=1)


class CopySchedulesIn(BaseModel):
    from_semester_id: UUID
    to_semester_id: UUID


class BulkResultError(BaseModel):
    index: int
    error: str


class BulkScheduleOut(BaseModel):
    created: int
    failed: int
    errors: List[BulkResultError]


LecturerWeekOut = Dict[str, List[dict]]
