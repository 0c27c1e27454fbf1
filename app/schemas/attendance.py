# app/schemas/attendance.py
from pydantic import BaseModel, Field
from typing import List, Literal, Optional
from datetime import date as date_type, datetime
from uuid import UUID

AttendanceStatus = Literal["PRESENT", "ABSENT", "LATE", "EXCUSED"]


class AttendanceEntry(BaseModel):
    student_id: UUID
    status: AttendanceStatus
    remarks: Optional[str] = Field(None, max_length=500)


class MarkAttendanceIn(BaseModel):
    class_id: UUID
    date: date_type
    entries: List[AttendanceEntry] = Field(..., min_length=1)


class AttendanceOut(BaseModel):
    id: UUID
    class_id: UUID
    student_id: UUID
    date: date_type
    status: str
    remarks: Optional[str]

    class Config:
        from_attributes = True


class AttendanceSummaryOut(BaseModel):
    student_id: UUID
    total: int
    present: int
    absent: int
    late: int
    excused: int
    percentage: int
    student_number: Optional[str] = None
    student_name: Optional[str] = None


class ExcuseCreate(BaseModel):
    attendance_id: UUID
    student_id: UUID
    reason: str = Field(..., min_length=1, max_length=1000)
    document_url: Optional[str] = Field(None, max_length=512)


class ExcuseReview(BaseModel):
    approve: bool
    notes: Optional[str] = Field(None, max_length=500)


class ExcuseOut(BaseModel):
    id: UUID
    attendance_id: UUID
    student_id: UUID
    reason: str
    document_url: Optional[str]
    status: str
    reviewed_at: Optional[datetime]
    review_notes: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True
