# app/schemas/enrollment.py - Enrollment schemas
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
import uuid

from app.schemas.catalog import ClassOut


class EnrollmentCreate(BaseModel):
    student_id: uuid.UUID
    class_id: uuid.UUID
    override_prerequisites: bool = False
    override_reason: Optional[str] = Field(None, max_length=500)


class BulkEnrollIn(BaseModel):
    class_id: uuid.UUID
    student_ids: List[uuid.UUID] = Field(..., min_length=1)


class EnrollmentOut(BaseModel):
    id: uuid.UUID
    student_id: uuid.UUID
    class_id: uuid.UUID
    semester_id: uuid.UUID
    status: str
    enrolled_at: datetime
    dropped_at: Optional[datetime] = None
    final_percentage: Optional[Decimal] = None
    final_grade: Optional[str] = None
    grade_points: Optional[Decimal] = None
    is_finalized: bool

    class Config:
        from_attributes = True


class BulkEnrollResult(BaseModel):
    student_id: str
    success: bool
    enrollment_id: Optional[str] = None
    error: Optional[str] = None


class BulkEnrollOut(BaseModel):
    total: int
    successful: int
    failed: int
    results: List[BulkEnrollResult]


class AvailableClassOut(BaseModel):
    class_section: ClassOut
    seats_left: int
