# app/schemas/grading.py - Grade scales, components and score entries
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime
from decimal import Decimal
from uuid import UUID


class GradeBand(BaseModel):
    letter: str = Field(..., min_length=1, max_length=4)
    min_percentage: Decimal = Field(..., ge=0, le=100)
    max_percentage: Decimal = Field(..., ge=0, le=100)
    points: Decimal = Field(..., ge=0, le=4)


class GradeBandOut(GradeBand):
    class Config:
        from_attributes = True


class GradeScaleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=64)
    bands: List[GradeBand] = Field(..., min_length=1)
    is_default: bool = False


class GradeScaleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=64)
    bands: Optional[List[GradeBand]] = None
    is_default: Optional[bool] = None
    is_active: Optional[bool] = None


class GradeScaleOut(BaseModel):
    id: UUID
    name: str
    is_default: bool
    is_active: bool
    bands: List[GradeBandOut]

    class Config:
        from_attributes = True


class ComponentCreate(BaseModel):
    class_id: UUID
    name: str = Field(..., min_length=1, max_length=64)
    component_type: str = "OTHER"
    weight: Decimal = Field(..., gt=0, le=100)
    max_score: Decimal = Field(default=Decimal("100"), gt=0)


class ComponentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=64)
    component_type: Optional[str] = None
    weight: Optional[Decimal] = Field(None, gt=0, le=100)
    max_score: Optional[Decimal] = Field(None, gt=0)


class ComponentOut(BaseModel):
    id: UUID
    class_id: UUID
    name: str
    component_type: str
    weight: Decimal
    max_score: Decimal

    class Config:
        from_attributes = True


class WeightValidationOut(BaseModel):
    valid: bool
    total_weight: Decimal
    message: str


class GradeEntryCreate(BaseModel):
    enrollment_id: UUID
    component_id: UUID
    score: Decimal
    remarks: Optional[str] = Field(None, max_length=500)


class GradeEntryUpdate(BaseModel):
    score: Optional[Decimal] = None
    remarks: Optional[str] = Field(None, max_length=500)


class BulkScore(BaseModel):
    enrollment_id: UUID
    score: Decimal
    remarks: Optional[str] = None


class BulkGradeIn(BaseModel):
    entries: List[BulkScore] = Field(..., min_length=1)


class GradeEntryOut(BaseModel):
    id: UUID
    enrollment_id: UUID
    component_id: UUID
    score: Decimal
    remarks: Optional[str]
    graded_by_id: Optional[UUID]
    updated_at: datetime

    class Config:
        from_attributes = True


class BulkGradeError(BaseModel):
    enrollment_id: str
    error: str


class BulkGradeOut(BaseModel):
    saved: int
    failed: int
    errors: List[BulkGradeError]


class ComponentStatsOut(BaseModel):
    count: int
    average: Optional[Decimal]
    min: Optional[Decimal]
    max: Optional[Decimal]
    distribution: Dict[str, int]


# Calculated grades
class ComponentBreakdown(BaseModel):
    component_id: UUID
    name: str
    component_type: str
    weight: Decimal
    max_score: Decimal
    score: Optional[Decimal]
    percentage: Optional[Decimal]
    contribution: Decimal


class GradeResultOut(BaseModel):
    enrollment_id: UUID
    student_id: UUID
    student_name: str
    student_number: str
    percentage: Decimal
    letter_grade: str
    grade_points: Decimal
    is_finalized: bool
    components: List[ComponentBreakdown]


class FinalizeClassOut(BaseModel):
    finalized: int


class GpaOut(BaseModel):
    student_id: UUID
    semester_id: Optional[UUID] = None
    gpa: Decimal


class TranscriptCourse(BaseModel):
    course_code: str
    course_name: str
    credits: int
    percentage: Optional[Decimal]
    grade: Optional[str]
    points: Decimal
    status: str


class TranscriptSemester(BaseModel):
    semester_id: UUID
    semester_name: str
    courses: List[TranscriptCourse]
    gpa: Decimal
    credits_attempted: int
    credits_earned: int


class TranscriptOut(BaseModel):
    student_id: UUID
    student_number: str
    student_name: str
    program: Optional[str]
    official: bool
    generated_at: datetime
    semesters: List[TranscriptSemester]
    total_credits_attempted: int
    total_credits_earned: int
    cgpa: Decimal
