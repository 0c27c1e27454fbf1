# app/schemas/admission.py - Admission applications
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Dict, Optional
from datetime import date, datetime
from uuid import UUID

from app.schemas.student import StudentOut


class ApplicationCreate(BaseModel):
    first_name: str
    last_name: str
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=32)
    gender: Optional[str] = None
    dob: Optional[date] = None
    program_id: UUID
    previous_school: Optional[str] = Field(None, max_length=128)

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_names(cls, v):
        if not v or not v.strip():
            raise ValueError('Name cannot be empty')
        return v.strip()


class ApplicationReview(BaseModel):
    status: str
    notes: Optional[str] = Field(None, max_length=1000)


class ApplicationOut(BaseModel):
    id: UUID
    application_number: str
    first_name: str
    last_name: str
    email: str
    phone: Optional[str]
    program_id: UUID
    previous_school: Optional[str]
    status: str
    reviewed_at: Optional[datetime]
    review_notes: Optional[str]
    student_id: Optional[UUID]
    created_at: datetime

    class Config:
        from_attributes = True


class ApplicationEnrollOut(BaseModel):
    application: ApplicationOut
    student: StudentOut
    initial_password: Optional[str] = None


AdmissionStatsOut = Dict[str, int]
