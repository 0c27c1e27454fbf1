# app/schemas/student.py
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List
from datetime import date, datetime
from uuid import UUID


class StudentCreate(BaseModel):
    first_name: str
    last_name: str
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=32)
    gender: Optional[str] = None
    dob: Optional[date] = None
    program_id: Optional[UUID] = None
    admission_date: Optional[date] = None

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_names(cls, v):
        if not v or not v.strip():
            raise ValueError('Name cannot be empty')
        return v.strip()


class StudentUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    gender: Optional[str] = None
    dob: Optional[date] = None
    program_id: Optional[UUID] = None
    status: Optional[str] = None


class StudentOut(BaseModel):
    id: UUID
    student_number: str
    first_name: str
    last_name: str
    full_name: str
    email: Optional[str]
    phone: Optional[str]
    gender: Optional[str]
    dob: Optional[date]
    program_id: Optional[UUID]
    admission_date: date
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class StudentList(BaseModel):
    items: List[StudentOut]
    total: int


class HoldCreate(BaseModel):
    type: str
    reason: str = Field(..., min_length=1, max_length=500)
    blocks_registration: bool = True
    blocks_transcript: bool = False


class HoldResolve(BaseModel):
    notes: Optional[str] = Field(None, max_length=500)


class HoldOut(BaseModel):
    id: UUID
    student_id: UUID
    type: str
    reason: str
    blocks_registration: bool
    blocks_transcript: bool
    is_active: bool
    resolved_at: Optional[datetime]
    resolution_notes: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True
