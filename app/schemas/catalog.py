# app/schemas/catalog.py - Departments, programs, courses and class sections
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime
from uuid import UUID


class DepartmentCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=16)
    name: str = Field(..., min_length=1, max_length=128)

    @field_validator('code', 'name')
    @classmethod
    def strip_text(cls, v):
        if not v.strip():
            raise ValueError('Value cannot be empty')
        return v.strip()


class DepartmentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=128)
    is_active: Optional[bool] = None


class DepartmentOut(BaseModel):
    id: UUID
    code: str
    name: str
    is_active: bool

    class Config:
        from_attributes = True


class ProgramCreate(BaseModel):
    department_id: UUID
    code: str = Field(..., min_length=1, max_length=16)
    name: str = Field(..., min_length=1, max_length=128)
    duration_years: int = Field(default=4, ge=1, le=10)


class ProgramOut(BaseModel):
    id: UUID
    department_id: UUID
    code: str
    name: str
    duration_years: int
    is_active: bool

    class Config:
        from_attributes = True


class CourseCreate(BaseModel):
    department_id: UUID
    code: str = Field(..., min_length=1, max_length=16)
    name: str = Field(..., min_length=1, max_length=128)
    credits: int = 3
    description: Optional[str] = Field(None, max_length=1000)
    prerequisite_ids: List[UUID] = []

    @field_validator('code', 'name')
    @classmethod
    def strip_text(cls, v):
        if not v.strip():
            raise ValueError('Value cannot be empty')
        return v.strip()


class CourseUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=128)
    credits: Optional[int] = None
    description: Optional[str] = Field(None, max_length=1000)
    is_active: Optional[bool] = None


class CourseOut(BaseModel):
    id: UUID
    department_id: UUID
    code: str
    name: str
    credits: int
    description: Optional[str]
    is_active: bool

    class Config:
        from_attributes = True


class PrerequisiteAdd(BaseModel):
    prerequisite_id: UUID


class ClassCreate(BaseModel):
    course_id: UUID
    semester_id: UUID
    lecturer_id: Optional[UUID] = None
    section: str = Field(default="A", min_length=1, max_length=8)
    capacity: int = 40


class ClassUpdate(BaseModel):
    lecturer_id: Optional[UUID] = None
    capacity: Optional[int] = None
    status: Optional[str] = None


class ClassOut(BaseModel):
    id: UUID
    course_id: UUID
    semester_id: UUID
    lecturer_id: Optional[UUID]
    section: str
    capacity: int
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class ClassWithCountOut(BaseModel):
    class_section: ClassOut
    enrolled: int
