# app/schemas/academic.py - Academic years, semesters and registration periods
from datetime import date, datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, Optional
from uuid import UUID

PeriodType = Literal["REGULAR", "LATE", "DROP_ADD"]


# Academic Year schemas
class AcademicYearCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=32)
    start_date: date
    end_date: date
    is_current: bool = False


class AcademicYearOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    start_date: date
    end_date: date
    is_current: bool


# Semester schemas
class SemesterCreate(BaseModel):
    academic_year_id: UUID
    name: str = Field(..., min_length=1, max_length=48)
    start_date: date
    end_date: date
    is_current: bool = False


class SemesterOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    academic_year_id: UUID
    name: str
    start_date: date
    end_date: date
    is_current: bool


# Registration period schemas
class RegistrationPeriodCreate(BaseModel):
    semester_id: UUID
    type: PeriodType = "REGULAR"
    start_date: datetime
    end_date: datetime
    late_fee: Decimal = Field(default=Decimal("0.00"), ge=0)
    is_active: bool = True


class RegistrationPeriodUpdate(BaseModel):
    type: Optional[PeriodType] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    late_fee: Optional[Decimal] = Field(None, ge=0)
    is_active: Optional[bool] = None


class RegistrationPeriodOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    semester_id: UUID
    type: str
    start_date: datetime
    end_date: datetime
    late_fee: Decimal
    is_active: bool


class RegistrationStatusOut(BaseModel):
    is_open: bool
    period: Optional[RegistrationPeriodOut] = None
    message: str
