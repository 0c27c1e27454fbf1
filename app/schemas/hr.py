# app/schemas/hr.py - Employees, leave and payroll
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import List, Literal, Optional
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

EmploymentType = Literal["FULL_TIME", "PART_TIME", "CONTRACT"]


# Employees
class EmployeeCreate(BaseModel):
    user_id: Optional[UUID] = None
    first_name: str
    last_name: str
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=32)
    department_id: Optional[UUID] = None
    position: str = Field(..., min_length=1, max_length=64)
    employment_type: EmploymentType = "FULL_TIME"
    base_salary: Decimal = Field(default=Decimal("0.00"), ge=0)
    hire_date: Optional[date] = None

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_names(cls, v):
        if not v or not v.strip():
            raise ValueError('Name cannot be empty')
        return v.strip()


class EmployeeUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    department_id: Optional[UUID] = None
    position: Optional[str] = None
    employment_type: Optional[EmploymentType] = None
    base_salary: Optional[Decimal] = Field(None, ge=0)
    status: Optional[str] = None


class EmployeeOut(BaseModel):
    id: UUID
    user_id: Optional[UUID]
    employee_number: str
    first_name: str
    last_name: str
    full_name: str
    email: Optional[str]
    phone: Optional[str]
    department_id: Optional[UUID]
    position: str
    employment_type: str
    base_salary: Decimal
    hire_date: date
    status: str

    class Config:
        from_attributes = True


class EmployeeList(BaseModel):
    items: List[EmployeeOut]
    total: int


# Leave
class LeaveTypeCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=16)
    name: str = Field(..., min_length=1, max_length=64)
    days_per_year: int = Field(default=0, ge=0)
    carry_forward: bool = False
    max_carry_days: int = Field(default=0, ge=0)
    requires_document: bool = False
    is_paid: bool = True


class LeaveTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=64)
    days_per_year: Optional[int] = Field(None, ge=0)
    carry_forward: Optional[bool] = None
    max_carry_days: Optional[int] = Field(None, ge=0)
    requires_document: Optional[bool] = None
    is_paid: Optional[bool] = None
    is_active: Optional[bool] = None


class LeaveTypeOut(BaseModel):
    id: UUID
    code: str
    name: str
    days_per_year: int
    carry_forward: bool
    max_carry_days: int
    requires_document: bool
    is_paid: bool
    is_active: bool

    class Config:
        from_attributes = True


class LeaveAllocate(BaseModel):
    employee_id: UUID
    leave_type_id: UUID
    year: int = Field(..., ge=2000, le=2100)
    days: Decimal = Field(..., ge=0)


class LeaveBalanceOut(BaseModel):
    id: UUID
    employee_id: UUID
    leave_type_id: UUID
    year: int
    allocated: Decimal
    used: Decimal
    pending: Decimal
    carried_forward: Decimal
    available: Decimal

    class Config:
        from_attributes = True


class LeaveRequestCreate(BaseModel):
    employee_id: Optional[UUID] = None
    leave_type_id: UUID
    start_date: date
    end_date: date
    reason: str = Field(..., min_length=1, max_length=1000)
    document_url: Optional[str] = Field(None, max_length=512)


class LeaveDecision(BaseModel):
    remarks: Optional[str] = Field(None, max_length=500)


class LeaveRequestOut(BaseModel):
    id: UUID
    employee_id: UUID
    leave_type_id: UUID
    start_date: date
    end_date: date
    days: Decimal
    reason: str
    document_url: Optional[str]
    status: str
    reviewed_at: Optional[datetime]
    remarks: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


# Payroll
class SalaryComponentCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=16)
    name: str = Field(..., min_length=1, max_length=64)
    component_type: Literal["ALLOWANCE", "DEDUCTION"]
    calculation_type: Literal["PERCENTAGE", "FIXED"]
    value: Decimal = Field(..., ge=0)


class SalaryComponentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=64)
    value: Optional[Decimal] = Field(None, ge=0)
    is_active: Optional[bool] = None


class SalaryComponentOut(BaseModel):
    id: UUID
    code: str
    name: str
    component_type: str
    calculation_type: str
    value: Decimal
    is_active: bool

    class Config:
        from_attributes = True


class PayrollProcess(BaseModel):
    employee_id: UUID
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=2100)


class BulkPayrollProcess(BaseModel):
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=2100)
    department_id: Optional[UUID] = None


class PayrollItemOut(BaseModel):
    name: str
    component_type: str
    amount: Decimal

    class Config:
        from_attributes = True


class PayrollOut(BaseModel):
    id: UUID
    employee_id: UUID
    month: int
    year: int
    base_salary: Decimal
    total_allowances: Decimal
    total_deductions: Decimal
    gross_salary: Decimal
    net_salary: Decimal
    status: str
    processed_at: Optional[datetime]
    approved_at: Optional[datetime]
    paid_at: Optional[datetime]
    items: List[PayrollItemOut]

    class Config:
        from_attributes = True


class PayrollCalculationOut(BaseModel):
    employee_id: UUID
    base_salary: Decimal
    total_allowances: Decimal
    total_deductions: Decimal
    gross_salary: Decimal
    net_salary: Decimal
    items: List[PayrollItemOut]


class BulkPayrollOut(BaseModel):
    processed: int
    failed: int
    errors: List[dict]


class DepartmentPayroll(BaseModel):
    department: str
    count: int
    gross: Decimal
    deductions: Decimal
    net: Decimal


class PayrollReportOut(BaseModel):
    month: int
    year: int
    count: int
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    by_department: List[DepartmentPayroll]
