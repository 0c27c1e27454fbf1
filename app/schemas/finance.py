# app/schemas/finance.py - Fee structures, invoices and payments
from pydantic import BaseModel, Field, field_validator
from typing import Dict, List, Literal, Optional
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

FeeCategory = Literal["TUITION", "REGISTRATION", "LAB", "LIBRARY", "OTHER"]
PaymentMethod = Literal["CASH", "BANK_TRANSFER", "CARD", "MOBILE_MONEY", "CHEQUE"]


# Fee structures
class FeeItemIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    category: FeeCategory = "TUITION"
    amount: Decimal = Field(..., ge=0)
    is_mandatory: bool = True


class FeeItemOut(BaseModel):
    id: UUID
    name: str
    category: str
    amount: Decimal
    is_mandatory: bool

    class Config:
        from_attributes = True


class FeeStructureCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    program_id: UUID
    academic_year_id: UUID
    items: List[FeeItemIn] = []


class FeeStructureUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=128)
    is_active: Optional[bool] = None
    items: Optional[List[FeeItemIn]] = None


class FeeStructureOut(BaseModel):
    id: UUID
    name: str
    program_id: UUID
    academic_year_id: UUID
    is_active: bool
    total: Decimal
    items: List[FeeItemOut]

    class Config:
        from_attributes = True


# Invoices
class InvoiceGenerate(BaseModel):
    student_id: UUID
    semester_id: UUID
    due_date: Optional[date] = None


class BulkInvoiceGenerate(BaseModel):
    semester_id: UUID
    program_id: Optional[UUID] = None
    due_date: Optional[date] = None


class InvoiceCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class InvoiceLineOut(BaseModel):
    id: UUID
    item_name: str
    amount: Decimal

    class Config:
        from_attributes = True


class InvoiceOut(BaseModel):
    id: UUID
    invoice_number: str
    student_id: UUID
    semester_id: UUID
    amount: Decimal
    total_paid: Decimal
    balance: Decimal
    status: str
    due_date: date
    cancelled_at: Optional[datetime]
    cancel_reason: Optional[str]
    created_at: datetime
    invoice_lines: List[InvoiceLineOut]

    class Config:
        from_attributes = True


class BulkInvoiceError(BaseModel):
    student_id: str
    student_number: str
    error: str


class BulkInvoiceOut(BaseModel):
    generated: int
    skipped: int
    errors: List[BulkInvoiceError]


# Payments
class PaymentCreate(BaseModel):
    invoice_id: UUID
    student_id: UUID
    amount: Decimal = Field(..., gt=0)
    method: PaymentMethod
    reference: Optional[str] = Field(None, max_length=64)
    payment_date: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=500)


class PaymentVoid(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, v):
        if not v.strip():
            raise ValueError('A reason is required to void a payment')
        return v.strip()


class PaymentOut(BaseModel):
    id: UUID
    receipt_number: str
    invoice_id: UUID
    student_id: UUID
    amount: Decimal
    method: str
    reference: Optional[str]
    payment_date: datetime
    notes: Optional[str]
    is_voided: bool
    voided_at: Optional[datetime]
    void_reason: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class ReceiptOut(BaseModel):
    receipt_number: str
    payment_date: datetime
    amount: Decimal
    method: str
    reference: Optional[str]
    is_voided: bool
    void_reason: Optional[str]
    invoice_number: str
    invoice_amount: Decimal
    invoice_status: str
    total_paid: Decimal
    balance: Decimal
    student_number: str
    student_name: str


class DailyCollectionOut(BaseModel):
    date: date
    total: Decimal
    count: int
    by_method: Dict[str, Decimal]


class DailyTotal(BaseModel):
    date: str
    total: Decimal


class CollectionReportOut(BaseModel):
    start_date: date
    end_date: date
    total: Decimal
    count: int
    by_method: Dict[str, Decimal]
    by_program: Dict[str, Decimal]
    by_date: List[DailyTotal]


class StatementOut(BaseModel):
    student_id: UUID
    student_number: str
    student_name: str
    invoices: List[InvoiceOut]
    payments: List[PaymentOut]
    total_billed: Decimal
    total_paid: Decimal
    balance: Decimal
