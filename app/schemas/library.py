# app/schemas/library.py
from pydantic import BaseModel, Field, field_validator
from typing import List, Literal, Optional
from datetime import datetime
from decimal import Decimal
from uuid import UUID

BorrowerType = Literal["STUDENT", "EMPLOYEE"]


class BookCreate(BaseModel):
    isbn: str = Field(..., min_length=10, max_length=20)
    title: str = Field(..., min_length=1, max_length=255)
    author: str = Field(..., min_length=1, max_length=255)
    publisher: Optional[str] = Field(None, max_length=128)
    category: Optional[str] = Field(None, max_length=64)
    publication_year: Optional[int] = Field(None, ge=1000, le=2100)

    @field_validator('isbn')
    @classmethod
    def normalize_isbn(cls, v):
        return v.replace("-", "").replace(" ", "")


class BookUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    author: Optional[str] = Field(None, min_length=1, max_length=255)
    publisher: Optional[str] = Field(None, max_length=128)
    category: Optional[str] = Field(None, max_length=64)
    publication_year: Optional[int] = Field(None, ge=1000, le=2100)


class BookOut(BaseModel):
    id: UUID
    isbn: str
    title: str
    author: str
    publisher: Optional[str]
    category: Optional[str]
    publication_year: Optional[int]

    class Config:
        from_attributes = True


class BookSearchOut(BaseModel):
    book: BookOut
    total_copies: int
    available_copies: int


class CopyCreate(BaseModel):
    barcode: str = Field(..., min_length=1, max_length=32)
    location: Optional[str] = Field(None, max_length=64)


class CopyStatusUpdate(BaseModel):
    status: Literal["AVAILABLE", "RESERVED", "LOST", "DAMAGED"]


class CopyOut(BaseModel):
    id: UUID
    book_id: UUID
    barcode: str
    location: Optional[str]
    status: str

    class Config:
        from_attributes = True


class IssueIn(BaseModel):
    copy_id: UUID
    user_id: UUID
    borrower_type: BorrowerType


class ReturnIn(BaseModel):
    waive_fee: bool = False


class EligibilityOut(BaseModel):
    allowed: bool
    reason: Optional[str]


class BorrowingOut(BaseModel):
    id: UUID
    copy_id: UUID
    borrower_id: UUID
    borrower_type: str
    borrowed_at: datetime
    due_date: datetime
    returned_at: Optional[datetime]
    renewals: int
    status: str
    late_fee: Decimal
    fee_status: str

    class Config:
        from_attributes = True


class ReservationCreate(BaseModel):
    book_id: UUID


class ReservationOut(BaseModel):
    id: UUID
    book_id: UUID
    user_id: UUID
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class CountOut(BaseModel):
    count: int
