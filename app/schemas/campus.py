# app/schemas/campus.py - Campus, membership and audit log schemas
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Any, Optional
from datetime import datetime
from uuid import UUID

from app.core.config import settings


class CampusCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    short_code: Optional[str] = Field(None, max_length=16)
    address: Optional[str] = Field(None, max_length=256)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=32)
    currency: str = Field(default=settings.CURRENCY, max_length=8)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Campus name cannot be empty')
        return v.strip()

    @field_validator('short_code')
    @classmethod
    def normalize_short_code(cls, v):
        return v.strip().upper() if v else v


class CampusUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=128)
    address: Optional[str] = Field(None, max_length=256)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=32)
    currency: Optional[str] = Field(None, max_length=8)


class CampusOut(BaseModel):
    id: UUID
    name: str
    short_code: Optional[str]
    address: Optional[str]
    email: Optional[str]
    phone: Optional[str]
    currency: str
    created_at: datetime

    class Config:
        from_attributes = True


class MyCampusOut(BaseModel):
    campus: CampusOut
    role: str


class MemberAdd(BaseModel):
    email: EmailStr
    role: str


class MemberOut(BaseModel):
    id: UUID
    campus_id: UUID
    user_id: UUID
    role: str
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogOut(BaseModel):
    id: UUID
    user_id: Optional[UUID]
    action: str
    entity: Optional[str]
    entity_id: Optional[str]
    details: Optional[Any]
    ip_address: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True
