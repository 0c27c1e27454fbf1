# app/schemas/auth.py - Authentication, session and password reset schemas
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import List, Optional
from datetime import datetime
from uuid import UUID


class RegisterIn(BaseModel):
    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=255)
    password: str
    phone: Optional[str] = Field(None, max_length=32)

    @field_validator('full_name')
    @classmethod
    def validate_full_name(cls, v):
        if not v.strip():
            raise ValueError('Full name cannot be empty')
        return v.strip()


class LoginIn(BaseModel):
    email: str
    password: str


class RefreshIn(BaseModel):
    refresh_token: str


class LogoutIn(BaseModel):
    refresh_token: str


class ActivateCampusIn(BaseModel):
    campus_id: UUID


class CampusMembershipOut(BaseModel):
    id: str
    name: str
    role: str


class AuthUserOut(BaseModel):
    id: UUID
    email: str
    full_name: str
    roles: List[str]

    class Config:
        from_attributes = True


class TokenOut(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    active_campus_id: Optional[str] = None
    user: AuthUserOut


class AccessTokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    active_campus_id: Optional[str] = None


class MeOut(BaseModel):
    id: UUID
    email: str
    full_name: str
    phone: Optional[str] = None
    roles: List[str]
    is_verified: bool
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime
    campuses: List[CampusMembershipOut]


class MessageOut(BaseModel):
    message: str


# Password reset schemas
class ForgotPasswordIn(BaseModel):
    email: EmailStr

    class Config:
        json_schema_extra = {
            "example": {
                "email": "user@example.com"
            }
        }


class VerifyResetTokenIn(BaseModel):
    token: str
    email: EmailStr


class VerifyResetTokenOut(BaseModel):
    valid: bool
    message: str

    class Config:
        json_schema_extra = {
            "example": {
                "valid": True,
                "message": "Reset token is valid"
            }
        }


class ResetPasswordIn(BaseModel):
    token: str
    email: EmailStr
    password: str

    class Config:
        json_schema_extra = {
            "example": {
                "token": "abc123def456",
                "email": "user@example.com",
                "password": "NewSecurePassword123!"
            }
        }


class ChangePasswordIn(BaseModel):
    current_password: str
    new_password: str


class PasswordStrengthIn(BaseModel):
    password: str


class PasswordStrengthOut(BaseModel):
    valid: bool
    feedback: List[str]
    requirements: dict
