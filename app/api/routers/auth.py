# app/api/routers/auth.py - Registration, sessions, campus selection and password flows
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session
from typing import Dict, Any
import logging

from app.core.db import get_db
from app.core.security import password_manager
from app.api.deps.auth import get_current_user
from app.services.auth_service import AuthService
from app.schemas.auth import (
    RegisterIn,
    LoginIn,
    RefreshIn,
    LogoutIn,
    ActivateCampusIn,
    TokenOut,
    AccessTokenOut,
    MeOut,
    MessageOut,
    ForgotPasswordIn,
    VerifyResetTokenIn,
    VerifyResetTokenOut,
    ResetPasswordIn,
    ChangePasswordIn,
    PasswordStrengthIn,
    PasswordStrengthOut,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


@router.post("/register", response_model=TokenOut, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: RegisterIn,
    request: Request,
    db: Session = Depends(get_db)
):
    """Register a new user account"""
    return AuthService(db).register(
        email=user_data.email,
        full_name=user_data.full_name,
        password=user_data.password,
        phone=user_data.phone,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )


@router.post("/login", response_model=TokenOut)
async def login(
    credentials: LoginIn,
    request: Request,
    db: Session = Depends(get_db)
):
    """Authenticate user and return access and refresh tokens"""
    return AuthService(db).login(
        email=credentials.email,
        password=credentials.password,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )


@router.post("/refresh", response_model=TokenOut)
async def refresh(data: RefreshIn, db: Session = Depends(get_db)):
    return AuthService(db).refresh(data.refresh_token)


@router.post("/logout", response_model=MessageOut)
async def logout(data: LogoutIn, request: Request, db: Session = Depends(get_db)):
    AuthService(db).logout(data.refresh_token, ip_address=_client_ip(request))
    return MessageOut(message="Logged out")


@router.post("/logout-all", response_model=MessageOut)
async def logout_all(
    ctx: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Revoke every session of the current user"""
    count = AuthService(db).logout_all(ctx["user"].id)
    return MessageOut(message=f"Revoked {count} sessions")


@router.post("/activate-campus", response_model=AccessTokenOut)
async def activate_campus(
    data: ActivateCampusIn,
    ctx: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Issue an access token bound to one of the user's campuses"""
    return AuthService(db).activate_campus(ctx["user"], data.campus_id)


@router.get("/me", response_model=MeOut)
async def me(
    ctx: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return AuthService(db).me(ctx["user"])


@router.post("/forgot-password", response_model=MessageOut)
async def forgot_password(
    data: ForgotPasswordIn,
    request: Request,
    db: Session = Depends(get_db)
):
    message = AuthService(db).forgot_password(data.email, client_ip=_client_ip(request))
    return MessageOut(message=message)


@router.post("/verify-reset-token", response_model=VerifyResetTokenOut)
async def verify_reset_token(data: VerifyResetTokenIn, db: Session = Depends(get_db)):
    valid = AuthService(db).verify_reset_token(data.email, data.token)
    return VerifyResetTokenOut(
        valid=valid,
        message="Reset token is valid" if valid else "Invalid or expired reset token"
    )


@router.post("/reset-password", response_model=MessageOut)
async def reset_password(
    data: ResetPasswordIn,
    request: Request,
    db: Session = Depends(get_db)
):
    AuthService(db).reset_password(data.email, data.token, data.password, client_ip=_client_ip(request))
    return MessageOut(message="Password has been reset. Please log in again.")


@router.post("/change-password", response_model=MessageOut)
async def change_password(
    data: ChangePasswordIn,
    ctx: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    AuthService(db).change_password(ctx["user"], data.current_password, data.new_password)
    return MessageOut(message="Password changed")


@router.post("/password-strength", response_model=PasswordStrengthOut)
async def password_strength(data: PasswordStrengthIn):
    return password_manager.validate_password_strength(data.password)
