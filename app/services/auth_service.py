# app/services/auth_service.py - Authentication business logic
from sqlalchemy.orm import Session
from sqlalchemy import select, delete
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List
from uuid import UUID
import logging

from app.core.config import settings
from app.core.errors import ConflictError, ForbiddenError, UnauthorizedError, ValidationError
from app.core.security import (
    hash_password,
    verify_password,
    password_manager,
    token_manager,
    session_token_manager,
    reset_token_manager,
)
from app.models.user import User, UserSession
from app.models.password_reset import PasswordResetToken
from app.models.campus import Campus, CampusMember
from app.services.audit_service import AuditService
from app.services.email_service import EmailService, EmailTemplates

logger = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = "If an account exists for that email, a password reset link has been sent."


class AuthService:
    """Service class for authentication operations"""

    def __init__(self, db: Session, email_service: Optional[EmailService] = None):
        self.db = db
        self.email_service = email_service or EmailService()
        self.audit = AuditService(db)

    # Helpers

    def _get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.execute(
            select(User).where(User.email == email.lower().strip())
        ).scalar_one_or_none()

    @staticmethod
    def _check_password_policy(password: str) -> None:
        result = password_manager.validate_password_strength(password)
        if not result["valid"]:
            raise ValidationError(
                "Password does not meet requirements",
                details=result["feedback"]
            )

    @staticmethod
    def _check_password_reset_enabled() -> None:
        if not settings.ENABLE_PASSWORD_RESET:
            raise ForbiddenError("Password reset is currently disabled")

    def get_user_campuses(self, user_id: UUID) -> List[Dict[str, Any]]:
        """Campuses the user belongs to, with their role in each"""
        rows = self.db.execute(
            select(CampusMember, Campus)
            .join(Campus, Campus.id == CampusMember.campus_id)
            .where(CampusMember.user_id == user_id)
            .order_by(Campus.name)
        ).all()

        return [
            {"id": str(campus.id), "name": campus.name, "role": membership.role}
            for membership, campus in rows
        ]

    def create_access_token_for_user(self, user: User, active_campus_id: Optional[str] = None) -> str:
        claims = {"email": user.email, "roles": user.roles}
        if active_campus_id:
            claims["active_campus_id"] = str(active_campus_id)
        return token_manager.create_access_token(subject=user.id, additional_claims=claims)

    def _create_session(self, user: User, ip_address: Optional[str], user_agent: Optional[str]) -> UserSession:
        session = UserSession(
            user_id=user.id,
            refresh_token=session_token_manager.generate_refresh_token(),
            ip_address=ip_address,
            user_agent=(user_agent or "")[:512] or None,
            expires_at=session_token_manager.session_expiry(),
        )
        self.db.add(session)
        return session

    def _token_response(self, user: User, session: UserSession, active_campus_id: Optional[str]) -> Dict[str, Any]:
        return {
            "access_token": self.create_access_token_for_user(user, active_campus_id),
            "refresh_token": session.refresh_token,
            "token_type": "bearer",
            "expires_in": settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            "active_campus_id": active_campus_id,
            "user": user,
        }

    def _default_campus_id(self, user: User) -> Optional[str]:
        campuses = self.get_user_campuses(user.id)
        return campuses[0]["id"] if len(campuses) == 1 else None

    # Registration and login

    def register(
        self,
        email: str,
        full_name: str,
        password: str,
        phone: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a new user account and sign it in.

        Raises:
            ForbiddenError: self-registration is switched off
            ValidationError: password fails the policy
            ConflictError: email already registered
        """
        if not settings.ENABLE_REGISTRATION:
            raise ForbiddenError("Registration is currently disabled")

        self._check_password_policy(password)

        email = email.lower().strip()
        if self._get_user_by_email(email):
            raise ConflictError("User with this email already exists")

        user = User(
            email=email,
            full_name=full_name.strip(),
            phone=phone,
            password_hash=hash_password(password),
            is_active=True,
            is_verified=False
        )
        user.set_roles(["STAFF"])
        self.db.add(user)
        self.db.flush()

        session = self._create_session(user, ip_address, user_agent)
        self.audit.log("REGISTER", "user", user.id, user_id=user.id, ip_address=ip_address)
        self.db.commit()
        self.db.refresh(user)

        logger.info(f"User registered: {email}")
        return self._token_response(user, session, None)

    def login(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Dict[str, Any]:
        user = self._get_user_by_email(email)

        if not user or not verify_password(password, user.password_hash):
            logger.warning(f"Failed login attempt for {email}")
            raise UnauthorizedError("Invalid email or password")

        if not user.is_active:
            raise UnauthorizedError("Account is deactivated")

        user.last_login = datetime.utcnow()
        session = self._create_session(user, ip_address, user_agent)
        active_campus_id = self._default_campus_id(user)

        self.audit.log("LOGIN", "user", user.id, user_id=user.id, ip_address=ip_address)
        self.db.commit()

        logger.info(f"User authenticated: {user.email}")
        return self._token_response(user, session, active_campus_id)

    def refresh(self, refresh_token: str) -> Dict[str, Any]:
        """Rotate a refresh token and issue a new access token"""
        session = self.db.execute(
            select(UserSession).where(UserSession.refresh_token == refresh_token)
        ).scalar_one_or_none()

        if session is None:
            raise UnauthorizedError("Invalid refresh token")

        if session.is_expired():
            self.db.delete(session)
            self.db.commit()
            raise UnauthorizedError("Refresh token expired")

        user = session.user
        if not user.is_active:
            self.db.delete(session)
            self.db.commit()
            raise UnauthorizedError("Account is deactivated")

        session.refresh_token = session_token_manager.generate_refresh_token()
        session.expires_at = session_token_manager.session_expiry()
        self.db.commit()

        return self._token_response(user, session, self._default_campus_id(user))

    def logout(self, refresh_token: str, ip_address: Optional[str] = None) -> None:
        session = self.db.execute(
            select(UserSession).where(UserSession.refresh_token == refresh_token)
        ).scalar_one_or_none()
        if session is None:
            return

        user_id = session.user_id
        self.db.delete(session)
        self.audit.log("LOGOUT", "user", user_id, user_id=user_id, ip_address=ip_address)
        self.db.commit()

    def logout_all(self, user_id: UUID) -> int:
        result = self.db.execute(delete(UserSession).where(UserSession.user_id == user_id))
        self.audit.log("LOGOUT_ALL", "user", user_id, user_id=user_id)
        self.db.commit()
        logger.info(f"All sessions revoked for user {user_id}")
        return result.rowcount

    def cleanup_expired_sessions(self) -> int:
        result = self.db.execute(
            delete(UserSession).where(UserSession.expires_at <= datetime.utcnow())
        )
        self.db.commit()
        if result.rowcount:
            logger.info(f"Removed {result.rowcount} expired sessions")
        return result.rowcount

    # Campus context

    def activate_campus(self, user: User, campus_id: UUID) -> Dict[str, Any]:
        membership = self.db.execute(
            select(CampusMember).where(
                CampusMember.campus_id == campus_id,
                CampusMember.user_id == user.id
            )
        ).scalar_one_or_none()

        if membership is None:
            raise ForbiddenError("Not a member of this campus")

        return {
            "access_token": self.create_access_token_for_user(user, str(campus_id)),
            "token_type": "bearer",
            "expires_in": settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            "active_campus_id": str(campus_id),
        }

    def me(self, user: User) -> Dict[str, Any]:
        return {
            "id": user.id,
            "email": user.email,
            "full_name": user.full_name,
            "phone": user.phone,
            "roles": user.roles,
            "is_active": user.is_active,
            "is_verified": user.is_verified,
            "last_login": user.last_login,
            "created_at": user.created_at,
            "campuses": self.get_user_campuses(user.id),
        }

    # Passwords

    def forgot_password(self, email: str, client_ip: Optional[str] = None) -> str:
        """Start a password reset; the response never reveals whether the email exists"""
        self._check_password_reset_enabled()

        user = self._get_user_by_email(email)

        if not user or not user.is_active:
            logger.info(f"Password reset requested for unknown or inactive account: {email}")
            return FORGOT_PASSWORD_MESSAGE

        if user.get_active_reset_tokens_count() >= settings.MAX_RESET_ATTEMPTS:
            logger.warning(f"Too many active reset tokens for user: {user.email}")
            return FORGOT_PASSWORD_MESSAGE

        plain_token = reset_token_manager.generate_reset_token()
        reset_token = PasswordResetToken(
            user_id=user.id,
            token_hash=reset_token_manager.hash_reset_token(plain_token),
            expires_at=datetime.utcnow() + timedelta(hours=settings.RESET_TOKEN_EXPIRE_HOURS),
            created_ip=client_ip
        )
        self.db.add(reset_token)
        self.db.commit()

        text, html = EmailTemplates.password_reset(user.full_name, plain_token, user.email)
        if not self.email_service.send_email(user.email, "Reset your password", text, html):
            if settings.is_development:
                logger.info(f"DEV: Reset token for {user.email}: {plain_token}")

        logger.info(f"Password reset initiated for: {user.email}")
        return FORGOT_PASSWORD_MESSAGE

    def _find_valid_reset_token(self, user: Optional[User], token: str) -> Optional[PasswordResetToken]:
        if user is None or not token:
            return None
        reset_token = self.db.execute(
            select(PasswordResetToken).where(
                PasswordResetToken.user_id == user.id,
                PasswordResetToken.token_hash == reset_token_manager.hash_reset_token(token)
            )
        ).scalar_one_or_none()
        if reset_token is None or not reset_token.is_valid():
            return None
        return reset_token

    def verify_reset_token(self, email: str, token: str) -> bool:
        return self._find_valid_reset_token(self._get_user_by_email(email), token) is not None

    def reset_password(self, email: str, token: str, new_password: str, client_ip: Optional[str] = None) -> None:
        """
        Set a new password with a reset token.

        Every session of the user is revoked afterwards.
        """
        self._check_password_reset_enabled()

        user = self._get_user_by_email(email)
        reset_token = self._find_valid_reset_token(user, token)
        if reset_token is None:
            raise ValidationError("Invalid or expired reset token")

        self._check_password_policy(new_password)

        user.password_hash = hash_password(new_password)
        reset_token.mark_used(client_ip)
        self.db.execute(delete(UserSession).where(UserSession.user_id == user.id))
        self.audit.log("PASSWORD_RESET", "user", user.id, user_id=user.id, ip_address=client_ip)
        self.db.commit()

        logger.info(f"Password reset completed for: {user.email}")

    def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user.password_hash):
            raise ValidationError("Current password is incorrect")

        if current_password == new_password:
            raise ValidationError("New password must be different from the current password")

        self._check_password_policy(new_password)

        user.password_hash = hash_password(new_password)
        self.audit.log("PASSWORD_CHANGE", "user", user.id, user_id=user.id)
        self.db.commit()

        logger.info(f"Password changed for: {user.email}")
