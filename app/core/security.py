# app/core/security.py - Authentication utilities (JWT, password hashing, session and reset tokens)
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional, Union
import secrets
import hashlib
import hmac
import re

import jwt
from passlib.context import CryptContext
from fastapi import HTTPException, status

from app.core.config import settings

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
    bcrypt__ident="2b"
)

RESERVED_CLAIMS = {"sub", "iat", "exp", "iss", "aud", "type", "jti"}


class SecurityError(Exception):
    """Raised when a token or password cannot be produced"""
    pass


class TokenManager:
    """Manages JWT access token creation and validation"""

    def __init__(self):
        self.secret_key = settings.JWT_SECRET
        self.algorithm = settings.JWT_ALGORITHM
        self.issuer = settings.JWT_ISSUER
        self.audience = settings.JWT_AUDIENCE
        self.access_token_expire_minutes = settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES

    def create_access_token(
        self,
        subject: Union[str, Any],
        expires_delta: Optional[timedelta] = None,
        additional_claims: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Create a JWT access token.

        Args:
            subject: Token subject (the user ID)
            expires_delta: Custom expiration time
            additional_claims: Extra claims such as email, roles, active_campus_id

        Returns:
            Encoded JWT token string

        Raises:
            SecurityError: If a reserved claim is overridden or encoding fails
        """
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(minutes=self.access_token_expire_minutes))

        payload = {
            "sub": str(subject),
            "iat": now,
            "exp": expire,
            "iss": self.issuer,
            "aud": self.audience,
            "type": "access",
            "jti": secrets.token_hex(16),
        }

        if additional_claims:
            for claim in additional_claims:
                if claim in RESERVED_CLAIMS:
                    raise SecurityError(f"Cannot override reserved JWT claim: {claim}")
            payload.update(additional_claims)

        try:
            return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        except jwt.PyJWTError as e:
            raise SecurityError(f"Failed to create access token: {e}")

    def decode_token(self, token: str, expected_type: str = "access") -> Dict[str, Any]:
        """
        Decode and validate a JWT token.

        Raises:
            HTTPException: 401 if the token is invalid, expired or of the wrong type
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
            )
        except jwt.ExpiredSignatureError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
                headers={"WWW-Authenticate": "Bearer"},
            )
        except jwt.InvalidTokenError as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Invalid token: {e}",
                headers={"WWW-Authenticate": "Bearer"},
            )

        if payload.get("type") != expected_type:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Invalid token type. Expected {expected_type}",
                headers={"WWW-Authenticate": "Bearer"},
            )

        return payload


class PasswordManager:
    """Manages password hashing, verification, and strength validation"""

    @staticmethod
    def hash_password(password: str) -> str:
        if not password:
            raise SecurityError("Password cannot be empty")
        return pwd_context.hash(password)

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        if not plain_password or not hashed_password:
            return False
        try:
            return pwd_context.verify(plain_password, hashed_password)
        except ValueError:
            return False

    @staticmethod
    def validate_password_strength(password: str) -> Dict[str, Any]:
        """
        Check the campus password policy: at least 8 characters with an
        upper-case letter, a lower-case letter and a digit.

        Returns:
            Dictionary with "valid", "feedback" and per-rule "requirements"
        """
        password = password or ""
        requirements = {
            "min_length": len(password) >= 8,
            "has_uppercase": bool(re.search(r"[A-Z]", password)),
            "has_lowercase": bool(re.search(r"[a-z]", password)),
            "has_digit": bool(re.search(r"\d", password)),
        }
        messages = {
            "min_length": "Password must be at least 8 characters long",
            "has_uppercase": "Password must contain at least one uppercase letter",
            "has_lowercase": "Password must contain at least one lowercase letter",
            "has_digit": "Password must contain at least one digit",
        }
        feedback = [messages[rule] for rule, ok in requirements.items() if not ok]

        return {
            "valid": not feedback,
            "feedback": feedback or ["Password meets all requirements"],
            "requirements": requirements,
        }


class SessionTokenManager:
    """Opaque refresh tokens stored server-side on a user session"""

    @staticmethod
    def generate_refresh_token() -> str:
        return secrets.token_hex(40)

    @staticmethod
    def session_expiry(now: Optional[datetime] = None) -> datetime:
        now = now or datetime.utcnow()
        return now + timedelta(days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS)


class ResetTokenManager:
    """Manages password reset tokens"""

    @staticmethod
    def generate_reset_token(length: int = None) -> str:
        return secrets.token_urlsafe(length or settings.RESET_TOKEN_LENGTH)

    @staticmethod
    def hash_reset_token(token: str) -> str:
        """HMAC-SHA256 of the plain token, keyed with the JWT secret"""
        if not token:
            raise SecurityError("Reset token cannot be empty")
        return hmac.new(
            settings.JWT_SECRET.encode(),
            token.encode(),
            hashlib.sha256
        ).hexdigest()

    @staticmethod
    def verify_reset_token(plain_token: str, hashed_token: str) -> bool:
        if not plain_token or not hashed_token:
            return False
        computed_hash = ResetTokenManager.hash_reset_token(plain_token)
        return secrets.compare_digest(computed_hash, hashed_token)


token_manager = TokenManager()
password_manager = PasswordManager()
session_token_manager = SessionTokenManager()
reset_token_manager = ResetTokenManager()


def decode_token(token: str) -> Dict[str, Any]:
    return token_manager.decode_token(token)


def hash_password(password: str) -> str:
    return password_manager.hash_password(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return password_manager.verify_password(plain_password, hashed_password)


__all__ = [
    "TokenManager", "PasswordManager", "SessionTokenManager", "ResetTokenManager",
    "token_manager", "password_manager", "session_token_manager", "reset_token_manager",
    "decode_token", "hash_password", "verify_password",
    "SecurityError",
]
