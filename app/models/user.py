# app/models/user.py - Users, roles and refresh-token sessions
from __future__ import annotations
import uuid
import enum
from datetime import datetime
from sqlalchemy import String, DateTime, Boolean, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base


class UserRole(str, enum.Enum):
    """System-wide user roles"""
    SUPER_ADMIN = "SUPER_ADMIN"  # Can manage every campus
    ADMIN = "ADMIN"              # Campus administration
    REGISTRAR = "REGISTRAR"      # Admissions, enrollment, records
    LECTURER = "LECTURER"        # Teaching, grading, attendance
    ACCOUNTANT = "ACCOUNTANT"    # Invoices, payments, payroll
    HR = "HR"                    # Employees and leave
    LIBRARIAN = "LIBRARIAN"      # Library circulation
    STUDENT = "STUDENT"
    STAFF = "STAFF"


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(32))
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # Multiple roles stored as CSV
    roles_csv: Mapped[str] = mapped_column(String(255), default="STAFF", nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    sessions: Mapped[list["UserSession"]] = relationship(
        "UserSession",
        back_populates="user",
        cascade="all, delete-orphan"
    )
    password_reset_tokens: Mapped[list["PasswordResetToken"]] = relationship(
        "PasswordResetToken",
        back_populates="user",
        cascade="all, delete-orphan"
    )

    @property
    def roles(self) -> list[str]:
        if not self.roles_csv:
            return [UserRole.STAFF.value]
        return [role.strip() for role in self.roles_csv.split(",") if role.strip()]

    def set_roles(self, roles: list[str]) -> None:
        """Set user roles from list, dropping unknown values"""
        valid_roles = [role for role in roles if role in [r.value for r in UserRole]]
        if not valid_roles:
            valid_roles = [UserRole.STAFF.value]
        self.roles_csv = ",".join(sorted(set(valid_roles)))

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, roles: list[str]) -> bool:
        return any(role in self.roles for role in roles)

    def is_admin(self) -> bool:
        return self.has_any_role(["SUPER_ADMIN", "ADMIN"])

    def is_super_admin(self) -> bool:
        return self.has_role("SUPER_ADMIN")

    def get_active_reset_tokens_count(self) -> int:
        return sum(1 for token in self.password_reset_tokens if token.is_valid())

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', roles={self.roles})>"


class UserSession(Base):
    """Server-side refresh token; rotated on every refresh"""
    __tablename__ = "user_sessions"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    refresh_token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)
    ip_address: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(String(512))
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user: Mapped["User"] = relationship("User", back_populates="sessions")

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at <= (now or datetime.utcnow())
