# app/models/campus.py - Tenants and their members
from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy import String, DateTime, ForeignKey, CheckConstraint, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base

MEMBER_ROLES = ("OWNER", "ADMIN", "REGISTRAR", "LECTURER", "ACCOUNTANT", "HR", "LIBRARIAN", "STUDENT", "STAFF")


class Campus(Base):
    __tablename__ = "campuses"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    short_code: Mapped[str | None] = mapped_column(String(16), unique=True)
    address: Mapped[str | None] = mapped_column(String(256))
    email: Mapped[str | None] = mapped_column(String(128))
    phone: Mapped[str | None] = mapped_column(String(32))
    currency: Mapped[str] = mapped_column(String(8), default="USD")

    created_by: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    members: Mapped[list["CampusMember"]] = relationship("CampusMember", back_populates="campus", cascade="all, delete-orphan")


class CampusMember(Base):
    __tablename__ = "campus_members"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    campus_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("campuses.id"), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    campus: Mapped["Campus"] = relationship("Campus", back_populates="members")
    user: Mapped["User"] = relationship("User")

    __table_args__ = (
        CheckConstraint(
            "role IN ('OWNER','ADMIN','REGISTRAR','LECTURER','ACCOUNTANT','HR','LIBRARIAN','STUDENT','STAFF')",
            name="ck_campus_member_role"
        ),
        Index("uq_campus_member", "campus_id", "user_id", unique=True),
    )
