# app/models/notification.py - In-app notifications and per-user channel preferences
from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy import String, Boolean, DateTime, ForeignKey, CheckConstraint, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from app.models.base import Base


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    campus_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(String(2000), nullable=False)
    priority: Mapped[str] = mapped_column(String(8), nullable=False, default="NORMAL")
    link: Mapped[str | None] = mapped_column(String(512))
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "is_read"),
        CheckConstraint("priority IN ('LOW','NORMAL','HIGH','URGENT')", name="ck_notification_priority"),
    )


class NotificationPreference(Base):
    __tablename__ = "notification_preferences"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)

    email_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    email_academic: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    email_finance: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    email_library: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    email_hr: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    email_announcements: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    sms_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sms_urgent: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sms_payments: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sms_otp: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    push_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    push_academic: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    push_finance: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    push_library: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    push_announcements: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    in_app_sound: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    in_app_desktop: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
