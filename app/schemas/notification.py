# app/schemas/notification.py - Notifications and per-user delivery preferences
from pydantic import BaseModel, Field
from typing import List, Literal, Optional
from datetime import datetime
from uuid import UUID

Priority = Literal["LOW", "NORMAL", "HIGH", "URGENT"]


class NotificationCreate(BaseModel):
    user_ids: List[UUID] = Field(..., min_length=1)
    type: str = "ANNOUNCEMENT"
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1, max_length=2000)
    priority: Priority = "NORMAL"
    link: Optional[str] = Field(None, max_length=512)


class NotificationOut(BaseModel):
    id: UUID
    type: str
    title: str
    message: str
    priority: str
    link: Optional[str]
    is_read: bool
    read_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationHistoryOut(BaseModel):
    items: List[NotificationOut]
    total: int
    unread: int


class BulkSendOut(BaseModel):
    success: int
    failed: int


class UnreadCountOut(BaseModel):
    unread: int


class PreferencesUpdate(BaseModel):
    email_enabled: Optional[bool] = None
    email_academic: Optional[bool] = None
    email_finance: Optional[bool] = None
    email_library: Optional[bool] = None
    email_hr: Optional[bool] = None
    email_announcements: Optional[bool] = None
    sms_enabled: Optional[bool] = None
    sms_urgent: Optional[bool] = None
    sms_payments: Optional[bool] = None
    sms_otp: Optional[bool] = None
    push_enabled: Optional[bool] = None
    push_academic: Optional[bool] = None
    push_finance: Optional[bool] = None
    push_library: Optional[bool] = None
    push_announcements: Optional[bool] = None
    in_app_sound: Optional[bool] = None
    in_app_desktop: Optional[bool] = None


class PreferencesOut(BaseModel):
    email_enabled: bool
    email_academic: bool
    email_finance: bool
    email_library: bool
    email_hr: bool
    email_announcements: bool
    sms_enabled: bool
    sms_urgent: bool
    sms_payments: bool
    sms_otp: bool
    push_enabled: bool
    push_academic: bool
    push_finance: bool
    push_library: bool
    push_announcements: bool
    in_app_sound: bool
    in_app_desktop: bool

    class Config:
        from_attributes = True
