# app/services/notification_service.py - Preference-aware notification dispatch
from sqlalchemy.orm import Session
from sqlalchemy import select, func, update
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from app.core.errors import NotFoundError, ValidationError
from app.models.notification import Notification, NotificationPreference
from app.models.user import User
from app.services.email_service import EmailService, EmailTemplates
from app.services.sms_service import SmsService

logger = logging.getLogger(__name__)

DEFAULT_PREFERENCES = {
    "email_enabled": True,
    "email_academic": True,
    "email_finance": True,
    "email_library": True,
    "email_hr": True,
    "email_announcements": True,
    "sms_enabled": False,
    "sms_urgent": True,
    "sms_payments": True,
    "sms_otp": True,
    "push_enabled": True,
    "push_academic": True,
    "push_finance": True,
    "push_library": True,
    "push_announcements": True,
    "in_app_sound": True,
    "in_app_desktop": True,
}

NOTIFICATION_TYPES = (
    "ACADEMIC", "GRADE", "ATTENDANCE", "FINANCE", "PAYMENT",
    "LIBRARY", "HR", "LEAVE", "ANNOUNCEMENT", "SYSTEM",
)

CATEGORY_BY_TYPE = {
    "ACADEMIC": "ACADEMIC",
    "GRADE": "ACADEMIC",
    "ATTENDANCE": "ACADEMIC",
    "FINANCE": "FINANCE",
    "PAYMENT": "FINANCE",
    "LIBRARY": "LIBRARY",
    "HR": "HR",
    "LEAVE": "HR",
    "ANNOUNCEMENT": "ANNOUNCEMENTS",
}

# Category flags consulted per channel; categories missing here cannot be muted
CHANNEL_CATEGORY_FLAGS = {
    "EMAIL": {
        "ACADEMIC": "email_academic",
        "FINANCE": "email_finance",
        "LIBRARY": "email_library",
        "HR": "email_hr",
        "ANNOUNCEMENTS": "email_announcements",
    },
    "PUSH": {
        "ACADEMIC": "push_academic",
        "FINANCE": "push_finance",
        "LIBRARY": "push_library",
        "ANNOUNCEMENTS": "push_announcements",
    },
}

CHANNEL_MASTER_SWITCH = {
    "EMAIL": "email_enabled",
    "SMS": "sms_enabled",
    "PUSH": "push_enabled",
}


def category_for(notification_type: str) -> str:
    return CATEGORY_BY_TYPE.get(notification_type, "SYSTEM")


def should_notify(preferences: NotificationPreference, notification_type: str, channel: str) -> bool:
    """Whether a notification of this type may go out on the given channel"""
    master = CHANNEL_MASTER_SWITCH.get(channel)
    if master and not getattr(preferences, master):
        return False

    category = category_for(notification_type)
    flag = CHANNEL_CATEGORY_FLAGS.get(channel, {}).get(category)
    if flag and not getattr(preferences, flag):
        return False

    return True


class NotificationService:
    """Creates in-app notifications and fans out to email, SMS and push"""

    def __init__(
        self,
        db: Session,
        email_service: Optional[EmailService] = None,
        sms_service: Optional[SmsService] = None,
    ):
        self.db = db
        self.email_service = email_service or EmailService()
        self.sms_service = sms_service or SmsService()

    # Preferences

    def get_preferences(self, user_id: UUID) -> NotificationPreference:
        preferences = self.db.execute(
            select(NotificationPreference).where(NotificationPreference.user_id == user_id)
        ).scalar_one_or_none()

        if preferences is None:
            preferences = NotificationPreference(user_id=user_id, **DEFAULT_PREFERENCES)
            self.db.add(preferences)
            self.db.flush()

        return preferences

    def update_preferences(self, user: User, changes: Dict[str, Any]) -> NotificationPreference:
        if changes.get("sms_enabled") and not user.phone:
            raise ValidationError("Add a phone number to your profile before enabling SMS notifications")

        preferences = self.get_preferences(user.id)
        for field, value in changes.items():
            if field in DEFAULT_PREFERENCES and value is not None:
                setattr(preferences, field, value)

        self.db.commit()
        self.db.refresh(preferences)
        logger.info(f"Notification preferences updated for user {user.id}")
        return preferences

    def reset_preferences(self, user_id: UUID) -> NotificationPreference:
        preferences = self.get_preferences(user_id)
        for field, value in DEFAULT_PREFERENCES.items():
            setattr(preferences, field, value)
        self.db.commit()
        self.db.refresh(preferences)
        return preferences

    def enabled_channels(self, user: User) -> List[str]:
        preferences = self.get_preferences(user.id)
        channels = ["IN_APP"]
        if preferences.email_enabled and user.email:
            channels.append("EMAIL")
        if preferences.sms_enabled and user.phone:
            channels.append("SMS")
        if preferences.push_enabled:
            channels.append("PUSH")
        return channels

    # Dispatch

    def send(
        self,
        user_id: UUID,
        type: str,
        title: str,
        message: str,
        priority: str = "NORMAL",
        link: Optional[str] = None,
        campus_id: Optional[UUID] = None,
        commit: bool = True,
        sms_text: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Deliver a notification to one user.

        The in-app row is always written. External channels are attempted
        according to the user's preferences and their failures are collected
        rather than raised. `sms_text` replaces the default "title: message"
        SMS body, usually rendered from an `SmsTemplate`.

        Returns:
            {"sent": bool, "channels": [...], "errors": [...], "notification_id": ...}
        """
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)

        notification = Notification(
            campus_id=campus_id,
            user_id=user.id,
            type=type,
            title=title,
            message=message,
            priority=priority,
            link=link,
        )
        self.db.add(notification)
        self.db.flush()

        preferences = self.get_preferences(user.id)
        channels = ["IN_APP"]
        errors: List[str] = []

        if should_notify(preferences, type, "EMAIL") and user.email:
            text, html = EmailTemplates.notification(user.full_name, title, message, link)
            if self.email_service.send_email(user.email, title, text, html):
                channels.append("EMAIL")
            else:
                errors.append("Email delivery failed")

        if self._wants_sms(preferences, type, priority) and user.phone:
            result = self.sms_service.send_sms(user.phone, sms_text or f"{title}: {message}")
            if result["success"]:
                channels.append("SMS")
            else:
                errors.append(f"SMS failed: {result['error']}")

        if should_notify(preferences, type, "PUSH"):
            # Push clients read the in-app feed; there is no external push provider.
            logger.debug(f"Push notification queued for user {user.id}: {title}")
            channels.append("PUSH")

        if commit:
            self.db.commit()

        return {
            "sent": True,
            "channels": channels,
            "errors": errors,
            "notification_id": notification.id,
        }

    @staticmethod
    def _wants_sms(preferences: NotificationPreference, notification_type: str, priority: str) -> bool:
        if not preferences.sms_enabled:
            return False
        if priority == "URGENT" and preferences.sms_urgent:
            return True
        return category_for(notification_type) == "FINANCE" and preferences.sms_payments

    def bulk_send(
        self,
        user_ids: List[UUID],
        type: str,
        title: str,
        message: str,
        priority: str = "NORMAL",
        link: Optional[str] = None,
        campus_id: Optional[UUID] = None,
    ) -> Dict[str, int]:
        success = 0
        failed = 0
        for user_id in user_ids:
            try:
                self.send(user_id, type, title, message, priority, link, campus_id, commit=False)
                success += 1
            except NotFoundError:
                failed += 1
        self.db.commit()
        return {"success": success, "failed": failed}

    # Inbox

    def history(self, user_id: UUID, skip: int = 0, limit: int = 20, unread_only: bool = False) -> Dict[str, Any]:
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))

        total = self.db.execute(
            select(func.count()).select_from(query.subquery())
        ).scalar_one()
        items = self.db.execute(
            query.order_by(Notification.created_at.desc()).offset(skip).limit(limit)
        ).scalars().all()

        return {"items": list(items), "total": total, "unread": self.unread_count(user_id)}

    def unread_count(self, user_id: UUID) -> int:
        return self.db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False)
            )
        ).scalar_one()

    def _get_own(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = self.db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id
            )
        ).scalar_one_or_none()
        if notification is None:
            raise NotFoundError("Notification", notification_id)
        return notification

    def mark_read(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = self._get_own(notification_id, user_id)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.utcnow()
            self.db.commit()
            self.db.refresh(notification)
        return notification

    def mark_all_read(self, user_id: UUID) -> int:
        result = self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=datetime.utcnow())
        )
        self.db.commit()
        return result.rowcount

    def delete(self, notification_id: UUID, user_id: UUID) -> None:
        notification = self._get_own(notification_id, user_id)
        self.db.delete(notification)
        self.db.commit()
