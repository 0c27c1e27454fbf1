# app/api/routers/notifications.py - In-app inbox, announcements and delivery preferences
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Dict, Any
from uuid import UUID
import logging

from app.core.db import get_db
from app.api.deps.auth import get_current_user
from app.api.deps.tenancy import require_campus_roles
from app.services.notification_service import NotificationService
from app.schemas.notification import (
    NotificationCreate,
    NotificationOut,
    NotificationHistoryOut,
    BulkSendOut,
    UnreadCountOut,
    PreferencesUpdate,
    PreferencesOut,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/send", response_model=BulkSendOut)
async def send_notification(
    data: NotificationCreate,
    ctx: Dict[str, Any] = Depends(require_campus_roles(["REGISTRAR", "HR", "ACCOUNTANT", "LECTURER"])),
    db: Session = Depends(get_db)
):
    """Send an announcement to a list of users"""
    result = NotificationService(db).bulk_send(
        data.user_ids,
        data.type,
        data.title,
        data.message,
        data.priority,
        data.link,
        campus_id=ctx["campus_id"],
    )
    logger.info(f"Notification '{data.title}' sent by {ctx['user'].email}: {result}")
    return result


@router.get("", response_model=NotificationHistoryOut)
async def notification_history(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False),
    ctx: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return NotificationService(db).history(ctx["user"].id, skip, limit, unread_only)


@router.get("/unread-count", response_model=UnreadCountOut)
async def unread_count(
    ctx: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return UnreadCountOut(unread=NotificationService(db).unread_count(ctx["user"].id))


@router.post("/read-all")
async def mark_all_read(
    ctx: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return {"updated": NotificationService(db).mark_all_read(ctx["user"].id)}


@router.get("/preferences", response_model=PreferencesOut)
async def get_preferences(
    ctx: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    preferences = NotificationService(db).get_preferences(ctx["user"].id)
    db.commit()
    return preferences


@router.patch("/preferences", response_model=PreferencesOut)
async def update_preferences(
    data: PreferencesUpdate,
    ctx: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return NotificationService(db).update_preferences(ctx["user"], data.model_dump(exclude_unset=True))


@router.post("/preferences/reset", response_model=PreferencesOut)
async def reset_preferences(
    ctx: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return NotificationService(db).reset_preferences(ctx["user"].id)


@router.post("/{notification_id}/read", response_model=NotificationOut)
async def mark_read(
    notification_id: UUID,
    ctx: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return NotificationService(db).mark_read(notification_id, ctx["user"].id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: UUID,
    ctx: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    NotificationService(db).delete(notification_id, ctx["user"].id)
