# app/services/audit_service.py - Append-only audit trail
from sqlalchemy.orm import Session
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from app.models.audit import AuditLog

logger = logging.getLogger(__name__)


class AuditService:
    """Writes audit entries inside the caller's transaction"""

    def __init__(self, db: Session):
        self.db = db

    def log(
        self,
        action: str,
        entity: Optional[str] = None,
        entity_id: Any = None,
        user_id: Optional[UUID] = None,
        campus_id: Optional[UUID] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """Record an action; a failure here never aborts the business operation"""
        try:
            with self.db.begin_nested():
                entry = AuditLog(
                    action=action,
                    entity=entity,
                    entity_id=str(entity_id) if entity_id is not None else None,
                    user_id=user_id,
                    campus_id=campus_id,
                    details=details,
                    ip_address=ip_address,
                )
                self.db.add(entry)
            return entry
        except SQLAlchemyError as e:
            logger.error(f"Failed to write audit entry {action}: {e}")
            return None

    def list_entries(
        self,
        campus_id: UUID,
        action: Optional[str] = None,
        entity: Optional[str] = None,
        user_id: Optional[UUID] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[AuditLog]:
        query = select(AuditLog).where(AuditLog.campus_id == campus_id)
        if action:
            query = query.where(AuditLog.action == action)
        if entity:
            query = query.where(AuditLog.entity == entity)
        if user_id:
            query = query.where(AuditLog.user_id == user_id)
        query = query.order_by(AuditLog.created_at.desc()).offset(skip).limit(limit)
        return list(self.db.execute(query).scalars().all())
