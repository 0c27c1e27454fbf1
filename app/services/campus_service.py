# app/services/campus_service.py - Tenants and memberships
from sqlalchemy.orm import Session
from sqlalchemy import select
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.campus import Campus, CampusMember, MEMBER_ROLES
from app.models.user import User
from app.services.audit_service import AuditService

logger = logging.getLogger(__name__)


class CampusService:
    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)

    def create_campus(self, user: User, data: Dict[str, Any]) -> Campus:
        """Create a campus; its creator becomes the OWNER member"""
        short_code = data.get("short_code")
        if short_code:
            exists = self.db.execute(
                select(Campus.id).where(Campus.short_code == short_code)
            ).scalar_one_or_none()
            if exists:
                raise ConflictError(f"Campus code '{short_code}' is already in use")

        campus = Campus(created_by=user.id, **data)
        self.db.add(campus)
        self.db.flush()

        self.db.add(CampusMember(campus_id=campus.id, user_id=user.id, role="OWNER"))
        self.audit.log("CAMPUS_CREATED", "campus", campus.id, user_id=user.id, campus_id=campus.id)
        self.db.commit()
        self.db.refresh(campus)

        logger.info(f"Campus created: {campus.name} by {user.email}")
        return campus

    def list_my_campuses(self, user_id: UUID) -> List[Dict[str, Any]]:
        rows = self.db.execute(
            select(Campus, CampusMember.role)
            .join(CampusMember, CampusMember.campus_id == Campus.id)
            .where(CampusMember.user_id == user_id)
            .order_by(Campus.name)
        ).all()
        return [{"campus": campus, "role": role} for campus, role in rows]

    def get_campus(self, campus_id: UUID) -> Campus:
        campus = self.db.get(Campus, campus_id)
        if campus is None:
            raise NotFoundError("Campus", campus_id)
        return campus

    def update_campus(self, campus_id: UUID, changes: Dict[str, Any]) -> Campus:
        campus = self.get_campus(campus_id)
        for field, value in changes.items():
            setattr(campus, field, value)
        self.db.commit()
        self.db.refresh(campus)
        return campus

    def add_member(self, campus_id: UUID, email: str, role: str, added_by: Optional[UUID] = None) -> CampusMember:
        if role not in MEMBER_ROLES:
            raise ValidationError(f"Invalid role '{role}'")

        self.get_campus(campus_id)

        user = self.db.execute(
            select(User).where(User.email == email.lower().strip())
        ).scalar_one_or_none()
        if user is None:
            raise NotFoundError("User", email)

        existing = self.db.execute(
            select(CampusMember).where(
                CampusMember.campus_id == campus_id,
                CampusMember.user_id == user.id
            )
        ).scalar_one_or_none()
        if existing:
            raise ConflictError("User is already a member of this campus")

        membership = CampusMember(campus_id=campus_id, user_id=user.id, role=role)
        self.db.add(membership)
        self.audit.log(
            "MEMBER_ADDED", "campus_member", user.id,
            user_id=added_by, campus_id=campus_id, details={"role": role}
        )
        self.db.commit()
        self.db.refresh(membership)

        logger.info(f"User {user.email} added to campus {campus_id} as {role}")
        return membership

    def list_members(self, campus_id: UUID) -> List[CampusMember]:
        return list(self.db.execute(
            select(CampusMember)
            .where(CampusMember.campus_id == campus_id)
            .order_by(CampusMember.created_at)
        ).scalars().all())

    def get_membership(self, campus_id: UUID, user_id: UUID) -> Optional[CampusMember]:
        return self.db.execute(
            select(CampusMember).where(
                CampusMember.campus_id == campus_id,
                CampusMember.user_id == user_id
            )
        ).scalar_one_or_none()
