# app/services/student_service.py - Student records and holds
from sqlalchemy.orm import Session
from sqlalchemy import select, func, or_
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from app.core.cache import CacheService, CacheKeys, cache as default_cache
from app.core.config import settings
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.catalog import Program
from app.models.student import Student, Hold
from app.services.audit_service import AuditService
from app.services.numbering import next_sequence_number

logger = logging.getLogger(__name__)

STUDENT_STATUSES = ("ACTIVE", "SUSPENDED", "GRADUATED", "WITHDRAWN", "INACTIVE")
HOLD_TYPES = ("ACADEMIC", "FINANCIAL", "DISCIPLINARY", "ADMINISTRATIVE")


class StudentService:
    def __init__(self, db: Session, cache: Optional[CacheService] = None):
        self.db = db
        self.cache = cache or default_cache
        self.audit = AuditService(db)

    def generate_student_number(self, campus_id: UUID, year: Optional[int] = None) -> str:
        year = year or date.today().year
        prefix = f"{settings.STUDENT_NUMBER_PREFIX}/{year}/"
        return next_sequence_number(self.db, Student.student_number, Student.campus_id, campus_id, prefix, 4)

    def _ensure_unique_email(self, campus_id: UUID, email: Optional[str], exclude_id: Optional[UUID] = None) -> None:
        if not email:
            return
        query = select(Student.id).where(Student.campus_id == campus_id, Student.email == email)
        if exclude_id:
            query = query.where(Student.id != exclude_id)
        if self.db.execute(query).scalar_one_or_none():
            raise ConflictError(f"A student with email {email} already exists")

    def _check_program(self, campus_id: UUID, program_id: Optional[UUID]) -> None:
        if program_id is None:
            return
        program = self.db.execute(
            select(Program.id).where(Program.id == program_id, Program.campus_id == campus_id)
        ).scalar_one_or_none()
        if program is None:
            raise NotFoundError("Program", program_id)

    def create_student(self, campus_id: UUID, data: Dict[str, Any], created_by: Optional[UUID] = None, commit: bool = True) -> Student:
        if data.get("email"):
            data["email"] = data["email"].lower()
        self._ensure_unique_email(campus_id, data.get("email"))
        self._check_program(campus_id, data.get("program_id"))

        data["admission_date"] = data.get("admission_date") or date.today()
        student = Student(
            campus_id=campus_id,
            student_number=self.generate_student_number(campus_id, data["admission_date"].year),
            **data
        )
        self.db.add(student)
        self.db.flush()

        self.audit.log("STUDENT_CREATED", "student", student.id, user_id=created_by, campus_id=campus_id)
        if commit:
            self.db.commit()
            self.db.refresh(student)

        logger.info(f"Student created: {student.student_number}")
        return student

    def get_student(self, campus_id: UUID, student_id: UUID) -> Student:
        student = self.db.execute(
            select(Student).where(Student.id == student_id, Student.campus_id == campus_id)
        ).scalar_one_or_none()
        if student is None:
            raise NotFoundError("Student", student_id)
        return student

    def get_student_by_user(self, campus_id: UUID, user_id: UUID) -> Optional[Student]:
        return self.db.execute(
            select(Student).where(Student.user_id == user_id, Student.campus_id == campus_id)
        ).scalar_one_or_none()

    def get_profile(self, campus_id: UUID, student_id: UUID) -> Dict[str, Any]:
        """Student profile with program and active holds, cached per student"""
        def fetch():
            student = self.get_student(campus_id, student_id)
            return {
                "id": str(student.id),
                "student_number": student.student_number,
                "full_name": student.full_name,
                "email": student.email,
                "phone": student.phone,
                "status": student.status,
                "admission_date": student.admission_date,
                "program": {
                    "id": str(student.program.id),
                    "code": student.program.code,
                    "name": student.program.name,
                } if student.program else None,
                "active_holds": [
                    {"id": str(hold.id), "type": hold.type, "reason": hold.reason}
                    for hold in student.holds if hold.is_active
                ],
            }

        return self.cache.get_or_set(CacheKeys.student_profile(student_id), fetch)

    def list_students(
        self,
        campus_id: UUID,
        search: Optional[str] = None,
        status: Optional[str] = None,
        program_id: Optional[UUID] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Dict[str, Any]:
        query = select(Student).where(Student.campus_id == campus_id)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(
                Student.first_name.ilike(pattern),
                Student.last_name.ilike(pattern),
                Student.student_number.ilike(pattern),
                Student.email.ilike(pattern),
            ))
        if status:
            query = query.where(Student.status == status)
        if program_id:
            query = query.where(Student.program_id == program_id)

        total = self.db.execute(select(func.count()).select_from(query.subquery())).scalar_one()
        students = self.db.execute(
            query.order_by(Student.last_name, Student.first_name).offset(skip).limit(limit)
        ).scalars().all()
        return {"items": list(students), "total": total}

    def update_student(self, campus_id: UUID, student_id: UUID, changes: Dict[str, Any], updated_by: Optional[UUID] = None) -> Student:
        student = self.get_student(campus_id, student_id)

        if changes.get("email"):
            changes["email"] = changes["email"].lower()
            self._ensure_unique_email(campus_id, changes["email"], exclude_id=student.id)
        if "program_id" in changes:
            self._check_program(campus_id, changes["program_id"])
        if "status" in changes and changes["status"] not in STUDENT_STATUSES:
            raise ValidationError(f"Invalid student status '{changes['status']}'")

        for field, value in changes.items():
            setattr(student, field, value)

        self.audit.log(
            "STUDENT_UPDATED", "student", student.id,
            user_id=updated_by, campus_id=campus_id, details={"fields": sorted(changes)}
        )
        self.db.commit()
        self.db.refresh(student)
        self.cache.invalidate_student(student.id)
        return student

    # Holds

    def place_hold(self, campus_id: UUID, student_id: UUID, data: Dict[str, Any], placed_by: Optional[UUID] = None) -> Hold:
        student = self.get_student(campus_id, student_id)
        if data["type"] not in HOLD_TYPES:
            raise ValidationError(f"Invalid hold type '{data['type']}'")

        hold = Hold(campus_id=campus_id, student_id=student.id, placed_by_id=placed_by, **data)
        self.db.add(hold)
        self.db.flush()
        self.audit.log(
            "HOLD_PLACED", "hold", hold.id,
            user_id=placed_by, campus_id=campus_id, details={"type": hold.type, "student_id": str(student.id)}
        )
        self.db.commit()
        self.db.refresh(hold)
        self.cache.invalidate_student(student.id)

        logger.info(f"{hold.type} hold placed on student {student.student_number}")
        return hold

    def resolve_hold(self, campus_id: UUID, hold_id: UUID, resolved_by: UUID, notes: Optional[str] = None) -> Hold:
        hold = self.db.execute(
            select(Hold).where(Hold.id == hold_id, Hold.campus_id == campus_id)
        ).scalar_one_or_none()
        if hold is None:
            raise NotFoundError("Hold", hold_id)
        if not hold.is_active:
            raise ValidationError("Hold is already resolved")

        hold.is_active = False
        hold.resolved_by_id = resolved_by
        hold.resolved_at = datetime.utcnow()
        hold.resolution_notes = notes

        self.audit.log("HOLD_RESOLVED", "hold", hold.id, user_id=resolved_by, campus_id=campus_id)
        self.db.commit()
        self.db.refresh(hold)
        self.cache.invalidate_student(hold.student_id)
        return hold

    def list_holds(self, campus_id: UUID, student_id: UUID, active_only: bool = False) -> List[Hold]:
        self.get_student(campus_id, student_id)
        query = select(Hold).where(Hold.student_id == student_id)
        if active_only:
            query = query.where(Hold.is_active.is_(True))
        return list(self.db.execute(query.order_by(Hold.created_at.desc())).scalars().all())

    def active_hold(self, student_id: UUID, blocks: str) -> Optional[Hold]:
        """First active hold with the given blocking flag (``registration`` or ``transcript``)"""
        flag = Hold.blocks_registration if blocks == "registration" else Hold.blocks_transcript
        return self.db.execute(
            select(Hold).where(
                Hold.student_id == student_id,
                Hold.is_active.is_(True),
                flag.is_(True)
            )
        ).scalars().first()
