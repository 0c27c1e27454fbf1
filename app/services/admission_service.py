# app/services/admission_service.py - Admission applications through to enrolled students
from sqlalchemy.orm import Session
from sqlalchemy import select, func
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
import secrets
import logging

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.core.security import hash_password
from app.models.admission import AdmissionApplication
from app.models.campus import CampusMember
from app.models.catalog import Program
from app.models.user import User
from app.services.audit_service import AuditService
from app.services.numbering import next_sequence_number
from app.services.student_service import StudentService

logger = logging.getLogger(__name__)

APPLICATION_STATUSES = ("PENDING", "UNDER_REVIEW", "APPROVED", "REJECTED", "ENROLLED")

REVIEW_TRANSITIONS = {
    "PENDING": {"UNDER_REVIEW", "APPROVED", "REJECTED"},
    "UNDER_REVIEW": {"APPROVED", "REJECTED"},
}


class AdmissionService:
    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)
        self.students = StudentService(db)

    def generate_application_number(self, campus_id: UUID, year: Optional[int] = None) -> str:
        prefix = f"APP/{year or date.today().year}/"
        return next_sequence_number(
            self.db, AdmissionApplication.application_number, AdmissionApplication.campus_id, campus_id, prefix, 4
        )

    def submit(self, campus_id: UUID, data: Dict[str, Any]) -> AdmissionApplication:
        email = data["email"].lower()
        data["email"] = email

        program = self.db.execute(
            select(Program.id).where(Program.id == data["program_id"], Program.campus_id == campus_id)
        ).scalar_one_or_none()
        if program is None:
            raise NotFoundError("Program", data["program_id"])

        duplicate = self.db.execute(
            select(AdmissionApplication.id).where(
                AdmissionApplication.campus_id == campus_id,
                AdmissionApplication.email == email,
                AdmissionApplication.status.not_in(("REJECTED", "ENROLLED"))
            )
        ).scalars().first()
        if duplicate:
            raise ConflictError("An application with this email is already in progress")

        application = AdmissionApplication(
            campus_id=campus_id,
            application_number=self.generate_application_number(campus_id),
            status="PENDING",
            **data
        )
        self.db.add(application)
        self.db.commit()
        self.db.refresh(application)

        logger.info(f"Admission application submitted: {application.application_number}")
        return application

    def get_application(self, campus_id: UUID, application_id: UUID) -> AdmissionApplication:
        application = self.db.execute(
            select(AdmissionApplication).where(
                AdmissionApplication.id == application_id,
                AdmissionApplication.campus_id == campus_id
            )
        ).scalar_one_or_none()
        if application is None:
            raise NotFoundError("Application", application_id)
        return application

    def list_applications(
        self,
        campus_id: UUID,
        status: Optional[str] = None,
        program_id: Optional[UUID] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[AdmissionApplication]:
        query = select(AdmissionApplication).where(AdmissionApplication.campus_id == campus_id)
        if status:
            query = query.where(AdmissionApplication.status == status)
        if program_id:
            query = query.where(AdmissionApplication.program_id == program_id)
        query = query.order_by(AdmissionApplication.created_at.desc()).offset(skip).limit(limit)
        return list(self.db.execute(query).scalars().all())

    def review(
        self,
        campus_id: UUID,
        application_id: UUID,
        new_status: str,
        reviewer_id: UUID,
        notes: Optional[str] = None,
    ) -> AdmissionApplication:
        application = self.get_application(campus_id, application_id)

        allowed = REVIEW_TRANSITIONS.get(application.status, set())
        if new_status not in allowed:
            raise ValidationError(f"Cannot move application from {application.status} to {new_status}")

        application.status = new_status
        application.reviewed_by_id = reviewer_id
        application.reviewed_at = datetime.utcnow()
        if notes is not None:
            application.review_notes = notes

        self.audit.log(
            "APPLICATION_REVIEWED", "admission_application", application.id,
            user_id=reviewer_id, campus_id=campus_id, details={"status": new_status}
        )
        self.db.commit()
        self.db.refresh(application)

        logger.info(f"Application {application.application_number} moved to {new_status}")
        return application

    def enroll(self, campus_id: UUID, application_id: UUID, enrolled_by: Optional[UUID] = None) -> Dict[str, Any]:
        """
        Turn an approved application into a student with a portal account.

        The generated initial password is returned once so it can be handed
        to the student; only its hash is stored.
        """
        application = self.get_application(campus_id, application_id)
        if application.status != "APPROVED":
            raise ValidationError("Only approved applications can be enrolled")

        user = self.db.execute(
            select(User).where(User.email == application.email)
        ).scalar_one_or_none()
        initial_password = None
        if user is None:
            initial_password = secrets.token_urlsafe(12)
            user = User(
                email=application.email,
                full_name=f"{application.first_name} {application.last_name}",
                phone=application.phone,
                password_hash=hash_password(initial_password),
                is_active=True,
                is_verified=False,
            )
            user.set_roles(["STUDENT"])
            self.db.add(user)
            self.db.flush()

        membership = self.db.execute(
            select(CampusMember).where(CampusMember.campus_id == campus_id, CampusMember.user_id == user.id)
        ).scalar_one_or_none()
        if membership is None:
            self.db.add(CampusMember(campus_id=campus_id, user_id=user.id, role="STUDENT"))

        student = self.students.create_student(
            campus_id,
            {
                "user_id": user.id,
                "first_name": application.first_name,
                "last_name": application.last_name,
                "email": application.email,
                "phone": application.phone,
                "gender": application.gender,
                "dob": application.dob,
                "program_id": application.program_id,
                "status": "ACTIVE",
            },
            created_by=enrolled_by,
            commit=False,
        )

        application.status = "ENROLLED"
        application.student_id = student.id
        self.audit.log(
            "APPLICATION_ENROLLED", "admission_application", application.id,
            user_id=enrolled_by, campus_id=campus_id, details={"student_id": str(student.id)}
        )
        self.db.commit()
        self.db.refresh(application)
        self.db.refresh(student)

        logger.info(f"Application {application.application_number} enrolled as {student.student_number}")
        return {"application": application, "student": student, "initial_password": initial_password}

    def statistics(self, campus_id: UUID) -> Dict[str, int]:
        rows = self.db.execute(
            select(AdmissionApplication.status, func.count(AdmissionApplication.id))
            .where(AdmissionApplication.campus_id == campus_id)
            .group_by(AdmissionApplication.status)
        ).all()

        stats = {status.lower(): 0 for status in APPLICATION_STATUSES}
        for status, count in rows:
            stats[status.lower()] = count
        stats["total"] = sum(count for _, count in rows)
        return stats
