# app/services/attendance_service.py - Attendance marking, summaries and excuses
from sqlalchemy.orm import Session
from sqlalchemy import select
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from app.core.config import settings
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.attendance import AttendanceRecord, AttendanceExcuse
from app.models.class_model import ClassSection
from app.models.enrollment import Enrollment
from app.models.student import Student

logger = logging.getLogger(__name__)

ATTENDANCE_STATUSES = ("PRESENT", "ABSENT", "LATE", "EXCUSED")


def summarize(statuses: List[str]) -> Dict[str, Any]:
    counts = {status.lower(): 0 for status in ATTENDANCE_STATUSES}
    for status in statuses:
        counts[status.lower()] += 1
    total = len(statuses)
    attended = counts["present"] + counts["late"]
    counts["total"] = total
    counts["percentage"] = int(
        (Decimal(attended * 100) / total).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    ) if total else 0
    return counts


class AttendanceService:
    def __init__(self, db: Session):
        self.db = db

    def _get_class(self, campus_id: UUID, class_id: UUID) -> ClassSection:
        class_section = self.db.execute(
            select(ClassSection).where(ClassSection.id == class_id, ClassSection.campus_id == campus_id)
        ).scalar_one_or_none()
        if class_section is None:
            raise NotFoundError("Class", class_id)
        return class_section

    def _registered_student_ids(self, class_id: UUID) -> set:
        return set(self.db.execute(
            select(Enrollment.student_id).where(
                Enrollment.class_id == class_id,
                Enrollment.status == "REGISTERED"
            )
        ).scalars().all())

    def mark(
        self,
        campus_id: UUID,
        class_id: UUID,
        on_date: date,
        entries: List[Dict[str, Any]],
        marked_by: Optional[UUID] = None,
    ) -> List[AttendanceRecord]:
        """Record attendance for a class meeting; re-marking a date updates it"""
        class_section = self._get_class(campus_id, class_id)
        registered = self._registered_student_ids(class_section.id)

        for entry in entries:
            if entry["status"] not in ATTENDANCE_STATUSES:
                raise ValidationError(f"Invalid attendance status '{entry['status']}'")
            if entry["student_id"] not in registered:
                raise ValidationError(f"Student {entry['student_id']} is not registered in this class")

        existing = {
            record.student_id: record
            for record in self.db.execute(
                select(AttendanceRecord).where(
                    AttendanceRecord.class_id == class_section.id,
                    AttendanceRecord.date == on_date
                )
            ).scalars().all()
        }

        records = []
        for entry in entries:
            record = existing.get(entry["student_id"])
            if record is None:
                record = AttendanceRecord(
                    campus_id=campus_id,
                    class_id=class_section.id,
                    student_id=entry["student_id"],
                    date=on_date,
                )
                self.db.add(record)
            record.status = entry["status"]
            record.remarks = entry.get("remarks")
            record.marked_by_id = marked_by
            records.append(record)

        self.db.commit()
        for record in records:
            self.db.refresh(record)

        logger.info(f"Attendance marked for class {class_section.id} on {on_date}: {len(records)} students")
        return records

    def list_for_class(self, campus_id: UUID, class_id: UUID, on_date: Optional[date] = None) -> List[AttendanceRecord]:
        self._get_class(campus_id, class_id)
        query = select(AttendanceRecord).where(AttendanceRecord.class_id == class_id)
        if on_date:
            query = query.where(AttendanceRecord.date == on_date)
        return list(self.db.execute(query.order_by(AttendanceRecord.date)).scalars().all())

    def student_summary(self, campus_id: UUID, student_id: UUID, class_id: Optional[UUID] = None) -> Dict[str, Any]:
        query = select(AttendanceRecord.status).where(
            AttendanceRecord.campus_id == campus_id,
            AttendanceRecord.student_id == student_id
        )
        if class_id:
            query = query.where(AttendanceRecord.class_id == class_id)
        summary = summarize(list(self.db.execute(query).scalars().all()))
        summary["student_id"] = student_id
        return summary

    def class_report(self, campus_id: UUID, class_id: UUID) -> List[Dict[str, Any]]:
        class_section = self._get_class(campus_id, class_id)
        students = self.db.execute(
            select(Student)
            .join(Enrollment, Enrollment.student_id == Student.id)
            .where(Enrollment.class_id == class_section.id, Enrollment.status == "REGISTERED")
            .order_by(Student.last_name, Student.first_name)
        ).scalars().all()

        report = []
        for student in students:
            summary = self.student_summary(campus_id, student.id, class_section.id)
            summary["student_number"] = student.student_number
            summary["student_name"] = student.full_name
            report.append(summary)
        return report

    def below_threshold(self, campus_id: UUID, class_id: UUID, threshold: Optional[int] = None) -> List[Dict[str, Any]]:
        threshold = settings.ATTENDANCE_THRESHOLD if threshold is None else threshold
        return [
            row for row in self.class_report(campus_id, class_id)
            if row["total"] and row["percentage"] < threshold
        ]

    # Excuses

    def submit_excuse(
        self,
        campus_id: UUID,
        attendance_id: UUID,
        student_id: UUID,
        reason: str,
        document_url: Optional[str] = None,
    ) -> AttendanceExcuse:
        record = self.db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.id == attendance_id,
                AttendanceRecord.campus_id == campus_id
            )
        ).scalar_one_or_none()
        if record is None:
            raise NotFoundError("Attendance record", attendance_id)
        if record.student_id != student_id:
            raise ValidationError("Attendance record belongs to another student")
        if record.status not in ("ABSENT", "LATE"):
            raise ValidationError("Only absences and late arrivals can be excused")

        pending = self.db.execute(
            select(AttendanceExcuse.id).where(
                AttendanceExcuse.attendance_id == record.id,
                AttendanceExcuse.status == "PENDING"
            )
        ).scalars().first()
        if pending:
            raise ConflictError("An excuse for this record is already pending")

        excuse = AttendanceExcuse(
            campus_id=campus_id,
            attendance_id=record.id,
            student_id=student_id,
            reason=reason,
            document_url=document_url,
            status="PENDING",
        )
        self.db.add(excuse)
        self.db.commit()
        self.db.refresh(excuse)
        return excuse

    def review_excuse(
        self,
        campus_id: UUID,
        excuse_id: UUID,
        approve: bool,
        reviewer_id: UUID,
        notes: Optional[str] = None,
    ) -> AttendanceExcuse:
        excuse = self.db.execute(
            select(AttendanceExcuse).where(
                AttendanceExcuse.id == excuse_id,
                AttendanceExcuse.campus_id == campus_id
            )
        ).scalar_one_or_none()
        if excuse is None:
            raise NotFoundError("Excuse", excuse_id)
        if excuse.status != "PENDING":
            raise ValidationError("Excuse has already been reviewed")

        excuse.status = "APPROVED" if approve else "REJECTED"
        excuse.reviewed_by_id = reviewer_id
        excuse.reviewed_at = datetime.utcnow()
        excuse.review_notes = notes
        if approve:
            excuse.record.status = "EXCUSED"

        self.db.commit()
        self.db.refresh(excuse)
        logger.info(f"Attendance excuse {excuse.id} {excuse.status.lower()}")
        return excuse

    def list_excuses(self, campus_id: UUID, status: Optional[str] = None, student_id: Optional[UUID] = None) -> List[AttendanceExcuse]:
        query = select(AttendanceExcuse).where(AttendanceExcuse.campus_id == campus_id)
        if status:
            query = query.where(AttendanceExcuse.status == status)
        if student_id:
            query = query.where(AttendanceExcuse.student_id == student_id)
        return list(self.db.execute(query.order_by(AttendanceExcuse.created_at.desc())).scalars().all())
