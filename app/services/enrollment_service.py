# app/services/enrollment_service.py - Class registration rules
from sqlalchemy.orm import Session
from sqlalchemy import select, func
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from app.core.cache import CacheService, CacheKeys, cache as default_cache
from app.core.errors import AppError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.models.catalog import Course, CoursePrerequisite
from app.models.class_model import ClassSection
from app.models.enrollment import Enrollment, PrerequisiteOverride
from app.models.room import Schedule
from app.models.student import Student
from app.services.academic_service import AcademicService
from app.services.audit_service import AuditService
from app.services.room_service import slots_overlap
from app.services.student_service import StudentService

logger = logging.getLogger(__name__)


class EnrollmentService:
    """
    Registers students into class sections.

    ``enroll`` applies its checks in a fixed order so that the first failing
    rule is the one reported: student status, registration holds, class
    status, registration window, duplicates, capacity, prerequisites and
    finally timetable clashes.
    """

    def __init__(self, db: Session, cache: Optional[CacheService] = None):
        self.db = db
        self.cache = cache or default_cache
        self.academic = AcademicService(db, self.cache)
        self.students = StudentService(db, self.cache)
        self.audit = AuditService(db)

    def _get_class(self, campus_id: UUID, class_id: UUID) -> ClassSection:
        class_section = self.db.execute(
            select(ClassSection).where(ClassSection.id == class_id, ClassSection.campus_id == campus_id)
        ).scalar_one_or_none()
        if class_section is None:
            raise NotFoundError("Class", class_id)
        return class_section

    def active_count(self, class_id: UUID) -> int:
        return self.db.execute(
            select(func.count(Enrollment.id)).where(
                Enrollment.class_id == class_id,
                Enrollment.status != "DROPPED"
            )
        ).scalar_one()

    def missing_prerequisites(self, student_id: UUID, course_id: UUID) -> List[Course]:
        """Prerequisite courses the student has neither completed nor been excused from"""
        prerequisites = self.db.execute(
            select(Course)
            .join(CoursePrerequisite, CoursePrerequisite.prerequisite_id == Course.id)
            .where(CoursePrerequisite.course_id == course_id)
        ).scalars().all()
        if not prerequisites:
            return []

        completed = set(self.db.execute(
            select(ClassSection.course_id)
            .join(Enrollment, Enrollment.class_id == ClassSection.id)
            .where(Enrollment.student_id == student_id, Enrollment.status == "COMPLETED")
        ).scalars().all())

        overridden = set(self.db.execute(
            select(PrerequisiteOverride.prerequisite_id).where(
                PrerequisiteOverride.student_id == student_id,
                PrerequisiteOverride.course_id == course_id
            )
        ).scalars().all())

        return [course for course in prerequisites if course.id not in completed and course.id not in overridden]

    def schedule_conflicts(self, student_id: UUID, class_section: ClassSection) -> List[Dict[str, Any]]:
        """Slots of the student's other registered classes that clash with this class"""
        new_slots = self.db.execute(
            select(Schedule).where(Schedule.class_id == class_section.id)
        ).scalars().all()
        if not new_slots:
            return []

        existing_slots = self.db.execute(
            select(Schedule)
            .join(Enrollment, Enrollment.class_id == Schedule.class_id)
            .where(
                Enrollment.student_id == student_id,
                Enrollment.semester_id == class_section.semester_id,
                Enrollment.status == "REGISTERED",
                Enrollment.class_id != class_section.id,
            )
        ).scalars().all()

        conflicts = []
        for new in new_slots:
            for existing in existing_slots:
                if new.day_of_week == existing.day_of_week and slots_overlap(
                    new.start_time, new.end_time, existing.start_time, existing.end_time
                ):
                    conflicts.append({
                        "course_code": existing.class_section.course.code,
                        "day": existing.day_name,
                        "start_time": existing.start_time,
                        "end_time": existing.end_time,
                    })
        return conflicts

    def enroll(
        self,
        campus_id: UUID,
        student_id: UUID,
        class_id: UUID,
        override_prerequisites: bool = False,
        override_reason: Optional[str] = None,
        enrolled_by: Optional[UUID] = None,
        commit: bool = True,
    ) -> Enrollment:
        student = self.db.execute(
            select(Student).where(Student.id == student_id, Student.campus_id == campus_id)
        ).scalar_one_or_none()
        if student is None:
            raise ValidationError("Student not found")
        if student.status != "ACTIVE":
            raise ValidationError(f"Student is {student.status} and cannot enroll")

        hold = self.students.active_hold(student.id, "registration")
        if hold is not None:
            raise ForbiddenError(f"Registration blocked by {hold.type} hold: {hold.reason}")

        class_section = self._get_class(campus_id, class_id)
        if class_section.status != "OPEN":
            raise ValidationError(f"Class is {class_section.status}")

        window = self.academic.is_registration_open(class_section.semester_id)
        if not window["is_open"]:
            raise ValidationError(window["message"])

        existing = self.db.execute(
            select(Enrollment.id).where(
                Enrollment.student_id == student.id,
                Enrollment.class_id == class_section.id,
                Enrollment.status != "DROPPED"
            )
        ).scalars().first()
        if existing:
            raise ConflictError("Student is already enrolled in this class")

        if self.active_count(class_section.id) >= class_section.capacity:
            raise ValidationError("Class is full")

        missing = self.missing_prerequisites(student.id, class_section.course_id)
        if missing:
            codes = [course.code for course in missing]
            if not override_prerequisites:
                raise ValidationError(
                    f"Missing prerequisites: {', '.join(codes)}",
                    details={"missing": codes}
                )
            if not override_reason:
                raise ValidationError("A reason is required to override prerequisites")
            for course in missing:
                self.db.add(PrerequisiteOverride(
                    campus_id=campus_id,
                    student_id=student.id,
                    course_id=class_section.course_id,
                    prerequisite_id=course.id,
                    reason=override_reason,
                    approved_by_id=enrolled_by,
                ))
            logger.warning(f"Prerequisites {codes} overridden for student {student.student_number}")

        conflicts = self.schedule_conflicts(student.id, class_section)
        if conflicts:
            raise ConflictError("Schedule conflict with another registered class", details={"conflicts": conflicts})

        enrollment = Enrollment(
            campus_id=campus_id,
            student_id=student.id,
            class_id=class_section.id,
            semester_id=class_section.semester_id,
            status="REGISTERED",
            enrolled_at=datetime.utcnow(),
        )
        self.db.add(enrollment)
        self.db.flush()

        self.audit.log(
            "ENROLLED", "enrollment", enrollment.id,
            user_id=enrolled_by, campus_id=campus_id, details={"class_id": str(class_section.id)}
        )
        if commit:
            self.db.commit()
            self.db.refresh(enrollment)

        self.cache.delete(CacheKeys.student_schedule(student.id, class_section.semester_id))
        logger.info(f"Student {student.student_number} enrolled in class {class_section.id}")
        return enrollment

    def get_enrollment(self, campus_id: UUID, enrollment_id: UUID) -> Enrollment:
        enrollment = self.db.execute(
            select(Enrollment).where(Enrollment.id == enrollment_id, Enrollment.campus_id == campus_id)
        ).scalar_one_or_none()
        if enrollment is None:
            raise NotFoundError("Enrollment", enrollment_id)
        return enrollment

    def drop(self, campus_id: UUID, enrollment_id: UUID, dropped_by: Optional[UUID] = None) -> Enrollment:
        enrollment = self.get_enrollment(campus_id, enrollment_id)
        if enrollment.status != "REGISTERED":
            raise ValidationError(f"Cannot drop an enrollment that is {enrollment.status}")

        enrollment.status = "DROPPED"
        enrollment.dropped_at = datetime.utcnow()
        self.audit.log("DROPPED", "enrollment", enrollment.id, user_id=dropped_by, campus_id=campus_id)
        self.db.commit()
        self.db.refresh(enrollment)

        self.cache.delete(CacheKeys.student_schedule(enrollment.student_id, enrollment.semester_id))
        return enrollment

    def bulk_enroll(self, campus_id: UUID, student_ids: List[UUID], class_id: UUID, enrolled_by: Optional[UUID] = None) -> Dict[str, Any]:
        results = []
        successful = 0
        for student_id in student_ids:
            try:
                with self.db.begin_nested():
                    enrollment = self.enroll(campus_id, student_id, class_id, enrolled_by=enrolled_by, commit=False)
                successful += 1
                results.append({"student_id": str(student_id), "success": True, "enrollment_id": str(enrollment.id)})
            except AppError as e:
                results.append({"student_id": str(student_id), "success": False, "error": e.message})
        self.db.commit()
        return {
            "total": len(student_ids),
            "successful": successful,
            "failed": len(student_ids) - successful,
            "results": results,
        }

    def student_schedule(self, campus_id: UUID, student_id: UUID, semester_id: UUID) -> List[Dict[str, Any]]:
        def fetch():
            slots = self.db.execute(
                select(Schedule)
                .join(Enrollment, Enrollment.class_id == Schedule.class_id)
                .where(
                    Enrollment.campus_id == campus_id,
                    Enrollment.student_id == student_id,
                    Enrollment.semester_id == semester_id,
                    Enrollment.status == "REGISTERED",
                )
                .order_by(Schedule.day_of_week, Schedule.start_time)
            ).scalars().all()
            return [
                {
                    "class_id": str(slot.class_id),
                    "course_code": slot.class_section.course.code,
                    "course_name": slot.class_section.course.name,
                    "section": slot.class_section.section,
                    "day_of_week": slot.day_of_week,
                    "day_name": slot.day_name,
                    "start_time": slot.start_time,
                    "end_time": slot.end_time,
                    "room": slot.room.name,
                    "building": slot.room.building,
                }
                for slot in slots
            ]

        return self.cache.get_or_set(CacheKeys.student_schedule(student_id, semester_id), fetch)

    def available_classes(self, campus_id: UUID, student_id: UUID, semester_id: UUID) -> List[Dict[str, Any]]:
        enrolled_class_ids = set(self.db.execute(
            select(Enrollment.class_id).where(
                Enrollment.student_id == student_id,
                Enrollment.semester_id == semester_id,
                Enrollment.status != "DROPPED"
            )
        ).scalars().all())

        classes = self.db.execute(
            select(ClassSection).where(
                ClassSection.campus_id == campus_id,
                ClassSection.semester_id == semester_id,
                ClassSection.status == "OPEN"
            )
        ).scalars().all()

        available = []
        for class_section in classes:
            if class_section.id in enrolled_class_ids:
                continue
            seats_left = class_section.capacity - self.active_count(class_section.id)
            if seats_left > 0:
                available.append({"class_section": class_section, "seats_left": seats_left})
        return available

    def list_enrollments(
        self,
        campus_id: UUID,
        class_id: Optional[UUID] = None,
        student_id: Optional[UUID] = None,
        semester_id: Optional[UUID] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Enrollment]:
        query = select(Enrollment).where(Enrollment.campus_id == campus_id)
        if class_id:
            query = query.where(Enrollment.class_id == class_id)
        if student_id:
            query = query.where(Enrollment.student_id == student_id)
        if semester_id:
            query = query.where(Enrollment.semester_id == semester_id)
        if status:
            query = query.where(Enrollment.status == status)
        query = query.order_by(Enrollment.enrolled_at.desc()).offset(skip).limit(limit)
        return list(self.db.execute(query).scalars().all())
