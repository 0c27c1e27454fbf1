# app/services/grade_calculation_service.py - Final grades, GPA and transcripts
from sqlalchemy.orm import Session
from sqlalchemy import select
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from app.core.cache import CacheService, CacheKeys, cache as default_cache
from app.core.errors import ForbiddenError, NotFoundError, ValidationError
from app.models.academic import Semester
from app.models.class_model import ClassSection
from app.models.enrollment import Enrollment
from app.models.grading import GradeComponent, GradeEntry
from app.models.student import Student
from app.services.grade_scale_service import GradeScaleService
from app.services.notification_service import NotificationService
from app.services.student_service import StudentService

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")


def _round(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def weighted_gpa(items: List[Dict[str, Any]]) -> Decimal:
    """Credit-weighted mean of grade points; 0.00 when there are no credits"""
    credits = sum(Decimal(item["credits"]) for item in items)
    if credits == 0:
        return Decimal("0.00")
    quality_points = sum(Decimal(item["credits"]) * Decimal(str(item["points"])) for item in items)
    return _round(quality_points / credits)


class GradeCalculationService:
    def __init__(
        self,
        db: Session,
        notifications: Optional[NotificationService] = None,
        cache: Optional[CacheService] = None,
    ):
        self.db = db
        self.cache = cache or default_cache
        self.scales = GradeScaleService(db)
        self.notifications = notifications or NotificationService(db)
        self.students = StudentService(db, self.cache)

    def _get_enrollment(self, campus_id: UUID, enrollment_id: UUID) -> Enrollment:
        enrollment = self.db.execute(
            select(Enrollment).where(Enrollment.id == enrollment_id, Enrollment.campus_id == campus_id)
        ).scalar_one_or_none()
        if enrollment is None:
            raise NotFoundError("Enrollment", enrollment_id)
        return enrollment

    def _components(self, class_id: UUID) -> List[GradeComponent]:
        return list(self.db.execute(
            select(GradeComponent)
            .where(GradeComponent.class_id == class_id)
            .order_by(GradeComponent.created_at)
        ).scalars().all())

    def _calculate(self, campus_id: UUID, enrollment: Enrollment, components: List[GradeComponent]) -> Dict[str, Any]:
        entries = {
            entry.component_id: entry
            for entry in self.db.execute(
                select(GradeEntry).where(GradeEntry.enrollment_id == enrollment.id)
            ).scalars().all()
        }

        breakdown = []
        total = ZERO
        for component in components:
            entry = entries.get(component.id)
            weight = Decimal(str(component.weight))
            if entry is None:
                percentage = None
                contribution = ZERO
            else:
                percentage = Decimal(str(entry.score)) / Decimal(str(component.max_score)) * 100
                contribution = percentage * weight / 100
            total += contribution
            breakdown.append({
                "component_id": component.id,
                "name": component.name,
                "component_type": component.component_type,
                "weight": weight,
                "max_score": component.max_score,
                "score": entry.score if entry else None,
                "percentage": _round(percentage) if percentage is not None else None,
                "contribution": _round(contribution),
            })

        final_percentage = _round(total)
        scale = self.scales.get_default_scale(campus_id)
        letter, points = GradeScaleService.letter_for(scale, final_percentage)

        return {
            "enrollment_id": enrollment.id,
            "student_id": enrollment.student_id,
            "student_name": enrollment.student.full_name,
            "student_number": enrollment.student.student_number,
            "percentage": final_percentage,
            "letter_grade": letter,
            "grade_points": points,
            "is_finalized": enrollment.is_finalized,
            "components": breakdown,
        }

    def calculate_student_grade(self, campus_id: UUID, enrollment_id: UUID) -> Dict[str, Any]:
        enrollment = self._get_enrollment(campus_id, enrollment_id)
        return self._calculate(campus_id, enrollment, self._components(enrollment.class_id))

    def calculate_class_grades(self, campus_id: UUID, class_id: UUID) -> List[Dict[str, Any]]:
        class_section = self.db.execute(
            select(ClassSection).where(ClassSection.id == class_id, ClassSection.campus_id == campus_id)
        ).scalar_one_or_none()
        if class_section is None:
            raise NotFoundError("Class", class_id)

        components = self._components(class_section.id)
        enrollments = self.db.execute(
            select(Enrollment).where(
                Enrollment.class_id == class_section.id,
                Enrollment.status == "REGISTERED"
            )
        ).scalars().all()

        results = [self._calculate(campus_id, enrollment, components) for enrollment in enrollments]
        results.sort(key=lambda r: r["percentage"], reverse=True)
        return results

    def _finalize(self, campus_id: UUID, enrollment: Enrollment, finalized_by: UUID) -> Enrollment:
        result = self._calculate(campus_id, enrollment, self._components(enrollment.class_id))

        enrollment.final_percentage = result["percentage"]
        enrollment.final_grade = result["letter_grade"]
        enrollment.grade_points = result["grade_points"]
        enrollment.is_finalized = True
        enrollment.finalized_at = datetime.utcnow()
        enrollment.finalized_by_id = finalized_by

        student = enrollment.student
        if student.user_id:
            course = enrollment.class_section.course
            self.notifications.send(
                student.user_id,
                "GRADE",
                "Final grade published",
                f"Your final grade for {course.code} {course.name} is {enrollment.final_grade}.",
                campus_id=campus_id,
                commit=False,
            )
        self.cache.delete(CacheKeys.student_grades(student.id))
        return enrollment

    def finalize_enrollment(self, campus_id: UUID, enrollment_id: UUID, finalized_by: UUID) -> Enrollment:
        enrollment = self._get_enrollment(campus_id, enrollment_id)
        if enrollment.is_finalized:
            raise ValidationError("Grades are already finalized")
        if enrollment.status not in ("REGISTERED", "COMPLETED"):
            raise ValidationError(f"Cannot finalize an enrollment that is {enrollment.status}")

        self._finalize(campus_id, enrollment, finalized_by)
        self.db.commit()
        self.db.refresh(enrollment)
        logger.info(f"Grade finalized for enrollment {enrollment.id}: {enrollment.final_grade}")
        return enrollment

    def finalize_class(self, campus_id: UUID, class_id: UUID, finalized_by: UUID) -> Dict[str, Any]:
        enrollments = self.db.execute(
            select(Enrollment).where(
                Enrollment.campus_id == campus_id,
                Enrollment.class_id == class_id,
                Enrollment.status == "REGISTERED",
                Enrollment.is_finalized.is_(False)
            )
        ).scalars().all()

        for enrollment in enrollments:
            self._finalize(campus_id, enrollment, finalized_by)
        self.db.commit()

        logger.info(f"Finalized {len(enrollments)} grades for class {class_id}")
        return {"finalized": len(enrollments)}

    def unfinalize(self, campus_id: UUID, enrollment_id: UUID) -> Enrollment:
        enrollment = self._get_enrollment(campus_id, enrollment_id)
        if not enrollment.is_finalized:
            raise ValidationError("Grades are not finalized")
        enrollment.is_finalized = False
        enrollment.finalized_at = None
        enrollment.finalized_by_id = None
        self.db.commit()
        self.db.refresh(enrollment)
        self.cache.delete(CacheKeys.student_grades(enrollment.student_id))
        logger.warning(f"Grades unfinalized for enrollment {enrollment.id}")
        return enrollment

    # GPA and transcript

    def _graded_rows(self, student_id: UUID, statuses: tuple, semester_id: Optional[UUID] = None) -> List[Dict[str, Any]]:
        query = select(Enrollment).where(
            Enrollment.student_id == student_id,
            Enrollment.status.in_(statuses),
            Enrollment.final_grade.is_not(None)
        )
        if semester_id:
            query = query.where(Enrollment.semester_id == semester_id)

        rows = []
        for enrollment in self.db.execute(query).scalars().all():
            course = enrollment.class_section.course
            rows.append({
                "enrollment": enrollment,
                "course": course,
                "credits": course.credits,
                "points": enrollment.grade_points or ZERO,
            })
        return rows

    def semester_gpa(self, student_id: UUID, semester_id: UUID) -> Decimal:
        return weighted_gpa(self._graded_rows(student_id, ("COMPLETED", "REGISTERED"), semester_id))

    def cumulative_gpa(self, student_id: UUID) -> Decimal:
        return weighted_gpa(self._graded_rows(student_id, ("COMPLETED",)))

    def transcript(self, campus_id: UUID, student_id: UUID, official: bool = False) -> Dict[str, Any]:
        student = self.db.execute(
            select(Student).where(Student.id == student_id, Student.campus_id == campus_id)
        ).scalar_one_or_none()
        if student is None:
            raise NotFoundError("Student", student_id)

        if official:
            hold = self.students.active_hold(student.id, "transcript")
            if hold is not None:
                raise ForbiddenError(f"Official transcript blocked by {hold.type} hold: {hold.reason}")

        rows = self._graded_rows(student.id, ("COMPLETED", "REGISTERED"))
        by_semester: Dict[UUID, List[Dict[str, Any]]] = {}
        for row in rows:
            by_semester.setdefault(row["enrollment"].semester_id, []).append(row)

        semesters = []
        ordered = sorted(by_semester, key=lambda sid: self.db.get(Semester, sid).start_date)
        for semester_id in ordered:
            semester = self.db.get(Semester, semester_id)
            semester_rows = by_semester[semester_id]
            attempted = sum(row["credits"] for row in semester_rows)
            earned = sum(row["credits"] for row in semester_rows if Decimal(str(row["points"])) > 0)
            semesters.append({
                "semester_id": semester.id,
                "semester_name": semester.name,
                "courses": [
                    {
                        "course_code": row["course"].code,
                        "course_name": row["course"].name,
                        "credits": row["credits"],
                        "percentage": row["enrollment"].final_percentage,
                        "grade": row["enrollment"].final_grade,
                        "points": row["points"],
                        "status": row["enrollment"].status,
                    }
                    for row in semester_rows
                ],
                "gpa": weighted_gpa(semester_rows),
                "credits_attempted": attempted,
                "credits_earned": earned,
            })

        return {
            "student_id": student.id,
            "student_number": student.student_number,
            "student_name": student.full_name,
            "program": student.program.name if student.program else None,
            "official": official,
            "generated_at": datetime.utcnow(),
            "semesters": semesters,
            "total_credits_attempted": sum(s["credits_attempted"] for s in semesters),
            "total_credits_earned": sum(s["credits_earned"] for s in semesters),
            "cgpa": self.cumulative_gpa(student.id),
        }
