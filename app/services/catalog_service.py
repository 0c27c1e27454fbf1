# app/services/catalog_service.py - Departments, programs, courses and class sections
from sqlalchemy.orm import Session
from sqlalchemy import select, func
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.academic import Semester
from app.models.catalog import Department, Program, Course, CoursePrerequisite
from app.models.class_model import ClassSection
from app.models.employee import Employee
from app.models.enrollment import Enrollment

logger = logging.getLogger(__name__)

CLASS_STATUSES = ("OPEN", "CLOSED", "CANCELLED")


class CatalogService:
    def __init__(self, db: Session):
        self.db = db

    def _get_scoped(self, model, campus_id: UUID, entity_id: UUID, label: str):
        obj = self.db.execute(
            select(model).where(model.id == entity_id, model.campus_id == campus_id)
        ).scalar_one_or_none()
        if obj is None:
            raise NotFoundError(label, entity_id)
        return obj

    def _ensure_unique_code(self, model, campus_id: UUID, code: str, label: str, exclude_id: Optional[UUID] = None) -> None:
        query = select(model.id).where(model.campus_id == campus_id, model.code == code)
        if exclude_id:
            query = query.where(model.id != exclude_id)
        if self.db.execute(query).scalar_one_or_none():
            raise ConflictError(f"{label} code '{code}' already exists")

    # Departments

    def create_department(self, campus_id: UUID, data: Dict[str, Any]) -> Department:
        data["code"] = data["code"].upper()
        self._ensure_unique_code(Department, campus_id, data["code"], "Department")
        department = Department(campus_id=campus_id, **data)
        self.db.add(department)
        self.db.commit()
        self.db.refresh(department)
        logger.info(f"Department created: {department.code}")
        return department

    def list_departments(self, campus_id: UUID, active_only: bool = False) -> List[Department]:
        query = select(Department).where(Department.campus_id == campus_id)
        if active_only:
            query = query.where(Department.is_active.is_(True))
        return list(self.db.execute(query.order_by(Department.code)).scalars().all())

    def get_department(self, campus_id: UUID, department_id: UUID) -> Department:
        return self._get_scoped(Department, campus_id, department_id, "Department")

    def update_department(self, campus_id: UUID, department_id: UUID, changes: Dict[str, Any]) -> Department:
        department = self.get_department(campus_id, department_id)
        if "code" in changes:
            changes["code"] = changes["code"].upper()
            self._ensure_unique_code(Department, campus_id, changes["code"], "Department", exclude_id=department.id)
        for field, value in changes.items():
            setattr(department, field, value)
        self.db.commit()
        self.db.refresh(department)
        return department

    # Programs

    def create_program(self, campus_id: UUID, data: Dict[str, Any]) -> Program:
        self.get_department(campus_id, data["department_id"])
        data["code"] = data["code"].upper()
        self._ensure_unique_code(Program, campus_id, data["code"], "Program")
        program = Program(campus_id=campus_id, **data)
        self.db.add(program)
        self.db.commit()
        self.db.refresh(program)
        logger.info(f"Program created: {program.code}")
        return program

    def list_programs(self, campus_id: UUID, department_id: Optional[UUID] = None) -> List[Program]:
        query = select(Program).where(Program.campus_id == campus_id)
        if department_id:
            query = query.where(Program.department_id == department_id)
        return list(self.db.execute(query.order_by(Program.code)).scalars().all())

    def get_program(self, campus_id: UUID, program_id: UUID) -> Program:
        return self._get_scoped(Program, campus_id, program_id, "Program")

    # Courses

    def create_course(self, campus_id: UUID, data: Dict[str, Any]) -> Course:
        self.get_department(campus_id, data["department_id"])
        prerequisite_ids = data.pop("prerequisite_ids", None) or []

        data["code"] = data["code"].upper()
        self._ensure_unique_code(Course, campus_id, data["code"], "Course")
        if not 1 <= data.get("credits", 3) <= 12:
            raise ValidationError("Credits must be between 1 and 12")

        course = Course(campus_id=campus_id, **data)
        self.db.add(course)
        self.db.flush()

        for prerequisite_id in prerequisite_ids:
            self._attach_prerequisite(campus_id, course, prerequisite_id)

        self.db.commit()
        self.db.refresh(course)
        logger.info(f"Course created: {course.code}")
        return course

    def list_courses(
        self,
        campus_id: UUID,
        department_id: Optional[UUID] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Course]:
        query = select(Course).where(Course.campus_id == campus_id)
        if department_id:
            query = query.where(Course.department_id == department_id)
        if search:
            pattern = f"%{search}%"
            query = query.where(Course.code.ilike(pattern) | Course.name.ilike(pattern))
        return list(self.db.execute(query.order_by(Course.code).offset(skip).limit(limit)).scalars().all())

    def get_course(self, campus_id: UUID, course_id: UUID) -> Course:
        return self._get_scoped(Course, campus_id, course_id, "Course")

    def update_course(self, campus_id: UUID, course_id: UUID, changes: Dict[str, Any]) -> Course:
        course = self.get_course(campus_id, course_id)
        if "code" in changes:
            changes["code"] = changes["code"].upper()
            self._ensure_unique_code(Course, campus_id, changes["code"], "Course", exclude_id=course.id)
        if "credits" in changes and not 1 <= changes["credits"] <= 12:
            raise ValidationError("Credits must be between 1 and 12")
        for field, value in changes.items():
            setattr(course, field, value)
        self.db.commit()
        self.db.refresh(course)
        return course

    def _attach_prerequisite(self, campus_id: UUID, course: Course, prerequisite_id: UUID) -> CoursePrerequisite:
        if course.id == prerequisite_id:
            raise ValidationError("A course cannot be its own prerequisite")

        prerequisite = self.get_course(campus_id, prerequisite_id)

        existing = self.db.execute(
            select(CoursePrerequisite).where(
                CoursePrerequisite.course_id == course.id,
                CoursePrerequisite.prerequisite_id == prerequisite.id
            )
        ).scalar_one_or_none()
        if existing:
            raise ConflictError(f"{prerequisite.code} is already a prerequisite of {course.code}")

        reverse = self.db.execute(
            select(CoursePrerequisite.id).where(
                CoursePrerequisite.course_id == prerequisite.id,
                CoursePrerequisite.prerequisite_id == course.id
            )
        ).scalar_one_or_none()
        if reverse:
            raise ValidationError(f"{prerequisite.code} already requires {course.code}")

        link = CoursePrerequisite(campus_id=campus_id, course_id=course.id, prerequisite_id=prerequisite.id)
        self.db.add(link)
        return link

    def add_prerequisite(self, campus_id: UUID, course_id: UUID, prerequisite_id: UUID) -> Course:
        course = self.get_course(campus_id, course_id)
        self._attach_prerequisite(campus_id, course, prerequisite_id)
        self.db.commit()
        self.db.refresh(course)
        return course

    def remove_prerequisite(self, campus_id: UUID, course_id: UUID, prerequisite_id: UUID) -> Course:
        course = self.get_course(campus_id, course_id)
        link = self.db.execute(
            select(CoursePrerequisite).where(
                CoursePrerequisite.course_id == course.id,
                CoursePrerequisite.prerequisite_id == prerequisite_id
            )
        ).scalar_one_or_none()
        if link is None:
            raise NotFoundError("Prerequisite", prerequisite_id)
        self.db.delete(link)
        self.db.commit()
        self.db.refresh(course)
        return course

    def list_prerequisites(self, campus_id: UUID, course_id: UUID) -> List[Course]:
        course = self.get_course(campus_id, course_id)
        return [link.prerequisite for link in course.prerequisites]

    # Class sections

    def create_class(self, campus_id: UUID, data: Dict[str, Any]) -> ClassSection:
        self.get_course(campus_id, data["course_id"])
        self._get_scoped(Semester, campus_id, data["semester_id"], "Semester")
        if data.get("lecturer_id"):
            self._get_scoped(Employee, campus_id, data["lecturer_id"], "Lecturer")
        if data.get("capacity", 1) <= 0:
            raise ValidationError("Capacity must be greater than zero")

        section = data.get("section", "A")
        existing = self.db.execute(
            select(ClassSection.id).where(
                ClassSection.campus_id == campus_id,
                ClassSection.course_id == data["course_id"],
                ClassSection.semester_id == data["semester_id"],
                ClassSection.section == section
            )
        ).scalar_one_or_none()
        if existing:
            raise ConflictError(f"Section {section} of this course already exists for the semester")

        class_section = ClassSection(campus_id=campus_id, **data)
        self.db.add(class_section)
        self.db.commit()
        self.db.refresh(class_section)
        logger.info(f"Class section created: {class_section.id}")
        return class_section

    def get_class(self, campus_id: UUID, class_id: UUID) -> ClassSection:
        return self._get_scoped(ClassSection, campus_id, class_id, "Class")

    def update_class(self, campus_id: UUID, class_id: UUID, changes: Dict[str, Any]) -> ClassSection:
        class_section = self.get_class(campus_id, class_id)
        if "status" in changes and changes["status"] not in CLASS_STATUSES:
            raise ValidationError(f"Invalid class status '{changes['status']}'")
        if "capacity" in changes and changes["capacity"] <= 0:
            raise ValidationError("Capacity must be greater than zero")
        if changes.get("lecturer_id"):
            self._get_scoped(Employee, campus_id, changes["lecturer_id"], "Lecturer")
        for field, value in changes.items():
            setattr(class_section, field, value)
        self.db.commit()
        self.db.refresh(class_section)
        return class_section

    def cancel_class(self, campus_id: UUID, class_id: UUID) -> ClassSection:
        class_section = self.get_class(campus_id, class_id)
        class_section.status = "CANCELLED"
        self.db.commit()
        self.db.refresh(class_section)
        logger.info(f"Class section cancelled: {class_section.id}")
        return class_section

    def enrolled_count(self, class_id: UUID) -> int:
        return self.db.execute(
            select(func.count(Enrollment.id)).where(
                Enrollment.class_id == class_id,
                Enrollment.status != "DROPPED"
            )
        ).scalar_one()

    def list_classes(
        self,
        campus_id: UUID,
        semester_id: Optional[UUID] = None,
        course_id: Optional[UUID] = None,
        lecturer_id: Optional[UUID] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        """Class sections with their enrolled counts"""
        enrolled = (
            select(Enrollment.class_id, func.count(Enrollment.id).label("enrolled"))
            .where(Enrollment.status != "DROPPED")
            .group_by(Enrollment.class_id)
            .subquery()
        )
        query = (
            select(ClassSection, func.coalesce(enrolled.c.enrolled, 0))
            .outerjoin(enrolled, enrolled.c.class_id == ClassSection.id)
            .where(ClassSection.campus_id == campus_id)
        )
        if semester_id:
            query = query.where(ClassSection.semester_id == semester_id)
        if course_id:
            query = query.where(ClassSection.course_id == course_id)
        if lecturer_id:
            query = query.where(ClassSection.lecturer_id == lecturer_id)
        if status:
            query = query.where(ClassSection.status == status)

        rows = self.db.execute(
            query.order_by(ClassSection.created_at).offset(skip).limit(limit)
        ).all()
        return [{"class_section": section, "enrolled": count} for section, count in rows]
