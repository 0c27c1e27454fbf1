# app/models/enrollment.py - A student's registration in a class section
from __future__ import annotations
import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import String, Boolean, Numeric, ForeignKey, DateTime, CheckConstraint, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base


class Enrollment(Base):
    """
    Enrollment links a student to a class section for a semester.
    The final grade columns are written when grades are finalized.
    """
    __tablename__ = "enrollments"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    campus_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    student_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    class_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("class_sections.id", ondelete="RESTRICT"), nullable=False, index=True)
    semester_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("semesters.id"), nullable=False, index=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="REGISTERED")
    enrolled_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    dropped_at: Mapped[datetime | None] = mapped_column(DateTime)

    final_percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2))
    final_grade: Mapped[str | None] = mapped_column(String(4))
    grade_points: Mapped[Decimal | None] = mapped_column(Numeric(3, 2))
    is_finalized: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime)
    finalized_by_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"))

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    student: Mapped["Student"] = relationship("Student", back_populates="enrollments")
    class_section: Mapped["ClassSection"] = relationship("ClassSection", back_populates="enrollments")
    semester: Mapped["Semester"] = relationship("Semester")
    grade_entries: Mapped[list["GradeEntry"]] = relationship("GradeEntry", back_populates="enrollment", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_enrollment_student_semester", "student_id", "semester_id"),
        CheckConstraint(
            "status IN ('REGISTERED','DROPPED','COMPLETED','WITHDRAWN','FAILED')",
            name="ck_enrollment_status"
        ),
    )


class PrerequisiteOverride(Base):
    """Recorded permission to take a course without its prerequisite"""
    __tablename__ = "prerequisite_overrides"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    campus_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    student_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("courses.id"), nullable=False)
    prerequisite_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("courses.id"), nullable=False)
    reason: Mapped[str] = mapped_column(String(500), nullable=False)
    approved_by_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"))

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("uq_prerequisite_override", "student_id", "course_id", "prerequisite_id", unique=True),
    )
