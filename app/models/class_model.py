# app/models/class_model.py - Class sections: a course offered in a semester
from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy import String, Integer, DateTime, ForeignKey, CheckConstraint, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base


class ClassSection(Base):
    __tablename__ = "class_sections"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    campus_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    course_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("courses.id"), nullable=False, index=True)
    semester_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("semesters.id"), nullable=False, index=True)
    lecturer_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("employees.id"), index=True)
    section: Mapped[str] = mapped_column(String(8), nullable=False, default="A")
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=40)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="OPEN")  # OPEN|CLOSED|CANCELLED

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    course: Mapped["Course"] = relationship("Course")
    semester: Mapped["Semester"] = relationship("Semester")
    lecturer: Mapped["Employee | None"] = relationship("Employee")
    schedules: Mapped[list["Schedule"]] = relationship("Schedule", back_populates="class_section", cascade="all, delete-orphan")
    enrollments: Mapped[list["Enrollment"]] = relationship("Enrollment", back_populates="class_section")

    __table_args__ = (
        CheckConstraint("status IN ('OPEN','CLOSED','CANCELLED')", name="ck_class_section_status"),
        CheckConstraint("capacity > 0", name="ck_class_section_capacity"),
        Index("uq_class_section", "campus_id", "course_id", "semester_id", "section", unique=True),
    )
