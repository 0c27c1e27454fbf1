# app/models/grading.py - Grade scales, weighted components and score entries
from __future__ import annotations
import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import String, Boolean, Numeric, DateTime, ForeignKey, CheckConstraint, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base


class GradeScale(Base):
    __tablename__ = "grade_scales"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    campus_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    bands: Mapped[list["GradeScaleBand"]] = relationship(
        "GradeScaleBand",
        back_populates="scale",
        cascade="all, delete-orphan",
        order_by="GradeScaleBand.min_percentage.desc()"
    )


class GradeScaleBand(Base):
    __tablename__ = "grade_scale_bands"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    scale_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("grade_scales.id", ondelete="CASCADE"), nullable=False, index=True)
    letter: Mapped[str] = mapped_column(String(4), nullable=False)
    min_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    max_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    points: Mapped[Decimal] = mapped_column(Numeric(3, 2), nullable=False)

    scale: Mapped["GradeScale"] = relationship("GradeScale", back_populates="bands")

    __table_args__ = (
        CheckConstraint("min_percentage >= 0 AND max_percentage <= 100", name="ck_band_range"),
        CheckConstraint("min_percentage <= max_percentage", name="ck_band_order"),
    )


class GradeComponent(Base):
    __tablename__ = "grade_components"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    campus_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    class_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("class_sections.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    component_type: Mapped[str] = mapped_column(String(16), nullable=False, default="OTHER")
    weight: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    max_score: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("100"))

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    entries: Mapped[list["GradeEntry"]] = relationship("GradeEntry", back_populates="component", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("weight > 0 AND weight <= 100", name="ck_component_weight"),
        CheckConstraint("max_score > 0", name="ck_component_max_score"),
        CheckConstraint(
            "component_type IN ('QUIZ','ASSIGNMENT','MIDTERM','FINAL','PROJECT','LAB','PARTICIPATION','OTHER')",
            name="ck_component_type"
        ),
    )


class GradeEntry(Base):
    __tablename__ = "grade_entries"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    campus_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    enrollment_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("enrollments.id", ondelete="CASCADE"), nullable=False, index=True)
    component_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("grade_components.id", ondelete="CASCADE"), nullable=False, index=True)
    score: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    remarks: Mapped[str | None] = mapped_column(String(500))
    graded_by_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"))

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    enrollment: Mapped["Enrollment"] = relationship("Enrollment", back_populates="grade_entries")
    component: Mapped["GradeComponent"] = relationship("GradeComponent", back_populates="entries")

    __table_args__ = (
        Index("uq_grade_entry", "enrollment_id", "component_id", unique=True),
        CheckConstraint("score >= 0", name="ck_grade_entry_score"),
    )
