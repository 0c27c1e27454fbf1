# app/models/academic.py - Academic years, semesters and registration windows
from __future__ import annotations
import uuid
from datetime import date, datetime
from decimal import Decimal
from sqlalchemy import (
    String, Boolean, ForeignKey, Date, DateTime, Numeric, Index, CheckConstraint
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base


class AcademicYear(Base):
    __tablename__ = "academic_years"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    campus_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(32), nullable=False)  # "2025/2026"
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_current: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    semesters: Mapped[list["Semester"]] = relationship("Semester", back_populates="academic_year", cascade="all, delete-orphan")

    __table_args__ = (
        Index("uq_academic_year_per_campus", "campus_id", "name", unique=True),
        CheckConstraint("end_date > start_date", name="ck_academic_year_dates"),
    )


class Semester(Base):
    __tablename__ = "semesters"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    campus_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True, nullable=False)
    academic_year_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("academic_years.id", ondelete="CASCADE"),
        index=True,
        nullable=False
    )
    name: Mapped[str] = mapped_column(String(48), nullable=False)  # "Fall 2025"
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_current: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    academic_year: Mapped["AcademicYear"] = relationship("AcademicYear", back_populates="semesters")
    registration_periods: Mapped[list["RegistrationPeriod"]] = relationship(
        "RegistrationPeriod",
        back_populates="semester",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("uq_semester_per_year", "campus_id", "academic_year_id", "name", unique=True),
        CheckConstraint("end_date > start_date", name="ck_semester_dates"),
    )


class RegistrationPeriod(Base):
    __tablename__ = "registration_periods"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    campus_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True, nullable=False)
    semester_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("semesters.id", ondelete="CASCADE"),
        index=True,
        nullable=False
    )
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="REGULAR")  # REGULAR|LATE|DROP_ADD
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    late_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    semester: Mapped["Semester"] = relationship("Semester", back_populates="registration_periods")

    def contains(self, moment: datetime) -> bool:
        return self.start_date <= moment <= self.end_date

    __table_args__ = (
        CheckConstraint("type IN ('REGULAR','LATE','DROP_ADD')", name="ck_registration_period_type"),
        CheckConstraint("late_fee >= 0", name="ck_registration_period_late_fee"),
    )
