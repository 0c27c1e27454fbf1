# app/services/academic_service.py - Academic calendar and registration windows
from sqlalchemy.orm import Session
from sqlalchemy import select, update
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from app.core.cache import CacheService, CacheKeys, cache as default_cache
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.academic import AcademicYear, Semester, RegistrationPeriod

logger = logging.getLogger(__name__)

REGISTRATION_PERIOD_TYPES = ("REGULAR", "LATE", "DROP_ADD")


class AcademicService:
    def __init__(self, db: Session, cache: Optional[CacheService] = None):
        self.db = db
        self.cache = cache or default_cache

    # Academic years

    def create_year(self, campus_id: UUID, data: Dict[str, Any]) -> AcademicYear:
        if data["end_date"] <= data["start_date"]:
            raise ValidationError("End date must be after start date")

        existing = self.db.execute(
            select(AcademicYear).where(
                AcademicYear.campus_id == campus_id,
                AcademicYear.name == data["name"]
            )
        ).scalar_one_or_none()
        if existing:
            raise ConflictError(f"Academic year '{data['name']}' already exists")

        is_current = data.pop("is_current", False)
        year = AcademicYear(campus_id=campus_id, **data)
        self.db.add(year)
        self.db.flush()

        if is_current:
            self._make_current_year(campus_id, year)

        self.db.commit()
        self.db.refresh(year)
        logger.info(f"Academic year created: {year.name}")
        return year

    def list_years(self, campus_id: UUID) -> List[AcademicYear]:
        return list(self.db.execute(
            select(AcademicYear)
            .where(AcademicYear.campus_id == campus_id)
            .order_by(AcademicYear.start_date.desc())
        ).scalars().all())

    def get_year(self, campus_id: UUID, year_id: UUID) -> AcademicYear:
        year = self.db.execute(
            select(AcademicYear).where(AcademicYear.id == year_id, AcademicYear.campus_id == campus_id)
        ).scalar_one_or_none()
        if year is None:
            raise NotFoundError("Academic year", year_id)
        return year

    def _make_current_year(self, campus_id: UUID, year: AcademicYear) -> None:
        self.db.execute(
            update(AcademicYear)
            .where(AcademicYear.campus_id == campus_id, AcademicYear.id != year.id)
            .values(is_current=False)
        )
        year.is_current = True
        self.cache.delete(CacheKeys.current_year(campus_id))

    def set_current_year(self, campus_id: UUID, year_id: UUID) -> AcademicYear:
        year = self.get_year(campus_id, year_id)
        self._make_current_year(campus_id, year)
        self.db.commit()
        self.db.refresh(year)
        return year

    def get_current_year(self, campus_id: UUID) -> Optional[AcademicYear]:
        return self.db.execute(
            select(AcademicYear).where(
                AcademicYear.campus_id == campus_id,
                AcademicYear.is_current.is_(True)
            )
        ).scalar_one_or_none()

    # Semesters

    def create_semester(self, campus_id: UUID, data: Dict[str, Any]) -> Semester:
        year = self.get_year(campus_id, data["academic_year_id"])

        if data["end_date"] <= data["start_date"]:
            raise ValidationError("End date must be after start date")
        if data["start_date"] < year.start_date or data["end_date"] > year.end_date:
            raise ValidationError("Semester dates must fall within the academic year")

        is_current = data.pop("is_current", False)
        semester = Semester(campus_id=campus_id, **data)
        self.db.add(semester)
        self.db.flush()

        if is_current:
            self._make_current_semester(campus_id, semester)

        self.db.commit()
        self.db.refresh(semester)
        logger.info(f"Semester created: {semester.name} ({year.name})")
        return semester

    def list_semesters(self, campus_id: UUID, academic_year_id: Optional[UUID] = None) -> List[Semester]:
        query = select(Semester).where(Semester.campus_id == campus_id)
        if academic_year_id:
            query = query.where(Semester.academic_year_id == academic_year_id)
        return list(self.db.execute(query.order_by(Semester.start_date)).scalars().all())

    def get_semester(self, campus_id: UUID, semester_id: UUID) -> Semester:
        semester = self.db.execute(
            select(Semester).where(Semester.id == semester_id, Semester.campus_id == campus_id)
        ).scalar_one_or_none()
        if semester is None:
            raise NotFoundError("Semester", semester_id)
        return semester

    def _make_current_semester(self, campus_id: UUID, semester: Semester) -> None:
        self.db.execute(
            update(Semester)
            .where(Semester.campus_id == campus_id, Semester.id != semester.id)
            .values(is_current=False)
        )
        semester.is_current = True
        self.cache.delete(CacheKeys.current_semester(campus_id))

    def set_current_semester(self, campus_id: UUID, semester_id: UUID) -> Semester:
        semester = self.get_semester(campus_id, semester_id)
        self._make_current_semester(campus_id, semester)
        self.db.commit()
        self.db.refresh(semester)
        return semester

    def get_current_semester(self, campus_id: UUID) -> Optional[Semester]:
        """Current semester; its id is cached per campus"""
        def fetch():
            current = self.db.execute(
                select(Semester.id).where(
                    Semester.campus_id == campus_id,
                    Semester.is_current.is_(True)
                )
            ).scalar_one_or_none()
            return {"id": str(current)} if current else None

        snapshot = self.cache.get_or_set(CacheKeys.current_semester(campus_id), fetch)
        if not snapshot:
            return None

        semester = self.db.get(Semester, UUID(snapshot["id"]))
        if semester is None or not semester.is_current:
            # stale entry
            self.cache.delete(CacheKeys.current_semester(campus_id))
            return None
        return semester

    # Registration periods

    def _check_period_overlap(
        self,
        campus_id: UUID,
        semester_id: UUID,
        period_type: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[UUID] = None,
    ) -> None:
        query = select(RegistrationPeriod).where(
            RegistrationPeriod.campus_id == campus_id,
            RegistrationPeriod.semester_id == semester_id,
            RegistrationPeriod.type == period_type,
            RegistrationPeriod.is_active.is_(True),
            RegistrationPeriod.start_date < end,
            RegistrationPeriod.end_date > start,
        )
        if exclude_id:
            query = query.where(RegistrationPeriod.id != exclude_id)

        if self.db.execute(query).scalars().first():
            raise ConflictError(f"An active {period_type} registration period already overlaps these dates")

    def create_registration_period(self, campus_id: UUID, data: Dict[str, Any]) -> RegistrationPeriod:
        self.get_semester(campus_id, data["semester_id"])

        period_type = data.get("type", "REGULAR")
        if period_type not in REGISTRATION_PERIOD_TYPES:
            raise ValidationError(f"Invalid registration period type '{period_type}'")
        if data["end_date"] <= data["start_date"]:
            raise ValidationError("End date must be after start date")

        if data.get("is_active", True):
            self._check_period_overlap(
                campus_id, data["semester_id"], period_type, data["start_date"], data["end_date"]
            )

        period = RegistrationPeriod(campus_id=campus_id, **data)
        self.db.add(period)
        self.db.commit()
        self.db.refresh(period)

        logger.info(f"Registration period {period.type} created for semester {period.semester_id}")
        return period

    def get_registration_period(self, campus_id: UUID, period_id: UUID) -> RegistrationPeriod:
        period = self.db.execute(
            select(RegistrationPeriod).where(
                RegistrationPeriod.id == period_id,
                RegistrationPeriod.campus_id == campus_id
            )
        ).scalar_one_or_none()
        if period is None:
            raise NotFoundError("Registration period", period_id)
        return period

    def update_registration_period(self, campus_id: UUID, period_id: UUID, changes: Dict[str, Any]) -> RegistrationPeriod:
        period = self.get_registration_period(campus_id, period_id)

        start = changes.get("start_date", period.start_date)
        end = changes.get("end_date", period.end_date)
        period_type = changes.get("type", period.type)
        is_active = changes.get("is_active", period.is_active)

        if period_type not in REGISTRATION_PERIOD_TYPES:
            raise ValidationError(f"Invalid registration period type '{period_type}'")
        if end <= start:
            raise ValidationError("End date must be after start date")
        if is_active:
            self._check_period_overlap(campus_id, period.semester_id, period_type, start, end, exclude_id=period.id)

        for field, value in changes.items():
            setattr(period, field, value)

        self.db.commit()
        self.db.refresh(period)
        return period

    def list_registration_periods(self, campus_id: UUID, semester_id: UUID) -> List[RegistrationPeriod]:
        return list(self.db.execute(
            select(RegistrationPeriod)
            .where(
                RegistrationPeriod.campus_id == campus_id,
                RegistrationPeriod.semester_id == semester_id
            )
            .order_by(RegistrationPeriod.start_date)
        ).scalars().all())

    def deactivate_registration_period(self, campus_id: UUID, period_id: UUID) -> RegistrationPeriod:
        period = self.get_registration_period(campus_id, period_id)
        period.is_active = False
        self.db.commit()
        self.db.refresh(period)
        return period

    def delete_registration_period(self, campus_id: UUID, period_id: UUID) -> None:
        period = self.get_registration_period(campus_id, period_id)
        self.db.delete(period)
        self.db.commit()

    def is_registration_open(
        self,
        semester_id: UUID,
        period_type: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Check whether enrollment actions are allowed right now.

        Returns:
            {"is_open": bool, "period": RegistrationPeriod | None, "message": str}
        """
        at = at or datetime.utcnow()

        query = select(RegistrationPeriod).where(
            RegistrationPeriod.semester_id == semester_id,
            RegistrationPeriod.is_active.is_(True)
        )
        if period_type:
            query = query.where(RegistrationPeriod.type == period_type)
        periods = self.db.execute(query.order_by(RegistrationPeriod.start_date)).scalars().all()

        for period in periods:
            if period.contains(at):
                return {"is_open": True, "period": period, "message": f"{period.type} registration is open"}

        upcoming = [period for period in periods if period.start_date > at]
        if upcoming:
            opens = upcoming[0].start_date
            return {
                "is_open": False,
                "period": upcoming[0],
                "message": f"Registration opens on {opens.strftime('%Y-%m-%d %H:%M')}",
            }

        return {"is_open": False, "period": None, "message": "No active registration period"}
