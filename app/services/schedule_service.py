# app/services/schedule_service.py - Weekly class timetable with conflict checks
from sqlalchemy.orm import Session
from sqlalchemy import select
from typing import Any, Dict, List, Optional
from uuid import UUID
import re
import logging

from app.core.cache import CacheService, CacheKeys, cache as default_cache
from app.core.errors import AppError, ConflictError, NotFoundError, ValidationError
from app.models.class_model import ClassSection
from app.models.room import Schedule, DAYS_OF_WEEK
from app.services.room_service import RoomService

logger = logging.getLogger(__name__)

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
MIN_SLOT_MINUTES = 30
MAX_SLOT_MINUTES = 240


def to_minutes(value: str) -> int:
    match = TIME_PATTERN.match(value or "")
    if not match:
        raise ValidationError(f"Invalid time '{value}'. Use HH:MM")
    return int(match.group(1)) * 60 + int(match.group(2))


def validate_time_range(start_time: str, end_time: str) -> None:
    start = to_minutes(start_time)
    end = to_minutes(end_time)
    if start >= end:
        raise ValidationError("Start time must be before end time")
    duration = end - start
    if duration < MIN_SLOT_MINUTES:
        raise ValidationError(f"A class must last at least {MIN_SLOT_MINUTES} minutes")
    if duration > MAX_SLOT_MINUTES:
        raise ValidationError(f"A class cannot last more than {MAX_SLOT_MINUTES} minutes")


class ScheduleService:
    def __init__(self, db: Session, cache: Optional[CacheService] = None):
        self.db = db
        self.cache = cache or default_cache
        self.rooms = RoomService(db)

    def _get_class(self, campus_id: UUID, class_id: UUID) -> ClassSection:
        class_section = self.db.execute(
            select(ClassSection).where(ClassSection.id == class_id, ClassSection.campus_id == campus_id)
        ).scalar_one_or_none()
        if class_section is None:
            raise NotFoundError("Class", class_id)
        return class_section

    def get_schedule(self, campus_id: UUID, schedule_id: UUID) -> Schedule:
        schedule = self.db.execute(
            select(Schedule).where(Schedule.id == schedule_id, Schedule.campus_id == campus_id)
        ).scalar_one_or_none()
        if schedule is None:
            raise NotFoundError("Schedule", schedule_id)
        return schedule

    def _lecturer_conflicts(
        self,
        class_section: ClassSection,
        day_of_week: int,
        start_time: str,
        end_time: str,
        exclude_schedule_id: Optional[UUID] = None,
    ) -> List[Schedule]:
        if class_section.lecturer_id is None:
            return []

        query = (
            select(Schedule)
            .join(ClassSection, ClassSection.id == Schedule.class_id)
            .where(
                ClassSection.lecturer_id == class_section.lecturer_id,
                ClassSection.semester_id == class_section.semester_id,
                ClassSection.status != "CANCELLED",
                Schedule.day_of_week == day_of_week,
                Schedule.start_time < end_time,
                Schedule.end_time > start_time,
            )
        )
        if exclude_schedule_id:
            query = query.where(Schedule.id != exclude_schedule_id)
        return list(self.db.execute(query).scalars().all())

    def _check_slot(
        self,
        campus_id: UUID,
        class_section: ClassSection,
        room_id: UUID,
        day_of_week: int,
        start_time: str,
        end_time: str,
        exclude_schedule_id: Optional[UUID] = None,
    ) -> None:
        if class_section.status == "CANCELLED":
            raise ValidationError("Cannot schedule a cancelled class")
        if not 0 <= day_of_week <= 6:
            raise ValidationError("Day of week must be between 0 (Sunday) and 6 (Saturday)")
        validate_time_range(start_time, end_time)

        availability = self.rooms.check_availability(
            campus_id, room_id, day_of_week, start_time, end_time,
            exclude_schedule_id, semester_id=class_section.semester_id
        )
        if not availability["available"]:
            raise ConflictError(
                "Room conflict",
                details={
                    "reason": availability["reason"],
                    "conflicts": [str(s.id) for s in availability["conflicts"]],
                }
            )

        lecturer_conflicts = self._lecturer_conflicts(
            class_section, day_of_week, start_time, end_time, exclude_schedule_id
        )
        if lecturer_conflicts:
            raise ConflictError(
                "Lecturer conflict",
                details={"conflicts": [str(s.id) for s in lecturer_conflicts]}
            )

    def _invalidate(self, class_section: ClassSection) -> None:
        if class_section.lecturer_id:
            self.cache.delete(CacheKeys.lecturer_schedule(class_section.lecturer_id, class_section.semester_id))
        self.cache.delete_pattern(f"schedule:student:*:{class_section.semester_id}")

    def create_schedule(self, campus_id: UUID, data: Dict[str, Any], commit: bool = True) -> Schedule:
        class_section = self._get_class(campus_id, data["class_id"])
        self._check_slot(
            campus_id, class_section, data["room_id"],
            data["day_of_week"], data["start_time"], data["end_time"]
        )

        schedule = Schedule(campus_id=campus_id, **data)
        self.db.add(schedule)
        if commit:
            self.db.commit()
            self.db.refresh(schedule)
        else:
            self.db.flush()

        self._invalidate(class_section)
        logger.info(
            f"Scheduled class {class_section.id} on {DAYS_OF_WEEK[schedule.day_of_week]} "
            f"{schedule.start_time}-{schedule.end_time}"
        )
        return schedule

    def update_schedule(self, campus_id: UUID, schedule_id: UUID, changes: Dict[str, Any]) -> Schedule:
        schedule = self.get_schedule(campus_id, schedule_id)
        previous_class = schedule.class_section
        class_section = self._get_class(campus_id, changes.get("class_id", schedule.class_id))

        self._check_slot(
            campus_id,
            class_section,
            changes.get("room_id", schedule.room_id),
            changes.get("day_of_week", schedule.day_of_week),
            changes.get("start_time", schedule.start_time),
            changes.get("end_time", schedule.end_time),
            exclude_schedule_id=schedule.id,
        )

        for field, value in changes.items():
            setattr(schedule, field, value)
        self.db.commit()
        self.db.refresh(schedule)
        self._invalidate(class_section)
        if previous_class.id != class_section.id:
            self._invalidate(previous_class)
        return schedule

    def delete_schedule(self, campus_id: UUID, schedule_id: UUID) -> None:
        schedule = self.get_schedule(campus_id, schedule_id)
        class_section = schedule.class_section
        self.db.delete(schedule)
        self.db.commit()
        self._invalidate(class_section)

    def list_for_class(self, campus_id: UUID, class_id: UUID) -> List[Schedule]:
        self._get_class(campus_id, class_id)
        return list(self.db.execute(
            select(Schedule)
            .where(Schedule.class_id == class_id)
            .order_by(Schedule.day_of_week, Schedule.start_time)
        ).scalars().all())

    def lecturer_schedule(self, campus_id: UUID, lecturer_id: UUID, semester_id: UUID) -> Dict[str, List[Dict[str, Any]]]:
        """Weekly timetable of a lecturer grouped by day name"""
        def fetch():
            rows = self.db.execute(
                select(Schedule)
                .join(ClassSection, ClassSection.id == Schedule.class_id)
                .where(
                    ClassSection.campus_id == campus_id,
                    ClassSection.lecturer_id == lecturer_id,
                    ClassSection.semester_id == semester_id,
                    ClassSection.status != "CANCELLED",
                )
                .order_by(Schedule.day_of_week, Schedule.start_time)
            ).scalars().all()

            week: Dict[str, List[Dict[str, Any]]] = {}
            for slot in rows:
                week.setdefault(slot.day_name, []).append({
                    "schedule_id": str(slot.id),
                    "class_id": str(slot.class_id),
                    "course_code": slot.class_section.course.code,
                    "course_name": slot.class_section.course.name,
                    "section": slot.class_section.section,
                    "room": slot.room.name,
                    "start_time": slot.start_time,
                    "end_time": slot.end_time,
                })
            return week

        return self.cache.get_or_set(CacheKeys.lecturer_schedule(lecturer_id, semester_id), fetch)

    def bulk_create(self, campus_id: UUID, items: List[Dict[str, Any]]) -> Dict[str, Any]:
        created = 0
        errors = []
        for index, item in enumerate(items):
            try:
                with self.db.begin_nested():
                    self.create_schedule(campus_id, dict(item), commit=False)
                created += 1
            except AppError as e:
                errors.append({"index": index, "error": e.message})
        self.db.commit()
        return {"created": created, "failed": len(errors), "errors": errors}

    def copy_schedules(self, campus_id: UUID, from_semester_id: UUID, to_semester_id: UUID) -> Dict[str, Any]:
        """Recreate last semester's timetable for the matching class sections"""
        source_slots = self.db.execute(
            select(Schedule)
            .join(ClassSection, ClassSection.id == Schedule.class_id)
            .where(
                ClassSection.campus_id == campus_id,
                ClassSection.semester_id == from_semester_id,
            )
            .order_by(Schedule.day_of_week, Schedule.start_time)
        ).scalars().all()

        copied = 0
        skipped = 0
        errors = []
        for slot in source_slots:
            source_class = slot.class_section
            target = self.db.execute(
                select(ClassSection).where(
                    ClassSection.campus_id == campus_id,
                    ClassSection.semester_id == to_semester_id,
                    ClassSection.course_id == source_class.course_id,
                    ClassSection.section == source_class.section,
                )
            ).scalar_one_or_none()
            if target is None:
                skipped += 1
                continue

            try:
                with self.db.begin_nested():
                    self.create_schedule(campus_id, {
                        "class_id": target.id,
                        "room_id": slot.room_id,
                        "day_of_week": slot.day_of_week,
                        "start_time": slot.start_time,
                        "end_time": slot.end_time,
                    }, commit=False)
                copied += 1
            except AppError as e:
                errors.append({
                    "schedule_id": str(slot.id),
                    "course_code": source_class.course.code,
                    "error": e.message,
                })

        self.db.commit()
        logger.info(f"Copied {copied} schedules from {from_semester_id} to {to_semester_id}")
        return {"copied": copied, "skipped": skipped, "errors": errors}
