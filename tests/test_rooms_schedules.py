from datetime import date

import pytest

from app.core.cache import CacheKeys, CacheService
from app.core.errors import ConflictError, ValidationError
from app.services.room_service import RoomService, slots_overlap
from app.services.schedule_service import ScheduleService, validate_time_range


@pytest.mark.parametrize("a, b, expected", [
    (("09:00", "10:30"), ("10:00", "11:00"), True),
    (("09:00", "10:30"), ("10:30", "12:00"), False),
    (("09:00", "12:00"), ("10:00", "11:00"), True),
    (("13:00", "14:00"), ("09:00", "10:00"), False),
])
def test_slots_overlap(a, b, expected):
    assert slots_overlap(a[0], a[1], b[0], b[1]) is expected
    assert slots_overlap(b[0], b[1], a[0], a[1]) is expected


@pytest.mark.parametrize("start, end, message", [
    ("10:00", "09:00", "before"),
    ("09:00", "09:15", "at least 30"),
    ("08:00", "12:30", "more than 240"),
    ("9:00", "10:00", "Invalid time"),
    ("24:00", "25:00", "Invalid time"),
])
def test_validate_time_range_rejects(start, end, message):
    with pytest.raises(ValidationError, match=message):
        validate_time_range(start, end)


def test_validate_time_range_limits_are_inclusive():
    validate_time_range("09:00", "09:30")
    validate_time_range("08:00", "12:00")


def test_room_names_are_unique_per_campus(db, make, campus):
    service = RoomService(db)
    service.create_room(campus.id, {"name": "LT1", "building": "Main", "capacity": 120})

    with pytest.raises(ConflictError):
        service.create_room(campus.id, {"name": "LT1", "capacity": 10})

    other = make.campus(name="Other")
    assert service.create_room(other.id, {"name": "LT1", "capacity": 10}).name == "LT1"


def test_create_schedule_and_room_conflict(db, make, campus):
    semester = make.semester(campus)
    room = make.room(campus)
    first = make.class_section(campus, semester)
    second = make.class_section(campus, semester)
    service = ScheduleService(db)

    slot = service.create_schedule(campus.id, {
        "class_id": first.id, "room_id": room.id, "day_of_week": 2, "start_time": "09:00", "end_time": "11:00",
    })
    assert slot.day_name == "Tuesday"

    with pytest.raises(ConflictError, match="Room conflict") as exc:
        service.create_schedule(campus.id, {
            "class_id": second.id, "room_id": room.id, "day_of_week": 2, "start_time": "10:00", "end_time": "12:00",
        })
    assert exc.value.details["conflicts"] == [str(slot.id)]


def test_same_room_different_semester_is_free(db, make, campus):
    fall = make.semester(campus)
    spring = make.semester(campus, year=fall.academic_year, name="Spring 2027",
                           start=date(2027, 1, 20), end=date(2027, 5, 30), is_current=False)
    room = make.room(campus)
    service = ScheduleService(db)
    slot = {"room_id": room.id, "day_of_week": 1, "start_time": "09:00", "end_time": "10:00"}

    service.create_schedule(campus.id, dict(slot, class_id=make.class_section(campus, fall).id))
    assert service.create_schedule(campus.id, dict(slot, class_id=make.class_section(campus, spring).id))


def test_lecturer_conflict(db, make, campus):
    semester = make.semester(campus)
    lecturer = make.employee(campus)
    first = make.class_section(campus, semester, lecturer=lecturer)
    second = make.class_section(campus, semester, lecturer=lecturer)
    service = ScheduleService(db)

    service.create_schedule(campus.id, {
        "class_id": first.id, "room_id": make.room(campus).id, "day_of_week": 3, "start_time": "14:00", "end_time": "15:00",
    })
    with pytest.raises(ConflictError, match="Lecturer conflict"):
        service.create_schedule(campus.id, {
            "class_id": second.id, "room_id": make.room(campus).id, "day_of_week": 3, "start_time": "14:30", "end_time": "16:00",
        })


def test_inactive_room_cannot_be_booked(db, make, campus):
    semester = make.semester(campus)
    room = make.room(campus)
    RoomService(db).deactivate_room(campus.id, room.id)

    with pytest.raises(ConflictError) as exc:
        ScheduleService(db).create_schedule(campus.id, {
            "class_id": make.class_section(campus, semester).id, "room_id": room.id,
            "day_of_week": 1, "start_time": "09:00", "end_time": "10:00",
        })
    assert exc.value.details["reason"] == "Room is not active"


def test_room_with_live_schedule_cannot_be_deactivated(db, make, campus):
    semester = make.semester(campus)
    room = make.room(campus)
    make.schedule(campus, make.class_section(campus, semester), room)

    with pytest.raises(ValidationError):
        RoomService(db).deactivate_room(campus.id, room.id)


def test_update_schedule_ignores_its_own_slot(db, make, campus):
    semester = make.semester(campus)
    room = make.room(campus)
    slot = make.schedule(campus, make.class_section(campus, semester), room, start="09:00", end="10:00")

    updated = ScheduleService(db).update_schedule(campus.id, slot.id, {"end_time": "10:30"})
    assert updated.end_time == "10:30"


def test_bulk_create_reports_failures(db, make, campus):
    semester = make.semester(campus)
    room = make.room(campus)
    section = make.class_section(campus, semester)

    result = ScheduleService(db).bulk_create(campus.id, [
        {"class_id": section.id, "room_id": room.id, "day_of_week": 1, "start_time": "09:00", "end_time": "10:00"},
        {"class_id": section.id, "room_id": room.id, "day_of_week": 1, "start_time": "09:30", "end_time": "10:30"},
        {"class_id": section.id, "room_id": room.id, "day_of_week": 2, "start_time": "09:00", "end_time": "10:00"},
    ])

    assert result["created"] == 2
    assert result["errors"] == [{"index": 1, "error": "Room conflict"}]


def test_copy_schedules_to_next_semester(db, make, campus):
    fall = make.semester(campus)
    spring = make.semester(campus, year=fall.academic_year, name="Spring 2027",
                           start=date(2027, 1, 20), end=date(2027, 5, 30), is_current=False)
    course = make.course(campus)
    room = make.room(campus)
    make.schedule(campus, make.class_section(campus, fall, course=course), room, day=4)
    make.schedule(campus, make.class_section(campus, fall), room, day=5)
    target = make.class_section(campus, spring, course=course)

    result = ScheduleService(db).copy_schedules(campus.id, fall.id, spring.id)

    assert result == {"copied": 1, "skipped": 1, "errors": []}
    assert [s.day_of_week for s in ScheduleService(db).list_for_class(campus.id, target.id)] == [4]


def test_lecturer_schedule_grouped_by_day(db, make, campus):
    semester = make.semester(campus)
    lecturer = make.employee(campus)
    section = make.class_section(campus, semester, lecturer=lecturer)
    make.schedule(campus, section, make.room(campus), day=1, start="08:00", end="09:00")
    make.schedule(campus, section, make.room(campus), day=3, start="08:00", end="09:00")

    week = ScheduleService(db).lecturer_schedule(campus.id, lecturer.id, semester.id)

    assert list(week) == ["Monday", "Wednesday"]


def test_room_api_requires_registrar(client, make, campus, headers_for):
    lecturer = make.user()
    make.member(campus, lecturer, "LECTURER")

    response = client.post("/api/rooms", json={"name": "LT9", "capacity": 50}, headers=headers_for(lecturer, campus))
    assert response.status_code == 403


def test_schedule_api_conflict_is_409(client, make, campus, owner, headers_for):
    semester = make.semester(campus)
    room = make.room(campus)
    make.schedule(campus, make.class_section(campus, semester), room, day=1, start="09:00", end="10:00")

    response = client.post("/api/schedules", json={
        "class_id": str(make.class_section(campus, semester).id),
        "room_id": str(room.id),
        "day_of_week": 1,
        "start_time": "09:30",
        "end_time": "10:30",
    }, headers=headers_for(owner, campus))

    assert response.status_code == 409
    assert response.json()["code"] == "CONFLICT"


class RecordingCache(CacheService):
    def __init__(self):
        super().__init__(enabled=False)
        self.deleted = []

    def delete(self, key):
        self.deleted.append(key)
        return True

    def delete_pattern(self, pattern):
        return 0


def test_moving_a_slot_refreshes_both_lecturers(db, make, campus):
    semester = make.semester(campus)
    old_lecturer = make.employee(campus)
    new_lecturer = make.employee(campus)
    before = make.class_section(campus, semester, lecturer=old_lecturer)
    after = make.class_section(campus, semester, lecturer=new_lecturer)
    slot = make.schedule(campus, before, make.room(campus))
    cache = RecordingCache()

    ScheduleService(db, cache=cache).update_schedule(campus.id, slot.id, {"class_id": after.id})

    assert set(cache.deleted) == {
        CacheKeys.lecturer_schedule(old_lecturer.id, semester.id),
        CacheKeys.lecturer_schedule(new_lecturer.id, semester.id),
    }
