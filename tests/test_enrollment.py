from datetime import date

import pytest

from app.core.errors import ConflictError, ForbiddenError, ValidationError
from app.models import Enrollment, PrerequisiteOverride
from app.services.academic_service import AcademicService
from app.services.enrollment_service import EnrollmentService
from app.services.student_service import StudentService


@pytest.fixture
def term(make, campus):
    semester = make.semester(campus)
    make.open_registration(campus, semester)
    return semester


def test_enroll_registers_student(db, make, campus, term):
    student = make.student(campus)
    section = make.class_section(campus, term)

    enrollment = EnrollmentService(db).enroll(campus.id, student.id, section.id)

    assert enrollment.status == "REGISTERED"
    assert enrollment.semester_id == term.id


def test_unknown_student_is_rejected(db, make, campus, term):
    other_campus = make.campus(name="Other")
    outsider = make.student(other_campus)
    section = make.class_section(campus, term)

    with pytest.raises(ValidationError, match="Student not found"):
        EnrollmentService(db).enroll(campus.id, outsider.id, section.id)


def test_inactive_student_cannot_enroll(db, make, campus, term):
    student = make.student(campus, status="SUSPENDED")
    section = make.class_section(campus, term)

    with pytest.raises(ValidationError, match="SUSPENDED"):
        EnrollmentService(db).enroll(campus.id, student.id, section.id)


def test_registration_hold_blocks_enrollment(db, make, campus, term, owner):
    student = make.student(campus)
    section = make.class_section(campus, term)
    StudentService(db).place_hold(campus.id, student.id, {"type": "FINANCIAL", "reason": "Unpaid fees"}, placed_by=owner.id)

    with pytest.raises(ForbiddenError, match="FINANCIAL"):
        EnrollmentService(db).enroll(campus.id, student.id, section.id)


def test_resolved_hold_no_longer_blocks(db, make, campus, term, owner):
    student = make.student(campus)
    section = make.class_section(campus, term)
    students = StudentService(db)
    hold = students.place_hold(campus.id, student.id, {"type": "FINANCIAL", "reason": "Unpaid fees"}, placed_by=owner.id)
    students.resolve_hold(campus.id, hold.id, owner.id, notes="Paid")

    assert EnrollmentService(db).enroll(campus.id, student.id, section.id).status == "REGISTERED"


def test_closed_class_is_rejected(db, make, campus, term):
    student = make.student(campus)
    section = make.class_section(campus, term)
    section.status = "CLOSED"
    db.commit()

    with pytest.raises(ValidationError, match="Class is CLOSED"):
        EnrollmentService(db).enroll(campus.id, student.id, section.id)


def test_registration_window_must_be_open(db, make, campus):
    semester = make.semester(campus)
    student = make.student(campus)
    section = make.class_section(campus, semester)

    window = AcademicService(db).is_registration_open(semester.id)
    assert window == {"is_open": False, "period": None, "message": "No active registration period"}

    with pytest.raises(ValidationError, match="No active registration period"):
        EnrollmentService(db).enroll(campus.id, student.id, section.id)


def test_duplicate_enrollment(db, make, campus, term):
    student = make.student(campus)
    section = make.class_section(campus, term)
    service = EnrollmentService(db)
    service.enroll(campus.id, student.id, section.id)

    with pytest.raises(ConflictError):
        service.enroll(campus.id, student.id, section.id)


def test_dropped_enrollment_can_be_repeated(db, make, campus, term):
    student = make.student(campus)
    section = make.class_section(campus, term)
    service = EnrollmentService(db)
    first = service.enroll(campus.id, student.id, section.id)
    service.drop(campus.id, first.id)

    assert service.enroll(campus.id, student.id, section.id).id != first.id


def test_capacity_is_enforced(db, make, campus, term):
    section = make.class_section(campus, term, capacity=1)
    service = EnrollmentService(db)
    service.enroll(campus.id, make.student(campus).id, section.id)

    with pytest.raises(ValidationError, match="Class is full"):
        service.enroll(campus.id, make.student(campus).id, section.id)


def test_dropped_seats_are_released(db, make, campus, term):
    section = make.class_section(campus, term, capacity=1)
    service = EnrollmentService(db)
    first = service.enroll(campus.id, make.student(campus).id, section.id)
    service.drop(campus.id, first.id)

    assert service.enroll(campus.id, make.student(campus).id, section.id).status == "REGISTERED"


def test_missing_prerequisites_are_reported(db, make, campus, term):
    intro = make.course(campus, code="CS101")
    advanced = make.course(campus, code="CS201", prerequisites=[intro])
    section = make.class_section(campus, term, course=advanced)
    student = make.student(campus)

    with pytest.raises(ValidationError) as exc:
        EnrollmentService(db).enroll(campus.id, student.id, section.id)

    assert exc.value.details == {"missing": ["CS101"]}


def test_completed_prerequisite_satisfies_rule(db, make, campus, term):
    intro = make.course(campus, code="CS101")
    advanced = make.course(campus, code="CS201", prerequisites=[intro])
    earlier = make.semester(campus, year=term.academic_year, name="Spring 2026", start=date(2026, 2, 1), end=date(2026, 6, 30), is_current=False)
    student = make.student(campus)
    make.enrollment(campus, student, make.class_section(campus, earlier, course=intro), status="COMPLETED")
    section = make.class_section(campus, term, course=advanced)

    assert EnrollmentService(db).enroll(campus.id, student.id, section.id).status == "REGISTERED"


def test_prerequisite_override_needs_reason(db, make, campus, term, owner):
    intro = make.course(campus, code="CS101")
    advanced = make.course(campus, code="CS201", prerequisites=[intro])
    section = make.class_section(campus, term, course=advanced)
    student = make.student(campus)
    service = EnrollmentService(db)

    with pytest.raises(ValidationError, match="reason"):
        service.enroll(campus.id, student.id, section.id, override_prerequisites=True)

    enrollment = service.enroll(
        campus.id, student.id, section.id,
        override_prerequisites=True, override_reason="Transfer credit", enrolled_by=owner.id
    )
    assert enrollment.status == "REGISTERED"

    override = db.query(PrerequisiteOverride).one()
    assert override.prerequisite_id == intro.id
    assert override.approved_by_id == owner.id


def test_schedule_conflict_is_rejected(db, make, campus, term):
    student = make.student(campus)
    room_a, room_b = make.room(campus), make.room(campus)
    first = make.class_section(campus, term)
    second = make.class_section(campus, term)
    make.schedule(campus, first, room_a, day=1, start="09:00", end="10:30")
    make.schedule(campus, second, room_b, day=1, start="10:00", end="11:30")
    service = EnrollmentService(db)
    service.enroll(campus.id, student.id, first.id)

    with pytest.raises(ConflictError) as exc:
        service.enroll(campus.id, student.id, second.id)

    assert exc.value.details["conflicts"][0]["start_time"] == "09:00"


def test_back_to_back_classes_do_not_conflict(db, make, campus, term):
    student = make.student(campus)
    room = make.room(campus)
    first = make.class_section(campus, term)
    second = make.class_section(campus, term)
    make.schedule(campus, first, room, day=1, start="09:00", end="10:30")
    make.schedule(campus, second, room, day=1, start="10:30", end="12:00")
    service = EnrollmentService(db)
    service.enroll(campus.id, student.id, first.id)

    assert service.enroll(campus.id, student.id, second.id).status == "REGISTERED"


def test_hold_is_checked_before_capacity(db, make, campus, term, owner):
    section = make.class_section(campus, term, capacity=1)
    service = EnrollmentService(db)
    service.enroll(campus.id, make.student(campus).id, section.id)
    blocked = make.student(campus)
    StudentService(db).place_hold(campus.id, blocked.id, {"type": "ACADEMIC", "reason": "Probation"}, placed_by=owner.id)

    with pytest.raises(ForbiddenError):
        service.enroll(campus.id, blocked.id, section.id)


def test_drop_only_registered(db, make, campus, term):
    student = make.student(campus)
    section = make.class_section(campus, term)
    enrollment = make.enrollment(campus, student, section, status="COMPLETED")

    with pytest.raises(ValidationError):
        EnrollmentService(db).drop(campus.id, enrollment.id)


def test_bulk_enroll_reports_each_student(db, make, campus, term):
    section = make.class_section(campus, term, capacity=2)
    students = [make.student(campus) for _ in range(3)]

    result = EnrollmentService(db).bulk_enroll(campus.id, [s.id for s in students], section.id)

    assert result["total"] == 3
    assert result["successful"] == 2
    assert result["failed"] == 1
    assert result["results"][2]["error"] == "Class is full"
    assert db.query(Enrollment).count() == 2


def test_available_classes_excludes_full_and_enrolled(db, make, campus, term):
    student = make.student(campus)
    taken = make.class_section(campus, term)
    full = make.class_section(campus, term, capacity=1)
    open_section = make.class_section(campus, term)
    service = EnrollmentService(db)
    service.enroll(campus.id, student.id, taken.id)
    service.enroll(campus.id, make.student(campus).id, full.id)

    available = service.available_classes(campus.id, student.id, term.id)

    assert [item["class_section"].id for item in available] == [open_section.id]
    assert available[0]["seats_left"] == 40
