from datetime import date

import pytest

from app.core.errors import ConflictError, ValidationError
from app.services.attendance_service import AttendanceService, summarize

MONDAY = date(2026, 10, 19)
WEDNESDAY = date(2026, 10, 21)


@pytest.mark.parametrize("statuses, attended, percentage", [
    ([], 0, 0),
    (["PRESENT", "PRESENT", "ABSENT"], 2, 67),
    (["PRESENT", "LATE", "ABSENT", "EXCUSED"], 2, 50),
    (["PRESENT"] * 7 + ["ABSENT"], 7, 88),   # 87.5 rounds half up
])
def test_summarize(statuses, attended, percentage):
    summary = summarize(statuses)
    assert summary["present"] + summary["late"] == attended
    assert summary["total"] == len(statuses)
    assert summary["percentage"] == percentage


@pytest.fixture
def roll(make, campus):
    section = make.class_section(campus, make.semester(campus))
    students = [make.student(campus) for _ in range(2)]
    for student in students:
        make.enrollment(campus, student, section)
    return section, students


def test_mark_and_remark(db, campus, owner, roll):
    section, (ayan, bilal) = roll
    service = AttendanceService(db)

    service.mark(campus.id, section.id, MONDAY, [
        {"student_id": ayan.id, "status": "PRESENT"},
        {"student_id": bilal.id, "status": "ABSENT"},
    ], owner.id)
    service.mark(campus.id, section.id, MONDAY, [
        {"student_id": bilal.id, "status": "LATE", "remarks": "Bus delay"},
    ], owner.id)

    records = service.list_for_class(campus.id, section.id, MONDAY)
    assert len(records) == 2
    assert {r.student_id: r.status for r in records} == {ayan.id: "PRESENT", bilal.id: "LATE"}


def test_mark_rejects_unregistered_students(db, make, campus, roll):
    section, _ = roll
    outsider = make.student(campus)

    with pytest.raises(ValidationError, match="not registered"):
        AttendanceService(db).mark(campus.id, section.id, MONDAY, [{"student_id": outsider.id, "status": "PRESENT"}])


def test_mark_rejects_unknown_status(db, campus, roll):
    section, (ayan, _) = roll
    with pytest.raises(ValidationError, match="Invalid attendance status"):
        AttendanceService(db).mark(campus.id, section.id, MONDAY, [{"student_id": ayan.id, "status": "SICK"}])


def test_student_summary_and_threshold(db, campus, roll):
    section, (ayan, bilal) = roll
    service = AttendanceService(db)
    service.mark(campus.id, section.id, MONDAY, [
        {"student_id": ayan.id, "status": "PRESENT"},
        {"student_id": bilal.id, "status": "ABSENT"},
    ])
    service.mark(campus.id, section.id, WEDNESDAY, [
        {"student_id": ayan.id, "status": "LATE"},
        {"student_id": bilal.id, "status": "PRESENT"},
    ])

    assert service.student_summary(campus.id, ayan.id)["percentage"] == 100
    assert service.student_summary(campus.id, bilal.id, section.id)["percentage"] == 50

    flagged = service.below_threshold(campus.id, section.id)
    assert [row["student_id"] for row in flagged] == [bilal.id]
    assert service.below_threshold(campus.id, section.id, threshold=40) == []


def test_excuse_workflow(db, campus, owner, roll):
    section, (ayan, bilal) = roll
    service = AttendanceService(db)
    records = service.mark(campus.id, section.id, MONDAY, [
        {"student_id": ayan.id, "status": "PRESENT"},
        {"student_id": bilal.id, "status": "ABSENT"},
    ])
    present, absent = records

    with pytest.raises(ValidationError, match="Only absences"):
        service.submit_excuse(campus.id, present.id, ayan.id, "Was here")
    with pytest.raises(ValidationError, match="another student"):
        service.submit_excuse(campus.id, absent.id, ayan.id, "Not mine")

    excuse = service.submit_excuse(campus.id, absent.id, bilal.id, "Hospital appointment")
    with pytest.raises(ConflictError):
        service.submit_excuse(campus.id, absent.id, bilal.id, "Again")

    reviewed = service.review_excuse(campus.id, excuse.id, approve=True, reviewer_id=owner.id, notes="Letter attached")

    assert reviewed.status == "APPROVED"
    db.refresh(absent)
    assert absent.status == "EXCUSED"
    with pytest.raises(ValidationError, match="already been reviewed"):
        service.review_excuse(campus.id, excuse.id, approve=False, reviewer_id=owner.id)


def test_rejected_excuse_keeps_absence(db, campus, owner, roll):
    section, (_, bilal) = roll
    service = AttendanceService(db)
    (absent,) = service.mark(campus.id, section.id, MONDAY, [{"student_id": bilal.id, "status": "ABSENT"}])
    excuse = service.submit_excuse(campus.id, absent.id, bilal.id, "Overslept")

    service.review_excuse(campus.id, excuse.id, approve=False, reviewer_id=owner.id)

    db.refresh(absent)
    assert absent.status == "ABSENT"
    assert [e.status for e in service.list_excuses(campus.id, student_id=bilal.id)] == ["REJECTED"]


def test_attendance_api(client, make, campus, headers_for, roll):
    section, (ayan, _) = roll
    lecturer = make.user()
    make.member(campus, lecturer, "LECTURER")
    headers = headers_for(lecturer, campus)

    response = client.post("/api/attendance", json={
        "class_id": str(section.id),
        "date": MONDAY.isoformat(),
        "entries": [{"student_id": str(ayan.id), "status": "PRESENT"}],
    }, headers=headers)
    assert response.status_code == 200
    assert response.json()[0]["status"] == "PRESENT"

    bad = client.post("/api/attendance", json={
        "class_id": str(section.id),
        "date": MONDAY.isoformat(),
        "entries": [{"student_id": str(ayan.id), "status": "SICK"}],
    }, headers=headers)
    assert bad.status_code == 422
