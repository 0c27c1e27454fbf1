from datetime import date

import pytest

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.core.security import verify_password
from app.models import CampusMember, User
from app.services.admission_service import AdmissionService


@pytest.fixture
def admissions(db):
    return AdmissionService(db)


@pytest.fixture
def program(make, campus):
    return make.program(campus)


def _apply(admissions, campus, program, email="amina.yusuf@campus.edu", **extra):
    data = {
        "first_name": "Amina",
        "last_name": "Yusuf",
        "email": email,
        "phone": "+252615550100",
        "program_id": program.id,
    }
    data.update(extra)
    return admissions.submit(campus.id, data)


def test_submit_numbers_applications(admissions, campus, program):
    first = _apply(admissions, campus, program)
    second = _apply(admissions, campus, program, email="omar@campus.edu")

    year = date.today().year
    assert first.application_number == f"APP/{year}/0001"
    assert second.application_number == f"APP/{year}/0002"
    assert first.status == "PENDING"


def test_submit_normalises_email_and_blocks_duplicates(admissions, campus, program):
    application = _apply(admissions, campus, program, email="Amina.Yusuf@Campus.edu")
    assert application.email == "amina.yusuf@campus.edu"

    with pytest.raises(ConflictError, match="already in progress"):
        _apply(admissions, campus, program)


def test_rejected_applicant_may_reapply(admissions, campus, owner, program):
    application = _apply(admissions, campus, program)
    admissions.review(campus.id, application.id, "REJECTED", owner.id, notes="Incomplete documents")

    assert _apply(admissions, campus, program).id != application.id


def test_unknown_program(admissions, make, campus):
    other_program = make.program(make.campus(name="Elsewhere"))
    with pytest.raises(NotFoundError):
        _apply(admissions, campus, other_program)


@pytest.mark.parametrize("path, allowed", [
    (["UNDER_REVIEW", "APPROVED"], True),
    (["REJECTED"], True),
    (["APPROVED", "REJECTED"], False),
    (["UNDER_REVIEW", "PENDING"], False),
    (["ENROLLED"], False),
])
def test_review_transitions(admissions, campus, owner, program, path, allowed):
    application = _apply(admissions, campus, program)

    def walk():
        for status in path:
            admissions.review(campus.id, application.id, status, owner.id)

    if allowed:
        walk()
        assert admissions.get_application(campus.id, application.id).status == path[-1]
    else:
        with pytest.raises(ValidationError, match="Cannot move application"):
            walk()


def test_enroll_creates_student_and_account(db, admissions, campus, owner, program):
    application = _apply(admissions, campus, program)

    with pytest.raises(ValidationError, match="Only approved"):
        admissions.enroll(campus.id, application.id, owner.id)

    admissions.review(campus.id, application.id, "APPROVED", owner.id)
    result = admissions.enroll(campus.id, application.id, owner.id)

    student = result["student"]
    assert result["application"].status == "ENROLLED"
    assert result["application"].student_id == student.id
    assert student.program_id == program.id
    assert student.student_number.startswith(f"CU/{date.today().year}/")

    user = db.query(User).filter_by(email="amina.yusuf@campus.edu").one()
    assert student.user_id == user.id
    assert verify_password(result["initial_password"], user.password_hash)
    assert db.query(CampusMember).filter_by(campus_id=campus.id, user_id=user.id).one().role == "STUDENT"


def test_enroll_reuses_existing_account(db, make, admissions, campus, owner, program):
    existing = make.user(email="returning@campus.edu")
    application = _apply(admissions, campus, program, email="returning@campus.edu")
    admissions.review(campus.id, application.id, "APPROVED", owner.id)

    result = admissions.enroll(campus.id, application.id, owner.id)

    assert result["initial_password"] is None
    assert result["student"].user_id == existing.id


def test_statistics(admissions, campus, owner, program):
    rejected = _apply(admissions, campus, program)
    admissions.review(campus.id, rejected.id, "REJECTED", owner.id)
    _apply(admissions, campus, program, email="second@campus.edu")

    stats = admissions.statistics(campus.id)

    assert stats["pending"] == 1
    assert stats["rejected"] == 1
    assert stats["total"] == 2


def test_admissions_api(client, campus, owner, headers_for, program):
    headers = headers_for(owner, campus)

    submitted = client.post("/api/admissions/applications", json={
        "first_name": "Amina",
        "last_name": "Yusuf",
        "email": "amina.yusuf@campus.edu",
        "program_id": str(program.id),
    }, headers=headers)
    assert submitted.status_code == 201
    application_id = submitted.json()["id"]

    reviewed = client.post(f"/api/admissions/applications/{application_id}/review",
                           json={"status": "APPROVED"}, headers=headers)
    assert reviewed.json()["status"] == "APPROVED"

    enrolled = client.post(f"/api/admissions/applications/{application_id}/enroll", headers=headers)
    assert enrolled.status_code == 200
    body = enrolled.json()
    assert body["application"]["status"] == "ENROLLED"
    assert body["initial_password"]
