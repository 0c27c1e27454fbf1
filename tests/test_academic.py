from datetime import date, datetime

import pytest

from app.core.errors import ConflictError, ValidationError
from app.services.academic_service import AcademicService


@pytest.fixture
def academic(db):
    return AcademicService(db)


def _period(semester, start, end, period_type="REGULAR", **extra):
    return dict({"semester_id": semester.id, "type": period_type, "start_date": start, "end_date": end}, **extra)


def test_year_dates_must_be_ordered(academic, campus):
    with pytest.raises(ValidationError, match="after start"):
        academic.create_year(campus.id, {"name": "2030", "start_date": date(2030, 9, 1), "end_date": date(2030, 9, 1)})


def test_year_names_are_unique(academic, make, campus):
    make.year(campus, name="2026/2027")
    with pytest.raises(ConflictError):
        academic.create_year(campus.id, {"name": "2026/2027", "start_date": date(2026, 9, 1), "end_date": date(2027, 8, 31)})


def test_set_current_year_unsets_the_others(academic, make, campus):
    old = make.year(campus, name="2025/2026", start=date(2025, 9, 1), end=date(2026, 8, 31))
    new = make.year(campus, name="2026/2027", is_current=False)

    academic.set_current_year(campus.id, new.id)

    assert academic.get_current_year(campus.id).id == new.id
    assert [y.name for y in academic.list_years(campus.id) if y.is_current] == ["2026/2027"]
    assert old.is_current is False


def test_semester_must_fall_within_its_year(academic, make, campus):
    year = make.year(campus)
    data = {"academic_year_id": year.id, "name": "Summer", "start_date": date(2027, 6, 1), "end_date": date(2027, 9, 30)}

    with pytest.raises(ValidationError, match="within the academic year"):
        academic.create_semester(campus.id, data)
    with pytest.raises(ValidationError, match="after start"):
        academic.create_semester(campus.id, dict(data, start_date=date(2027, 6, 1), end_date=date(2027, 5, 1)))


def test_set_current_semester_unsets_the_others(academic, make, campus):
    year = make.year(campus)
    fall = make.semester(campus, year)
    spring = academic.create_semester(campus.id, {
        "academic_year_id": year.id, "name": "Spring 2027",
        "start_date": date(2027, 1, 20), "end_date": date(2027, 5, 30),
    })
    assert spring.is_current is False

    academic.set_current_semester(campus.id, spring.id)

    assert academic.get_current_semester(campus.id).id == spring.id
    assert [s.name for s in academic.list_semesters(campus.id, year.id) if s.is_current] == ["Spring 2027"]
    assert fall.is_current is False


def test_registration_period_dates_must_be_ordered(academic, make, campus):
    semester = make.semester(campus)
    with pytest.raises(ValidationError, match="after start"):
        academic.create_registration_period(campus.id, _period(semester, datetime(2026, 8, 20), datetime(2026, 8, 10)))
    with pytest.raises(ValidationError, match="Invalid registration period type"):
        academic.create_registration_period(
            campus.id, _period(semester, datetime(2026, 8, 1), datetime(2026, 8, 10), period_type="EARLY")
        )


def test_overlapping_periods_of_the_same_type_conflict(academic, make, campus):
    semester = make.semester(campus)
    academic.create_registration_period(campus.id, _period(semester, datetime(2026, 8, 1), datetime(2026, 8, 15)))

    with pytest.raises(ConflictError, match="REGULAR"):
        academic.create_registration_period(campus.id, _period(semester, datetime(2026, 8, 10), datetime(2026, 8, 20)))

    late = academic.create_registration_period(
        campus.id, _period(semester, datetime(2026, 8, 10), datetime(2026, 8, 20), period_type="LATE")
    )
    touching = academic.create_registration_period(campus.id, _period(semester, datetime(2026, 8, 15), datetime(2026, 8, 25)))
    inactive = academic.create_registration_period(
        campus.id, _period(semester, datetime(2026, 8, 2), datetime(2026, 8, 5), is_active=False)
    )

    assert (late.type, touching.type, inactive.is_active) == ("LATE", "REGULAR", False)


def test_moving_a_period_onto_another_conflicts(academic, make, campus):
    semester = make.semester(campus)
    academic.create_registration_period(campus.id, _period(semester, datetime(2026, 8, 1), datetime(2026, 8, 15)))
    later = academic.create_registration_period(campus.id, _period(semester, datetime(2026, 9, 1), datetime(2026, 9, 15)))

    with pytest.raises(ConflictError):
        academic.update_registration_period(campus.id, later.id, {"start_date": datetime(2026, 8, 14)})

    academic.deactivate_registration_period(campus.id, later.id)
    moved = academic.update_registration_period(campus.id, later.id, {"start_date": datetime(2026, 8, 14)})
    assert moved.start_date == datetime(2026, 8, 14)


def test_registration_status(academic, make, campus):
    semester = make.semester(campus)
    academic.create_registration_period(campus.id, _period(semester, datetime(2026, 8, 1), datetime(2026, 8, 15, 17, 0)))
    academic.create_registration_period(
        campus.id, _period(semester, datetime(2026, 9, 7, 8, 30), datetime(2026, 9, 14), period_type="LATE")
    )

    during = academic.is_registration_open(semester.id, at=datetime(2026, 8, 3))
    assert during["is_open"] is True
    assert during["message"] == "REGULAR registration is open"

    between = academic.is_registration_open(semester.id, at=datetime(2026, 8, 20))
    assert between["is_open"] is False
    assert between["message"] == "Registration opens on 2026-09-07 08:30"

    assert academic.is_registration_open(semester.id, "REGULAR", at=datetime(2026, 8, 20))["message"] == (
        "No active registration period"
    )
