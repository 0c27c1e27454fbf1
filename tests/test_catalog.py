from uuid import uuid4

import pytest

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.services.catalog_service import CatalogService


@pytest.fixture
def catalog(db):
    return CatalogService(db)


def test_department_codes_are_upper_cased_and_unique(catalog, campus):
    department = catalog.create_department(campus.id, {"code": "cs", "name": "Computer Science"})
    assert department.code == "CS"

    with pytest.raises(ConflictError):
        catalog.create_department(campus.id, {"code": "CS", "name": "Again"})


def test_department_codes_are_per_campus(catalog, make, campus):
    other = make.campus(name="North Campus")
    catalog.create_department(campus.id, {"code": "MATH", "name": "Mathematics"})
    assert catalog.create_department(other.id, {"code": "MATH", "name": "Mathematics"}).code == "MATH"


def test_program_needs_department_of_same_campus(catalog, make, campus):
    foreign = make.department(make.campus(name="North Campus"))
    with pytest.raises(NotFoundError):
        catalog.create_program(campus.id, {"department_id": foreign.id, "code": "BSC", "name": "BSc"})


def test_course_credit_range(catalog, make, campus):
    department = make.department(campus)
    with pytest.raises(ValidationError):
        catalog.create_course(campus.id, {"department_id": department.id, "code": "X1", "name": "X", "credits": 13})

    course = catalog.create_course(campus.id, {"department_id": department.id, "code": "x1", "name": "X", "credits": 12})
    with pytest.raises(ValidationError):
        catalog.update_course(campus.id, course.id, {"credits": 0})


def test_course_created_with_prerequisites(catalog, make, campus):
    department = make.department(campus)
    intro = make.course(campus, department)

    course = catalog.create_course(campus.id, {
        "department_id": department.id, "code": "CS201", "name": "Data Structures",
        "credits": 4, "prerequisite_ids": [intro.id],
    })

    assert [c.id for c in catalog.list_prerequisites(campus.id, course.id)] == [intro.id]


def test_prerequisite_rules(catalog, make, campus):
    intro = make.course(campus)
    advanced = make.course(campus, prerequisites=[intro])

    with pytest.raises(ValidationError, match="own prerequisite"):
        catalog.add_prerequisite(campus.id, intro.id, intro.id)
    with pytest.raises(ConflictError):
        catalog.add_prerequisite(campus.id, advanced.id, intro.id)
    with pytest.raises(ValidationError, match="already requires"):
        catalog.add_prerequisite(campus.id, intro.id, advanced.id)


def test_remove_prerequisite(catalog, make, campus):
    intro = make.course(campus)
    advanced = make.course(campus, prerequisites=[intro])

    catalog.remove_prerequisite(campus.id, advanced.id, intro.id)

    assert catalog.list_prerequisites(campus.id, advanced.id) == []
    with pytest.raises(NotFoundError):
        catalog.remove_prerequisite(campus.id, advanced.id, intro.id)


def test_duplicate_section_conflicts(catalog, make, campus):
    semester = make.semester(campus)
    course = make.course(campus)
    data = {"course_id": course.id, "semester_id": semester.id, "section": "A", "capacity": 30}

    catalog.create_class(campus.id, dict(data))
    with pytest.raises(ConflictError):
        catalog.create_class(campus.id, dict(data))

    assert catalog.create_class(campus.id, dict(data, section="B")).section == "B"


def test_class_capacity_and_status_checks(catalog, make, campus):
    semester = make.semester(campus)
    course = make.course(campus)
    with pytest.raises(ValidationError):
        catalog.create_class(campus.id, {"course_id": course.id, "semester_id": semester.id, "capacity": 0})

    section = make.class_section(campus, semester, course)
    with pytest.raises(ValidationError, match="Invalid class status"):
        catalog.update_class(campus.id, section.id, {"status": "ARCHIVED"})
    with pytest.raises(NotFoundError):
        catalog.update_class(campus.id, section.id, {"lecturer_id": uuid4()})


def test_cancel_class(catalog, make, campus):
    section = make.class_section(campus, make.semester(campus))
    assert catalog.cancel_class(campus.id, section.id).status == "CANCELLED"


def test_class_listing_counts_active_enrollments(catalog, make, campus):
    semester = make.semester(campus)
    section = make.class_section(campus, semester)
    empty = make.class_section(campus, semester, section="B")
    make.enrollment(campus, make.student(campus), section)
    make.enrollment(campus, make.student(campus), section)
    make.enrollment(campus, make.student(campus), section, status="DROPPED")

    counts = {row["class_section"].id: row["enrolled"] for row in catalog.list_classes(campus.id, semester_id=semester.id)}

    assert counts == {section.id: 2, empty.id: 0}
    assert catalog.enrolled_count(section.id) == 2


def test_catalog_api(client, make, campus, owner, headers_for):
    headers = headers_for(owner, campus)
    department = client.post("/api/catalog/departments", json={"code": "bio", "name": "Biology"}, headers=headers)
    assert department.status_code == 201
    assert department.json()["code"] == "BIO"

    course = client.post("/api/catalog/courses", json={
        "department_id": department.json()["id"], "code": "BIO101", "name": "Cells",
    }, headers=headers)
    assert course.status_code == 201

    found = client.get("/api/catalog/courses", params={"search": "cell"}, headers=headers)
    assert [c["code"] for c in found.json()] == ["BIO101"]


def test_students_cannot_edit_catalog(client, make, campus, headers_for):
    user = make.user()
    make.member(campus, user, "STUDENT")
    response = client.post("/api/catalog/departments", json={"code": "X", "name": "X"}, headers=headers_for(user, campus))
    assert response.status_code == 403
