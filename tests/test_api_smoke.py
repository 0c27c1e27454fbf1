from uuid import uuid4


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["database"]["status"] == "healthy"
    assert body["status"] == "healthy"


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "version" in response.json()


def test_not_found_error_shape(client, campus, owner, headers_for):
    missing = uuid4()

    response = client.get(f"/api/students/{missing}", headers=headers_for(owner, campus))

    assert response.status_code == 404
    assert response.json() == {
        "detail": "Student not found",
        "code": "NOT_FOUND",
        "details": {"id": str(missing)},
    }


def test_students_only_see_their_own_record(client, make, campus, headers_for):
    user = make.user()
    make.member(campus, user, "STUDENT")
    mine = make.student(campus, user=user)
    other = make.student(campus)
    headers = headers_for(user, campus)

    assert client.get(f"/api/students/{mine.id}", headers=headers).status_code == 200
    assert client.get(f"/api/students/{other.id}", headers=headers).status_code == 403
    assert client.get("/api/students", headers=headers).status_code == 403


def test_student_self_enrollment_rules(client, make, campus, headers_for):
    user = make.user()
    make.member(campus, user, "STUDENT")
    mine = make.student(campus, user=user)
    section = make.class_section(campus, make.semester(campus))
    headers = headers_for(user, campus)

    for_someone_else = client.post("/api/enrollments", json={
        "student_id": str(make.student(campus).id), "class_id": str(section.id),
    }, headers=headers)
    assert for_someone_else.status_code == 403

    override = client.post("/api/enrollments", json={
        "student_id": str(mine.id), "class_id": str(section.id),
        "override_prerequisites": True, "override_reason": "Please",
    }, headers=headers)
    assert override.status_code == 403


def test_request_validation_is_422(client, campus, owner, headers_for):
    response = client.post("/api/rooms", json={"name": "Hall", "capacity": 0}, headers=headers_for(owner, campus))
    assert response.status_code == 422
