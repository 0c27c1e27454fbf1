import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("ENV", "test")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("CACHE_ENABLED", "false")

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app.core.db import db_manager, get_db, get_engine
from app.core.security import hash_password, token_manager
from app.main import app
from app.models import (
    Base,
    User,
    Campus,
    CampusMember,
    AcademicYear,
    Semester,
    RegistrationPeriod,
    Department,
    Program,
    Course,
    CoursePrerequisite,
    ClassSection,
    Employee,
    Room,
    Schedule,
    Student,
    Enrollment,
)

PASSWORD = "Secret123"


@pytest.fixture
def db():
    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    session = db_manager.SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


class Factory:
    """Builds rows directly so tests can focus on the service under test"""

    def __init__(self, db):
        self.db = db
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def user(self, email=None, roles=("STAFF",), phone=None, **kwargs):
        user = User(
            email=email or f"user{self._next()}@campus.edu",
            full_name=kwargs.pop("full_name", "Test User"),
            phone=phone,
            password_hash=hash_password(PASSWORD),
            is_active=kwargs.pop("is_active", True),
            **kwargs
        )
        user.set_roles(list(roles))
        return self._save(user)

    def campus(self, owner=None, name="Main Campus"):
        owner = owner or self.user()
        campus = self._save(Campus(name=name, created_by=owner.id))
        self.member(campus, owner, "OWNER")
        return campus

    def member(self, campus, user, role):
        return self._save(CampusMember(campus_id=campus.id, user_id=user.id, role=role))

    def year(self, campus, name="2026/2027", start=date(2026, 9, 1), end=date(2027, 8, 31), is_current=True):
        return self._save(AcademicYear(campus_id=campus.id, name=name, start_date=start, end_date=end, is_current=is_current))

    def semester(self, campus, year=None, name="Fall 2026", start=date(2026, 9, 1), end=date(2027, 1, 15), is_current=True):
        year = year or self.year(campus)
        return self._save(Semester(
            campus_id=campus.id, academic_year_id=year.id, name=name,
            start_date=start, end_date=end, is_current=is_current
        ))

    def open_registration(self, campus, semester, period_type="REGULAR"):
        now = datetime.utcnow()
        return self._save(RegistrationPeriod(
            campus_id=campus.id, semester_id=semester.id, type=period_type,
            start_date=now - timedelta(days=1), end_date=now + timedelta(days=7), is_active=True
        ))

    def department(self, campus, code=None):
        code = code or f"D{self._next()}"
        return self._save(Department(campus_id=campus.id, code=code, name=f"Department {code}"))

    def program(self, campus, department=None, code=None):
        department = department or self.department(campus)
        code = code or f"P{self._next()}"
        return self._save(Program(campus_id=campus.id, department_id=department.id, code=code, name=f"Program {code}"))

    def course(self, campus, department=None, code=None, credits=3, prerequisites=()):
        department = department or self.department(campus)
        code = code or f"CS{100 + self._next()}"
        course = self._save(Course(campus_id=campus.id, department_id=department.id, code=code, name=f"Course {code}", credits=credits))
        for prerequisite in prerequisites:
            self.db.add(CoursePrerequisite(campus_id=campus.id, course_id=course.id, prerequisite_id=prerequisite.id))
        self.db.commit()
        return course

    def employee(self, campus, user=None, base_salary=Decimal("1000.00"), **kwargs):
        number = self._next()
        return self._save(Employee(
            campus_id=campus.id,
            user_id=user.id if user else None,
            employee_number=f"EMP-{number:04d}",
            first_name=kwargs.pop("first_name", "Amina"),
            last_name=kwargs.pop("last_name", f"Staff{number}"),
            position=kwargs.pop("position", "Lecturer"),
            base_salary=base_salary,
            **kwargs
        ))

    def class_section(self, campus, semester, course=None, lecturer=None, capacity=40, section="A"):
        course = course or self.course(campus)
        return self._save(ClassSection(
            campus_id=campus.id, course_id=course.id, semester_id=semester.id,
            lecturer_id=lecturer.id if lecturer else None, section=section, capacity=capacity
        ))

    def room(self, campus, name=None, capacity=40, building="Science"):
        return self._save(Room(campus_id=campus.id, name=name or f"R{self._next()}", building=building, capacity=capacity))

    def schedule(self, campus, class_section, room, day=1, start="09:00", end="10:30"):
        return self._save(Schedule(
            campus_id=campus.id, class_id=class_section.id, room_id=room.id,
            day_of_week=day, start_time=start, end_time=end
        ))

    def student(self, campus, program=None, user=None, status="ACTIVE"):
        number = self._next()
        return self._save(Student(
            campus_id=campus.id,
            user_id=user.id if user else None,
            student_number=f"CU/2026/{number:04d}",
            first_name="Hodan",
            last_name=f"Student{number}",
            email=f"student{number}@campus.edu",
            program_id=program.id if program else None,
            status=status,
        ))

    def enrollment(self, campus, student, class_section, status="REGISTERED", **kwargs):
        return self._save(Enrollment(
            campus_id=campus.id, student_id=student.id, class_id=class_section.id,
            semester_id=class_section.semester_id, status=status, **kwargs
        ))


@pytest.fixture
def make(db):
    return Factory(db)


@pytest.fixture
def campus(make):
    return make.campus()


def auth_headers(user, campus=None):
    claims = {"email": user.email, "roles": user.roles}
    token = token_manager.create_access_token(subject=user.id, additional_claims=claims)
    headers = {"Authorization": f"Bearer {token}"}
    if campus is not None:
        headers["X-Campus-ID"] = str(campus.id)
    return headers


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def owner(db, campus):
    return db.get(User, campus.created_by)
