from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from fastapi import HTTPException
from sqlalchemy import select

from app.core.cache import CacheKeys, CacheService
from app.core.db import DatabaseManager
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.core.security import (
    SecurityError,
    password_manager,
    reset_token_manager,
    token_manager,
)
from app.models import Base, Student, User
from app.services.student_service import StudentService


class FakeRedis:
    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    def scan_iter(self, match=None, count=None):
        prefix = match.rstrip("*")
        return [key for key in list(self.store) if key.startswith(prefix)]


def test_access_token_round_trip():
    token = token_manager.create_access_token("user-1", additional_claims={"active_campus_id": "abc"})
    payload = token_manager.decode_token(token)
    assert payload["sub"] == "user-1"
    assert payload["type"] == "access"
    assert payload["active_campus_id"] == "abc"


def test_reserved_claim_cannot_be_overridden():
    with pytest.raises(SecurityError):
        token_manager.create_access_token("user-1", additional_claims={"sub": "someone-else"})


def test_expired_token_is_rejected():
    token = token_manager.create_access_token("user-1", expires_delta=timedelta(seconds=-1))
    with pytest.raises(HTTPException) as exc:
        token_manager.decode_token(token)
    assert exc.value.status_code == 401


def test_wrong_token_type_is_rejected():
    token = token_manager.create_access_token("user-1")
    with pytest.raises(HTTPException):
        token_manager.decode_token(token, expected_type="refresh")


def test_password_hash_and_verify():
    hashed = password_manager.hash_password("Secret123")
    assert password_manager.verify_password("Secret123", hashed)
    assert not password_manager.verify_password("secret123", hashed)
    assert not password_manager.verify_password("", hashed)


@pytest.mark.parametrize("password, failing_rule", [
    ("Short1", "min_length"),
    ("alllowercase1", "has_uppercase"),
    ("ALLUPPERCASE1", "has_lowercase"),
    ("NoDigitsHere", "has_digit"),
])
def test_password_policy(password, failing_rule):
    result = password_manager.validate_password_strength(password)
    assert not result["valid"]
    assert result["requirements"][failing_rule] is False


def test_password_policy_accepts_strong_password():
    assert password_manager.validate_password_strength("Campus2026")["valid"]


def test_reset_token_hashing():
    token = reset_token_manager.generate_reset_token()
    hashed = reset_token_manager.hash_reset_token(token)
    assert hashed != token
    assert reset_token_manager.verify_reset_token(token, hashed)
    assert not reset_token_manager.verify_reset_token(token + "x", hashed)


def test_error_payloads():
    assert NotFoundError("Room", "r1").to_dict() == {"detail": "Room not found", "code": "NOT_FOUND", "details": {"id": "r1"}}
    assert ConflictError("taken").status_code == 409
    error = ValidationError("bad", details=["a"])
    assert error.to_dict() == {"detail": "bad", "code": "VALIDATION_ERROR", "details": ["a"]}


def test_cache_disabled_is_a_no_op():
    cache = CacheService(enabled=False)
    assert cache.set("config:public", {"a": 1}) is False
    assert cache.get("config:public") is None
    assert cache.get_or_set("config:public", lambda: 42) == 42


def test_cache_serializes_domain_values():
    cache = CacheService(client=FakeRedis(), enabled=True, prefix="t:")
    student_id = uuid4()
    key = CacheKeys.student_profile(student_id)
    cache.set(key, {"id": student_id, "balance": Decimal("10.50"), "dob": date(2004, 1, 2)})
    assert cache.get(key) == {"id": str(student_id), "balance": "10.50", "dob": "2004-01-02"}


def test_cache_get_or_set_only_fetches_once():
    cache = CacheService(client=FakeRedis(), enabled=True, prefix="t:")
    calls = []

    def fetch():
        calls.append(1)
        return {"value": 1}

    assert cache.get_or_set("academic:current-semester:x", fetch) == {"value": 1}
    assert cache.get_or_set("academic:current-semester:x", fetch) == {"value": 1}
    assert len(calls) == 1


def test_cache_invalidate_student_removes_related_keys():
    client = FakeRedis()
    cache = CacheService(client=client, enabled=True, prefix="t:")
    student_id = uuid4()
    cache.set(CacheKeys.student_profile(student_id), {"x": 1})
    cache.set(CacheKeys.student_schedule(student_id, "sem"), [1])
    cache.set(CacheKeys.student_profile(uuid4()), {"x": 2})

    assert cache.invalidate_student(student_id) == 2
    assert len(client.store) == 1


def test_cache_ttl_table():
    assert CacheService.ttl_for("config:public") == 86400
    assert CacheService.ttl_for("dashboard:admin:1") == 300
    assert CacheService.ttl_for("unknown:key") == 300


def test_transaction_commits_or_rolls_back():
    manager = DatabaseManager("sqlite://")
    manager.initialize()
    Base.metadata.create_all(bind=manager.engine)

    with manager.transaction() as session:
        session.add(User(email="kept@campus.edu", full_name="Kept", password_hash="x"))

    with pytest.raises(RuntimeError):
        with manager.transaction() as session:
            session.add(User(email="lost@campus.edu", full_name="Lost", password_hash="x"))
            session.flush()
            raise RuntimeError("boom")

    with manager.transaction() as session:
        emails = session.execute(select(User.email)).scalars().all()
    assert emails == ["kept@campus.edu"]

    assert manager.health_check()["status"] == "healthy"
    manager.close()


@pytest.mark.parametrize("issued, expected", [
    ([], "CU/2026/0001"),
    (["CU/2026/0007", "CU/2026/0012"], "CU/2026/0013"),
    (["CU/2025/0500", "CU/2026/0002"], "CU/2026/0003"),
    (["CU/2026/9998", "CU/2026/9999", "CU/2026/10000"], "CU/2026/10001"),
])
def test_student_numbers_follow_highest_issued(db, campus, issued, expected):
    for number in issued:
        db.add(Student(campus_id=campus.id, student_number=number, first_name="Hodan", last_name=number))
    db.commit()

    assert StudentService(db).generate_student_number(campus.id, 2026) == expected
