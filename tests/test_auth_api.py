from datetime import datetime, timedelta

from sqlalchemy import func, select

from app.core.config import settings
from app.core.security import reset_token_manager
from app.models.password_reset import PasswordResetToken
from app.models.user import UserSession
from tests.conftest import PASSWORD


def _register(client, email="new.user@campus.edu", password="Campus2026"):
    return client.post("/api/auth/register", json={
        "email": email,
        "full_name": "New User",
        "password": password,
    })


def test_register_returns_tokens(client):
    response = _register(client)
    assert response.status_code == 201
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["refresh_token"]
    assert body["user"]["email"] == "new.user@campus.edu"
    assert body["active_campus_id"] is None


def test_register_rejects_duplicate_email(client):
    assert _register(client).status_code == 201
    response = _register(client, email="New.User@campus.edu")
    assert response.status_code == 409
    assert response.json()["code"] == "CONFLICT"


def test_register_enforces_password_policy(client):
    response = _register(client, password="weak")
    assert response.status_code == 400
    assert response.json()["details"]


def test_register_can_be_disabled(client, monkeypatch):
    monkeypatch.setattr(settings, "ENABLE_REGISTRATION", False)
    assert _register(client).status_code == 403


def test_login_picks_single_campus(client, campus, owner):
    response = client.post("/api/auth/login", json={"email": owner.email, "password": PASSWORD})
    assert response.status_code == 200
    assert response.json()["active_campus_id"] == str(campus.id)


def test_login_wrong_password(client, owner):
    response = client.post("/api/auth/login", json={"email": owner.email, "password": "Wrong1234"})
    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid email or password", "code": "UNAUTHORIZED"}


def test_login_inactive_account(client, make):
    user = make.user(is_active=False)
    response = client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
    assert response.status_code == 401


def test_refresh_rotates_token(client, owner):
    login = client.post("/api/auth/login", json={"email": owner.email, "password": PASSWORD}).json()

    refreshed = client.post("/api/auth/refresh", json={"refresh_token": login["refresh_token"]})
    assert refreshed.status_code == 200
    assert refreshed.json()["refresh_token"] != login["refresh_token"]

    # The old token is gone after rotation
    reused = client.post("/api/auth/refresh", json={"refresh_token": login["refresh_token"]})
    assert reused.status_code == 401


def test_logout_revokes_refresh_token(client, owner):
    login = client.post("/api/auth/login", json={"email": owner.email, "password": PASSWORD}).json()
    assert client.post("/api/auth/logout", json={"refresh_token": login["refresh_token"]}).status_code == 200
    assert client.post("/api/auth/refresh", json={"refresh_token": login["refresh_token"]}).status_code == 401


def test_me_lists_campuses(client, campus, owner, headers_for):
    response = client.get("/api/auth/me", headers=headers_for(owner))
    assert response.status_code == 200
    body = response.json()
    assert body["email"] == owner.email
    assert body["campuses"] == [{"id": str(campus.id), "name": campus.name, "role": "OWNER"}]


def test_me_requires_token(client):
    assert client.get("/api/auth/me").status_code in (401, 403)


def test_activate_campus(client, campus, owner, headers_for):
    response = client.post("/api/auth/activate-campus", json={"campus_id": str(campus.id)}, headers=headers_for(owner))
    assert response.status_code == 200
    assert response.json()["active_campus_id"] == str(campus.id)


def test_activate_campus_requires_membership(client, make, campus, headers_for):
    stranger = make.user()
    response = client.post("/api/auth/activate-campus", json={"campus_id": str(campus.id)}, headers=headers_for(stranger))
    assert response.status_code == 403


def test_campus_header_for_non_member(client, make, campus, headers_for):
    stranger = make.user()
    response = client.get("/api/campuses/current", headers=headers_for(stranger, campus))
    assert response.status_code == 403


def test_campus_required_when_user_has_several(client, make, owner, headers_for):
    make.campus(owner=owner, name="North Campus")
    response = client.get("/api/campuses/current", headers=headers_for(owner))
    assert response.status_code == 400


def test_invalid_campus_header(client, owner, headers_for):
    headers = headers_for(owner)
    headers["X-Campus-ID"] = "not-a-uuid"
    assert client.get("/api/campuses/current", headers=headers).status_code == 400


def test_change_password_then_login(client, owner, headers_for):
    response = client.post(
        "/api/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "Changed2026"},
        headers=headers_for(owner),
    )
    assert response.status_code == 200
    assert client.post("/api/auth/login", json={"email": owner.email, "password": "Changed2026"}).status_code == 200


def test_forgot_password_does_not_reveal_accounts(client, owner):
    known = client.post("/api/auth/forgot-password", json={"email": owner.email})
    unknown = client.post("/api/auth/forgot-password", json={"email": "nobody@campus.edu"})
    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()


def test_forgot_password_can_be_disabled(client, owner, monkeypatch):
    monkeypatch.setattr(settings, "ENABLE_PASSWORD_RESET", False)
    response = client.post("/api/auth/forgot-password", json={"email": owner.email})
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


def _login(client, user, password=PASSWORD):
    return client.post("/api/auth/login", json={"email": user.email, "password": password}).json()


def test_reset_password_signs_out_every_session(client, db, owner):
    first, second = _login(client, owner), _login(client, owner)
    token = reset_token_manager.generate_reset_token()
    db.add(PasswordResetToken(
        user_id=owner.id,
        token_hash=reset_token_manager.hash_reset_token(token),
        expires_at=datetime.utcnow() + timedelta(hours=1),
    ))
    db.commit()

    data = {"email": owner.email, "token": token, "password": "Recovered2026"}
    assert client.post("/api/auth/reset-password", json=data).status_code == 200

    assert db.execute(select(func.count()).select_from(UserSession).where(UserSession.user_id == owner.id)).scalar() == 0
    for login in (first, second):
        assert client.post("/api/auth/refresh", json={"refresh_token": login["refresh_token"]}).status_code == 401
    assert client.post("/api/auth/reset-password", json=data).status_code == 400
    assert _login(client, owner, "Recovered2026")["refresh_token"]


def test_expired_refresh_token_is_removed(client, db, owner):
    login = _login(client, owner)
    session = db.execute(
        select(UserSession).where(UserSession.refresh_token == login["refresh_token"])
    ).scalar_one()
    session.expires_at = datetime.utcnow() - timedelta(minutes=1)
    db.commit()

    response = client.post("/api/auth/refresh", json={"refresh_token": login["refresh_token"]})

    assert response.status_code == 401
    assert response.json()["detail"] == "Refresh token expired"
    assert db.execute(
        select(UserSession).where(UserSession.refresh_token == login["refresh_token"])
    ).scalar_one_or_none() is None
