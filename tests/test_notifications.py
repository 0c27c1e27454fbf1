from uuid import uuid4

import httpx
import pytest

from app.core.config import settings
from app.core.errors import NotFoundError, ValidationError
from app.models import Notification
from app.models.notification import NotificationPreference
from app.services.email_service import EmailTemplates
from app.services.notification_service import DEFAULT_PREFERENCES, NotificationService, should_notify
from app.services.sms_service import SmsService


class FakeEmail:
    def __init__(self, ok=True):
        self.ok = ok
        self.sent = []

    def send_email(self, to_email, subject, body_text, body_html=None):
        self.sent.append((to_email, subject))
        return self.ok


class FakeSms:
    def __init__(self, error=None):
        self.error = error
        self.sent = []

    def send_sms(self, to, message):
        self.sent.append((to, message))
        if self.error:
            return {"success": False, "message_id": None, "error": self.error}
        return {"success": True, "message_id": "msg-1", "error": None}


@pytest.fixture
def email():
    return FakeEmail()


@pytest.fixture
def sms():
    return FakeSms()


@pytest.fixture
def notifier(db, email, sms):
    return NotificationService(db, email_service=email, sms_service=sms)


def _preferences(**changes):
    values = dict(DEFAULT_PREFERENCES, **changes)
    return NotificationPreference(**values)


@pytest.mark.parametrize("changes, notification_type, channel, expected", [
    ({}, "GRADE", "EMAIL", True),
    ({"email_enabled": False}, "GRADE", "EMAIL", False),
    ({"email_academic": False}, "GRADE", "EMAIL", False),
    ({"email_academic": False}, "PAYMENT", "EMAIL", True),
    ({"push_library": False}, "LIBRARY", "PUSH", False),
    ({"email_announcements": False}, "SYSTEM", "EMAIL", True),
    ({"sms_enabled": False}, "PAYMENT", "SMS", False),
])
def test_should_notify(changes, notification_type, channel, expected):
    assert should_notify(_preferences(**changes), notification_type, channel) is expected


def test_send_uses_default_channels(db, make, notifier, email, sms):
    user = make.user()

    result = notifier.send(user.id, "ANNOUNCEMENT", "Orientation", "Orientation starts Monday at 9am")

    assert result["sent"] is True
    assert result["channels"] == ["IN_APP", "EMAIL", "PUSH"]
    assert result["errors"] == []
    assert email.sent == [(user.email, "Orientation")]
    assert sms.sent == []
    assert db.get(Notification, result["notification_id"]).title == "Orientation"


def test_muted_category_skips_email(db, make, notifier, email):
    user = make.user()
    notifier.update_preferences(user, {"email_academic": False})

    result = notifier.send(user.id, "GRADE", "Grades released", "Your CS101 grade is available")

    assert "EMAIL" not in result["channels"]
    assert email.sent == []


def test_failed_email_is_reported_not_raised(db, make, sms):
    user = make.user()
    notifier = NotificationService(db, email_service=FakeEmail(ok=False), sms_service=sms)

    result = notifier.send(user.id, "SYSTEM", "Maintenance", "Portal offline tonight")

    assert result["sent"] is True
    assert result["errors"] == ["Email delivery failed"]


def test_urgent_notifications_go_out_by_sms(db, make, notifier, sms):
    user = make.user(phone="+252612345678")
    notifier.update_preferences(user, {"sms_enabled": True})

    urgent = notifier.send(user.id, "SYSTEM", "Campus closed", "Campus closed today", priority="URGENT")
    normal = notifier.send(user.id, "SYSTEM", "Reminder", "Library hours changed")

    assert "SMS" in urgent["channels"]
    assert "SMS" not in normal["channels"]
    assert sms.sent == [("+252612345678", "Campus closed: Campus closed today")]


def test_sms_failure_is_collected(db, make, email):
    user = make.user(phone="+252612345678")
    notifier = NotificationService(db, email_service=email, sms_service=FakeSms(error="Gateway timeout"))
    notifier.update_preferences(user, {"sms_enabled": True})

    result = notifier.send(user.id, "PAYMENT", "Payment received", "We received 500.00")

    assert result["errors"] == ["SMS failed: Gateway timeout"]


def test_sms_requires_phone_number(db, make, notifier):
    with pytest.raises(ValidationError, match="phone number"):
        notifier.update_preferences(make.user(), {"sms_enabled": True})


def test_reset_preferences(db, make, notifier):
    user = make.user()
    notifier.update_preferences(user, {"push_enabled": False, "in_app_sound": False})

    preferences = notifier.reset_preferences(user.id)

    assert preferences.push_enabled is True
    assert preferences.in_app_sound is True


def test_send_to_unknown_user(notifier):
    with pytest.raises(NotFoundError):
        notifier.send(uuid4(), "SYSTEM", "Hello", "Nobody home")


def test_bulk_send_counts_failures(db, make, notifier):
    users = [make.user(), make.user()]

    result = notifier.bulk_send([u.id for u in users] + [uuid4()], "ANNOUNCEMENT", "Exams", "Timetable published")

    assert result == {"success": 2, "failed": 1}
    assert db.query(Notification).count() == 2


def test_inbox_read_tracking(db, make, notifier):
    user = make.user()
    first = notifier.send(user.id, "SYSTEM", "One", "First")
    notifier.send(user.id, "SYSTEM", "Two", "Second")
    notifier.send(make.user().id, "SYSTEM", "Other", "Someone else")

    assert notifier.unread_count(user.id) == 2

    read = notifier.mark_read(first["notification_id"], user.id)
    assert read.is_read
    assert read.read_at is not None

    history = notifier.history(user.id, unread_only=True)
    assert history["total"] == 1
    assert history["unread"] == 1
    assert [n.title for n in history["items"]] == ["Two"]

    assert notifier.mark_all_read(user.id) == 1
    assert notifier.unread_count(user.id) == 0


def test_cannot_touch_another_users_notification(db, make, notifier):
    owner_id = make.user().id
    sent = notifier.send(owner_id, "SYSTEM", "Private", "Only for you")

    with pytest.raises(NotFoundError):
        notifier.mark_read(sent["notification_id"], make.user().id)

    notifier.delete(sent["notification_id"], owner_id)
    assert notifier.unread_count(owner_id) == 0


def test_notification_api_inbox(client, db, make, campus, owner, headers_for):
    reader = make.user()
    make.member(campus, reader, "STUDENT")
    headers = headers_for(owner, campus)

    sent = client.post("/api/notifications/send", json={
        "user_ids": [str(reader.id)],
        "type": "ANNOUNCEMENT",
        "title": "Welcome",
        "message": "Semester starts soon",
    }, headers=headers)
    assert sent.status_code == 200
    assert sent.json()["success"] == 1

    reader_headers = headers_for(reader)
    assert client.get("/api/notifications/unread-count", headers=reader_headers).json()["unread"] == 1
    inbox = client.get("/api/notifications", headers=reader_headers).json()
    assert inbox["items"][0]["title"] == "Welcome"


def test_students_cannot_send_announcements(client, make, campus, headers_for):
    student = make.user()
    make.member(campus, student, "STUDENT")

    response = client.post("/api/notifications/send", json={
        "user_ids": [str(student.id)], "type": "ANNOUNCEMENT", "title": "Hi", "message": "Spam",
    }, headers=headers_for(student, campus))

    assert response.status_code == 403


@pytest.fixture
def gateway_settings(monkeypatch):
    monkeypatch.setattr(settings, "SMS_API_URL", "https://sms.example.test/send")
    monkeypatch.setattr(settings, "SMS_API_KEY", "test-key")


def _gateway(reply):
    return SmsService(client=httpx.Client(transport=httpx.MockTransport(lambda request: reply)))


@pytest.mark.parametrize("reply, message_id", [
    (httpx.Response(200, json={"message_id": "abc-1"}), "abc-1"),
    (httpx.Response(201, json={"id": "xyz-2"}), "xyz-2"),
    (httpx.Response(200, text="OK"), None),
    (httpx.Response(200, json=["queued"]), None),
    (httpx.Response(204), None),
])
def test_gateway_acceptance_is_success(gateway_settings, reply, message_id):
    result = _gateway(reply).send_sms("0612345678", "Exam timetable published")
    assert result == {"success": True, "message_id": message_id, "error": None}


def test_gateway_error_is_returned(gateway_settings):
    result = _gateway(httpx.Response(503, text="busy")).send_sms("+252612345678", "Hello")
    assert result["success"] is False
    assert "503" in result["error"]


def test_unconfigured_gateway(monkeypatch):
    monkeypatch.setattr(settings, "SMS_API_URL", None)
    result = SmsService().send_sms("+252612345678", "Hello")
    assert result == {"success": False, "message_id": None, "error": "SMS gateway not configured"}


def test_sms_text_overrides_default_body(db, make, notifier, sms):
    user = make.user(phone="+252612345678")
    notifier.update_preferences(user, {"sms_enabled": True})

    notifier.send(user.id, "SYSTEM", "Campus closed", "Long message", priority="URGENT", sms_text="Campus closed today")

    assert sms.sent == [("+252612345678", "Campus closed today")]


def test_html_email_escapes_user_text():
    text, html = EmailTemplates.notification("<b>Ali</b>", "Fees & <script>", "Pay <i>now</i>", None)

    assert "<script>" not in html
    assert "Fees &amp; &lt;script&gt;" in html
    assert "&lt;b&gt;Ali&lt;/b&gt;" in html
    assert "Pay <i>now</i>" in text
