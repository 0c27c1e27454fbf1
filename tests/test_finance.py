import json
from datetime import date, datetime, timedelta
from decimal import Decimal

import httpx
import pytest

from app.core.config import settings
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models import Invoice, Payment
from app.services.fee_service import FeeService
from app.services.invoice_service import InvoiceService, derive_status
from app.services.notification_service import NotificationService
from app.services.payment_service import PaymentService
from app.services.sms_service import SmsService


@pytest.fixture
def billing(make, campus):
    """A program with a 1,500.00 fee structure and an active student in it"""
    program = make.program(campus)
    semester = make.semester(campus)
    FeeService(make.db).create_structure(campus.id, {
        "name": "Undergraduate 2026/2027",
        "program_id": program.id,
        "academic_year_id": semester.academic_year_id,
        "items": [
            {"name": "Tuition", "amount": Decimal("1200.00"), "category": "TUITION"},
            {"name": "Registration", "amount": Decimal("200.00"), "category": "REGISTRATION"},
            {"name": "Lab", "amount": Decimal("100.00"), "category": "LAB"},
        ],
    })
    return {"program": program, "semester": semester, "student": make.student(campus, program=program)}


def _pay(db, campus, invoice, amount, method="CASH", **extra):
    return PaymentService(db).record(campus.id, {
        "invoice_id": invoice.id,
        "student_id": invoice.student_id,
        "amount": Decimal(amount),
        "method": method,
        **extra,
    })


def test_negative_fee_item_is_rejected(db, make, campus):
    program = make.program(campus)
    year = make.year(campus)
    with pytest.raises(ValidationError, match="negative"):
        FeeService(db).create_structure(campus.id, {
            "name": "Bad", "program_id": program.id, "academic_year_id": year.id,
            "items": [{"name": "Refund", "amount": Decimal("-5"), "category": "OTHER"}],
        })


def test_one_structure_per_program_and_year(db, campus, billing):
    with pytest.raises(ConflictError):
        FeeService(db).create_structure(campus.id, {
            "name": "Duplicate",
            "program_id": billing["program"].id,
            "academic_year_id": billing["semester"].academic_year_id,
            "items": [],
        })


def test_generate_invoice_from_structure(db, campus, billing):
    invoice = InvoiceService(db).generate(campus.id, billing["student"].id, billing["semester"].id)

    assert invoice.invoice_number == f"INV-{date.today().year}-000001"
    assert invoice.amount == Decimal("1500.00")
    assert invoice.status == "PENDING"
    assert len(invoice.invoice_lines) == 3
    assert invoice.balance == Decimal("1500.00")


def test_invoice_numbers_are_sequential(db, make, campus, billing):
    service = InvoiceService(db)
    service.generate(campus.id, billing["student"].id, billing["semester"].id)
    second = make.student(campus, program=billing["program"])

    invoice = service.generate(campus.id, second.id, billing["semester"].id)

    assert invoice.invoice_number.endswith("-000002")


def test_one_open_invoice_per_semester(db, campus, billing):
    service = InvoiceService(db)
    service.generate(campus.id, billing["student"].id, billing["semester"].id)

    with pytest.raises(ConflictError):
        service.generate(campus.id, billing["student"].id, billing["semester"].id)


def test_cancelled_invoice_can_be_reissued(db, campus, billing):
    service = InvoiceService(db)
    first = service.generate(campus.id, billing["student"].id, billing["semester"].id)
    service.cancel(campus.id, first.id, reason="Wrong program")

    assert service.generate(campus.id, billing["student"].id, billing["semester"].id).id != first.id


def test_invoice_needs_program_and_structure(db, make, campus, billing):
    service = InvoiceService(db)
    with pytest.raises(ValidationError, match="no program"):
        service.generate(campus.id, make.student(campus).id, billing["semester"].id)

    unbilled = make.student(campus, program=make.program(campus))
    with pytest.raises(NotFoundError):
        service.generate(campus.id, unbilled.id, billing["semester"].id)


def test_partial_then_full_payment(db, campus, billing):
    invoice = InvoiceService(db).generate(campus.id, billing["student"].id, billing["semester"].id)

    first = _pay(db, campus, invoice, "500.00")
    db.refresh(invoice)
    assert first.receipt_number == f"RCP-{date.today().year}-000001"
    assert invoice.status == "PARTIAL"
    assert invoice.balance == Decimal("1000.00")

    _pay(db, campus, invoice, "1000.00", method="MOBILE_MONEY")
    db.refresh(invoice)
    assert invoice.status == "PAID"
    assert invoice.balance == Decimal("0.00")

    with pytest.raises(ValidationError, match="PAID"):
        _pay(db, campus, invoice, "1.00")


@pytest.mark.parametrize("amount, method, message", [
    ("0", "CASH", "greater than zero"),
    ("-10", "CASH", "greater than zero"),
    ("10", "BITCOIN", "Invalid payment method"),
])
def test_invalid_payments(db, campus, billing, amount, method, message):
    invoice = InvoiceService(db).generate(campus.id, billing["student"].id, billing["semester"].id)
    with pytest.raises(ValidationError, match=message):
        _pay(db, campus, invoice, amount, method)


def test_payment_must_match_invoice_student(db, make, campus, billing):
    invoice = InvoiceService(db).generate(campus.id, billing["student"].id, billing["semester"].id)
    with pytest.raises(ValidationError, match="does not belong"):
        PaymentService(db).record(campus.id, {
            "invoice_id": invoice.id,
            "student_id": make.student(campus).id,
            "amount": Decimal("10"),
            "method": "CASH",
        })


def test_void_restores_balance(db, campus, owner, billing):
    invoice = InvoiceService(db).generate(campus.id, billing["student"].id, billing["semester"].id)
    payment = _pay(db, campus, invoice, "1500.00")
    service = PaymentService(db)

    with pytest.raises(ValidationError, match="reason"):
        service.void(campus.id, payment.id, "  ", owner.id)

    voided = service.void(campus.id, payment.id, "Cheque bounced", owner.id)
    db.refresh(invoice)

    assert voided.is_voided
    assert invoice.status == "PENDING"
    assert invoice.balance == Decimal("1500.00")

    with pytest.raises(ValidationError, match="already voided"):
        service.void(campus.id, payment.id, "Again", owner.id)


def test_void_window(db, campus, owner, billing):
    invoice = InvoiceService(db).generate(campus.id, billing["student"].id, billing["semester"].id)
    payment = _pay(db, campus, invoice, "100.00")
    payment.created_at = datetime.utcnow() - timedelta(days=8)
    db.commit()

    with pytest.raises(ValidationError, match="within 7 days"):
        PaymentService(db).void(campus.id, payment.id, "Late correction", owner.id)


def test_invoice_with_payments_cannot_be_cancelled(db, campus, billing):
    invoice = InvoiceService(db).generate(campus.id, billing["student"].id, billing["semester"].id)
    _pay(db, campus, invoice, "100.00")

    with pytest.raises(ValidationError, match="void them"):
        InvoiceService(db).cancel(campus.id, invoice.id)


def test_derive_status():
    invoice = Invoice(amount=Decimal("100.00"), status="PENDING", due_date=date(2026, 10, 1))
    invoice.payments = []
    assert derive_status(invoice, today=date(2026, 9, 30)) == "PENDING"
    assert derive_status(invoice, today=date(2026, 10, 2)) == "OVERDUE"

    invoice.status = "CANCELLED"
    assert derive_status(invoice) == "CANCELLED"


def test_mark_overdue(db, campus, billing):
    service = InvoiceService(db)
    invoice = service.generate(campus.id, billing["student"].id, billing["semester"].id, due_date=date(2026, 1, 31))

    assert service.mark_overdue(campus.id, today=date(2026, 2, 1)) == 1
    db.refresh(invoice)
    assert invoice.status == "OVERDUE"
    assert [i.id for i in service.outstanding(campus.id)] == [invoice.id]


def test_bulk_generate_skips_existing(db, make, campus, billing):
    service = InvoiceService(db)
    service.generate(campus.id, billing["student"].id, billing["semester"].id)
    make.student(campus, program=billing["program"])
    make.student(campus)

    result = service.bulk_generate(campus.id, billing["semester"].id)

    assert result["generated"] == 1
    assert result["skipped"] == 1
    assert len(result["errors"]) == 1


def test_collection_report(db, campus, billing):
    invoice = InvoiceService(db).generate(campus.id, billing["student"].id, billing["semester"].id)
    _pay(db, campus, invoice, "300.00")
    _pay(db, campus, invoice, "200.00", method="CARD")

    today = date.today()
    report = PaymentService(db).collection_report(campus.id, today, today)

    assert report["total"] == Decimal("500.00")
    assert report["by_method"] == {"CASH": Decimal("300.00"), "CARD": Decimal("200.00")}
    assert report["by_program"] == {billing["program"].code: Decimal("500.00")}


def test_daily_collection(db, campus, owner, billing):
    invoice = InvoiceService(db).generate(campus.id, billing["student"].id, billing["semester"].id)
    day = datetime(2026, 10, 5, 9, 30)
    _pay(db, campus, invoice, "100.00", payment_date=day)
    _pay(db, campus, invoice, "50.00", method="CARD", payment_date=day + timedelta(hours=8))
    _pay(db, campus, invoice, "70.00", payment_date=day - timedelta(days=1))
    voided = _pay(db, campus, invoice, "30.00", payment_date=day)
    PaymentService(db).void(campus.id, voided.id, "Entered twice", owner.id)

    report = PaymentService(db).daily_collection(campus.id, date(2026, 10, 5))

    assert report == {
        "date": date(2026, 10, 5),
        "total": Decimal("150.00"),
        "count": 2,
        "by_method": {"CASH": Decimal("100.00"), "CARD": Decimal("50.00")},
    }


def test_receipt_shows_outstanding_balance(db, campus, billing):
    invoice = InvoiceService(db).generate(campus.id, billing["student"].id, billing["semester"].id)
    payment = _pay(db, campus, invoice, "400.00", reference="BANK-77")

    receipt = PaymentService(db).receipt(campus.id, payment.id)

    assert receipt["receipt_number"] == payment.receipt_number
    assert receipt["invoice_number"] == invoice.invoice_number
    assert receipt["invoice_status"] == "PARTIAL"
    assert receipt["total_paid"] == Decimal("400.00")
    assert receipt["balance"] == Decimal("1100.00")
    assert receipt["reference"] == "BANK-77"
    assert receipt["student_number"] == billing["student"].student_number


def test_student_statement_ignores_cancelled_invoices(db, campus, billing):
    service = InvoiceService(db)
    student = billing["student"]
    cancelled = service.generate(campus.id, student.id, billing["semester"].id)
    service.cancel(campus.id, cancelled.id, reason="Wrong program")
    invoice = service.generate(campus.id, student.id, billing["semester"].id)
    _pay(db, campus, invoice, "500.00")

    statement = PaymentService(db).student_statement(campus.id, student.id)

    assert [i.id for i in statement["invoices"]] == [cancelled.id, invoice.id]
    assert statement["total_billed"] == Decimal("1500.00")
    assert statement["total_paid"] == Decimal("500.00")
    assert statement["balance"] == Decimal("1000.00")


def test_payment_survives_a_plain_text_sms_gateway(db, make, campus, billing, monkeypatch):
    monkeypatch.setattr(settings, "SMS_API_URL", "https://sms.example.test/send")
    monkeypatch.setattr(settings, "SMS_API_KEY", "test-key")
    sent = []

    def gateway(request):
        sent.append(json.loads(request.content)["message"])
        return httpx.Response(200, text="OK")

    user = make.user(phone="+252612345678")
    student = make.student(campus, program=billing["program"], user=user)
    notifier = NotificationService(db, sms_service=SmsService(client=httpx.Client(transport=httpx.MockTransport(gateway))))
    notifier.update_preferences(user, {"sms_enabled": True})
    invoice = InvoiceService(db).generate(campus.id, student.id, billing["semester"].id)

    payment = PaymentService(db, notifications=notifier).record(campus.id, {
        "invoice_id": invoice.id, "student_id": student.id, "amount": Decimal("500.00"), "method": "CASH",
    })

    assert db.get(Payment, payment.id) is not None
    assert sent == [
        f"Payment of 500.00 received. Receipt: {payment.receipt_number}. Remaining balance: 1000.00. Thank you!"
    ]
