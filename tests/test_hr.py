from datetime import date
from decimal import Decimal

import pytest

from app.core.errors import ConflictError, ValidationError
from app.models import Notification
from app.services.leave_service import LeaveService, business_days
from app.services.payroll_service import PayrollService


@pytest.mark.parametrize("start, end, expected", [
    (date(2026, 10, 18), date(2026, 10, 24), 5),   # Sunday to Saturday
    (date(2026, 10, 23), date(2026, 10, 24), 0),   # Friday and Saturday only
    (date(2026, 10, 22), date(2026, 10, 25), 2),   # Thursday over the weekend to Sunday
    (date(2026, 10, 19), date(2026, 10, 19), 1),
    (date(2026, 10, 20), date(2026, 10, 19), 0),
])
def test_business_days(start, end, expected):
    assert business_days(start, end) == expected


@pytest.fixture
def annual(db, campus):
    return LeaveService(db).create_leave_type(campus.id, {"code": "annual", "name": "Annual Leave", "days_per_year": 10})


def _request(db, campus, employee, leave_type, start, end):
    return LeaveService(db).submit_request(campus.id, employee.id, {
        "leave_type_id": leave_type.id,
        "start_date": start,
        "end_date": end,
        "reason": "Family visit",
    })


def test_leave_type_codes_are_unique(db, campus, annual):
    assert annual.code == "ANNUAL"
    with pytest.raises(ConflictError):
        LeaveService(db).create_leave_type(campus.id, {"code": "Annual", "name": "Again", "days_per_year": 5})


def test_submit_reserves_pending_days(db, make, campus, annual):
    employee = make.employee(campus)

    request = _request(db, campus, employee, annual, date(2026, 10, 18), date(2026, 10, 24))

    assert request.status == "PENDING"
    assert request.days == Decimal("5")
    balance = LeaveService(db).employee_balances(campus.id, employee.id, 2026)[0]
    assert balance.allocated == Decimal("10")
    assert balance.pending == Decimal("5")
    assert balance.available == Decimal("5")


def test_insufficient_balance(db, make, campus, annual):
    employee = make.employee(campus)
    _request(db, campus, employee, annual, date(2026, 10, 18), date(2026, 10, 22))
    _request(db, campus, employee, annual, date(2026, 10, 25), date(2026, 10, 29))

    with pytest.raises(ValidationError, match="Insufficient leave balance"):
        _request(db, campus, employee, annual, date(2026, 11, 1), date(2026, 11, 1))


def test_overlapping_requests(db, make, campus, annual):
    employee = make.employee(campus)
    _request(db, campus, employee, annual, date(2026, 10, 18), date(2026, 10, 20))

    with pytest.raises(ConflictError):
        _request(db, campus, employee, annual, date(2026, 10, 20), date(2026, 10, 21))


def test_weekend_only_request_is_rejected(db, make, campus, annual):
    with pytest.raises(ValidationError, match="working day"):
        _request(db, campus, make.employee(campus), annual, date(2026, 10, 23), date(2026, 10, 24))


def test_document_required(db, make, campus):
    sick = LeaveService(db).create_leave_type(campus.id, {
        "code": "SICK", "name": "Sick Leave", "days_per_year": 14, "requires_document": True,
    })
    with pytest.raises(ValidationError, match="supporting document"):
        _request(db, campus, make.employee(campus), sick, date(2026, 10, 19), date(2026, 10, 19))


def test_approve_moves_pending_to_used_and_notifies(db, make, campus, owner, annual):
    user = make.user()
    employee = make.employee(campus, user=user)
    request = _request(db, campus, employee, annual, date(2026, 10, 18), date(2026, 10, 20))
    service = LeaveService(db)

    approved = service.approve(campus.id, request.id, owner.id)

    balance = service.employee_balances(campus.id, employee.id, 2026)[0]
    assert approved.status == "APPROVED"
    assert balance.pending == Decimal("0")
    assert balance.used == Decimal("3")
    assert db.query(Notification).filter_by(user_id=user.id, type="LEAVE").count() == 1

    with pytest.raises(ValidationError, match="Only pending"):
        service.approve(campus.id, request.id, owner.id)


def test_reject_requires_remarks_and_releases_days(db, make, campus, owner, annual):
    employee = make.employee(campus)
    request = _request(db, campus, employee, annual, date(2026, 10, 18), date(2026, 10, 20))
    service = LeaveService(db)

    with pytest.raises(ValidationError, match="Remarks"):
        service.reject(campus.id, request.id, owner.id, " ")

    rejected = service.reject(campus.id, request.id, owner.id, "Exam period")
    assert rejected.status == "REJECTED"
    assert service.employee_balances(campus.id, employee.id, 2026)[0].available == Decimal("10")

    with pytest.raises(ValidationError):
        service.cancel(campus.id, request.id)


def test_cancel_approved_restores_used_days(db, make, campus, owner, annual):
    employee = make.employee(campus)
    request = _request(db, campus, employee, annual, date(2026, 10, 18), date(2026, 10, 20))
    service = LeaveService(db)
    service.approve(campus.id, request.id, owner.id)

    service.cancel(campus.id, request.id)

    balance = service.employee_balances(campus.id, employee.id, 2026)[0]
    assert balance.used == Decimal("0")
    assert balance.available == Decimal("10")


def test_carry_forward_is_capped(db, make, campus):
    service = LeaveService(db)
    leave_type = service.create_leave_type(campus.id, {
        "code": "ANNUAL", "name": "Annual", "days_per_year": 10, "carry_forward": True, "max_carry_days": 3,
    })
    employee = make.employee(campus)
    service.allocate(campus.id, employee.id, leave_type.id, 2026, Decimal("10"))

    assert service.carry_forward(campus.id, 2026) == 1

    next_year = service.employee_balances(campus.id, employee.id, 2027)[0]
    assert next_year.carried_forward == Decimal("3")
    assert next_year.available == Decimal("13")


@pytest.fixture
def payroll(db, campus):
    service = PayrollService(db)
    service.seed_defaults(campus.id)
    return service


def test_seed_defaults_is_idempotent(db, campus, payroll):
    assert payroll.seed_defaults(campus.id) == []
    assert [c.code for c in payroll.list_components(campus.id)] == ["HOUSING", "TRANSPORT", "PENSION", "TAX"]


def test_calculate_salary(db, make, campus, payroll):
    employee = make.employee(campus, base_salary=Decimal("1000.00"))

    result = payroll.calculate(campus.id, employee.id)

    assert result["total_allowances"] == Decimal("200.00")
    assert result["total_deductions"] == Decimal("80.00")
    assert result["gross_salary"] == Decimal("1200.00")
    assert result["net_salary"] == Decimal("1120.00")


def test_percentage_components_round_half_up(db, make, campus, payroll):
    employee = make.employee(campus, base_salary=Decimal("1234.50"))
    items = {item["name"]: item["amount"] for item in payroll.calculate(campus.id, employee.id)["items"]}

    assert items["Housing Allowance"] == Decimal("185.18")
    assert items["Pension"] == Decimal("37.04")


def test_payroll_lifecycle(db, make, campus, owner, payroll):
    employee = make.employee(campus)

    processed = payroll.process(campus.id, employee.id, 10, 2026)
    assert processed.status == "PROCESSED"
    assert len(processed.items) == 4

    with pytest.raises(ValidationError, match="Only approved"):
        payroll.mark_paid(campus.id, processed.id)

    approved = payroll.approve(campus.id, processed.id, owner.id)
    assert approved.status == "APPROVED"
    with pytest.raises(ValidationError, match="already APPROVED"):
        payroll.process(campus.id, employee.id, 10, 2026)

    assert payroll.mark_paid(campus.id, processed.id).status == "PAID"


def test_terminated_employee_is_not_paid(db, make, campus, payroll):
    employee = make.employee(campus, status="TERMINATED")
    with pytest.raises(ValidationError, match="TERMINATED"):
        payroll.calculate(campus.id, employee.id)


def test_bulk_process_skips_inactive(db, make, campus, payroll):
    make.employee(campus)
    make.employee(campus)
    make.employee(campus, status="TERMINATED")

    result = payroll.bulk_process(campus.id, 11, 2026)

    assert result == {"processed": 2, "failed": 0, "errors": []}


def test_approve_rechecks_balance_after_allocation_cut(db, make, campus, owner, annual):
    employee = make.employee(campus)
    request = _request(db, campus, employee, annual, date(2026, 10, 18), date(2026, 10, 20))
    service = LeaveService(db)
    service.allocate(campus.id, employee.id, annual.id, 2026, Decimal("1"))

    with pytest.raises(ValidationError, match="Insufficient leave balance"):
        service.approve(campus.id, request.id, owner.id)
