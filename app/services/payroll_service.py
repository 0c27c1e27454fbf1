# app/services/payroll_service.py - Salary components and monthly payroll
from sqlalchemy.orm import Session
from sqlalchemy import select
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from app.core.errors import AppError, ConflictError, NotFoundError, ValidationError
from app.models.employee import Employee
from app.models.payroll import SalaryComponent, Payroll, PayrollItem
from app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")

DEFAULT_COMPONENTS = [
    {"code": "HOUSING", "name": "Housing Allowance", "component_type": "ALLOWANCE", "calculation_type": "PERCENTAGE", "value": Decimal("15")},
    {"code": "TRANSPORT", "name": "Transport Allowance", "component_type": "ALLOWANCE", "calculation_type": "FIXED", "value": Decimal("50")},
    {"code": "TAX", "name": "Income Tax", "component_type": "DEDUCTION", "calculation_type": "PERCENTAGE", "value": Decimal("5")},
    {"code": "PENSION", "name": "Pension", "component_type": "DEDUCTION", "calculation_type": "PERCENTAGE", "value": Decimal("3")},
]


def component_amount(component: SalaryComponent, base_salary: Decimal) -> Decimal:
    if component.calculation_type == "PERCENTAGE":
        amount = base_salary * Decimal(str(component.value)) / 100
    else:
        amount = Decimal(str(component.value))
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


class PayrollService:
    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)

    # Components

    def create_component(self, campus_id: UUID, data: Dict[str, Any]) -> SalaryComponent:
        data["code"] = data["code"].upper()
        if data["component_type"] not in ("ALLOWANCE", "DEDUCTION"):
            raise ValidationError(f"Invalid component type '{data['component_type']}'")
        if data["calculation_type"] not in ("PERCENTAGE", "FIXED"):
            raise ValidationError(f"Invalid calculation type '{data['calculation_type']}'")
        if Decimal(str(data["value"])) < 0:
            raise ValidationError("Component value cannot be negative")

        existing = self.db.execute(
            select(SalaryComponent.id).where(SalaryComponent.campus_id == campus_id, SalaryComponent.code == data["code"])
        ).scalar_one_or_none()
        if existing:
            raise ConflictError(f"Salary component '{data['code']}' already exists")

        component = SalaryComponent(campus_id=campus_id, **data)
        self.db.add(component)
        self.db.commit()
        self.db.refresh(component)
        return component

    def list_components(self, campus_id: UUID, active_only: bool = False) -> List[SalaryComponent]:
        query = select(SalaryComponent).where(SalaryComponent.campus_id == campus_id)
        if active_only:
            query = query.where(SalaryComponent.is_active.is_(True))
        return list(self.db.execute(query.order_by(SalaryComponent.component_type, SalaryComponent.code)).scalars().all())

    def update_component(self, campus_id: UUID, component_id: UUID, changes: Dict[str, Any]) -> SalaryComponent:
        component = self.db.execute(
            select(SalaryComponent).where(SalaryComponent.id == component_id, SalaryComponent.campus_id == campus_id)
        ).scalar_one_or_none()
        if component is None:
            raise NotFoundError("Salary component", component_id)
        if "value" in changes and Decimal(str(changes["value"])) < 0:
            raise ValidationError("Component value cannot be negative")
        for field, value in changes.items():
            setattr(component, field, value)
        self.db.commit()
        self.db.refresh(component)
        return component

    def seed_defaults(self, campus_id: UUID) -> List[SalaryComponent]:
        """Create the standard allowances and deductions that are missing"""
        existing = {c.code for c in self.list_components(campus_id)}
        created = []
        for definition in DEFAULT_COMPONENTS:
            if definition["code"] in existing:
                continue
            component = SalaryComponent(campus_id=campus_id, is_active=True, **definition)
            self.db.add(component)
            created.append(component)
        self.db.commit()
        return created

    # Calculation

    def _get_employee(self, campus_id: UUID, employee_id: UUID) -> Employee:
        employee = self.db.execute(
            select(Employee).where(Employee.id == employee_id, Employee.campus_id == campus_id)
        ).scalar_one_or_none()
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        return employee

    def calculate(self, campus_id: UUID, employee_id: UUID) -> Dict[str, Any]:
        employee = self._get_employee(campus_id, employee_id)
        if employee.status != "ACTIVE":
            raise ValidationError(f"Employee is {employee.status}")

        base = Decimal(str(employee.base_salary))
        items = []
        allowances = Decimal("0.00")
        deductions = Decimal("0.00")
        for component in self.list_components(campus_id, active_only=True):
            amount = component_amount(component, base)
            items.append({
                "component_id": component.id,
                "name": component.name,
                "component_type": component.component_type,
                "amount": amount,
            })
            if component.component_type == "ALLOWANCE":
                allowances += amount
            else:
                deductions += amount

        gross = base + allowances
        return {
            "employee_id": employee.id,
            "base_salary": base,
            "total_allowances": allowances,
            "total_deductions": deductions,
            "gross_salary": gross,
            "net_salary": gross - deductions,
            "items": items,
        }

    def process(self, campus_id: UUID, employee_id: UUID, month: int, year: int, commit: bool = True) -> Payroll:
        if not 1 <= month <= 12:
            raise ValidationError("Month must be between 1 and 12")

        calculation = self.calculate(campus_id, employee_id)

        payroll = self.db.execute(
            select(Payroll).where(
                Payroll.employee_id == employee_id,
                Payroll.month == month,
                Payroll.year == year
            )
        ).scalar_one_or_none()
        if payroll is not None and payroll.status != "DRAFT":
            raise ValidationError(f"Payroll for {month}/{year} is already {payroll.status}")

        if payroll is None:
            payroll = Payroll(campus_id=campus_id, employee_id=employee_id, month=month, year=year)
            self.db.add(payroll)

        payroll.base_salary = calculation["base_salary"]
        payroll.total_allowances = calculation["total_allowances"]
        payroll.total_deductions = calculation["total_deductions"]
        payroll.gross_salary = calculation["gross_salary"]
        payroll.net_salary = calculation["net_salary"]
        payroll.status = "PROCESSED"
        payroll.processed_at = datetime.utcnow()
        payroll.items = [PayrollItem(**item) for item in calculation["items"]]

        if commit:
            self.db.commit()
            self.db.refresh(payroll)
        else:
            self.db.flush()

        logger.info(f"Payroll processed for employee {employee_id} {month}/{year}: net {payroll.net_salary}")
        return payroll

    def bulk_process(self, campus_id: UUID, month: int, year: int, department_id: Optional[UUID] = None) -> Dict[str, Any]:
        query = select(Employee).where(Employee.campus_id == campus_id, Employee.status == "ACTIVE")
        if department_id:
            query = query.where(Employee.department_id == department_id)
        employees = self.db.execute(query).scalars().all()

        processed = 0
        errors = []
        for employee in employees:
            try:
                with self.db.begin_nested():
                    self.process(campus_id, employee.id, month, year, commit=False)
                processed += 1
            except AppError as e:
                errors.append({"employee_id": str(employee.id), "employee_number": employee.employee_number, "error": e.message})

        self.db.commit()
        return {"processed": processed, "failed": len(errors), "errors": errors}

    def get_payroll(self, campus_id: UUID, payroll_id: UUID) -> Payroll:
        payroll = self.db.execute(
            select(Payroll).where(Payroll.id == payroll_id, Payroll.campus_id == campus_id)
        ).scalar_one_or_none()
        if payroll is None:
            raise NotFoundError("Payroll", payroll_id)
        return payroll

    def list_payrolls(
        self,
        campus_id: UUID,
        month: Optional[int] = None,
        year: Optional[int] = None,
        employee_id: Optional[UUID] = None,
        status: Optional[str] = None,
    ) -> List[Payroll]:
        query = select(Payroll).where(Payroll.campus_id == campus_id)
        if month:
            query = query.where(Payroll.month == month)
        if year:
            query = query.where(Payroll.year == year)
        if employee_id:
            query = query.where(Payroll.employee_id == employee_id)
        if status:
            query = query.where(Payroll.status == status)
        return list(self.db.execute(query.order_by(Payroll.year.desc(), Payroll.month.desc())).scalars().all())

    def approve(self, campus_id: UUID, payroll_id: UUID, approved_by: UUID) -> Payroll:
        payroll = self.get_payroll(campus_id, payroll_id)
        if payroll.status != "PROCESSED":
            raise ValidationError(f"Only processed payrolls can be approved; this one is {payroll.status}")
        payroll.status = "APPROVED"
        payroll.approved_by_id = approved_by
        payroll.approved_at = datetime.utcnow()
        self.audit.log("PAYROLL_APPROVED", "payroll", payroll.id, user_id=approved_by, campus_id=campus_id)
        self.db.commit()
        self.db.refresh(payroll)
        return payroll

    def mark_paid(self, campus_id: UUID, payroll_id: UUID, paid_by: Optional[UUID] = None) -> Payroll:
        payroll = self.get_payroll(campus_id, payroll_id)
        if payroll.status != "APPROVED":
            raise ValidationError(f"Only approved payrolls can be paid; this one is {payroll.status}")
        payroll.status = "PAID"
        payroll.paid_at = datetime.utcnow()
        self.audit.log("PAYROLL_PAID", "payroll", payroll.id, user_id=paid_by, campus_id=campus_id)
        self.db.commit()
        self.db.refresh(payroll)
        return payroll

    def report(self, campus_id: UUID, month: int, year: int) -> Dict[str, Any]:
        payrolls = self.list_payrolls(campus_id, month=month, year=year)

        departments: Dict[str, Dict[str, Any]] = {}
        for payroll in payrolls:
            department = payroll.employee.department
            key = department.name if department else "Unassigned"
            bucket = departments.setdefault(key, {
                "department": key,
                "count": 0,
                "gross": Decimal("0.00"),
                "deductions": Decimal("0.00"),
                "net": Decimal("0.00"),
            })
            bucket["count"] += 1
            bucket["gross"] += payroll.gross_salary
            bucket["deductions"] += payroll.total_deductions
            bucket["net"] += payroll.net_salary

        return {
            "month": month,
            "year": year,
            "count": len(payrolls),
            "total_gross": sum((p.gross_salary for p in payrolls), Decimal("0.00")),
            "total_deductions": sum((p.total_deductions for p in payrolls), Decimal("0.00")),
            "total_net": sum((p.net_salary for p in payrolls), Decimal("0.00")),
            "by_department": sorted(departments.values(), key=lambda d: d["department"]),
        }
