# app/services/employee_service.py - Staff records
from sqlalchemy.orm import Session
from sqlalchemy import select, func, or_
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID
import logging

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.catalog import Department
from app.models.employee import Employee
from app.services.audit_service import AuditService
from app.services.numbering import next_sequence_number

logger = logging.getLogger(__name__)

EMPLOYMENT_TYPES = ("FULL_TIME", "PART_TIME", "CONTRACT")
EMPLOYEE_STATUSES = ("ACTIVE", "ON_LEAVE", "TERMINATED")


class EmployeeService:
    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)

    def generate_employee_number(self, campus_id: UUID) -> str:
        return next_sequence_number(self.db, Employee.employee_number, Employee.campus_id, campus_id, "EMP-", 4)

    def _validate(self, campus_id: UUID, data: Dict[str, Any]) -> None:
        if "employment_type" in data and data["employment_type"] not in EMPLOYMENT_TYPES:
            raise ValidationError(f"Invalid employment type '{data['employment_type']}'")
        if "status" in data and data["status"] not in EMPLOYEE_STATUSES:
            raise ValidationError(f"Invalid employee status '{data['status']}'")
        if data.get("base_salary") is not None and Decimal(str(data["base_salary"])) < 0:
            raise ValidationError("Base salary cannot be negative")
        if data.get("department_id"):
            department = self.db.execute(
                select(Department.id).where(Department.id == data["department_id"], Department.campus_id == campus_id)
            ).scalar_one_or_none()
            if department is None:
                raise NotFoundError("Department", data["department_id"])

    def _ensure_unique_email(self, campus_id: UUID, email: Optional[str], exclude_id: Optional[UUID] = None) -> None:
        if not email:
            return
        query = select(Employee.id).where(Employee.campus_id == campus_id, Employee.email == email)
        if exclude_id:
            query = query.where(Employee.id != exclude_id)
        if self.db.execute(query).scalar_one_or_none():
            raise ConflictError(f"An employee with email {email} already exists")

    def create_employee(self, campus_id: UUID, data: Dict[str, Any], created_by: Optional[UUID] = None) -> Employee:
        self._validate(campus_id, data)
        if data.get("email"):
            data["email"] = data["email"].lower()
        self._ensure_unique_email(campus_id, data.get("email"))

        employee = Employee(
            campus_id=campus_id,
            employee_number=self.generate_employee_number(campus_id),
            **data
        )
        self.db.add(employee)
        self.db.flush()
        self.audit.log("EMPLOYEE_CREATED", "employee", employee.id, user_id=created_by, campus_id=campus_id)
        self.db.commit()
        self.db.refresh(employee)

        logger.info(f"Employee created: {employee.employee_number} {employee.full_name}")
        return employee

    def get_employee(self, campus_id: UUID, employee_id: UUID) -> Employee:
        employee = self.db.execute(
            select(Employee).where(Employee.id == employee_id, Employee.campus_id == campus_id)
        ).scalar_one_or_none()
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        return employee

    def get_by_user(self, campus_id: UUID, user_id: UUID) -> Optional[Employee]:
        return self.db.execute(
            select(Employee).where(Employee.user_id == user_id, Employee.campus_id == campus_id)
        ).scalar_one_or_none()

    def list_employees(
        self,
        campus_id: UUID,
        search: Optional[str] = None,
        department_id: Optional[UUID] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Dict[str, Any]:
        query = select(Employee).where(Employee.campus_id == campus_id)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(
                Employee.first_name.ilike(pattern),
                Employee.last_name.ilike(pattern),
                Employee.employee_number.ilike(pattern),
                Employee.email.ilike(pattern),
            ))
        if department_id:
            query = query.where(Employee.department_id == department_id)
        if status:
            query = query.where(Employee.status == status)

        total = self.db.execute(select(func.count()).select_from(query.subquery())).scalar_one()
        items = self.db.execute(
            query.order_by(Employee.employee_number).offset(skip).limit(limit)
        ).scalars().all()
        return {"items": list(items), "total": total}

    def update_employee(self, campus_id: UUID, employee_id: UUID, changes: Dict[str, Any], updated_by: Optional[UUID] = None) -> Employee:
        employee = self.get_employee(campus_id, employee_id)
        self._validate(campus_id, changes)
        if changes.get("email"):
            changes["email"] = changes["email"].lower()
            self._ensure_unique_email(campus_id, changes["email"], exclude_id=employee.id)

        for field, value in changes.items():
            setattr(employee, field, value)

        self.audit.log(
            "EMPLOYEE_UPDATED", "employee", employee.id,
            user_id=updated_by, campus_id=campus_id, details={"fields": sorted(changes)}
        )
        self.db.commit()
        self.db.refresh(employee)
        return employee

    def terminate(self, campus_id: UUID, employee_id: UUID, terminated_by: Optional[UUID] = None) -> Employee:
        employee = self.get_employee(campus_id, employee_id)
        if employee.status == "TERMINATED":
            raise ValidationError("Employee is already terminated")
        employee.status = "TERMINATED"
        self.audit.log("EMPLOYEE_TERMINATED", "employee", employee.id, user_id=terminated_by, campus_id=campus_id)
        self.db.commit()
        self.db.refresh(employee)
        logger.info(f"Employee terminated: {employee.employee_number}")
        return employee
