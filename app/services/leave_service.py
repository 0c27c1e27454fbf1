# app/services/leave_service.py - Leave types, balances and requests
from sqlalchemy.orm import Session
from sqlalchemy import select
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.employee import Employee
from app.models.leave import LeaveType, LeaveBalance, LeaveRequest
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

# date.weekday(): Friday = 4, Saturday = 5
WEEKEND_DAYS = (4, 5)


def business_days(start: date, end: date) -> int:
    """Working days in the inclusive range; Friday and Saturday are the weekend"""
    if end < start:
        return 0
    days = 0
    current = start
    while current <= end:
        if current.weekday() not in WEEKEND_DAYS:
            days += 1
        current += timedelta(days=1)
    return days


class LeaveService:
    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)

    # Leave types

    def create_leave_type(self, campus_id: UUID, data: Dict[str, Any]) -> LeaveType:
        data["code"] = data["code"].upper()
        existing = self.db.execute(
            select(LeaveType.id).where(LeaveType.campus_id == campus_id, LeaveType.code == data["code"])
        ).scalar_one_or_none()
        if existing:
            raise ConflictError(f"Leave type '{data['code']}' already exists")

        leave_type = LeaveType(campus_id=campus_id, **data)
        self.db.add(leave_type)
        self.db.commit()
        self.db.refresh(leave_type)
        return leave_type

    def list_leave_types(self, campus_id: UUID, active_only: bool = False) -> List[LeaveType]:
        query = select(LeaveType).where(LeaveType.campus_id == campus_id)
        if active_only:
            query = query.where(LeaveType.is_active.is_(True))
        return list(self.db.execute(query.order_by(LeaveType.code)).scalars().all())

    def get_leave_type(self, campus_id: UUID, leave_type_id: UUID) -> LeaveType:
        leave_type = self.db.execute(
            select(LeaveType).where(LeaveType.id == leave_type_id, LeaveType.campus_id == campus_id)
        ).scalar_one_or_none()
        if leave_type is None:
            raise NotFoundError("Leave type", leave_type_id)
        return leave_type

    def update_leave_type(self, campus_id: UUID, leave_type_id: UUID, changes: Dict[str, Any]) -> LeaveType:
        leave_type = self.get_leave_type(campus_id, leave_type_id)
        for field, value in changes.items():
            setattr(leave_type, field, value)
        self.db.commit()
        self.db.refresh(leave_type)
        return leave_type

    # Balances

    def _find_balance(self, employee_id: UUID, leave_type_id: UUID, year: int) -> Optional[LeaveBalance]:
        return self.db.execute(
            select(LeaveBalance).where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.leave_type_id == leave_type_id,
                LeaveBalance.year == year
            )
        ).scalar_one_or_none()

    def get_or_create_balance(self, campus_id: UUID, employee_id: UUID, leave_type: LeaveType, year: int) -> LeaveBalance:
        balance = self._find_balance(employee_id, leave_type.id, year)
        if balance is None:
            balance = LeaveBalance(
                campus_id=campus_id,
                employee_id=employee_id,
                leave_type_id=leave_type.id,
                year=year,
                allocated=Decimal(leave_type.days_per_year),
                used=Decimal("0"),
                pending=Decimal("0"),
                carried_forward=Decimal("0"),
            )
            self.db.add(balance)
            self.db.flush()
        return balance

    def allocate(self, campus_id: UUID, employee_id: UUID, leave_type_id: UUID, year: int, days: Decimal) -> LeaveBalance:
        if Decimal(str(days)) < 0:
            raise ValidationError("Allocated days cannot be negative")
        leave_type = self.get_leave_type(campus_id, leave_type_id)
        balance = self.get_or_create_balance(campus_id, employee_id, leave_type, year)
        balance.allocated = Decimal(str(days))
        self.db.commit()
        self.db.refresh(balance)
        return balance

    def allocate_defaults(self, campus_id: UUID, year: int) -> int:
        """Give every active employee each active leave type's yearly allowance"""
        employees = self.db.execute(
            select(Employee).where(Employee.campus_id == campus_id, Employee.status == "ACTIVE")
        ).scalars().all()
        leave_types = self.list_leave_types(campus_id, active_only=True)

        created = 0
        for employee in employees:
            for leave_type in leave_types:
                if self._find_balance(employee.id, leave_type.id, year) is None:
                    self.get_or_create_balance(campus_id, employee.id, leave_type, year)
                    created += 1
        self.db.commit()
        logger.info(f"Allocated {created} leave balances for {year}")
        return created

    @staticmethod
    def deduct(balance: LeaveBalance, days: Decimal) -> None:
        days = Decimal(str(days))
        if balance.available < days:
            raise ValidationError(f"Insufficient leave balance: {balance.available} days available, {days} requested")
        balance.used += days

    @staticmethod
    def restore(balance: LeaveBalance, days: Decimal) -> None:
        balance.used = max(Decimal("0"), balance.used - Decimal(str(days)))

    def carry_forward(self, campus_id: UUID, from_year: int) -> int:
        """Move unused days into next year for leave types that allow it"""
        balances = self.db.execute(
            select(LeaveBalance)
            .join(LeaveType, LeaveType.id == LeaveBalance.leave_type_id)
            .where(
                LeaveBalance.campus_id == campus_id,
                LeaveBalance.year == from_year,
                LeaveType.carry_forward.is_(True)
            )
        ).scalars().all()

        carried = 0
        for balance in balances:
            amount = min(balance.available, Decimal(balance.leave_type.max_carry_days))
            if amount <= 0:
                continue
            next_balance = self.get_or_create_balance(campus_id, balance.employee_id, balance.leave_type, from_year + 1)
            next_balance.carried_forward = amount
            carried += 1

        self.db.commit()
        logger.info(f"Carried forward {carried} leave balances from {from_year}")
        return carried

    def employee_balances(self, campus_id: UUID, employee_id: UUID, year: Optional[int] = None) -> List[LeaveBalance]:
        year = year or date.today().year
        return list(self.db.execute(
            select(LeaveBalance).where(
                LeaveBalance.campus_id == campus_id,
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.year == year
            )
        ).scalars().all())

    # Requests

    def get_request(self, campus_id: UUID, request_id: UUID) -> LeaveRequest:
        request = self.db.execute(
            select(LeaveRequest).where(LeaveRequest.id == request_id, LeaveRequest.campus_id == campus_id)
        ).scalar_one_or_none()
        if request is None:
            raise NotFoundError("Leave request", request_id)
        return request

    def submit_request(self, campus_id: UUID, employee_id: UUID, data: Dict[str, Any]) -> LeaveRequest:
        start, end = data["start_date"], data["end_date"]
        if start > end:
            raise ValidationError("Start date must not be after end date")

        employee = self.db.execute(
            select(Employee).where(Employee.id == employee_id, Employee.campus_id == campus_id)
        ).scalar_one_or_none()
        if employee is None:
            raise NotFoundError("Employee", employee_id)

        leave_type = self.db.execute(
            select(LeaveType).where(LeaveType.id == data["leave_type_id"], LeaveType.campus_id == campus_id)
        ).scalar_one_or_none()
        if leave_type is None or not leave_type.is_active:
            raise ValidationError("Leave type is not available")
        if leave_type.requires_document and not data.get("document_url"):
            raise ValidationError(f"{leave_type.name} requires a supporting document")

        overlapping = self.db.execute(
            select(LeaveRequest.id).where(
                LeaveRequest.employee_id == employee.id,
                LeaveRequest.status.in_(("PENDING", "APPROVED")),
                LeaveRequest.start_date <= end,
                LeaveRequest.end_date >= start
            )
        ).scalars().first()
        if overlapping:
            raise ConflictError("Leave request overlaps an existing request")

        days = business_days(start, end)
        if days < 1:
            raise ValidationError("Leave request must include at least one working day")

        balance = self.get_or_create_balance(campus_id, employee.id, leave_type, start.year)
        if balance.available < days:
            raise ValidationError(f"Insufficient leave balance: {balance.available} days available, {days} requested")

        request = LeaveRequest(
            campus_id=campus_id,
            employee_id=employee.id,
            leave_type_id=leave_type.id,
            start_date=start,
            end_date=end,
            days=Decimal(days),
            reason=data["reason"],
            document_url=data.get("document_url"),
            status="PENDING",
        )
        balance.pending += Decimal(days)
        self.db.add(request)
        self.db.commit()
        self.db.refresh(request)

        logger.info(f"Leave request {request.id} submitted by {employee.employee_number} for {days} days")
        return request

    def _balance_for(self, request: LeaveRequest) -> LeaveBalance:
        return self.get_or_create_balance(request.campus_id, request.employee_id, request.leave_type, request.start_date.year)

    def _notify(self, request: LeaveRequest, title: str, message: str) -> None:
        if request.employee.user_id:
            self.notifications.send(
                request.employee.user_id, "LEAVE", title, message,
                campus_id=request.campus_id, commit=False
            )

    def approve(self, campus_id: UUID, request_id: UUID, reviewer_id: UUID, remarks: Optional[str] = None) -> LeaveRequest:
        request = self.get_request(campus_id, request_id)
        if request.status != "PENDING":
            raise ValidationError(f"Only pending requests can be approved; this one is {request.status}")

        balance = self._balance_for(request)
        balance.pending = max(Decimal("0"), balance.pending - request.days)
        self.deduct(balance, request.days)

        request.status = "APPROVED"
        request.reviewed_by_id = reviewer_id
        request.reviewed_at = datetime.utcnow()
        request.remarks = remarks

        self._notify(
            request,
            "Leave approved",
            f"Your {request.leave_type.name} from {request.start_date} to {request.end_date} has been approved.",
        )
        self.db.commit()
        self.db.refresh(request)
        logger.info(f"Leave request {request.id} approved")
        return request

    def reject(self, campus_id: UUID, request_id: UUID, reviewer_id: UUID, remarks: str) -> LeaveRequest:
        request = self.get_request(campus_id, request_id)
        if request.status != "PENDING":
            raise ValidationError(f"Only pending requests can be rejected; this one is {request.status}")
        if not remarks or not remarks.strip():
            raise ValidationError("Remarks are required when rejecting a leave request")

        balance = self._balance_for(request)
        balance.pending = max(Decimal("0"), balance.pending - request.days)

        request.status = "REJECTED"
        request.reviewed_by_id = reviewer_id
        request.reviewed_at = datetime.utcnow()
        request.remarks = remarks.strip()

        self._notify(
            request,
            "Leave rejected",
            f"Your {request.leave_type.name} from {request.start_date} to {request.end_date} was rejected: {request.remarks}",
        )
        self.db.commit()
        self.db.refresh(request)
        logger.info(f"Leave request {request.id} rejected")
        return request

    def cancel(self, campus_id: UUID, request_id: UUID) -> LeaveRequest:
        request = self.get_request(campus_id, request_id)
        if request.status in ("CANCELLED", "REJECTED"):
            raise ValidationError(f"Cannot cancel a request that is {request.status}")

        balance = self._balance_for(request)
        if request.status == "PENDING":
            balance.pending = max(Decimal("0"), balance.pending - request.days)
        else:
            self.restore(balance, request.days)

        request.status = "CANCELLED"
        self.db.commit()
        self.db.refresh(request)
        return request

    def list_requests(
        self,
        campus_id: UUID,
        employee_id: Optional[UUID] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[LeaveRequest]:
        query = select(LeaveRequest).where(LeaveRequest.campus_id == campus_id)
        if employee_id:
            query = query.where(LeaveRequest.employee_id == employee_id)
        if status:
            query = query.where(LeaveRequest.status == status)
        query = query.order_by(LeaveRequest.start_date.desc()).offset(skip).limit(limit)
        return list(self.db.execute(query).scalars().all())
