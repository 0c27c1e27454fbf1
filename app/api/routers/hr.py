# app/api/routers/hr.py - Employees, leave management and payroll
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Dict, Any, List, Optional
from uuid import UUID

from app.core.db import get_db
from app.api.deps.tenancy import require_campus, require_campus_roles
from app.services.employee_service import EmployeeService
from app.services.leave_service import LeaveService
from app.services.payroll_service import PayrollService
from app.schemas.hr import (
    EmployeeCreate,
    EmployeeUpdate,
    EmployeeOut,
    EmployeeList,
    LeaveTypeCreate,
    LeaveTypeUpdate,
    LeaveTypeOut,
    LeaveAllocate,
    LeaveBalanceOut,
    LeaveRequestCreate,
    LeaveDecision,
    LeaveRequestOut,
    SalaryComponentCreate,
    SalaryComponentUpdate,
    SalaryComponentOut,
    PayrollProcess,
    BulkPayrollProcess,
    PayrollOut,
    PayrollCalculationOut,
    BulkPayrollOut,
    PayrollReportOut,
)

router = APIRouter()

hr_staff = require_campus_roles(["HR"])
payroll_staff = require_campus_roles(["HR", "ACCOUNTANT"])


def _is_hr(ctx: Dict[str, Any]) -> bool:
    return ctx["role"] in ("OWNER", "ADMIN", "HR") or ctx["user"].is_admin()


def _own_employee_id(ctx: Dict[str, Any], db: Session) -> UUID:
    employee = EmployeeService(db).get_by_user(ctx["campus_id"], ctx["user"].id)
    if employee is None:
        raise HTTPException(status_code=404, detail="No employee record linked to this account")
    return employee.id


# Employees

@router.post("/employees", response_model=EmployeeOut, status_code=status.HTTP_201_CREATED)
async def create_employee(
    data: EmployeeCreate,
    ctx: Dict[str, Any] = Depends(hr_staff),
    db: Session = Depends(get_db)
):
    return EmployeeService(db).create_employee(ctx["campus_id"], data.model_dump(), created_by=ctx["user"].id)


@router.get("/employees", response_model=EmployeeList)
async def list_employees(
    search: Optional[str] = Query(None),
    department_id: Optional[UUID] = Query(None),
    employee_status: Optional[str] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    ctx: Dict[str, Any] = Depends(payroll_staff),
    db: Session = Depends(get_db)
):
    return EmployeeService(db).list_employees(
        ctx["campus_id"],
        search=search,
        department_id=department_id,
        status=employee_status,
        skip=skip,
        limit=limit,
    )


@router.get("/employees/{employee_id}", response_model=EmployeeOut)
async def get_employee(
    employee_id: UUID,
    ctx: Dict[str, Any] = Depends(payroll_staff),
    db: Session = Depends(get_db)
):
    return EmployeeService(db).get_employee(ctx["campus_id"], employee_id)


@router.patch("/employees/{employee_id}", response_model=EmployeeOut)
async def update_employee(
    employee_id: UUID,
    data: EmployeeUpdate,
    ctx: Dict[str, Any] = Depends(hr_staff),
    db: Session = Depends(get_db)
):
    return EmployeeService(db).update_employee(
        ctx["campus_id"], employee_id, data.model_dump(exclude_unset=True), updated_by=ctx["user"].id
    )


@router.post("/employees/{employee_id}/terminate", response_model=EmployeeOut)
async def terminate_employee(
    employee_id: UUID,
    ctx: Dict[str, Any] = Depends(hr_staff),
    db: Session = Depends(get_db)
):
    return EmployeeService(db).terminate(ctx["campus_id"], employee_id, terminated_by=ctx["user"].id)


# Leave types and balances

@router.post("/leave/types", response_model=LeaveTypeOut, status_code=status.HTTP_201_CREATED)
async def create_leave_type(
    data: LeaveTypeCreate,
    ctx: Dict[str, Any] = Depends(hr_staff),
    db: Session = Depends(get_db)
):
    return LeaveService(db).create_leave_type(ctx["campus_id"], data.model_dump())


@router.get("/leave/types", response_model=List[LeaveTypeOut])
async def list_leave_types(
    active_only: bool = Query(False),
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return LeaveService(db).list_leave_types(ctx["campus_id"], active_only)


@router.patch("/leave/types/{leave_type_id}", response_model=LeaveTypeOut)
async def update_leave_type(
    leave_type_id: UUID,
    data: LeaveTypeUpdate,
    ctx: Dict[str, Any] = Depends(hr_staff),
    db: Session = Depends(get_db)
):
    return LeaveService(db).update_leave_type(ctx["campus_id"], leave_type_id, data.model_dump(exclude_unset=True))


@router.post("/leave/allocations", response_model=LeaveBalanceOut)
async def allocate_leave(
    data: LeaveAllocate,
    ctx: Dict[str, Any] = Depends(hr_staff),
    db: Session = Depends(get_db)
):
    return LeaveService(db).allocate(ctx["campus_id"], data.employee_id, data.leave_type_id, data.year, data.days)


@router.post("/leave/allocations/defaults")
async def allocate_default_leave(
    year: int = Query(..., ge=2000, le=2100),
    ctx: Dict[str, Any] = Depends(hr_staff),
    db: Session = Depends(get_db)
):
    """Give every active employee the yearly entitlement of each active leave type"""
    return {"allocated": LeaveService(db).allocate_defaults(ctx["campus_id"], year)}


@router.post("/leave/carry-forward")
async def carry_forward_leave(
    from_year: int = Query(..., ge=2000, le=2100),
    ctx: Dict[str, Any] = Depends(hr_staff),
    db: Session = Depends(get_db)
):
    return {"carried": LeaveService(db).carry_forward(ctx["campus_id"], from_year)}


@router.get("/leave/balances/me", response_model=List[LeaveBalanceOut])
async def my_leave_balances(
    year: Optional[int] = Query(None),
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return LeaveService(db).employee_balances(ctx["campus_id"], _own_employee_id(ctx, db), year)


@router.get("/leave/balances/{employee_id}", response_model=List[LeaveBalanceOut])
async def employee_leave_balances(
    employee_id: UUID,
    year: Optional[int] = Query(None),
    ctx: Dict[str, Any] = Depends(hr_staff),
    db: Session = Depends(get_db)
):
    return LeaveService(db).employee_balances(ctx["campus_id"], employee_id, year)


# Leave requests

@router.post("/leave/requests", response_model=LeaveRequestOut, status_code=status.HTTP_201_CREATED)
async def submit_leave_request(
    data: LeaveRequestCreate,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    """
    Apply for leave. Employees apply for themselves; HR may apply on
    behalf of any employee by passing employee_id.
    """
    if data.employee_id and _is_hr(ctx):
        employee_id = data.employee_id
    else:
        employee_id = _own_employee_id(ctx, db)
        if data.employee_id and data.employee_id != employee_id:
            raise HTTPException(status_code=403, detail="You can only request leave for yourself")

    payload = data.model_dump(exclude={"employee_id"})
    return LeaveService(db).submit_request(ctx["campus_id"], employee_id, payload)


@router.get("/leave/requests", response_model=List[LeaveRequestOut])
async def list_leave_requests(
    employee_id: Optional[UUID] = Query(None),
    request_status: Optional[str] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    if not _is_hr(ctx):
        employee_id = _own_employee_id(ctx, db)
    return LeaveService(db).list_requests(
        ctx["campus_id"], employee_id=employee_id, status=request_status, skip=skip, limit=limit
    )


@router.post("/leave/requests/{request_id}/approve", response_model=LeaveRequestOut)
async def approve_leave_request(
    request_id: UUID,
    data: LeaveDecision,
    ctx: Dict[str, Any] = Depends(hr_staff),
    db: Session = Depends(get_db)
):
    return LeaveService(db).approve(ctx["campus_id"], request_id, ctx["user"].id, data.remarks)


@router.post("/leave/requests/{request_id}/reject", response_model=LeaveRequestOut)
async def reject_leave_request(
    request_id: UUID,
    data: LeaveDecision,
    ctx: Dict[str, Any] = Depends(hr_staff),
    db: Session = Depends(get_db)
):
    return LeaveService(db).reject(ctx["campus_id"], request_id, ctx["user"].id, data.remarks)


@router.post("/leave/requests/{request_id}/cancel", response_model=LeaveRequestOut)
async def cancel_leave_request(
    request_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    service = LeaveService(db)
    if not _is_hr(ctx):
        request = service.get_request(ctx["campus_id"], request_id)
        if request.employee_id != _own_employee_id(ctx, db):
            raise HTTPException(status_code=403, detail="You can only cancel your own requests")
    return service.cancel(ctx["campus_id"], request_id)


# Salary components

@router.post("/payroll/components", response_model=SalaryComponentOut, status_code=status.HTTP_201_CREATED)
async def create_salary_component(
    data: SalaryComponentCreate,
    ctx: Dict[str, Any] = Depends(payroll_staff),
    db: Session = Depends(get_db)
):
    return PayrollService(db).create_component(ctx["campus_id"], data.model_dump())


@router.get("/payroll/components", response_model=List[SalaryComponentOut])
async def list_salary_components(
    active_only: bool = Query(False),
    ctx: Dict[str, Any] = Depends(payroll_staff),
    db: Session = Depends(get_db)
):
    return PayrollService(db).list_components(ctx["campus_id"], active_only)


@router.post("/payroll/components/defaults", response_model=List[SalaryComponentOut])
async def seed_salary_components(
    ctx: Dict[str, Any] = Depends(payroll_staff),
    db: Session = Depends(get_db)
):
    return PayrollService(db).seed_defaults(ctx["campus_id"])


@router.patch("/payroll/components/{component_id}", response_model=SalaryComponentOut)
async def update_salary_component(
    component_id: UUID,
    data: SalaryComponentUpdate,
    ctx: Dict[str, Any] = Depends(payroll_staff),
    db: Session = Depends(get_db)
):
    return PayrollService(db).update_component(ctx["campus_id"], component_id, data.model_dump(exclude_unset=True))


# Payroll runs

@router.get("/payroll/calculate/{employee_id}", response_model=PayrollCalculationOut)
async def calculate_payroll(
    employee_id: UUID,
    ctx: Dict[str, Any] = Depends(payroll_staff),
    db: Session = Depends(get_db)
):
    """Preview an employee's pay without saving it"""
    return PayrollService(db).calculate(ctx["campus_id"], employee_id)


@router.post("/payroll", response_model=PayrollOut)
async def process_payroll(
    data: PayrollProcess,
    ctx: Dict[str, Any] = Depends(payroll_staff),
    db: Session = Depends(get_db)
):
    return PayrollService(db).process(ctx["campus_id"], data.employee_id, data.month, data.year)


@router.post("/payroll/bulk", response_model=BulkPayrollOut)
async def bulk_process_payroll(
    data: BulkPayrollProcess,
    ctx: Dict[str, Any] = Depends(payroll_staff),
    db: Session = Depends(get_db)
):
    return PayrollService(db).bulk_process(ctx["campus_id"], data.month, data.year, data.department_id)


@router.get("/payroll", response_model=List[PayrollOut])
async def list_payrolls(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None),
    employee_id: Optional[UUID] = Query(None),
    payroll_status: Optional[str] = Query(None, alias="status"),
    ctx: Dict[str, Any] = Depends(payroll_staff),
    db: Session = Depends(get_db)
):
    return PayrollService(db).list_payrolls(
        ctx["campus_id"], month=month, year=year, employee_id=employee_id, status=payroll_status
    )


@router.get("/payroll/report", response_model=PayrollReportOut)
async def payroll_report(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(...),
    ctx: Dict[str, Any] = Depends(payroll_staff),
    db: Session = Depends(get_db)
):
    return PayrollService(db).report(ctx["campus_id"], month, year)


@router.get("/payroll/{payroll_id}", response_model=PayrollOut)
async def get_payroll(
    payroll_id: UUID,
    ctx: Dict[str, Any] = Depends(payroll_staff),
    db: Session = Depends(get_db)
):
    return PayrollService(db).get_payroll(ctx["campus_id"], payroll_id)


@router.post("/payroll/{payroll_id}/approve", response_model=PayrollOut)
async def approve_payroll(
    payroll_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus_roles(["ACCOUNTANT"])),
    db: Session = Depends(get_db)
):
    return PayrollService(db).approve(ctx["campus_id"], payroll_id, ctx["user"].id)


@router.post("/payroll/{payroll_id}/pay", response_model=PayrollOut)
async def mark_payroll_paid(
    payroll_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus_roles(["ACCOUNTANT"])),
    db: Session = Depends(get_db)
):
    return PayrollService(db).mark_paid(ctx["campus_id"], payroll_id, ctx["user"].id)
