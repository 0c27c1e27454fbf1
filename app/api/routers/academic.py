# app/api/routers/academic.py - Academic years, semesters and registration periods
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Dict, Any, List, Optional
from uuid import UUID

from app.core.db import get_db
from app.api.deps.tenancy import require_campus, require_campus_roles
from app.services.academic_service import AcademicService
from app.schemas.academic import (
    AcademicYearCreate,
    AcademicYearOut,
    SemesterCreate,
    SemesterOut,
    RegistrationPeriodCreate,
    RegistrationPeriodUpdate,
    RegistrationPeriodOut,
    RegistrationStatusOut,
)

router = APIRouter()

registrar = require_campus_roles(["REGISTRAR"])


# Academic years

@router.post("/years", response_model=AcademicYearOut, status_code=status.HTTP_201_CREATED)
async def create_academic_year(
    data: AcademicYearCreate,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    return AcademicService(db).create_year(ctx["campus_id"], data.model_dump())


@router.get("/years", response_model=List[AcademicYearOut])
async def list_academic_years(
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return AcademicService(db).list_years(ctx["campus_id"])


@router.get("/years/current", response_model=Optional[AcademicYearOut])
async def current_academic_year(
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return AcademicService(db).get_current_year(ctx["campus_id"])


@router.get("/years/{year_id}", response_model=AcademicYearOut)
async def get_academic_year(
    year_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return AcademicService(db).get_year(ctx["campus_id"], year_id)


@router.post("/years/{year_id}/activate", response_model=AcademicYearOut)
async def activate_academic_year(
    year_id: UUID,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    """Make this the campus's only current academic year"""
    return AcademicService(db).set_current_year(ctx["campus_id"], year_id)


# Semesters

@router.post("/semesters", response_model=SemesterOut, status_code=status.HTTP_201_CREATED)
async def create_semester(
    data: SemesterCreate,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    return AcademicService(db).create_semester(ctx["campus_id"], data.model_dump())


@router.get("/semesters", response_model=List[SemesterOut])
async def list_semesters(
    academic_year_id: Optional[UUID] = Query(None),
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return AcademicService(db).list_semesters(ctx["campus_id"], academic_year_id)


@router.get("/semesters/current", response_model=Optional[SemesterOut])
async def current_semester(
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return AcademicService(db).get_current_semester(ctx["campus_id"])


@router.get("/semesters/{semester_id}", response_model=SemesterOut)
async def get_semester(
    semester_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return AcademicService(db).get_semester(ctx["campus_id"], semester_id)


@router.post("/semesters/{semester_id}/activate", response_model=SemesterOut)
async def activate_semester(
    semester_id: UUID,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    return AcademicService(db).set_current_semester(ctx["campus_id"], semester_id)


@router.get("/semesters/{semester_id}/registration-status", response_model=RegistrationStatusOut)
async def registration_status(
    semester_id: UUID,
    period_type: Optional[str] = Query(None, alias="type"),
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    """Whether enrollment is open for the semester right now"""
    service = AcademicService(db)
    service.get_semester(ctx["campus_id"], semester_id)
    return service.is_registration_open(semester_id, period_type)


@router.get("/semesters/{semester_id}/registration-periods", response_model=List[RegistrationPeriodOut])
async def list_registration_periods(
    semester_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return AcademicService(db).list_registration_periods(ctx["campus_id"], semester_id)


# Registration periods

@router.post("/registration-periods", response_model=RegistrationPeriodOut, status_code=status.HTTP_201_CREATED)
async def create_registration_period(
    data: RegistrationPeriodCreate,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    return AcademicService(db).create_registration_period(ctx["campus_id"], data.model_dump())


@router.get("/registration-periods/{period_id}", response_model=RegistrationPeriodOut)
async def get_registration_period(
    period_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return AcademicService(db).get_registration_period(ctx["campus_id"], period_id)


@router.patch("/registration-periods/{period_id}", response_model=RegistrationPeriodOut)
async def update_registration_period(
    period_id: UUID,
    data: RegistrationPeriodUpdate,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    return AcademicService(db).update_registration_period(
        ctx["campus_id"], period_id, data.model_dump(exclude_unset=True)
    )


@router.post("/registration-periods/{period_id}/deactivate", response_model=RegistrationPeriodOut)
async def deactivate_registration_period(
    period_id: UUID,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    return AcademicService(db).deactivate_registration_period(ctx["campus_id"], period_id)


@router.delete("/registration-periods/{period_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_registration_period(
    period_id: UUID,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    AcademicService(db).delete_registration_period(ctx["campus_id"], period_id)
