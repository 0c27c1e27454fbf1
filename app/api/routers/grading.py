# app/api/routers/grading.py - Grade scales, assessment components, scores and final grades
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Dict, Any, List
from uuid import UUID

from app.core.db import get_db
from app.api.deps.tenancy import require_campus, require_campus_roles
from app.services.grade_scale_service import GradeScaleService
from app.services.grade_service import GradeService
from app.services.grade_calculation_service import GradeCalculationService
from app.schemas.enrollment import EnrollmentOut
from app.schemas.grading import (
    GradeScaleCreate,
    GradeScaleUpdate,
    GradeScaleOut,
    ComponentCreate,
    ComponentUpdate,
    ComponentOut,
    WeightValidationOut,
    ComponentStatsOut,
    GradeEntryCreate,
    GradeEntryUpdate,
    GradeEntryOut,
    BulkGradeIn,
    BulkGradeOut,
    GradeResultOut,
    FinalizeClassOut,
)

router = APIRouter()

grader = require_campus_roles(["LECTURER", "REGISTRAR"])
registrar = require_campus_roles(["REGISTRAR"])


# Grade scales

@router.post("/scales", response_model=GradeScaleOut, status_code=status.HTTP_201_CREATED)
async def create_grade_scale(
    data: GradeScaleCreate,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    bands = [band.model_dump() for band in data.bands]
    return GradeScaleService(db).create_scale(ctx["campus_id"], data.name, bands, data.is_default)


@router.get("/scales", response_model=List[GradeScaleOut])
async def list_grade_scales(
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return GradeScaleService(db).list_scales(ctx["campus_id"])


@router.get("/scales/default", response_model=GradeScaleOut)
async def default_grade_scale(
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return GradeScaleService(db).get_default_scale(ctx["campus_id"])


@router.patch("/scales/{scale_id}", response_model=GradeScaleOut)
async def update_grade_scale(
    scale_id: UUID,
    data: GradeScaleUpdate,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    bands = [band.model_dump() for band in data.bands] if data.bands is not None else None
    return GradeScaleService(db).update_scale(
        ctx["campus_id"],
        scale_id,
        name=data.name,
        bands=bands,
        is_default=data.is_default,
        is_active=data.is_active,
    )


# Components

@router.post("/components", response_model=ComponentOut, status_code=status.HTTP_201_CREATED)
async def create_component(
    data: ComponentCreate,
    ctx: Dict[str, Any] = Depends(grader),
    db: Session = Depends(get_db)
):
    """Add an assessment; a class's component weights may not exceed 100"""
    return GradeService(db).create_component(ctx["campus_id"], data.model_dump())


@router.get("/classes/{class_id}/components", response_model=List[ComponentOut])
async def list_components(
    class_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return GradeService(db).list_components(ctx["campus_id"], class_id)


@router.get("/classes/{class_id}/weights", response_model=WeightValidationOut)
async def validate_weights(
    class_id: UUID,
    ctx: Dict[str, Any] = Depends(grader),
    db: Session = Depends(get_db)
):
    return GradeService(db).validate_weights(ctx["campus_id"], class_id)


@router.patch("/components/{component_id}", response_model=ComponentOut)
async def update_component(
    component_id: UUID,
    data: ComponentUpdate,
    ctx: Dict[str, Any] = Depends(grader),
    db: Session = Depends(get_db)
):
    return GradeService(db).update_component(ctx["campus_id"], component_id, data.model_dump(exclude_unset=True))


@router.delete("/components/{component_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_component(
    component_id: UUID,
    ctx: Dict[str, Any] = Depends(grader),
    db: Session = Depends(get_db)
):
    GradeService(db).delete_component(ctx["campus_id"], component_id)


@router.get("/components/{component_id}/statistics", response_model=ComponentStatsOut)
async def component_statistics(
    component_id: UUID,
    ctx: Dict[str, Any] = Depends(grader),
    db: Session = Depends(get_db)
):
    return GradeService(db).component_statistics(ctx["campus_id"], component_id)


# Scores

@router.post("/entries", response_model=GradeEntryOut, status_code=status.HTTP_201_CREATED)
async def create_entry(
    data: GradeEntryCreate,
    ctx: Dict[str, Any] = Depends(grader),
    db: Session = Depends(get_db)
):
    return GradeService(db).create_entry(
        ctx["campus_id"], data.enrollment_id, data.component_id, data.score, data.remarks, ctx["user"].id
    )


@router.post("/components/{component_id}/entries", response_model=BulkGradeOut)
async def bulk_entries(
    component_id: UUID,
    data: BulkGradeIn,
    ctx: Dict[str, Any] = Depends(grader),
    db: Session = Depends(get_db)
):
    entries = [entry.model_dump() for entry in data.entries]
    return GradeService(db).bulk_entries(ctx["campus_id"], component_id, entries, ctx["user"].id)


@router.get("/components/{component_id}/entries", response_model=List[GradeEntryOut])
async def list_entries(
    component_id: UUID,
    ctx: Dict[str, Any] = Depends(grader),
    db: Session = Depends(get_db)
):
    return GradeService(db).list_entries(ctx["campus_id"], component_id)


@router.patch("/entries/{entry_id}", response_model=GradeEntryOut)
async def update_entry(
    entry_id: UUID,
    data: GradeEntryUpdate,
    ctx: Dict[str, Any] = Depends(grader),
    db: Session = Depends(get_db)
):
    return GradeService(db).update_entry(ctx["campus_id"], entry_id, data.score, data.remarks, ctx["user"].id)


@router.delete("/entries/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_entry(
    entry_id: UUID,
    ctx: Dict[str, Any] = Depends(grader),
    db: Session = Depends(get_db)
):
    GradeService(db).delete_entry(ctx["campus_id"], entry_id)


# Calculated and final grades

@router.get("/enrollments/{enrollment_id}", response_model=GradeResultOut)
async def student_grade(
    enrollment_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return GradeCalculationService(db).calculate_student_grade(ctx["campus_id"], enrollment_id)


@router.get("/classes/{class_id}/results", response_model=List[GradeResultOut])
async def class_grades(
    class_id: UUID,
    ctx: Dict[str, Any] = Depends(grader),
    db: Session = Depends(get_db)
):
    return GradeCalculationService(db).calculate_class_grades(ctx["campus_id"], class_id)


@router.post("/enrollments/{enrollment_id}/finalize", response_model=EnrollmentOut)
async def finalize_enrollment(
    enrollment_id: UUID,
    ctx: Dict[str, Any] = Depends(grader),
    db: Session = Depends(get_db)
):
    return GradeCalculationService(db).finalize_enrollment(ctx["campus_id"], enrollment_id, ctx["user"].id)


@router.post("/classes/{class_id}/finalize", response_model=FinalizeClassOut)
async def finalize_class(
    class_id: UUID,
    ctx: Dict[str, Any] = Depends(grader),
    db: Session = Depends(get_db)
):
    return GradeCalculationService(db).finalize_class(ctx["campus_id"], class_id, ctx["user"].id)


@router.post("/enrollments/{enrollment_id}/unfinalize", response_model=EnrollmentOut)
async def unfinalize_enrollment(
    enrollment_id: UUID,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    """Reopen a finalized grade for correction"""
    return GradeCalculationService(db).unfinalize(ctx["campus_id"], enrollment_id)
