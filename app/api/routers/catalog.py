# app/api/routers/catalog.py - Departments, programs, courses and class sections
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Dict, Any, List, Optional
from uuid import UUID

from app.core.db import get_db
from app.api.deps.tenancy import require_campus, require_campus_roles
from app.services.catalog_service import CatalogService
from app.schemas.catalog import (
    DepartmentCreate,
    DepartmentUpdate,
    DepartmentOut,
    ProgramCreate,
    ProgramOut,
    CourseCreate,
    CourseUpdate,
    CourseOut,
    PrerequisiteAdd,
    ClassCreate,
    ClassUpdate,
    ClassOut,
    ClassWithCountOut,
)

router = APIRouter()

registrar = require_campus_roles(["REGISTRAR"])


# Departments

@router.post("/departments", response_model=DepartmentOut, status_code=status.HTTP_201_CREATED)
async def create_department(
    data: DepartmentCreate,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    return CatalogService(db).create_department(ctx["campus_id"], data.model_dump())


@router.get("/departments", response_model=List[DepartmentOut])
async def list_departments(
    active_only: bool = Query(False),
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return CatalogService(db).list_departments(ctx["campus_id"], active_only)


@router.patch("/departments/{department_id}", response_model=DepartmentOut)
async def update_department(
    department_id: UUID,
    data: DepartmentUpdate,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    return CatalogService(db).update_department(
        ctx["campus_id"], department_id, data.model_dump(exclude_unset=True)
    )


# Programs

@router.post("/programs", response_model=ProgramOut, status_code=status.HTTP_201_CREATED)
async def create_program(
    data: ProgramCreate,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    return CatalogService(db).create_program(ctx["campus_id"], data.model_dump())


@router.get("/programs", response_model=List[ProgramOut])
async def list_programs(
    department_id: Optional[UUID] = Query(None),
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return CatalogService(db).list_programs(ctx["campus_id"], department_id)


@router.get("/programs/{program_id}", response_model=ProgramOut)
async def get_program(
    program_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return CatalogService(db).get_program(ctx["campus_id"], program_id)


# Courses

@router.post("/courses", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
async def create_course(
    data: CourseCreate,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    return CatalogService(db).create_course(ctx["campus_id"], data.model_dump())


@router.get("/courses", response_model=List[CourseOut])
async def list_courses(
    department_id: Optional[UUID] = Query(None),
    search: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return CatalogService(db).list_courses(
        ctx["campus_id"], department_id=department_id, search=search, skip=skip, limit=limit
    )


@router.get("/courses/{course_id}", response_model=CourseOut)
async def get_course(
    course_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return CatalogService(db).get_course(ctx["campus_id"], course_id)


@router.patch("/courses/{course_id}", response_model=CourseOut)
async def update_course(
    course_id: UUID,
    data: CourseUpdate,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    return CatalogService(db).update_course(ctx["campus_id"], course_id, data.model_dump(exclude_unset=True))


@router.get("/courses/{course_id}/prerequisites", response_model=List[CourseOut])
async def list_prerequisites(
    course_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return CatalogService(db).list_prerequisites(ctx["campus_id"], course_id)


@router.post("/courses/{course_id}/prerequisites", response_model=List[CourseOut], status_code=status.HTTP_201_CREATED)
async def add_prerequisite(
    course_id: UUID,
    data: PrerequisiteAdd,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    service = CatalogService(db)
    service.add_prerequisite(ctx["campus_id"], course_id, data.prerequisite_id)
    return service.list_prerequisites(ctx["campus_id"], course_id)


@router.delete("/courses/{course_id}/prerequisites/{prerequisite_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_prerequisite(
    course_id: UUID,
    prerequisite_id: UUID,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    CatalogService(db).remove_prerequisite(ctx["campus_id"], course_id, prerequisite_id)


# Class sections

@router.post("/classes", response_model=ClassOut, status_code=status.HTTP_201_CREATED)
async def create_class(
    data: ClassCreate,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    return CatalogService(db).create_class(ctx["campus_id"], data.model_dump())


@router.get("/classes", response_model=List[ClassWithCountOut])
async def list_classes(
    semester_id: Optional[UUID] = Query(None),
    course_id: Optional[UUID] = Query(None),
    lecturer_id: Optional[UUID] = Query(None),
    class_status: Optional[str] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return CatalogService(db).list_classes(
        ctx["campus_id"],
        semester_id=semester_id,
        course_id=course_id,
        lecturer_id=lecturer_id,
        status=class_status,
        skip=skip,
        limit=limit,
    )


@router.get("/classes/{class_id}", response_model=ClassWithCountOut)
async def get_class(
    class_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    service = CatalogService(db)
    class_section = service.get_class(ctx["campus_id"], class_id)
    return {"class_section": class_section, "enrolled": service.enrolled_count(class_section.id)}


@router.patch("/classes/{class_id}", response_model=ClassOut)
async def update_class(
    class_id: UUID,
    data: ClassUpdate,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    return CatalogService(db).update_class(ctx["campus_id"], class_id, data.model_dump(exclude_unset=True))


@router.post("/classes/{class_id}/cancel", response_model=ClassOut)
async def cancel_class(
    class_id: UUID,
    ctx: Dict[str, Any] = Depends(registrar),
    db: Session = Depends(get_db)
):
    return CatalogService(db).cancel_class(ctx["campus_id"], class_id)
