# app/services/fee_service.py - Fee structures per program and academic year
from sqlalchemy.orm import Session
from sqlalchemy import select
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from app.core.cache import CacheService, CacheKeys, cache as default_cache
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.academic import AcademicYear
from app.models.catalog import Program
from app.models.fee import FeeStructure, FeeItem

logger = logging.getLogger(__name__)


class FeeService:
    def __init__(self, db: Session, cache: Optional[CacheService] = None):
        self.db = db
        self.cache = cache or default_cache

    def _check_refs(self, campus_id: UUID, program_id: UUID, academic_year_id: UUID) -> None:
        program = self.db.execute(
            select(Program.id).where(Program.id == program_id, Program.campus_id == campus_id)
        ).scalar_one_or_none()
        if program is None:
            raise NotFoundError("Program", program_id)
        year = self.db.execute(
            select(AcademicYear.id).where(AcademicYear.id == academic_year_id, AcademicYear.campus_id == campus_id)
        ).scalar_one_or_none()
        if year is None:
            raise NotFoundError("Academic year", academic_year_id)

    @staticmethod
    def _build_items(campus_id: UUID, items: List[Dict[str, Any]]) -> List[FeeItem]:
        built = []
        for item in items:
            if Decimal(str(item["amount"])) < 0:
                raise ValidationError(f"Fee item '{item['name']}' cannot have a negative amount")
            built.append(FeeItem(campus_id=campus_id, **item))
        return built

    def _invalidate(self, structure: FeeStructure) -> None:
        self.cache.delete(CacheKeys.fee_structure(structure.program_id, structure.academic_year_id))

    def create_structure(self, campus_id: UUID, data: Dict[str, Any]) -> FeeStructure:
        items = data.pop("items", None) or []
        self._check_refs(campus_id, data["program_id"], data["academic_year_id"])

        existing = self.db.execute(
            select(FeeStructure.id).where(
                FeeStructure.campus_id == campus_id,
                FeeStructure.program_id == data["program_id"],
                FeeStructure.academic_year_id == data["academic_year_id"]
            )
        ).scalar_one_or_none()
        if existing:
            raise ConflictError("A fee structure already exists for this program and academic year")

        structure = FeeStructure(campus_id=campus_id, **data)
        structure.items = self._build_items(campus_id, items)
        self.db.add(structure)
        self.db.commit()
        self.db.refresh(structure)
        self._invalidate(structure)

        logger.info(f"Fee structure '{structure.name}' created with total {structure.total}")
        return structure

    def get_structure(self, campus_id: UUID, structure_id: UUID) -> FeeStructure:
        structure = self.db.execute(
            select(FeeStructure).where(FeeStructure.id == structure_id, FeeStructure.campus_id == campus_id)
        ).scalar_one_or_none()
        if structure is None:
            raise NotFoundError("Fee structure", structure_id)
        return structure

    def list_structures(
        self,
        campus_id: UUID,
        program_id: Optional[UUID] = None,
        academic_year_id: Optional[UUID] = None,
    ) -> List[FeeStructure]:
        query = select(FeeStructure).where(FeeStructure.campus_id == campus_id)
        if program_id:
            query = query.where(FeeStructure.program_id == program_id)
        if academic_year_id:
            query = query.where(FeeStructure.academic_year_id == academic_year_id)
        return list(self.db.execute(query.order_by(FeeStructure.created_at.desc())).scalars().all())

    def update_structure(self, campus_id: UUID, structure_id: UUID, changes: Dict[str, Any]) -> FeeStructure:
        structure = self.get_structure(campus_id, structure_id)
        items = changes.pop("items", None)
        for field, value in changes.items():
            setattr(structure, field, value)
        if items is not None:
            structure.items = self._build_items(campus_id, items)

        self.db.commit()
        self.db.refresh(structure)
        self._invalidate(structure)
        return structure

    def add_item(self, campus_id: UUID, structure_id: UUID, item: Dict[str, Any]) -> FeeStructure:
        structure = self.get_structure(campus_id, structure_id)
        structure.items.extend(self._build_items(campus_id, [item]))
        self.db.commit()
        self.db.refresh(structure)
        self._invalidate(structure)
        return structure

    def remove_item(self, campus_id: UUID, structure_id: UUID, item_id: UUID) -> FeeStructure:
        structure = self.get_structure(campus_id, structure_id)
        item = next((i for i in structure.items if i.id == item_id), None)
        if item is None:
            raise NotFoundError("Fee item", item_id)
        structure.items.remove(item)
        self.db.commit()
        self.db.refresh(structure)
        self._invalidate(structure)
        return structure

    def find_structure(self, campus_id: UUID, program_id: UUID, academic_year_id: UUID) -> Optional[FeeStructure]:
        return self.db.execute(
            select(FeeStructure).where(
                FeeStructure.campus_id == campus_id,
                FeeStructure.program_id == program_id,
                FeeStructure.academic_year_id == academic_year_id,
                FeeStructure.is_active.is_(True)
            )
        ).scalar_one_or_none()

    def structure_summary(self, campus_id: UUID, program_id: UUID, academic_year_id: UUID) -> Optional[Dict[str, Any]]:
        """Cached read-only view of the fees a program pays in a year"""
        def fetch():
            structure = self.find_structure(campus_id, program_id, academic_year_id)
            if structure is None:
                return None
            return {
                "id": str(structure.id),
                "name": structure.name,
                "total": structure.total,
                "items": [
                    {
                        "name": item.name,
                        "category": item.category,
                        "amount": item.amount,
                        "is_mandatory": item.is_mandatory,
                    }
                    for item in structure.items
                ],
            }

        return self.cache.get_or_set(CacheKeys.fee_structure(program_id, academic_year_id), fetch)
