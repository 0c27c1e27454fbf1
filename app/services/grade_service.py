# app/services/grade_service.py - Grade components and score entries
from sqlalchemy.orm import Session
from sqlalchemy import select, func
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from app.core.errors import AppError, ConflictError, NotFoundError, ValidationError
from app.models.class_model import ClassSection
from app.models.enrollment import Enrollment
from app.models.grading import GradeComponent, GradeEntry
from app.services.grade_scale_service import GradeScaleService

logger = logging.getLogger(__name__)

COMPONENT_TYPES = ("QUIZ", "ASSIGNMENT", "MIDTERM", "FINAL", "PROJECT", "LAB", "PARTICIPATION", "OTHER")
WEIGHT_TOTAL = Decimal("100")
WEIGHT_TOLERANCE = Decimal("0.01")
TWO_PLACES = Decimal("0.01")


class GradeService:
    def __init__(self, db: Session):
        self.db = db
        self.scales = GradeScaleService(db)

    # Components

    def _get_class(self, campus_id: UUID, class_id: UUID) -> ClassSection:
        class_section = self.db.execute(
            select(ClassSection).where(ClassSection.id == class_id, ClassSection.campus_id == campus_id)
        ).scalar_one_or_none()
        if class_section is None:
            raise NotFoundError("Class", class_id)
        return class_section

    def total_weight(self, class_id: UUID, exclude_id: Optional[UUID] = None) -> Decimal:
        query = select(func.coalesce(func.sum(GradeComponent.weight), 0)).where(GradeComponent.class_id == class_id)
        if exclude_id:
            query = query.where(GradeComponent.id != exclude_id)
        return Decimal(str(self.db.execute(query).scalar_one()))

    def _check_component_values(self, data: Dict[str, Any]) -> None:
        if "component_type" in data and data["component_type"] not in COMPONENT_TYPES:
            raise ValidationError(f"Invalid component type '{data['component_type']}'")
        if "weight" in data and Decimal(str(data["weight"])) <= 0:
            raise ValidationError("Weight must be greater than zero")
        if "max_score" in data and Decimal(str(data["max_score"])) <= 0:
            raise ValidationError("Max score must be greater than zero")

    def create_component(self, campus_id: UUID, data: Dict[str, Any]) -> GradeComponent:
        class_section = self._get_class(campus_id, data["class_id"])
        self._check_component_values(data)

        new_total = self.total_weight(class_section.id) + Decimal(str(data["weight"]))
        if new_total > WEIGHT_TOTAL:
            raise ValidationError(f"Total weight would be {new_total}%, which exceeds 100%")

        component = GradeComponent(campus_id=campus_id, **data)
        self.db.add(component)
        self.db.commit()
        self.db.refresh(component)
        logger.info(f"Grade component '{component.name}' added to class {class_section.id}")
        return component

    def get_component(self, campus_id: UUID, component_id: UUID) -> GradeComponent:
        component = self.db.execute(
            select(GradeComponent).where(GradeComponent.id == component_id, GradeComponent.campus_id == campus_id)
        ).scalar_one_or_none()
        if component is None:
            raise NotFoundError("Grade component", component_id)
        return component

    def list_components(self, campus_id: UUID, class_id: UUID) -> List[GradeComponent]:
        self._get_class(campus_id, class_id)
        return list(self.db.execute(
            select(GradeComponent)
            .where(GradeComponent.class_id == class_id)
            .order_by(GradeComponent.created_at)
        ).scalars().all())

    def update_component(self, campus_id: UUID, component_id: UUID, changes: Dict[str, Any]) -> GradeComponent:
        component = self.get_component(campus_id, component_id)
        self._check_component_values(changes)

        if "weight" in changes:
            new_total = self.total_weight(component.class_id, exclude_id=component.id) + Decimal(str(changes["weight"]))
            if new_total > WEIGHT_TOTAL:
                raise ValidationError(f"Total weight would be {new_total}%, which exceeds 100%")

        if "max_score" in changes:
            highest = self.db.execute(
                select(func.max(GradeEntry.score)).where(GradeEntry.component_id == component.id)
            ).scalar_one_or_none()
            if highest is not None and Decimal(str(highest)) > Decimal(str(changes["max_score"])):
                raise ValidationError("Existing scores exceed the new max score")

        for field, value in changes.items():
            setattr(component, field, value)
        self.db.commit()
        self.db.refresh(component)
        return component

    def delete_component(self, campus_id: UUID, component_id: UUID) -> None:
        component = self.get_component(campus_id, component_id)
        finalized = self.db.execute(
            select(Enrollment.id)
            .join(GradeEntry, GradeEntry.enrollment_id == Enrollment.id)
            .where(GradeEntry.component_id == component.id, Enrollment.is_finalized.is_(True))
        ).scalars().first()
        if finalized:
            raise ValidationError("Component has scores on finalized enrollments")
        self.db.delete(component)
        self.db.commit()

    def validate_weights(self, campus_id: UUID, class_id: UUID) -> Dict[str, Any]:
        self._get_class(campus_id, class_id)
        total = self.total_weight(class_id)
        valid = abs(total - WEIGHT_TOTAL) < WEIGHT_TOLERANCE
        if valid:
            message = "Component weights total 100%"
        else:
            message = f"Component weights total {total}%; they must total 100%"
        return {"valid": valid, "total_weight": total, "message": message}

    # Entries

    def _check_enrollment_open(self, enrollment: Enrollment) -> None:
        if enrollment.is_finalized:
            raise ValidationError("Grades for this enrollment are finalized")

    def _get_entry(self, campus_id: UUID, entry_id: UUID) -> GradeEntry:
        entry = self.db.execute(
            select(GradeEntry).where(GradeEntry.id == entry_id, GradeEntry.campus_id == campus_id)
        ).scalar_one_or_none()
        if entry is None:
            raise NotFoundError("Grade entry", entry_id)
        return entry

    def create_entry(
        self,
        campus_id: UUID,
        enrollment_id: UUID,
        component_id: UUID,
        score: Decimal,
        remarks: Optional[str] = None,
        graded_by: Optional[UUID] = None,
        commit: bool = True,
    ) -> GradeEntry:
        component = self.get_component(campus_id, component_id)
        enrollment = self.db.execute(
            select(Enrollment).where(Enrollment.id == enrollment_id, Enrollment.campus_id == campus_id)
        ).scalar_one_or_none()
        if enrollment is None:
            raise NotFoundError("Enrollment", enrollment_id)

        if enrollment.class_id != component.class_id:
            raise ValidationError("Enrollment does not belong to this component's class")
        self._check_enrollment_open(enrollment)

        score = Decimal(str(score))
        if score < 0 or score > component.max_score:
            raise ValidationError(f"Score must be between 0 and {component.max_score}")

        existing = self.db.execute(
            select(GradeEntry.id).where(
                GradeEntry.enrollment_id == enrollment.id,
                GradeEntry.component_id == component.id
            )
        ).scalar_one_or_none()
        if existing:
            raise ConflictError("A score is already recorded for this component")

        entry = GradeEntry(
            campus_id=campus_id,
            enrollment_id=enrollment.id,
            component_id=component.id,
            score=score,
            remarks=remarks,
            graded_by_id=graded_by,
        )
        self.db.add(entry)
        if commit:
            self.db.commit()
            self.db.refresh(entry)
        else:
            self.db.flush()
        return entry

    def update_entry(
        self,
        campus_id: UUID,
        entry_id: UUID,
        score: Optional[Decimal] = None,
        remarks: Optional[str] = None,
        graded_by: Optional[UUID] = None,
    ) -> GradeEntry:
        entry = self._get_entry(campus_id, entry_id)
        self._check_enrollment_open(entry.enrollment)

        if score is not None:
            score = Decimal(str(score))
            if score < 0 or score > entry.component.max_score:
                raise ValidationError(f"Score must be between 0 and {entry.component.max_score}")
            entry.score = score
        if remarks is not None:
            entry.remarks = remarks
        if graded_by:
            entry.graded_by_id = graded_by

        self.db.commit()
        self.db.refresh(entry)
        return entry

    def delete_entry(self, campus_id: UUID, entry_id: UUID) -> None:
        entry = self._get_entry(campus_id, entry_id)
        self._check_enrollment_open(entry.enrollment)
        self.db.delete(entry)
        self.db.commit()

    def bulk_entries(
        self,
        campus_id: UUID,
        component_id: UUID,
        entries: List[Dict[str, Any]],
        graded_by: Optional[UUID] = None,
    ) -> Dict[str, Any]:
        """Create or update scores for many enrollments on one component"""
        component = self.get_component(campus_id, component_id)
        saved = 0
        errors = []
        for item in entries:
            try:
                with self.db.begin_nested():
                    existing = self.db.execute(
                        select(GradeEntry).where(
                            GradeEntry.enrollment_id == item["enrollment_id"],
                            GradeEntry.component_id == component.id
                        )
                    ).scalar_one_or_none()
                    if existing is None:
                        self.create_entry(
                            campus_id, item["enrollment_id"], component.id,
                            item["score"], item.get("remarks"), graded_by, commit=False
                        )
                    else:
                        self._check_enrollment_open(existing.enrollment)
                        score = Decimal(str(item["score"]))
                        if score < 0 or score > component.max_score:
                            raise ValidationError(f"Score must be between 0 and {component.max_score}")
                        existing.score = score
                        existing.remarks = item.get("remarks", existing.remarks)
                        existing.graded_by_id = graded_by
                saved += 1
            except AppError as e:
                errors.append({"enrollment_id": str(item["enrollment_id"]), "error": e.message})
        self.db.commit()
        return {"saved": saved, "failed": len(errors), "errors": errors}

    def list_entries(self, campus_id: UUID, component_id: UUID) -> List[GradeEntry]:
        component = self.get_component(campus_id, component_id)
        return list(self.db.execute(
            select(GradeEntry).where(GradeEntry.component_id == component.id)
        ).scalars().all())

    def component_statistics(self, campus_id: UUID, component_id: UUID) -> Dict[str, Any]:
        component = self.get_component(campus_id, component_id)
        scores = [Decimal(str(entry.score)) for entry in component.entries]
        if not scores:
            return {"count": 0, "average": None, "min": None, "max": None, "distribution": {}}

        scale = self.scales.get_default_scale(campus_id)
        distribution: Dict[str, int] = {}
        for score in scores:
            percentage = (score / component.max_score * 100).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
            letter, _ = GradeScaleService.letter_for(scale, percentage)
            distribution[letter] = distribution.get(letter, 0) + 1

        average = (sum(scores) / len(scores)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
        return {
            "count": len(scores),
            "average": average,
            "min": min(scores),
            "max": max(scores),
            "distribution": distribution,
        }
