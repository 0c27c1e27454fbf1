# app/services/grade_scale_service.py - Letter-grade scales
from sqlalchemy.orm import Session
from sqlalchemy import select, update
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
import logging

from app.core.errors import NotFoundError, ValidationError
from app.models.grading import GradeScale, GradeScaleBand

logger = logging.getLogger(__name__)

# (letter, min, max, points)
STANDARD_BANDS: List[Tuple[str, str, str, str]] = [
    ("A+", "95", "100", "4.0"),
    ("A", "90", "94.99", "4.0"),
    ("A-", "87", "89.99", "3.7"),
    ("B+", "83", "86.99", "3.3"),
    ("B", "80", "82.99", "3.0"),
    ("B-", "77", "79.99", "2.7"),
    ("C+", "73", "76.99", "2.3"),
    ("C", "70", "72.99", "2.0"),
    ("C-", "67", "69.99", "1.7"),
    ("D+", "63", "66.99", "1.3"),
    ("D", "60", "62.99", "1.0"),
    ("F", "0", "59.99", "0.0"),
]


def validate_bands(bands: List[Dict[str, Any]]) -> None:
    if not bands:
        raise ValidationError("A grade scale needs at least one band")
    letters = set()
    for band in bands:
        if band["min_percentage"] > band["max_percentage"]:
            raise ValidationError(f"Band {band['letter']}: minimum is above maximum")
        if band["min_percentage"] < 0 or band["max_percentage"] > 100:
            raise ValidationError(f"Band {band['letter']}: percentages must be within 0-100")
        if band["letter"] in letters:
            raise ValidationError(f"Duplicate band letter {band['letter']}")
        letters.add(band["letter"])

    ordered = sorted(bands, key=lambda b: b["min_percentage"])
    for lower, upper in zip(ordered, ordered[1:]):
        if upper["min_percentage"] <= lower["max_percentage"]:
            raise ValidationError(f"Bands {lower['letter']} and {upper['letter']} overlap")


class GradeScaleService:
    def __init__(self, db: Session):
        self.db = db

    def _unset_other_defaults(self, campus_id: UUID, keep_id: UUID) -> None:
        self.db.execute(
            update(GradeScale)
            .where(GradeScale.campus_id == campus_id, GradeScale.id != keep_id)
            .values(is_default=False)
        )

    def create_scale(self, campus_id: UUID, name: str, bands: List[Dict[str, Any]], is_default: bool = False) -> GradeScale:
        validate_bands(bands)

        scale = GradeScale(campus_id=campus_id, name=name, is_default=is_default, is_active=True)
        scale.bands = [GradeScaleBand(**band) for band in bands]
        self.db.add(scale)
        self.db.flush()

        if is_default:
            self._unset_other_defaults(campus_id, scale.id)

        self.db.commit()
        self.db.refresh(scale)
        logger.info(f"Grade scale created: {scale.name}")
        return scale

    def get_scale(self, campus_id: UUID, scale_id: UUID) -> GradeScale:
        scale = self.db.execute(
            select(GradeScale).where(GradeScale.id == scale_id, GradeScale.campus_id == campus_id)
        ).scalar_one_or_none()
        if scale is None:
            raise NotFoundError("Grade scale", scale_id)
        return scale

    def list_scales(self, campus_id: UUID) -> List[GradeScale]:
        return list(self.db.execute(
            select(GradeScale).where(GradeScale.campus_id == campus_id).order_by(GradeScale.name)
        ).scalars().all())

    def update_scale(
        self,
        campus_id: UUID,
        scale_id: UUID,
        name: Optional[str] = None,
        bands: Optional[List[Dict[str, Any]]] = None,
        is_default: Optional[bool] = None,
        is_active: Optional[bool] = None,
    ) -> GradeScale:
        scale = self.get_scale(campus_id, scale_id)
        if name is not None:
            scale.name = name
        if bands is not None:
            validate_bands(bands)
            scale.bands = [GradeScaleBand(**band) for band in bands]
        if is_active is not None:
            scale.is_active = is_active
        if is_default is not None:
            scale.is_default = is_default
            if is_default:
                self._unset_other_defaults(campus_id, scale.id)

        self.db.commit()
        self.db.refresh(scale)
        return scale

    def get_default_scale(self, campus_id: UUID) -> GradeScale:
        """
        The active campus default scale.

        When there is none (first use, or the default was deactivated) a
        "Standard" scale is created from the standard bands, takes over the
        default flag and is committed, so later reads find it.
        """
        scale = self.db.execute(
            select(GradeScale).where(
                GradeScale.campus_id == campus_id,
                GradeScale.is_default.is_(True),
                GradeScale.is_active.is_(True)
            )
        ).scalars().first()
        if scale is not None:
            return scale

        scale = GradeScale(campus_id=campus_id, name="Standard", is_default=True, is_active=True)
        scale.bands = [
            GradeScaleBand(
                letter=letter,
                min_percentage=Decimal(low),
                max_percentage=Decimal(high),
                points=Decimal(points),
            )
            for letter, low, high, points in STANDARD_BANDS
        ]
        self.db.add(scale)
        self.db.flush()
        self._unset_other_defaults(campus_id, scale.id)
        self.db.commit()
        self.db.refresh(scale)
        logger.info(f"Standard grade scale created for campus {campus_id}")
        return scale

    @staticmethod
    def letter_for(scale: GradeScale, percentage: Decimal) -> Tuple[str, Decimal]:
        """Letter and grade points for a percentage; no matching band is an F"""
        percentage = Decimal(str(percentage))
        for band in scale.bands:
            if band.min_percentage <= percentage <= band.max_percentage:
                return band.letter, Decimal(band.points)
        return "F", Decimal("0.0")
