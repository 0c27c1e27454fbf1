from datetime import date
from decimal import Decimal

import pytest

from app.core.errors import ConflictError, ForbiddenError, ValidationError
from app.models import Notification
from app.services.grade_calculation_service import GradeCalculationService, weighted_gpa
from app.services.grade_scale_service import GradeScaleService, validate_bands
from app.services.grade_service import GradeService
from app.services.student_service import StudentService


@pytest.fixture
def section(make, campus):
    return make.class_section(campus, make.semester(campus))


def _component(db, campus, section, name, weight, max_score=100, component_type="ASSIGNMENT"):
    return GradeService(db).create_component(campus.id, {
        "class_id": section.id,
        "name": name,
        "component_type": component_type,
        "weight": Decimal(str(weight)),
        "max_score": Decimal(str(max_score)),
    })


def test_weighted_gpa():
    assert weighted_gpa([]) == Decimal("0.00")
    assert weighted_gpa([{"credits": 3, "points": "4.0"}, {"credits": 1, "points": "2.0"}]) == Decimal("3.50")
    assert weighted_gpa([{"credits": 4, "points": "3.7"}, {"credits": 3, "points": "3.3"}]) == Decimal("3.53")


def test_overlapping_bands_are_rejected():
    with pytest.raises(ValidationError, match="overlap"):
        validate_bands([
            {"letter": "P", "min_percentage": Decimal("50"), "max_percentage": Decimal("100"), "points": Decimal("1")},
            {"letter": "F", "min_percentage": Decimal("0"), "max_percentage": Decimal("50"), "points": Decimal("0")},
        ])


@pytest.mark.parametrize("percentage, letter, points", [
    ("100", "A+", "4.0"),
    ("94.99", "A", "4.0"),
    ("90", "A", "4.0"),
    ("89.99", "A-", "3.7"),
    ("72.50", "C", "2.0"),
    ("60", "D", "1.0"),
    ("59.99", "F", "0.0"),
])
def test_standard_scale(db, campus, percentage, letter, points):
    scale = GradeScaleService(db).get_default_scale(campus.id)
    assert GradeScaleService.letter_for(scale, Decimal(percentage)) == (letter, Decimal(points))


def test_component_weights_cannot_exceed_100(db, campus, section):
    _component(db, campus, section, "Midterm", 40, component_type="MIDTERM")
    _component(db, campus, section, "Final", 60, component_type="FINAL")

    with pytest.raises(ValidationError, match="exceeds 100%"):
        _component(db, campus, section, "Quiz", "0.5", component_type="QUIZ")

    assert GradeService(db).validate_weights(campus.id, section.id)["valid"] is True


def test_validate_weights_reports_shortfall(db, campus, section):
    _component(db, campus, section, "Midterm", 40)
    result = GradeService(db).validate_weights(campus.id, section.id)
    assert result["valid"] is False
    assert result["total_weight"] == Decimal("40")


def test_deactivated_default_is_replaced_by_standard(db, campus):
    service = GradeScaleService(db)
    bands = [{"letter": "P", "min_percentage": Decimal("0"), "max_percentage": Decimal("100"), "points": Decimal("1")}]
    custom = service.create_scale(campus.id, "Pass/Fail", bands, is_default=True)
    service.update_scale(campus.id, custom.id, is_active=False)

    standard = service.get_default_scale(campus.id)
    db.rollback()

    assert standard.name == "Standard"
    assert service.get_default_scale(campus.id).id == standard.id
    assert [s.name for s in service.list_scales(campus.id) if s.is_default] == ["Standard"]


def test_component_statistics(db, make, campus, section):
    quiz = _component(db, campus, section, "Quiz", 10, max_score=20)
    service = GradeService(db)
    assert service.component_statistics(campus.id, quiz.id)["count"] == 0

    for score in ("18", "10", "19"):
        enrollment = make.enrollment(campus, make.student(campus), section)
        service.create_entry(campus.id, enrollment.id, quiz.id, Decimal(score))

    stats = service.component_statistics(campus.id, quiz.id)

    assert stats["count"] == 3
    assert stats["average"] == Decimal("15.67")
    assert (stats["min"], stats["max"]) == (Decimal("10"), Decimal("19"))
    assert stats["distribution"] == {"A": 1, "F": 1, "A+": 1}


def test_score_must_be_within_max(db, make, campus, section):
    enrollment = make.enrollment(campus, make.student(campus), section)
    quiz = _component(db, campus, section, "Quiz", 10, max_score=20)

    with pytest.raises(ValidationError, match="between 0 and"):
        GradeService(db).create_entry(campus.id, enrollment.id, quiz.id, Decimal("21"))
    with pytest.raises(ValidationError):
        GradeService(db).create_entry(campus.id, enrollment.id, quiz.id, Decimal("-1"))


def test_duplicate_entry_is_a_conflict(db, make, campus, section):
    enrollment = make.enrollment(campus, make.student(campus), section)
    quiz = _component(db, campus, section, "Quiz", 10)
    service = GradeService(db)
    service.create_entry(campus.id, enrollment.id, quiz.id, Decimal("8"))

    with pytest.raises(ConflictError):
        service.create_entry(campus.id, enrollment.id, quiz.id, Decimal("9"))


def test_entry_must_match_component_class(db, make, campus, section):
    other = make.class_section(campus, section.semester)
    enrollment = make.enrollment(campus, make.student(campus), other)
    quiz = _component(db, campus, section, "Quiz", 10)

    with pytest.raises(ValidationError, match="does not belong"):
        GradeService(db).create_entry(campus.id, enrollment.id, quiz.id, Decimal("5"))


def test_weighted_final_grade(db, make, campus, section):
    enrollment = make.enrollment(campus, make.student(campus), section)
    midterm = _component(db, campus, section, "Midterm", 40, max_score=50, component_type="MIDTERM")
    final = _component(db, campus, section, "Final", 60, max_score=100, component_type="FINAL")
    service = GradeService(db)
    service.create_entry(campus.id, enrollment.id, midterm.id, Decimal("45"))
    service.create_entry(campus.id, enrollment.id, final.id, Decimal("80"))

    result = GradeCalculationService(db).calculate_student_grade(campus.id, enrollment.id)

    # 90% of 40 plus 80% of 60
    assert result["percentage"] == Decimal("84.00")
    assert result["letter_grade"] == "B+"
    assert result["grade_points"] == Decimal("3.3")
    assert [c["contribution"] for c in result["components"]] == [Decimal("36.00"), Decimal("48.00")]


def test_missing_scores_count_as_zero(db, make, campus, section):
    enrollment = make.enrollment(campus, make.student(campus), section)
    midterm = _component(db, campus, section, "Midterm", 50)
    _component(db, campus, section, "Final", 50)
    GradeService(db).create_entry(campus.id, enrollment.id, midterm.id, Decimal("100"))

    result = GradeCalculationService(db).calculate_student_grade(campus.id, enrollment.id)

    assert result["percentage"] == Decimal("50.00")
    assert result["letter_grade"] == "F"
    assert result["components"][1]["score"] is None


def test_finalize_locks_entries_and_notifies(db, make, campus, owner, section):
    user = make.user()
    enrollment = make.enrollment(campus, make.student(campus, user=user), section)
    quiz = _component(db, campus, section, "Exam", 100)
    GradeService(db).create_entry(campus.id, enrollment.id, quiz.id, Decimal("91"))
    calculator = GradeCalculationService(db)

    finalized = calculator.finalize_enrollment(campus.id, enrollment.id, owner.id)

    assert finalized.is_finalized
    assert finalized.final_grade == "A"
    assert db.query(Notification).filter_by(user_id=user.id, type="GRADE").count() == 1

    with pytest.raises(ValidationError, match="finalized"):
        GradeService(db).update_entry(campus.id, quiz.entries[0].id, score=Decimal("95"))
    with pytest.raises(ValidationError, match="already finalized"):
        calculator.finalize_enrollment(campus.id, enrollment.id, owner.id)

    calculator.unfinalize(campus.id, enrollment.id)
    assert GradeService(db).update_entry(campus.id, quiz.entries[0].id, score=Decimal("95")).score == Decimal("95")


def test_bulk_entries_upserts_and_collects_errors(db, make, campus, section):
    first = make.enrollment(campus, make.student(campus), section)
    second = make.enrollment(campus, make.student(campus), section)
    quiz = _component(db, campus, section, "Quiz", 10, max_score=10)
    service = GradeService(db)
    service.create_entry(campus.id, first.id, quiz.id, Decimal("4"))

    result = service.bulk_entries(campus.id, quiz.id, [
        {"enrollment_id": first.id, "score": Decimal("7")},
        {"enrollment_id": second.id, "score": Decimal("11")},
    ])

    assert result["saved"] == 1
    assert result["failed"] == 1
    db.refresh(quiz)
    assert [entry.score for entry in quiz.entries] == [Decimal("7")]


def test_transcript_and_cgpa(db, make, campus, owner):
    year = make.year(campus)
    spring = make.semester(campus, year=year, name="Spring 2027", start=date(2027, 1, 20), end=date(2027, 5, 30), is_current=False)
    fall = make.semester(campus, year=year)
    student = make.student(campus)
    make.enrollment(campus, student, make.class_section(campus, fall, course=make.course(campus, credits=3)),
                    status="COMPLETED", final_grade="A", grade_points=Decimal("4.0"), final_percentage=Decimal("92"))
    make.enrollment(campus, student, make.class_section(campus, spring, course=make.course(campus, credits=1)),
                    status="COMPLETED", final_grade="F", grade_points=Decimal("0.0"), final_percentage=Decimal("40"))

    transcript = GradeCalculationService(db).transcript(campus.id, student.id)

    assert [s["semester_name"] for s in transcript["semesters"]] == ["Fall 2026", "Spring 2027"]
    assert transcript["total_credits_attempted"] == 4
    assert transcript["total_credits_earned"] == 3
    assert transcript["cgpa"] == Decimal("3.00")


def test_official_transcript_respects_holds(db, make, campus, owner):
    student = make.student(campus)
    StudentService(db).place_hold(campus.id, student.id, {
        "type": "FINANCIAL", "reason": "Library fine", "blocks_registration": False, "blocks_transcript": True,
    }, placed_by=owner.id)
    service = GradeCalculationService(db)

    assert service.transcript(campus.id, student.id)["official"] is False
    with pytest.raises(ForbiddenError):
        service.transcript(campus.id, student.id, official=True)
