"""
Tests for promotion criteria, eligibility and execution.
"""
from decimal import Decimal

import pytest

from academics.models import AcademicYear, Grade, SchoolClass
from fees.models import FeeCarryForward, StudentArrears
from fees.services import FeeBalanceService, LedgerService
from promotions.forms import PromotionExecuteForm
from promotions.models import PromotionCriteria, PromotionExclusion, PromotionLog
from promotions.services import EligibilityService, PromotionCriteriaService, PromotionService
from students.models import Alumni, Student
from students.services import AlumniService

pytestmark = pytest.mark.django_db


def _pay_year(student, total=78000):
    """Clear a Grade 1 student's 2025 fees (3 x 26000 by default)."""
    remaining = Decimal(total)
    for term in ("Term 1", "Term 2", "Term 3"):
        amount = min(remaining, Decimal("26000"))
        if amount > 0:
            FeeBalanceService.record_payment(student, amount, "2025", term, "CASH", "Peter")
        remaining -= amount
    if remaining > 0:
        FeeBalanceService.record_payment(student, remaining, "2025", "Term 3", "CASH", "Peter")


class TestPromotionCriteria:
    """Criteria configuration."""

    def test_default_criteria_created(self, school) -> None:
        criteria = PromotionCriteriaService.get_config(school)

        assert criteria.name == "Default Criteria"
        assert criteria.description == "Standard promotion criteria"
        assert criteria.min_grade == Decimal("50")
        assert criteria.max_fee_balance == Decimal("0")
        assert criteria.max_disciplinary_cases == 0
        assert PromotionCriteriaService.get_config(school).pk == criteria.pk

    def test_update_config_keeps_omitted_values(self, school) -> None:
        PromotionCriteriaService.update_config(school, min_grade=60)
        criteria = PromotionCriteriaService.update_config(school, max_fee_balance="5000")

        assert criteria.min_grade == Decimal("60.00")
        assert criteria.max_fee_balance == Decimal("5000.00")
        assert PromotionCriteria.all_objects.filter(school=school).count() == 1

    def test_update_config_rejects_out_of_range(self, school) -> None:
        from django.core.exceptions import ValidationError

        with pytest.raises(ValidationError):
            PromotionCriteriaService.update_config(school, min_grade=120)


class TestEligibility:
    """Per-student evaluation."""

    def test_eligible_student(self, school, student) -> None:
        _pay_year(student)
        result = EligibilityService.evaluate(student, PromotionCriteriaService.get_config(school))

        assert result["is_eligible"] is True
        assert result["reason"] == ""
        assert result["fee_balance"] == 0.0

    def test_all_reasons_joined(self, school, make_student, grade1_class) -> None:
        weak = make_student(grade1_class, average_score=Decimal("45"), disciplinary_cases=2)
        result = EligibilityService.evaluate(weak, PromotionCriteriaService.get_config(school))

        assert result["is_eligible"] is False
        assert result["reason"] == (
            "Grade 45% below minimum 50%, "
            "Fee balance KES 78,000.00 exceeds maximum KES 0.00, "
            "2 disciplinary cases exceed maximum 0"
        )

    def test_missing_score_uses_configured_default(self, school, make_student, grade1_class, settings) -> None:
        settings.EDUSMS = {**settings.EDUSMS, "DEFAULT_AVERAGE_GRADE": 40}
        student = make_student(grade1_class, average_score=None)
        _pay_year(student)

        result = EligibilityService.evaluate(student, PromotionCriteriaService.get_config(school))
        assert result["average_grade"] == 40.0
        assert result["reason"] == "Grade 40% below minimum 50%"

    def test_student_without_class(self, school, make_student, academic_year) -> None:
        result = EligibilityService.evaluate(make_student(None), PromotionCriteriaService.get_config(school))
        assert result["is_eligible"] is False
        assert result["reason"] == "Student or class not found"

    def test_eligible_students_lists_everyone_in_school(self, school, student, make_student, grade1_class) -> None:
        make_student(grade1_class, average_score=Decimal("10"))
        _pay_year(student)

        evaluations = EligibilityService.eligible_students(school, PromotionCriteriaService.get_config(school))
        assert len(evaluations) == 2
        assert sum(1 for item in evaluations if item["is_eligible"]) == 1


class TestPromotionList:
    """Preview of destinations."""

    def test_build_promotion_list(self, school, student, make_student, grade6_class) -> None:
        leaver = make_student(grade6_class)

        entries = {
            entry["student_id"]: entry
            for entry in PromotionService.build_promotion_list(school, [student.pk, leaver.pk])
        }

        assert entries[str(student.pk)]["to_class"] == "Grade 2A"
        assert entries[str(student.pk)]["to_academic_year"] == "2026"
        assert entries[str(student.pk)]["outstanding_balance"] == 78000.0
        assert entries[str(leaver.pk)]["is_graduating"] is True
        assert PromotionService.validate_targets(school, list(entries.values())) == []

    def test_inactive_target_grade_fails_validation(self, school, student, grades) -> None:
        grades["Grade 2"].is_active = False
        grades["Grade 2"].save()

        promotion_list = PromotionService.build_promotion_list(school, [student.pk])
        assert PromotionService.validate_targets(school, promotion_list) == ["Next grade Grade 2 not found"]


class TestExecutePromotion:
    """Promotion runs."""

    def test_promotes_and_carries_forward_arrears(self, school, student, admin_user) -> None:
        FeeBalanceService.record_payment(student, 8000, "2025", "Term 1", "CASH", "Peter")

        result = PromotionService.execute(school, [student.pk], promoted_by=admin_user)

        student.refresh_from_db()
        assert result["message"] == "Promotion completed: 1 promoted, 0 graduated, 0 excluded"
        assert student.current_class.name == "Grade 2A"
        assert student.current_class.academic_year.name == "2026"
        assert student.current_class.grade.name == "Grade 2"

        carry_forward = FeeCarryForward.all_objects.get(student=student)
        assert carry_forward.amount == Decimal("70000.00")
        assert carry_forward.reference == "CF-2025-2026"
        assert carry_forward.description == "Fee Balance Carried Forward from 2025 to 2026"

        arrears = StudentArrears.all_objects.get(student=student)
        assert arrears.academic_year.name == "2025"
        assert arrears.is_carried_forward is True

        log = PromotionLog.all_objects.get(student=student)
        assert log.from_grade.name == "Grade 1"
        assert log.to_academic_year.name == "2026"
        assert log.promoted_by == admin_user

        assert result["fee_carry_forwards"][0]["amount"] == 70000.0

    def test_next_year_created_with_terms(self, school, student) -> None:
        PromotionService.execute(school, [student.pk])

        year = AcademicYear.all_objects.get(school=school, name="2026")
        assert list(year.terms.order_by("order").values_list("name", flat=True)) == ["Term 1", "Term 2", "Term 3"]

    def test_carry_forward_opens_next_year_statement(self, school, student) -> None:
        FeeBalanceService.record_payment(student, 8000, "2025", "Term 1", "CASH", "Peter")
        PromotionService.execute(school, [student.pk])
        student.refresh_from_db()

        statement = LedgerService.student_statement(student, filter_year="2026")
        assert statement["entries"][0]["type"] == "opening"
        assert statement["entries"][0]["debit"] == 70000.0
        # 70000 brought forward + 3 x 32000 Grade 2 fees
        assert statement["outstanding"] == 166000.0

        # carry-forward is not a payment
        assert FeeBalanceService.calculate_student_balance(student, "2026", "Term 1")["total_paid"] == 0.0

    def test_past_year_statement_keeps_previous_grade(self, school, student) -> None:
        PromotionService.execute(school, [student.pk])
        student.refresh_from_db()

        statement = LedgerService.student_statement(student, filter_year="2025")
        assert statement["total_debit"] == 78000.0

    def test_overpayment_becomes_credit(self, school, student) -> None:
        _pay_year(student, total=80000)
        PromotionService.execute(school, [student.pk])

        carry_forward = FeeCarryForward.all_objects.get(student=student)
        assert carry_forward.amount == Decimal("-2000.00")
        assert carry_forward.is_credit
        assert carry_forward.description == "Overpayment Credit Carried Forward from 2025 to 2026"

    def test_cleared_balance_has_no_carry_forward(self, school, student) -> None:
        _pay_year(student)
        PromotionService.execute(school, [student.pk])

        assert not FeeCarryForward.all_objects.exists()
        arrears = StudentArrears.all_objects.get(student=student)
        assert arrears.arrear_amount == Decimal("0.00")
        assert arrears.is_carried_forward is False

    def test_final_grade_graduates_to_alumni(self, school, make_student, grade6_class) -> None:
        leaver = make_student(grade6_class, average_score=Decimal("85"))

        result = PromotionService.execute(school, [leaver.pk])
        leaver.refresh_from_db()

        assert result["summary"]["graduated"] == 1
        assert leaver.status == Student.STATUS_GRADUATED
        assert leaver.current_class.grade.is_alumni
        alumnus = Alumni.all_objects.get(student=leaver)
        assert alumnus.graduation_year == "2025"
        assert alumnus.final_class == "Grade 6A"
        assert alumnus.final_grade == "A"
        assert alumnus.outstanding_balance == Decimal("168000.00")
        assert AlumniService.get_statistics(school)["top_performers"] == 1

    def test_explicit_exclusion(self, school, student, admin_user) -> None:
        result = PromotionService.execute(
            school, [student.pk], promoted_by=admin_user,
            exclusions=[{"student_id": str(student.pk), "reason": "Repeating the year"}],
        )
        student.refresh_from_db()

        assert result["summary"]["excluded"] == 1
        assert student.current_class.academic_year.name == "2025"
        exclusion = PromotionExclusion.all_objects.get(student=student)
        assert exclusion.reason == "Repeating the year"
        assert exclusion.excluded_by == admin_user
        assert not FeeCarryForward.all_objects.exists()

    def test_criteria_exclude_failing_students(self, school, student, make_student, grade1_class) -> None:
        weak = make_student(grade1_class, average_score=Decimal("30"))
        _pay_year(student)
        _pay_year(weak)

        result = PromotionService.execute(
            school, [student.pk, weak.pk], criteria=PromotionCriteriaService.get_config(school)
        )

        assert result["message"] == "Promotion completed: 1 promoted, 0 graduated, 1 excluded"
        assert result["excluded"][0]["reason"] == "Grade 30% below minimum 50%"

    def test_no_progression_rule_is_reported(self, school, make_student, academic_year) -> None:
        special = Grade.all_objects.create(school=school, name="Special Unit", order=50)
        school_class = SchoolClass.all_objects.create(
            school=school, grade=special, academic_year=academic_year, name="Special Unit"
        )
        pupil = make_student(school_class)

        result = PromotionService.execute(school, [pupil.pk])
        assert result["errors"] == [
            {"student_id": str(pupil.pk), "error": "No progression rule for grade Special Unit"}
        ]

    def test_unknown_student_is_reported(self, school, academic_year) -> None:
        import uuid

        missing = uuid.uuid4()
        result = PromotionService.execute(school, [missing])
        assert result["errors"][0]["error"] == "Student or class not found"

    def test_history(self, school, student, make_student, grade1_class) -> None:
        other = make_student(grade1_class)
        PromotionService.execute(school, [student.pk, other.pk])

        assert len(PromotionService.history(school)) == 2
        assert len(PromotionService.history(school, academic_year="2025", student=student)) == 1
        assert PromotionService.history(school, academic_year="2030") == []


class TestPromotionExecuteForm:
    def test_exclusion_reason_and_notes_become_text(self, student) -> None:
        form = PromotionExecuteForm({
            "student_ids": [str(student.pk)],
            "exclusions": [{"studentId": str(student.pk).upper(), "reason": 5, "notes": 12.5}],
        })

        assert form.is_valid(), form.errors
        assert form.cleaned_data["exclusions"] == [
            {"student_id": str(student.pk), "reason": "5", "notes": "12.5"}
        ]

    def test_exclusion_with_bad_student_id(self, student) -> None:
        form = PromotionExecuteForm({
            "student_ids": [str(student.pk)],
            "exclusions": [{"student_id": "nope", "reason": "Repeating"}],
        })

        assert not form.is_valid()
        assert "exclusions" in form.errors
