"""
Tests for fee structures, balances, payment recording and receipts.
"""
from decimal import Decimal
from io import BytesIO

import pytest
from django.core.exceptions import ValidationError
from django.utils import timezone
from openpyxl import Workbook

from fees.models import Payment, Receipt, TermlyFeeStructure
from fees.services import FeeBalanceService, FeeStructureService, get_default_fee_breakdown
from fees.utils import (
    carry_forward_description,
    carry_forward_reference,
    generate_payment_reference,
    generate_receipt_number,
)
from utils.utils import to_decimal


def workbook_file(rows):
    wb = Workbook()
    for row in rows:
        wb.active.append(row)
    buffer = BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer


class TestDefaultFeeBreakdown:
    """Default fee tables used when no structure is stored."""

    def test_grade_one_table(self) -> None:
        breakdown = get_default_fee_breakdown("Grade 1")
        assert breakdown == {
            "tuition": 15000,
            "books": 2500,
            "uniform": 2000,
            "activities": 1000,
            "development": 2500,
            "lunch": 3000,
        }

    def test_grade_six_adds_exam_fee(self) -> None:
        breakdown = get_default_fee_breakdown("Grade 6")
        assert breakdown["exam"] == 2000
        assert sum(breakdown.values()) == 56000

    def test_grade_name_variants(self) -> None:
        assert get_default_fee_breakdown("grade 3a") == get_default_fee_breakdown("Grade 3")
        assert get_default_fee_breakdown("GRADE4")["tuition"] == 24000

    def test_pre_primary_tables(self) -> None:
        assert get_default_fee_breakdown("PP1")["tuition"] == 12000
        assert get_default_fee_breakdown("Nursery")["tuition"] == 12000
        assert get_default_fee_breakdown("PP2")["lunch"] == 2800

    def test_unknown_grade_falls_back(self) -> None:
        breakdown = get_default_fee_breakdown("Form 1")
        assert breakdown["tuition"] == 25000
        assert sum(breakdown.values()) == 45000


@pytest.mark.django_db
class TestFeeStructureService:
    """Stored and default fee structures."""

    def test_get_for_grade_without_structure_returns_unsaved_default(self, school, grades, academic_year) -> None:
        term = academic_year.terms.get(name="Term 1")
        structure = FeeStructureService.get_for_grade(school, grades["Grade 2"], academic_year, term)

        assert structure._state.adding
        assert structure.total_amount == Decimal("32000")

    def test_save_structure_total_is_breakdown_sum(self, school, grades, academic_year) -> None:
        structure, created = FeeStructureService.save_structure(
            school, grades["Grade 1"], "2025", "Term 1",
            breakdown={"tuition": "10000", "lunch": 2500.50},
        )

        assert created
        assert structure.total_amount == Decimal("12500.50")
        assert FeeStructureService.get_for_grade(
            school, grades["Grade 1"], academic_year, academic_year.terms.get(name="Term 1")
        ).pk == structure.pk

    def test_save_structure_updates_existing(self, school, grades, academic_year) -> None:
        FeeStructureService.save_structure(school, grades["Grade 1"], "2025", "FIRST", total_amount=1000)
        structure, created = FeeStructureService.save_structure(school, grades["Grade 1"], "2025", "Term 1", total_amount=2000)

        assert not created
        assert structure.total_amount == Decimal("2000.00")
        assert TermlyFeeStructure.all_objects.filter(school=school, grade=grades["Grade 1"]).count() == 1

    def test_save_structure_rejects_negative_amounts(self, school, grades, academic_year) -> None:
        with pytest.raises(ValidationError, match="cannot be negative"):
            FeeStructureService.save_structure(school, grades["Grade 1"], "2025", "Term 1", breakdown={"tuition": -5})

    def test_save_structure_requires_amount(self, school, grades, academic_year) -> None:
        with pytest.raises(ValidationError, match="breakdown or a total"):
            FeeStructureService.save_structure(school, grades["Grade 1"], "2025", "Term 1")

    def test_save_structure_rejects_invalid_term(self, school, grades, academic_year) -> None:
        with pytest.raises(ValidationError, match="Invalid term"):
            FeeStructureService.save_structure(school, grades["Grade 1"], "2025", "Term 9", total_amount=100)


@pytest.mark.django_db
class TestStudentBalance:
    """Term balances."""

    def test_balance_uses_default_fees(self, student) -> None:
        balance = FeeBalanceService.calculate_student_balance(student, "2025", "Term 1")

        assert balance["total_required"] == 26000.0
        assert balance["total_paid"] == 0.0
        assert balance["balance"] == 26000.0
        assert balance["fee_breakdown"]["tuition"] == 15000.0
        assert balance["payment_history"] == []

    def test_balance_defaults_to_current_period(self, student) -> None:
        balance = FeeBalanceService.calculate_student_balance(student)
        assert balance["academic_year"] == "2025"
        assert balance["term"] == "Term 1"

    def test_balance_for_missing_year_uses_default_table(self, student) -> None:
        balance = FeeBalanceService.calculate_student_balance(student, "2031", "Term 2")
        assert balance["total_required"] == 26000.0

    def test_student_without_class_owes_nothing(self, make_student, academic_year) -> None:
        loner = make_student(None)
        balance = FeeBalanceService.calculate_student_balance(loner, "2025", "Term 1")

        assert balance["total_required"] == 0.0
        assert balance["fee_breakdown"] == {}

    def test_balance_subtracts_payments_of_the_term_only(self, student) -> None:
        FeeBalanceService.record_payment(student, 6000, "2025", "Term 1", "CASH", "Peter")
        FeeBalanceService.record_payment(student, 1000, "2025", "Term 2", "CASH", "Peter")

        balance = FeeBalanceService.calculate_student_balance(student, "2025", "Term 1")
        assert balance["total_paid"] == 6000.0
        assert balance["balance"] == 20000.0


@pytest.mark.django_db
class TestRecordPayment:
    """Bursar payment recording and receipts."""

    def test_record_payment_creates_payment_and_receipt(self, student) -> None:
        result = FeeBalanceService.record_payment(
            student, "5000", "2025", "Term 1", "mpesa", "Peter Bursar", reference_number="QK12AB34"
        )
        payment, receipt = result["payment"], result["receipt"]

        year = timezone.now().year
        assert payment.receipt_number == f"RCP-{year}-0001"
        assert payment.payment_method == Payment.METHOD_MPESA
        assert payment.description == "Term 1 2025 fee payment"
        assert receipt.receipt_number == payment.receipt_number
        assert receipt.balance_before == Decimal("26000.00")
        assert receipt.balance_after == Decimal("21000.00")
        assert receipt.currency == "KES"
        assert receipt.reference_number == "QK12AB34"
        assert result["updated_balance"]["balance"] == 21000.0

    def test_receipt_numbers_are_sequential(self, student) -> None:
        first = FeeBalanceService.record_payment(student, 100, "2025", "Term 1", "CASH", "Peter")
        second = FeeBalanceService.record_payment(student, 100, "2025", "Term 1", "CASH", "Peter")

        assert first["payment"].receipt_number.endswith("-0001")
        assert second["payment"].receipt_number.endswith("-0002")

    def test_reference_falls_back_to_generated(self, student) -> None:
        payment = FeeBalanceService.record_payment(student, 100, "2025", "Term 1", "CASH", "Peter")["payment"]
        assert payment.reference_number.startswith("PAY-")

    def test_missing_year_and_term_are_created(self, student, school) -> None:
        result = FeeBalanceService.record_payment(student, 100, "2027", "THIRD", "BANK", "Peter")
        assert result["payment"].academic_year.name == "2027"
        assert result["payment"].term.name == "Term 3"

    @pytest.mark.parametrize("amount", [0, -10, "abc"])
    def test_rejects_non_positive_amount(self, student, amount) -> None:
        with pytest.raises(ValidationError, match="greater than zero"):
            FeeBalanceService.record_payment(student, amount, "2025", "Term 1", "CASH", "Peter")
        assert not Payment.all_objects.exists()

    def test_requires_received_by(self, student) -> None:
        with pytest.raises(ValidationError, match="Received by"):
            FeeBalanceService.record_payment(student, 100, "2025", "Term 1", "CASH", "  ")

    def test_rejects_unknown_method(self, student) -> None:
        with pytest.raises(ValidationError, match="Invalid payment method"):
            FeeBalanceService.record_payment(student, 100, "2025", "Term 1", "BITCOIN", "Peter")

    def test_invalid_term_rolls_back(self, student) -> None:
        with pytest.raises(ValidationError):
            FeeBalanceService.record_payment(student, 100, "2025", "Term 7", "CASH", "Peter")
        assert not Receipt.all_objects.exists()

    def test_payment_history_newest_first(self, student) -> None:
        FeeBalanceService.record_payment(student, 100, "2025", "Term 1", "CASH", "Peter")
        FeeBalanceService.record_payment(student, 200, "2025", "Term 2", "CASH", "Peter")

        history = FeeBalanceService.get_payment_history(student)
        assert [item["amount"] for item in history] == [200.0, 100.0]
        assert history[0]["receipt"]["receipt_number"] == history[0]["receipt_number"]

        assert len(FeeBalanceService.get_payment_history(student, term="Term 1")) == 1


@pytest.mark.django_db
class TestSchoolBalances:
    """Balances report."""

    def test_summary(self, school, student, make_student, grade1_class) -> None:
        make_student(grade1_class)
        FeeBalanceService.record_payment(student, 26000, "2025", "Term 1", "CASH", "Peter")

        report = FeeBalanceService.get_school_balances(school, "2025", "Term 1")
        summary = report["summary"]

        assert summary["totalStudents"] == 2
        assert summary["totalFeesRequired"] == 52000.0
        assert summary["totalFeesCollected"] == 26000.0
        assert summary["totalOutstanding"] == 26000.0
        assert summary["studentsWithOutstanding"] == 1

    def test_search_filter(self, school, student, make_student, grade1_class) -> None:
        make_student(grade1_class, first_name="Brian")
        report = FeeBalanceService.get_school_balances(school, "2025", "Term 1", search="amina")
        assert [row["name"] for row in report["students"]] == ["Amina Otieno"]


@pytest.mark.django_db
class TestReferenceNumbers:
    """Receipt numbers and references."""

    def test_first_receipt_number(self, school) -> None:
        assert generate_receipt_number(school, year=2025) == "RCP-2025-0001"

    def test_payment_reference_format(self) -> None:
        reference = generate_payment_reference()
        prefix, timestamp, suffix = reference.split("-")
        assert prefix == "PAY"
        assert len(timestamp) == 14
        assert len(suffix) == 9

    def test_carry_forward_texts(self) -> None:
        assert carry_forward_reference("2025", "2026") == "CF-2025-2026"
        assert carry_forward_description(Decimal("10"), "2025", "2026") == (
            "Fee Balance Carried Forward from 2025 to 2026"
        )
        assert carry_forward_description(Decimal("-10"), "2025", "2026") == (
            "Overpayment Credit Carried Forward from 2025 to 2026"
        )


@pytest.mark.django_db
class TestNonFiniteAmounts:
    """NaN and infinity are rejected like any other non-number."""

    @pytest.mark.parametrize("value", ["NaN", "nan", "-nan", "sNaN", "Infinity", float("nan"), float("inf")])
    def test_to_decimal_falls_back_to_default(self, value) -> None:
        assert to_decimal(value, default=None) is None
        assert to_decimal(value) == Decimal("0.00")

    def test_save_structure_rejects_nan(self, school, grades, academic_year) -> None:
        with pytest.raises(ValidationError, match="is not a number"):
            FeeStructureService.save_structure(school, grades["Grade 1"], "2025", "Term 1", breakdown={"tuition": "NaN"})

        assert not TermlyFeeStructure.all_objects.filter(school=school).exists()

    def test_model_clean_rejects_non_finite_amounts(self, school, grades, academic_year) -> None:
        structure = TermlyFeeStructure(
            school=school,
            grade=grades["Grade 1"],
            academic_year=academic_year,
            term=academic_year.terms.get(name="Term 1"),
            breakdown={"tuition": "Infinity"},
        )

        with pytest.raises(ValidationError, match="is not a number"):
            structure.clean()

    def test_workbook_row_with_nan_is_reported(self, school, grades, academic_year) -> None:
        upload = workbook_file([
            ["Grade", "Academic Year", "Term", "Tuition", "Lunch"],
            ["Grade 1", "2025", "Term 1", 15000, 3000],
            ["Grade 2", "2025", "Term 1", "nan", 4000],
        ])

        results = FeeStructureService.import_from_workbook(school, upload)

        assert results["created"] == 1
        assert results["errors"] == [{"row": 3, "error": "Amount for 'tuition' is not a number."}]
        assert TermlyFeeStructure.all_objects.get(school=school).grade == grades["Grade 1"]
