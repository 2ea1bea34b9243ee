# fees/services.py

"""
Fee business logic.

Contains:
- Default fee tables for grades without a stored structure
- FeeStructureService: lookup, save, Excel import/export of termly structures
- FeeBalanceService: balances, payment recording with receipts, history
- LedgerService: debit/credit statements with running balances
"""

from django.db import transaction
from django.db.models import Sum, Q
from django.core.exceptions import ValidationError
from django.utils import timezone
from datetime import datetime, date
from decimal import Decimal
import re
import logging

from academics.models import AcademicYear, Term, Grade, normalize_term_name, term_order
from academics.services import AcademicYearService
from students.models import Student
from utils.utils import to_decimal, money

from .models import TermlyFeeStructure, Payment, Receipt, FeeCarryForward
from .utils import generate_receipt_number, generate_payment_reference

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


# =============================================================================
# DEFAULT FEE TABLES
# =============================================================================

FEE_ITEMS = ('tuition', 'books', 'uniform', 'activities', 'development', 'lunch')

GRADE_FEE_TABLE = {
    1: (15000, 2500, 2000, 1000, 2500, 3000),
    2: (18000, 3000, 2500, 1500, 3000, 4000),
    3: (21000, 3500, 3000, 2000, 3500, 4500),
    4: (24000, 4000, 3500, 2500, 4000, 5000),
    5: (27000, 4500, 4000, 3000, 4500, 5500),
    6: (30000, 5000, 4500, 3500, 5000, 6000),
}

PP1_FEES = (12000, 2000, 1500, 800, 2000, 2500)
PP2_FEES = (14000, 2200, 1800, 1000, 2200, 2800)
FALLBACK_FEES = (25000, 5000, 3000, 2000, 5000, 5000)

GRADE_SIX_EXAM_FEE = 2000


def get_default_fee_breakdown(grade_name):
    """
    Default per-term fees for a grade name.

    "Grade 3", "grade 3a" and "GRADE3" use the Grade 3 table; PP1/PP2,
    kindergarten and nursery have their own; anything else falls back to
    the generic table.

    Returns:
        dict: item name -> amount (int)
    """
    normalized = (grade_name or '').lower().strip()
    match = re.search(r'grade\s*(\d+)', normalized)
    grade_number = int(match.group(1)) if match else None

    if grade_number in GRADE_FEE_TABLE:
        breakdown = dict(zip(FEE_ITEMS, GRADE_FEE_TABLE[grade_number]))
        if grade_number == 6:
            breakdown['exam'] = GRADE_SIX_EXAM_FEE
        return breakdown

    if any(name in normalized for name in ('pp1', 'pre-primary 1', 'kindergarten', 'nursery')):
        return dict(zip(FEE_ITEMS, PP1_FEES))

    if any(name in normalized for name in ('pp2', 'pre-primary 2')):
        return dict(zip(FEE_ITEMS, PP2_FEES))

    return dict(zip(FEE_ITEMS, FALLBACK_FEES))


def _json_breakdown(breakdown):
    return {item: money(amount) for item, amount in (breakdown or {}).items()}


# =============================================================================
# FEE STRUCTURE SERVICE
# =============================================================================

class FeeStructureService:
    """Termly fee structures"""

    @staticmethod
    def get_for_grade(school, grade, academic_year, term):
        """
        Active stored structure for grade/year/term, or an unsaved one
        built from the default fee table.
        """
        structure = TermlyFeeStructure.all_objects.filter(
            school=school,
            grade=grade,
            academic_year=academic_year,
            term=term,
            is_active=True,
        ).first()

        if structure is not None:
            return structure

        breakdown = get_default_fee_breakdown(grade.name)
        return TermlyFeeStructure(
            school=school,
            grade=grade,
            academic_year=academic_year,
            term=term,
            breakdown=breakdown,
            total_amount=TermlyFeeStructure.breakdown_total(breakdown),
            is_active=True,
            is_released=True,
        )

    @staticmethod
    def clean_breakdown(breakdown):
        """
        Validate a breakdown mapping and coerce its amounts.

        Raises:
            ValidationError: not a mapping, or a missing/negative amount
        """
        if breakdown in (None, ''):
            return {}
        if not isinstance(breakdown, dict):
            raise ValidationError("Breakdown must map fee items to amounts.")

        cleaned = {}
        for item, amount in breakdown.items():
            item = str(item).strip()
            if not item:
                raise ValidationError("Fee item names cannot be empty.")
            value = to_decimal(amount, default=None)
            if value is None:
                raise ValidationError(f"Amount for '{item}' is not a number.")
            if value < 0:
                raise ValidationError(f"Amount for '{item}' cannot be negative.")
            cleaned[item] = float(value)
        return cleaned

    @staticmethod
    @transaction.atomic
    def save_structure(school, grade, academic_year_name, term_name, breakdown=None,
                       total_amount=None, due_date=None, is_released=False):
        """
        Create or update the active structure of a grade for one term.

        When a breakdown is given the total is its sum; otherwise
        ``total_amount`` is required.

        Returns:
            tuple: (structure, created)
        """
        breakdown = FeeStructureService.clean_breakdown(breakdown)

        if breakdown:
            total = TermlyFeeStructure.breakdown_total(breakdown)
        else:
            total = to_decimal(total_amount, default=None)
            if total is None:
                raise ValidationError("Provide a fee breakdown or a total amount.")
            if total < 0:
                raise ValidationError("Total amount cannot be negative.")

        if grade.is_alumni:
            raise ValidationError("Fee structures cannot be set for the alumni grade.")

        academic_year, term = AcademicYearService.resolve_year_and_term(school, academic_year_name, term_name)

        structure = TermlyFeeStructure.all_objects.filter(
            school=school, grade=grade, academic_year=academic_year, term=term, is_active=True
        ).select_for_update().first()

        created = structure is None
        if created:
            structure = TermlyFeeStructure(
                school=school, grade=grade, academic_year=academic_year, term=term
            )

        structure.breakdown = breakdown
        structure.total_amount = total
        structure.due_date = due_date
        structure.is_released = is_released
        structure.is_active = True
        structure.save()

        action = "Created" if created else "Updated"
        logger.info(f"{action} fee structure {structure} for {school.code}: {total}")
        return structure, created

    @staticmethod
    def list_structures(school, academic_year_name=None, term_name=None, grade=None):
        structures = TermlyFeeStructure.all_objects.filter(
            school=school, is_active=True
        ).select_related('grade', 'academic_year', 'term')

        if academic_year_name:
            structures = structures.filter(academic_year__name=academic_year_name)
        if term_name:
            structures = structures.filter(term__name=normalize_term_name(term_name))
        if grade:
            structures = structures.filter(grade=grade)
        return structures

    @staticmethod
    def import_from_workbook(school, file):
        """
        Import structures from an uploaded workbook.

        Expected columns: Grade, Academic Year, Term, one column per fee
        item, Due Date. Rows are saved independently.

        Returns:
            dict: created, updated, errors (list of {'row', 'error'})
        """
        from .excel import read_fee_structure_rows

        results = {'created': 0, 'updated': 0, 'errors': []}

        for row_number, row in read_fee_structure_rows(file):
            grade_name = row.get('grade')
            grade = Grade.all_objects.filter(school=school, name__iexact=grade_name or '').first()
            if grade is None:
                results['errors'].append({'row': row_number, 'error': f"Unknown grade '{grade_name}'"})
                continue

            try:
                _, created = FeeStructureService.save_structure(
                    school,
                    grade,
                    row.get('academic_year'),
                    row.get('term'),
                    breakdown=row.get('breakdown'),
                    due_date=row.get('due_date'),
                )
            except ValidationError as e:
                results['errors'].append({'row': row_number, 'error': '; '.join(e.messages)})
                continue

            results['created' if created else 'updated'] += 1

        logger.info(
            f"Fee structure import for {school.code}: {results['created']} created, "
            f"{results['updated']} updated, {len(results['errors'])} errors"
        )
        return results

    @staticmethod
    def export_template():
        from .excel import build_fee_template
        return build_fee_template()

    @staticmethod
    def export_structures(school):
        from .excel import build_fee_structures_workbook
        return build_fee_structures_workbook(school, FeeStructureService.list_structures(school))


def serialize_fee_structure(structure):
    return {
        'id': None if structure._state.adding else str(structure.pk),
        'grade': structure.grade.name,
        'grade_id': str(structure.grade_id),
        'academic_year': structure.academic_year.name,
        'term': structure.term.name,
        'breakdown': _json_breakdown(structure.breakdown),
        'total_amount': money(structure.total_amount),
        'due_date': structure.due_date.isoformat() if structure.due_date else None,
        'is_active': structure.is_active,
        'is_released': structure.is_released,
        'is_default': structure._state.adding,
    }


# =============================================================================
# FEE BALANCE SERVICE
# =============================================================================

def serialize_payment(payment):
    return {
        'id': str(payment.pk),
        'amount': money(payment.amount),
        'payment_date': payment.payment_date.isoformat(),
        'payment_method': payment.payment_method,
        'received_by': payment.received_by,
        'receipt_number': payment.receipt_number,
        'reference_number': payment.reference_number or None,
        'description': payment.description,
        'academic_year': payment.academic_year.name,
        'term': payment.term.name,
    }


class FeeBalanceService:
    """Student balances and payment recording"""

    @staticmethod
    def resolve_period(school, academic_year=None, term=None):
        """
        Year and term names for a balance query. Missing values default to
        the school's current year/term, then to this calendar year and Term 1.
        """
        if academic_year is None:
            current = AcademicYearService.get_current_year(school)
            academic_year = current.name if current else str(timezone.localdate().year)
        elif isinstance(academic_year, AcademicYear):
            academic_year = academic_year.name

        if term is None:
            current_term = AcademicYearService.get_current_term(school)
            if current_term and current_term.academic_year.name == str(academic_year):
                term = current_term.name
            else:
                term = 'Term 1'
        elif isinstance(term, Term):
            term = term.name

        return str(academic_year), normalize_term_name(term)

    @staticmethod
    def _structure_for(student, academic_year_name, term_name):
        """Fee structure that applies to the student, or None without a class"""
        grade = student.grade
        if grade is None:
            return None

        year = AcademicYear.all_objects.filter(school_id=student.school_id, name=academic_year_name).first()
        term = Term.all_objects.filter(academic_year=year, name=term_name).first() if year else None

        if year is None or term is None:
            # Unsaved year/term so the default table still applies
            year = year or AcademicYear(school_id=student.school_id, name=academic_year_name)
            term = term or Term(school_id=student.school_id, academic_year=year, name=term_name)
            breakdown = get_default_fee_breakdown(grade.name)
            return TermlyFeeStructure(
                school_id=student.school_id,
                grade=grade,
                academic_year=year,
                term=term,
                breakdown=breakdown,
                total_amount=TermlyFeeStructure.breakdown_total(breakdown),
            )

        return FeeStructureService.get_for_grade(student.school, grade, year, term)

    @staticmethod
    def _payments_for(student, academic_year_name, term_name):
        return Payment.all_objects.filter(
            student=student,
            status='COMPLETED',
            academic_year__name=academic_year_name,
            term__name=term_name,
        ).select_related('academic_year', 'term').order_by('-payment_date', '-created_at')

    @staticmethod
    def term_balance(student, academic_year_name, term_name):
        """(total_required, total_paid, balance) as Decimals"""
        structure = FeeBalanceService._structure_for(student, academic_year_name, term_name)
        total_required = to_decimal(structure.total_amount) if structure else ZERO
        total_paid = FeeBalanceService._payments_for(student, academic_year_name, term_name).aggregate(
            total=Sum('amount')
        )['total'] or ZERO
        return total_required, to_decimal(total_paid), total_required - to_decimal(total_paid)

    @staticmethod
    def calculate_student_balance(student, academic_year=None, term=None):
        """
        Balance of one student for one term.

        Returns:
            dict: student_id, academic_year, term, total_required,
            total_paid, balance, fee_breakdown, payment_history (newest
            first), last_updated
        """
        year_name, term_name = FeeBalanceService.resolve_period(student.school, academic_year, term)

        structure = FeeBalanceService._structure_for(student, year_name, term_name)
        payments = list(FeeBalanceService._payments_for(student, year_name, term_name))

        total_required = to_decimal(structure.total_amount) if structure else ZERO
        total_paid = sum((payment.amount for payment in payments), ZERO)

        return {
            'student_id': str(student.pk),
            'academic_year': year_name,
            'term': term_name,
            'total_required': money(total_required),
            'total_paid': money(total_paid),
            'balance': money(total_required - total_paid),
            'fee_breakdown': _json_breakdown(structure.breakdown) if structure else {},
            'payment_history': [serialize_payment(payment) for payment in payments],
            'last_updated': timezone.now().isoformat(),
        }

    @staticmethod
    def record_payment(student, amount, academic_year, term, payment_method, received_by,
                       description=None, reference_number=None):
        """
        Record a manual payment and issue its receipt.

        The academic year and term are created when missing. Payment and
        receipt are written in one transaction.

        Raises:
            ValidationError: invalid amount, method, term or missing receiver

        Returns:
            dict: payment, receipt, updated_balance
        """
        amount = to_decimal(amount, default=None)
        if amount is None or amount <= 0:
            raise ValidationError("Amount must be greater than zero.")

        received_by = (received_by or '').strip()
        if not received_by:
            raise ValidationError("Received by is required.")

        payment_method = (payment_method or Payment.METHOD_CASH).strip().upper()
        if payment_method not in dict(Payment.PAYMENT_METHOD_CHOICES):
            raise ValidationError(f"Invalid payment method: {payment_method}")

        if not academic_year:
            raise ValidationError("Academic year is required.")

        school = student.school

        with transaction.atomic():
            year, term_obj = AcademicYearService.resolve_year_and_term(school, academic_year, term)

            _, _, balance_before = FeeBalanceService.term_balance(student, year.name, term_obj.name)

            receipt_number = generate_receipt_number(school)
            reference_number = (reference_number or '').strip() or generate_payment_reference()

            payment = Payment.all_objects.create(
                school=school,
                student=student,
                academic_year=year,
                term=term_obj,
                amount=amount,
                payment_method=payment_method,
                reference_number=reference_number,
                receipt_number=receipt_number,
                description=description or f"{term_obj.name} {year.name} fee payment",
                received_by=received_by,
            )

            receipt = Receipt.all_objects.create(
                school=school,
                payment=payment,
                student=student,
                receipt_number=receipt_number,
                amount=amount,
                payment_date=payment.payment_date,
                balance_before=balance_before,
                balance_after=balance_before - amount,
                academic_year_name=year.name,
                term_name=term_obj.name,
                payment_method=payment_method,
                reference_number=reference_number,
                received_by=received_by,
                currency=school.receipt_currency,
            )

        logger.info(
            f"Payment {receipt_number} of {amount} recorded for {student.admission_number} "
            f"({term_obj.name} {year.name}) by {received_by}"
        )

        return {
            'payment': payment,
            'receipt': receipt,
            'updated_balance': FeeBalanceService.calculate_student_balance(student, year.name, term_obj.name),
        }

    @staticmethod
    def get_payment_history(student, academic_year=None, term=None):
        """Payments of a student, newest first"""
        payments = Payment.all_objects.filter(student=student, status='COMPLETED').select_related(
            'academic_year', 'term', 'receipt'
        )

        if academic_year:
            payments = payments.filter(academic_year__name=str(academic_year))
        if term:
            payments = payments.filter(term__name=normalize_term_name(term))

        history = []
        for payment in payments.order_by('-payment_date', '-created_at'):
            data = serialize_payment(payment)
            receipt = getattr(payment, 'receipt', None)
            data['receipt'] = serialize_receipt(receipt) if receipt else None
            history.append(data)
        return history

    @staticmethod
    def get_school_balances(school, academic_year=None, term=None, grade=None, search=None):
        """
        Per-student balances for the bursar console and the balances report.

        Returns:
            dict: students (rows) and summary with totalStudents,
            totalFeesRequired, totalFeesCollected, totalOutstanding,
            studentsWithOutstanding
        """
        year_name, term_name = FeeBalanceService.resolve_period(school, academic_year, term)

        students = Student.all_objects.filter(
            school=school, status=Student.STATUS_ACTIVE
        ).select_related('current_class', 'current_class__grade', 'parent')

        if grade:
            students = students.filter(current_class__grade=grade)

        if search:
            students = students.filter(
                Q(first_name__icontains=search)
                | Q(last_name__icontains=search)
                | Q(admission_number__icontains=search)
            )

        rows = []
        for student in students.order_by('current_class__grade__order', 'last_name', 'first_name'):
            balance = FeeBalanceService.calculate_student_balance(student, year_name, term_name)
            school_class = student.current_class
            parent = student.parent
            rows.append({
                'id': str(student.pk),
                'name': student.get_full_name(),
                'admissionNumber': student.admission_number,
                'gradeName': school_class.grade.name if school_class else 'N/A',
                'className': school_class.name if school_class else 'N/A',
                'parent': {
                    'name': parent.get_full_name(),
                    'phone': parent.phone,
                    'email': parent.email,
                } if parent else None,
                'feeStructure': {
                    'name': f"{term_name} {year_name} Fees",
                    'totalAmount': balance['total_required'],
                    'breakdown': balance['fee_breakdown'],
                },
                'totalFeeRequired': balance['total_required'],
                'totalPaid': balance['total_paid'],
                'balance': balance['balance'],
                'lastPayment': balance['payment_history'][0] if balance['payment_history'] else None,
            })

        summary = {
            'totalStudents': len(rows),
            'totalFeesRequired': money(sum(Decimal(str(row['totalFeeRequired'])) for row in rows)),
            'totalFeesCollected': money(sum(Decimal(str(row['totalPaid'])) for row in rows)),
            'totalOutstanding': money(sum(Decimal(str(row['balance'])) for row in rows)),
            'studentsWithOutstanding': sum(1 for row in rows if row['balance'] > 0),
        }

        return {
            'academicYear': year_name,
            'term': term_name,
            'students': rows,
            'summary': summary,
        }


def serialize_receipt(receipt):
    student = receipt.student
    return {
        'id': str(receipt.pk),
        'receipt_number': receipt.receipt_number,
        'amount': money(receipt.amount),
        'payment_date': receipt.payment_date.isoformat(),
        'balance_before': money(receipt.balance_before),
        'balance_after': money(receipt.balance_after),
        'academic_year': receipt.academic_year_name,
        'term': receipt.term_name,
        'payment_method': receipt.payment_method,
        'reference_number': receipt.reference_number,
        'received_by': receipt.received_by,
        'currency': receipt.currency,
        'student': {
            'id': str(student.pk),
            'name': student.get_full_name(),
            'admission_number': student.admission_number,
        },
    }


# =============================================================================
# LEDGER SERVICE
# =============================================================================

ENTRY_OPENING = 'opening'
ENTRY_INVOICE = 'invoice'
ENTRY_PAYMENT = 'payment'

ENTRY_RANK = {ENTRY_OPENING: 0, ENTRY_INVOICE: 1, ENTRY_PAYMENT: 2}


def _year_number(name):
    digits = str(name or '').strip()[:4]
    return int(digits) if digits.isdigit() else 0


def _as_date(value):
    if isinstance(value, datetime):
        return timezone.localtime(value).date() if timezone.is_aware(value) else value.date()
    return value


class LedgerService:
    """Fee statements: fee structures debit, payments credit"""

    @staticmethod
    def build_ledger(student, fee_structures, payments, carry_forwards=(),
                     join_year=None, join_term=None, filter_year=None):
        """
        Build a statement from already-fetched rows.

        - fee structures become debits ("INVOICE - Term 1 2025")
        - payments become credits
        - carry-forwards into ``filter_year`` open the statement
        - anything before the join year/term is dropped
        - entries are sorted by date, then year and term order; the
          running balance is debit minus credit

        Returns:
            dict: entries, total_debit, total_credit, outstanding
        """
        join_point = None
        if join_year:
            join_point = (_year_number(join_year), term_order(join_term) if join_term else 1)

        def before_join(year_name, term_name):
            if join_point is None:
                return False
            return (_year_number(year_name), term_order(term_name)) < join_point

        entries = []

        if filter_year:
            for carry_forward in carry_forwards:
                if carry_forward.to_academic_year.name != str(filter_year):
                    continue
                amount = to_decimal(carry_forward.amount)
                entries.append({
                    'date': carry_forward.to_academic_year.start_date,
                    'type': ENTRY_OPENING,
                    'reference': carry_forward.reference,
                    'description': carry_forward.description,
                    'academic_year': carry_forward.to_academic_year.name,
                    'term': '',
                    'debit': amount if amount > 0 else ZERO,
                    'credit': -amount if amount < 0 else ZERO,
                })

        for structure in fee_structures:
            year_name, term_name = structure.academic_year.name, structure.term.name
            if filter_year and year_name != str(filter_year):
                continue
            if before_join(year_name, term_name):
                continue
            entries.append({
                'date': structure.term.start_date or _as_date(structure.created_at),
                'type': ENTRY_INVOICE,
                'reference': str(structure.pk) if not structure._state.adding else '',
                'description': f"INVOICE - {term_name} {year_name}",
                'academic_year': year_name,
                'term': term_name,
                'debit': to_decimal(structure.total_amount),
                'credit': ZERO,
            })

        for payment in payments:
            year_name, term_name = payment.academic_year.name, payment.term.name
            if filter_year and year_name != str(filter_year):
                continue
            if before_join(year_name, term_name):
                continue
            entries.append({
                'date': _as_date(payment.payment_date),
                'type': ENTRY_PAYMENT,
                'reference': payment.receipt_number or payment.reference_number or str(payment.pk),
                'description': payment.description or 'PAYMENT',
                'academic_year': year_name,
                'term': term_name,
                'debit': ZERO,
                'credit': to_decimal(payment.amount),
            })

        entries.sort(key=lambda entry: (
            entry['date'] or date.min,
            _year_number(entry['academic_year']),
            term_order(entry['term']) if entry['term'] else 0,
            ENTRY_RANK[entry['type']],
        ))

        running = ZERO
        total_debit = ZERO
        total_credit = ZERO
        for entry in entries:
            running += entry['debit'] - entry['credit']
            total_debit += entry['debit']
            total_credit += entry['credit']
            entry['balance'] = running

        return {
            'entries': entries,
            'total_debit': total_debit,
            'total_credit': total_credit,
            'outstanding': entries[-1]['balance'] if entries else ZERO,
        }

    @staticmethod
    def grade_for_year(student, academic_year):
        """
        Grade the student was in during ``academic_year``: the current
        class's grade for its year, otherwise the promotion record that
        moved the student out of that year.
        """
        school_class = student.current_class
        if school_class is not None and school_class.academic_year_id == academic_year.pk:
            return school_class.grade

        from promotions.models import PromotionLog

        log = PromotionLog.all_objects.filter(
            student=student, from_academic_year=academic_year
        ).select_related('from_grade').order_by('-created_at').first()
        return log.from_grade if log else None

    @staticmethod
    def statement_years(student, filter_year=None):
        years = AcademicYear.all_objects.filter(school_id=student.school_id)
        if filter_year:
            return list(years.filter(name=str(filter_year)))

        joined = _year_number(student.joined_academic_year)
        current = student.current_class.academic_year if student.current_class_id else None
        return [
            year for year in years.order_by('name')
            if _year_number(year.name) >= joined
            and (current is None or _year_number(year.name) <= _year_number(current.name))
        ]

    @staticmethod
    def student_ledger(student, filter_year=None):
        """
        Ledger for one academic year (with its brought-forward opening
        entry) or, without ``filter_year``, for every year since the
        student joined. The all-years ledger leaves out carry-forwards
        since their amounts already appear as earlier invoices and
        payments.
        """
        fee_structures = []
        for year in LedgerService.statement_years(student, filter_year):
            grade = LedgerService.grade_for_year(student, year)
            if grade is None or grade.is_alumni:
                continue
            for term in year.terms.order_by('order'):
                fee_structures.append(FeeStructureService.get_for_grade(student.school, grade, year, term))

        payments = Payment.all_objects.filter(student=student, status='COMPLETED').select_related(
            'academic_year', 'term'
        )
        if filter_year:
            payments = payments.filter(academic_year__name=str(filter_year))

        carry_forwards = []
        if filter_year:
            carry_forwards = list(FeeCarryForward.all_objects.filter(
                student=student, to_academic_year__name=str(filter_year)
            ).select_related('to_academic_year'))

        return LedgerService.build_ledger(
            student,
            fee_structures,
            list(payments),
            carry_forwards,
            join_year=student.joined_academic_year or None,
            join_term=student.joined_term or None,
            filter_year=filter_year,
        )

    @staticmethod
    def student_statement(student, filter_year=None):
        """JSON-ready statement built from ``student_ledger``"""
        ledger = LedgerService.student_ledger(student, filter_year)

        school_class = student.current_class
        return {
            'student': {
                'id': str(student.pk),
                'name': student.get_full_name(),
                'admission_number': student.admission_number,
                'class': school_class.name if school_class else None,
                'grade': school_class.grade.name if school_class else None,
            },
            'academic_year': str(filter_year) if filter_year else None,
            'currency': student.school.receipt_currency,
            'entries': [
                {
                    'no': number,
                    'date': entry['date'].isoformat() if entry['date'] else None,
                    'type': entry['type'],
                    'reference': entry['reference'],
                    'description': entry['description'],
                    'academic_year': entry['academic_year'],
                    'term': entry['term'],
                    'debit': money(entry['debit']),
                    'credit': money(entry['credit']),
                    'balance': money(entry['balance']),
                }
                for number, entry in enumerate(ledger['entries'], start=1)
            ],
            'total_debit': money(ledger['total_debit']),
            'total_credit': money(ledger['total_credit']),
            'outstanding': money(ledger['outstanding']),
        }
