# promotions/services.py

"""
Promotion business logic.

Contains:
- PromotionCriteriaService: the school's bulk promotion thresholds
- EligibilityService: per-student evaluation against the criteria
- PromotionService: promotion lists, execution with fee carry-forward
  and graduation to alumni, history
"""

from django.db import transaction
from django.utils import timezone
from django.core.exceptions import ValidationError
from decimal import Decimal
import logging

from academics.models import Grade
from academics.services import AcademicYearService, GradeService, ClassService
from core.utils import get_setting, format_money
from fees.models import FeeCarryForward, StudentArrears
from fees.services import LedgerService
from fees.utils import carry_forward_reference, carry_forward_description
from students.models import Student, Alumni
from students.utils import score_to_letter
from utils.utils import to_decimal, money

from .models import PromotionCriteria, PromotionLog, PromotionExclusion

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')

DEFAULT_CRITERIA_NAME = 'Default Criteria'
DEFAULT_CRITERIA_DESCRIPTION = 'Standard promotion criteria'


def _number(value):
    """45.00 -> 45, 47.50 -> 47.5 for messages"""
    value = to_decimal(value)
    if value == value.to_integral_value():
        return str(int(value))
    return str(value.normalize())


def _student_queryset(school):
    return Student.all_objects.filter(school=school).select_related(
        'school',
        'current_class',
        'current_class__grade',
        'current_class__grade__next_grade',
        'current_class__academic_year',
    )


# =============================================================================
# PROMOTION CRITERIA SERVICE
# =============================================================================

class PromotionCriteriaService:
    """The active bulk promotion criteria of a school"""

    @staticmethod
    def get_config(school):
        """Active bulk criteria, creating the default (50% / 0 / 0) when missing"""
        criteria = PromotionCriteria.all_objects.filter(
            school=school,
            promotion_type=PromotionCriteria.TYPE_BULK,
            is_active=True,
        ).order_by('-updated_at').first()

        if criteria is None:
            criteria = PromotionCriteria.all_objects.create(
                school=school,
                name=DEFAULT_CRITERIA_NAME,
                description=DEFAULT_CRITERIA_DESCRIPTION,
                min_grade=Decimal('50'),
                max_fee_balance=ZERO,
                max_disciplinary_cases=0,
                promotion_type=PromotionCriteria.TYPE_BULK,
                is_active=True,
            )
            logger.info(f"Created default promotion criteria for {school.code}")

        return criteria

    @staticmethod
    @transaction.atomic
    def update_config(school, min_grade=None, max_fee_balance=None, max_disciplinary_cases=None,
                      name=None, description=None):
        """Update the active criteria in place; omitted values are kept"""
        criteria = PromotionCriteriaService.get_config(school)

        if min_grade is not None:
            min_grade = to_decimal(min_grade)
            if not ZERO <= min_grade <= Decimal('100'):
                raise ValidationError("Minimum grade must be between 0 and 100.")
            criteria.min_grade = min_grade

        if max_fee_balance is not None:
            max_fee_balance = to_decimal(max_fee_balance)
            if max_fee_balance < 0:
                raise ValidationError("Maximum fee balance cannot be negative.")
            criteria.max_fee_balance = max_fee_balance

        if max_disciplinary_cases is not None:
            if int(max_disciplinary_cases) < 0:
                raise ValidationError("Maximum disciplinary cases cannot be negative.")
            criteria.max_disciplinary_cases = int(max_disciplinary_cases)

        if name:
            criteria.name = name
        if description is not None:
            criteria.description = description

        criteria.save()
        logger.info(
            f"Promotion criteria updated for {school.code}: min grade {criteria.min_grade}, "
            f"max balance {criteria.max_fee_balance}, max cases {criteria.max_disciplinary_cases}"
        )
        return criteria


def serialize_criteria(criteria):
    return {
        'id': str(criteria.pk),
        'name': criteria.name,
        'description': criteria.description,
        'min_grade': money(criteria.min_grade),
        'max_fee_balance': money(criteria.max_fee_balance),
        'max_disciplinary_cases': criteria.max_disciplinary_cases,
        'promotion_type': criteria.promotion_type,
        'is_active': criteria.is_active,
    }


# =============================================================================
# ELIGIBILITY SERVICE
# =============================================================================

class EligibilityService:
    """Checks students against promotion criteria"""

    @staticmethod
    def average_grade(student):
        """Recorded average score, or the configured default when none is recorded"""
        if student.average_score is not None:
            return to_decimal(student.average_score)
        return to_decimal(get_setting('DEFAULT_AVERAGE_GRADE'))

    @staticmethod
    def evaluate(student, criteria):
        """
        Evaluate one student.

        Eligible when the average grade reaches ``min_grade``, the fee
        balance of the class's academic year is within ``max_fee_balance``
        and the disciplinary cases are within ``max_disciplinary_cases``.

        Returns:
            dict: student details, average_grade, fee_balance,
            disciplinary_cases, is_eligible, reason
        """
        school_class = student.current_class
        result = {
            'student_id': str(student.pk),
            'student_name': student.get_full_name(),
            'admission_number': student.admission_number,
            'current_class': school_class.name if school_class else None,
            'current_grade': school_class.grade.name if school_class else None,
            'academic_year': school_class.academic_year.name if school_class else None,
            'average_grade': 0.0,
            'fee_balance': 0.0,
            'disciplinary_cases': student.disciplinary_cases,
            'is_eligible': False,
            'reason': '',
        }

        if school_class is None:
            result['reason'] = 'Student or class not found'
            return result

        if school_class.grade.is_alumni:
            result['reason'] = f"Grade {school_class.grade.name} is not eligible for promotion"
            return result

        if not student.is_active:
            result['reason'] = f"Student is {student.get_status_display().lower()}"
            return result

        average = EligibilityService.average_grade(student)
        balance = PromotionService.outstanding_for_year(student, school_class.academic_year)
        cases = student.disciplinary_cases
        currency = student.school.receipt_currency

        reasons = []
        if average < criteria.min_grade:
            reasons.append(f"Grade {_number(average)}% below minimum {_number(criteria.min_grade)}%")
        if balance > criteria.max_fee_balance:
            reasons.append(
                f"Fee balance {format_money(balance, currency)} exceeds maximum "
                f"{format_money(criteria.max_fee_balance, currency)}"
            )
        if cases > criteria.max_disciplinary_cases:
            reasons.append(f"{cases} disciplinary cases exceed maximum {criteria.max_disciplinary_cases}")

        result.update({
            'average_grade': money(average),
            'fee_balance': money(balance),
            'is_eligible': not reasons,
            'reason': ', '.join(reasons),
        })
        return result

    @staticmethod
    def eligible_students(school, criteria, academic_year=None):
        """
        Evaluate every active student in a non-alumni class.

        Args:
            academic_year: limit to classes of this AcademicYear

        Returns:
            list: one evaluation dict per student, eligible or not
        """
        students = _student_queryset(school).filter(
            status=Student.STATUS_ACTIVE,
            current_class__isnull=False,
            current_class__grade__is_alumni=False,
        )
        if academic_year is not None:
            students = students.filter(current_class__academic_year=academic_year)

        students = students.order_by('current_class__grade__order', 'current_class__name', 'last_name', 'first_name')
        evaluations = [EligibilityService.evaluate(student, criteria) for student in students]

        eligible = sum(1 for evaluation in evaluations if evaluation['is_eligible'])
        logger.info(f"Evaluated {len(evaluations)} students for {school.code}: {eligible} eligible")
        return evaluations


# =============================================================================
# PROMOTION SERVICE
# =============================================================================

class PromotionService:
    """Builds, validates and executes promotions"""

    @staticmethod
    def outstanding_for_year(student, academic_year):
        """
        Year-end balance: brought-forward amount plus the year's fee
        structures less the year's payments. Carry-forwards are never
        counted as payments.
        """
        year_name = academic_year.name if hasattr(academic_year, 'name') else str(academic_year)
        return LedgerService.student_ledger(student, filter_year=year_name)['outstanding']

    @staticmethod
    def next_academic_year(school, academic_year):
        """The following academic year, created with its terms when missing"""
        return AcademicYearService.create_year_with_terms(school, academic_year.next_year_name())

    @staticmethod
    def _target_for(student):
        """(next_grade, reason) for a student's current class"""
        school_class = student.current_class
        if school_class is None:
            return None, 'Student or class not found'
        grade = school_class.grade
        if grade.is_alumni:
            return None, f"Grade {grade.name} is not eligible for promotion"
        if grade.next_grade is None:
            return None, f"No progression rule for grade {grade.name}"
        return grade.next_grade, None

    @staticmethod
    def build_promotion_list(school, student_ids):
        """
        Where each selected student would go.

        Returns:
            list: per student from/to class and grade, is_graduating,
            outstanding_balance and a reason when there is no target
        """
        students = {str(student.pk): student for student in _student_queryset(school).filter(pk__in=student_ids)}

        promotion_list = []
        for student_id in student_ids:
            student = students.get(str(student_id))
            if student is None:
                promotion_list.append({
                    'student_id': str(student_id),
                    'student_name': 'Unknown',
                    'is_graduating': False,
                    'to_class': None,
                    'to_grade': None,
                    'reason': 'Student or class not found',
                })
                continue

            school_class = student.current_class
            next_grade, reason = PromotionService._target_for(student)
            entry = {
                'student_id': str(student.pk),
                'student_name': student.get_full_name(),
                'admission_number': student.admission_number,
                'from_class': school_class.name if school_class else None,
                'from_grade': school_class.grade.name if school_class else None,
                'from_academic_year': school_class.academic_year.name if school_class else None,
                'to_class': None,
                'to_grade': None,
                'to_academic_year': None,
                'is_graduating': False,
                'outstanding_balance': 0.0,
                'reason': reason,
            }

            if next_grade is not None:
                is_graduating = next_grade.is_alumni
                entry.update({
                    'to_grade': next_grade.name,
                    'to_class': next_grade.name if is_graduating else ClassService.next_class_name(school_class, next_grade),
                    'to_academic_year': school_class.academic_year.next_year_name(),
                    'is_graduating': is_graduating,
                    'outstanding_balance': money(
                        PromotionService.outstanding_for_year(student, school_class.academic_year)
                    ),
                })

            promotion_list.append(entry)

        return promotion_list

    @staticmethod
    def validate_targets(school, promotion_list):
        """
        Every non-graduating target grade must exist (and be active) in
        the school. Entries without a target are skipped; execution
        reports them per student.

        Returns:
            list: error messages, empty when the list can be executed
        """
        existing = set(Grade.all_objects.filter(school=school, is_active=True).values_list('name', flat=True))
        errors = []
        for entry in promotion_list:
            if entry.get('reason') or entry['is_graduating']:
                continue
            message = f"Next grade {entry['to_grade']} not found"
            if entry['to_grade'] not in existing and message not in errors:
                errors.append(message)
        return errors

    @staticmethod
    def _normalize_exclusions(exclusions):
        """Accept {student_id: reason} or [{'student_id', 'reason', 'notes'}]"""
        if not exclusions:
            return {}
        if isinstance(exclusions, dict):
            exclusions = [{'student_id': key, 'reason': value} for key, value in exclusions.items()]
        return {
            str(item['student_id']): {
                'reason': str(item.get('reason') or 'Excluded by administrator'),
                'notes': str(item.get('notes') or ''),
            }
            for item in exclusions
        }

    @staticmethod
    def _carry_forward(school, student, balance, from_year, to_year):
        """Record the year-end balance and move it into the next year"""
        StudentArrears.all_objects.update_or_create(
            school=school,
            student=student,
            academic_year=from_year,
            defaults={'arrear_amount': balance, 'is_carried_forward': balance != 0},
        )

        if balance == 0:
            return None

        carry_forward, _ = FeeCarryForward.all_objects.update_or_create(
            school=school,
            student=student,
            from_academic_year=from_year,
            to_academic_year=to_year,
            defaults={
                'amount': balance,
                'reference': carry_forward_reference(from_year.name, to_year.name),
                'description': carry_forward_description(balance, from_year.name, to_year.name),
            },
        )
        logger.info(
            f"Carried forward {balance} for {student.admission_number} "
            f"from {from_year.name} to {to_year.name}"
        )
        return carry_forward

    @staticmethod
    def _graduate(school, student, from_class, balance, to_year, alumni_grade):
        alumni_class, _ = ClassService.find_or_create_class(school, alumni_grade, to_year, name=alumni_grade.name)

        student.current_class = alumni_class
        student.status = Student.STATUS_GRADUATED
        student.graduation_date = timezone.localdate()
        student.save()

        Alumni.all_objects.update_or_create(
            student=student,
            defaults={
                'school': school,
                'graduation_year': from_class.academic_year.name,
                'final_class': from_class.name,
                'final_grade': score_to_letter(student.average_score),
                'outstanding_balance': balance,
            },
        )
        logger.info(f"Graduated {student.admission_number} to alumni ({from_class.academic_year.name})")
        return alumni_class

    @staticmethod
    @transaction.atomic
    def execute(school, student_ids, promoted_by=None, criteria=None, exclusions=None, notes=''):
        """
        Promote the selected students in one transaction.

        - with ``criteria``, students failing them are excluded with the reason
        - ``exclusions`` are recorded as PromotionExclusion rows
        - a non-zero year-end balance is carried into the next year
        - students in a final grade graduate to the Alumni class
        - every move is logged in PromotionLog

        Returns:
            dict: promoted, graduated, excluded, fee_carry_forwards,
            errors, summary, message
        """
        exclusions = PromotionService._normalize_exclusions(exclusions)
        students = {str(student.pk): student for student in _student_queryset(school).filter(pk__in=student_ids)}
        promotion_type = criteria.promotion_type if criteria else PromotionCriteria.TYPE_BULK

        promoted, graduated, excluded, carried, errors = [], [], [], [], []
        next_years = {}
        alumni_grade = None

        requested = list(dict.fromkeys(str(value) for value in student_ids))
        for student_id in requested:
            student = students.get(student_id)
            if student is None or student.current_class is None:
                errors.append({'student_id': student_id, 'error': 'Student or class not found'})
                continue

            from_class = student.current_class
            from_year = from_class.academic_year
            from_grade = from_class.grade

            # Exclusions
            exclusion = exclusions.get(student_id)
            evaluation = None
            if exclusion is None and criteria is not None:
                evaluation = EligibilityService.evaluate(student, criteria)
                if not evaluation['is_eligible']:
                    exclusion = {'reason': evaluation['reason'], 'notes': ''}

            if exclusion is not None:
                PromotionExclusion.all_objects.create(
                    school=school,
                    student=student,
                    academic_year=from_year,
                    reason=exclusion['reason'][:255],
                    notes=exclusion['notes'],
                    excluded_by=promoted_by,
                )
                excluded.append({
                    'student_id': student_id,
                    'student_name': student.get_full_name(),
                    'reason': exclusion['reason'],
                })
                continue

            next_grade, reason = PromotionService._target_for(student)
            if next_grade is None:
                errors.append({'student_id': student_id, 'error': reason})
                continue

            if from_year.pk not in next_years:
                next_years[from_year.pk] = PromotionService.next_academic_year(school, from_year)
            to_year = next_years[from_year.pk]

            # Fee carry-forward
            balance = PromotionService.outstanding_for_year(student, from_year)
            carry_forward = PromotionService._carry_forward(school, student, balance, from_year, to_year)
            if carry_forward is not None:
                carried.append({
                    'student_id': student_id,
                    'student_name': student.get_full_name(),
                    'amount': money(carry_forward.amount),
                    'reference': carry_forward.reference,
                    'description': carry_forward.description,
                })

            # Move
            if next_grade.is_alumni:
                alumni_grade = alumni_grade or GradeService.get_alumni_grade(school)
                to_class = PromotionService._graduate(school, student, from_class, balance, to_year, alumni_grade)
            else:
                to_class, _ = ClassService.find_or_create_class(
                    school, next_grade, to_year, name=ClassService.next_class_name(from_class, next_grade)
                )
                student.current_class = to_class
                student.save()

            PromotionLog.all_objects.create(
                school=school,
                student=student,
                from_class=from_class,
                to_class=to_class,
                from_grade=from_grade,
                to_grade=to_class.grade,
                from_academic_year=from_year,
                to_academic_year=to_year,
                promoted_by=promoted_by,
                promotion_type=promotion_type,
                is_graduation=next_grade.is_alumni,
                criteria_results=evaluation or {},
                average_grade=EligibilityService.average_grade(student),
                outstanding_balance=balance,
                disciplinary_cases=student.disciplinary_cases,
                notes=notes or (
                    f"Graduated to Alumni with outstanding balance: {balance}"
                    if next_grade.is_alumni and balance > 0 else ''
                ),
            )

            moved = {
                'student_id': student_id,
                'student_name': student.get_full_name(),
                'admission_number': student.admission_number,
                'from_class': from_class.name,
                'to_class': to_class.name,
                'from_academic_year': from_year.name,
                'to_academic_year': to_year.name,
                'outstanding_balance': money(balance),
            }
            (graduated if next_grade.is_alumni else promoted).append(moved)

        summary = {
            'total_requested': len(requested),
            'promoted': len(promoted),
            'graduated': len(graduated),
            'excluded': len(excluded),
            'errors': len(errors),
            'fee_carry_forwards': len(carried),
            'total_carried_forward': money(sum((to_decimal(item['amount']) for item in carried), ZERO)),
        }
        message = (
            f"Promotion completed: {summary['promoted']} promoted, "
            f"{summary['graduated']} graduated, {summary['excluded']} excluded"
        )
        logger.info(f"{message} ({school.code})")
        if errors:
            logger.warning(f"Promotion for {school.code} skipped {len(errors)} students: {errors}")

        return {
            'promoted': promoted,
            'graduated': graduated,
            'excluded': excluded,
            'fee_carry_forwards': carried,
            'errors': errors,
            'summary': summary,
            'message': message,
        }

    @staticmethod
    def history(school, academic_year=None, student=None):
        """Promotion logs, newest first"""
        logs = PromotionLog.all_objects.filter(school=school).select_related(
            'student', 'from_class', 'to_class', 'from_academic_year', 'to_academic_year', 'promoted_by'
        )
        if academic_year:
            logs = logs.filter(from_academic_year__name=str(academic_year))
        if student is not None:
            logs = logs.filter(student=student)
        return list(logs.order_by('-created_at'))


def serialize_log(log):
    promoted_by = log.promoted_by
    return {
        'id': str(log.pk),
        'student_id': str(log.student_id),
        'student_name': log.student.get_full_name(),
        'admission_number': log.student.admission_number,
        'from_class': log.from_class.name if log.from_class else None,
        'to_class': log.to_class.name if log.to_class else None,
        'from_academic_year': log.from_academic_year.name,
        'to_academic_year': log.to_academic_year.name,
        'is_graduation': log.is_graduation,
        'promotion_type': log.promotion_type,
        'average_grade': money(log.average_grade) if log.average_grade is not None else None,
        'outstanding_balance': money(log.outstanding_balance),
        'disciplinary_cases': log.disciplinary_cases,
        'promoted_by': (promoted_by.get_full_name() or promoted_by.username) if promoted_by else None,
        'notes': log.notes,
        'created_at': log.created_at.isoformat(),
    }
