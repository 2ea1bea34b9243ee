# students/utils.py

from django.db import transaction
from django.utils import timezone
from decimal import Decimal

# =============================================================================
# CENTURY-SAFE YEAR UTILITIES
# =============================================================================

def get_century_safe_year_suffix(year):
    """
    Convert year to century-safe format

    Examples:
        2024 → "24"
        2100 → "A00"
        2125 → "A25"
    """
    if year < 2100:
        return f"{year % 100:02d}"

    century_offset = year // 100 - 20
    century_letter = chr(ord('A') + century_offset - 1)
    return f"{century_letter}{year % 100:02d}"


# =============================================================================
# ADMISSION NUMBER GENERATION
# =============================================================================

def generate_admission_number(school, admission_year=None):
    """
    Next admission number for ``school``.

    Format: YY/CODE/NNNN, e.g. 25/GREENFIELD/0007
    """
    from .models import Student

    year = admission_year or timezone.now().year
    prefix = f"{get_century_safe_year_suffix(year)}/{school.code.upper()[:8]}/"

    with transaction.atomic():
        last_student = (
            Student.all_objects
            .select_for_update()
            .filter(school=school, admission_number__startswith=prefix)
            .order_by('-admission_number')
            .first()
        )

        next_seq = 1
        if last_student:
            try:
                next_seq = int(last_student.admission_number.split('/')[-1]) + 1
            except (ValueError, IndexError):
                next_seq = Student.all_objects.filter(
                    school=school, admission_number__startswith=prefix
                ).count() + 1

    return f"{prefix}{next_seq:04d}"


# =============================================================================
# GRADE LETTERS
# =============================================================================

def score_to_letter(score):
    """Letter grade for an average score; None when no score is recorded"""
    if score is None:
        return ''

    score = Decimal(str(score))
    if score >= 80:
        return 'A'
    if score >= 70:
        return 'B'
    if score >= 60:
        return 'C'
    if score >= 50:
        return 'D'
    return 'E'
