# academics/services.py

"""
Academic calendar and class structure operations.

Contains:
- Academic year and term lookup / creation
- Default grade ladder seeding and progression rules
- Class lookup / creation for promotions
"""

from django.db import transaction
from django.core.exceptions import ValidationError
from datetime import date
import calendar
import logging

from .models import (
    AcademicYear, Term, Grade, SchoolClass,
    TERM_NAMES, normalize_term_name, current_year_name,
)

logger = logging.getLogger(__name__)

DEFAULT_GRADE_NAMES = [f"Grade {number}" for number in range(1, 7)]
ALUMNI_GRADE_NAME = 'Alumni'
MIN_YEAR, MAX_YEAR = 1900, 9999


# =============================================================================
# ACADEMIC YEAR SERVICE
# =============================================================================

class AcademicYearService:
    """Academic year and term operations"""

    @staticmethod
    def get_current_year(school):
        """The school's current year, falling back to the latest one"""
        year = AcademicYear.all_objects.filter(school=school, is_current=True).first()
        if year is None:
            year = AcademicYear.all_objects.filter(school=school).order_by('-name').first()
        return year

    @staticmethod
    def get_current_term(school):
        term = Term.all_objects.filter(school=school, is_current=True).select_related('academic_year').first()
        if term is not None:
            return term

        year = AcademicYearService.get_current_year(school)
        if year is None:
            return None
        return year.terms.order_by('order').first()

    @staticmethod
    @transaction.atomic
    def set_current_year(year):
        year.is_current = True
        year.save()
        logger.info(f"Academic year {year.name} is now current for {year.school.code}")
        return year

    @staticmethod
    def get_or_create_year(school, name):
        """
        Find a year by name or create it spanning Jan 1 to Dec 31.
        A created year is current when it names this calendar year.
        """
        name = str(name).strip()
        year = AcademicYear.all_objects.filter(school=school, name=name).first()
        if year is not None:
            return year, False

        if not name[:4].isdigit():
            raise ValidationError(f"Invalid academic year: {name}")

        number = int(name[:4])
        if not MIN_YEAR <= number <= MAX_YEAR:
            raise ValidationError(f"Academic year {name} is out of range ({MIN_YEAR}-{MAX_YEAR})")
        year = AcademicYear.all_objects.create(
            school=school,
            name=name,
            start_date=date(number, 1, 1),
            end_date=date(number, 12, 31),
            is_current=(name == current_year_name())
                and not AcademicYear.all_objects.filter(school=school, is_current=True).exists(),
        )
        logger.info(f"Created academic year {name} for {school.code}")
        return year, True

    @staticmethod
    def get_or_create_term(academic_year, name):
        """
        Find or create a term of ``academic_year``.

        Term N spans four months starting at month 4(N-1)+1.
        """
        name = normalize_term_name(name)
        term = Term.all_objects.filter(academic_year=academic_year, name=name).first()
        if term is not None:
            return term, False

        index = TERM_NAMES.index(name)
        number = academic_year.year_number or academic_year.start_date.year
        start_month = index * 4 + 1
        end_month = start_month + 3

        term = Term.all_objects.create(
            school_id=academic_year.school_id,
            academic_year=academic_year,
            name=name,
            start_date=date(number, start_month, 1),
            end_date=date(number, end_month, calendar.monthrange(number, end_month)[1]),
            is_current=False,
        )
        logger.info(f"Created {name} for academic year {academic_year.name}")
        return term, True

    @staticmethod
    @transaction.atomic
    def create_year_with_terms(school, name, make_current=False):
        year, _ = AcademicYearService.get_or_create_year(school, name)
        for term_name in TERM_NAMES:
            AcademicYearService.get_or_create_term(year, term_name)
        if make_current:
            AcademicYearService.set_current_year(year)
        return year

    @staticmethod
    def resolve_year_and_term(school, year_name, term_name):
        """Get-or-create both ends; used when recording payments"""
        year, _ = AcademicYearService.get_or_create_year(school, year_name)
        term, _ = AcademicYearService.get_or_create_term(year, term_name)
        return year, term


# =============================================================================
# GRADE SERVICE
# =============================================================================

class GradeService:
    """Grade ladder and progression rules"""

    @staticmethod
    def get_alumni_grade(school, create=True):
        grade = Grade.all_objects.filter(school=school, is_alumni=True).first()
        if grade is None and create:
            grade = Grade.all_objects.create(
                school=school,
                name=ALUMNI_GRADE_NAME,
                order=999,
                is_alumni=True,
            )
            logger.info(f"Created alumni grade for {school.code}")
        return grade

    @staticmethod
    @transaction.atomic
    def seed_default_grades(school):
        """
        Create Grade 1..Grade 6 and Alumni, chained so that each grade
        progresses to the next and Grade 6 graduates to Alumni.
        Existing grades are kept and relinked.
        """
        alumni = GradeService.get_alumni_grade(school)

        grades = []
        for order, name in enumerate(DEFAULT_GRADE_NAMES, start=1):
            grade, created = Grade.all_objects.get_or_create(
                school=school,
                name=name,
                defaults={'order': order},
            )
            if created:
                logger.info(f"Seeded {name} for {school.code}")
            grades.append(grade)

        for current, following in zip(grades, grades[1:] + [alumni]):
            if current.next_grade_id != following.pk:
                current.next_grade = following
                current.save()

        return grades + [alumni]

    @staticmethod
    def get_progression(school):
        """Ordered progression rules as {'from', 'to', ...} dicts"""
        grades = Grade.all_objects.filter(
            school=school, is_alumni=False, is_active=True
        ).select_related('next_grade').order_by('order', 'name')

        return [
            {
                'from_grade_id': str(grade.pk),
                'from': grade.name,
                'to_grade_id': str(grade.next_grade.pk) if grade.next_grade else None,
                'to': grade.next_grade.name if grade.next_grade else None,
                'is_graduation': grade.is_final,
            }
            for grade in grades
        ]


# =============================================================================
# CLASS SERVICE
# =============================================================================

class ClassService:
    """Class lookup and creation"""

    @staticmethod
    def default_class_name(grade):
        return grade.name

    @staticmethod
    def find_or_create_class(school, grade, academic_year, name=None):
        """
        Class of ``grade`` in ``academic_year``. An exact name match wins,
        then any active class of the grade; otherwise one is created.
        """
        classes = SchoolClass.all_objects.filter(
            school=school, grade=grade, academic_year=academic_year, is_active=True
        )

        if name:
            school_class = classes.filter(name=name).first()
        else:
            school_class = classes.order_by('name').first()

        if school_class is not None:
            return school_class, False

        school_class = SchoolClass.all_objects.create(
            school=school,
            grade=grade,
            academic_year=academic_year,
            name=name or ClassService.default_class_name(grade),
            is_active=True,
        )
        logger.info(f"Created class {school_class.name} for academic year {academic_year.name}")
        return school_class, True

    @staticmethod
    def next_class_name(current_class, next_grade):
        """
        Carry the stream letter across grades: "Grade 2A" -> "Grade 3A".
        Falls back to the next grade's name.
        """
        grade_name = current_class.grade.name
        if current_class.name.startswith(grade_name):
            suffix = current_class.name[len(grade_name):]
            return f"{next_grade.name}{suffix}"
        return next_grade.name


# =============================================================================
# SHORTCUTS
# =============================================================================

get_current_academic_year = AcademicYearService.get_current_year
set_current_academic_year = AcademicYearService.set_current_year
get_or_create_academic_year = AcademicYearService.get_or_create_year
get_or_create_term = AcademicYearService.get_or_create_term
seed_default_grades = GradeService.seed_default_grades
get_progression = GradeService.get_progression
find_or_create_class = ClassService.find_or_create_class
