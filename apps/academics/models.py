# academics/models.py

"""
Academic calendar and class structure.

- AcademicYear: a school year such as "2025"; one is current per school
- Term: Term 1..3 of a year
- Grade: a class level with its progression rule (``next_grade``)
- SchoolClass: a stream of a grade in a given academic year
"""

from django.db import models
from django.core.exceptions import ValidationError
from django.utils import timezone
import logging

from utils.models import SchoolOwnedModel

logger = logging.getLogger(__name__)


# =============================================================================
# TERM NAMES
# =============================================================================

TERM_NAMES = ('Term 1', 'Term 2', 'Term 3')

TERM_ALIASES = {
    'term 1': 'Term 1', 'first': 'Term 1', '1': 'Term 1', 'term1': 'Term 1',
    'term 2': 'Term 2', 'second': 'Term 2', '2': 'Term 2', 'term2': 'Term 2',
    'term 3': 'Term 3', 'third': 'Term 3', '3': 'Term 3', 'term3': 'Term 3',
}


def normalize_term_name(value):
    """
    Map 'FIRST', 'first', '1', 'Term 1' ... to the canonical 'Term N'.

    Raises:
        ValidationError: the value names no known term
    """
    key = str(value or '').strip().lower()
    if key not in TERM_ALIASES:
        raise ValidationError(f"Invalid term: {value}")
    return TERM_ALIASES[key]


def term_order(name):
    """1-based position of a term name; unknown names sort last"""
    try:
        return TERM_NAMES.index(normalize_term_name(name)) + 1
    except ValidationError:
        return len(TERM_NAMES) + 1


# =============================================================================
# ACADEMIC YEAR
# =============================================================================

class AcademicYear(SchoolOwnedModel):
    """A school year, named by its calendar year (e.g. "2025")"""

    name = models.CharField("Year Name", max_length=20, help_text="e.g. 2025")
    start_date = models.DateField("Start Date")
    end_date = models.DateField("End Date")
    is_current = models.BooleanField("Is Current", default=False)

    class Meta:
        ordering = ['-name']
        verbose_name = "Academic Year"
        verbose_name_plural = "Academic Years"
        constraints = [
            models.UniqueConstraint(fields=['school', 'name'], name='unique_academic_year_per_school'),
        ]

    def __str__(self):
        return self.name

    def clean(self):
        if self.start_date and self.end_date and self.start_date >= self.end_date:
            raise ValidationError("End date must be after start date.")

    def save(self, *args, **kwargs):
        super().save(*args, **kwargs)
        if self.is_current:
            AcademicYear.all_objects.filter(
                school_id=self.school_id, is_current=True
            ).exclude(pk=self.pk).update(is_current=False)

    @property
    def year_number(self):
        """Leading four-digit year, or None for free-form names"""
        digits = self.name.strip()[:4]
        return int(digits) if digits.isdigit() else None

    def next_year_name(self):
        if self.year_number is None:
            raise ValueError(f"Cannot derive the next year from '{self.name}'")
        return str(self.year_number + 1)


# =============================================================================
# TERM
# =============================================================================

class Term(SchoolOwnedModel):
    """One of the three terms of an academic year"""

    TERM_CHOICES = [(name, name) for name in TERM_NAMES]

    academic_year = models.ForeignKey(
        AcademicYear,
        on_delete=models.CASCADE,
        related_name='terms'
    )
    name = models.CharField("Term", max_length=10, choices=TERM_CHOICES)
    order = models.PositiveSmallIntegerField("Order", default=1)
    start_date = models.DateField("Start Date", null=True, blank=True)
    end_date = models.DateField("End Date", null=True, blank=True)
    is_current = models.BooleanField("Is Current", default=False)

    class Meta:
        ordering = ['academic_year__name', 'order']
        verbose_name = "Term"
        verbose_name_plural = "Terms"
        constraints = [
            models.UniqueConstraint(fields=['academic_year', 'name'], name='unique_term_per_year'),
        ]

    def __str__(self):
        return f"{self.name} {self.academic_year.name}"

    def save(self, *args, **kwargs):
        self.name = normalize_term_name(self.name)
        self.order = term_order(self.name)
        if not self.school_id and self.academic_year_id:
            self.school_id = self.academic_year.school_id
        super().save(*args, **kwargs)
        if self.is_current:
            Term.all_objects.filter(
                school_id=self.school_id, is_current=True
            ).exclude(pk=self.pk).update(is_current=False)


# =============================================================================
# GRADE
# =============================================================================

class Grade(SchoolOwnedModel):
    """A class level (Grade 1, Grade 2 ...) and where its students go next"""

    name = models.CharField("Grade Name", max_length=50)
    order = models.PositiveIntegerField("Order", default=0, help_text="For ordering grades")
    next_grade = models.ForeignKey(
        'self',
        verbose_name="Next Grade",
        on_delete=models.SET_NULL,
        related_name='previous_grades',
        null=True,
        blank=True,
        help_text="The grade students are promoted to"
    )
    is_alumni = models.BooleanField(
        "Is Alumni Grade",
        default=False,
        help_text="Holding grade for graduated students"
    )
    is_active = models.BooleanField("Is Active", default=True)

    class Meta:
        ordering = ['order', 'name']
        verbose_name = "Grade"
        verbose_name_plural = "Grades"
        constraints = [
            models.UniqueConstraint(fields=['school', 'name'], name='unique_grade_per_school'),
        ]

    def __str__(self):
        return self.name

    def clean(self):
        if self.next_grade_id and self.next_grade_id == self.pk:
            raise ValidationError("A grade cannot progress to itself.")
        if self.is_alumni and self.next_grade_id:
            raise ValidationError("The alumni grade has no next grade.")

    @property
    def is_final(self):
        """Students in a final grade graduate instead of moving up"""
        return bool(self.next_grade_id) and self.next_grade.is_alumni


# =============================================================================
# CLASS
# =============================================================================

class SchoolClass(SchoolOwnedModel):
    """A class (stream) of a grade in one academic year, e.g. "Grade 3A" 2025"""

    grade = models.ForeignKey(
        Grade,
        on_delete=models.PROTECT,
        related_name='classes'
    )
    academic_year = models.ForeignKey(
        AcademicYear,
        on_delete=models.PROTECT,
        related_name='classes'
    )
    name = models.CharField("Class Name", max_length=50)
    capacity = models.PositiveIntegerField("Capacity", null=True, blank=True)
    class_teacher = models.CharField("Class Teacher", max_length=150, blank=True)
    is_active = models.BooleanField("Is Active", default=True)

    class Meta:
        ordering = ['grade__order', 'name']
        verbose_name = "Class"
        verbose_name_plural = "Classes"
        constraints = [
            models.UniqueConstraint(
                fields=['school', 'academic_year', 'name'],
                name='unique_class_name_per_year'
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.academic_year.name})"

    @property
    def student_count(self):
        return self.students.filter(status='ACTIVE').count()

    @property
    def is_full(self):
        return self.capacity is not None and self.student_count >= self.capacity


def current_year_name():
    return str(timezone.localdate().year)
