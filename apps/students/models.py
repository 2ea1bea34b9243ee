# students/models.py

from django.db import models
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from django.utils import timezone
from django.contrib.auth import get_user_model
from decimal import Decimal
import logging

from utils.models import SchoolOwnedModel
from accounts.models import phone_validator

User = get_user_model()

logger = logging.getLogger(__name__)


# =============================================================================
# PARENT MODEL
# =============================================================================

class Parent(SchoolOwnedModel):
    """Parent or guardian; may hold a parent portal login"""

    user = models.OneToOneField(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='parent_record'
    )
    first_name = models.CharField("First Name", max_length=50)
    last_name = models.CharField("Last Name", max_length=50)
    phone = models.CharField("Phone", max_length=20, blank=True, validators=[phone_validator])
    email = models.EmailField("Email", blank=True)
    address = models.TextField("Address", blank=True)

    class Meta:
        ordering = ['last_name', 'first_name']
        verbose_name = "Parent"
        verbose_name_plural = "Parents"

    def __str__(self):
        return self.get_full_name()

    def get_full_name(self):
        return f"{self.first_name} {self.last_name}"

    @property
    def full_name(self):
        return self.get_full_name()


# =============================================================================
# STUDENT MODEL
# =============================================================================

class Student(SchoolOwnedModel):
    """Core model for student information"""

    # -------------------------------------------------------------------------
    # CHOICE FIELDS
    # -------------------------------------------------------------------------

    GENDER_CHOICES = (
        ('M', 'Male'),
        ('F', 'Female'),
    )

    STATUS_ACTIVE = 'ACTIVE'
    STATUS_GRADUATED = 'GRADUATED'
    STATUS_TRANSFERRED = 'TRANSFERRED'
    STATUS_WITHDRAWN = 'WITHDRAWN'

    STATUS_CHOICES = (
        (STATUS_ACTIVE, 'Active'),
        (STATUS_GRADUATED, 'Graduated'),
        (STATUS_TRANSFERRED, 'Transferred'),
        (STATUS_WITHDRAWN, 'Withdrawn'),
    )

    # -------------------------------------------------------------------------
    # IDENTIFICATION & BASIC INFORMATION
    # -------------------------------------------------------------------------

    user = models.OneToOneField(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='student_record'
    )
    admission_number = models.CharField(
        "Admission Number",
        max_length=20,
        blank=True,
        db_index=True
    )
    admission_date = models.DateField("Admission Date", default=timezone.localdate)

    first_name = models.CharField("First Name", max_length=50)
    middle_name = models.CharField("Middle Name", max_length=50, blank=True)
    last_name = models.CharField("Last Name", max_length=50)
    date_of_birth = models.DateField("Date of Birth", null=True, blank=True)
    gender = models.CharField("Gender", max_length=1, choices=GENDER_CHOICES, blank=True)

    parent = models.ForeignKey(
        Parent,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='children'
    )

    # -------------------------------------------------------------------------
    # ACADEMIC INFORMATION
    # -------------------------------------------------------------------------

    current_class = models.ForeignKey(
        'academics.SchoolClass',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='students'
    )
    joined_academic_year = models.CharField(
        "Joined Academic Year",
        max_length=20,
        blank=True,
        help_text="Academic year the student joined; earlier fees are ignored"
    )
    joined_term = models.CharField(
        "Joined Term",
        max_length=10,
        blank=True,
        help_text="Term the student joined in"
    )
    average_score = models.DecimalField(
        "Average Score",
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('100'))],
        help_text="Average exam score (%) used by promotions"
    )
    disciplinary_cases = models.PositiveIntegerField("Disciplinary Cases", default=0)

    # -------------------------------------------------------------------------
    # STATUS & TRACKING
    # -------------------------------------------------------------------------

    status = models.CharField(
        "Status",
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_ACTIVE,
        db_index=True
    )
    graduation_date = models.DateField("Graduation Date", null=True, blank=True)

    class Meta:
        ordering = ['admission_number']
        verbose_name = "Student"
        verbose_name_plural = "Students"
        constraints = [
            models.UniqueConstraint(
                fields=['school', 'admission_number'],
                name='unique_admission_number_per_school'
            ),
        ]
        indexes = [
            models.Index(fields=['first_name', 'last_name']),
            models.Index(fields=['status']),
        ]

    def __str__(self):
        return f"{self.get_full_name()} ({self.admission_number})"

    @property
    def full_name(self):
        return self.get_full_name()

    @property
    def is_active(self):
        return self.status == self.STATUS_ACTIVE

    @property
    def grade(self):
        return self.current_class.grade if self.current_class_id else None

    def get_full_name(self):
        """Get student's full name"""
        if self.middle_name:
            return f"{self.first_name} {self.middle_name} {self.last_name}"
        return f"{self.first_name} {self.last_name}"

    def clean(self):
        super().clean()
        errors = {}

        if self.date_of_birth and self.date_of_birth > timezone.localdate():
            errors['date_of_birth'] = "Date of birth cannot be in the future."

        if self.graduation_date and self.admission_date and self.graduation_date < self.admission_date:
            errors['graduation_date'] = "Graduation date cannot be before admission date"

        if errors:
            raise ValidationError(errors)


# =============================================================================
# ALUMNI MODEL
# =============================================================================

class Alumni(SchoolOwnedModel):
    """Graduated student, created when a final-grade student is promoted"""

    student = models.OneToOneField(
        Student,
        on_delete=models.CASCADE,
        related_name='alumni_record'
    )
    graduation_year = models.CharField("Graduation Year", max_length=20, db_index=True)
    final_class = models.CharField("Final Class", max_length=50, blank=True)
    final_grade = models.CharField(
        "Final Grade",
        max_length=2,
        blank=True,
        help_text="Letter grade at graduation (A-E)"
    )
    outstanding_balance = models.DecimalField(
        "Outstanding Balance",
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Fee balance carried at graduation"
    )
    achievements = models.TextField("Achievements", blank=True)
    current_occupation = models.CharField("Current Occupation", max_length=150, blank=True)
    contact_email = models.EmailField("Contact Email", blank=True)
    contact_phone = models.CharField("Contact Phone", max_length=20, blank=True)

    class Meta:
        ordering = ['-graduation_year', 'student__last_name']
        verbose_name = "Alumnus"
        verbose_name_plural = "Alumni"

    def __str__(self):
        return f"{self.student.get_full_name()} ({self.graduation_year})"
