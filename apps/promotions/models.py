# promotions/models.py

"""
Promotion records.

- PromotionCriteria: thresholds a student must meet to be promoted in bulk
- PromotionLog: one row per student moved (or graduated) by a promotion run
- PromotionExclusion: students held back from a run, with the reason
"""

from django.db import models
from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from decimal import Decimal
import logging

from utils.models import SchoolOwnedModel

logger = logging.getLogger(__name__)


# =============================================================================
# PROMOTION CRITERIA
# =============================================================================

class PromotionCriteria(SchoolOwnedModel):
    """Eligibility thresholds for bulk promotion"""

    TYPE_BULK = 'bulk'
    TYPE_INDIVIDUAL = 'individual'

    PROMOTION_TYPE_CHOICES = (
        (TYPE_BULK, 'Bulk'),
        (TYPE_INDIVIDUAL, 'Individual'),
    )

    name = models.CharField("Name", max_length=100)
    description = models.TextField("Description", blank=True)
    min_grade = models.DecimalField(
        "Minimum Average Grade (%)",
        max_digits=5,
        decimal_places=2,
        default=Decimal('50.00'),
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('100'))]
    )
    max_fee_balance = models.DecimalField(
        "Maximum Fee Balance",
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0'))]
    )
    max_disciplinary_cases = models.PositiveIntegerField("Maximum Disciplinary Cases", default=0)
    promotion_type = models.CharField(
        "Promotion Type",
        max_length=20,
        choices=PROMOTION_TYPE_CHOICES,
        default=TYPE_BULK
    )
    is_active = models.BooleanField("Is Active", default=True)

    class Meta:
        ordering = ['-is_active', 'name']
        verbose_name = "Promotion Criteria"
        verbose_name_plural = "Promotion Criteria"

    def __str__(self):
        return f"{self.name} (min {self.min_grade}%, max balance {self.max_fee_balance})"


# =============================================================================
# PROMOTION LOG
# =============================================================================

class PromotionLog(SchoolOwnedModel):
    """Audit row for one student in a promotion run"""

    student = models.ForeignKey(
        'students.Student',
        on_delete=models.CASCADE,
        related_name='promotion_logs'
    )
    from_class = models.ForeignKey(
        'academics.SchoolClass',
        on_delete=models.SET_NULL,
        null=True,
        related_name='promotions_out'
    )
    to_class = models.ForeignKey(
        'academics.SchoolClass',
        on_delete=models.SET_NULL,
        null=True,
        related_name='promotions_in'
    )
    from_grade = models.ForeignKey(
        'academics.Grade',
        on_delete=models.SET_NULL,
        null=True,
        related_name='promotions_out'
    )
    to_grade = models.ForeignKey(
        'academics.Grade',
        on_delete=models.SET_NULL,
        null=True,
        related_name='promotions_in'
    )
    from_academic_year = models.ForeignKey(
        'academics.AcademicYear',
        on_delete=models.PROTECT,
        related_name='promotions_out'
    )
    to_academic_year = models.ForeignKey(
        'academics.AcademicYear',
        on_delete=models.PROTECT,
        related_name='promotions_in'
    )
    promoted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    promotion_type = models.CharField(
        "Promotion Type",
        max_length=20,
        choices=PromotionCriteria.PROMOTION_TYPE_CHOICES,
        default=PromotionCriteria.TYPE_BULK
    )
    is_graduation = models.BooleanField("Is Graduation", default=False)
    criteria_results = models.JSONField("Criteria Results", default=dict, blank=True)
    average_grade = models.DecimalField("Average Grade", max_digits=5, decimal_places=2, null=True, blank=True)
    outstanding_balance = models.DecimalField(
        "Outstanding Balance",
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00')
    )
    disciplinary_cases = models.PositiveIntegerField("Disciplinary Cases", default=0)
    notes = models.TextField("Notes", blank=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = "Promotion Log"
        verbose_name_plural = "Promotion Logs"
        indexes = [
            models.Index(fields=['student', 'from_academic_year']),
        ]

    def __str__(self):
        destination = self.to_class.name if self.to_class else 'N/A'
        return f"{self.student} -> {destination} ({self.to_academic_year})"


# =============================================================================
# PROMOTION EXCLUSION
# =============================================================================

class PromotionExclusion(SchoolOwnedModel):
    """A student held back from promotion for an academic year"""

    student = models.ForeignKey(
        'students.Student',
        on_delete=models.CASCADE,
        related_name='promotion_exclusions'
    )
    academic_year = models.ForeignKey(
        'academics.AcademicYear',
        on_delete=models.PROTECT,
        related_name='promotion_exclusions'
    )
    reason = models.CharField("Reason", max_length=255)
    notes = models.TextField("Notes", blank=True)
    excluded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    class Meta:
        ordering = ['-created_at']
        verbose_name = "Promotion Exclusion"
        verbose_name_plural = "Promotion Exclusions"

    def __str__(self):
        return f"{self.student} excluded in {self.academic_year}: {self.reason}"
