# fees/models.py

"""
Fee management models.

- TermlyFeeStructure: what a grade pays for one term of an academic year
- Payment: money received from a student, recorded by a bursar
- Receipt: proof of payment with the balance before and after
- FeeCarryForward: balance moved from one academic year to the next on promotion
- StudentArrears: closing balance of a student for an academic year
"""

from django.db import models
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.utils import timezone
from decimal import Decimal
import logging

from utils.models import SchoolOwnedModel
from students.models import Student
from academics.models import AcademicYear, Term, Grade

logger = logging.getLogger(__name__)


# =============================================================================
# FEE STRUCTURE
# =============================================================================

class TermlyFeeStructure(SchoolOwnedModel):
    """Fees charged to every student of a grade for one term"""

    grade = models.ForeignKey(
        Grade,
        on_delete=models.CASCADE,
        related_name='fee_structures'
    )
    academic_year = models.ForeignKey(
        AcademicYear,
        on_delete=models.CASCADE,
        related_name='fee_structures'
    )
    term = models.ForeignKey(
        Term,
        on_delete=models.CASCADE,
        related_name='fee_structures'
    )

    breakdown = models.JSONField(
        "Fee Breakdown",
        default=dict,
        blank=True,
        help_text="Item name to amount, e.g. {\"tuition\": 15000}"
    )
    total_amount = models.DecimalField(
        "Total Amount",
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    due_date = models.DateField("Due Date", null=True, blank=True)
    is_active = models.BooleanField("Is Active", default=True, db_index=True)
    is_released = models.BooleanField(
        "Is Released",
        default=False,
        help_text="Released structures are visible in the parent portal"
    )

    class Meta:
        ordering = ['academic_year__name', 'term__order', 'grade__order']
        verbose_name = "Termly Fee Structure"
        verbose_name_plural = "Termly Fee Structures"
        constraints = [
            models.UniqueConstraint(
                fields=['school', 'grade', 'academic_year', 'term'],
                condition=models.Q(is_active=True),
                name='unique_active_fee_structure'
            ),
        ]

    def __str__(self):
        return f"{self.grade.name} - {self.term.name} {self.academic_year.name}"

    @staticmethod
    def breakdown_total(breakdown):
        return sum((Decimal(str(amount)) for amount in (breakdown or {}).values()), Decimal('0.00'))

    def clean(self):
        errors = {}
        for item, amount in (self.breakdown or {}).items():
            try:
                value = Decimal(str(amount))
            except ArithmeticError:
                value = None
            if value is None or not value.is_finite():
                errors['breakdown'] = f"Amount for '{item}' is not a number."
            elif value < 0:
                errors['breakdown'] = f"Amount for '{item}' cannot be negative."
        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        if self.breakdown:
            self.total_amount = self.breakdown_total(self.breakdown)
        if self.total_amount is None:
            self.total_amount = Decimal('0.00')
        super().save(*args, **kwargs)

    @property
    def year_name(self):
        return self.academic_year.name

    @property
    def term_name(self):
        return self.term.name


# =============================================================================
# PAYMENT
# =============================================================================

class Payment(SchoolOwnedModel):
    """Payment received from or on behalf of a student"""

    METHOD_CASH = 'CASH'
    METHOD_MPESA = 'MPESA'
    METHOD_BANK = 'BANK'
    METHOD_CHEQUE = 'CHEQUE'
    METHOD_CARD = 'CARD'

    PAYMENT_METHOD_CHOICES = [
        (METHOD_CASH, 'Cash'),
        (METHOD_MPESA, 'M-Pesa'),
        (METHOD_BANK, 'Bank Transfer'),
        (METHOD_CHEQUE, 'Cheque'),
        (METHOD_CARD, 'Card'),
    ]

    PAYMENT_STATUS_CHOICES = [
        ('COMPLETED', 'Completed'),
        ('CANCELLED', 'Cancelled'),
    ]

    # -------------------------------------------------------------------------
    # IDENTIFICATION
    # -------------------------------------------------------------------------

    student = models.ForeignKey(
        Student,
        verbose_name="Student",
        on_delete=models.CASCADE,
        related_name='payments'
    )
    academic_year = models.ForeignKey(
        AcademicYear,
        verbose_name="Academic Year",
        on_delete=models.PROTECT,
        related_name='payments'
    )
    term = models.ForeignKey(
        Term,
        verbose_name="Term",
        on_delete=models.PROTECT,
        related_name='payments'
    )

    # -------------------------------------------------------------------------
    # PAYMENT DETAILS
    # -------------------------------------------------------------------------

    amount = models.DecimalField(
        "Amount",
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    payment_method = models.CharField(
        "Payment Method",
        max_length=10,
        choices=PAYMENT_METHOD_CHOICES,
        default=METHOD_CASH
    )
    payment_date = models.DateTimeField("Payment Date", default=timezone.now, db_index=True)
    reference_number = models.CharField("Reference Number", max_length=100, blank=True, db_index=True)
    receipt_number = models.CharField("Receipt Number", max_length=50, db_index=True)
    description = models.CharField("Description", max_length=255, blank=True)
    received_by = models.CharField(
        "Received By",
        max_length=150,
        help_text="Name of the bursar who received the money"
    )
    status = models.CharField(
        "Payment Status",
        max_length=12,
        choices=PAYMENT_STATUS_CHOICES,
        default='COMPLETED',
        db_index=True
    )

    class Meta:
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        ordering = ['-payment_date', '-created_at']
        constraints = [
            models.UniqueConstraint(fields=['school', 'receipt_number'], name='unique_receipt_number_per_school'),
        ]
        indexes = [
            models.Index(fields=['student', 'payment_date']),
            models.Index(fields=['academic_year', 'term']),
        ]

    def __str__(self):
        return f"{self.receipt_number} - {self.student.get_full_name()}"

    def clean(self):
        if self.amount is not None and self.amount <= 0:
            raise ValidationError({'amount': "Amount must be greater than zero."})


# =============================================================================
# RECEIPT
# =============================================================================

class Receipt(SchoolOwnedModel):
    """Proof of a single payment"""

    payment = models.OneToOneField(
        Payment,
        on_delete=models.CASCADE,
        related_name='receipt'
    )
    student = models.ForeignKey(
        Student,
        on_delete=models.CASCADE,
        related_name='receipts'
    )
    receipt_number = models.CharField("Receipt Number", max_length=50, db_index=True)
    amount = models.DecimalField("Amount", max_digits=12, decimal_places=2)
    payment_date = models.DateTimeField("Payment Date")
    balance_before = models.DecimalField("Balance Before", max_digits=12, decimal_places=2)
    balance_after = models.DecimalField("Balance After", max_digits=12, decimal_places=2)
    academic_year_name = models.CharField("Academic Year", max_length=20)
    term_name = models.CharField("Term", max_length=10)
    payment_method = models.CharField("Payment Method", max_length=10)
    reference_number = models.CharField("Reference Number", max_length=100, blank=True)
    received_by = models.CharField("Received By", max_length=150, blank=True)
    currency = models.CharField("Currency", max_length=3, default='KES')

    class Meta:
        ordering = ['-payment_date']
        verbose_name = "Receipt"
        verbose_name_plural = "Receipts"
        constraints = [
            models.UniqueConstraint(fields=['school', 'receipt_number'], name='unique_receipt_per_school'),
        ]

    def __str__(self):
        return self.receipt_number


# =============================================================================
# CARRY FORWARD & ARREARS
# =============================================================================

class FeeCarryForward(SchoolOwnedModel):
    """
    Balance moved from one academic year into the next when a student is
    promoted. Positive amounts are arrears, negative amounts are credit.
    Kept apart from payments so it never counts as money received.
    """

    student = models.ForeignKey(
        Student,
        on_delete=models.CASCADE,
        related_name='fee_carry_forwards'
    )
    from_academic_year = models.ForeignKey(
        AcademicYear,
        on_delete=models.PROTECT,
        related_name='carry_forwards_out'
    )
    to_academic_year = models.ForeignKey(
        AcademicYear,
        on_delete=models.PROTECT,
        related_name='carry_forwards_in'
    )
    amount = models.DecimalField("Amount", max_digits=12, decimal_places=2)
    reference = models.CharField("Reference", max_length=50)
    description = models.CharField("Description", max_length=255)
    carried_on = models.DateTimeField("Carried On", default=timezone.now)

    class Meta:
        ordering = ['-carried_on']
        verbose_name = "Fee Carry Forward"
        verbose_name_plural = "Fee Carry Forwards"
        constraints = [
            models.UniqueConstraint(
                fields=['student', 'from_academic_year', 'to_academic_year'],
                name='unique_carry_forward_per_transition'
            ),
        ]

    def __str__(self):
        return f"{self.reference} {self.student.admission_number}: {self.amount}"

    @property
    def is_credit(self):
        return self.amount < 0


class StudentArrears(SchoolOwnedModel):
    """Closing balance of a student for an academic year"""

    student = models.ForeignKey(
        Student,
        on_delete=models.CASCADE,
        related_name='arrears'
    )
    academic_year = models.ForeignKey(
        AcademicYear,
        on_delete=models.CASCADE,
        related_name='arrears'
    )
    arrear_amount = models.DecimalField("Arrear Amount", max_digits=12, decimal_places=2, default=Decimal('0.00'))
    is_carried_forward = models.BooleanField("Is Carried Forward", default=False)

    class Meta:
        verbose_name = "Student Arrears"
        verbose_name_plural = "Student Arrears"
        constraints = [
            models.UniqueConstraint(fields=['student', 'academic_year'], name='unique_arrears_per_year'),
        ]

    def __str__(self):
        return f"{self.student.admission_number} {self.academic_year.name}: {self.arrear_amount}"
