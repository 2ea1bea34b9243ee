# fees/forms.py

"""
Fee forms. Validate bursar payment and fee structure payloads before they
reach the services.
"""

from django import forms
from django.core.exceptions import ValidationError
import logging

from academics.models import Grade, normalize_term_name
from students.models import Student
from utils.forms import BootstrapFormMixin, MoneyField, validate_positive_amount

from .models import Payment

logger = logging.getLogger(__name__)


class TermChoiceMixin:
    """Accept 'Term 1', 'FIRST', '1' ... for the ``term`` field"""

    def clean_term(self):
        term = self.cleaned_data.get('term')
        if not term:
            return term
        return normalize_term_name(term)


# =============================================================================
# PAYMENT FORM
# =============================================================================

class PaymentForm(TermChoiceMixin, BootstrapFormMixin, forms.Form):
    """Manual payment recorded by a bursar"""

    student_id = forms.UUIDField(label="Student")
    amount = MoneyField(label="Amount", validators=[validate_positive_amount])
    academic_year = forms.CharField(label="Academic Year", max_length=20)
    term = forms.CharField(label="Term", max_length=10)
    payment_method = forms.CharField(label="Payment Method", max_length=10, required=False)
    received_by = forms.CharField(label="Received By", max_length=150, required=False)
    description = forms.CharField(label="Description", max_length=255, required=False)
    reference_number = forms.CharField(label="Reference Number", max_length=100, required=False)

    def __init__(self, *args, school=None, **kwargs):
        self.school = school
        super().__init__(*args, **kwargs)

    def clean_student_id(self):
        student_id = self.cleaned_data['student_id']
        student = Student.all_objects.filter(school=self.school, pk=student_id).select_related(
            'current_class', 'current_class__grade'
        ).first()
        if student is None:
            raise ValidationError("Student not found.")
        self.cleaned_data['student'] = student
        return student_id

    def clean_payment_method(self):
        method = (self.cleaned_data.get('payment_method') or Payment.METHOD_CASH).strip().upper()
        if method not in dict(Payment.PAYMENT_METHOD_CHOICES):
            raise ValidationError(f"Invalid payment method: {method}")
        return method


# =============================================================================
# FEE STRUCTURE FORM
# =============================================================================

class FeeStructureForm(TermChoiceMixin, BootstrapFormMixin, forms.Form):
    grade_id = forms.UUIDField(label="Grade", required=False)
    grade = forms.CharField(label="Grade Name", max_length=50, required=False)
    academic_year = forms.CharField(label="Academic Year", max_length=20)
    term = forms.CharField(label="Term", max_length=10)
    breakdown = forms.JSONField(label="Breakdown", required=False)
    total_amount = MoneyField(label="Total Amount", required=False)
    due_date = forms.DateField(label="Due Date", required=False)
    is_released = forms.BooleanField(label="Released", required=False)

    def __init__(self, *args, school=None, **kwargs):
        self.school = school
        super().__init__(*args, **kwargs)

    def clean_breakdown(self):
        breakdown = self.cleaned_data.get('breakdown')
        if breakdown in (None, ''):
            return {}
        if not isinstance(breakdown, dict):
            raise ValidationError("Breakdown must map fee items to amounts.")
        return breakdown

    def clean(self):
        cleaned_data = super().clean()

        grades = Grade.all_objects.filter(school=self.school)
        grade = None
        if cleaned_data.get('grade_id'):
            grade = grades.filter(pk=cleaned_data['grade_id']).first()
        elif cleaned_data.get('grade'):
            grade = grades.filter(name__iexact=cleaned_data['grade']).first()

        if grade is None:
            raise ValidationError("Select a valid grade.")
        cleaned_data['grade_obj'] = grade

        if not cleaned_data.get('breakdown') and cleaned_data.get('total_amount') is None:
            raise ValidationError("Provide a fee breakdown or a total amount.")

        return cleaned_data


class FeeStructureImportForm(BootstrapFormMixin, forms.Form):
    file = forms.FileField(label="Workbook")

    def clean_file(self):
        upload = self.cleaned_data['file']
        if not upload.name.lower().endswith(('.xlsx', '.xlsm')):
            raise ValidationError("Upload an .xlsx workbook.")
        return upload
