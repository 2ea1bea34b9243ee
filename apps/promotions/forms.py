# promotions/forms.py

"""
Promotion forms.

- PromotionCriteriaForm / PromotionExecuteForm validate JSON payloads
- PromotionSelectForm, PromotionReviewForm and PromotionConfirmForm are
  the steps of the promotion wizard (select -> review -> confirm)
"""

from django import forms
from django.core.exceptions import ValidationError
from decimal import Decimal
import uuid
import logging

from academics.models import AcademicYear
from students.models import Student
from utils.forms import BootstrapFormMixin
from utils.utils import snake_case_keys

logger = logging.getLogger(__name__)


def _clean_uuid_list(value, label="student_ids"):
    if not isinstance(value, list) or not value:
        raise ValidationError(f"{label} must be a non-empty list.")
    cleaned = []
    for item in value:
        try:
            cleaned.append(str(uuid.UUID(str(item))))
        except ValueError:
            raise ValidationError(f"Invalid student id: {item}")
    return cleaned


# =============================================================================
# JSON PAYLOAD FORMS
# =============================================================================

class PromotionCriteriaForm(BootstrapFormMixin, forms.Form):
    name = forms.CharField(label="Name", max_length=100, required=False)
    description = forms.CharField(label="Description", required=False)
    min_grade = forms.DecimalField(
        label="Minimum Average Grade (%)",
        min_value=Decimal('0'),
        max_value=Decimal('100'),
        decimal_places=2,
        required=False
    )
    max_fee_balance = forms.DecimalField(
        label="Maximum Fee Balance",
        min_value=Decimal('0'),
        decimal_places=2,
        required=False
    )
    max_disciplinary_cases = forms.IntegerField(label="Maximum Disciplinary Cases", min_value=0, required=False)


class PromotionExecuteForm(forms.Form):
    """
    Payload of ``action=execute`` / ``action=preview``:

        {"student_ids": [...], "apply_criteria": true,
         "exclusions": [{"student_id": ..., "reason": ...}], "notes": ""}
    """

    student_ids = forms.JSONField()
    apply_criteria = forms.BooleanField(required=False)
    exclusions = forms.JSONField(required=False)
    notes = forms.CharField(required=False)

    def clean_student_ids(self):
        return _clean_uuid_list(self.cleaned_data.get('student_ids'))

    def clean_exclusions(self):
        exclusions = self.cleaned_data.get('exclusions') or []
        if isinstance(exclusions, dict):
            exclusions = [{'student_id': key, 'reason': value} for key, value in exclusions.items()]
        if not isinstance(exclusions, list):
            raise ValidationError("exclusions must be a list.")

        cleaned = []
        for item in exclusions:
            if not isinstance(item, dict):
                raise ValidationError("Each exclusion needs a student_id.")
            item = snake_case_keys(item)
            if not item.get('student_id'):
                raise ValidationError("Each exclusion needs a student_id.")
            item['student_id'] = _clean_uuid_list([item['student_id']])[0]
            if item.get('reason') not in (None, ''):
                item['reason'] = str(item['reason'])
            if item.get('notes') not in (None, ''):
                item['notes'] = str(item['notes'])
            cleaned.append(item)
        return cleaned


# =============================================================================
# WIZARD FORMS
# =============================================================================

class PromotionSelectForm(BootstrapFormMixin, forms.Form):
    """Step 1: pick the academic year and the students to promote"""

    academic_year = forms.ModelChoiceField(
        queryset=AcademicYear.all_objects.none(),
        label="Promote From Academic Year"
    )
    students = forms.ModelMultipleChoiceField(
        queryset=Student.all_objects.none(),
        widget=forms.CheckboxSelectMultiple,
        label="Students"
    )
    apply_criteria = forms.BooleanField(
        label="Apply promotion criteria",
        required=False,
        initial=True,
        help_text="Students failing the criteria are excluded automatically"
    )

    def __init__(self, *args, school=None, **kwargs):
        self.school = school
        super().__init__(*args, **kwargs)
        self.fields['academic_year'].queryset = AcademicYear.all_objects.filter(school=school)
        self.fields['students'].queryset = Student.all_objects.filter(
            school=school,
            status=Student.STATUS_ACTIVE,
            current_class__isnull=False,
            current_class__grade__is_alumni=False,
        ).select_related('current_class')

    def clean(self):
        cleaned_data = super().clean()
        academic_year = cleaned_data.get('academic_year')
        students = cleaned_data.get('students')

        if academic_year and students:
            outside = [s for s in students if s.current_class.academic_year_id != academic_year.pk]
            if outside:
                raise ValidationError(
                    f"{len(outside)} selected students are not in {academic_year.name} classes."
                )
        return cleaned_data


class PromotionReviewForm(BootstrapFormMixin, forms.Form):
    """Step 2: hold back individual students"""

    excluded_students = forms.ModelMultipleChoiceField(
        queryset=Student.all_objects.none(),
        widget=forms.CheckboxSelectMultiple,
        label="Exclude From Promotion",
        required=False
    )
    exclusion_reason = forms.CharField(
        label="Exclusion Reason",
        max_length=255,
        required=False,
        initial="Excluded by administrator"
    )

    def __init__(self, *args, school=None, selected_ids=None, **kwargs):
        self.school = school
        super().__init__(*args, **kwargs)
        self.fields['excluded_students'].queryset = Student.all_objects.filter(
            school=school, pk__in=selected_ids or []
        )

    def clean(self):
        cleaned_data = super().clean()
        if cleaned_data.get('excluded_students') and not cleaned_data.get('exclusion_reason'):
            raise ValidationError({'exclusion_reason': 'Give a reason for the excluded students.'})
        return cleaned_data


class PromotionConfirmForm(BootstrapFormMixin, forms.Form):
    """Step 3: final confirmation"""

    confirm_promotion = forms.BooleanField(
        required=True,
        label="I confirm the promotion of the selected students"
    )
    notes = forms.CharField(
        required=False,
        widget=forms.Textarea(attrs={'rows': 3}),
        help_text="Optional notes saved with each promotion record"
    )


# =============================================================================
# WIZARD CONFIGURATION
# =============================================================================

PROMOTION_WIZARD_FORMS = [
    ("select", PromotionSelectForm),
    ("review", PromotionReviewForm),
    ("confirm", PromotionConfirmForm),
]

PROMOTION_WIZARD_STEP_NAMES = {
    'select': 'Select Students',
    'review': 'Review & Exclusions',
    'confirm': 'Confirm Promotion',
}
