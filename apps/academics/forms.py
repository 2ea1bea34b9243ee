# academics/forms.py

"""
Academic structure forms. Used to validate JSON payloads of the academics
endpoints; the school is passed in so choices stay inside one tenant.
"""

from django import forms
from django.core.exceptions import ValidationError
import logging

from utils.forms import BootstrapFormMixin
from .models import AcademicYear, Grade, SchoolClass
from .services import MIN_YEAR, MAX_YEAR

logger = logging.getLogger(__name__)


# =============================================================================
# ACADEMIC YEAR FORM
# =============================================================================

class AcademicYearForm(BootstrapFormMixin, forms.Form):
    name = forms.CharField(label="Year", max_length=20)
    make_current = forms.BooleanField(label="Make Current", required=False)

    def __init__(self, *args, school=None, **kwargs):
        self.school = school
        super().__init__(*args, **kwargs)

    def clean_name(self):
        name = self.cleaned_data['name'].strip()
        if not (len(name) >= 4 and name[:4].isdigit()):
            raise ValidationError("Year must start with a four digit year, e.g. 2025.")
        if not MIN_YEAR <= int(name[:4]) <= MAX_YEAR:
            raise ValidationError(f"Year must be between {MIN_YEAR} and {MAX_YEAR}.")
        return name


# =============================================================================
# CLASS FORM
# =============================================================================

class SchoolClassForm(BootstrapFormMixin, forms.Form):
    grade = forms.ModelChoiceField(queryset=Grade.all_objects.none(), label="Grade")
    academic_year = forms.ModelChoiceField(queryset=AcademicYear.all_objects.none(), label="Academic Year")
    name = forms.CharField(label="Class Name", max_length=50, required=False)
    capacity = forms.IntegerField(label="Capacity", min_value=1, required=False)
    class_teacher = forms.CharField(label="Class Teacher", max_length=150, required=False)

    def __init__(self, *args, school=None, **kwargs):
        self.school = school
        super().__init__(*args, **kwargs)
        self.fields['grade'].queryset = Grade.all_objects.filter(school=school, is_active=True)
        self.fields['academic_year'].queryset = AcademicYear.all_objects.filter(school=school)

    def clean(self):
        cleaned_data = super().clean()
        grade = cleaned_data.get('grade')
        academic_year = cleaned_data.get('academic_year')

        if grade and grade.is_alumni:
            raise ValidationError("Classes cannot be created for the alumni grade here.")

        name = cleaned_data.get('name') or (grade.name if grade else '')
        cleaned_data['name'] = name

        if grade and academic_year and SchoolClass.all_objects.filter(
            school=self.school, academic_year=academic_year, name=name
        ).exists():
            raise ValidationError(f"Class '{name}' already exists for {academic_year.name}.")

        return cleaned_data
