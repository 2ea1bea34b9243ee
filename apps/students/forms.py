# students/forms.py

"""
Student and parent intake forms.

Validate the JSON payloads of the intake endpoints as well as bulk and
workbook rows. The school is passed in so class and parent lookups stay
inside one tenant. With ``instance`` given every field becomes optional and
only the submitted keys are applied (partial update).
"""

from django import forms
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db.models import Q
from django.utils import timezone
from decimal import Decimal
import logging

from accounts.models import phone_validator
from academics.models import SchoolClass, normalize_term_name
from utils.forms import BootstrapFormMixin

from .models import Parent, Student

User = get_user_model()

logger = logging.getLogger(__name__)

GENDER_ALIASES = {
    'M': 'M', 'MALE': 'M', 'BOY': 'M',
    'F': 'F', 'FEMALE': 'F', 'GIRL': 'F',
}


def split_full_name(name):
    """
    Split a full name into (first, middle, last).

    Examples:
        "Amina Otieno"          -> ("Amina", "", "Otieno")
        "Amina Wanjiku Otieno"  -> ("Amina", "Wanjiku", "Otieno")
    """
    parts = (name or '').split()
    if not parts:
        return '', '', ''
    if len(parts) == 1:
        return parts[0], '', ''
    return parts[0], ' '.join(parts[1:-1]), parts[-1]


class PartialUpdateMixin:
    """Make every field optional when editing an existing record"""

    def __init__(self, *args, instance=None, **kwargs):
        self.instance = instance
        super().__init__(*args, **kwargs)
        if instance is not None:
            for field in self.fields.values():
                field.required = False

    @property
    def is_update(self):
        return self.instance is not None

    @property
    def submitted_fields(self):
        return [name for name in self.fields if name in self.data]


# =============================================================================
# STUDENT FORM
# =============================================================================

class StudentForm(PartialUpdateMixin, BootstrapFormMixin, forms.Form):
    """
    Admission or edit of a student.

    The class is given by ``class_id`` or ``class_name`` (a class of the
    current year, or the first class of a grade with that name). The parent
    is an existing ``parent_id`` or is matched/created from the parent
    phone and email.
    """

    # Names ("name" is split when the parts are not given)
    name = forms.CharField(label="Full Name", max_length=150, required=False)
    first_name = forms.CharField(label="First Name", max_length=50, required=False)
    middle_name = forms.CharField(label="Middle Name", max_length=50, required=False)
    last_name = forms.CharField(label="Last Name", max_length=50, required=False)

    admission_number = forms.CharField(label="Admission Number", max_length=20, required=False)
    admission_date = forms.DateField(label="Admission Date", required=False)
    date_of_birth = forms.DateField(label="Date of Birth", required=False)
    gender = forms.CharField(label="Gender", max_length=10, required=False)
    status = forms.CharField(label="Status", max_length=20, required=False)

    # Class
    class_id = forms.UUIDField(label="Class", required=False)
    class_name = forms.CharField(label="Class", max_length=50, required=False)

    # Parent
    parent_id = forms.UUIDField(label="Parent", required=False)
    parent_name = forms.CharField(label="Parent Name", max_length=100, required=False)
    parent_phone = forms.CharField(label="Parent Phone", max_length=20, required=False, validators=[phone_validator])
    parent_email = forms.EmailField(label="Parent Email", required=False)

    # Portal login
    email = forms.EmailField(label="Student Email", required=False)
    create_login = forms.NullBooleanField(label="Create Portal Login", required=False)

    # Promotion inputs
    average_score = forms.DecimalField(
        label="Average Score",
        min_value=Decimal('0'),
        max_value=Decimal('100'),
        max_digits=5,
        decimal_places=2,
        required=False
    )
    disciplinary_cases = forms.IntegerField(label="Disciplinary Cases", min_value=0, required=False)
    joined_academic_year = forms.CharField(label="Joined Academic Year", max_length=20, required=False)
    joined_term = forms.CharField(label="Joined Term", max_length=10, required=False)

    def __init__(self, *args, school=None, **kwargs):
        self.school = school
        super().__init__(*args, **kwargs)

    # -------------------------------------------------------------------------
    # FIELD CLEANING
    # -------------------------------------------------------------------------

    def clean_gender(self):
        gender = (self.cleaned_data.get('gender') or '').strip().upper()
        if not gender:
            return ''
        if gender not in GENDER_ALIASES:
            raise ValidationError("Gender must be M or F.")
        return GENDER_ALIASES[gender]

    def clean_status(self):
        status = (self.cleaned_data.get('status') or '').strip().upper()
        if status and status not in dict(Student.STATUS_CHOICES):
            raise ValidationError(f"Invalid status: {status}")
        return status

    def clean_date_of_birth(self):
        dob = self.cleaned_data.get('date_of_birth')
        if dob and dob > timezone.localdate():
            raise ValidationError("Date of birth cannot be in the future.")
        return dob

    def clean_admission_date(self):
        admission_date = self.cleaned_data.get('admission_date')
        if admission_date and admission_date > timezone.localdate():
            raise ValidationError("Admission date cannot be in the future.")
        return admission_date

    def clean_admission_number(self):
        admission_number = (self.cleaned_data.get('admission_number') or '').strip().upper()
        if not admission_number:
            return ''

        existing = Student.all_objects.filter(school=self.school, admission_number=admission_number)
        if self.instance is not None:
            existing = existing.exclude(pk=self.instance.pk)
        if existing.exists():
            raise ValidationError(f"Admission number {admission_number} is already in use.")
        return admission_number

    def clean_email(self):
        email = (self.cleaned_data.get('email') or '').strip().lower()
        if not email:
            return ''

        users = User.objects.filter(Q(username__iexact=email) | Q(email__iexact=email))
        if self.instance is not None and self.instance.user_id:
            users = users.exclude(pk=self.instance.user_id)
        if users.exists():
            raise ValidationError(f"A login with email {email} already exists.")
        return email

    def clean_joined_term(self):
        term = self.cleaned_data.get('joined_term')
        if not term:
            return ''
        return normalize_term_name(term)

    # -------------------------------------------------------------------------
    # CROSS-FIELD
    # -------------------------------------------------------------------------

    def clean(self):
        cleaned_data = super().clean()

        first, middle, last = split_full_name(cleaned_data.get('name'))
        for field, value in (('first_name', first), ('middle_name', middle), ('last_name', last)):
            if value and not cleaned_data.get(field):
                cleaned_data[field] = value

        if not self.is_update:
            if not cleaned_data.get('first_name'):
                self.add_error('first_name', "First name is required.")
            if not cleaned_data.get('last_name'):
                self.add_error('last_name', "Last name is required.")

        cleaned_data['school_class'] = self._resolve_class(cleaned_data)
        cleaned_data['parent'] = self._resolve_parent(cleaned_data)
        return cleaned_data

    def _resolve_class(self, cleaned_data):
        class_id = cleaned_data.get('class_id')
        class_name = (cleaned_data.get('class_name') or '').strip()
        classes = SchoolClass.all_objects.filter(school=self.school, is_active=True).select_related(
            'grade', 'academic_year'
        )

        school_class = None
        if class_id:
            school_class = classes.filter(pk=class_id).first()
            if school_class is None:
                self.add_error('class_id', "Class not found.")
                return None
        elif class_name:
            school_class = (
                classes.filter(name__iexact=class_name).order_by('-academic_year__is_current', '-academic_year__start_date').first()
                or classes.filter(grade__name__iexact=class_name).order_by('-academic_year__is_current', '-academic_year__start_date', 'name').first()
            )
            if school_class is None:
                self.add_error('class_name', f"Class '{class_name}' not found.")
                return None
        elif not self.is_update:
            self.add_error('class_id', "A class is required.")
            return None

        if school_class is not None and school_class.grade.is_alumni:
            self.add_error('class_id', "Students cannot be admitted to the alumni class.")
            return None
        return school_class

    def _resolve_parent(self, cleaned_data):
        parent_id = cleaned_data.get('parent_id')
        if not parent_id:
            return None

        parent = Parent.all_objects.filter(school=self.school, pk=parent_id).first()
        if parent is None:
            self.add_error('parent_id', "Parent not found.")
        return parent


# =============================================================================
# PARENT FORM
# =============================================================================

class ParentForm(PartialUpdateMixin, BootstrapFormMixin, forms.Form):
    """Parent or guardian; a phone number or an email is required on create"""

    name = forms.CharField(label="Full Name", max_length=150, required=False)
    first_name = forms.CharField(label="First Name", max_length=50, required=False)
    last_name = forms.CharField(label="Last Name", max_length=50, required=False)
    phone = forms.CharField(label="Phone", max_length=20, required=False, validators=[phone_validator])
    email = forms.EmailField(label="Email", required=False)
    address = forms.CharField(label="Address", required=False)
    create_login = forms.NullBooleanField(label="Create Portal Login", required=False)

    def __init__(self, *args, school=None, **kwargs):
        self.school = school
        super().__init__(*args, **kwargs)

    def _others(self):
        parents = Parent.all_objects.filter(school=self.school)
        if self.instance is not None:
            parents = parents.exclude(pk=self.instance.pk)
        return parents

    def clean_phone(self):
        phone = (self.cleaned_data.get('phone') or '').strip()
        if phone and self._others().filter(phone=phone).exists():
            raise ValidationError(f"A parent with phone {phone} already exists.")
        return phone

    def clean_email(self):
        email = (self.cleaned_data.get('email') or '').strip().lower()
        if email and self._others().filter(email__iexact=email).exists():
            raise ValidationError(f"A parent with email {email} already exists.")
        return email

    def clean(self):
        cleaned_data = super().clean()

        first, middle, last = split_full_name(cleaned_data.get('name'))
        if first and not cleaned_data.get('first_name'):
            cleaned_data['first_name'] = ' '.join(part for part in (first, middle) if part)
        if last and not cleaned_data.get('last_name'):
            cleaned_data['last_name'] = last

        if not self.is_update:
            if not cleaned_data.get('first_name'):
                self.add_error('first_name', "First name is required.")
            if not (cleaned_data.get('phone') or cleaned_data.get('email')) and not self.has_error('phone') \
                    and not self.has_error('email'):
                raise ValidationError("Provide a phone number or an email.")
        return cleaned_data


# =============================================================================
# IMPORT FORM
# =============================================================================

class StudentImportForm(forms.Form):
    file = forms.FileField(label="Workbook")

    def clean_file(self):
        upload = self.cleaned_data['file']
        if not upload.name.lower().endswith(('.xlsx', '.xlsm')):
            raise ValidationError("Upload an .xlsx workbook.")
        return upload
