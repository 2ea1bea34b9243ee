# students/services.py

"""
Student register and alumni operations.

StudentService: listing, admission, edits, withdrawal, bulk and workbook intake
ParentService: parent records and their portal logins
AlumniService: alumni listing, statistics and year grouping
"""

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone
from collections import OrderedDict
import re
import logging

from accounts.models import UserProfile
from core.utils import get_setting
from utils.forms import get_form_errors_as_string
from utils.utils import snake_case_keys

from .forms import StudentForm, split_full_name
from .models import Student, Parent, Alumni

User = get_user_model()

logger = logging.getLogger(__name__)

OPTIONAL_STUDENT_FIELDS = (
    'middle_name', 'admission_number', 'admission_date', 'date_of_birth', 'gender', 'status',
    'average_score', 'disciplinary_cases', 'joined_academic_year', 'joined_term',
)
EDITABLE_STUDENT_FIELDS = ('first_name', 'last_name') + OPTIONAL_STUDENT_FIELDS
REQUIRED_STUDENT_FIELDS = (
    'first_name', 'last_name', 'admission_number', 'admission_date', 'status', 'disciplinary_cases',
)
NULLABLE_STUDENT_FIELDS = ('date_of_birth', 'average_score')


# =============================================================================
# PORTAL LOGINS
# =============================================================================

def portal_username(school, email='', phone='', fallback=''):
    """The email when known, otherwise '<school code>_<phone or fallback>'"""
    if email:
        return email.lower()
    key = re.sub(r'[^0-9A-Za-z]', '', phone or fallback).lower()
    return f"{school.code}_{key}"


def create_portal_login(school, role, username, email='', first_name='', last_name=''):
    """
    Parent or student login with the configured default password.

    Raises:
        ValidationError: the username is taken

    Returns:
        dict: user, username, password
    """
    if User.objects.filter(username__iexact=username).exists():
        raise ValidationError(f"A login named {username} already exists.")

    setting = 'DEFAULT_PARENT_PASSWORD' if role == UserProfile.ROLE_PARENT else 'DEFAULT_STUDENT_PASSWORD'
    password = get_setting(setting)

    user = User.objects.create_user(
        username=username,
        email=email or '',
        password=password,
        first_name=first_name[:150],
        last_name=last_name[:150],
    )
    UserProfile.objects.create(user=user, school=school, role=role)

    logger.info(f"Created {role.lower()} login {username} for {school.code}")
    return {'user': user, 'username': username, 'password': password}


# =============================================================================
# STUDENT SERVICE
# =============================================================================

class StudentService:

    @staticmethod
    def list_students(school, class_id=None, grade=None, status=None, search=None):
        """
        Students of ``school`` with optional filters.

        ``status`` defaults to ACTIVE; pass 'ALL' to include every status.
        """
        students = Student.all_objects.filter(school=school).select_related(
            'current_class', 'current_class__grade', 'current_class__academic_year', 'parent'
        )

        status = (status or Student.STATUS_ACTIVE).upper()
        if status != 'ALL':
            students = students.filter(status=status)

        if class_id:
            students = students.filter(current_class_id=class_id)

        if grade:
            students = students.filter(current_class__grade__name__iexact=grade)

        if search:
            students = students.filter(
                Q(first_name__icontains=search)
                | Q(last_name__icontains=search)
                | Q(middle_name__icontains=search)
                | Q(admission_number__icontains=search)
            )

        return students.order_by('current_class__grade__order', 'last_name', 'first_name')

    @staticmethod
    def get_student(school, student_id):
        return Student.all_objects.filter(school=school, pk=student_id).select_related(
            'current_class', 'current_class__grade', 'current_class__academic_year', 'parent'
        ).first()

    @staticmethod
    def children_of(parent):
        return Student.all_objects.filter(
            school_id=parent.school_id, parent=parent
        ).exclude(status=Student.STATUS_WITHDRAWN).select_related(
            'current_class', 'current_class__grade', 'current_class__academic_year'
        )

    @staticmethod
    @transaction.atomic
    def admit_student(school, first_name, last_name, school_class=None, parent=None, **extra):
        """Create a student in ``school_class``; the admission number is generated"""
        student = Student.all_objects.create(
            school=school,
            first_name=first_name,
            last_name=last_name,
            current_class=school_class,
            parent=parent,
            **extra
        )
        logger.info(f"Admitted {student.get_full_name()} ({student.admission_number}) to {school.code}")
        return student

    @staticmethod
    @transaction.atomic
    def create_student(school, data):
        """
        Admit a student from cleaned StudentForm data.

        The parent is the given ``parent`` or is matched/created from the
        parent phone and email. A student portal login is created unless
        ``create_login`` is False.

        Raises:
            ValidationError: a login name is already taken

        Returns:
            dict: student, parent, login, parent_login
        """
        parent = data.get('parent')
        parent_login = None
        if parent is None and (data.get('parent_phone') or data.get('parent_email')):
            parent, parent_login, _ = ParentService.resolve_parent(
                school,
                name=data.get('parent_name') or f"Parent {data['last_name']}",
                phone=data.get('parent_phone') or '',
                email=data.get('parent_email') or '',
            )

        extra = {
            field: data[field]
            for field in OPTIONAL_STUDENT_FIELDS
            if data.get(field) not in (None, '')
        }
        student = StudentService.admit_student(
            school,
            data['first_name'],
            data['last_name'],
            school_class=data.get('school_class'),
            parent=parent,
            **extra
        )

        login = None
        if data.get('create_login') is not False:
            login = create_portal_login(
                school,
                UserProfile.ROLE_STUDENT,
                portal_username(school, email=data.get('email'), fallback=student.admission_number),
                email=data.get('email') or '',
                first_name=student.first_name,
                last_name=student.last_name,
            )
            student.user = login['user']
            student.save()

        return {'student': student, 'parent': parent, 'login': login, 'parent_login': parent_login}

    @staticmethod
    @transaction.atomic
    def update_student(student, data, fields):
        """Apply the submitted ``fields`` of cleaned StudentForm data"""
        fields = set(fields)
        if 'name' in fields:
            fields.update(('first_name', 'middle_name', 'last_name'))

        for field in EDITABLE_STUDENT_FIELDS:
            if field not in fields:
                continue
            value = data.get(field)
            if value in (None, ''):
                if field in REQUIRED_STUDENT_FIELDS:
                    continue
                value = None if field in NULLABLE_STUDENT_FIELDS else ''
            setattr(student, field, value)

        if fields & {'class_id', 'class_name'} and data.get('school_class') is not None:
            student.current_class = data['school_class']
        if 'parent_id' in fields:
            student.parent = data.get('parent')

        student.save()

        user = student.user
        if user is not None:
            user.first_name = student.first_name
            user.last_name = student.last_name
            if 'email' in fields and data.get('email'):
                user.email = data['email']
            user.is_active = student.is_active
            user.save()

        logger.info(f"Updated student {student.admission_number}: {', '.join(sorted(fields))}")
        return student

    @staticmethod
    @transaction.atomic
    def withdraw_student(student, status=Student.STATUS_WITHDRAWN):
        """Take a student off the register; payments and statements are kept"""
        student.status = status
        student.save()

        if student.user is not None:
            student.user.is_active = False
            student.user.save(update_fields=['is_active'])

        logger.info(f"Student {student.admission_number} marked {status.lower()}")
        return student

    @staticmethod
    def bulk_create(school, rows):
        """
        Admit many students; every row is validated and saved on its own.

        ``rows`` yields (row_number, data) with camelCase or snake_case keys.

        Returns:
            dict: created, students, errors (list of {'row', 'error'})
        """
        results = {'created': 0, 'students': [], 'errors': []}

        for row_number, data in rows:
            if not isinstance(data, dict):
                results['errors'].append({'row': row_number, 'error': 'Each row must be an object.'})
                continue

            form = StudentForm(snake_case_keys(data), school=school)
            if not form.is_valid():
                results['errors'].append({'row': row_number, 'error': get_form_errors_as_string(form)})
                continue

            try:
                created = StudentService.create_student(school, form.cleaned_data)
            except ValidationError as e:
                results['errors'].append({'row': row_number, 'error': '; '.join(e.messages)})
                continue

            student = created['student']
            results['created'] += 1
            results['students'].append({
                'row': row_number,
                'id': str(student.pk),
                'admission_number': student.admission_number,
                'name': student.get_full_name(),
                'parent': created['parent'].get_full_name() if created['parent'] else None,
                'login': created['login']['username'] if created['login'] else None,
            })

        logger.info(
            f"Student intake for {school.code}: {results['created']} created, "
            f"{len(results['errors'])} errors"
        )
        return results

    @staticmethod
    def import_from_workbook(school, file):
        """Admit the students listed in an uploaded workbook (see excel.py)"""
        from .excel import read_student_rows
        return StudentService.bulk_create(school, read_student_rows(file))


# =============================================================================
# PARENT SERVICE
# =============================================================================

class ParentService:

    @staticmethod
    def list_parents(school, search=None):
        parents = Parent.all_objects.filter(school=school).annotate(children_count=Count('children'))

        if search:
            parents = parents.filter(
                Q(first_name__icontains=search)
                | Q(last_name__icontains=search)
                | Q(phone__icontains=search)
                | Q(email__icontains=search)
            )

        return parents.order_by('last_name', 'first_name')

    @staticmethod
    def get_parent(school, parent_id):
        return Parent.all_objects.filter(school=school, pk=parent_id).first()

    @staticmethod
    def find_parent(school, phone='', email=''):
        """Parent with this phone, else with this email"""
        parents = Parent.all_objects.filter(school=school)
        if phone:
            parent = parents.filter(phone=phone).first()
            if parent is not None:
                return parent
        if email:
            return parents.filter(email__iexact=email).first()
        return None

    @staticmethod
    @transaction.atomic
    def create_parent(school, first_name, last_name='', phone='', email='', address='', create_login=True):
        """
        Returns:
            tuple: (parent, login) where login is None without a portal login
        """
        email = (email or '').lower()
        parent = Parent.all_objects.create(
            school=school,
            first_name=first_name,
            last_name=last_name or '',
            phone=phone or '',
            email=email,
            address=address or '',
        )

        login = None
        if create_login:
            login = create_portal_login(
                school,
                UserProfile.ROLE_PARENT,
                portal_username(school, email=email, phone=phone),
                email=email,
                first_name=parent.first_name,
                last_name=parent.last_name,
            )
            parent.user = login['user']
            parent.save()

        logger.info(f"Added parent {parent.get_full_name()} to {school.code}")
        return parent, login

    @staticmethod
    def resolve_parent(school, name='', phone='', email=''):
        """
        Parent matched by phone or email, or a new one with a portal login.

        Returns:
            tuple: (parent, login, created)
        """
        parent = ParentService.find_parent(school, phone=phone, email=email)
        if parent is not None:
            return parent, None, False

        first, middle, last = split_full_name(name)
        first_name = ' '.join(part for part in (first, middle) if part) or 'Parent'
        parent, login = ParentService.create_parent(school, first_name, last, phone=phone, email=email)
        return parent, login, True

    @staticmethod
    @transaction.atomic
    def update_parent(parent, **fields):
        for name, value in fields.items():
            setattr(parent, name, value if value is not None else '')
        parent.save()

        user = parent.user
        if user is not None:
            user.first_name = parent.first_name
            user.last_name = parent.last_name
            if parent.email:
                user.email = parent.email
            user.save()

        logger.info(f"Updated parent {parent.get_full_name()} ({', '.join(sorted(fields))})")
        return parent


def serialize_parent(parent, with_children=False):
    data = {
        'id': str(parent.pk),
        'first_name': parent.first_name,
        'last_name': parent.last_name,
        'name': parent.get_full_name(),
        'phone': parent.phone,
        'email': parent.email,
        'address': parent.address,
        'has_login': parent.user_id is not None,
    }
    if hasattr(parent, 'children_count'):
        data['children_count'] = parent.children_count
    if with_children:
        data['children'] = [
            serialize_student(student)
            for student in StudentService.children_of(parent)
        ]
    return data


def serialize_login(login):
    if not login:
        return None
    return {'username': login['username'], 'password': login['password']}


def serialize_student(student, with_parent=False):
    school_class = student.current_class
    data = {
        'id': str(student.pk),
        'admission_number': student.admission_number,
        'first_name': student.first_name,
        'last_name': student.last_name,
        'name': student.get_full_name(),
        'gender': student.gender,
        'status': student.status,
        'class': school_class.name if school_class else None,
        'class_id': str(school_class.pk) if school_class else None,
        'grade': school_class.grade.name if school_class else None,
        'academic_year': school_class.academic_year.name if school_class else None,
        'joined_academic_year': student.joined_academic_year,
        'joined_term': student.joined_term,
        'average_score': float(student.average_score) if student.average_score is not None else None,
        'disciplinary_cases': student.disciplinary_cases,
    }
    if with_parent:
        parent = student.parent
        data['parent'] = {
            'id': str(parent.pk),
            'name': parent.get_full_name(),
            'phone': parent.phone,
            'email': parent.email,
        } if parent else None
    return data


# =============================================================================
# ALUMNI SERVICE
# =============================================================================

class AlumniService:

    @staticmethod
    def list_alumni(school, year=None, search=None):
        alumni = Alumni.all_objects.filter(school=school).select_related('student')

        if year:
            alumni = alumni.filter(graduation_year=str(year))

        if search:
            alumni = alumni.filter(
                Q(student__first_name__icontains=search)
                | Q(student__last_name__icontains=search)
                | Q(student__admission_number__icontains=search)
            )

        return alumni.order_by('-graduation_year', 'student__last_name')

    @staticmethod
    def get_statistics(school):
        """
        Returns:
            dict: total_alumni, total_years (distinct graduation years),
            this_year_graduates, top_performers (final grade A)
        """
        alumni = Alumni.all_objects.filter(school=school)
        this_year = str(timezone.localdate().year)

        return {
            'total_alumni': alumni.count(),
            'total_years': alumni.order_by().values('graduation_year').distinct().count(),
            'this_year_graduates': alumni.filter(graduation_year=this_year).count(),
            'top_performers': alumni.filter(final_grade='A').count(),
        }

    @staticmethod
    def group_by_year(school):
        """Alumni grouped by graduation year, newest year first"""
        groups = OrderedDict()
        for alumnus in AlumniService.list_alumni(school):
            groups.setdefault(alumnus.graduation_year, []).append(alumnus)
        return groups


def serialize_alumnus(alumnus):
    student = alumnus.student
    return {
        'id': str(alumnus.pk),
        'student_id': str(student.pk),
        'name': student.get_full_name(),
        'admission_number': student.admission_number,
        'graduation_year': alumnus.graduation_year,
        'final_class': alumnus.final_class,
        'final_grade': alumnus.final_grade,
        'outstanding_balance': float(alumnus.outstanding_balance),
        'achievements': alumnus.achievements,
        'current_occupation': alumnus.current_occupation,
    }
