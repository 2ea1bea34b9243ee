# academics/views.py

"""
Academic structure endpoints: years, terms, grades, classes and the
progression rules used by promotions.

All views are school-scoped (``api/schools/<code>/...``) and delegate
business logic to services.py.
"""

from django.views.decorators.http import require_GET, require_POST, require_http_methods
from django.core.exceptions import ValidationError
from django.db import transaction
import logging

from accounts.decorators import role_required
from accounts.models import UserProfile
from utils.forms import get_form_errors_as_dict
from utils.utils import parse_json_body, json_success, json_error

from .forms import AcademicYearForm, SchoolClassForm
from .models import AcademicYear, Grade, SchoolClass
from .services import AcademicYearService, GradeService, ClassService

logger = logging.getLogger(__name__)

ADMIN_ROLES = (UserProfile.ROLE_ADMIN,)


# =============================================================================
# SERIALIZERS
# =============================================================================

def serialize_term(term):
    return {
        'id': str(term.pk),
        'name': term.name,
        'order': term.order,
        'start_date': term.start_date.isoformat() if term.start_date else None,
        'end_date': term.end_date.isoformat() if term.end_date else None,
        'is_current': term.is_current,
    }


def serialize_academic_year(year, with_terms=False):
    data = {
        'id': str(year.pk),
        'name': year.name,
        'start_date': year.start_date.isoformat(),
        'end_date': year.end_date.isoformat(),
        'is_current': year.is_current,
    }
    if with_terms:
        data['terms'] = [serialize_term(term) for term in year.terms.order_by('order')]
    return data


def serialize_grade(grade):
    return {
        'id': str(grade.pk),
        'name': grade.name,
        'order': grade.order,
        'next_grade': grade.next_grade.name if grade.next_grade else None,
        'is_alumni': grade.is_alumni,
    }


def serialize_class(school_class):
    return {
        'id': str(school_class.pk),
        'name': school_class.name,
        'grade': school_class.grade.name,
        'grade_id': str(school_class.grade_id),
        'academic_year': school_class.academic_year.name,
        'capacity': school_class.capacity,
        'class_teacher': school_class.class_teacher,
        'student_count': school_class.student_count,
        'is_active': school_class.is_active,
    }


# =============================================================================
# ACADEMIC YEARS & TERMS
# =============================================================================

@require_http_methods(["GET", "POST"])
@role_required(*UserProfile.STAFF_ROLES)
def academic_year_list(request, school_code):
    school = request.school

    if request.method == 'GET':
        years = AcademicYear.all_objects.filter(school=school).prefetch_related('terms')
        return json_success([serialize_academic_year(year, with_terms=True) for year in years])

    profile = getattr(request.user, 'profile', None)
    if not request.user.is_superuser and not (profile and profile.has_role(*ADMIN_ROLES)):
        return json_error('Only administrators can create academic years', status=403)

    try:
        data = parse_json_body(request)
    except ValueError as e:
        return json_error(str(e))

    form = AcademicYearForm(data, school=school)
    if not form.is_valid():
        return json_error('Invalid academic year', errors=get_form_errors_as_dict(form))

    year = AcademicYearService.create_year_with_terms(
        school,
        form.cleaned_data['name'],
        make_current=form.cleaned_data['make_current'],
    )
    return json_success(serialize_academic_year(year, with_terms=True), status=201)


@require_GET
@role_required()
def current_academic_year(request, school_code):
    year = AcademicYearService.get_current_year(request.school)
    if year is None:
        return json_error('No academic year has been set up', status=404)

    term = AcademicYearService.get_current_term(request.school)
    return json_success({
        'academic_year': serialize_academic_year(year),
        'term': serialize_term(term) if term else None,
    })


@require_POST
@role_required(*ADMIN_ROLES)
def academic_year_set_current(request, school_code, pk):
    year = AcademicYear.all_objects.filter(school=request.school, pk=pk).first()
    if year is None:
        return json_error('Academic year not found', status=404)

    AcademicYearService.set_current_year(year)
    return json_success(serialize_academic_year(year))


@require_GET
@role_required()
def term_list(request, school_code, pk):
    year = AcademicYear.all_objects.filter(school=request.school, pk=pk).first()
    if year is None:
        return json_error('Academic year not found', status=404)

    return json_success([serialize_term(term) for term in year.terms.order_by('order')])


@require_POST
@role_required(*ADMIN_ROLES)
def term_set_current(request, school_code, pk, term_name):
    year = AcademicYear.all_objects.filter(school=request.school, pk=pk).first()
    if year is None:
        return json_error('Academic year not found', status=404)

    try:
        with transaction.atomic():
            term, _ = AcademicYearService.get_or_create_term(year, term_name)
            term.is_current = True
            term.save()
    except ValidationError as e:
        return json_error(e.messages[0])

    logger.info(f"{term} is now the current term for {request.school.code}")
    return json_success(serialize_term(term))


# =============================================================================
# GRADES & PROGRESSION
# =============================================================================

@require_GET
@role_required()
def grade_list(request, school_code):
    grades = Grade.all_objects.filter(school=request.school).select_related('next_grade')
    return json_success([serialize_grade(grade) for grade in grades])


@require_POST
@role_required(*ADMIN_ROLES)
def grade_seed(request, school_code):
    grades = GradeService.seed_default_grades(request.school)
    return json_success([serialize_grade(grade) for grade in grades], status=201)


@require_GET
@role_required()
def progression(request, school_code):
    return json_success(GradeService.get_progression(request.school))


# =============================================================================
# CLASSES
# =============================================================================

@require_http_methods(["GET", "POST"])
@role_required(*UserProfile.STAFF_ROLES)
def class_list(request, school_code):
    school = request.school

    if request.method == 'GET':
        classes = SchoolClass.all_objects.filter(school=school).select_related('grade', 'academic_year')

        year = request.GET.get('academicYear')
        if year:
            classes = classes.filter(academic_year__name=year)
        else:
            current = AcademicYearService.get_current_year(school)
            if current:
                classes = classes.filter(academic_year=current)

        grade = request.GET.get('grade')
        if grade:
            classes = classes.filter(grade__name__iexact=grade)

        return json_success([serialize_class(school_class) for school_class in classes])

    profile = getattr(request.user, 'profile', None)
    if not request.user.is_superuser and not (profile and profile.has_role(*ADMIN_ROLES)):
        return json_error('Only administrators can create classes', status=403)

    try:
        data = parse_json_body(request)
    except ValueError as e:
        return json_error(str(e))

    form = SchoolClassForm(data, school=school)
    if not form.is_valid():
        return json_error('Invalid class', errors=get_form_errors_as_dict(form))

    school_class, _ = ClassService.find_or_create_class(
        school,
        form.cleaned_data['grade'],
        form.cleaned_data['academic_year'],
        name=form.cleaned_data['name'],
    )
    school_class.capacity = form.cleaned_data.get('capacity')
    school_class.class_teacher = form.cleaned_data.get('class_teacher') or ''
    school_class.save()

    return json_success(serialize_class(school_class), status=201)
