# accounts/views.py

"""
Portal authentication endpoints.

Each school exposes four portals (admin, bursar, parent, student) that share
session authentication but admit different roles:

    POST api/schools/<code>/<portal>/login
    POST api/schools/<code>/<portal>/logout
    GET  api/schools/<code>/<portal>/session
"""

from django.contrib.auth import login, logout, authenticate
from django.views.decorators.cache import never_cache
from django.views.decorators.csrf import ensure_csrf_cookie
from django.views.decorators.http import require_GET, require_POST
import logging

from utils.forms import get_form_errors_as_dict
from utils.utils import parse_json_body, json_success, json_error
from .forms import PortalLoginForm
from .models import UserProfile

logger = logging.getLogger(__name__)

PORTAL_ROLES = {
    'admin': (UserProfile.ROLE_ADMIN,),
    'bursar': (UserProfile.ROLE_BURSAR, UserProfile.ROLE_ADMIN),
    'parent': (UserProfile.ROLE_PARENT,),
    'student': (UserProfile.ROLE_STUDENT,),
}

# Two weeks
REMEMBER_ME_AGE = 1209600


def serialize_session_user(user, school):
    """User, role and linked parent/student records for the portal"""
    from students.models import Parent, Student

    profile = getattr(user, 'profile', None)
    data = {
        'id': user.pk,
        'username': user.username,
        'name': user.get_full_name() or user.username,
        'email': user.email,
        'role': profile.role if profile else ('SUPER_ADMIN' if user.is_superuser else None),
        'school': {
            'id': str(school.pk),
            'code': school.code,
            'name': school.name,
            'currency': school.receipt_currency,
            'color_theme': school.color_theme,
        },
    }

    parent = Parent.all_objects.filter(school=school, user=user).first()
    if parent:
        data['parent_id'] = str(parent.pk)

    student = Student.all_objects.filter(school=school, user=user).first()
    if student:
        data['student_id'] = str(student.pk)
        data['admission_number'] = student.admission_number

    return data


def _portal_allows(user, portal):
    if user.is_superuser:
        return True
    profile = getattr(user, 'profile', None)
    return profile is not None and profile.has_role(*PORTAL_ROLES[portal])


@never_cache
@require_POST
def portal_login(request, school_code, portal):
    if portal not in PORTAL_ROLES:
        return json_error('Unknown portal', status=404)

    try:
        data = parse_json_body(request)
    except ValueError as e:
        return json_error(str(e))

    form = PortalLoginForm(data)
    if not form.is_valid():
        return json_error('Email and password are required', errors=get_form_errors_as_dict(form))

    user = authenticate(
        request,
        email=form.cleaned_data['email'],
        password=form.cleaned_data['password'],
        school=request.school,
    )

    if user is None:
        return json_error('Invalid email or password', status=401)

    if not _portal_allows(user, portal):
        logger.warning(f"User {user.username} tried the {portal} portal of {request.school.code}")
        return json_error(f'This account cannot access the {portal} portal', status=403)

    login(request, user)
    request.session.set_expiry(REMEMBER_ME_AGE if form.cleaned_data.get('remember_me') else 0)
    request.session['portal'] = portal
    request.session['school_code'] = request.school.code

    logger.info(f"{portal.title()} login for {user.username} at {request.school.code}")
    return json_success(serialize_session_user(user, request.school))


@require_POST
def portal_logout(request, school_code, portal):
    if request.user.is_authenticated:
        logger.info(f"{portal.title()} logout for {request.user.username} at {request.school.code}")
    logout(request)
    return json_success(message='Logged out')


@never_cache
@ensure_csrf_cookie
@require_GET
def portal_session(request, school_code, portal):
    if portal not in PORTAL_ROLES:
        return json_error('Unknown portal', status=404)

    user = request.user
    if not user.is_authenticated:
        return json_error('Not logged in', status=401)

    if request.session.get('school_code') != request.school.code and not user.is_superuser:
        return json_error('Session belongs to another school', status=401)

    if not _portal_allows(user, portal):
        return json_error(f'This account cannot access the {portal} portal', status=403)

    return json_success(serialize_session_user(user, request.school))
