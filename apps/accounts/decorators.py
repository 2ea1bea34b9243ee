# accounts/decorators.py

from functools import wraps
import logging

from utils.utils import json_error

logger = logging.getLogger(__name__)


def get_profile(user):
    return getattr(user, 'profile', None)


def role_required(*roles):
    """
    Restrict a school-scoped API view to members of ``request.school``
    holding one of ``roles``. Superusers always pass.

    Answers 401 when not logged in and 403 for the wrong school or role.
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            user = request.user

            if not user.is_authenticated:
                return json_error('Authentication required', status=401)

            if user.is_superuser:
                return view_func(request, *args, **kwargs)

            profile = get_profile(user)
            school = getattr(request, 'school', None)

            if profile is None or not profile.belongs_to(school):
                logger.warning(f"User {user.username} denied access to school {getattr(school, 'code', None)}")
                return json_error('You do not belong to this school', status=403)

            if roles and not profile.has_role(*roles):
                logger.warning(f"User {user.username} with role {profile.role} denied {request.path}")
                return json_error('You do not have permission to perform this action', status=403)

            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator
