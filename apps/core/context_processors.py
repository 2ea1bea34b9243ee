# core/context_processors.py

from core.utils import get_school_currency


def active_school(request):
    """
    Adds the school of the current request (or of the logged-in user)
    and its currency to all templates.
    """
    school = getattr(request, 'school', None)

    if school is None and request.user.is_authenticated:
        profile = getattr(request.user, 'profile', None)
        if profile:
            school = profile.school

    return {
        'active_school': school,
        'currency': get_school_currency(school),
    }
