# edusms/middleware.py

"""
Multi-tenant school middleware.

School-scoped URLs carry a ``<school_code>`` segment
(``/api/schools/<school_code>/...``). This middleware:
1. Resolves the code to an active School
2. Sets ``request.school`` and binds the school to the thread
3. Answers 404 JSON when the code is unknown or the school is inactive
4. Clears the binding when the response is done
"""

import logging
from django.http import JsonResponse

from .managers import set_current_school, clear_current_school

logger = logging.getLogger(__name__)


class SchoolTenantMiddleware:
    """Bind the school named in the URL to the current request"""

    SCHOOL_KWARG = 'school_code'

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.school = None
        try:
            response = self.get_response(request)
        finally:
            clear_current_school()
        return response

    def process_view(self, request, view_func, view_args, view_kwargs):
        code = view_kwargs.get(self.SCHOOL_KWARG)
        if not code:
            return None

        from accounts.models import School

        school = School.objects.filter(code__iexact=code).first()

        if school is None:
            logger.warning(f"Request for unknown school code '{code}' on {request.path}")
            return JsonResponse(
                {'success': False, 'error': 'School not found'},
                status=404
            )

        if not school.is_active or school.status == School.STATUS_SUSPENDED:
            logger.warning(f"Request for inactive school '{school.code}'")
            return JsonResponse(
                {'success': False, 'error': 'School is not active'},
                status=404
            )

        request.school = school
        set_current_school(school)
        logger.debug(f"Resolved school {school.code} for {request.path}")
        return None
