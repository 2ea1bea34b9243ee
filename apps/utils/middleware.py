# utils/middleware.py

import logging
from utils.context import set_request_context, clear_request_context

logger = logging.getLogger(__name__)


class AuditContextMiddleware:
    """
    Capture the acting user and client IP for the audit trail.
    Runs after authentication so ``request.user`` is resolved.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        set_request_context(request=request)

        try:
            response = self.get_response(request)
        finally:
            clear_request_context()

        return response

    def process_view(self, request, view_func, view_args, view_kwargs):
        # request.school is only known once the tenant middleware has run
        set_request_context(request=request)
        return None
