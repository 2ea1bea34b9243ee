# utils/context.py

"""
Thread-local request context for the audit trail.

``AuditContextMiddleware`` stores who is acting and from where at the start
of each request; ``BaseModel.save`` and ``AuditLog`` read it back.
Background work (management commands, tests) can use ``RequestContext``.
"""

from threading import local
import logging

logger = logging.getLogger(__name__)

_thread_locals = local()


def get_client_ip(request):
    """Client IP, honouring the first hop of X-Forwarded-For"""
    if request is None:
        return None

    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def set_request_context(request=None, user=None, ip_address=None, request_path=None):
    """
    Store the acting user and origin for this thread.

    Pass either the request or the individual values.
    """
    if request is not None:
        user = getattr(request, 'user', None)
        ip_address = get_client_ip(request)
        request_path = request.path

    if user is not None and not user.is_authenticated:
        user = None

    _thread_locals.request_context = {
        'user': user,
        'ip_address': ip_address,
        'request_path': request_path or '',
        'school': getattr(request, 'school', None) if request is not None else None,
    }


def get_request_context():
    """Current context dict, or None outside a request"""
    return getattr(_thread_locals, 'request_context', None)


def get_acting_user():
    context = get_request_context()
    return context.get('user') if context else None


def clear_request_context():
    if hasattr(_thread_locals, 'request_context'):
        delattr(_thread_locals, 'request_context')


class RequestContext:
    """
    Temporarily act as a given user.

    Example:
        with RequestContext(user=bursar, ip_address='127.0.0.1'):
            payment.save()
    """

    def __init__(self, user=None, ip_address=None, request_path=None):
        self.context = {
            'user': user,
            'ip_address': ip_address,
            'request_path': request_path or '',
            'school': None,
        }
        self.previous_context = None

    def __enter__(self):
        self.previous_context = get_request_context()
        _thread_locals.request_context = self.context
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.previous_context is not None:
            _thread_locals.request_context = self.previous_context
        else:
            clear_request_context()
