# edusms/managers.py

"""
Tenant scoping for the shared database.

Every school-owned row carries a ``school`` foreign key. The current school
is kept in thread-local storage by ``SchoolTenantMiddleware`` and
``SchoolManager`` narrows querysets to it.
"""

from django.db import models
from threading import local
import logging

logger = logging.getLogger(__name__)

_thread_locals = local()


def get_current_school():
    """Get the school bound to this thread, or None"""
    return getattr(_thread_locals, 'current_school', None)


def set_current_school(school):
    """Bind a school to this thread"""
    if school is None:
        clear_current_school()
        return False

    _thread_locals.current_school = school
    logger.debug(f"Set current school to: {school.code}")
    return True


def clear_current_school():
    """Forget the current school"""
    if hasattr(_thread_locals, 'current_school'):
        delattr(_thread_locals, 'current_school')


class SchoolContext:
    """
    Context manager for running code against one school.

    Example:
        with SchoolContext(school):
            Student.objects.count()  # only this school's students
    """

    def __init__(self, school):
        self.school = school
        self.previous_school = None

    def __enter__(self):
        self.previous_school = get_current_school()
        set_current_school(self.school)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.previous_school is not None:
            set_current_school(self.previous_school)
        else:
            clear_current_school()


class SchoolQuerySet(models.QuerySet):

    def for_school(self, school):
        return self.filter(school=school)


class SchoolManager(models.Manager.from_queryset(SchoolQuerySet)):
    """Manager that filters by the current school when one is bound"""

    def get_queryset(self):
        queryset = super().get_queryset()
        school = get_current_school()

        if school is None:
            return queryset

        return queryset.filter(school=school)

    def create(self, **kwargs):
        school = get_current_school()
        if school is not None and 'school' not in kwargs and 'school_id' not in kwargs:
            kwargs['school'] = school
        return super().create(**kwargs)


def with_school(school):
    """
    Decorator to execute a function inside a school context.

    Example:
        @with_school(school)
        def count_students():
            return Student.objects.count()
    """
    def decorator(func):
        def wrapper(*args, **kwargs):
            with SchoolContext(school):
                return func(*args, **kwargs)
        return wrapper
    return decorator
