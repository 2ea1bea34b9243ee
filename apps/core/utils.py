# core/utils.py

"""
Central utilities shared by all apps.

- Project settings lookup (the ``EDUSMS`` settings dict)
- Currency choices and money formatting
"""
from django.conf import settings
from decimal import Decimal, InvalidOperation
import logging

import pycountry

logger = logging.getLogger(__name__)

DEFAULTS = {
    'DEFAULT_CURRENCY': 'KES',
    'DEFAULT_AVERAGE_GRADE': 75,
    'RECEIPT_PREFIX': 'RCP',
    'RECEIPT_PAGE_SIZE': 'A4',
    'LOGIN_MAX_ATTEMPTS': 5,
    'LOGIN_LOCK_MINUTES': 30,
    'DEFAULT_PARENT_PASSWORD': 'parent123',
    'DEFAULT_STUDENT_PASSWORD': 'student123',
}


def get_setting(name, default=None):
    """
    Read a value from ``settings.EDUSMS`` with a built-in default.

    Example:
        >>> get_setting('DEFAULT_CURRENCY')
        'KES'
    """
    configured = getattr(settings, 'EDUSMS', {}) or {}
    if name in configured:
        return configured[name]
    if default is not None:
        return default
    return DEFAULTS.get(name)


# =============================================================================
# CURRENCY & MONEY FORMATTING
# =============================================================================

def get_currency_choices():
    """ISO 4217 currencies as model choices, sorted by name"""
    return sorted(
        ((currency.alpha_3, f"{currency.name} ({currency.alpha_3})") for currency in pycountry.currencies),
        key=lambda choice: choice[1]
    )


def get_school_currency(school=None):
    if school is not None and getattr(school, 'currency', None):
        return school.currency
    return get_setting('DEFAULT_CURRENCY')


def format_money(amount, currency=None, include_symbol=True):
    """
    Format a money amount with thousands separators.

    Example:
        >>> format_money(15000)
        'KES 15,000.00'
        >>> format_money(15000, include_symbol=False)
        '15,000.00'
    """
    try:
        value = Decimal(str(amount or 0))
    except (InvalidOperation, ValueError):
        logger.warning(f"Cannot format non-numeric amount: {amount!r}")
        value = Decimal('0')

    formatted = f"{value:,.2f}"
    if not include_symbol:
        return formatted
    return f"{currency or get_setting('DEFAULT_CURRENCY')} {formatted}"
