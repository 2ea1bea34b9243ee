# fees/utils.py

"""
Fee Management Utility Functions

Contains:
- Receipt and payment reference number generation
- Carry-forward references and descriptions
"""

from django.db import transaction
from django.utils import timezone
import secrets
import string
import logging

from core.utils import get_setting

logger = logging.getLogger(__name__)


# =============================================================================
# REFERENCE NUMBER GENERATION
# =============================================================================

def _next_sequence(max_number):
    """Sequence after the highest existing number, 1 when there is none"""
    if not max_number:
        return 1
    try:
        return int(max_number.split('-')[-1]) + 1
    except (ValueError, IndexError):
        return 1


def generate_receipt_number(school, year=None):
    """
    Generate the next receipt number for a school.
    Format: RCP-2025-0001

    Must be called inside the transaction that saves the payment so the
    row lock holds until the number is used.

    Returns:
        str: Unique receipt number
    """
    from fees.models import Payment

    prefix = get_setting('RECEIPT_PREFIX')
    year = year or timezone.now().year
    search_prefix = f"{prefix}-{year}-"

    with transaction.atomic():
        last_number = (
            Payment.all_objects
            .select_for_update()
            .filter(school=school, receipt_number__startswith=search_prefix)
            .order_by('-receipt_number')
            .values_list('receipt_number', flat=True)
            .first()
        )
        new_number = _next_sequence(last_number)

        # string ordering; guard against widths past 9999
        while Payment.all_objects.filter(school=school, receipt_number=f"{search_prefix}{new_number:04d}").exists():
            new_number += 1

    return f"{search_prefix}{new_number:04d}"


def generate_payment_reference():
    """
    Fallback reference for payments recorded without one.
    Format: PAY-20250114093015-K3M9QZ2XA
    """
    timestamp = timezone.now().strftime('%Y%m%d%H%M%S')
    suffix = ''.join(secrets.choice(string.ascii_uppercase + string.digits) for _ in range(9))
    return f"PAY-{timestamp}-{suffix}"


# =============================================================================
# CARRY FORWARD
# =============================================================================

def carry_forward_reference(from_year_name, to_year_name):
    return f"CF-{from_year_name}-{to_year_name}"


def carry_forward_description(amount, from_year_name, to_year_name):
    if amount < 0:
        return f"Overpayment Credit Carried Forward from {from_year_name} to {to_year_name}"
    return f"Fee Balance Carried Forward from {from_year_name} to {to_year_name}"
