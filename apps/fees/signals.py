# fees/signals.py

"""
Fee Management Signal Handlers

Auto-processing for:
- Receipt and reference number generation for payments saved outside
  FeeBalanceService (admin, fixtures)
- Receipt copy of the payment's reference fields
"""

from django.db.models.signals import pre_save
from django.dispatch import receiver
import logging

from fees.utils import generate_receipt_number, generate_payment_reference

logger = logging.getLogger(__name__)


# =============================================================================
# PAYMENT SIGNALS
# =============================================================================

@receiver(pre_save, sender='fees.Payment')
def payment_pre_save(sender, instance, **kwargs):
    """
    Pre-save processing for payments:
    - Auto-generate receipt number
    - Fallback reference number
    """
    if not instance.receipt_number and instance.school_id:
        instance.receipt_number = generate_receipt_number(instance.school)
        logger.info(f"Generated receipt number: {instance.receipt_number}")

    if not instance.reference_number:
        instance.reference_number = generate_payment_reference()


@receiver(pre_save, sender='fees.Receipt')
def receipt_pre_save(sender, instance, **kwargs):
    """Keep the receipt number in step with its payment"""
    if instance.payment_id and not instance.receipt_number:
        instance.receipt_number = instance.payment.receipt_number
