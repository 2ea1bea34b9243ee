# students/signals.py

"""
Students Signals
- Admission number generation (century-safe format)
- Default joined year/term for new students
"""

from django.db.models.signals import pre_save
from django.dispatch import receiver
import logging

from .models import Student

logger = logging.getLogger(__name__)


# =============================================================================
# STUDENT SIGNALS
# =============================================================================

@receiver(pre_save, sender=Student)
def generate_admission_number(sender, instance, **kwargs):
    """Generate admission number if not set"""
    if not instance.admission_number and instance.school_id:
        from .utils import generate_admission_number as next_admission_number

        admission_year = instance.admission_date.year if instance.admission_date else None
        instance.admission_number = next_admission_number(instance.school, admission_year=admission_year)

        logger.info(f"Generated admission number: {instance.admission_number}")


@receiver(pre_save, sender=Student)
def set_joined_period(sender, instance, **kwargs):
    """New students join in their class's year, first term unless given"""
    if instance._state.adding:
        if not instance.joined_academic_year and instance.current_class_id:
            instance.joined_academic_year = instance.current_class.academic_year.name
        if instance.joined_academic_year and not instance.joined_term:
            instance.joined_term = 'Term 1'
