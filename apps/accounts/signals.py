# accounts/signals.py

from django.contrib.auth.models import User
from django.db.models.signals import post_save
from django.dispatch import receiver
import logging

logger = logging.getLogger(__name__)


@receiver(post_save, sender=User)
def create_superuser_profile(sender, instance, created, **kwargs):
    """Superusers get a SUPER_ADMIN profile so portal checks can see their role"""
    if kwargs.get('raw', False) or not created or not instance.is_superuser:
        return

    from accounts.models import UserProfile

    UserProfile.objects.get_or_create(
        user=instance,
        defaults={'role': UserProfile.ROLE_SUPER_ADMIN}
    )
    logger.info(f"Created SUPER_ADMIN profile for {instance.username}")
