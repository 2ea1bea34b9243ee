# accounts/backends.py

from django.contrib.auth.backends import ModelBackend
from django.contrib.auth.models import User
from django.db.models import Q
from django.utils import timezone
from datetime import timedelta
import logging

from core.utils import get_setting
from utils.context import get_client_ip

logger = logging.getLogger(__name__)


class EmailAuthBackend(ModelBackend):
    """
    Authentication backend that:
    - Allows login with email or username
    - Locks the account after repeated failures (tracked on UserProfile)
    - Rejects inactive users
    """

    def authenticate(self, request, username=None, password=None, email=None, **kwargs):
        login_field = email or username

        if login_field is None or password is None:
            return None

        user = User.objects.filter(
            Q(email__iexact=login_field) | Q(username__iexact=login_field)
        ).select_related('profile').first()

        if user is None:
            # Run the default password hasher to reduce timing difference
            User().set_password(password)
            logger.warning(f"Login attempt for non-existent user: {login_field} from IP: {get_client_ip(request)}")
            return None

        profile = getattr(user, 'profile', None)

        if profile and profile.account_locked_until:
            if profile.is_locked:
                logger.warning(f"Login attempt for locked account: {login_field} from IP: {get_client_ip(request)}")
                return None

            profile.account_locked_until = None
            profile.failed_login_attempts = 0
            profile.save(update_fields=['account_locked_until', 'failed_login_attempts', 'updated_at'])

        if not self.user_can_authenticate(user):
            logger.warning(f"Login attempt for inactive account: {login_field}")
            return None

        if user.check_password(password):
            if profile:
                profile.failed_login_attempts = 0
                profile.account_locked_until = None
                profile.last_activity = timezone.now()
                profile.save(update_fields=[
                    'failed_login_attempts', 'account_locked_until', 'last_activity', 'updated_at'
                ])
            logger.info(f"Successful login: {login_field}")
            return user

        if profile:
            self._register_failure(profile, request)
        return None

    def _register_failure(self, profile, request):
        max_attempts = get_setting('LOGIN_MAX_ATTEMPTS')
        lock_minutes = get_setting('LOGIN_LOCK_MINUTES')

        profile.failed_login_attempts += 1
        if profile.failed_login_attempts >= max_attempts:
            profile.account_locked_until = timezone.now() + timedelta(minutes=lock_minutes)
            logger.warning(f"Account {profile.user.username} locked for {lock_minutes} minutes")

        profile.save(update_fields=['failed_login_attempts', 'account_locked_until', 'updated_at'])
        logger.warning(
            f"Failed login attempt for {profile.user.username}. "
            f"Attempt {profile.failed_login_attempts} from IP: {get_client_ip(request)}"
        )


class SchoolAuthBackend(EmailAuthBackend):
    """
    Email backend that also validates school membership.
    Pass ``school=`` to restrict login to members of that school.
    """

    def authenticate(self, request, username=None, password=None, email=None, school=None, **kwargs):
        user = super().authenticate(request, username=username, password=password, email=email, **kwargs)

        if user is None or school is None:
            return user

        if user.is_superuser:
            return user

        profile = getattr(user, 'profile', None)
        if profile is None or not profile.belongs_to(school):
            logger.warning(
                f"User {user.username} attempted to login to wrong school {school.code}"
            )
            return None

        if not school.is_active or school.status == school.STATUS_SUSPENDED:
            logger.warning(f"User {user.username} attempted to login to inactive school {school.code}")
            return None

        return user
