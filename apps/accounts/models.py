# accounts/models.py

from django.contrib.auth.models import User
from django.db import models
from django.utils import timezone
from django_countries.fields import CountryField
from django.core.validators import RegexValidator
import logging

from utils.models import BaseModel
from core.utils import get_currency_choices, get_setting

logger = logging.getLogger(__name__)


# =============================================================================
# VALIDATORS
# =============================================================================

phone_validator = RegexValidator(
    regex=r'^\+?1?\d{9,15}$',
    message="Phone number must be entered in the format: '+999999999'. Up to 15 digits allowed."
)

school_code_validator = RegexValidator(
    regex=r'^[A-Za-z0-9][A-Za-z0-9_-]{1,49}$',
    message="School code may contain letters, digits, hyphens and underscores."
)


# =============================================================================
# SCHOOL MODEL
# =============================================================================

class School(BaseModel):
    """A tenant. Every school-owned row points back to one of these."""

    STATUS_ACTIVE = 'ACTIVE'
    STATUS_SETUP = 'SETUP'
    STATUS_SUSPENDED = 'SUSPENDED'

    STATUS_CHOICES = (
        (STATUS_ACTIVE, 'Active'),
        (STATUS_SETUP, 'In Setup'),
        (STATUS_SUSPENDED, 'Suspended'),
    )

    name = models.CharField("School Name", max_length=200)
    code = models.CharField(
        "School Code",
        max_length=50,
        unique=True,
        validators=[school_code_validator],
        help_text="Short code used in portal URLs, e.g. 'greenfield'"
    )
    address = models.TextField("Physical Address", blank=True)
    phone = models.CharField(
        "Contact Phone",
        max_length=20,
        blank=True,
        validators=[phone_validator]
    )
    email = models.EmailField("Contact Email", blank=True)
    country = CountryField("Country", default='KE')
    currency = models.CharField(
        "Currency",
        max_length=3,
        choices=get_currency_choices,
        default='KES',
        help_text="Currency used on receipts and statements"
    )
    logo = models.ImageField("School Logo", upload_to='school_logos/', blank=True, null=True)
    color_theme = models.CharField("Color Theme", max_length=7, default='#3b82f6')
    motto = models.CharField("School Motto", max_length=255, blank=True)
    description = models.TextField("Description", blank=True)
    status = models.CharField("Status", max_length=10, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    is_active = models.BooleanField("Is Active", default=True)

    class Meta:
        ordering = ['name']
        verbose_name = "School"
        verbose_name_plural = "Schools"

    def __str__(self):
        return f"{self.name} ({self.code})"

    def save(self, *args, **kwargs):
        self.code = self.code.strip().lower()
        super().save(*args, **kwargs)

    @property
    def receipt_currency(self):
        return self.currency or get_setting('DEFAULT_CURRENCY')


# =============================================================================
# USER PROFILE
# =============================================================================

class UserProfile(BaseModel):
    """School membership and portal role of a Django user"""

    ROLE_SUPER_ADMIN = 'SUPER_ADMIN'
    ROLE_ADMIN = 'ADMIN'
    ROLE_BURSAR = 'BURSAR'
    ROLE_TEACHER = 'TEACHER'
    ROLE_PARENT = 'PARENT'
    ROLE_STUDENT = 'STUDENT'

    USER_ROLES = [
        (ROLE_SUPER_ADMIN, 'Super Administrator'),
        (ROLE_ADMIN, 'School Administrator'),
        (ROLE_BURSAR, 'Bursar'),
        (ROLE_TEACHER, 'Teacher'),
        (ROLE_PARENT, 'Parent'),
        (ROLE_STUDENT, 'Student'),
    ]

    STAFF_ROLES = (ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_BURSAR, ROLE_TEACHER)
    FINANCE_ROLES = (ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_BURSAR)

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='profile'
    )
    school = models.ForeignKey(
        School,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='user_profiles'
    )
    role = models.CharField("Role", max_length=20, choices=USER_ROLES, default=ROLE_TEACHER)
    phone = models.CharField(
        "Phone",
        max_length=20,
        blank=True,
        validators=[phone_validator]
    )

    failed_login_attempts = models.PositiveIntegerField("Failed Login Attempts", default=0)
    account_locked_until = models.DateTimeField("Account Locked Until", null=True, blank=True)
    last_activity = models.DateTimeField("Last Activity", null=True, blank=True)

    class Meta:
        verbose_name = "User Profile"
        verbose_name_plural = "User Profiles"

    def __str__(self):
        return f"{self.user.get_full_name() or self.user.username} ({self.get_role_display()})"

    @property
    def is_locked(self):
        return bool(self.account_locked_until and timezone.now() < self.account_locked_until)

    def belongs_to(self, school):
        if self.role == self.ROLE_SUPER_ADMIN:
            return True
        return school is not None and self.school_id == school.pk

    def has_role(self, *roles):
        return self.role == self.ROLE_SUPER_ADMIN or self.role in roles
