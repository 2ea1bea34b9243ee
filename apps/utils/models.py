# utils/models.py

"""
Base models for EduSMS with an audit trail.

Key Features:
- UUID primary keys
- Created/updated timestamps and acting user/IP on every row
- Change reason tracking
- Field-level change log (AuditLog) for updates and deletes
- School ownership with automatic tenant scoping
"""

from django.db import models
from django.utils import timezone
from decimal import Decimal
import uuid
import logging

from edusms.managers import SchoolManager

logger = logging.getLogger(__name__)

AUDIT_SKIP_FIELDS = (
    'id', 'created_at', 'updated_at', 'created_by_id',
    'updated_by_id', 'created_from_ip', 'updated_from_ip',
)


def _audit_value(value):
    if value is None:
        return None
    if isinstance(value, Decimal):
        return str(value.quantize(Decimal('0.01')))
    if isinstance(value, models.Model):
        return str(value.pk)
    return str(value)


# =============================================================================
# BASE MODEL
# =============================================================================

class BaseModel(models.Model):
    """
    Abstract base with audit fields filled from the request context.

    - ``created_by_id`` / ``updated_by_id`` hold the acting user's id
    - ``created_from_ip`` / ``updated_from_ip`` hold the client IP
    - Updates to existing rows write an ``AuditLog`` entry listing the
      changed fields
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    created_at = models.DateTimeField("Created At", default=timezone.now, db_index=True)
    updated_at = models.DateTimeField("Updated At", default=timezone.now, db_index=True)

    created_by_id = models.CharField(
        "Created By ID",
        max_length=50,
        null=True,
        blank=True,
        help_text="ID of user who created this record"
    )
    updated_by_id = models.CharField(
        "Updated By ID",
        max_length=50,
        null=True,
        blank=True,
        help_text="ID of user who last updated this record"
    )
    created_from_ip = models.GenericIPAddressField("Created From IP", null=True, blank=True)
    updated_from_ip = models.GenericIPAddressField("Updated From IP", null=True, blank=True)

    change_reason = models.CharField(
        "Change Reason",
        max_length=255,
        blank=True,
        null=True,
        help_text="Explanation for why this change was made"
    )

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        from utils.context import get_request_context

        is_new = self._state.adding
        now = timezone.now()

        if is_new:
            self.created_at = self.created_at or now
        self.updated_at = now

        context = get_request_context()
        if context:
            user = context.get('user')
            ip_address = context.get('ip_address')

            if is_new:
                if user and not self.created_by_id:
                    self.created_by_id = str(user.pk)
                if ip_address and not self.created_from_ip:
                    self.created_from_ip = ip_address

            if user:
                self.updated_by_id = str(user.pk)
            if ip_address:
                self.updated_from_ip = ip_address

        changes = {} if is_new else self._collect_changes()

        result = super().save(*args, **kwargs)

        if changes:
            AuditLog.record(self, 'UPDATE', changes)

        return result

    def delete(self, *args, **kwargs):
        AuditLog.record(self, 'DELETE', {})
        return super().delete(*args, **kwargs)

    def _collect_changes(self):
        """Diff against the stored row; empty when nothing changed"""
        previous = type(self)._base_manager.filter(pk=self.pk).first()
        if previous is None:
            return {}

        changes = {}
        for field in self._meta.concrete_fields:
            if field.name in AUDIT_SKIP_FIELDS:
                continue

            old_value = getattr(previous, field.attname)
            new_value = getattr(self, field.attname)
            if old_value != new_value:
                changes[field.name] = {
                    'old': _audit_value(old_value),
                    'new': _audit_value(new_value),
                }
        return changes

    def get_audit_trail(self):
        return {
            'id': str(self.id),
            'created_at': self.created_at,
            'created_by_id': self.created_by_id,
            'created_from_ip': self.created_from_ip,
            'updated_at': self.updated_at,
            'updated_by_id': self.updated_by_id,
            'updated_from_ip': self.updated_from_ip,
            'last_change_reason': self.change_reason,
        }


class SchoolOwnedModel(BaseModel):
    """Base for every row that belongs to one school"""

    school = models.ForeignKey(
        'accounts.School',
        on_delete=models.CASCADE,
        related_name='+',
    )

    objects = SchoolManager()
    all_objects = models.Manager()

    class Meta:
        abstract = True


# =============================================================================
# AUDIT LOG
# =============================================================================

class AuditLog(models.Model):
    """Field-level record of updates and deletions"""

    ACTION_CHOICES = (
        ('UPDATE', 'Updated'),
        ('DELETE', 'Deleted'),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    school_id = models.CharField("School ID", max_length=50, blank=True, db_index=True)
    content_type = models.CharField("Model Type", max_length=100, db_index=True)
    object_id = models.CharField("Object ID", max_length=100, db_index=True)
    object_repr = models.CharField("Object Representation", max_length=200)
    action = models.CharField("Action", max_length=10, choices=ACTION_CHOICES, db_index=True)
    changes = models.JSONField("Changes", default=dict, blank=True)

    user_id = models.CharField("User ID", max_length=50, null=True, blank=True, db_index=True)
    ip_address = models.GenericIPAddressField("IP Address", null=True, blank=True)
    request_path = models.CharField("Request Path", max_length=255, blank=True)
    change_reason = models.CharField("Change Reason", max_length=255, blank=True)
    timestamp = models.DateTimeField("Timestamp", default=timezone.now, db_index=True)

    class Meta:
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['content_type', 'object_id']),
        ]
        verbose_name = "Audit Log"
        verbose_name_plural = "Audit Logs"

    def __str__(self):
        return f"{self.action} {self.content_type} {self.object_id} at {self.timestamp}"

    @classmethod
    def record(cls, instance, action, changes):
        from utils.context import get_request_context

        context = get_request_context() or {}
        user = context.get('user')

        try:
            return cls.objects.create(
                school_id=str(getattr(instance, 'school_id', '') or ''),
                content_type=instance._meta.label,
                object_id=str(instance.pk),
                object_repr=str(instance)[:200],
                action=action,
                changes=changes,
                user_id=str(user.pk) if user else None,
                ip_address=context.get('ip_address'),
                request_path=context.get('request_path', '')[:255],
                change_reason=getattr(instance, 'change_reason', '') or '',
            )
        except Exception:
            logger.exception(f"Failed to write audit log for {instance._meta.label} {instance.pk}")
            raise

    def get_changes_display(self):
        if not self.changes:
            return "No field changes recorded"

        return "\n".join(
            f"{field}: {values.get('old')} -> {values.get('new')}"
            for field, values in self.changes.items()
        )
