# utils/admin.py

from django.contrib import admin
from .models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['timestamp', 'action', 'content_type', 'object_repr', 'user_id', 'ip_address']
    list_filter = ['action', 'content_type']
    search_fields = ['object_repr', 'object_id', 'user_id']
    readonly_fields = [
        'id', 'school_id', 'content_type', 'object_id', 'object_repr', 'action',
        'changes_display', 'user_id', 'ip_address', 'request_path',
        'change_reason', 'timestamp',
    ]
    exclude = ['changes']

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return request.user.is_superuser

    @admin.display(description='Changes')
    def changes_display(self, obj):
        return obj.get_changes_display()
