# accounts/admin.py

from django.contrib import admin
from django.contrib.auth.models import User
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import School, UserProfile


class UserProfileInline(admin.StackedInline):
    model = UserProfile
    can_delete = False
    verbose_name_plural = 'Profile Information'
    fk_name = 'user'
    fields = ('school', 'role', 'phone', 'failed_login_attempts', 'account_locked_until')
    readonly_fields = ('failed_login_attempts',)


class UserAdmin(BaseUserAdmin):
    inlines = (UserProfileInline,)
    list_display = ('username', 'email', 'first_name', 'last_name', 'get_role', 'get_school', 'is_active')
    list_select_related = ('profile', 'profile__school')

    @admin.display(description='Role')
    def get_role(self, obj):
        profile = getattr(obj, 'profile', None)
        return profile.get_role_display() if profile else '-'

    @admin.display(description='School')
    def get_school(self, obj):
        profile = getattr(obj, 'profile', None)
        return profile.school.code if profile and profile.school else '-'


admin.site.unregister(User)
admin.site.register(User, UserAdmin)


@admin.register(School)
class SchoolAdmin(admin.ModelAdmin):
    list_display = ('name', 'code', 'country', 'currency', 'status', 'is_active', 'created_at')
    list_filter = ('status', 'is_active', 'country')
    search_fields = ('name', 'code', 'email')
    readonly_fields = ('created_at', 'updated_at', 'created_by_id', 'updated_by_id')
    fieldsets = (
        ('Basic Information', {
            'fields': ('name', 'code', 'motto', 'description', 'logo', 'color_theme')
        }),
        ('Contact', {
            'fields': ('address', 'phone', 'email', 'country')
        }),
        ('Finance', {
            'fields': ('currency',)
        }),
        ('Status', {
            'fields': ('status', 'is_active')
        }),
        ('Audit', {
            'fields': ('created_at', 'updated_at', 'created_by_id', 'updated_by_id'),
            'classes': ('collapse',)
        }),
    )


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'school', 'role', 'failed_login_attempts', 'account_locked_until')
    list_filter = ('role', 'school')
    search_fields = ('user__username', 'user__email', 'user__first_name', 'user__last_name')
    actions = ['unlock_accounts']

    @admin.action(description='Unlock selected accounts')
    def unlock_accounts(self, request, queryset):
        updated = queryset.update(failed_login_attempts=0, account_locked_until=None)
        self.message_user(request, f"{updated} account(s) unlocked.")
