# promotions/admin.py

from django.contrib import admin
from .models import PromotionCriteria, PromotionLog, PromotionExclusion


@admin.register(PromotionCriteria)
class PromotionCriteriaAdmin(admin.ModelAdmin):
    list_display = ('name', 'school', 'min_grade', 'max_fee_balance', 'max_disciplinary_cases', 'promotion_type', 'is_active')
    list_filter = ('school', 'promotion_type', 'is_active')


@admin.register(PromotionLog)
class PromotionLogAdmin(admin.ModelAdmin):
    list_display = ('student', 'from_class', 'to_class', 'from_academic_year', 'to_academic_year', 'is_graduation', 'outstanding_balance', 'created_at')
    list_filter = ('school', 'from_academic_year', 'is_graduation', 'promotion_type')
    search_fields = ('student__admission_number', 'student__first_name', 'student__last_name')
    raw_id_fields = ('student',)
    readonly_fields = ('criteria_results',)


@admin.register(PromotionExclusion)
class PromotionExclusionAdmin(admin.ModelAdmin):
    list_display = ('student', 'academic_year', 'reason', 'excluded_by', 'created_at')
    list_filter = ('school', 'academic_year')
    search_fields = ('student__admission_number', 'reason')
    raw_id_fields = ('student',)
