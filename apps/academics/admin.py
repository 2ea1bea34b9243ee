# academics/admin.py

from django.contrib import admin
from .models import AcademicYear, Term, Grade, SchoolClass


class TermInline(admin.TabularInline):
    model = Term
    extra = 0
    fields = ('name', 'start_date', 'end_date', 'is_current')


@admin.register(AcademicYear)
class AcademicYearAdmin(admin.ModelAdmin):
    list_display = ('name', 'school', 'start_date', 'end_date', 'is_current')
    list_filter = ('school', 'is_current')
    inlines = (TermInline,)

    def save_formset(self, request, form, formset, change):
        for term in formset.save(commit=False):
            term.school_id = form.instance.school_id
            term.save()
        formset.save_m2m()


@admin.register(Grade)
class GradeAdmin(admin.ModelAdmin):
    list_display = ('name', 'school', 'order', 'next_grade', 'is_alumni', 'is_active')
    list_filter = ('school', 'is_alumni', 'is_active')
    ordering = ('school', 'order')


@admin.register(SchoolClass)
class SchoolClassAdmin(admin.ModelAdmin):
    list_display = ('name', 'grade', 'academic_year', 'school', 'capacity', 'is_active')
    list_filter = ('school', 'academic_year', 'grade')
    search_fields = ('name', 'class_teacher')
