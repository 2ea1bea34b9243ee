# students/admin.py

from django.contrib import admin
from .models import Parent, Student, Alumni


@admin.register(Parent)
class ParentAdmin(admin.ModelAdmin):
    list_display = ('get_full_name', 'school', 'phone', 'email', 'user')
    list_filter = ('school',)
    search_fields = ('first_name', 'last_name', 'phone', 'email')


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ('admission_number', 'get_full_name', 'school', 'current_class', 'status')
    list_filter = ('school', 'status', 'current_class__grade')
    search_fields = ('admission_number', 'first_name', 'last_name')
    raw_id_fields = ('parent', 'user')
    readonly_fields = ('created_at', 'updated_at', 'created_by_id', 'updated_by_id')


@admin.register(Alumni)
class AlumniAdmin(admin.ModelAdmin):
    list_display = ('student', 'school', 'graduation_year', 'final_class', 'final_grade', 'outstanding_balance')
    list_filter = ('school', 'graduation_year', 'final_grade')
    search_fields = ('student__first_name', 'student__last_name', 'student__admission_number')
