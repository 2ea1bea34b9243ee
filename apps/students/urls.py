# students/urls.py

from django.urls import path
from . import views

app_name = 'students'

urlpatterns = [
    # =============================================================================
    # STUDENT REGISTER
    # =============================================================================
    path('students/', views.student_list, name='student_list'),
    path('students/export/', views.export_students_excel, name='student_export'),
    path('students/bulk/', views.student_bulk, name='student_bulk'),
    path('students/import/', views.student_import, name='student_import'),
    path('students/import/template/', views.student_import_template, name='student_import_template'),
    path('students/<uuid:pk>/', views.student_detail, name='student_detail'),

    # =============================================================================
    # PARENTS
    # =============================================================================
    path('parents/', views.parent_list, name='parent_list'),
    path('parents/<uuid:pk>/', views.parent_detail, name='parent_detail'),

    # =============================================================================
    # PORTALS
    # =============================================================================
    path('parent/children/', views.parent_children, name='parent_children'),
    path('parent/children/<uuid:pk>/statement/', views.parent_child_statement, name='parent_child_statement'),
    path('student/me/', views.student_portal, name='student_portal'),

    # =============================================================================
    # ALUMNI
    # =============================================================================
    path('alumni/', views.alumni_list, name='alumni_list'),
    path('alumni/statistics/', views.alumni_statistics, name='alumni_statistics'),
]
