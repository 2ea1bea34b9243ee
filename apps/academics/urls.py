# academics/urls.py

from django.urls import path
from . import views

app_name = 'academics'

urlpatterns = [
    # =============================================================================
    # ACADEMIC YEARS & TERMS
    # =============================================================================
    path('academic-years/', views.academic_year_list, name='academic_year_list'),
    path('academic-years/current/', views.current_academic_year, name='current_academic_year'),
    path('academic-years/<uuid:pk>/set-current/', views.academic_year_set_current, name='academic_year_set_current'),
    path('academic-years/<uuid:pk>/terms/', views.term_list, name='term_list'),
    path('academic-years/<uuid:pk>/terms/<str:term_name>/set-current/', views.term_set_current, name='term_set_current'),

    # =============================================================================
    # GRADES & CLASSES
    # =============================================================================
    path('grades/', views.grade_list, name='grade_list'),
    path('grades/seed/', views.grade_seed, name='grade_seed'),
    path('classes/', views.class_list, name='class_list'),
    path('progression/', views.progression, name='progression'),
]
