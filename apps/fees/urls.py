# fees/urls.py

from django.urls import path
from . import views

app_name = 'fees'

urlpatterns = [
    # =============================================================================
    # BURSAR CONSOLE
    # =============================================================================
    path('bursar/payments/', views.bursar_payments, name='bursar_payments'),
    path('bursar/students/', views.bursar_students, name='bursar_students'),

    # =============================================================================
    # RECEIPTS
    # =============================================================================
    path('receipts/<str:receipt_number>/', views.receipt_detail, name='receipt_detail'),
    path('receipts/<str:receipt_number>/download/', views.receipt_download, name='receipt_download'),

    # =============================================================================
    # FEE STRUCTURES
    # =============================================================================
    path('fee-structure/', views.fee_structure, name='fee_structure'),
    path('fee-structure/import/', views.fee_structure_import, name='fee_structure_import'),
    path('fee-structure/template/', views.fee_structure_template, name='fee_structure_template'),
    path('fee-structure/export/', views.fee_structure_export, name='fee_structure_export'),

    # =============================================================================
    # BALANCES & STATEMENTS
    # =============================================================================
    path('students/balances/', views.student_balances, name='student_balances'),
    path('students/<uuid:pk>/fee-statement/', views.fee_statement, name='fee_statement'),
    path('students/<uuid:pk>/fee-statement/pdf/', views.fee_statement_pdf, name='fee_statement_pdf'),
]
