# fees/admin.py

from django.contrib import admin
from .models import TermlyFeeStructure, Payment, Receipt, FeeCarryForward, StudentArrears


@admin.register(TermlyFeeStructure)
class TermlyFeeStructureAdmin(admin.ModelAdmin):
    list_display = ('grade', 'academic_year', 'term', 'total_amount', 'due_date', 'is_active', 'is_released')
    list_filter = ('school', 'academic_year', 'term__name', 'is_active', 'is_released')
    search_fields = ('grade__name',)


class ReceiptInline(admin.StackedInline):
    model = Receipt
    extra = 0
    can_delete = False
    readonly_fields = ('receipt_number', 'amount', 'balance_before', 'balance_after', 'currency')
    fields = readonly_fields


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ('receipt_number', 'student', 'amount', 'payment_method', 'academic_year', 'term', 'payment_date', 'received_by')
    list_filter = ('school', 'payment_method', 'status', 'academic_year')
    search_fields = ('receipt_number', 'reference_number', 'student__admission_number', 'student__last_name')
    date_hierarchy = 'payment_date'
    raw_id_fields = ('student',)
    inlines = (ReceiptInline,)


@admin.register(FeeCarryForward)
class FeeCarryForwardAdmin(admin.ModelAdmin):
    list_display = ('reference', 'student', 'amount', 'from_academic_year', 'to_academic_year', 'carried_on')
    list_filter = ('school', 'to_academic_year')
    search_fields = ('reference', 'student__admission_number')


@admin.register(StudentArrears)
class StudentArrearsAdmin(admin.ModelAdmin):
    list_display = ('student', 'academic_year', 'arrear_amount', 'is_carried_forward')
    list_filter = ('school', 'academic_year', 'is_carried_forward')
