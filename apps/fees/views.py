# fees/views.py

"""
Fee endpoints.

Bursar console:
    POST bursar/payments/                 record a manual payment
    GET  bursar/payments/?studentId=...   payment history
    GET  bursar/students/                 students with balances

Receipts and statements:
    GET  receipts/<number>/               receipt JSON
    GET  receipts/<number>/download/      receipt PDF (?size=A3|A4|A5)
    GET  students/<id>/fee-statement/     ledger JSON (?academicYear=)
    GET  students/<id>/fee-statement/pdf/ ledger PDF

Fee structures and reports:
    GET|POST fee-structure/, POST fee-structure/import/,
    GET fee-structure/template/, GET fee-structure/export/,
    GET students/balances/ (?format=xlsx)
"""

from django.http import HttpResponse
from django.core.exceptions import ValidationError
from django.utils import timezone
from django.views.decorators.http import require_GET, require_POST, require_http_methods
import logging

from accounts.decorators import role_required, get_profile
from accounts.models import UserProfile
from academics.models import AcademicYear, Term, Grade, normalize_term_name
from students.models import Student
from utils.forms import get_form_errors_as_dict
from utils.utils import parse_json_body, parse_filters, snake_case_keys, json_success, json_error

from .excel import (
    XLSX_CONTENT_TYPE,
    build_balances_workbook,
)
from .forms import PaymentForm, FeeStructureForm, FeeStructureImportForm
from .models import Receipt
from .pdf import render_receipt_pdf, render_statement_pdf
from .services import (
    FeeStructureService, FeeBalanceService, LedgerService,
    serialize_fee_structure, serialize_payment, serialize_receipt,
)

logger = logging.getLogger(__name__)

FINANCE_ROLES = UserProfile.FINANCE_ROLES


# =============================================================================
# ACCESS HELPERS
# =============================================================================

def _can_view_student(request, student):
    """Finance/staff roles, the student's parent, or the student"""
    user = request.user
    if user.is_superuser:
        return True

    profile = get_profile(user)
    if profile is None:
        return False
    if profile.has_role(*UserProfile.STAFF_ROLES):
        return True
    if profile.role == UserProfile.ROLE_PARENT:
        return bool(student.parent_id and student.parent.user_id == user.pk)
    if profile.role == UserProfile.ROLE_STUDENT:
        return student.user_id == user.pk
    return False


def _xlsx_response(workbook, filename):
    response = HttpResponse(content_type=XLSX_CONTENT_TYPE)
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    workbook.save(response)
    return response


def _pdf_response(pdf, filename, inline=False):
    response = HttpResponse(pdf, content_type='application/pdf')
    disposition = 'inline' if inline else 'attachment'
    response['Content-Disposition'] = f'{disposition}; filename="{filename}"'
    return response


def _received_by(request, value):
    if value:
        return value
    return request.user.get_full_name() or request.user.username


# =============================================================================
# BURSAR PAYMENTS
# =============================================================================

@require_http_methods(["GET", "POST"])
@role_required(*FINANCE_ROLES)
def bursar_payments(request, school_code):
    school = request.school

    if request.method == 'GET':
        student_id = request.GET.get('studentId')
        if not student_id:
            return json_error('studentId is required')

        try:
            student = Student.all_objects.filter(school=school, pk=student_id).first()
            if student is None:
                return json_error('Student not found', status=404)

            history = FeeBalanceService.get_payment_history(
                student,
                academic_year=request.GET.get('academicYear') or None,
                term=request.GET.get('term') or None,
            )
        except ValidationError as e:
            return json_error(e.messages[0])

        return json_success(history)

    try:
        data = snake_case_keys(parse_json_body(request))
    except ValueError as e:
        return json_error(str(e))

    form = PaymentForm(data, school=school)
    if not form.is_valid():
        errors = get_form_errors_as_dict(form)
        if errors.get('student_id') == ['Student not found.']:
            return json_error('Student not found', status=404)
        return json_error('Invalid payment', errors=errors)

    cleaned = form.cleaned_data
    try:
        result = FeeBalanceService.record_payment(
            cleaned['student'],
            cleaned['amount'],
            cleaned['academic_year'],
            cleaned['term'],
            cleaned['payment_method'],
            _received_by(request, cleaned.get('received_by')),
            description=cleaned.get('description') or None,
            reference_number=cleaned.get('reference_number') or None,
        )
    except ValidationError as e:
        return json_error(e.messages[0])

    return json_success(
        {
            'payment': serialize_payment(result['payment']),
            'receipt': serialize_receipt(result['receipt']),
            'updated_balance': result['updated_balance'],
        },
        status=201,
        message='Payment recorded successfully',
    )


@require_GET
@role_required(*FINANCE_ROLES)
def bursar_students(request, school_code):
    filters = parse_filters(request, ['academicYear', 'term', 'grade', 'search'])
    grade = None
    if filters['grade']:
        grade = Grade.all_objects.filter(school=request.school, name__iexact=filters['grade']).first()
        if grade is None:
            return json_error('Grade not found', status=404)

    try:
        balances = FeeBalanceService.get_school_balances(
            request.school,
            academic_year=filters['academicYear'],
            term=filters['term'],
            grade=grade,
            search=filters['search'],
        )
    except ValidationError as e:
        return json_error(e.messages[0])

    return json_success(balances)


# =============================================================================
# RECEIPTS
# =============================================================================

def _get_receipt(request, receipt_number):
    return Receipt.all_objects.filter(
        school=request.school, receipt_number=receipt_number
    ).select_related('student', 'student__parent', 'student__current_class', 'school').first()


@require_GET
@role_required()
def receipt_detail(request, school_code, receipt_number):
    receipt = _get_receipt(request, receipt_number)
    if receipt is None or not _can_view_student(request, receipt.student):
        return json_error('Receipt not found', status=404)

    data = serialize_receipt(receipt)
    data['school'] = {
        'name': request.school.name,
        'address': request.school.address,
        'phone': request.school.phone,
        'email': request.school.email,
    }
    return json_success(data)


@require_GET
@role_required()
def receipt_download(request, school_code, receipt_number):
    receipt = _get_receipt(request, receipt_number)
    if receipt is None or not _can_view_student(request, receipt.student):
        return json_error('Receipt not found', status=404)

    try:
        pdf = render_receipt_pdf(receipt, size=request.GET.get('size'))
    except ValueError as e:
        return json_error(str(e))

    return _pdf_response(pdf, f"receipt_{receipt.receipt_number}.pdf", inline=request.GET.get('inline') == '1')


# =============================================================================
# FEE STATEMENTS
# =============================================================================

def _statement_for(request, pk):
    student = Student.all_objects.filter(school=request.school, pk=pk).select_related(
        'current_class', 'current_class__grade', 'current_class__academic_year', 'parent'
    ).first()
    if student is None or not _can_view_student(request, student):
        return None, None
    return student, LedgerService.student_statement(student, filter_year=request.GET.get('academicYear') or None)


@require_GET
@role_required()
def fee_statement(request, school_code, pk):
    student, statement = _statement_for(request, pk)
    if student is None:
        return json_error('Student not found', status=404)
    return json_success(statement)


@require_GET
@role_required()
def fee_statement_pdf(request, school_code, pk):
    student, statement = _statement_for(request, pk)
    if student is None:
        return json_error('Student not found', status=404)

    pdf = render_statement_pdf(request.school, statement)
    return _pdf_response(pdf, f"fee_statement_{student.admission_number.replace('/', '-')}.pdf")


# =============================================================================
# FEE STRUCTURES
# =============================================================================

@require_http_methods(["GET", "POST"])
@role_required(*UserProfile.STAFF_ROLES)
def fee_structure(request, school_code):
    school = request.school

    if request.method == 'GET':
        filters = parse_filters(request, ['academicYear', 'term', 'grade'])
        grade = None
        if filters['grade']:
            grade = Grade.all_objects.filter(school=school, name__iexact=filters['grade']).first()
            if grade is None:
                return json_error('Grade not found', status=404)

        try:
            # A single grade/year/term answers with the default table when nothing is stored
            if grade and filters['academicYear'] and filters['term']:
                year = AcademicYear.all_objects.filter(school=school, name=filters['academicYear']).first()
                term = Term.all_objects.filter(
                    academic_year=year, name=normalize_term_name(filters['term'])
                ).first() if year else None
                if year is None or term is None:
                    return json_error('Academic year or term not found', status=404)
                structure = FeeStructureService.get_for_grade(school, grade, year, term)
                return json_success(serialize_fee_structure(structure))

            structures = FeeStructureService.list_structures(
                school,
                academic_year_name=filters['academicYear'],
                term_name=filters['term'],
                grade=grade,
            )
        except ValidationError as e:
            return json_error(e.messages[0])

        return json_success([serialize_fee_structure(structure) for structure in structures])

    profile = get_profile(request.user)
    if not request.user.is_superuser and not (profile and profile.has_role(*FINANCE_ROLES)):
        return json_error('You do not have permission to perform this action', status=403)

    try:
        data = snake_case_keys(parse_json_body(request))
    except ValueError as e:
        return json_error(str(e))

    form = FeeStructureForm(data, school=school)
    if not form.is_valid():
        return json_error('Invalid fee structure', errors=get_form_errors_as_dict(form))

    cleaned = form.cleaned_data
    try:
        structure, created = FeeStructureService.save_structure(
            school,
            cleaned['grade_obj'],
            cleaned['academic_year'],
            cleaned['term'],
            breakdown=cleaned.get('breakdown'),
            total_amount=cleaned.get('total_amount'),
            due_date=cleaned.get('due_date'),
            is_released=cleaned.get('is_released', False),
        )
    except ValidationError as e:
        return json_error(e.messages[0])

    return json_success(serialize_fee_structure(structure), status=201 if created else 200)


@require_POST
@role_required(*FINANCE_ROLES)
def fee_structure_import(request, school_code):
    form = FeeStructureImportForm(request.POST, request.FILES)
    if not form.is_valid():
        return json_error('Invalid upload', errors=get_form_errors_as_dict(form))

    results = FeeStructureService.import_from_workbook(request.school, form.cleaned_data['file'])
    return json_success(results)


@require_GET
@role_required(*FINANCE_ROLES)
def fee_structure_template(request, school_code):
    return _xlsx_response(FeeStructureService.export_template(), "fee_structure_template.xlsx")


@require_GET
@role_required(*FINANCE_ROLES)
def fee_structure_export(request, school_code):
    workbook = FeeStructureService.export_structures(request.school)
    filename = f"fee_structures_{request.school.code}_{timezone.localtime().strftime('%Y%m%d_%H%M%S')}.xlsx"
    return _xlsx_response(workbook, filename)


# =============================================================================
# BALANCES REPORT
# =============================================================================

@require_GET
@role_required(*FINANCE_ROLES)
def student_balances(request, school_code):
    filters = parse_filters(request, ['academicYear', 'term', 'grade', 'gradeId'])

    try:
        grade = None
        grades = Grade.all_objects.filter(school=request.school)
        if filters['gradeId']:
            grade = grades.filter(pk=filters['gradeId']).first()
        elif filters['grade']:
            grade = grades.filter(name__iexact=filters['grade']).first()
        if (filters['gradeId'] or filters['grade']) and grade is None:
            return json_error('Grade not found', status=404)

        balances = FeeBalanceService.get_school_balances(
            request.school,
            academic_year=filters['academicYear'],
            term=filters['term'],
            grade=grade,
        )
    except ValidationError as e:
        return json_error(e.messages[0])

    if request.GET.get('format') == 'xlsx':
        workbook = build_balances_workbook(request.school, balances)
        filename = f"fee_balances_{request.school.code}_{balances['academicYear']}_{balances['term'].replace(' ', '')}.xlsx"
        return _xlsx_response(workbook, filename)

    return json_success(balances)
