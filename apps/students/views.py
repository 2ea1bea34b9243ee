# students/views.py

"""
Student register, parent/student portal and alumni endpoints.

- Staff: student list, detail and Excel export; alumni list and statistics
- Administrators: student admission, edits, withdrawal, bulk and workbook
  intake; parent records
- Parent portal: the logged-in parent's children with current-term balances
- Student portal: the logged-in student's balance and fee statement
"""

from django.core.exceptions import ValidationError
from django.http import HttpResponse
from django.utils import timezone
from django.views.decorators.http import require_GET, require_POST, require_http_methods
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
import logging

from accounts.decorators import role_required
from accounts.models import UserProfile
from utils.forms import get_form_errors_as_dict
from utils.utils import (
    paginate_queryset, pagination_meta, parse_filters, parse_json_body, snake_case_keys,
    json_success, json_error,
)
from fees.services import FeeBalanceService, LedgerService

from .models import Student, Parent
from .excel import build_student_template
from .forms import StudentForm, ParentForm, StudentImportForm
from .services import (
    StudentService, ParentService, AlumniService,
    serialize_student, serialize_parent, serialize_login, serialize_alumnus,
)

logger = logging.getLogger(__name__)

STUDENT_FILTERS = ['class', 'grade', 'status', 'search']

ADMIN_ROLES = (UserProfile.ROLE_ADMIN,)
XLSX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


def _admin_denied(request):
    profile = getattr(request.user, 'profile', None)
    if request.user.is_superuser or (profile and profile.has_role(*ADMIN_ROLES)):
        return None
    return json_error('Only administrators can manage student records', status=403)


def _read_payload(request):
    return snake_case_keys(parse_json_body(request))


# =============================================================================
# STUDENT REGISTER
# =============================================================================

@require_http_methods(["GET", "POST"])
@role_required(*UserProfile.STAFF_ROLES)
def student_list(request, school_code):
    if request.method == 'POST':
        return _create_student(request)

    filters = parse_filters(request, STUDENT_FILTERS)
    try:
        students = StudentService.list_students(
            request.school,
            class_id=filters['class'],
            grade=filters['grade'],
            status=filters['status'],
            search=filters['search'],
        )
    except ValidationError as e:
        return json_error(e.messages[0])

    page_obj, paginator = paginate_queryset(request, students, per_page=50)
    return json_success(
        [serialize_student(student) for student in page_obj],
        pagination=pagination_meta(page_obj, paginator),
    )


@require_http_methods(["GET", "PUT", "PATCH", "DELETE"])
@role_required(*UserProfile.STAFF_ROLES)
def student_detail(request, school_code, pk):
    student = StudentService.get_student(request.school, pk)
    if student is None:
        return json_error('Student not found', status=404)

    if request.method == 'GET':
        data = serialize_student(student, with_parent=True)
        data['fee_balance'] = FeeBalanceService.calculate_student_balance(student)
        return json_success(data)

    denied = _admin_denied(request)
    if denied:
        return denied

    if request.method == 'DELETE':
        StudentService.withdraw_student(student)
        return json_success(serialize_student(student), message='Student withdrawn')

    try:
        data = _read_payload(request)
    except ValueError as e:
        return json_error(str(e))

    form = StudentForm(data, school=request.school, instance=student)
    if not form.is_valid():
        return json_error('Invalid student', errors=get_form_errors_as_dict(form))

    StudentService.update_student(student, form.cleaned_data, form.submitted_fields)
    return json_success(serialize_student(student, with_parent=True), message='Student updated')


def _create_student(request):
    denied = _admin_denied(request)
    if denied:
        return denied

    try:
        data = _read_payload(request)
    except ValueError as e:
        return json_error(str(e))

    form = StudentForm(data, school=request.school)
    if not form.is_valid():
        return json_error('Invalid student', errors=get_form_errors_as_dict(form))

    try:
        result = StudentService.create_student(request.school, form.cleaned_data)
    except ValidationError as e:
        return json_error(e.messages[0])

    data = serialize_student(result['student'], with_parent=True)
    data['login'] = serialize_login(result['login'])
    data['parent_login'] = serialize_login(result['parent_login'])
    return json_success(data, status=201, message='Student admitted')


# =============================================================================
# BULK & WORKBOOK INTAKE
# =============================================================================

@require_POST
@role_required(*ADMIN_ROLES)
def student_bulk(request, school_code):
    """{"students": [{...}, ...]}; rows are numbered from 1"""
    try:
        data = parse_json_body(request)
    except ValueError as e:
        return json_error(str(e))

    rows = data.get('students')
    if not isinstance(rows, list) or not rows:
        return json_error('students must be a non-empty list')

    results = StudentService.bulk_create(request.school, enumerate(rows, start=1))
    return json_success(results, status=201 if results['created'] else 200)


@require_POST
@role_required(*ADMIN_ROLES)
def student_import(request, school_code):
    form = StudentImportForm(request.POST, request.FILES)
    if not form.is_valid():
        return json_error('Invalid upload', errors=get_form_errors_as_dict(form))

    results = StudentService.import_from_workbook(request.school, form.cleaned_data['file'])
    return json_success(results)


@require_GET
@role_required(*ADMIN_ROLES)
def student_import_template(request, school_code):
    response = HttpResponse(content_type=XLSX_CONTENT_TYPE)
    response['Content-Disposition'] = 'attachment; filename="student_import_template.xlsx"'
    build_student_template().save(response)
    return response


# =============================================================================
# PARENTS
# =============================================================================

@require_http_methods(["GET", "POST"])
@role_required(*UserProfile.STAFF_ROLES)
def parent_list(request, school_code):
    school = request.school

    if request.method == 'GET':
        parents = ParentService.list_parents(school, search=request.GET.get('search') or None)
        page_obj, paginator = paginate_queryset(request, parents, per_page=50)
        return json_success(
            [serialize_parent(parent) for parent in page_obj],
            pagination=pagination_meta(page_obj, paginator),
        )

    denied = _admin_denied(request)
    if denied:
        return denied

    try:
        data = _read_payload(request)
    except ValueError as e:
        return json_error(str(e))

    form = ParentForm(data, school=school)
    if not form.is_valid():
        return json_error('Invalid parent', errors=get_form_errors_as_dict(form))

    cleaned = form.cleaned_data
    try:
        parent, login = ParentService.create_parent(
            school,
            cleaned['first_name'],
            cleaned.get('last_name') or '',
            phone=cleaned.get('phone') or '',
            email=cleaned.get('email') or '',
            address=cleaned.get('address') or '',
            create_login=cleaned.get('create_login') is not False,
        )
    except ValidationError as e:
        return json_error(e.messages[0])

    data = serialize_parent(parent)
    data['login'] = serialize_login(login)
    return json_success(data, status=201, message='Parent added')


@require_http_methods(["GET", "PUT", "PATCH"])
@role_required(*UserProfile.STAFF_ROLES)
def parent_detail(request, school_code, pk):
    parent = ParentService.get_parent(request.school, pk)
    if parent is None:
        return json_error('Parent not found', status=404)

    if request.method == 'GET':
        return json_success(serialize_parent(parent, with_children=True))

    denied = _admin_denied(request)
    if denied:
        return denied

    try:
        data = _read_payload(request)
    except ValueError as e:
        return json_error(str(e))

    form = ParentForm(data, school=request.school, instance=parent)
    if not form.is_valid():
        return json_error('Invalid parent', errors=get_form_errors_as_dict(form))

    submitted = form.submitted_fields
    if 'name' in submitted:
        submitted += ['first_name', 'last_name']
    changes = {
        field: form.cleaned_data.get(field)
        for field in ('first_name', 'last_name', 'phone', 'email', 'address')
        if field in submitted
    }
    if not changes.get('first_name'):
        changes.pop('first_name', None)
    ParentService.update_parent(parent, **changes)
    return json_success(serialize_parent(parent, with_children=True), message='Parent updated')


@require_GET
@role_required(*UserProfile.STAFF_ROLES)
def export_students_excel(request, school_code):
    """Export the student register to Excel with filters applied"""
    school = request.school
    filters = parse_filters(request, STUDENT_FILTERS)
    try:
        students = StudentService.list_students(
            school,
            class_id=filters['class'],
            grade=filters['grade'],
            status=filters['status'],
            search=filters['search'],
        )
    except ValidationError as e:
        return json_error(e.messages[0])

    wb = Workbook()
    ws = wb.active
    ws.title = "Student Register"

    header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
    header_font = Font(bold=True, color="FFFFFF", size=12)
    header_alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
    border_style = Border(
        left=Side(style='thin', color='000000'),
        right=Side(style='thin', color='000000'),
        top=Side(style='thin', color='000000'),
        bottom=Side(style='thin', color='000000')
    )

    # Title row
    ws.merge_cells('A1:I1')
    title_cell = ws['A1']
    title_cell.value = f"{school.name} - Student Register"
    title_cell.font = Font(bold=True, size=16, color="4472C4")
    title_cell.alignment = Alignment(horizontal="center", vertical="center")

    ws.merge_cells('A2:I2')
    subtitle_cell = ws['A2']
    filter_text = f"Generated on: {timezone.localtime().strftime('%Y-%m-%d %H:%M')}"
    if filters['grade']:
        filter_text += f" | Grade: {filters['grade']}"
    if filters['search']:
        filter_text += f" | Search: {filters['search']}"
    subtitle_cell.value = filter_text
    subtitle_cell.font = Font(size=10, italic=True)
    subtitle_cell.alignment = Alignment(horizontal="center")

    ws.append([])

    headers = [
        '#', 'Admission No.', 'Full Name', 'Gender', 'Grade', 'Class',
        'Status', 'Parent', 'Parent Phone'
    ]
    ws.append(headers)
    for cell in ws[4]:
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = header_alignment
        cell.border = border_style

    count = 0
    for idx, student in enumerate(students, start=1):
        school_class = student.current_class
        parent = student.parent
        ws.append([
            idx,
            student.admission_number,
            student.get_full_name(),
            student.get_gender_display(),
            school_class.grade.name if school_class else '',
            school_class.name if school_class else 'Not Assigned',
            student.get_status_display(),
            parent.get_full_name() if parent else '',
            parent.phone if parent else '',
        ])
        for cell in ws[ws.max_row]:
            cell.border = border_style
            cell.alignment = Alignment(vertical="center", wrap_text=True)
        count = idx

    column_widths = {'A': 5, 'B': 18, 'C': 28, 'D': 10, 'E': 12, 'F': 14, 'G': 12, 'H': 25, 'I': 16}
    for col, width in column_widths.items():
        ws.column_dimensions[col].width = width

    summary_row = ws.max_row + 2
    ws[f'A{summary_row}'] = 'Total Students:'
    ws[f'C{summary_row}'] = count
    ws[f'A{summary_row}'].font = Font(bold=True)
    ws[f'C{summary_row}'].font = Font(bold=True)

    ws.freeze_panes = 'A5'

    response = HttpResponse(
        content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    )
    filename = f"students_{school.code}_{timezone.localtime().strftime('%Y%m%d_%H%M%S')}.xlsx"
    response['Content-Disposition'] = f'attachment; filename="{filename}"'

    wb.save(response)
    return response


# =============================================================================
# PARENT & STUDENT PORTALS
# =============================================================================

@require_GET
@role_required(UserProfile.ROLE_PARENT)
def parent_children(request, school_code):
    parent = Parent.all_objects.filter(school=request.school, user=request.user).first()
    if parent is None:
        return json_error('No parent record is linked to this account', status=404)

    children = []
    for student in StudentService.children_of(parent):
        data = serialize_student(student)
        data['fee_balance'] = FeeBalanceService.calculate_student_balance(student)
        children.append(data)

    return json_success({
        'parent': {'id': str(parent.pk), 'name': parent.get_full_name()},
        'children': children,
    })


@require_GET
@role_required(UserProfile.ROLE_PARENT)
def parent_child_statement(request, school_code, pk):
    parent = Parent.all_objects.filter(school=request.school, user=request.user).first()
    student = Student.all_objects.filter(school=request.school, pk=pk).first()

    if parent is None or student is None or student.parent_id != parent.pk:
        return json_error('Student not found', status=404)

    statement = LedgerService.student_statement(student, filter_year=request.GET.get('academicYear'))
    return json_success(statement)


@require_GET
@role_required(UserProfile.ROLE_STUDENT)
def student_portal(request, school_code):
    student = Student.all_objects.filter(school=request.school, user=request.user).select_related(
        'current_class', 'current_class__grade', 'current_class__academic_year'
    ).first()
    if student is None:
        return json_error('No student record is linked to this account', status=404)

    data = serialize_student(student)
    data['fee_balance'] = FeeBalanceService.calculate_student_balance(student)
    data['statement'] = LedgerService.student_statement(student, filter_year=request.GET.get('academicYear'))
    return json_success(data)


# =============================================================================
# ALUMNI
# =============================================================================

@require_GET
@role_required(*UserProfile.STAFF_ROLES)
def alumni_list(request, school_code):
    filters = parse_filters(request, ['year', 'search'])
    alumni = AlumniService.list_alumni(request.school, year=filters['year'], search=filters['search'])

    if request.GET.get('group') == 'year':
        groups = AlumniService.group_by_year(request.school)
        return json_success([
            {'year': year, 'alumni': [serialize_alumnus(alumnus) for alumnus in members]}
            for year, members in groups.items()
        ])

    page_obj, paginator = paginate_queryset(request, alumni, per_page=50)
    return json_success(
        [serialize_alumnus(alumnus) for alumnus in page_obj],
        pagination=pagination_meta(page_obj, paginator),
    )


@require_GET
@role_required(*UserProfile.STAFF_ROLES)
def alumni_statistics(request, school_code):
    return json_success(AlumniService.get_statistics(request.school))
