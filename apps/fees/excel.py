# fees/excel.py

"""
Excel import/export for fees (openpyxl).

- Fee structure template and import
- Fee structure export
- Student balances report
"""

from django.utils import timezone
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils import get_column_letter
from datetime import datetime, date
import logging

from .services import FEE_ITEMS, get_default_fee_breakdown

logger = logging.getLogger(__name__)

XLSX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

FIXED_COLUMNS = ('Grade', 'Academic Year', 'Term')
DUE_DATE_COLUMN = 'Due Date'
IGNORED_COLUMNS = ('Total', '#')

HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_FONT = Font(bold=True, color="FFFFFF", size=12)
HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center", wrap_text=True)
BORDER = Border(
    left=Side(style='thin', color='000000'),
    right=Side(style='thin', color='000000'),
    top=Side(style='thin', color='000000'),
    bottom=Side(style='thin', color='000000')
)


def _style_header(ws, row_number):
    for cell in ws[row_number]:
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.alignment = HEADER_ALIGNMENT
        cell.border = BORDER


def _style_row(ws, row_number):
    for cell in ws[row_number]:
        cell.border = BORDER
        cell.alignment = Alignment(vertical="center")


def _set_widths(ws, widths):
    for index, width in enumerate(widths, start=1):
        ws.column_dimensions[get_column_letter(index)].width = width


def _title(ws, title, subtitle, columns):
    last = get_column_letter(columns)
    ws.merge_cells(f'A1:{last}1')
    ws['A1'] = title
    ws['A1'].font = Font(bold=True, size=16, color="4472C4")
    ws['A1'].alignment = Alignment(horizontal="center", vertical="center")

    ws.merge_cells(f'A2:{last}2')
    ws['A2'] = subtitle
    ws['A2'].font = Font(size=10, italic=True)
    ws['A2'].alignment = Alignment(horizontal="center")

    ws.append([])


# =============================================================================
# FEE STRUCTURE TEMPLATE & EXPORT
# =============================================================================

def fee_structure_headers(items=FEE_ITEMS):
    return list(FIXED_COLUMNS) + [item.title() for item in items] + [DUE_DATE_COLUMN]


def build_fee_template():
    """Blank import template with one example row per default grade"""
    wb = Workbook()
    ws = wb.active
    ws.title = "Fee Structures"

    items = list(FEE_ITEMS) + ['exam']
    headers = fee_structure_headers(items)
    ws.append(headers)
    _style_header(ws, 1)

    year = str(timezone.localdate().year)
    for number in range(1, 7):
        grade_name = f"Grade {number}"
        breakdown = get_default_fee_breakdown(grade_name)
        ws.append(
            [grade_name, year, 'Term 1']
            + [breakdown.get(item, 0) for item in items]
            + ['']
        )
        _style_row(ws, ws.max_row)

    _set_widths(ws, [14, 14, 10] + [13] * len(items) + [14])
    ws.freeze_panes = 'A2'

    notes = wb.create_sheet("Instructions")
    for line in (
        "One row per grade and term.",
        "Term must be Term 1, Term 2 or Term 3.",
        "Add a column for any extra fee item; empty cells count as zero.",
        "Due Date is optional (YYYY-MM-DD).",
    ):
        notes.append([line])
    notes.column_dimensions['A'].width = 70

    return wb


def build_fee_structures_workbook(school, structures):
    structures = list(structures)
    items = []
    for structure in structures:
        for item in (structure.breakdown or {}):
            if item not in items:
                items.append(item)

    wb = Workbook()
    ws = wb.active
    ws.title = "Fee Structures"

    headers = fee_structure_headers(items) + ['Total']
    _title(
        ws,
        f"{school.name} - Fee Structures",
        f"Generated on: {timezone.localtime().strftime('%Y-%m-%d %H:%M')}",
        len(headers),
    )
    ws.append(headers)
    _style_header(ws, ws.max_row)

    for structure in structures:
        breakdown = structure.breakdown or {}
        ws.append(
            [structure.grade.name, structure.academic_year.name, structure.term.name]
            + [breakdown.get(item, 0) for item in items]
            + [structure.due_date.isoformat() if structure.due_date else '', float(structure.total_amount)]
        )
        _style_row(ws, ws.max_row)

    _set_widths(ws, [14, 14, 10] + [13] * len(items) + [14, 14])
    ws.freeze_panes = 'A5'
    return wb


# =============================================================================
# FEE STRUCTURE IMPORT
# =============================================================================

def _cell_text(value):
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _cell_date(value):
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), '%Y-%m-%d').date()
    except ValueError:
        return None


def read_fee_structure_rows(file):
    """
    Yield (row_number, row) for each filled data row of the first sheet.

    ``row`` holds grade, academic_year, term, breakdown and due_date.
    The header row is the first row whose first cell reads "Grade".
    """
    wb = load_workbook(file, data_only=True, read_only=True)
    ws = wb.worksheets[0]

    headers = None
    for row_number, values in enumerate(ws.iter_rows(values_only=True), start=1):
        if headers is None:
            if values and _cell_text(values[0]).lower() == 'grade':
                headers = [_cell_text(value) for value in values]
            continue

        if not values or all(value in (None, '') for value in values):
            continue

        row = {'breakdown': {}, 'due_date': None}
        for header, value in zip(headers, values):
            if header == 'Grade':
                row['grade'] = _cell_text(value)
            elif header == 'Academic Year':
                row['academic_year'] = _cell_text(value)
            elif header == 'Term':
                row['term'] = _cell_text(value)
            elif header == DUE_DATE_COLUMN:
                row['due_date'] = _cell_date(value)
            elif header and header not in IGNORED_COLUMNS:
                row['breakdown'][header.lower()] = value if value not in (None, '') else 0

        yield row_number, row

    wb.close()

    if headers is None:
        logger.warning("Fee structure workbook has no 'Grade' header row")


# =============================================================================
# BALANCES REPORT
# =============================================================================

def build_balances_workbook(school, balances):
    """Workbook for the result of FeeBalanceService.get_school_balances"""
    wb = Workbook()
    ws = wb.active
    ws.title = "Fee Balances"

    headers = ['#', 'Admission No.', 'Student', 'Grade', 'Class', 'Required', 'Paid', 'Balance', 'Parent Phone']
    _title(
        ws,
        f"{school.name} - Fee Balances ({balances['term']} {balances['academicYear']})",
        f"Generated on: {timezone.localtime().strftime('%Y-%m-%d %H:%M')} | Currency: {school.receipt_currency}",
        len(headers),
    )
    ws.append(headers)
    _style_header(ws, ws.max_row)

    for idx, row in enumerate(balances['students'], start=1):
        ws.append([
            idx,
            row['admissionNumber'],
            row['name'],
            row['gradeName'],
            row['className'],
            row['totalFeeRequired'],
            row['totalPaid'],
            row['balance'],
            row['parent']['phone'] if row['parent'] else '',
        ])
        _style_row(ws, ws.max_row)
        if row['balance'] > 0:
            ws.cell(row=ws.max_row, column=8).font = Font(bold=True, color="C00000")

    summary = balances['summary']
    summary_row = ws.max_row + 2
    for offset, (label, value) in enumerate((
        ('Total Students:', summary['totalStudents']),
        ('Total Required:', summary['totalFeesRequired']),
        ('Total Collected:', summary['totalFeesCollected']),
        ('Total Outstanding:', summary['totalOutstanding']),
        ('Students With Balances:', summary['studentsWithOutstanding']),
    )):
        ws[f'B{summary_row + offset}'] = label
        ws[f'C{summary_row + offset}'] = value
        ws[f'B{summary_row + offset}'].font = Font(bold=True)

    _set_widths(ws, [5, 18, 28, 12, 14, 13, 13, 13, 16])
    ws.freeze_panes = 'A5'
    return wb
