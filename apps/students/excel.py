# students/excel.py

"""
Student register import (openpyxl).

The first sheet holds one student per row below a header row. Column names
are matched case-insensitively; unknown columns are ignored.
"""

from django.utils import timezone
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font, PatternFill, Alignment
from datetime import datetime
import logging

logger = logging.getLogger(__name__)

# Workbook column -> StudentForm field
IMPORT_COLUMNS = {
    'admission number': 'admission_number',
    'name': 'name',
    'first name': 'first_name',
    'middle name': 'middle_name',
    'last name': 'last_name',
    'gender': 'gender',
    'date of birth': 'date_of_birth',
    'admission date': 'admission_date',
    'class': 'class_name',
    'grade': 'class_name',
    'parent name': 'parent_name',
    'parent phone': 'parent_phone',
    'parent email': 'parent_email',
    'student email': 'email',
    'average score': 'average_score',
    'status': 'status',
}

TEMPLATE_HEADERS = [
    'Admission Number', 'First Name', 'Middle Name', 'Last Name', 'Gender',
    'Date of Birth', 'Class', 'Parent Name', 'Parent Phone', 'Parent Email',
]


def _cell_value(value):
    if value is None:
        return ''
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, str):
        return value.strip()
    return str(value) if isinstance(value, int) else value


def read_student_rows(file):
    """
    Yield (row_number, row) for each filled data row.

    ``row`` maps StudentForm field names to cell values; the header row is
    the first row naming at least one known column.
    """
    wb = load_workbook(file, data_only=True, read_only=True)
    ws = wb.worksheets[0]

    fields = None
    for row_number, values in enumerate(ws.iter_rows(values_only=True), start=1):
        if fields is None:
            headers = [str(value).strip().lower() if value is not None else '' for value in (values or ())]
            if any(header in IMPORT_COLUMNS for header in headers):
                fields = [IMPORT_COLUMNS.get(header) for header in headers]
            continue

        if not values or all(value in (None, '') for value in values):
            continue

        row = {}
        for field, value in zip(fields, values):
            if field and value not in (None, '') and not row.get(field):
                row[field] = _cell_value(value)

        yield row_number, row

    wb.close()

    if fields is None:
        logger.warning("Student workbook has no recognisable header row")


def build_student_template():
    """Blank import workbook with the expected headers and one example row"""
    wb = Workbook()
    ws = wb.active
    ws.title = "Students"

    ws.append(TEMPLATE_HEADERS)
    for cell in ws[1]:
        cell.fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
        cell.font = Font(bold=True, color="FFFFFF", size=12)
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)

    ws.append([
        '', 'Amina', '', 'Otieno', 'F', '2017-03-14', 'Grade 1',
        'Mary Otieno', '+254711111111', 'mary.otieno@example.com',
    ])

    for index, width in enumerate([18, 16, 16, 16, 10, 14, 12, 22, 16, 28]):
        ws.column_dimensions[chr(ord('A') + index)].width = width
    ws.freeze_panes = 'A2'

    notes = wb.create_sheet("Instructions")
    for line in (
        "One student per row.",
        "Leave Admission Number empty to have it generated.",
        "Class is a class name (e.g. Grade 1A) or a grade name (e.g. Grade 1).",
        "Gender is M or F. Dates use YYYY-MM-DD.",
        "Parents are matched by phone or email and created when new.",
        f"Template generated on {timezone.localdate().isoformat()}.",
    ):
        notes.append([line])
    notes.column_dimensions['A'].width = 70

    return wb
