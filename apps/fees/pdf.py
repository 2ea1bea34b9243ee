# fees/pdf.py

"""
PDF documents for fees (reportlab): payment receipts and fee statements.
"""

from django.utils import timezone
from django.utils.html import escape
from reportlab.lib import colors
from reportlab.lib.pagesizes import A3, A4, A5
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.lib.enums import TA_CENTER
from io import BytesIO
import logging

from core.utils import format_money

logger = logging.getLogger(__name__)

PAGE_SIZES = {
    'A3': A3,
    'A4': A4,
    'A5': A5,
}

DEFAULT_PAGE_SIZE = 'A4'

BRAND_COLOR = '#4472C4'


def resolve_page_size(size=None):
    """
    Page size name to a reportlab size; blank means A4.

    Raises:
        ValueError: unsupported size
    """
    name = (size or DEFAULT_PAGE_SIZE).strip().upper()
    if name not in PAGE_SIZES:
        raise ValueError(f"Unsupported page size '{size}'. Use A3, A4 or A5.")
    return name, PAGE_SIZES[name]


def _styles(scale=1.0):
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'SchoolTitle',
        parent=styles['Heading1'],
        fontSize=20 * scale,
        leading=24 * scale,
        textColor=colors.HexColor(BRAND_COLOR),
        spaceAfter=4,
        alignment=TA_CENTER,
    )
    heading_style = ParagraphStyle(
        'DocumentHeading',
        parent=styles['Heading2'],
        fontSize=14 * scale,
        leading=18 * scale,
        spaceAfter=10,
        alignment=TA_CENTER,
    )
    subtitle_style = ParagraphStyle(
        'DocumentSubtitle',
        parent=styles['Normal'],
        fontSize=9 * scale,
        textColor=colors.grey,
        spaceAfter=12,
        alignment=TA_CENTER,
    )
    return styles, title_style, heading_style, subtitle_style


def _school_header(school, heading, scale=1.0):
    styles, title_style, heading_style, subtitle_style = _styles(scale)
    elements = [Paragraph(escape(school.name), title_style)]

    contact = ' | '.join(part for part in (school.address, school.phone, school.email) if part)
    if contact:
        elements.append(Paragraph(escape(contact), subtitle_style))
    if school.motto:
        elements.append(Paragraph(f"<i>{escape(school.motto)}</i>", subtitle_style))

    elements.append(Paragraph(heading, heading_style))
    return elements, styles


# =============================================================================
# RECEIPT
# =============================================================================

def render_receipt_pdf(receipt, size=None):
    """
    Render a payment receipt.

    Returns:
        bytes: PDF document
    """
    size_name, page_size = resolve_page_size(size)
    scale = {'A3': 1.3, 'A4': 1.0, 'A5': 0.8}[size_name]

    school = receipt.school
    student = receipt.student
    currency = receipt.currency or school.receipt_currency

    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=page_size,
        rightMargin=30,
        leftMargin=30,
        topMargin=30,
        bottomMargin=18,
        title=f"Receipt {receipt.receipt_number}",
    )

    elements, styles = _school_header(school, "PAYMENT RECEIPT", scale)

    payment_date = timezone.localtime(receipt.payment_date) if timezone.is_aware(receipt.payment_date) else receipt.payment_date
    student_class = student.current_class.name if student.current_class_id else 'N/A'

    data = [
        ['Receipt Number', receipt.receipt_number],
        ['Date', payment_date.strftime('%d %b %Y %H:%M')],
        ['Student', student.get_full_name()],
        ['Admission Number', student.admission_number],
        ['Class', student_class],
        ['Amount Paid', format_money(receipt.amount, currency)],
        ['Payment Method', receipt.payment_method.title()],
        ['Academic Year', receipt.academic_year_name],
        ['Term', receipt.term_name],
        ['Balance Before', format_money(receipt.balance_before, currency)],
        ['Balance After', format_money(receipt.balance_after, currency)],
        ['Reference', receipt.reference_number or '-'],
        ['Received By', receipt.received_by or '-'],
    ]

    usable_width = page_size[0] - 60
    table = Table(data, colWidths=[usable_width * 0.38, usable_width * 0.62])
    table.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTNAME', (1, 0), (1, -1), 'Helvetica'),
        ('FONTSIZE', (0, 0), (-1, -1), 10 * scale),
        ('BACKGROUND', (0, 0), (0, -1), colors.HexColor('#F5F5F5')),
        ('BACKGROUND', (0, 5), (-1, 5), colors.HexColor('#E2EFDA')),
        ('FONTNAME', (1, 5), (1, 5), 'Helvetica-Bold'),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 6 * scale),
        ('TOPPADDING', (0, 0), (-1, -1), 6 * scale),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
    ]))
    elements.append(table)

    elements.append(Spacer(1, 0.3 * inch))
    elements.append(Paragraph(
        f"Generated on {timezone.localtime().strftime('%Y-%m-%d %H:%M')}. Thank you for your payment.",
        styles['Normal'],
    ))

    doc.build(elements)
    pdf = buffer.getvalue()
    buffer.close()

    logger.info(f"Rendered {size_name} receipt {receipt.receipt_number}")
    return pdf


# =============================================================================
# FEE STATEMENT
# =============================================================================

def render_statement_pdf(school, statement):
    """
    Render the dict produced by LedgerService.student_statement.

    Returns:
        bytes: PDF document
    """
    currency = statement.get('currency') or school.receipt_currency
    student = statement['student']

    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=24,
        leftMargin=24,
        topMargin=30,
        bottomMargin=18,
        title=f"Fee Statement {student['admission_number']}",
    )

    elements, styles = _school_header(school, "FEE STATEMENT")

    period = statement['academic_year'] or 'All Years'
    elements.append(Paragraph(
        f"<b>Student:</b> {escape(student['name'])} &nbsp; "
        f"<b>Adm No:</b> {escape(student['admission_number'])} &nbsp; "
        f"<b>Class:</b> {escape(student['class'] or 'N/A')} &nbsp; "
        f"<b>Period:</b> {escape(period)}",
        styles['Normal'],
    ))
    elements.append(Spacer(1, 0.2 * inch))

    data = [['#', 'Date', 'Ref', 'Description', 'Debit', 'Credit', 'Balance']]
    for entry in statement['entries']:
        data.append([
            str(entry['no']),
            entry['date'] or '',
            (entry['reference'] or '')[:18],
            Paragraph(escape(entry['description']), styles['BodyText']),
            format_money(entry['debit'], include_symbol=False) if entry['debit'] else '',
            format_money(entry['credit'], include_symbol=False) if entry['credit'] else '',
            format_money(entry['balance'], include_symbol=False),
        ])

    data.append([
        '', '', '', 'TOTALS',
        format_money(statement['total_debit'], include_symbol=False),
        format_money(statement['total_credit'], include_symbol=False),
        format_money(statement['outstanding'], include_symbol=False),
    ])

    table = Table(data, colWidths=[
        0.35 * inch,
        0.85 * inch,
        1.2 * inch,
        2.3 * inch,
        0.9 * inch,
        0.9 * inch,
        0.95 * inch,
    ], repeatRows=1)
    table.setStyle(TableStyle([
        # Header
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor(BRAND_COLOR)),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('ALIGN', (0, 0), (-1, 0), 'CENTER'),

        # Data rows
        ('FONTNAME', (0, 1), (-1, -1), 'Helvetica'),
        ('FONTSIZE', (0, 0), (-1, -1), 8),
        ('ALIGN', (4, 1), (-1, -1), 'RIGHT'),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('ROWBACKGROUNDS', (0, 1), (-1, -2), [colors.white, colors.HexColor('#F5F5F5')]),

        # Totals
        ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
        ('BACKGROUND', (0, -1), (-1, -1), colors.HexColor('#DDEBF7')),

        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
    ]))
    elements.append(table)

    elements.append(Spacer(1, 0.3 * inch))
    outstanding = statement['outstanding']
    label = "Outstanding Balance" if outstanding >= 0 else "Credit Balance"
    elements.append(Paragraph(
        f"<b>{label}:</b> {format_money(abs(outstanding), currency)}",
        styles['Normal'],
    ))

    doc.build(elements)
    pdf = buffer.getvalue()
    buffer.close()
    return pdf
