from io import BytesIO

import openpyxl
from django.http import HttpResponse
from openpyxl.styles import Font
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

XLSX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


def _summary_rows(data):
    stats = data['stats']
    return [
        ('Total Complaints',       stats['total']),
        ('Open',                   stats['open']),
        ('In Progress',            stats['in_progress']),
        ('Escalated',              stats['escalated']),
        ('Resolved',               stats['resolved']),
        ('Closed',                 stats['closed']),
        ('Rejected',               stats['rejected']),
        ('Critical Priority',      stats['critical']),
        ('Resolution Rate',        f"{data['resolution_rate']}%"),
        ('Genuine Rate',           f"{data['genuine_rate']:.2f}%"),
        ('Average Rating',         data['average_rating']),
        ('Satisfaction Rate',      f"{data['satisfaction_rate']}%"),
        ('Avg Resolution (hrs)',   data['average_resolution_hours']),
    ]


def build_excel_report(data):
    wb  = openpyxl.Workbook()
    ws1 = wb.active
    ws1.title = "Summary"
    ws1['A1'] = "Complaint Desk Report"
    ws1['A1'].font = Font(size=16, bold=True)
    ws1['A2'] = f"Generated: {data['generated_at'].strftime('%Y-%m-%d %H:%M')}"

    for i, (label, val) in enumerate(_summary_rows(data), start=4):
        ws1.cell(row=i, column=1).value = label
        ws1.cell(row=i, column=2).value = val

    ws2 = wb.create_sheet("Categories")
    ws2['A1'] = "Category"
    ws2['B1'] = "Complaints"
    ws2['A1'].font = ws2['B1'].font = Font(bold=True)
    for i, item in enumerate(data['category_distribution'], start=2):
        ws2.cell(row=i, column=1).value = item['category']
        ws2.cell(row=i, column=2).value = item['count']

    ws3 = wb.create_sheet("Priorities")
    ws3['A1'] = "Priority"
    ws3['B1'] = "Complaints"
    ws3['A1'].font = ws3['B1'].font = Font(bold=True)
    for i, (priority, count) in enumerate(data['priority_distribution'].items(), start=2):
        ws3.cell(row=i, column=1).value = priority
        ws3.cell(row=i, column=2).value = count

    return wb


def excel_response(data):
    wb = build_excel_report(data)
    response = HttpResponse(content_type=XLSX_CONTENT_TYPE)
    response['Content-Disposition'] = (
        f"attachment; filename=complaints_{data['generated_at']:%Y%m%d}.xlsx"
    )
    wb.save(response)
    return response


def _table(rows, header_color):
    table = Table(rows)
    table.setStyle(TableStyle([
        ('BACKGROUND',    (0, 0), (-1,  0), colors.HexColor(header_color)),
        ('TEXTCOLOR',     (0, 0), (-1,  0), colors.whitesmoke),
        ('ALIGN',         (0, 0), (-1, -1), 'CENTER'),
        ('FONTNAME',      (0, 0), (-1,  0), 'Helvetica-Bold'),
        ('FONTSIZE',      (0, 0), (-1,  0), 12),
        ('BOTTOMPADDING', (0, 0), (-1,  0), 10),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#F1F5F9')]),
        ('GRID',          (0, 0), (-1, -1), 0.5, colors.HexColor('#CBD5E1')),
    ]))
    return table


def build_pdf_report(data):
    buffer = BytesIO()
    doc    = SimpleDocTemplate(buffer, pagesize=letter)
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'ReportTitle',
        parent=styles['Heading1'],
        fontSize=22,
        textColor=colors.HexColor('#1f2937'),
        spaceAfter=24,
    )

    elements = [
        Paragraph("Complaint Desk Report", title_style),
        Paragraph(f"Generated: {data['generated_at'].strftime('%Y-%m-%d %H:%M')}", styles['Normal']),
        Spacer(1, 0.3 * inch),
        _table([['Metric', 'Value']] + [[label, str(val)] for label, val in _summary_rows(data)],
               '#4F46E5'),
    ]

    if data['category_distribution']:
        elements += [
            Spacer(1, 0.4 * inch),
            Paragraph("Complaints by Category", styles['Heading2']),
            Spacer(1, 0.2 * inch),
            _table([['Category', 'Complaints']] + [
                [item['category'], str(item['count'])] for item in data['category_distribution']
            ], '#0F172A'),
        ]

    doc.build(elements)
    return buffer.getvalue()


def pdf_response(data):
    response = HttpResponse(build_pdf_report(data), content_type='application/pdf')
    response['Content-Disposition'] = (
        f"attachment; filename=complaints_{data['generated_at']:%Y%m%d}.pdf"
    )
    return response
