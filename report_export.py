"""
Renderers for an attendance Report: CSV, Excel, PDF and a ZIP bundle.

Renderers only format the values the report carries; hours and statuses are
never recomputed here.
"""
import zipfile
from io import BytesIO, StringIO
from xml.sax.saxutils import escape

import openpyxl
import pandas as pd
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import LongTable, Paragraph, SimpleDocTemplate, Spacer, TableStyle

from attendance_processor import SessionStatus

REPORT_COLUMNS = [
    'employee_id', 'date', 'in_time', 'out_time', 'total_hours',
    'scan_count', 'status', 'crosses_midnight'
]
CSV_COLUMNS = REPORT_COLUMNS[:-1]

EXCEL_HEADERS = [
    "Employee ID", "Date", "IN Time", "OUT Time", "Total Hours",
    "Scan Count", "Status", "Crosses Midnight"
]
EXCEL_COLUMN_WIDTHS = [14, 12, 10, 10, 12, 11, 16, 16]
LOG_HEADERS = ["Report Date", "Scan Date", "Time", "Type", "Double Tap"]

HEADER_COLOR = "366092"
STATUS_COLORS = {
    SessionStatus.OUT_MISSING: "F8CBAD",
    SessionStatus.NO_IN_RECORD: "FFE699",
}
PDF_STATUS_COLORS = {
    SessionStatus.OUT_MISSING: colors.HexColor("#FDE2E1"),
    SessionStatus.NO_IN_RECORD: colors.HexColor("#FEF3C7"),
}


def export_filename(report, extension):
    return f"Attendance_{report.employee_id}_{report.month}_{report.year}.{extension}"


# ------------------------ Tabular ------------------------
def report_to_frame(report):
    rows = [
        {
            'employee_id': report.employee_id,
            'date': day.date.isoformat(),
            'in_time': day.in_time,
            'out_time': day.out_time,
            'total_hours': day.total_hours,
            'scan_count': day.scan_count,
            'status': day.status.value,
            'crosses_midnight': day.crosses_midnight,
        }
        for day in report.daily_records
    ]
    return pd.DataFrame(rows, columns=REPORT_COLUMNS)


def report_to_csv(report):
    buffer = StringIO()
    report_to_frame(report)[CSV_COLUMNS].to_csv(buffer, index=False)
    return buffer.getvalue()


def write_csv(report, output_filepath):
    with open(output_filepath, 'w', encoding='utf-8', newline='') as f:
        f.write(report_to_csv(report))
    print(f"CSV file generated: {output_filepath}")


# ------------------------ Excel Generation ------------------------
def _build_workbook(report):
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Attendance"

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color=HEADER_COLOR, end_color=HEADER_COLOR, fill_type="solid")
    header_alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
    data_alignment = Alignment(horizontal="left", vertical="center")
    center_alignment = Alignment(horizontal="center", vertical="center")
    border = Border(
        left=Side(style='thin'), right=Side(style='thin'),
        top=Side(style='thin'), bottom=Side(style='thin')
    )

    def write_header(sheet, headers):
        for col, header in enumerate(headers, 1):
            cell = sheet.cell(row=1, column=col)
            cell.value = header
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = header_alignment
            cell.border = border

    write_header(ws, EXCEL_HEADERS)
    for col, width in enumerate(EXCEL_COLUMN_WIDTHS, 1):
        ws.column_dimensions[get_column_letter(col)].width = width

    row = 2
    for day in report.daily_records:
        values = [
            report.employee_id, day.date.isoformat(), day.in_time, day.out_time,
            day.total_hours, day.scan_count, day.status.value,
            "Yes" if day.crosses_midnight else "No"
        ]
        status_fill = None
        if day.status in STATUS_COLORS:
            color = STATUS_COLORS[day.status]
            status_fill = PatternFill(start_color=color, end_color=color, fill_type="solid")

        for col, value in enumerate(values, 1):
            cell = ws.cell(row=row, column=col)
            cell.value = value
            cell.border = border
            if col == 1:
                cell.alignment = data_alignment
            else:
                cell.alignment = center_alignment
            if col == 5:
                cell.number_format = '0.00'
            if status_fill is not None:
                cell.fill = status_fill
        row += 1

    # Summary block under the table
    summary = report.summary
    row += 1
    for label, value in [
        ("Days With Records", summary.total_days_with_records),
        ("Normal Days", summary.total_normal_days),
        ("Out Missing Days", summary.total_out_missing_days),
    ]:
        ws.cell(row=row, column=1).value = label
        ws.cell(row=row, column=1).font = Font(bold=True)
        ws.cell(row=row, column=2).value = value
        row += 1

    ws.freeze_panes = 'A2'

    log_ws = wb.create_sheet("Scan Log")
    write_header(log_ws, LOG_HEADERS)
    for col in "ABCDE":
        log_ws.column_dimensions[col].width = 14

    row = 2
    for day in report.daily_records:
        for log in day.logs:
            values = [day.date.isoformat(), log.date, log.time, log.type.value, "Yes" if log.is_duplicate else ""]
            for col, value in enumerate(values, 1):
                cell = log_ws.cell(row=row, column=col)
                cell.value = value
                cell.border = border
                cell.alignment = center_alignment
                if log.is_duplicate:
                    cell.font = Font(italic=True, color="808080")
            row += 1
    log_ws.freeze_panes = 'A2'

    return wb


def generate_excel(report, output_filepath):
    _build_workbook(report).save(output_filepath)
    print(f"Excel file generated: {output_filepath}")


def report_to_xlsx_bytes(report):
    buffer = BytesIO()
    _build_workbook(report).save(buffer)
    return buffer.getvalue()


# ------------------------ PDF Generation ------------------------
def generate_pdf(report):
    """A4 PDF with a summary line and the daily table."""
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=14 * mm,
        rightMargin=14 * mm,
        topMargin=16 * mm,
        bottomMargin=16 * mm,
        title=f"Attendance {report.employee_id} {report.month:02d}/{report.year}",
    )
    styles = getSampleStyleSheet()
    summary = report.summary

    story = [
        Paragraph(f"Attendance Report - Employee {escape(report.employee_id)}", styles["Title"]),
        Paragraph(f"Period: {report.month:02d}/{report.year}", styles["Normal"]),
        Spacer(1, 4 * mm),
        Paragraph(
            f"Days with records: {summary.total_days_with_records} &nbsp;&nbsp; "
            f"Normal days: {summary.total_normal_days} &nbsp;&nbsp; "
            f"Out missing days: {summary.total_out_missing_days}",
            styles["Normal"],
        ),
        Spacer(1, 6 * mm),
    ]

    if not report.daily_records:
        story.append(Paragraph("No attendance records for this period.", styles["Italic"]))
        doc.build(story)
        return buffer.getvalue()

    rows = [["Date", "IN", "OUT", "Hours", "Scans", "Status"]]
    for day in report.daily_records:
        status = day.status.value + (" *" if day.crosses_midnight else "")
        rows.append([
            day.date.isoformat(), day.in_time, day.out_time,
            f"{day.total_hours:.2f}", str(day.scan_count), status
        ])

    table_style = [
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor(f"#{HEADER_COLOR}")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("ALIGN", (1, 0), (-1, -1), "CENTER"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#E2E8F0")),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.HexColor("#F8FAFC"), colors.HexColor("#F1F5F9")]),
    ]
    for index, day in enumerate(report.daily_records, 1):
        if day.status in PDF_STATUS_COLORS:
            table_style.append(("BACKGROUND", (0, index), (-1, index), PDF_STATUS_COLORS[day.status]))

    table = LongTable(rows, repeatRows=1)
    table.setStyle(TableStyle(table_style))
    story.append(table)
    if any(day.crosses_midnight for day in report.daily_records):
        story.append(Spacer(1, 3 * mm))
        story.append(Paragraph("* shift ends after midnight", styles["Italic"]))

    doc.build(story)
    return buffer.getvalue()


# ------------------------ ZIP Bundle ------------------------
def build_zip(reports, output_filepath):
    """One CSV and one XLSX per report, zipped together."""
    with zipfile.ZipFile(output_filepath, 'w', compression=zipfile.ZIP_DEFLATED) as zf:
        for report in reports:
            zf.writestr(export_filename(report, 'csv'), report_to_csv(report))
            zf.writestr(export_filename(report, 'xlsx'), report_to_xlsx_bytes(report))
    print(f"ZIP file generated: {output_filepath} ({len(reports)} employees)")
