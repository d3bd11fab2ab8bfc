from __future__ import annotations

from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from shiftwatch.models import DayStatus
from shiftwatch.services.reconciliation import AttendanceAnalysis

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

SUMMARY_HEADER_ROW = 4
SUMMARY_HEADERS = [
    "Employee",
    "Work Days",
    "Fridays Worked",
    "Absent Days",
    "Overtime (h)",
    "Shortfall (h)",
    "Lateness (min)",
]
DETAIL_HEADERS = [
    "Employee",
    "Date",
    "Day",
    "Timestamps",
    "Status",
    "Total (h)",
    "Overtime (h)",
    "Shortfall (h)",
    "Lateness (min)",
    "Next Day Exit",
]

HEADER_FILL = PatternFill(fill_type="solid", fgColor="0B4F73")
ZEBRA_FILL = PatternFill(fill_type="solid", fgColor="F7FBFE")
WARNING_FILL = PatternFill(fill_type="solid", fgColor="FFF3CD")
ALERT_FILL = PatternFill(fill_type="solid", fgColor="FDE2E4")

HEADER_FONT = Font(bold=True, color="FFFFFF")
TITLE_FONT = Font(bold=True, color="0B4F73", size=14)

THIN_SIDE = Side(style="thin", color="D5E2EC")
THIN_BORDER = Border(left=THIN_SIDE, right=THIN_SIDE, top=THIN_SIDE, bottom=THIN_SIDE)

_STATUS_FILLS = {
    DayStatus.MISSING_PUNCH: WARNING_FILL,
    DayStatus.ABSENT: ALERT_FILL,
}


def _hours(value: float) -> float:
    return round(value, 2)


def _style_header(ws: Worksheet, row: int = 1) -> None:
    for cell in ws[row]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
        cell.border = THIN_BORDER


def _auto_width(ws: Worksheet) -> None:
    for column_cells in ws.iter_cols(min_row=1, max_row=ws.max_row, min_col=1, max_col=ws.max_column):
        max_len = 0
        col_letter = get_column_letter(column_cells[0].column)
        for cell in column_cells:
            value = "" if cell.value is None else str(cell.value)
            max_len = max(max_len, len(value))
        ws.column_dimensions[col_letter].width = min(max_len + 2, 60)


def _style_table(ws: Worksheet, *, header_row: int, data_end_row: int) -> None:
    ws.freeze_panes = f"A{header_row + 1}"
    if data_end_row <= header_row:
        return
    ws.auto_filter.ref = f"A{header_row}:{get_column_letter(ws.max_column)}{data_end_row}"
    for row_idx in range(header_row + 1, data_end_row + 1):
        for col_idx in range(1, ws.max_column + 1):
            cell = ws.cell(row=row_idx, column=col_idx)
            cell.border = THIN_BORDER
            if (row_idx - header_row) % 2 == 0:
                cell.fill = ZEBRA_FILL


def _build_summary_sheet(ws: Worksheet, analysis: AttendanceAnalysis) -> None:
    ws.title = "Summary"
    ws.append(["Attendance Report"])
    ws["A1"].font = TITLE_FONT
    ws.append(["Period", f"{analysis.start_date.isoformat()} - {analysis.end_date.isoformat()}"])
    ws.append([])

    header_row = SUMMARY_HEADER_ROW
    ws.append(SUMMARY_HEADERS)
    _style_header(ws, header_row)

    for employee in analysis.employees:
        ws.append(
            [
                employee.employee_name,
                employee.total_work_days,
                employee.fridays_worked,
                employee.absent_days,
                _hours(employee.total_overtime_hours),
                _hours(employee.total_shortfall_hours),
                employee.total_lateness_minutes,
            ]
        )

    _style_table(ws, header_row=header_row, data_end_row=ws.max_row)
    _auto_width(ws)


def _build_details_sheet(ws: Worksheet, analysis: AttendanceAnalysis) -> None:
    ws.append(DETAIL_HEADERS)
    _style_header(ws, 1)

    status_col = DETAIL_HEADERS.index("Status") + 1
    for employee in analysis.employees:
        for record in employee.records:
            ws.append(
                [
                    record.employee_name,
                    record.date,
                    record.day,
                    " | ".join(record.timestamps),
                    record.status.value,
                    _hours(record.total_hours),
                    _hours(record.overtime_hours),
                    _hours(record.shortfall_hours),
                    record.lateness_minutes,
                    "Yes" if record.is_modified else "",
                ]
            )
            ws.cell(row=ws.max_row, column=2).number_format = "yyyy-mm-dd"

    _style_table(ws, header_row=1, data_end_row=ws.max_row)
    for row_idx in range(2, ws.max_row + 1):
        status_cell = ws.cell(row=row_idx, column=status_col)
        fill = _STATUS_FILLS.get(DayStatus(status_cell.value))
        if fill is not None:
            status_cell.fill = fill
    _auto_width(ws)


def build_attendance_xlsx_bytes(analysis: AttendanceAnalysis) -> bytes:
    wb = Workbook()
    _build_summary_sheet(wb.active, analysis)
    _build_details_sheet(wb.create_sheet("Details"), analysis)

    stream = BytesIO()
    wb.save(stream)
    return stream.getvalue()
