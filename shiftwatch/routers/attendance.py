import asyncio

from fastapi import APIRouter, Depends, Request, Response

from shiftwatch.errors import ApiError
from shiftwatch.models import DetailedAttendanceRecord
from shiftwatch.schemas import (
    AttendanceAnalysisRequest,
    AttendanceAnalysisResponse,
    AttendanceRecordIn,
)
from shiftwatch.services.exports import XLSX_MEDIA_TYPE, build_attendance_xlsx_bytes
from shiftwatch.services.reconciliation import (
    AttendanceAnalysis,
    NoAttendanceRecordsError,
    reconcile,
)
from shiftwatch.services.reconciliation_calc import ReconciliationRules
from shiftwatch.services.spreadsheet_rows import (
    InvalidWorkbookError,
    extract_attendance_records,
    read_workbook_rows,
)
from shiftwatch.services.time_parsing import normalize_device_time, normalize_time_string, to_minutes
from shiftwatch.settings import Settings, get_settings

router = APIRouter(tags=["attendance"])


def build_reconciliation_rules(settings: Settings) -> ReconciliationRules:
    defaults = ReconciliationRules()

    def _clock(value: str, fallback: int) -> int:
        minutes = to_minutes(normalize_time_string(value))
        return fallback if minutes is None else minutes

    return ReconciliationRules(
        overtime_threshold_minutes=settings.overtime_threshold_minutes,
        standard_day_minutes=settings.standard_day_minutes,
        standard_start_minutes=_clock(settings.standard_start_time, defaults.standard_start_minutes),
        lateness_grace_minutes=settings.lateness_grace_minutes,
        lateness_cutoff_minutes=_clock(settings.lateness_cutoff_time, defaults.lateness_cutoff_minutes),
        stitch_cutoff_minutes=_clock(settings.stitch_cutoff_time, defaults.stitch_cutoff_minutes),
    )


def _normalize_punch(value: str | None) -> str | None:
    if value is None:
        return None
    return normalize_device_time(value) or normalize_time_string(value)


def _to_detailed_record(item: AttendanceRecordIn) -> DetailedAttendanceRecord:
    return DetailedAttendanceRecord(
        employee_name=item.employee_name.strip(),
        date=item.date,
        clock_in=_normalize_punch(item.clock_in),
        clock_out=_normalize_punch(item.clock_out),
        break_out=_normalize_punch(item.break_out),
        break_in=_normalize_punch(item.break_in),
    )


def _to_response(analysis: AttendanceAnalysis) -> AttendanceAnalysisResponse:
    return AttendanceAnalysisResponse(
        start_date=analysis.start_date,
        end_date=analysis.end_date,
        employee_count=len(analysis.employees),
        employees=analysis.employees,
    )


def _reconcile_records(records: list[DetailedAttendanceRecord], settings: Settings) -> AttendanceAnalysis:
    try:
        return reconcile(records, rules=build_reconciliation_rules(settings))
    except NoAttendanceRecordsError as exc:
        api_error = ApiError.from_domain(exc)
        if api_error is None:
            raise
        raise api_error from exc


def _analyze_workbook(payload: bytes, settings: Settings) -> AttendanceAnalysis:
    try:
        rows = read_workbook_rows(payload)
    except InvalidWorkbookError as exc:
        api_error = ApiError.from_domain(exc)
        if api_error is None:
            raise
        raise api_error from exc
    return _reconcile_records(extract_attendance_records(rows), settings)


@router.post("/api/attendance/analyze", response_model=AttendanceAnalysisResponse)
def analyze_attendance(
    payload: AttendanceAnalysisRequest,
    settings: Settings = Depends(get_settings),
) -> AttendanceAnalysisResponse:
    if payload.records is not None:
        records = [_to_detailed_record(item) for item in payload.records]
    else:
        records = extract_attendance_records(payload.rows or [])
    return _to_response(_reconcile_records(records, settings))


@router.post("/api/attendance/analyze.xlsx", response_model=AttendanceAnalysisResponse)
async def analyze_attendance_workbook(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> AttendanceAnalysisResponse:
    payload = await request.body()
    analysis = await asyncio.to_thread(_analyze_workbook, payload, settings)
    return _to_response(analysis)


@router.post("/api/attendance/report.xlsx")
async def export_attendance_report(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> Response:
    payload = await request.body()
    analysis = await asyncio.to_thread(_analyze_workbook, payload, settings)
    content = await asyncio.to_thread(build_attendance_xlsx_bytes, analysis)
    filename = f"attendance-{analysis.start_date.isoformat()}-{analysis.end_date.isoformat()}.xlsx"
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
        },
    )
