from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from datetime import date, datetime
from io import BytesIO
from typing import Any
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from shiftwatch.models import DetailedAttendanceRecord
from shiftwatch.services.time_parsing import normalize_device_time

logger = logging.getLogger("shiftwatch.spreadsheet")

UNKNOWN_EMPLOYEE = "Unknown"
NAME_HEADER_MARKER = "First Name"

# Zero-based column positions in the fingerprint device export (B, G, H, J, K).
NAME_COLUMN = 1
CLOCK_IN_COLUMN = 6
CLOCK_OUT_COLUMN = 7
BREAK_OUT_COLUMN = 9
BREAK_IN_COLUMN = 10

_PUNCH_COLUMNS = {
    "clock_in": CLOCK_IN_COLUMN,
    "clock_out": CLOCK_OUT_COLUMN,
    "break_out": BREAK_OUT_COLUMN,
    "break_in": BREAK_IN_COLUMN,
}
_ISO_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")


class InvalidWorkbookError(ValueError):
    pass


def _cell(row: Sequence[Any], index: int) -> Any:
    if index < len(row):
        return row[index]
    return None


def _row_name(row: Sequence[Any]) -> str | None:
    value = _cell(row, NAME_COLUMN)
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    if len(stripped) <= 2 or NAME_HEADER_MARKER in stripped:
        return None
    return stripped


def _row_date(row: Sequence[Any]) -> date | None:
    found: date | None = None
    punch_columns = set(_PUNCH_COLUMNS.values())
    for index, value in enumerate(row):
        if isinstance(value, datetime):
            if index not in punch_columns:
                found = value.date()
        elif isinstance(value, date):
            found = value
        elif isinstance(value, str):
            match = _ISO_DATE_RE.fullmatch(value.strip())
            if match is None:
                continue
            try:
                found = date.fromisoformat(match.group(0))
            except ValueError:
                continue
    return found


def extract_attendance_records(rows: Iterable[Sequence[Any]]) -> list[DetailedAttendanceRecord]:
    """Pull per-day punch rows out of a device export laid out as a grid.

    The employee name only appears on its own header row, so it is carried
    forward to every following dated row until the next name.
    """
    records: list[DetailedAttendanceRecord] = []
    current_name = UNKNOWN_EMPLOYEE
    skipped = 0

    for row in rows:
        if row is None or len(row) < 2:
            continue

        name = _row_name(row)
        if name is not None:
            current_name = name

        row_date = _row_date(row)
        if row_date is None:
            continue

        punches = {slot: normalize_device_time(_cell(row, column)) for slot, column in _PUNCH_COLUMNS.items()}
        if not any(punches.values()):
            skipped += 1
            continue

        records.append(DetailedAttendanceRecord(employee_name=current_name, date=row_date, **punches))

    logger.debug("attendance_rows_extracted", extra={"records": len(records), "skipped_rows": skipped})
    return records


def read_workbook_rows(payload: bytes) -> list[list[Any]]:
    if not payload:
        raise InvalidWorkbookError("Uploaded file is empty.")

    try:
        workbook = load_workbook(BytesIO(payload), read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, OSError, ValueError, IndexError) as exc:
        raise InvalidWorkbookError("Uploaded file is not a readable .xlsx workbook.") from exc

    try:
        if not workbook.worksheets:
            raise InvalidWorkbookError("Workbook has no sheets.")
        sheet = workbook.worksheets[0]
        return [list(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()
