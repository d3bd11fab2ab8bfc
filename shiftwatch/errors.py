from __future__ import annotations

from fastapi import Request, status
from fastapi.responses import JSONResponse

from shiftwatch.services.reconciliation import NoAttendanceRecordsError
from shiftwatch.services.spreadsheet_rows import InvalidWorkbookError

NO_ATTENDANCE_RECORDS = "NO_ATTENDANCE_RECORDS"
INVALID_WORKBOOK = "INVALID_WORKBOOK"
VALIDATION_ERROR = "VALIDATION_ERROR"
INTERNAL_ERROR = "INTERNAL_ERROR"
HTTP_ERROR = "HTTP_ERROR"

_DOMAIN_ERRORS: dict[type[Exception], tuple[int, str]] = {
    NoAttendanceRecordsError: (status.HTTP_422_UNPROCESSABLE_ENTITY, NO_ATTENDANCE_RECORDS),
    InvalidWorkbookError: (status.HTTP_400_BAD_REQUEST, INVALID_WORKBOOK),
}


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message

    @classmethod
    def from_domain(cls, exc: Exception) -> "ApiError | None":
        """Translate an engine or workbook error into its HTTP envelope.

        Returns None for exceptions without a mapping; the caller re-raises them.
        """
        for exc_type, (status_code, code) in _DOMAIN_ERRORS.items():
            if isinstance(exc, exc_type):
                return cls(status_code, code, str(exc))
        return None


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(request: Request, *, status_code: int, code: str, message: str) -> JSONResponse:
    payload = {
        "error": {
            "code": code,
            "message": message,
            "request_id": get_request_id(request),
        }
    }
    return JSONResponse(status_code=status_code, content=payload)
