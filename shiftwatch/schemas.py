from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from shiftwatch.models import DayStatus, PresenceFilterMode, PunchState, PunchType
from shiftwatch.services.time_parsing import ShiftWindow

__all__ = [
    "AttendanceAnalysisRequest",
    "AttendanceAnalysisResponse",
    "AttendancePunch",
    "AttendanceRecordIn",
    "EmployeeSummary",
    "PresenceEntry",
    "ProcessedRecord",
    "PunchStateRequest",
    "PunchStatusRead",
    "RosterSnapshotRequest",
    "ScheduleEntry",
    "ShiftOccurrenceRead",
    "ShiftParseRequest",
    "ShiftTimelineRequest",
    "ShiftTimelineResponse",
    "ShiftWindow",
    "StaffProfile",
]

# A field called ``date`` rebinds the name inside the class body once it has a default.
OptionalDate = date | None


class ScheduleEntry(BaseModel):
    user_id: str
    valid_from: OptionalDate = None
    valid_to: OptionalDate = None
    date: OptionalDate = None
    location_id: str | None = None
    note: str | None = None
    shifts: list[ShiftWindow] | None = None
    staff_name: str | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_recurring(self) -> bool:
        return self.date is None


class AttendancePunch(BaseModel):
    user_id: str
    date: date
    type: PunchType
    timestamp: datetime


class StaffProfile(BaseModel):
    id: str
    name: str | None = None
    email: str | None = None
    role: str | None = None
    phone: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.email or ""


class PresenceEntry(BaseModel):
    user_id: str
    name: str
    location: str
    time_window_label: str
    role: str | None = None
    phone: str | None = None
    is_portable_procedure: bool = False
    is_currently_present: bool = False


class RosterSnapshotRequest(BaseModel):
    schedules: list[ScheduleEntry] = Field(default_factory=list)
    punches: list[AttendancePunch] = Field(default_factory=list)
    users: list[StaffProfile] = Field(default_factory=list)
    now: datetime | None = None
    mode: PresenceFilterMode | None = None


class ShiftParseRequest(BaseModel):
    text: str = Field(max_length=500)


class ShiftOccurrenceRead(BaseModel):
    date: date
    start: str
    end: str
    starts_at: datetime
    ends_at: datetime
    location_id: str
    is_recurring: bool


class ShiftTimelineRequest(BaseModel):
    schedules: list[ScheduleEntry] = Field(default_factory=list)
    now: datetime | None = None


class ShiftTimelineResponse(BaseModel):
    now: datetime
    today_shifts: list[ShiftWindow]
    current: ShiftOccurrenceRead | None = None
    next: ShiftOccurrenceRead | None = None
    occurrences: list[ShiftOccurrenceRead] = Field(default_factory=list)


class PunchStateRequest(BaseModel):
    schedules: list[ScheduleEntry] = Field(default_factory=list)
    punches: list[AttendancePunch] = Field(default_factory=list)
    now: datetime | None = None
    has_override: bool = False


class PunchStatusRead(BaseModel):
    state: PunchState
    message: str
    sub: str
    can_punch: bool = False
    shift_index: int | None = None
    is_break: bool = False


class AttendanceRecordIn(BaseModel):
    employee_name: str = Field(min_length=1)
    date: date
    clock_in: str | None = None
    clock_out: str | None = None
    break_out: str | None = None
    break_in: str | None = None


class AttendanceAnalysisRequest(BaseModel):
    records: list[AttendanceRecordIn] | None = None
    rows: list[list[Any]] | None = None

    @model_validator(mode="after")
    def validate_source(self) -> "AttendanceAnalysisRequest":
        if self.records is None and self.rows is None:
            raise ValueError("Either records or rows must be provided")
        if self.records is not None and self.rows is not None:
            raise ValueError("Provide records or rows, not both")
        return self


class ProcessedRecord(BaseModel):
    employee_name: str
    date: date
    day: str
    timestamps: list[str] = Field(default_factory=list)
    status: DayStatus
    worked_minutes: int = 0
    total_hours: float = 0.0
    overtime_hours: float = 0.0
    shortfall_hours: float = 0.0
    lateness_minutes: int = 0
    is_modified: bool = False


class EmployeeSummary(BaseModel):
    employee_name: str
    total_work_days: int = 0
    fridays_worked: int = 0
    absent_days: int = 0
    total_overtime_hours: float = 0.0
    total_shortfall_hours: float = 0.0
    total_lateness_minutes: int = 0
    records: list[ProcessedRecord] = Field(default_factory=list)


class AttendanceAnalysisResponse(BaseModel):
    start_date: date
    end_date: date
    employee_count: int
    employees: list[EmployeeSummary]
