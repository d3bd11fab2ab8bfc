from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date


class PunchType(str, enum.Enum):
    IN = "IN"
    OUT = "OUT"


class DayStatus(str, enum.Enum):
    PRESENT = "Present"
    MISSING_PUNCH = "Missing Punch"
    ABSENT = "Absent"


class PresenceFilterMode(str, enum.Enum):
    PRESENT = "present"
    ALL = "all"


class PunchState(str, enum.Enum):
    READY_IN = "READY_IN"
    READY_OUT = "READY_OUT"
    LOCKED = "LOCKED"
    COMPLETED = "COMPLETED"
    MISSED = "MISSED"
    ABSENT = "ABSENT"
    WAITING = "WAITING"
    BREAK = "BREAK"
    UNKNOWN = "UNKNOWN"


class StaffRole(str, enum.Enum):
    DOCTOR = "doctor"
    SUPERVISOR = "supervisor"
    USER = "user"


PUNCH_SLOTS = ("clock_in", "clock_out", "break_out", "break_in")


@dataclass(frozen=True)
class DetailedAttendanceRecord:
    """One fingerprint-device row: an employee's punches on one calendar date.

    Slots hold canonical ``HH:MM`` strings or None. ``is_modified`` marks a row
    whose clock-out was taken from the following day; ``ignore`` marks a row
    whose only punch was moved to the previous day.
    """

    employee_name: str
    date: date
    clock_in: str | None = None
    clock_out: str | None = None
    break_out: str | None = None
    break_in: str | None = None
    is_modified: bool = False
    ignore: bool = False

    def has_punches(self) -> bool:
        return any(getattr(self, slot) for slot in PUNCH_SLOTS)

    def first_punch(self) -> str | None:
        return self.clock_in or self.break_out or self.break_in or self.clock_out
