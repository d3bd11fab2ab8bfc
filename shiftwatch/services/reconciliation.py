from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import date, timedelta

from shiftwatch.models import DayStatus, DetailedAttendanceRecord
from shiftwatch.schemas import EmployeeSummary, ProcessedRecord
from shiftwatch.services.reconciliation_calc import (
    DayScore,
    ReconciliationRules,
    RowMinutes,
    calculate_row_minutes,
    minutes_to_hours,
    score_day,
)
from shiftwatch.services.roster import is_friday
from shiftwatch.services.time_parsing import to_minutes

logger = logging.getLogger("shiftwatch.reconciliation")

ABSENT_LABEL = "(Absent / No Record)"
_WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


class NoAttendanceRecordsError(ValueError):
    pass


@dataclass(frozen=True)
class StitchDecision:
    """Move ``punch`` from ``donor_slot`` of the next-day row to the open row's clock-out."""

    receiver_index: int
    donor_index: int
    donor_slot: str
    punch: str


@dataclass(frozen=True)
class AttendanceAnalysis:
    start_date: date
    end_date: date
    employees: list[EmployeeSummary]
    stitched_rows: int = 0


@dataclass
class _EmployeeAccumulator:
    employee_name: str
    total_work_days: int = 0
    fridays_worked: int = 0
    absent_days: int = 0
    overtime_minutes: int = 0
    shortfall_minutes: int = 0
    lateness_minutes: int = 0
    worked_dates: set[date] = field(default_factory=set)
    records: list[ProcessedRecord] = field(default_factory=list)

    def add_day(self, record: DetailedAttendanceRecord, row: RowMinutes, score: DayScore) -> None:
        if score.worked_minutes > 0:
            self.total_work_days += 1
            self.overtime_minutes += score.overtime_minutes
            self.shortfall_minutes += score.shortfall_minutes
            self.lateness_minutes += score.lateness_minutes
            self.worked_dates.add(record.date)
            if is_friday(record.date):
                self.fridays_worked += 1

        self.records.append(
            ProcessedRecord(
                employee_name=self.employee_name,
                date=record.date,
                day=weekday_label(record.date),
                timestamps=list(row.timestamps),
                status=score.status,
                worked_minutes=score.worked_minutes,
                total_hours=minutes_to_hours(score.worked_minutes),
                overtime_hours=minutes_to_hours(score.overtime_minutes),
                shortfall_hours=minutes_to_hours(score.shortfall_minutes),
                lateness_minutes=score.lateness_minutes,
                is_modified=record.is_modified,
            )
        )

    def add_absence(self, day: date, *, shortfall_minutes: int) -> None:
        self.absent_days += 1
        self.shortfall_minutes += shortfall_minutes
        self.records.append(
            ProcessedRecord(
                employee_name=self.employee_name,
                date=day,
                day=weekday_label(day),
                timestamps=[ABSENT_LABEL],
                status=DayStatus.ABSENT,
                shortfall_hours=minutes_to_hours(shortfall_minutes),
            )
        )

    def to_summary(self) -> EmployeeSummary:
        return EmployeeSummary(
            employee_name=self.employee_name,
            total_work_days=self.total_work_days,
            fridays_worked=self.fridays_worked,
            absent_days=self.absent_days,
            total_overtime_hours=minutes_to_hours(self.overtime_minutes),
            total_shortfall_hours=minutes_to_hours(self.shortfall_minutes),
            total_lateness_minutes=self.lateness_minutes,
            records=sorted(self.records, key=lambda item: item.date),
        )


def weekday_label(day: date) -> str:
    return _WEEKDAY_LABELS[day.weekday()]


def sort_records(records: Iterable[DetailedAttendanceRecord]) -> list[DetailedAttendanceRecord]:
    return sorted(records, key=lambda record: (record.employee_name, record.date))


def _has_open_shift(record: DetailedAttendanceRecord) -> bool:
    return bool((record.clock_in or record.break_in) and not record.clock_out)


def _early_punch_slot(record: DetailedAttendanceRecord) -> str | None:
    if record.clock_in:
        return "clock_in"
    if record.break_out:
        return "break_out"
    return None


def plan_midnight_stitches(
    records: Sequence[DetailedAttendanceRecord],
    *,
    cutoff_minutes: int = ReconciliationRules.stitch_cutoff_minutes,
) -> list[StitchDecision]:
    """Find next-day early punches that close the previous day's open shift.

    ``records`` must be sorted by employee then date. The device files a punch
    under the date it happened, but a 17:00-01:00 shift belongs to the day it
    started. Each row can donate at most one punch, to the row directly before
    it, and a row left without punches does not receive one.
    """
    decisions: list[StitchDecision] = []
    cleared_slots: dict[int, str] = {}

    for index in range(len(records) - 1):
        current = records[index]
        cleared = cleared_slots.get(index)
        if cleared is not None:
            current = replace(current, **{cleared: None})
        if current.ignore or not current.has_punches():
            continue

        following = records[index + 1]
        if following.ignore or following.employee_name != current.employee_name:
            continue
        if (following.date - current.date).days != 1:
            continue
        if not _has_open_shift(current):
            continue

        slot = _early_punch_slot(following)
        if slot is None:
            continue
        punch = getattr(following, slot)
        punch_minutes = to_minutes(punch)
        if punch_minutes is None or punch_minutes >= cutoff_minutes:
            continue

        decisions.append(
            StitchDecision(
                receiver_index=index,
                donor_index=index + 1,
                donor_slot=slot,
                punch=punch,
            )
        )
        cleared_slots[index + 1] = slot

    return decisions


def apply_midnight_stitches(
    records: Sequence[DetailedAttendanceRecord],
    decisions: Iterable[StitchDecision],
) -> list[DetailedAttendanceRecord]:
    stitched = list(records)
    for decision in decisions:
        stitched[decision.receiver_index] = replace(
            stitched[decision.receiver_index],
            clock_out=decision.punch,
            is_modified=True,
        )
        donor = replace(stitched[decision.donor_index], **{decision.donor_slot: None})
        if not donor.has_punches():
            donor = replace(donor, ignore=True)
        stitched[decision.donor_index] = donor
    return stitched


def backfill_absences(
    accumulator: _EmployeeAccumulator,
    *,
    start_date: date,
    end_date: date,
    rules: ReconciliationRules,
) -> None:
    cursor = start_date
    while cursor <= end_date:
        if not is_friday(cursor) and cursor not in accumulator.worked_dates:
            accumulator.add_absence(cursor, shortfall_minutes=rules.standard_day_minutes)
        cursor += timedelta(days=1)


def reconcile(
    records: Iterable[DetailedAttendanceRecord],
    *,
    rules: ReconciliationRules | None = None,
) -> AttendanceAnalysis:
    """Turn raw device rows into per-employee daily metrics.

    Rows without any punch are dropped first; if none remain the whole run is
    rejected with :class:`NoAttendanceRecordsError`.
    """
    active_rules = rules or ReconciliationRules()
    usable = [record for record in records if record.has_punches()]
    if not usable:
        raise NoAttendanceRecordsError("No valid attendance records found. Please check the file format.")

    ordered = sort_records(usable)
    start_date = min(record.date for record in ordered)
    end_date = max(record.date for record in ordered)

    decisions = plan_midnight_stitches(ordered, cutoff_minutes=active_rules.stitch_cutoff_minutes)
    stitched = apply_midnight_stitches(ordered, decisions)

    accumulators: dict[str, _EmployeeAccumulator] = {}
    for record in stitched:
        if record.ignore:
            continue
        accumulator = accumulators.get(record.employee_name)
        if accumulator is None:
            accumulator = _EmployeeAccumulator(employee_name=record.employee_name)
            accumulators[record.employee_name] = accumulator

        row = calculate_row_minutes(record)
        score = score_day(
            worked_minutes=row.worked_minutes,
            first_punch=row.first_punch,
            rules=active_rules,
        )
        accumulator.add_day(record, row, score)

    for accumulator in accumulators.values():
        backfill_absences(
            accumulator,
            start_date=start_date,
            end_date=end_date,
            rules=active_rules,
        )

    employees = [accumulator.to_summary() for accumulator in accumulators.values()]
    logger.info(
        "attendance_reconciled",
        extra={
            "input_rows": len(ordered),
            "stitched_rows": len(decisions),
            "employee_count": len(employees),
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
        },
    )
    return AttendanceAnalysis(
        start_date=start_date,
        end_date=end_date,
        employees=employees,
        stitched_rows=len(decisions),
    )
