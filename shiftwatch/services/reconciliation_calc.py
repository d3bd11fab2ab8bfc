from __future__ import annotations

from dataclasses import dataclass

from shiftwatch.models import DayStatus, DetailedAttendanceRecord
from shiftwatch.services.time_parsing import MINUTES_PER_DAY, format_time_12h, to_minutes

NEXT_DAY_EXIT_LABEL = "(+Next Day Exit)"
OPEN_SPAN_LABEL = "???"


@dataclass(frozen=True)
class ReconciliationRules:
    overtime_threshold_minutes: int = 9 * 60
    standard_day_minutes: int = 8 * 60
    standard_start_minutes: int = 8 * 60
    lateness_grace_minutes: int = 15
    lateness_cutoff_minutes: int = 12 * 60
    stitch_cutoff_minutes: int = 7 * 60


@dataclass(frozen=True)
class RowMinutes:
    first_shift_minutes: int
    second_shift_minutes: int
    first_punch: str | None
    timestamps: tuple[str, ...]

    @property
    def worked_minutes(self) -> int:
        return self.first_shift_minutes + self.second_shift_minutes


@dataclass(frozen=True)
class DayScore:
    status: DayStatus
    worked_minutes: int
    overtime_minutes: int
    shortfall_minutes: int
    lateness_minutes: int


def span_minutes(start: str | None, end: str | None) -> int | None:
    start_minutes = to_minutes(start)
    end_minutes = to_minutes(end)
    if start_minutes is None or end_minutes is None:
        return None
    duration = end_minutes - start_minutes
    if duration < 0:
        duration += MINUTES_PER_DAY
    return duration


def _arrow(start: str | None, end: str | None) -> str:
    end_label = format_time_12h(end) if end else OPEN_SPAN_LABEL
    return f"{format_time_12h(start)} → {end_label}"


def calculate_row_minutes(record: DetailedAttendanceRecord) -> RowMinutes:
    """Split a four-slot row into its worked spans.

    Shift 1 runs clock-in to break-out, or clock-in to clock-out when the row
    has no break-in. Shift 2 runs break-in to clock-out. Spans whose end is
    earlier than their start crossed midnight.
    """
    first_shift = 0
    second_shift = 0
    timestamps: list[str] = []

    if record.clock_in:
        if record.break_out:
            first_shift = span_minutes(record.clock_in, record.break_out) or 0
            timestamps.append(f"Shift 1: {_arrow(record.clock_in, record.break_out)}")
        elif record.clock_out and not record.break_in:
            first_shift = span_minutes(record.clock_in, record.clock_out) or 0
            timestamps.append(_arrow(record.clock_in, record.clock_out))
        else:
            timestamps.append(_arrow(record.clock_in, None))

    if record.break_in and record.clock_out:
        second_shift = span_minutes(record.break_in, record.clock_out) or 0
        timestamps.append(f"Shift 2: {_arrow(record.break_in, record.clock_out)}")
    elif record.break_in:
        timestamps.append(f"Shift 2: {_arrow(record.break_in, None)}")

    if (
        first_shift == 0
        and second_shift == 0
        and record.clock_in
        and record.clock_out
        and not record.break_out
        and not record.break_in
    ):
        first_shift = span_minutes(record.clock_in, record.clock_out) or 0
        if not timestamps:
            timestamps.append(_arrow(record.clock_in, record.clock_out))

    if record.is_modified:
        timestamps.append(NEXT_DAY_EXIT_LABEL)

    return RowMinutes(
        first_shift_minutes=first_shift,
        second_shift_minutes=second_shift,
        first_punch=record.first_punch(),
        timestamps=tuple(timestamps),
    )


def calculate_lateness_minutes(first_punch: str | None, rules: ReconciliationRules) -> int:
    punch_minutes = to_minutes(first_punch)
    if punch_minutes is None:
        return 0
    late_after = rules.standard_start_minutes + rules.lateness_grace_minutes
    # Afternoon and evening starts are treated as non-standard shifts and never flagged.
    if late_after < punch_minutes < rules.lateness_cutoff_minutes:
        return punch_minutes - rules.standard_start_minutes
    return 0


def score_day(
    *,
    worked_minutes: int,
    first_punch: str | None,
    rules: ReconciliationRules,
) -> DayScore:
    worked = max(0, worked_minutes)
    overtime = 0
    shortfall = 0
    if worked > rules.overtime_threshold_minutes:
        overtime = worked - rules.overtime_threshold_minutes
    elif 0 < worked < rules.standard_day_minutes:
        shortfall = rules.standard_day_minutes - worked

    return DayScore(
        status=DayStatus.PRESENT if worked > 0 else DayStatus.MISSING_PUNCH,
        worked_minutes=worked,
        overtime_minutes=overtime,
        shortfall_minutes=shortfall,
        lateness_minutes=calculate_lateness_minutes(first_punch, rules),
    )


def minutes_to_hours(minutes: int) -> float:
    return minutes / 60
