from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from shiftwatch.models import PunchState, PunchType
from shiftwatch.schemas import AttendancePunch, PunchStatusRead
from shiftwatch.services.time_parsing import MINUTES_PER_DAY, ShiftWindow, format_time_12h, to_minutes

logger = logging.getLogger("shiftwatch.punch_state")

SEE_YOU_TOMORROW = "See you tomorrow"


@dataclass(frozen=True)
class PunchStateRules:
    entry_window_minutes: int = 30
    exit_window_minutes: int = 30
    second_exit_window_minutes: int = 15
    checkout_grace_minutes: int = 60
    missed_out_limit_minutes: int = 90
    morning_out_cutoff_hour: int = 10
    midday_minutes: int = 12 * 60
    overnight_continuation_hours: int = 18
    late_start_minutes: int = 1000
    early_morning_minutes: int = 15 * 60
    completion_cooldown_minutes: int = 60


def _status(
    state: PunchState,
    message: str,
    sub: str,
    *,
    can_punch: bool = False,
    shift_index: int | None = None,
    is_break: bool = False,
) -> PunchStatusRead:
    return PunchStatusRead(
        state=state,
        message=message,
        sub=sub,
        can_punch=can_punch,
        shift_index=shift_index,
        is_break=is_break,
    )


def _minute_of_day(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


def _clock_minutes(value: str) -> int:
    minutes = to_minutes(value)
    return 0 if minutes is None else minutes


def _clock_label(minutes: int) -> str:
    hour = (minutes // 60) % 24
    return format_time_12h(f"{hour:02d}:{minutes % 60:02d}")


def _wait_label(minutes: int) -> str:
    return f"{minutes // 60}h {minutes % 60}m"


def _minutes_between(earlier: datetime, later: datetime) -> float:
    return (later - earlier).total_seconds() / 60


def _shift_end(window: ShiftWindow, start: int) -> int:
    end = _clock_minutes(window.end)
    if end < start:
        end += MINUTES_PER_DAY
    return end


def _second_shift_start(shifts: Sequence[ShiftWindow], first_start: int) -> int:
    start = _clock_minutes(shifts[1].start)
    if start < first_start:
        start += MINUTES_PER_DAY
    return start


def _night_adjusted(current: int, first_start: int, rules: PunchStateRules) -> int:
    """Carry early-morning minutes past midnight for a shift that started late the day before."""
    if first_start > rules.late_start_minutes and current < rules.early_morning_minutes:
        return current + MINUTES_PER_DAY
    return current


def drop_morning_out(
    punches: Sequence[AttendancePunch],
    shifts: Sequence[ShiftWindow],
    rules: PunchStateRules,
) -> tuple[list[AttendancePunch], bool]:
    """Drop a leading OUT that closes the previous night's shift."""
    effective = list(punches)
    if not effective or effective[0].type != PunchType.OUT:
        return effective, False

    first = effective[0].timestamp
    if first.hour < rules.morning_out_cutoff_hour:
        return effective[1:], True
    if shifts and _clock_minutes(shifts[0].start) > rules.midday_minutes and _minute_of_day(first) < rules.midday_minutes:
        return effective[1:], True
    return effective, False


def _day_done(last_punch: datetime, now: datetime, sub: str, rules: PunchStateRules) -> PunchStatusRead:
    if _minutes_between(last_punch, now) < rules.completion_cooldown_minutes:
        return _status(PunchState.COMPLETED, "COMPLETE", sub)
    return _status(PunchState.COMPLETED, "NEXT SHIFT", SEE_YOU_TOMORROW)


def _before_first_punch(
    current: int,
    shifts: Sequence[ShiftWindow],
    has_override: bool,
    rules: PunchStateRules,
) -> PunchStatusRead:
    first = shifts[0]
    first_start = _clock_minutes(first.start)
    first_end = _shift_end(first, first_start)

    if current > first_end:
        if current <= first_end + rules.checkout_grace_minutes:
            return _status(PunchState.ABSENT, "ABSENT", "Shift 1 Missed")
        if len(shifts) < 2:
            return _status(PunchState.COMPLETED, "NEXT SHIFT", SEE_YOU_TOMORROW)
        second_start = _second_shift_start(shifts, first_start)
        if current >= second_start - rules.entry_window_minutes:
            return _status(PunchState.READY_IN, "START", "Shift 2", can_punch=True, shift_index=2)
        return _status(PunchState.WAITING, "NEXT SHIFT", f"Shift 2 in {_wait_label(second_start - current)}")

    if has_override or current >= first_start - rules.entry_window_minutes:
        return _status(PunchState.READY_IN, "START", "Shift 1", can_punch=True, shift_index=1)
    return _status(PunchState.LOCKED, "TOO EARLY", f"Starts at {first.start}")


def _on_first_shift(
    current: int,
    shifts: Sequence[ShiftWindow],
    has_override: bool,
    rules: PunchStateRules,
) -> PunchStatusRead:
    first_start = _clock_minutes(shifts[0].start)
    first_end = _shift_end(shifts[0], first_start)
    current = _night_adjusted(current, first_start, rules)

    unlock = first_end - rules.exit_window_minutes
    if not has_override and current < unlock:
        return _status(PunchState.LOCKED, "ON DUTY", f"Exit opens at {_clock_label(unlock)}", shift_index=1)
    if current <= first_end + rules.checkout_grace_minutes:
        return _status(PunchState.READY_OUT, "END", "Shift 1", can_punch=True, shift_index=1)
    if current <= first_end + rules.missed_out_limit_minutes:
        return _status(PunchState.MISSED, "MISSED OUT", "Forgot Checkout")

    if len(shifts) < 2:
        return _status(PunchState.COMPLETED, "NEXT SHIFT", SEE_YOU_TOMORROW)
    second_start = _second_shift_start(shifts, first_start)
    if current >= second_start - rules.entry_window_minutes:
        return _status(PunchState.READY_IN, "START", "Shift 2", can_punch=True, shift_index=2)
    return _status(PunchState.BREAK, "BREAK", "Waiting Shift 2", is_break=True)


def _between_shifts(
    current: int,
    shifts: Sequence[ShiftWindow],
    has_override: bool,
    rules: PunchStateRules,
) -> PunchStatusRead:
    first_start = _clock_minutes(shifts[0].start)
    second_start = _second_shift_start(shifts, first_start)
    current = _night_adjusted(current, first_start, rules)

    if has_override or current >= second_start - rules.entry_window_minutes:
        return _status(PunchState.READY_IN, "START", "Shift 2", can_punch=True, shift_index=2)
    return _status(
        PunchState.BREAK,
        "BREAK",
        f"Shift 2 in {_wait_label(second_start - current)}",
        is_break=True,
    )


def _on_second_shift(
    current: int,
    shifts: Sequence[ShiftWindow],
    has_override: bool,
    rules: PunchStateRules,
) -> PunchStatusRead:
    first_start = _clock_minutes(shifts[0].start)
    second_start = _second_shift_start(shifts, first_start)
    second_end = _clock_minutes(shifts[1].end)
    if second_end < first_start:
        second_end += MINUTES_PER_DAY
    if second_end < second_start:
        second_end += MINUTES_PER_DAY
    current = _night_adjusted(current, first_start, rules)

    unlock = second_end - rules.second_exit_window_minutes
    if not has_override and current < unlock:
        return _status(PunchState.LOCKED, "ON DUTY", f"Exit opens at {_clock_label(unlock)}", shift_index=2)
    if current <= second_end + rules.checkout_grace_minutes:
        return _status(PunchState.READY_OUT, "END", "Shift 2", can_punch=True, shift_index=2)
    if current <= second_end + rules.missed_out_limit_minutes:
        return _status(PunchState.MISSED, "MISSED OUT", "Forgot Checkout S2")
    return _status(PunchState.COMPLETED, "NEXT SHIFT", SEE_YOU_TOMORROW)


def _evaluate(
    now: datetime,
    today_punches: Sequence[AttendancePunch],
    yesterday_punches: Sequence[AttendancePunch],
    shifts: Sequence[ShiftWindow],
    has_override: bool,
    rules: PunchStateRules,
) -> PunchStatusRead:
    effective, had_morning_out = drop_morning_out(today_punches, shifts, rules)

    if not effective and yesterday_punches and not had_morning_out:
        last_yesterday = yesterday_punches[-1]
        open_hours = _minutes_between(last_yesterday.timestamp, now) / 60
        if last_yesterday.type == PunchType.IN and open_hours < rules.overnight_continuation_hours:
            return _status(PunchState.READY_OUT, "END", "Overnight Shift", can_punch=True, shift_index=1)

    if not shifts:
        return _status(PunchState.COMPLETED, "NO SHIFT", "Relax Today")

    current = _minute_of_day(now)
    count = len(effective)
    if count == 0:
        return _before_first_punch(current, shifts, has_override, rules)
    if count == 1 and effective[0].type == PunchType.IN:
        return _on_first_shift(current, shifts, has_override, rules)
    if count == 2:
        if len(shifts) < 2:
            return _day_done(effective[-1].timestamp, now, "Shift Done", rules)
        return _between_shifts(current, shifts, has_override, rules)
    if count == 3 and len(shifts) >= 2:
        return _on_second_shift(current, shifts, has_override, rules)
    if count >= 4:
        return _day_done(effective[-1].timestamp, now, "Day Done", rules)
    return _status(PunchState.UNKNOWN, "UNKNOWN", "Contact Admin")


def resolve_punch_state(
    now: datetime,
    today_punches: Sequence[AttendancePunch],
    yesterday_punches: Sequence[AttendancePunch],
    today_shifts: Sequence[ShiftWindow],
    *,
    has_override: bool = False,
    rules: PunchStateRules | None = None,
) -> PunchStatusRead:
    """Decide whether a user may punch in or out right now.

    The day is read as a sequence of punches against at most two shifts:
    nothing yet, inside shift 1, between shifts, inside shift 2, done. A
    leading OUT before mid-morning belongs to last night and is ignored, and
    an IN left open yesterday keeps the overnight checkout available.
    ``has_override`` lifts the early-entry and early-exit locks. Timestamps
    and ``now`` must share one clock.
    """
    active_rules = rules or PunchStateRules()
    today = sorted(today_punches, key=lambda punch: punch.timestamp)
    yesterday = sorted(yesterday_punches, key=lambda punch: punch.timestamp)

    result = _evaluate(now, today, yesterday, list(today_shifts), has_override, active_rules)
    logger.debug(
        "punch_state_resolved",
        extra={
            "state": result.state.value,
            "punch_count": len(today),
            "shift_count": len(today_shifts),
            "has_override": has_override,
        },
    )
    return result
