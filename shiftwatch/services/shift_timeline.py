from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from shiftwatch.schemas import ScheduleEntry, ShiftOccurrenceRead
from shiftwatch.services.roster import (
    DEFAULT_SHIFT_WINDOW,
    materialize_windows,
    schedule_applies_on,
    schedule_mentions,
)
from shiftwatch.services.time_parsing import ShiftWindow, parse_multi_shifts, to_minutes

_OFF_DAY_RE = re.compile(r"\boff\b", re.IGNORECASE)
NIGHT_SHIFT_MORNING_CUTOFF_HOUR = 12


@dataclass(frozen=True)
class ShiftOccurrence:
    day: date
    window: ShiftWindow
    starts_at: datetime
    ends_at: datetime
    location_id: str
    is_recurring: bool

    def contains(self, instant: datetime) -> bool:
        return self.starts_at <= instant < self.ends_at

    def to_read(self) -> ShiftOccurrenceRead:
        return ShiftOccurrenceRead(
            date=self.day,
            start=self.window.start,
            end=self.window.end,
            starts_at=self.starts_at,
            ends_at=self.ends_at,
            location_id=self.location_id,
            is_recurring=self.is_recurring,
        )


def _explicit_or_parsed_windows(entry: ScheduleEntry) -> list[ShiftWindow]:
    if entry.shifts:
        return list(entry.shifts)
    return parse_multi_shifts(entry.note)


def _is_off_day(entry: ScheduleEntry) -> bool:
    return bool(_OFF_DAY_RE.search(entry.location_id or "") or _OFF_DAY_RE.search(entry.note or ""))


def resolve_user_day_shifts(schedules: Sequence[ScheduleEntry], day: date) -> list[ShiftWindow]:
    """Return one user's effective shift windows for ``day``.

    A dated entry always wins (and an "Off" dated entry means no shifts).
    Among recurring entries, ones bounded by ``valid_from`` outrank open-ended
    ones, then the most recently created wins.
    """
    for entry in schedules:
        if entry.date == day:
            if _is_off_day(entry):
                return []
            return _explicit_or_parsed_windows(entry)

    applicable = [entry for entry in schedules if entry.is_recurring and schedule_applies_on(entry, day)]
    if not applicable:
        return []

    applicable.sort(
        key=lambda entry: (
            entry.valid_from is None,
            -(entry.created_at.timestamp() if entry.created_at else 0.0),
        )
    )
    return _explicit_or_parsed_windows(applicable[0])


def _anchor(day: date, value: str, reference: datetime) -> datetime:
    midnight = datetime.combine(day, time.min, tzinfo=reference.tzinfo)
    return midnight + timedelta(minutes=to_minutes(value) or 0)


def build_shift_occurrences(
    schedules: Sequence[ScheduleEntry],
    now: datetime,
    *,
    default_window: ShiftWindow = DEFAULT_SHIFT_WINDOW,
) -> list[ShiftOccurrence]:
    """Anchor every applicable window for yesterday, today and tomorrow."""
    today = now.date()
    dated_days = {entry.date for entry in schedules if entry.date is not None}
    occurrences: list[ShiftOccurrence] = []

    for entry in schedules:
        is_night = schedule_mentions(entry, "night")
        windows = materialize_windows(entry, default_window)

        for offset in (-1, 0, 1):
            day = today + timedelta(days=offset)
            if entry.is_recurring and day in dated_days:
                continue
            if not schedule_applies_on(entry, day):
                continue

            for window in windows:
                starts_at = _anchor(day, window.start, now)
                ends_at = _anchor(day, window.end, now)

                # A night roster row's early-morning block belongs to the following calendar day.
                if is_night and starts_at.hour < NIGHT_SHIFT_MORNING_CUTOFF_HOUR and starts_at.date() == day:
                    starts_at += timedelta(days=1)
                    ends_at += timedelta(days=1)
                if ends_at <= starts_at:
                    ends_at += timedelta(days=1)

                occurrences.append(
                    ShiftOccurrence(
                        day=day,
                        window=window,
                        starts_at=starts_at,
                        ends_at=ends_at,
                        location_id=entry.location_id or "",
                        is_recurring=entry.is_recurring,
                    )
                )

    occurrences.sort(key=lambda item: item.starts_at)
    return occurrences


def find_current_occurrence(occurrences: Iterable[ShiftOccurrence], now: datetime) -> ShiftOccurrence | None:
    for occurrence in occurrences:
        if occurrence.contains(now):
            return occurrence
    return None


def find_next_occurrence(occurrences: Iterable[ShiftOccurrence], now: datetime) -> ShiftOccurrence | None:
    for occurrence in occurrences:
        if occurrence.starts_at > now:
            return occurrence
    return None
