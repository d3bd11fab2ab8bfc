from __future__ import annotations

import logging
import re
from collections import defaultdict
from collections.abc import Iterable
from datetime import date, datetime

from shiftwatch.models import PresenceFilterMode, PunchType, StaffRole
from shiftwatch.schemas import AttendancePunch, PresenceEntry, ScheduleEntry, StaffProfile
from shiftwatch.services.time_parsing import MINUTES_PER_DAY, ShiftWindow, parse_multi_shifts, to_minutes

logger = logging.getLogger("shiftwatch.roster")

DEFAULT_SHIFT_WINDOW = ShiftWindow(start="08:00", end="16:00")
FRIDAY_WEEKDAY = 4
COMMON_DUTY_LOCATION = "common_duty"

_PORTABLE_PROCEDURE_RE = re.compile(r"[(\[{]\s*pp\s*[)\]}]|\bpp\b", re.IGNORECASE)


def is_friday(day: date) -> bool:
    return day.weekday() == FRIDAY_WEEKDAY


def schedule_mentions(entry: ScheduleEntry, token: str) -> bool:
    needle = token.lower()
    return needle in (entry.location_id or "").lower() or needle in (entry.note or "").lower()


def schedule_applies_on(entry: ScheduleEntry, day: date) -> bool:
    if entry.date is not None:
        return entry.date == day

    if entry.valid_from is not None and day < entry.valid_from:
        return False
    if entry.valid_to is not None and day > entry.valid_to:
        return False

    friday_marked = schedule_mentions(entry, "friday")
    if is_friday(day):
        return friday_marked
    return not friday_marked and not schedule_mentions(entry, "holiday")


def materialize_windows(
    entry: ScheduleEntry,
    default_window: ShiftWindow = DEFAULT_SHIFT_WINDOW,
) -> list[ShiftWindow]:
    if entry.shifts:
        return list(entry.shifts)
    parsed = parse_multi_shifts(entry.note)
    if parsed:
        return parsed
    return [default_window]


def window_contains(window: ShiftWindow, minute_of_day: int) -> bool:
    start = to_minutes(window.start)
    end = to_minutes(window.end)
    if start is None or end is None:
        return False

    if end < start:
        end += MINUTES_PER_DAY

    current = minute_of_day
    # Early-morning tail of an overnight window started yesterday.
    if end > MINUTES_PER_DAY and current < end - MINUTES_PER_DAY:
        current += MINUTES_PER_DAY
    return start <= current < end


def resolve_present_user_ids(
    punches: Iterable[AttendancePunch],
    *,
    day: date | None = None,
) -> set[str]:
    punches_by_user: dict[str, list[AttendancePunch]] = defaultdict(list)
    for punch in punches:
        if day is not None and punch.date != day:
            continue
        punches_by_user[punch.user_id].append(punch)

    present: set[str] = set()
    for user_id, user_punches in punches_by_user.items():
        ordered = sorted(user_punches, key=lambda item: item.timestamp.timestamp())
        if ordered[-1].type == PunchType.IN:
            present.add(user_id)
    return present


def split_portable_procedure_marker(text: str | None) -> tuple[str, bool]:
    if not text:
        return "", False
    found = _PORTABLE_PROCEDURE_RE.search(text) is not None
    cleaned = " ".join(_PORTABLE_PROCEDURE_RE.sub(" ", text).split())
    return cleaned, found


def location_label(entry: ScheduleEntry) -> str:
    location = entry.location_id or ""
    if location == COMMON_DUTY_LOCATION and entry.note:
        return entry.note.split("-")[0].strip()
    return location


def _is_doctor(role: str | None) -> bool:
    return (role or "").strip().lower() == StaffRole.DOCTOR.value


def resolve_active_shifts(
    schedules: Iterable[ScheduleEntry],
    now: datetime,
    today_punches: Iterable[AttendancePunch],
    users: Iterable[StaffProfile],
    *,
    mode: PresenceFilterMode | str = PresenceFilterMode.PRESENT,
    default_window: ShiftWindow = DEFAULT_SHIFT_WINDOW,
) -> list[PresenceEntry]:
    """List the people whose scheduled window contains ``now``.

    ``now`` is the local wall-clock instant. In ``present`` mode only doctors
    and staff whose latest punch today is an IN are listed; ``all`` lists every
    scheduled person. Entries are de-duplicated by display name, or by user id
    when no name is known.
    """
    filter_mode = PresenceFilterMode(mode)
    today = now.date()
    minute_of_day = now.hour * 60 + now.minute
    users_by_id = {user.id: user for user in users}
    present_user_ids = resolve_present_user_ids(today_punches, day=today)

    active: list[PresenceEntry] = []
    seen_names: set[str] = set()
    scanned = 0
    for entry in schedules:
        scanned += 1
        if not schedule_applies_on(entry, today):
            continue

        for window in materialize_windows(entry, default_window):
            if not window_contains(window, minute_of_day):
                continue

            profile = users_by_id.get(entry.user_id)
            _, snapshot_marked = split_portable_procedure_marker(entry.staff_name)
            _, note_marked = split_portable_procedure_marker(entry.note)
            raw_name = profile.display_name if profile is not None else (entry.staff_name or "")
            name, _ = split_portable_procedure_marker(raw_name)
            role = profile.role if profile is not None else None
            is_present = entry.user_id in present_user_ids

            if filter_mode == PresenceFilterMode.PRESENT and not (_is_doctor(role) or is_present):
                continue
            dedupe_key = name or f"user:{entry.user_id}"
            if dedupe_key in seen_names:
                continue

            seen_names.add(dedupe_key)
            active.append(
                PresenceEntry(
                    user_id=entry.user_id,
                    name=name,
                    location=location_label(entry),
                    time_window_label=window.label,
                    role=role,
                    phone=profile.phone if profile is not None else None,
                    is_portable_procedure=snapshot_marked or note_marked,
                    is_currently_present=is_present,
                )
            )

    logger.debug(
        "roster_resolved",
        extra={
            "day": today.isoformat(),
            "minute_of_day": minute_of_day,
            "mode": filter_mode.value,
            "schedules_scanned": scanned,
            "active_count": len(active),
            "present_count": len(present_user_ids),
        },
    )
    return active
