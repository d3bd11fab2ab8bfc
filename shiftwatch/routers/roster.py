from datetime import datetime, timedelta

from fastapi import APIRouter, Depends

from shiftwatch.models import PresenceFilterMode
from shiftwatch.schemas import (
    AttendancePunch,
    PresenceEntry,
    PunchStateRequest,
    PunchStatusRead,
    RosterSnapshotRequest,
    ShiftParseRequest,
    ShiftTimelineRequest,
    ShiftTimelineResponse,
    ShiftWindow,
)
from shiftwatch.services.punch_state import PunchStateRules, resolve_punch_state
from shiftwatch.services.roster import resolve_active_shifts
from shiftwatch.services.shift_timeline import (
    build_shift_occurrences,
    find_current_occurrence,
    find_next_occurrence,
    resolve_user_day_shifts,
)
from shiftwatch.services.time_parsing import parse_multi_shifts
from shiftwatch.settings import Settings, get_settings, resolve_timezone

router = APIRouter(tags=["roster"])


def _local_now(value: datetime | None, settings: Settings) -> datetime:
    """Wall-clock instant in the attendance time zone; naive input is already local."""
    tz = resolve_timezone(settings.attendance_timezone)
    if value is None:
        return datetime.now(tz)
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def _default_window(settings: Settings) -> ShiftWindow:
    return ShiftWindow(start=settings.default_shift_start, end=settings.default_shift_end)


def build_punch_state_rules(settings: Settings) -> PunchStateRules:
    return PunchStateRules(
        entry_window_minutes=settings.punch_entry_window_minutes,
        checkout_grace_minutes=settings.punch_checkout_grace_minutes,
    )


def _localize_punch(punch: AttendancePunch, settings: Settings) -> AttendancePunch:
    return punch.model_copy(update={"timestamp": _local_now(punch.timestamp, settings)})


@router.post("/api/shifts/parse", response_model=list[ShiftWindow])
def parse_shift_text(payload: ShiftParseRequest) -> list[ShiftWindow]:
    return parse_multi_shifts(payload.text)


@router.post("/api/roster/on-shift", response_model=list[PresenceEntry])
def list_on_shift(
    payload: RosterSnapshotRequest,
    settings: Settings = Depends(get_settings),
) -> list[PresenceEntry]:
    mode = payload.mode or PresenceFilterMode(settings.presence_filter_mode)
    return resolve_active_shifts(
        payload.schedules,
        _local_now(payload.now, settings),
        payload.punches,
        payload.users,
        mode=mode,
        default_window=_default_window(settings),
    )


@router.post("/api/roster/timeline", response_model=ShiftTimelineResponse)
def shift_timeline(
    payload: ShiftTimelineRequest,
    settings: Settings = Depends(get_settings),
) -> ShiftTimelineResponse:
    now = _local_now(payload.now, settings)
    occurrences = build_shift_occurrences(
        payload.schedules,
        now,
        default_window=_default_window(settings),
    )
    current = find_current_occurrence(occurrences, now)
    upcoming = find_next_occurrence(occurrences, now)
    return ShiftTimelineResponse(
        now=now,
        today_shifts=resolve_user_day_shifts(payload.schedules, now.date()),
        current=current.to_read() if current is not None else None,
        next=upcoming.to_read() if upcoming is not None else None,
        occurrences=[occurrence.to_read() for occurrence in occurrences],
    )


@router.post("/api/roster/punch-state", response_model=PunchStatusRead)
def punch_state(
    payload: PunchStateRequest,
    settings: Settings = Depends(get_settings),
) -> PunchStatusRead:
    now = _local_now(payload.now, settings)
    today = now.date()
    yesterday = today - timedelta(days=1)
    punches = [_localize_punch(punch, settings) for punch in payload.punches]
    return resolve_punch_state(
        now,
        [punch for punch in punches if punch.date == today],
        [punch for punch in punches if punch.date == yesterday],
        resolve_user_day_shifts(payload.schedules, today),
        has_override=payload.has_override,
        rules=build_punch_state_rules(settings),
    )
