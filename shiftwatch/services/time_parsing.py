from __future__ import annotations

import re
from datetime import datetime, time

from pydantic import BaseModel, ConfigDict, field_validator

MINUTES_PER_DAY = 24 * 60
MIDNIGHT_SENTINEL = "24:00"

_BARE_HOUR_RE = re.compile(r"\d{1,2}")
_PERIOD_SEPARATOR_RE = re.compile(r"(\d+)\.(\d+)")
_MIDNIGHT_RE = re.compile(r"\b12\s*:?\s*0{0,2}\s*mn\b")
_NOON_RE = re.compile(r"\b12\s*:?\s*0{0,2}\s*n\b")
_NON_TIME_CHARS_RE = re.compile(r"[^\d:]")
_DEVICE_TIME_RE = re.compile(r"(\d{1,2}):(\d{1,2})")

# PM markers are checked first: "مساء" and "م" must win over the AM scan.
_PM_MARKERS = ("pm", "p.m", "مساء", "م")
_AM_MARKERS = ("am", "a.m", "صباح", "ص")

_SEGMENT_SPLIT_RE = re.compile(
    r"[/,&]"
    r"|\s+and\s+"
    r"|(?<![-–—\s])(?<!to)\s+(?=\d{1,2}(?::\d{2})?\s*(?:am|pm|mn|noon))",
    re.IGNORECASE,
)
_RANGE_SPLIT_RE = re.compile(r"\s*(?:[-–—]|\bto\b)\s*", re.IGNORECASE)


class ShiftWindow(BaseModel):
    """A continuous work period as canonical ``HH:MM`` strings.

    ``end`` earlier than ``start`` means the window runs past midnight.
    """

    model_config = ConfigDict(frozen=True)

    start: str
    end: str

    @field_validator("start", "end", mode="before")
    @classmethod
    def _normalize_side(cls, value: object) -> str:
        normalized = normalize_time_string(value)
        if normalized is None:
            raise ValueError(f"Unrecognized time value: {value!r}")
        return normalized

    @property
    def label(self) -> str:
        return f"{self.start} - {self.end}"

    def duration_minutes(self) -> int:
        return window_duration_minutes(self)


def _detect_meridiem(text: str) -> str | None:
    if any(marker in text for marker in _PM_MARKERS):
        return "pm"
    if any(marker in text for marker in _AM_MARKERS):
        return "am"
    return None


def _compose(hour: int, minute: int, meridiem: str | None) -> str:
    # Fingerprint devices emit values like 20:76; carry the excess into the hour.
    hour += minute // 60
    minute %= 60

    if meridiem == "pm" and hour < 12:
        hour += 12
    elif meridiem == "am" and hour == 12:
        hour = 0

    if hour == 24 and minute == 0:
        return MIDNIGHT_SENTINEL
    return f"{hour % 24:02d}:{minute:02d}"


def normalize_time_string(raw: object) -> str | None:
    """Convert a human-entered time into canonical 24h ``HH:MM``.

    Understands bare hours (``"17"``), ``20.30``, 12h markers in English and
    Arabic, and the ``midnight``/``12mn``/``noon`` tokens. Midnight maps to the
    ``24:00`` sentinel. Returns None when nothing usable is found; never raises.
    """
    if raw is None:
        return None
    if isinstance(raw, (datetime, time)):
        return f"{raw.hour:02d}:{raw.minute:02d}"

    text = str(raw).strip().lower()
    if not text:
        return None

    if _BARE_HOUR_RE.fullmatch(text):
        hour = int(text)
        if hour <= 24:
            return f"{hour:02d}:00"

    text = _PERIOD_SEPARATOR_RE.sub(r"\1:\2", text, count=1)

    if "midnight" in text or "12mn" in text or _MIDNIGHT_RE.search(text):
        return MIDNIGHT_SENTINEL
    if "noon" in text or _NOON_RE.search(text):
        return "12:00"

    meridiem = _detect_meridiem(text)
    parts = _NON_TIME_CHARS_RE.sub("", text).split(":")
    if not parts[0]:
        return None

    hour = int(parts[0])
    minute = int(parts[1]) if len(parts) > 1 and parts[1] else 0
    if hour > 24:
        return None
    return _compose(hour, minute, meridiem)


def normalize_device_time(raw: object) -> str | None:
    """Strict normalizer for fingerprint export cells (``H:M`` shapes only)."""
    if raw is None:
        return None
    if isinstance(raw, (datetime, time)):
        return f"{raw.hour:02d}:{raw.minute:02d}"

    match = _DEVICE_TIME_RE.fullmatch(str(raw).strip())
    if match is None:
        return None

    hour = int(match.group(1))
    minute = int(match.group(2))
    hour += minute // 60
    minute %= 60
    return f"{hour % 24:02d}:{minute:02d}"


def parse_multi_shifts(text: str | None) -> list[ShiftWindow]:
    """Split free text such as ``"9am-5pm / 9pm-1am"`` into shift windows.

    Segments without a parseable start and end are dropped; input order is kept
    and overlapping windows are not merged.
    """
    if not text:
        return []

    windows: list[ShiftWindow] = []
    for segment in _SEGMENT_SPLIT_RE.split(text.strip()):
        trimmed = segment.strip()
        if not trimmed or "starting" in trimmed.lower():
            continue

        range_parts = _RANGE_SPLIT_RE.split(trimmed.replace("(", "").replace(")", ""))
        if len(range_parts) < 2:
            continue

        start = normalize_time_string(range_parts[0].strip())
        end = normalize_time_string(range_parts[-1].strip())
        if start and end:
            windows.append(ShiftWindow(start=start, end=end))
    return windows


def to_minutes(value: str | None) -> int | None:
    normalized = normalize_time_string(value)
    if normalized is None:
        return None
    hour, minute = normalized.split(":")
    return int(hour) * 60 + int(minute)


def window_duration_minutes(window: ShiftWindow) -> int:
    start = to_minutes(window.start) or 0
    end = to_minutes(window.end) or 0
    if end < start:
        end += MINUTES_PER_DAY
    return end - start


def format_time_12h(value: str | None) -> str:
    if not value:
        return "--:--"
    hour_text, _, minute_text = value.partition(":")
    try:
        hour = int(hour_text) % 24
    except ValueError:
        return value
    suffix = "PM" if hour >= 12 else "AM"
    return f"{hour % 12 or 12}:{minute_text or '00'} {suffix}"
