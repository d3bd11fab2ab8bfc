from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "ShiftWatch"
    cors_allow_origins: str = "http://127.0.0.1:5173,http://localhost:5173"
    attendance_timezone: str = "UTC"
    log_level: str = "INFO"

    overtime_threshold_minutes: int = 9 * 60
    standard_day_minutes: int = 8 * 60
    standard_start_time: str = "08:00"
    lateness_grace_minutes: int = 15
    lateness_cutoff_time: str = "12:00"
    stitch_cutoff_time: str = "07:00"

    default_shift_start: str = "08:00"
    default_shift_end: str = "16:00"
    presence_filter_mode: str = "present"

    punch_entry_window_minutes: int = 30
    punch_checkout_grace_minutes: int = 60

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()


def get_cors_origins() -> list[str]:
    raw = get_settings().cors_allow_origins
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@lru_cache
def resolve_timezone(name: str | None) -> ZoneInfo:
    raw_name = (name or "").strip() or "UTC"
    try:
        return ZoneInfo(raw_name)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")
