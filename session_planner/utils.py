from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Optional

from .config import HHMM_RE, ISO_DATE_RE, PLANNER_DEBUG


def _log_debug(message: str) -> None:
    if PLANNER_DEBUG:
        print(message, flush=True)


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


def time_to_minutes(time_str: str) -> int:
    """'HH:MM' -> 자정 기준 분. 분이 없으면 0으로 본다."""
    raw = (time_str or "").strip()
    hours_part, _, minutes_part = raw.partition(":")
    try:
        hours = int(hours_part)
        minutes = int(minutes_part) if minutes_part else 0
    except ValueError as exc:
        raise ValueError(f"Invalid time value: {time_str!r}") from exc
    return hours * 60 + minutes


def minutes_to_time(minutes: int) -> str:
    # 자정 넘김 없음. 호출 측에서 0..1439 범위를 지킨다.
    minutes = int(round(minutes))
    hours, mins = divmod(minutes, 60)
    return f"{hours:02d}:{mins:02d}"


def duration_minutes(hours: float) -> int:
    return int(round(hours * 60))


def end_time_for(start_time: str, hours: float) -> str:
    return minutes_to_time(time_to_minutes(start_time) + duration_minutes(hours))


def parse_date(value: str) -> date:
    return datetime.strptime(value.strip()[:10], "%Y-%m-%d").date()


def format_date(value: date) -> str:
    return value.strftime("%Y-%m-%d")


def add_days(value: str, days: int) -> str:
    return format_date(parse_date(value) + timedelta(days=days))


def weekday_index(value: str) -> int:
    """요일 인덱스 (0 = 일요일 ... 6 = 토요일)"""
    return (parse_date(value).weekday() + 1) % 7


def hours_between(start_time: str, end_time: str) -> float:
    return max(0, time_to_minutes(end_time) - time_to_minutes(start_time)) / 60.0


def minutes_of_day(value: Optional[datetime]) -> int:
    if value is None:
        return 0
    return value.hour * 60 + value.minute


def is_valid_time(value: Optional[str]) -> bool:
    """HH:MM 형식이고 분이 0~59, 시가 0~24(24:00만) 인지"""
    return bool(value) and HHMM_RE.match(value.strip()) is not None


def is_valid_date(value: Optional[str]) -> bool:
    """YYYY-MM-DD 형식이면서 실제로 존재하는 날짜인지 (2024-02-30 거부)"""
    if not value or not ISO_DATE_RE.match(value.strip()):
        return False
    try:
        datetime.strptime(value.strip(), "%Y-%m-%d")
    except ValueError:
        return False
    return True
