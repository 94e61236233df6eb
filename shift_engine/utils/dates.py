"""날짜 유틸리티 — 스케줄링 시간대 기준 "오늘"과 요일 변환.

Date utilities — "Today" in the scheduling timezone, Sunday-based weekday
numbering, and inclusive date ranges.
"""

from collections.abc import Iterator
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from shift_engine.config import settings

WEEKDAY_NAMES: tuple[str, ...] = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def scheduling_today() -> date:
    """설정된 시간대 기준 오늘 날짜 (Today in SCHEDULING_TIMEZONE)."""
    return datetime.now(ZoneInfo(settings.SCHEDULING_TIMEZONE)).date()


def sunday_weekday(d: date) -> int:
    """일요일=0 … 토요일=6 요일 번호 (Sunday-based weekday number).

    Python의 date.weekday()는 월요일=0이므로 한 칸 이동합니다.
    """
    return (d.weekday() + 1) % 7


def date_range(start: date, end: date) -> Iterator[date]:
    """start부터 end까지(포함) 날짜를 순회합니다 (Inclusive on both ends)."""
    current: date = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def horizon_window(today: date, horizon_days: int) -> tuple[date, date]:
    """롤링 기간 [today, today + horizon_days) 를 포함 끝 날짜로 반환합니다.

    Return the rolling horizon as an inclusive (start, end) pair covering
    exactly ``horizon_days`` calendar days starting today.
    """
    return today, today + timedelta(days=max(horizon_days, 1) - 1)
