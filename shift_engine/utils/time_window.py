"""시간 구간 유틸리티 — 시프트를 절대 분 단위 구간으로 변환합니다.

Time window utilities — Convert dated wall-clock shifts into absolute
half-open intervals measured in minutes since 1970-01-01, so shifts on
different dates (and overnight shifts) can be compared directly.
"""

from datetime import date, time

_EPOCH: date = date(1970, 1, 1)
MINUTES_PER_DAY: int = 24 * 60

# (시작 분, 종료 분) — [start, end) in minutes since epoch
Interval = tuple[int, int]


def _minute_of_day(t: time) -> int:
    return t.hour * 60 + t.minute


def wraps_midnight(start_time: time, end_time: time) -> bool:
    """종료 시각이 시작 시각 이전(또는 같음)이면 다음 날 종료로 간주합니다.

    Equal start and end times denote a full 24-hour shift.
    """
    return _minute_of_day(end_time) <= _minute_of_day(start_time)


def shift_interval(shift_date: date, start_time: time, end_time: time) -> Interval:
    """시프트를 [시작, 종료) 절대 분 구간으로 변환합니다.

    Convert a shift into a half-open [start, end) interval in elapsed minutes
    since the epoch. Overnight shifts get 24 hours added to their end.

    Args:
        shift_date: 시프트 시작 날짜 (Date the shift starts on)
        start_time: 시작 시각 (Wall-clock start)
        end_time: 종료 시각 (Wall-clock end, may be earlier than start)

    Returns:
        Interval: (start_minute, end_minute)
    """
    day_offset: int = (shift_date - _EPOCH).days * MINUTES_PER_DAY
    start: int = day_offset + _minute_of_day(start_time)
    end: int = day_offset + _minute_of_day(end_time)
    if wraps_midnight(start_time, end_time):
        end += MINUTES_PER_DAY
    return start, end


def overlaps(a: Interval, b: Interval) -> bool:
    """반개구간 겹침 검사 — Half-open overlap test; touching ends do not overlap."""
    return a[0] < b[1] and b[0] < a[1]


def shift_hours(start_time: time, end_time: time) -> float:
    """근무 시간(시간) — Shift length in hours, overnight aware."""
    minutes: int = _minute_of_day(end_time) - _minute_of_day(start_time)
    if wraps_midnight(start_time, end_time):
        minutes += MINUTES_PER_DAY
    return round(minutes / 60, 2)


def format_hhmm(t: time) -> str:
    return t.strftime("%H:%M")
