"""시간 구간/날짜 유틸리티 테스트.

Time window and date utility tests — overnight wrapping, half-open overlap,
Sunday-based weekdays and the horizon window.
"""

from datetime import date, time

import pytest

from shift_engine.utils.dates import date_range, horizon_window, sunday_weekday
from shift_engine.utils.time_window import (
    MINUTES_PER_DAY,
    format_hhmm,
    overlaps,
    shift_hours,
    shift_interval,
    wraps_midnight,
)


class TestShiftInterval:
    def test_day_shift(self):
        start, end = shift_interval(date(2026, 10, 19), time(7, 0), time(19, 0))
        assert end - start == 12 * 60

    def test_overnight_shift_ends_next_day(self):
        """19:00-07:00 시프트는 다음 날 07:00에 끝남."""
        start, end = shift_interval(date(2026, 10, 19), time(19, 0), time(7, 0))
        next_day_start, _ = shift_interval(date(2026, 10, 20), time(0, 0), time(1, 0))
        assert end - start == 12 * 60
        assert end == next_day_start + 7 * 60

    def test_equal_times_is_full_day(self):
        assert wraps_midnight(time(8, 0), time(8, 0))
        start, end = shift_interval(date(2026, 10, 19), time(8, 0), time(8, 0))
        assert end - start == MINUTES_PER_DAY


class TestOverlap:
    def test_touching_ends_do_not_overlap(self):
        night = shift_interval(date(2026, 10, 19), time(19, 0), time(7, 0))
        morning = shift_interval(date(2026, 10, 20), time(7, 0), time(15, 0))
        assert not overlaps(night, morning)

    def test_overnight_overlaps_next_morning(self):
        night = shift_interval(date(2026, 10, 19), time(19, 0), time(7, 0))
        early = shift_interval(date(2026, 10, 20), time(6, 0), time(14, 0))
        assert overlaps(night, early)
        assert overlaps(early, night)

    def test_same_clock_different_days(self):
        a = shift_interval(date(2026, 10, 19), time(7, 0), time(19, 0))
        b = shift_interval(date(2026, 10, 20), time(7, 0), time(19, 0))
        assert not overlaps(a, b)


class TestHoursAndFormatting:
    @pytest.mark.parametrize(
        ("start", "end", "hours"),
        [
            (time(7, 0), time(19, 0), 12.0),
            (time(19, 0), time(7, 0), 12.0),
            (time(23, 30), time(0, 15), 0.75),
            (time(6, 0), time(6, 0), 24.0),
        ],
    )
    def test_shift_hours(self, start, end, hours):
        assert shift_hours(start, end) == hours

    def test_format(self):
        assert format_hhmm(time(19, 5)) == "19:05"


class TestDates:
    def test_sunday_is_zero(self):
        assert sunday_weekday(date(2026, 10, 18)) == 0  # Sunday
        assert sunday_weekday(date(2026, 10, 19)) == 1  # Monday
        assert sunday_weekday(date(2026, 10, 24)) == 6  # Saturday

    def test_horizon_window_covers_exact_days(self):
        start, end = horizon_window(date(2026, 10, 19), 14)
        assert start == date(2026, 10, 19)
        assert end == date(2026, 11, 1)
        assert len(list(date_range(start, end))) == 14
