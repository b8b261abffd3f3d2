"""
Duty window calculation tests
"""
import pytest
from datetime import date, datetime

from duty_windows import (
    DutyShift, build_schedule, compute_duty_windows, is_within_duty_window,
    last_window_end, next_window_start, parse_time, windows_covering,
)

MONDAY = date(2024, 1, 1)


class TestParseTime:

    def test_valid(self):
        assert parse_time('08:30').hour == 8
        assert parse_time('8:05').minute == 5

    @pytest.mark.parametrize('value', ['24:00', '12:60', 'noon', '', None, '8'])
    def test_invalid_raises_value_error(self, value):
        with pytest.raises(ValueError):
            parse_time(value)


class TestBuildSchedule:

    def test_single_pair(self):
        schedule = build_schedule('08:00', '18:00', None)
        assert schedule == [DutyShift('Duty', '08:00', '18:00')]

    def test_named_shifts_take_precedence(self):
        schedule = build_schedule('08:00', '18:00', [
            {'name': 'Morning', 'startTime': '07:00', 'endTime': '11:00'},
        ])
        assert [s.name for s in schedule] == ['Morning']

    def test_unknown_weekday_rejected(self):
        with pytest.raises(ValueError):
            build_schedule(shifts=[{'startTime': '07:00', 'endTime': '11:00', 'days': ['FUNDAY']}])

    def test_nothing_configured(self):
        assert build_schedule() == []


class TestComputeDutyWindows:

    def test_empty_schedule_means_unrestricted(self):
        assert compute_duty_windows([], MONDAY) == []
        assert is_within_duty_window(datetime(2024, 1, 1, 3, 0), []) is True

    def test_day_window(self):
        windows = compute_duty_windows(build_schedule('08:00', '18:00'), MONDAY)
        assert len(windows) == 1
        assert windows[0].start == datetime(2024, 1, 1, 8, 0)
        assert windows[0].end == datetime(2024, 1, 1, 18, 0)

    def test_overnight_shift_ends_next_day(self):
        windows = compute_duty_windows(build_schedule('22:00', '06:00'), MONDAY)
        assert windows[0].start == datetime(2024, 1, 1, 22, 0)
        assert windows[0].end == datetime(2024, 1, 2, 6, 0)

    def test_equal_start_and_end_is_a_full_day(self):
        windows = compute_duty_windows(build_schedule('09:00', '09:00'), MONDAY)
        assert windows[0].end == datetime(2024, 1, 2, 9, 0)

    def test_windows_sorted_by_start(self):
        schedule = build_schedule(shifts=[
            {'name': 'Evening', 'startTime': '17:00', 'endTime': '21:00'},
            {'name': 'Morning', 'startTime': '07:00', 'endTime': '11:00'},
        ])
        windows = compute_duty_windows(schedule, MONDAY)
        assert [w.name for w in windows] == ['Morning', 'Evening']
        assert all(w.end > w.start for w in windows)

    def test_weekday_filter(self):
        schedule = build_schedule(shifts=[
            {'name': 'Weekdays', 'startTime': '08:00', 'endTime': '16:00', 'days': ['MON', 'TUE']},
        ])
        assert len(compute_duty_windows(schedule, MONDAY)) == 1
        assert compute_duty_windows(schedule, date(2024, 1, 6)) == []  # Saturday

    def test_malformed_time_raises(self):
        with pytest.raises(ValueError):
            compute_duty_windows([DutyShift('Bad', '8am', '17:00')], MONDAY)


class TestWindowQueries:

    def setup_method(self):
        self.windows = compute_duty_windows(build_schedule(shifts=[
            {'name': 'Morning', 'startTime': '07:00', 'endTime': '11:00'},
            {'name': 'Evening', 'startTime': '17:00', 'endTime': '21:00'},
        ]), MONDAY)

    def test_endpoints_are_inclusive(self):
        assert is_within_duty_window(datetime(2024, 1, 1, 7, 0), self.windows)
        assert is_within_duty_window(datetime(2024, 1, 1, 11, 0), self.windows)
        assert not is_within_duty_window(datetime(2024, 1, 1, 11, 1), self.windows)

    def test_last_window_end(self):
        assert last_window_end(self.windows) == datetime(2024, 1, 1, 21, 0)
        assert last_window_end([]) is None

    def test_next_window_start_is_strictly_after_now(self):
        assert next_window_start(datetime(2024, 1, 1, 12, 0), self.windows) == datetime(2024, 1, 1, 17, 0)
        assert next_window_start(datetime(2024, 1, 1, 17, 0), self.windows) is None

    def test_windows_covering_includes_overnight_carry_over(self):
        schedule = build_schedule('22:00', '06:00')
        windows = windows_covering(schedule, date(2024, 1, 2))
        assert windows[0].start == datetime(2024, 1, 1, 22, 0)
        assert is_within_duty_window(datetime(2024, 1, 2, 5, 0), windows)
