"""
Tests for day/hour bucketing in the reference timezone.
"""

from datetime import date, datetime, timezone

from funnel_analytics.services.bucketing import (
    backfill,
    day_bounds,
    generate_date_range,
    hour_keys,
    is_today,
    local_now,
    period_date_keys,
    sum_buckets,
    to_local_date,
)
from funnel_analytics.services.periods import DatePeriod


class TestGenerateDateRange:

    def test_inclusive_range(self, tz) -> None:
        keys = generate_date_range(date(2024, 1, 30), date(2024, 2, 2), tz)
        assert keys == ['2024-01-30', '2024-01-31', '2024-02-01', '2024-02-02']

    def test_single_day(self, tz) -> None:
        assert generate_date_range(date(2024, 2, 29), date(2024, 2, 29), tz) == ['2024-02-29']

    def test_inverted_range_is_empty(self, tz) -> None:
        assert generate_date_range(date(2024, 3, 2), date(2024, 3, 1), tz) == []

    def test_missing_endpoint_is_empty(self, tz) -> None:
        assert generate_date_range(None, date(2024, 3, 1), tz) == []
        assert generate_date_range(date(2024, 3, 1), None, tz) == []

    def test_zero_date_is_empty(self, tz) -> None:
        assert generate_date_range(date.min, date(2024, 3, 1), tz) == []

    def test_aware_datetimes_are_converted_before_taking_the_date(self, tz) -> None:
        # 02:00 UTC on March 1st is still February 29th in Sao Paulo (UTC-3)
        start = datetime(2024, 3, 1, 2, 0, tzinfo=timezone.utc)
        end = datetime(2024, 3, 1, 15, 0, tzinfo=timezone.utc)
        assert generate_date_range(start, end, tz) == ['2024-02-29', '2024-03-01']

    def test_period_date_keys(self, tz) -> None:
        period = DatePeriod(date(2024, 3, 10), date(2024, 3, 12))
        assert period_date_keys(period, tz) == ['2024-03-10', '2024-03-11', '2024-03-12']


class TestLocalDates:

    def test_to_local_date_naive_is_wall_clock(self, tz) -> None:
        assert to_local_date(datetime(2024, 3, 1, 23, 30), tz) == date(2024, 3, 1)

    def test_local_now_converts_aware(self, tz) -> None:
        now = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
        assert local_now(tz, now) == datetime(2024, 3, 1, 9, 0)

    def test_local_now_keeps_naive(self, tz) -> None:
        now = datetime(2024, 3, 1, 12, 0)
        assert local_now(tz, now) == now

    def test_is_today(self, tz) -> None:
        now = datetime(2024, 3, 1, 12, 0)
        assert is_today(date(2024, 3, 1), tz, now) is True
        assert is_today(date(2024, 2, 29), tz, now) is False


class TestHourKeys:

    def test_past_day_has_all_hours(self, tz, fixed_now) -> None:
        keys = hour_keys(date(2024, 3, 1), tz, fixed_now)
        assert len(keys) == 24
        assert keys[0] == '00'
        assert keys[-1] == '23'

    def test_today_stops_at_current_hour(self, tz) -> None:
        now = datetime(2024, 3, 1, 14, 35)
        keys = hour_keys(date(2024, 3, 1), tz, now)
        assert keys == [f'{h:02d}' for h in range(15)]
        assert '15' not in keys

    def test_just_after_midnight(self, tz) -> None:
        now = datetime(2024, 3, 1, 0, 5)
        assert hour_keys(date(2024, 3, 1), tz, now) == ['00']


class TestDayBounds:

    def test_past_day_covers_whole_day(self, tz, fixed_now) -> None:
        start, end = day_bounds(DatePeriod(date(2024, 3, 1), date(2024, 3, 1)), tz, fixed_now)
        assert start == datetime(2024, 3, 1, 0, 0)
        assert end == datetime(2024, 3, 1, 23, 59, 59, 999999)

    def test_today_truncated_to_now(self, tz) -> None:
        now = datetime(2024, 3, 1, 14, 35)
        _, end = day_bounds(DatePeriod(date(2024, 3, 1), date(2024, 3, 1)), tz, now)
        assert end == now

    def test_clock_window_respected(self, tz, fixed_now) -> None:
        from datetime import time
        period = DatePeriod(date(2024, 3, 1), date(2024, 3, 1), time(8, 0), time(18, 0))
        start, end = day_bounds(period, tz, fixed_now)
        assert start == datetime(2024, 3, 1, 8, 0)
        assert end == datetime(2024, 3, 1, 18, 0, 59, 999999)


class TestBackfill:

    def test_missing_keys_become_zero(self) -> None:
        result = backfill(['00', '01', '02'], {'01': 5})
        assert result == {'00': 0, '01': 5, '02': 0}

    def test_keys_outside_range_are_discarded(self) -> None:
        result = backfill(['00', '01'], {'01': 5, '15': 3})
        assert result == {'00': 0, '01': 5}

    def test_float_zero(self) -> None:
        result = backfill(['2024-03-01'], {}, 0.0)
        assert result == {'2024-03-01': 0.0}
        assert isinstance(result['2024-03-01'], float)

    def test_sum_buckets(self) -> None:
        assert sum_buckets({'00': 2, '01': 3}) == 5
        assert sum_buckets({}) == 0
