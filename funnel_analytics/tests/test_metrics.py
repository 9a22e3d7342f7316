"""
Tests for the metric calculators.

Covers the period-over-period comparison rules (zero baselines, absolute
percentage, direction), the float variant's rounding and conversion rates.
"""

import pytest

from funnel_analytics.services.metrics import (
    calculate_float_metric,
    calculate_metric,
    conversion_rate,
    conversion_rate_by_bucket,
    percentage_change,
    round2,
)


class TestCalculateMetric:
    """calculate_metric over integer counts."""

    def test_increase(self) -> None:
        result = calculate_metric(120, 100)
        assert result.current == 120
        assert result.previous == 100
        assert result.percentage == 20.0
        assert result.is_increasing is True

    def test_decrease_reports_absolute_percentage(self) -> None:
        result = calculate_metric(50, 200)
        assert result.percentage == 75.0
        assert result.is_increasing is False

    def test_zero_baseline_with_activity_is_full_increase(self) -> None:
        result = calculate_metric(10, 0)
        assert result.percentage == 100.0
        assert result.is_increasing is True

    def test_both_zero(self) -> None:
        result = calculate_metric(0, 0)
        assert result.percentage == 0.0
        assert result.is_increasing is False

    def test_equal_values_are_not_increasing(self) -> None:
        result = calculate_metric(42, 42)
        assert result.percentage == 0.0
        assert result.is_increasing is False

    def test_drop_to_zero(self) -> None:
        result = calculate_metric(0, 30)
        assert result.percentage == 100.0
        assert result.is_increasing is False

    def test_percentage_is_rounded(self) -> None:
        assert calculate_metric(1, 3).percentage == 66.67


class TestCalculateFloatMetric:
    """Currency/rate variant."""

    def test_values_rounded_to_two_decimals(self) -> None:
        result = calculate_float_metric(10.556, 3.3333)
        assert result.current == 10.56
        assert result.previous == 3.33

    def test_rounding_applies_before_comparison(self) -> None:
        # 0.001 and 0.004 both round to 0.0
        result = calculate_float_metric(0.004, 0.001)
        assert result.current == 0.0
        assert result.previous == 0.0
        assert result.percentage == 0.0
        assert result.is_increasing is False

    def test_revenue_growth(self) -> None:
        result = calculate_float_metric(1500.0, 1000.0)
        assert result.percentage == 50.0
        assert result.is_increasing is True


class TestConversionRate:

    def test_basic_rate(self) -> None:
        assert conversion_rate(37, 200) == 18.5

    def test_no_sessions_is_zero(self) -> None:
        assert conversion_rate(5, 0) == 0.0

    def test_rounding(self) -> None:
        assert conversion_rate(1, 3) == 33.33

    def test_by_bucket_uses_session_keys(self) -> None:
        sessions = {'2024-03-01': 10, '2024-03-02': 0, '2024-03-03': 4}
        leads = {'2024-03-01': 2, '2024-03-03': 1}

        rates = conversion_rate_by_bucket(leads, sessions)

        assert rates == {'2024-03-01': 20.0, '2024-03-02': 0.0, '2024-03-03': 25.0}


@pytest.mark.parametrize("current,previous,expected", [
    (5, 10, 50.0),
    (10, 0, 100.0),
    (0, 0, 0.0),
    (15, 10, 50.0),
])
def test_percentage_change(current: int, previous: int, expected: float) -> None:
    assert percentage_change(current, previous) == expected


def test_round2_accepts_ints() -> None:
    assert round2(3) == 3.0
