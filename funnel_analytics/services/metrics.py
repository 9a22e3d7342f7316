"""
Metric calculators.

Pure functions shared by every aggregate: period-over-period comparison for
counts and for currency/rate values, conversion rates and rounding. No I/O.

Comparison rules:
- previous == 0 and current == 0  -> percentage 0
- previous == 0 and current > 0   -> percentage 100 (full increase from a zero
  baseline, not a literal ratio)
- otherwise                       -> |current - previous| / previous * 100
- percentage is rounded to 2 decimals and is never negative
- is_increasing = current > previous (equal values are not increasing)
"""

from typing import Dict, Mapping, Union

from funnel_analytics.models.schemas import FloatMetricResult, MetricResult


Number = Union[int, float]


def round2(value: float) -> float:
    """Round to 2 decimal places."""
    return round(float(value), 2)


def percentage_change(current: Number, previous: Number) -> float:
    """
    Absolute relative change from ``previous`` to ``current``, in percent.

    Example:
        >>> percentage_change(5, 10)
        50.0
        >>> percentage_change(10, 0)
        100.0
    """
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round2(abs(current - previous) / previous * 100)


def calculate_metric(current: int, previous: int) -> MetricResult:
    """
    Compare two counts.

    Args:
        current: Count in the current period.
        previous: Count in the previous period.

    Returns:
        MetricResult with the absolute percentage change and direction.

    Example:
        >>> calculate_metric(20, 10)
        MetricResult(current=20, previous=10, percentage=100.0, is_increasing=True)
    """
    return MetricResult(
        current=current,
        previous=previous,
        percentage=percentage_change(current, previous),
        is_increasing=current > previous,
    )


def calculate_float_metric(current: float, previous: float) -> FloatMetricResult:
    """
    Currency/rate variant of :func:`calculate_metric`.

    Both values are rounded to 2 decimals before the comparison.
    """
    current = round2(current)
    previous = round2(previous)
    return FloatMetricResult(
        current=current,
        previous=previous,
        percentage=percentage_change(current, previous),
        is_increasing=current > previous,
    )


def conversion_rate(leads: Number, sessions: Number) -> float:
    """
    Leads per session in percent, rounded to 2 decimals; 0 without sessions.

    Example:
        >>> conversion_rate(37, 200)
        18.5
        >>> conversion_rate(5, 0)
        0.0
    """
    if sessions <= 0:
        return 0.0
    return round2(leads / sessions * 100)


def conversion_rate_by_bucket(
    leads: Mapping[str, Number],
    sessions: Mapping[str, Number],
) -> Dict[str, float]:
    """
    Derive a rate bucket map from two count bucket maps keyed identically.

    Keys come from ``sessions``; a key missing from ``leads`` counts as zero.
    """
    return {
        key: conversion_rate(leads.get(key, 0), session_count)
        for key, session_count in sessions.items()
    }
