"""
Period model.

A DatePeriod is a calendar range (``start``..``end`` dates, inclusive) with an
optional clock window ``time_from``..``time_to`` ("HH:MM") applied to every day
in the range. All wall-clock values are interpreted in the reference timezone,
which callers pass explicitly.

Key Functions:
- parse_period: Build a DatePeriod from raw query parameters
- period_bounds: Local start/end instants of a period
- derive_previous_period: Immediately preceding interval of identical length
- single_day_fallback_periods: Ordered comparison days for single-day requests
- comparison_candidates: Explicit, fallback-chain or derived comparison periods
- validate_period_span: Reject periods longer than the configured maximum
"""

from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta, tzinfo
from typing import List, Optional, Tuple

from funnel_analytics.core.exceptions import PeriodValidationError
from funnel_analytics.models.schemas import PeriodInfo


# Smallest representable step between two instants
TICK = timedelta(microseconds=1)

DAY_START = time(0, 0)
DAY_END = time(23, 59, 59, 999999)


# =============================================================================
# Clock-time helpers
# =============================================================================


def parse_clock_time(raw: Optional[str], field_name: str = 'time') -> Optional[time]:
    """
    Parse an "HH:MM" clock time.

    Returns None for None or an empty string.

    Raises:
        PeriodValidationError: If the value is not a valid HH:MM time.
    """
    if raw is None or raw.strip() == '':
        return None
    parts = raw.strip().split(':')
    if len(parts) != 2:
        raise PeriodValidationError(f"Invalid {field_name} '{raw}': expected HH:MM")
    try:
        hour, minute = int(parts[0]), int(parts[1])
        return time(hour, minute)
    except ValueError as e:
        raise PeriodValidationError(f"Invalid {field_name} '{raw}': {e}") from e


def format_clock_time(value: Optional[time]) -> Optional[str]:
    if value is None:
        return None
    return value.strftime('%H:%M')


def parse_date_value(raw: str, tz: tzinfo, field_name: str = 'date') -> date:
    """
    Parse ``YYYY-MM-DD`` or an ISO-8601 timestamp into a calendar date.

    Aware timestamps are converted to the reference timezone first, so
    ``2024-03-01T02:00:00Z`` is 2024-02-29 in America/Sao_Paulo.
    """
    value = raw.strip()
    try:
        if len(value) == 10:
            return date.fromisoformat(value)
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError as e:
        raise PeriodValidationError(f"Invalid {field_name} '{raw}': {e}") from e

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(tz)
    return parsed.date()


# =============================================================================
# DatePeriod
# =============================================================================


@dataclass(frozen=True)
class DatePeriod:
    """
    An immutable calendar range with an optional per-day clock window.

    Attributes:
        start: First day (inclusive).
        end: Last day (inclusive).
        time_from: Start of the daily clock window, or None for midnight.
        time_to: End of the daily clock window (minute granularity, the whole
            minute is included), or None for end of day.

    Raises:
        PeriodValidationError: If ``start`` is after ``end`` or the clock
            window is inverted.
    """
    start: date
    end: date
    time_from: Optional[time] = None
    time_to: Optional[time] = None

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise PeriodValidationError(
                f"Period start {self.start.isoformat()} is after end {self.end.isoformat()}"
            )
        if self.time_from is not None and self.time_to is not None and self.time_from > self.time_to:
            raise PeriodValidationError(
                f"Clock window {format_clock_time(self.time_from)}-"
                f"{format_clock_time(self.time_to)} is inverted"
            )

    @property
    def days(self) -> int:
        """Number of calendar days covered."""
        return (self.end - self.start).days + 1

    @property
    def is_single_day(self) -> bool:
        return self.start == self.end

    @property
    def has_clock_window(self) -> bool:
        return self.time_from is not None or self.time_to is not None

    @property
    def daily_start(self) -> time:
        return self.time_from if self.time_from is not None else DAY_START

    @property
    def daily_end(self) -> time:
        if self.time_to is None:
            return DAY_END
        return self.time_to.replace(second=59, microsecond=999999)

    def shift(self, days: int) -> 'DatePeriod':
        """Same clock window, moved ``days`` calendar days back (positive) or forward."""
        delta = timedelta(days=days)
        return replace(self, start=self.start - delta, end=self.end - delta)


def parse_period(
    date_from: str,
    date_to: Optional[str],
    tz: tzinfo,
    time_from: Optional[str] = None,
    time_to: Optional[str] = None,
) -> DatePeriod:
    """
    Build a DatePeriod from raw request parameters.

    ``date_to`` defaults to ``date_from`` (a single-day request).
    """
    if not date_from or not date_from.strip():
        raise PeriodValidationError("Start date is required")
    start = parse_date_value(date_from, tz, 'from')
    end = parse_date_value(date_to, tz, 'to') if date_to and date_to.strip() else start
    return DatePeriod(
        start=start,
        end=end,
        time_from=parse_clock_time(time_from, 'time_from'),
        time_to=parse_clock_time(time_to, 'time_to'),
    )


def period_bounds(period: DatePeriod) -> Tuple[datetime, datetime]:
    """
    Local (naive, reference-timezone wall clock) start and end instants.

    ``start`` is the first day at ``time_from`` (or midnight) and ``end`` is
    the last day at ``time_to:59.999999`` (or end of day).
    """
    return (
        datetime.combine(period.start, period.daily_start),
        datetime.combine(period.end, period.daily_end),
    )


def period_info(period: DatePeriod) -> PeriodInfo:
    start, end = period_bounds(period)
    return PeriodInfo(
        start=start,
        end=end,
        time_from=format_clock_time(period.time_from),
        time_to=format_clock_time(period.time_to),
    )


# =============================================================================
# Previous period derivation
# =============================================================================


def derive_previous_period(current: DatePeriod) -> DatePeriod:
    """
    Immediately preceding interval of identical length.

    ``previous_to = current_from - 1 tick`` and
    ``previous_from = previous_to - duration``, where the duration is that of
    the whole-day range. The current clock window carries over.

    Example:
        2024-01-10..2024-01-16 -> 2024-01-03..2024-01-09
    """
    current_from = datetime.combine(current.start, DAY_START)
    current_to = datetime.combine(current.end, DAY_END)
    duration = current_to - current_from

    previous_to = current_from - TICK
    previous_from = previous_to - duration

    return replace(current, start=previous_from.date(), end=previous_to.date())


def single_day_fallback_periods(current: DatePeriod, offsets: List[int]) -> List[DatePeriod]:
    """
    Ordered comparison candidates for a single-day request.

    With the default offsets ``[1, 7]`` this is yesterday, then the same day
    one week earlier.
    """
    return [current.shift(offset) for offset in offsets]


# =============================================================================
# Validation
# =============================================================================


def validate_period_span(period: DatePeriod, max_days: int) -> None:
    """
    Reject periods whose span exceeds ``max_days``.

    The span is measured between the local start and end instants, so a range
    of exactly ``max_days`` calendar days is accepted.

    Raises:
        PeriodValidationError: If the period is longer than allowed.
    """
    start, end = period_bounds(period)
    if end - start > timedelta(days=max_days):
        raise PeriodValidationError(
            f"Period of {period.days} days exceeds the maximum of {max_days} days"
        )


def comparison_candidates(
    current: DatePeriod,
    previous: Optional[DatePeriod],
    fallback_days: List[int],
) -> List[DatePeriod]:
    """
    Ordered comparison periods to try for ``current``.

    - An explicit ``previous`` is used as-is.
    - A single-day request gets the fallback chain (yesterday, then the same
      day one week earlier); later candidates are only used when the earlier
      ones have no activity.
    - Anything else compares against the immediately preceding interval.
    """
    if previous is not None:
        return [previous]
    if current.is_single_day and fallback_days:
        return single_day_fallback_periods(current, fallback_days)
    return [derive_previous_period(current)]
