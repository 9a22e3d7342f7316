"""
Bucketing utilities.

Day buckets are keyed ``YYYY-MM-DD`` and hour buckets ``00``..``23``, both in
the reference timezone passed by the caller. Bucket maps are dense: every key
expected for the requested range or day is present, zero when nothing was
recorded.

For the current day only hours up to and including the current hour exist;
future hours are never materialized, not even as zero.
"""

from datetime import date, datetime, timedelta, tzinfo
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, TypeVar, Union

from funnel_analytics.services.periods import DatePeriod


V = TypeVar('V', int, float)

DateLike = Union[date, datetime, None]

HOURS_PER_DAY = 24


def to_local_date(value: DateLike, tz: tzinfo) -> Optional[date]:
    """
    Calendar date of ``value`` in ``tz``.

    Aware datetimes are converted; naive datetimes are taken as local wall
    clock. ``None`` and ``date.min`` (the zero value) yield None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(tz)
        value = value.date()
    if value == date.min:
        return None
    return value


def generate_date_range(start: DateLike, end: DateLike, tz: tzinfo) -> List[str]:
    """
    Every day from ``start`` to ``end``, both inclusive, as ``YYYY-MM-DD``.

    Returns an empty list when either endpoint is missing or ``start`` is
    after ``end``.

    Example:
        >>> generate_date_range(date(2024, 1, 1), date(2024, 1, 3), tz)
        ['2024-01-01', '2024-01-02', '2024-01-03']
    """
    first = to_local_date(start, tz)
    last = to_local_date(end, tz)
    if first is None or last is None or first > last:
        return []

    days = (last - first).days + 1
    return [(first + timedelta(days=offset)).isoformat() for offset in range(days)]


def period_date_keys(period: DatePeriod, tz: tzinfo) -> List[str]:
    return generate_date_range(period.start, period.end, tz)


def local_now(tz: tzinfo, now: Optional[datetime] = None) -> datetime:
    """
    Current wall-clock time in ``tz`` as a naive datetime.

    An explicit ``now`` (aware or naive local) is honored for determinism.
    """
    if now is None:
        now = datetime.now(tz)
    elif now.tzinfo is None:
        return now
    return now.astimezone(tz).replace(tzinfo=None)


def is_today(day: date, tz: tzinfo, now: Optional[datetime] = None) -> bool:
    return day == local_now(tz, now).date()


def hour_keys(day: date, tz: tzinfo, now: Optional[datetime] = None) -> List[str]:
    """
    Hour bucket keys for ``day``.

    All 24 hours for a past day; ``00`` through the current hour for today.

    Example:
        At 14:35 today -> ['00', '01', ..., '14']
    """
    last_hour = HOURS_PER_DAY - 1
    if is_today(day, tz, now):
        last_hour = local_now(tz, now).hour
    return [f'{hour:02d}' for hour in range(last_hour + 1)]


def day_bounds(
    period: DatePeriod,
    tz: tzinfo,
    now: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    """
    Local start/end instants of a single-day period for an hourly breakdown.

    The end is truncated to the current moment when the day is today.
    """
    start = datetime.combine(period.start, period.daily_start)
    end = datetime.combine(period.start, period.daily_end)
    if is_today(period.start, tz, now):
        end = min(end, local_now(tz, now))
    return start, end


def backfill(keys: Iterable[str], values: Mapping[str, V], zero: V = 0) -> Dict[str, V]:
    """
    Dense bucket map over ``keys``.

    Missing keys default to ``zero``; values outside ``keys`` (e.g. hours
    after the current hour) are discarded.
    """
    return {key: values.get(key, zero) for key in keys}


def sum_buckets(buckets: Mapping[str, V]) -> V:
    return sum(buckets.values())
