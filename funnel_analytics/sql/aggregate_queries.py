"""
Aggregate query builders.

Builds the parameterized PostgreSQL statements the query executor runs for an
aggregate source: a single total, a per-day breakdown, a per-hour breakdown and
a breakdown by an arbitrary key column. Timestamps are compared and bucketed in
the reference timezone via ``AT TIME ZONE``; bounds are naive local wall-clock
datetimes.

Every builder returns ``(sql, args)`` with asyncpg ``$n`` placeholders.
"""

from datetime import datetime, time
from typing import Any, List, Optional, Sequence, Tuple

from funnel_analytics.models.schemas import ScopeFilters
from funnel_analytics.sql.predicates import Predicate, bind_placeholders
from funnel_analytics.sql.sources import AggregateSource


# =============================================================================
# CONSTANTS
# =============================================================================

DAY_BUCKET_FORMAT: str = 'YYYY-MM-DD'
HOUR_BUCKET_FORMAT: str = 'HH24'

PROFESSIONS_QUERY: str = """
    SELECT profession_id, profession_name
    FROM professions
    WHERE is_testing IS NULL OR is_testing = false
    ORDER BY profession_id
"""

FUNNELS_BY_PROFESSION_QUERY: str = """
    SELECT
        f.funnel_id,
        f.funnel_name,
        f.is_active,
        p.profession_id
    FROM funnels f
    JOIN products p ON f.product_id = p.product_id
    WHERE f.is_testing IS NULL OR f.is_testing = false
    ORDER BY p.profession_id, f.funnel_id
"""


# =============================================================================
# PREDICATES
# =============================================================================

def local_time_expr(source: AggregateSource) -> str:
    """Timestamp column converted to reference-timezone wall clock (tz is a placeholder)."""
    return f'({source.timestamp_column} AT TIME ZONE ?)'


def range_predicate(
    source: AggregateSource,
    tz_name: str,
    start: datetime,
    end: datetime,
) -> Predicate:
    """Inclusive local-time range on the source's timestamp column."""
    return Predicate(
        f'{local_time_expr(source)} BETWEEN ? AND ?',
        (tz_name, start, end),
    )


def clock_window_predicate(
    source: AggregateSource,
    tz_name: str,
    daily_start: time,
    daily_end: time,
) -> Predicate:
    """Restrict every day of a range to the same local clock window."""
    return Predicate(
        f'{local_time_expr(source)}::time BETWEEN ? AND ?',
        (tz_name, daily_start, daily_end),
    )


def scope_predicates(source: AggregateSource, scope: Optional[ScopeFilters]) -> List[Predicate]:
    """
    Mandatory id/landing-page constraints for ``source``.

    Ids apply to the source's primary alias. The landing-page constraint only
    applies to sources that define a landing-page column.
    """
    if scope is None:
        return []

    alias = source.primary_alias
    predicates: List[Predicate] = []

    if scope.profession_ids:
        predicates.append(Predicate(f'{alias}.profession_id = ANY(?)', (list(scope.profession_ids),)))
    if scope.funnel_ids:
        predicates.append(Predicate(f'{alias}.funnel_id = ANY(?)', (list(scope.funnel_ids),)))
    if scope.product_id is not None:
        predicates.append(Predicate(f'{alias}.product_id = ?', (scope.product_id,)))
    if scope.user_id:
        predicates.append(Predicate(f'{alias}.user_id = ?', (scope.user_id,)))
    if scope.landing_page and source.landing_page_column:
        predicates.append(Predicate(f'{source.landing_page_column} = ?', (scope.landing_page,)))

    return predicates


def _where_clause(source: AggregateSource, bound: Sequence[str]) -> str:
    conditions = []
    if source.base_predicate:
        conditions.append(source.base_predicate)
    conditions.extend(bound)
    if not conditions:
        return ''
    return 'WHERE ' + '\n      AND '.join(conditions)


# =============================================================================
# BUILDERS
# =============================================================================

def build_total_query(
    source: AggregateSource,
    predicates: Sequence[Predicate],
) -> Tuple[str, List[Any]]:
    """
    Single aggregate over every row matching ``predicates``.

    Returns:
        Tuple of (SQL, args). The statement yields one column ``value``.
    """
    bound, args = bind_placeholders(predicates)
    sql = f"""
    SELECT {source.measure} AS value
    FROM {source.from_clause}
    {_where_clause(source, bound)}
    """
    return sql, args


def _build_bucket_query(
    source: AggregateSource,
    bucket: Predicate,
    predicates: Sequence[Predicate],
) -> Tuple[str, List[Any]]:
    bound, args = bind_placeholders([bucket, *predicates])
    bucket_sql, where_bound = bound[0], bound[1:]
    sql = f"""
    SELECT {bucket_sql} AS bucket, {source.measure} AS value
    FROM {source.from_clause}
    {_where_clause(source, where_bound)}
    GROUP BY 1
    ORDER BY 1
    """
    return sql, args


def build_daily_query(
    source: AggregateSource,
    tz_name: str,
    predicates: Sequence[Predicate],
) -> Tuple[str, List[Any]]:
    """Per-day breakdown keyed ``YYYY-MM-DD`` in the reference timezone."""
    bucket = Predicate(f"to_char({local_time_expr(source)}, '{DAY_BUCKET_FORMAT}')", (tz_name,))
    return _build_bucket_query(source, bucket, predicates)


def build_hourly_query(
    source: AggregateSource,
    tz_name: str,
    predicates: Sequence[Predicate],
) -> Tuple[str, List[Any]]:
    """Per-hour breakdown keyed ``00``..``23`` in the reference timezone."""
    bucket = Predicate(f"to_char({local_time_expr(source)}, '{HOUR_BUCKET_FORMAT}')", (tz_name,))
    return _build_bucket_query(source, bucket, predicates)


def build_grouped_query(
    source: AggregateSource,
    column: str,
    predicates: Sequence[Predicate],
) -> Tuple[str, List[Any]]:
    """
    Breakdown by ``column`` (e.g. ``e.profession_id``).

    ``column`` must be a trusted identifier from code, never user input. Rows
    where the column is NULL are excluded.
    """
    bucket = Predicate(column)
    not_null = Predicate(f'{column} IS NOT NULL')
    return _build_bucket_query(source, bucket, [*predicates, not_null])
