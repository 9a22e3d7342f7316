"""
Filtered event listing.

One page of events plus the total match count. Both queries share the same
predicates and run concurrently through the orchestrator.
"""

import logging
import math
from typing import Any, Mapping, Optional, Sequence

from funnel_analytics.models.enums import EventOrder, EventType, FilterCondition
from funnel_analytics.models.schemas import (
    AdvancedFilter,
    EventListResponse,
    EventRecord,
    PaginationInfo,
    ScopeFilters,
    UtmData,
)
from funnel_analytics.services.aggregates import AggregateContext
from funnel_analytics.services.orchestrator import AggregateTask, run_aggregates
from funnel_analytics.services.periods import DatePeriod, period_bounds, validate_period_span
from funnel_analytics.services.query_executor import QueryExecutor
from funnel_analytics.sql.aggregate_queries import range_predicate
from funnel_analytics.sql.event_queries import UTM_COLUMNS, build_event_page_query
from funnel_analytics.sql.predicates import Predicate
from funnel_analytics.sql.sources import EVENTS


logger = logging.getLogger(__name__)


def row_to_event(row: Mapping[str, Any]) -> EventRecord:
    utm = UtmData(**{name: row[name] for name, _, _ in UTM_COLUMNS})
    return EventRecord(
        event_id=row['event_id'],
        event_name=row['event_name'],
        event_type=row['event_type'],
        event_source=row['event_source'],
        event_time=row['event_time'],
        user_id=row['user_id'],
        session_id=row['session_id'],
        profession_id=row['profession_id'],
        profession_name=row['profession_name'],
        product_id=row['product_id'],
        product_name=row['product_name'],
        funnel_id=row['funnel_id'],
        funnel_name=row['funnel_name'],
        utm_data=utm,
        initial_country=row['initial_country'],
        initial_region=row['initial_region'],
        initial_city=row['initial_city'],
    )


def build_pagination(page: int, limit: int, total: int) -> PaginationInfo:
    total_pages = math.ceil(total / limit) if total else 0
    return PaginationInfo(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_next_page=page < total_pages,
    )


async def list_events(
    executor: QueryExecutor,
    period: DatePeriod,
    scope: Optional[ScopeFilters] = None,
    filters: Sequence[AdvancedFilter] = (),
    condition: FilterCondition = FilterCondition.AND,
    page: int = 1,
    limit: int = 20,
    order: EventOrder = EventOrder.DESC,
    event_type: Optional[EventType] = None,
    *,
    max_period_days: int = 90,
    timeout: float = 30.0,
) -> EventListResponse:
    """
    One page of events matching the period, scope and advanced filters.

    Args:
        executor: Query executor.
        period: Listing period (clock window honored).
        scope: Mandatory id constraints.
        filters: Advanced filters.
        condition: AND or OR across the advanced filters.
        page: 1-based page number.
        limit: Page size.
        order: Event time order.
        event_type: Optional event type restriction.

    Raises:
        PeriodValidationError: Period too long.
        ValueError: ``page`` or ``limit`` below 1.
        AggregationError: The count or page query failed.
    """
    if page < 1 or limit < 1:
        raise ValueError(f"Invalid pagination: page={page}, limit={limit}")
    validate_period_span(period, max_period_days)

    ctx = AggregateContext(executor, scope, filters, condition)
    predicates = ctx.predicates(EVENTS, period)
    if event_type is not None:
        predicates.append(Predicate('e.event_type = ?', (event_type.value,)))

    start, end = period_bounds(period)
    offset = (page - 1) * limit
    page_sql, page_args = build_event_page_query(
        [range_predicate(EVENTS, executor.tz_name, start, end), *predicates],
        order,
        limit,
        offset,
    )

    logger.info(
        f"Listing events {period.start}..{period.end} page={page} limit={limit} "
        f"filters={len(filters)}"
    )

    results = await run_aggregates(
        [
            AggregateTask('count', lambda: executor.count_by_range(EVENTS, predicates, start, end)),
            AggregateTask('page', lambda: executor.fetch_rows(page_sql, page_args)),
        ],
        timeout,
    )

    return EventListResponse(
        data=[row_to_event(row) for row in results['page']],
        meta=build_pagination(page, limit, results['count']),
        dropped_filters=ctx.dropped_filters(),
    )
