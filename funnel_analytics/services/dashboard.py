"""
Unified dashboard service.

Computes sessions, leads and conversion rate for a current period against a
comparison period, with per-day series for both periods and, for single-day
requests, an hourly breakdown of the current day.

Flow:
1. Validate the period span (no query is dispatched for an invalid request).
2. Resolve the comparison candidates (explicit, single-day fallback chain, or
   the immediately preceding interval).
3. Dispatch current total/daily, previous total/daily and (single day) hourly
   aggregates as one fan-out.
4. For single-day fallbacks, retry the previous aggregates against the next
   candidate while the comparison day shows no activity.
5. Reconcile hourly sums with the top-level totals (larger value wins).
6. Reduce everything through the metric calculators.
"""

import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from funnel_analytics.models.enums import FilterCondition
from funnel_analytics.models.schemas import (
    AdvancedFilter,
    DashboardMetrics,
    DashboardResult,
    HourlyMetrics,
    ScopeFilters,
)
from funnel_analytics.services.aggregates import AggregateContext
from funnel_analytics.services.bucketing import backfill, hour_keys, period_date_keys, sum_buckets
from funnel_analytics.services.metrics import (
    calculate_float_metric,
    calculate_metric,
    conversion_rate,
    conversion_rate_by_bucket,
)
from funnel_analytics.services.orchestrator import AggregateTask, run_aggregates
from funnel_analytics.services.periods import (
    DatePeriod,
    comparison_candidates,
    period_info,
    validate_period_span,
)
from funnel_analytics.services.query_executor import QueryExecutor
from funnel_analytics.sql.sources import LEADS, SESSIONS


logger = logging.getLogger(__name__)


def _previous_tasks(ctx: AggregateContext, previous: DatePeriod) -> List[AggregateTask]:
    return [
        ctx.total_task('sessions_previous', SESSIONS, previous),
        ctx.total_task('leads_previous', LEADS, previous),
        ctx.daily_task('sessions_previous_daily', SESSIONS, previous),
        ctx.daily_task('leads_previous_daily', LEADS, previous),
    ]


def _has_activity(results: Dict[str, Any]) -> bool:
    return results['sessions_previous'] > 0 or results['leads_previous'] > 0


def reconcile_total(total: int, hourly: Dict[str, int], label: str) -> int:
    """
    Best-effort repair between a total and its hourly breakdown.

    The two come from separate queries and may observe slightly different
    snapshots; the larger value is kept.
    """
    hourly_total = sum_buckets(hourly)
    if hourly_total > total:
        logger.info(
            f"Hourly {label} ({hourly_total}) exceed the queried total ({total}); using hourly sum"
        )
        return hourly_total
    return total


async def get_unified_dashboard(
    executor: QueryExecutor,
    current: DatePeriod,
    previous: Optional[DatePeriod] = None,
    scope: Optional[ScopeFilters] = None,
    filters: Sequence[AdvancedFilter] = (),
    condition: FilterCondition = FilterCondition.AND,
    *,
    max_period_days: int = 90,
    timeout: float = 30.0,
    fallback_days: Sequence[int] = (1, 7),
    now: Optional[datetime] = None,
) -> DashboardResult:
    """
    Build the unified sessions/leads dashboard.

    Args:
        executor: Query executor carrying the reference timezone.
        current: Current period.
        previous: Explicit comparison period, or None to derive one.
        scope: Mandatory profession/funnel/product/landing-page constraints.
        filters: Advanced filters.
        condition: AND or OR across the advanced filters.
        max_period_days: Longest accepted period.
        timeout: Per-query deadline in seconds.
        fallback_days: Single-day comparison offsets, tried in order.
        now: Current time override (defaults to the wall clock).

    Returns:
        DashboardResult.

    Raises:
        PeriodValidationError: Period too long (raised before any query).
        AggregationError: Any dispatched aggregate failed.
    """
    started = time.perf_counter()

    validate_period_span(current, max_period_days)
    if previous is not None:
        validate_period_span(previous, max_period_days)

    tz = executor.tz
    single_day = current.is_single_day
    candidates = comparison_candidates(current, previous, list(fallback_days))
    ctx = AggregateContext(executor, scope, filters, condition)

    logger.info(
        f"Unified dashboard {current.start}..{current.end} "
        f"(single_day={single_day}, filters={len(filters)}, condition={condition.value})"
    )

    tasks = [
        ctx.total_task('sessions_current', SESSIONS, current),
        ctx.total_task('leads_current', LEADS, current),
        ctx.daily_task('sessions_current_daily', SESSIONS, current),
        ctx.daily_task('leads_current_daily', LEADS, current),
        *_previous_tasks(ctx, candidates[0]),
    ]
    if single_day:
        tasks.append(ctx.hourly_task('sessions_hourly', SESSIONS, current, now))
        tasks.append(ctx.hourly_task('leads_hourly', LEADS, current, now))

    results = await run_aggregates(tasks, timeout)

    # Single-day fallback chain
    previous_period = candidates[0]
    previous_results: Dict[str, Any] = results
    for candidate in candidates[1:]:
        if _has_activity(previous_results):
            break
        logger.info(
            f"No activity on {previous_period.start}; comparing against {candidate.start} instead"
        )
        previous_results = await run_aggregates(_previous_tasks(ctx, candidate), timeout)
        previous_period = candidate

    # Reduce
    current_days = period_date_keys(current, tz)
    previous_days = period_date_keys(previous_period, tz)

    sessions_total = results['sessions_current']
    leads_total = results['leads_current']
    sessions_by_day = backfill(current_days, results['sessions_current_daily'])
    leads_by_day = backfill(current_days, results['leads_current_daily'])

    hourly_data = None
    if single_day:
        hours = hour_keys(current.start, tz, now)
        sessions_hourly = backfill(hours, results['sessions_hourly'])
        leads_hourly = backfill(hours, results['leads_hourly'])

        sessions_total = reconcile_total(sessions_total, sessions_hourly, 'sessions')
        leads_total = reconcile_total(leads_total, leads_hourly, 'leads')
        day_key = current_days[0]
        sessions_by_day[day_key] = max(sessions_by_day[day_key], sessions_total)
        leads_by_day[day_key] = max(leads_by_day[day_key], leads_total)

        hourly_data = HourlyMetrics(
            sessions=sessions_hourly,
            leads=leads_hourly,
            conversion_rate=conversion_rate_by_bucket(leads_hourly, sessions_hourly),
        )

    prev_sessions = previous_results['sessions_previous']
    prev_leads = previous_results['leads_previous']

    sessions_metric = calculate_metric(sessions_total, prev_sessions)
    leads_metric = calculate_metric(leads_total, prev_leads)
    rate_metric = calculate_float_metric(
        conversion_rate(leads_total, sessions_total),
        conversion_rate(prev_leads, prev_sessions),
    )

    processing_ms = (time.perf_counter() - started) * 1000
    logger.info(f"Unified dashboard assembled in {processing_ms:.1f}ms")

    return DashboardResult(
        metrics=DashboardMetrics(
            sessions=sessions_metric.current,
            leads=leads_metric.current,
            conversion_rate=rate_metric.current,
            prev_sessions=sessions_metric.previous,
            prev_leads=leads_metric.previous,
            prev_conversion_rate=rate_metric.previous,
            sessions_change=sessions_metric.percentage,
            leads_change=leads_metric.percentage,
            conversion_rate_change=rate_metric.percentage,
        ),
        sessions=sessions_metric,
        leads=leads_metric,
        conversion_rate=rate_metric,
        sessions_by_day=sessions_by_day,
        leads_by_day=leads_by_day,
        conversion_rate_by_day=conversion_rate_by_bucket(leads_by_day, sessions_by_day),
        previous_sessions_by_day=backfill(previous_days, previous_results['sessions_previous_daily']),
        previous_leads_by_day=backfill(previous_days, previous_results['leads_previous_daily']),
        hourly_data=hourly_data,
        current_period=period_info(current),
        previous_period=period_info(previous_period),
        dropped_filters=ctx.dropped_filters(),
        processing_time_ms=round(processing_ms, 2),
    )
