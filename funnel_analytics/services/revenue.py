"""
Revenue comparison service.

Leads, purchases and purchase revenue for a current period against a
comparison period. Counts use :func:`calculate_metric`; revenue uses the
two-decimal :func:`calculate_float_metric`.

Key Functions:
- get_revenue_comparison_general: Entity-less comparison plus a per-profession
  summary. The summary runs as its own fan-out against the comparison period
  the general figures settled on, and degrades to None on failure without
  affecting them.
- get_revenue_comparison_by_profession: One fully independent comparison per
  profession.
- get_hourly_revenue: Hourly leads/purchases/revenue of one day.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from funnel_analytics.core.exceptions import AggregationError, PeriodValidationError
from funnel_analytics.models.enums import FilterCondition
from funnel_analytics.models.schemas import (
    AdvancedFilter,
    HourlyRevenueMetrics,
    ProfessionRevenueSummary,
    RevenueByProfessionResponse,
    RevenueComparison,
    ScopeFilters,
)
from funnel_analytics.services.aggregates import AggregateContext
from funnel_analytics.services.bucketing import backfill, hour_keys, period_date_keys
from funnel_analytics.services.metrics import calculate_float_metric, calculate_metric, round2
from funnel_analytics.services.orchestrator import AggregateTask, run_aggregates
from funnel_analytics.services.periods import (
    DatePeriod,
    comparison_candidates,
    period_info,
    validate_period_span,
)
from funnel_analytics.services.query_executor import QueryExecutor
from funnel_analytics.sql.aggregate_queries import PROFESSIONS_QUERY
from funnel_analytics.sql.sources import LEADS, PURCHASE_REVENUE, PURCHASES


logger = logging.getLogger(__name__)

PROFESSION_COLUMN = 'e.profession_id'


# =============================================================================
# Task sets
# =============================================================================


def _period_tasks(ctx: AggregateContext, period: DatePeriod, suffix: str) -> List[AggregateTask]:
    return [
        ctx.total_task(f'leads_{suffix}', LEADS, period),
        ctx.total_task(f'purchases_{suffix}', PURCHASES, period),
        ctx.total_task(f'revenue_{suffix}', PURCHASE_REVENUE, period),
        ctx.daily_task(f'leads_{suffix}_daily', LEADS, period),
        ctx.daily_task(f'purchases_{suffix}_daily', PURCHASES, period),
        ctx.daily_task(f'revenue_{suffix}_daily', PURCHASE_REVENUE, period),
    ]


def _hourly_tasks(ctx: AggregateContext, day: DatePeriod, now: Optional[datetime]) -> List[AggregateTask]:
    return [
        ctx.hourly_task('leads_hourly', LEADS, day, now),
        ctx.hourly_task('purchases_hourly', PURCHASES, day, now),
        ctx.hourly_task('revenue_hourly', PURCHASE_REVENUE, day, now),
    ]


def _round_buckets(buckets: Mapping[str, float]) -> Dict[str, float]:
    return {key: round2(value) for key, value in buckets.items()}


def _build_hourly(
    ctx: AggregateContext,
    day: DatePeriod,
    results: Mapping[str, Any],
    now: Optional[datetime],
) -> HourlyRevenueMetrics:
    hours = hour_keys(day.start, ctx.executor.tz, now)
    return HourlyRevenueMetrics(
        date=day.start,
        leads=backfill(hours, results['leads_hourly']),
        purchases=backfill(hours, results['purchases_hourly']),
        revenue=_round_buckets(backfill(hours, results['revenue_hourly'], 0.0)),
    )


async def _compare(
    ctx: AggregateContext,
    current: DatePeriod,
    candidates: List[DatePeriod],
    timeout: float,
    now: Optional[datetime],
    profession_id: Optional[int] = None,
) -> Tuple[RevenueComparison, DatePeriod]:
    """
    One comparison fan-out (plus single-day fallback rounds) for ``ctx``'s scope.

    Returns the comparison and the comparison period it was computed against.
    """
    started = time.perf_counter()
    tz = ctx.executor.tz

    tasks = _period_tasks(ctx, current, 'current') + _period_tasks(ctx, candidates[0], 'previous')
    if current.is_single_day:
        tasks.extend(_hourly_tasks(ctx, current, now))

    results = await run_aggregates(tasks, timeout)

    previous_period = candidates[0]
    previous_results: Mapping[str, Any] = results
    for candidate in candidates[1:]:
        if previous_results['leads_previous'] > 0 or previous_results['purchases_previous'] > 0:
            break
        logger.info(
            f"No revenue activity on {previous_period.start}; comparing against {candidate.start}"
        )
        previous_results = await run_aggregates(_period_tasks(ctx, candidate, 'previous'), timeout)
        previous_period = candidate

    current_days = period_date_keys(current, tz)
    previous_days = period_date_keys(previous_period, tz)

    comparison = RevenueComparison(
        profession_id=profession_id,
        leads=calculate_metric(results['leads_current'], previous_results['leads_previous']),
        purchases=calculate_metric(results['purchases_current'], previous_results['purchases_previous']),
        revenue=calculate_float_metric(results['revenue_current'], previous_results['revenue_previous']),
        leads_by_day=backfill(current_days, results['leads_current_daily']),
        purchases_by_day=backfill(current_days, results['purchases_current_daily']),
        revenue_by_day=_round_buckets(backfill(current_days, results['revenue_current_daily'], 0.0)),
        previous_leads_by_day=backfill(previous_days, previous_results['leads_previous_daily']),
        previous_purchases_by_day=backfill(previous_days, previous_results['purchases_previous_daily']),
        previous_revenue_by_day=_round_buckets(
            backfill(previous_days, previous_results['revenue_previous_daily'], 0.0)
        ),
        hourly_data=_build_hourly(ctx, current, results, now) if current.is_single_day else None,
        current_period=period_info(current),
        previous_period=period_info(previous_period),
        processing_time_ms=round((time.perf_counter() - started) * 1000, 2),
    )
    return comparison, previous_period


# =============================================================================
# Profession summary
# =============================================================================


async def _profession_summary(
    ctx: AggregateContext,
    current: DatePeriod,
    previous: DatePeriod,
    timeout: float,
) -> List[ProfessionRevenueSummary]:
    tasks = [
        AggregateTask('professions', lambda: ctx.executor.fetch_rows(PROFESSIONS_QUERY)),
        ctx.by_column_task('leads_current', LEADS, PROFESSION_COLUMN, current),
        ctx.by_column_task('leads_previous', LEADS, PROFESSION_COLUMN, previous),
        ctx.by_column_task('purchases_current', PURCHASES, PROFESSION_COLUMN, current),
        ctx.by_column_task('purchases_previous', PURCHASES, PROFESSION_COLUMN, previous),
        ctx.by_column_task('revenue_current', PURCHASE_REVENUE, PROFESSION_COLUMN, current),
        ctx.by_column_task('revenue_previous', PURCHASE_REVENUE, PROFESSION_COLUMN, previous),
    ]
    results = await run_aggregates(tasks, timeout)

    names = {row['profession_id']: row['profession_name'] for row in results['professions']}
    active_ids = set(results['leads_current']) | set(results['purchases_current'])

    summaries = [
        ProfessionRevenueSummary(
            profession_id=profession_id,
            profession_name=names.get(profession_id),
            leads=calculate_metric(
                results['leads_current'].get(profession_id, 0),
                results['leads_previous'].get(profession_id, 0),
            ),
            purchases=calculate_metric(
                results['purchases_current'].get(profession_id, 0),
                results['purchases_previous'].get(profession_id, 0),
            ),
            revenue=calculate_float_metric(
                results['revenue_current'].get(profession_id, 0.0),
                results['revenue_previous'].get(profession_id, 0.0),
            ),
        )
        for profession_id in active_ids
    ]
    summaries.sort(key=lambda s: (-s.revenue.current, -s.leads.current, s.profession_id))
    return summaries


async def _safe_profession_summary(
    ctx: AggregateContext,
    current: DatePeriod,
    previous: DatePeriod,
    timeout: float,
) -> Optional[List[ProfessionRevenueSummary]]:
    try:
        return await _profession_summary(ctx, current, previous, timeout)
    except AggregationError as e:
        logger.warning(f"Profession revenue summary unavailable: {e}")
        return None


# =============================================================================
# Public API
# =============================================================================


async def get_revenue_comparison_general(
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
) -> RevenueComparison:
    """
    Entity-less revenue comparison with a per-profession summary.

    The profession summary runs after the general figures, as a separate
    fan-out over the same comparison period (including a single-day
    fallback). A failed summary is logged and reported as None; a failed
    general aggregate fails the call.

    Raises:
        PeriodValidationError: Period too long (raised before any query).
        AggregationError: A general aggregate failed.
    """
    validate_period_span(current, max_period_days)
    if previous is not None:
        validate_period_span(previous, max_period_days)

    ctx = AggregateContext(executor, scope, filters, condition)
    candidates = comparison_candidates(current, previous, list(fallback_days))

    logger.info(f"Revenue comparison {current.start}..{current.end}")

    general, previous_period = await _compare(ctx, current, candidates, timeout, now)
    summary = await _safe_profession_summary(ctx, current, previous_period, timeout)

    return general.model_copy(update={'profession_summary': summary})


async def get_revenue_comparison_by_profession(
    executor: QueryExecutor,
    current: DatePeriod,
    previous: Optional[DatePeriod] = None,
    profession_ids: Optional[Sequence[int]] = None,
    scope: Optional[ScopeFilters] = None,
    filters: Sequence[AdvancedFilter] = (),
    condition: FilterCondition = FilterCondition.AND,
    *,
    max_period_days: int = 90,
    timeout: float = 30.0,
    fallback_days: Sequence[int] = (1, 7),
    now: Optional[datetime] = None,
) -> RevenueByProfessionResponse:
    """
    Independent revenue comparison per profession.

    Without explicit ``profession_ids`` every profession with leads or
    purchases in either period is compared. Each profession runs its own
    fan-out; the first failing profession (in id order) fails the call.
    """
    started = time.perf_counter()

    validate_period_span(current, max_period_days)
    if previous is not None:
        validate_period_span(previous, max_period_days)

    base_scope = scope or ScopeFilters()
    ctx = AggregateContext(executor, base_scope, filters, condition)
    candidates = comparison_candidates(current, previous, list(fallback_days))

    if profession_ids:
        ids = sorted(set(profession_ids))
    else:
        discovered = await run_aggregates(
            [
                ctx.by_column_task('leads_current', LEADS, PROFESSION_COLUMN, current),
                ctx.by_column_task('leads_previous', LEADS, PROFESSION_COLUMN, candidates[0]),
                ctx.by_column_task('purchases_current', PURCHASES, PROFESSION_COLUMN, current),
                ctx.by_column_task('purchases_previous', PURCHASES, PROFESSION_COLUMN, candidates[0]),
            ],
            timeout,
        )
        ids = sorted(set().union(*(set(buckets) for buckets in discovered.values())))

    logger.info(f"Revenue comparison by profession for {len(ids)} professions")

    per_profession = [
        ctx.with_scope(base_scope.model_copy(update={'profession_ids': [profession_id]}))
        for profession_id in ids
    ]
    outcomes = await asyncio.gather(
        *(
            _compare(profession_ctx, current, candidates, timeout, now, profession_id)
            for profession_ctx, profession_id in zip(per_profession, ids)
        ),
        return_exceptions=True,
    )

    comparisons: Dict[int, RevenueComparison] = {}
    for profession_id, outcome in zip(ids, outcomes):
        if isinstance(outcome, BaseException):
            logger.error(f"Revenue comparison failed for profession {profession_id}: {outcome!r}")
            raise outcome
        comparisons[profession_id], _ = outcome

    return RevenueByProfessionResponse(
        professions=comparisons,
        processing_time_ms=round((time.perf_counter() - started) * 1000, 2),
    )


async def get_hourly_revenue(
    executor: QueryExecutor,
    day: DatePeriod,
    scope: Optional[ScopeFilters] = None,
    filters: Sequence[AdvancedFilter] = (),
    condition: FilterCondition = FilterCondition.AND,
    *,
    timeout: float = 30.0,
    now: Optional[datetime] = None,
) -> HourlyRevenueMetrics:
    """
    Hourly leads, purchases and revenue of a single day.

    Raises:
        PeriodValidationError: If ``day`` spans more than one day.
        AggregationError: Any dispatched aggregate failed.
    """
    if not day.is_single_day:
        raise PeriodValidationError("Hourly revenue requires a single-day period")

    ctx = AggregateContext(executor, scope, filters, condition)
    results = await run_aggregates(_hourly_tasks(ctx, day, now), timeout)
    return _build_hourly(ctx, day, results, now)
