"""Survey response summary: responses against leads, current vs previous."""

import logging
import time
from typing import Optional, Sequence

from funnel_analytics.models.enums import FilterCondition
from funnel_analytics.models.schemas import AdvancedFilter, ScopeFilters, SurveyResponseSummary
from funnel_analytics.services.aggregates import AggregateContext
from funnel_analytics.services.bucketing import backfill, period_date_keys
from funnel_analytics.services.metrics import calculate_float_metric, calculate_metric, conversion_rate
from funnel_analytics.services.orchestrator import run_aggregates
from funnel_analytics.services.periods import (
    DatePeriod,
    comparison_candidates,
    period_info,
    validate_period_span,
)
from funnel_analytics.services.query_executor import QueryExecutor
from funnel_analytics.sql.sources import LEADS, SURVEY_RESPONSES


logger = logging.getLogger(__name__)


async def get_survey_response_summary(
    executor: QueryExecutor,
    current: DatePeriod,
    previous: Optional[DatePeriod] = None,
    scope: Optional[ScopeFilters] = None,
    filters: Sequence[AdvancedFilter] = (),
    condition: FilterCondition = FilterCondition.AND,
    *,
    max_period_days: int = 90,
    timeout: float = 30.0,
) -> SurveyResponseSummary:
    """
    Survey responses, leads and the response rate (responses / leads * 100).

    The comparison period is the explicit ``previous`` or the immediately
    preceding interval; there is no single-day fallback chain here.
    """
    started = time.perf_counter()

    validate_period_span(current, max_period_days)
    if previous is not None:
        validate_period_span(previous, max_period_days)

    previous_period = comparison_candidates(current, previous, [])[0]
    ctx = AggregateContext(executor, scope, filters, condition)

    results = await run_aggregates(
        [
            ctx.total_task('responses_current', SURVEY_RESPONSES, current),
            ctx.total_task('responses_previous', SURVEY_RESPONSES, previous_period),
            ctx.total_task('leads_current', LEADS, current),
            ctx.total_task('leads_previous', LEADS, previous_period),
            ctx.daily_task('responses_current_daily', SURVEY_RESPONSES, current),
        ],
        timeout,
    )

    responses = calculate_metric(results['responses_current'], results['responses_previous'])
    leads = calculate_metric(results['leads_current'], results['leads_previous'])
    logger.info(f"Survey summary: {responses.current} responses for {leads.current} leads")

    return SurveyResponseSummary(
        responses=responses,
        leads=leads,
        response_rate=calculate_float_metric(
            conversion_rate(responses.current, leads.current),
            conversion_rate(responses.previous, leads.previous),
        ),
        responses_by_day=backfill(
            period_date_keys(current, executor.tz), results['responses_current_daily']
        ),
        current_period=period_info(current),
        previous_period=period_info(previous_period),
        processing_time_ms=round((time.perf_counter() - started) * 1000, 2),
    )
