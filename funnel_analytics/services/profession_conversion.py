"""
Profession conversion service.

Sessions, leads and conversion rate per non-testing profession, current vs
previous, together with the conversion rate of each profession's active
funnels in the current period. All lookups and breakdowns run as a single
fan-out.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from funnel_analytics.models.enums import FilterCondition
from funnel_analytics.models.schemas import (
    AdvancedFilter,
    FunnelConversion,
    ProfessionConversion,
    ProfessionConversionResponse,
    ScopeFilters,
)
from funnel_analytics.services.aggregates import AggregateContext
from funnel_analytics.services.metrics import calculate_float_metric, calculate_metric, conversion_rate
from funnel_analytics.services.orchestrator import AggregateTask, run_aggregates
from funnel_analytics.services.periods import (
    DatePeriod,
    comparison_candidates,
    validate_period_span,
)
from funnel_analytics.services.query_executor import QueryExecutor
from funnel_analytics.sql.aggregate_queries import FUNNELS_BY_PROFESSION_QUERY, PROFESSIONS_QUERY
from funnel_analytics.sql.sources import LEADS, SESSIONS


logger = logging.getLogger(__name__)


async def get_profession_conversion_rates(
    executor: QueryExecutor,
    current: DatePeriod,
    previous: Optional[DatePeriod] = None,
    filters: Sequence[AdvancedFilter] = (),
    condition: FilterCondition = FilterCondition.AND,
    *,
    landing_page: Optional[str] = None,
    max_period_days: int = 90,
    timeout: float = 30.0,
) -> ProfessionConversionResponse:
    """
    Conversion rate per profession.

    Args:
        executor: Query executor.
        current: Current period.
        previous: Explicit comparison period, or None for the preceding interval.
        filters: Advanced filters.
        condition: AND or OR across the advanced filters.
        landing_page: Restricts sessions to one landing page when set.
        max_period_days: Longest accepted period.
        timeout: Per-query deadline in seconds.

    Returns:
        ProfessionConversionResponse ordered by current conversion rate
        (highest first), then profession id.
    """
    started = time.perf_counter()

    validate_period_span(current, max_period_days)
    if previous is not None:
        validate_period_span(previous, max_period_days)

    previous_period = comparison_candidates(current, previous, [])[0]
    ctx = AggregateContext(
        executor, ScopeFilters(landing_page=landing_page), filters, condition
    )

    tasks = [
        AggregateTask('professions', lambda: executor.fetch_rows(PROFESSIONS_QUERY)),
        AggregateTask('funnels', lambda: executor.fetch_rows(FUNNELS_BY_PROFESSION_QUERY)),
        ctx.by_column_task('sessions_current', SESSIONS, 's.profession_id', current),
        ctx.by_column_task('sessions_previous', SESSIONS, 's.profession_id', previous_period),
        ctx.by_column_task('leads_current', LEADS, 'e.profession_id', current),
        ctx.by_column_task('leads_previous', LEADS, 'e.profession_id', previous_period),
        ctx.by_column_task('funnel_sessions', SESSIONS, 's.funnel_id', current),
        ctx.by_column_task('funnel_leads', LEADS, 'e.funnel_id', current),
    ]
    results = await run_aggregates(tasks, timeout)

    active_funnels: Dict[int, List[FunnelConversion]] = defaultdict(list)
    for row in results['funnels']:
        if not row['is_active']:
            continue
        funnel_id = row['funnel_id']
        sessions = results['funnel_sessions'].get(funnel_id, 0)
        leads = results['funnel_leads'].get(funnel_id, 0)
        active_funnels[row['profession_id']].append(
            FunnelConversion(
                funnel_id=funnel_id,
                funnel_name=row['funnel_name'],
                sessions=sessions,
                leads=leads,
                conversion_rate=conversion_rate(leads, sessions),
            )
        )

    professions = []
    for row in results['professions']:
        profession_id = row['profession_id']
        sessions = calculate_metric(
            results['sessions_current'].get(profession_id, 0),
            results['sessions_previous'].get(profession_id, 0),
        )
        leads = calculate_metric(
            results['leads_current'].get(profession_id, 0),
            results['leads_previous'].get(profession_id, 0),
        )
        funnels = active_funnels.get(profession_id, [])
        professions.append(
            ProfessionConversion(
                profession_id=profession_id,
                profession_name=row['profession_name'],
                sessions=sessions,
                leads=leads,
                conversion_rate=calculate_float_metric(
                    conversion_rate(leads.current, sessions.current),
                    conversion_rate(leads.previous, sessions.previous),
                ),
                has_active_funnel=bool(funnels),
                active_funnels=funnels,
            )
        )

    professions.sort(key=lambda p: (-p.conversion_rate.current, p.profession_id))

    total_active = sum(len(p.active_funnels) for p in professions)
    with_funnels = sum(1 for p in professions if p.has_active_funnel)
    logger.info(
        f"Profession conversion: {len(professions)} professions, "
        f"{total_active} active funnels"
    )

    return ProfessionConversionResponse(
        professions=professions,
        total_active_funnels=total_active,
        professions_with_funnels=with_funnels,
        processing_time_ms=round((time.perf_counter() - started) * 1000, 2),
    )
