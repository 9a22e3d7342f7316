"""
FastAPI router for revenue endpoints.

- GET /revenue/comparison/general: Leads, purchases and revenue vs a comparison
  period, plus a per-profession summary.
- GET /revenue/comparison/by-profession: Independent comparison per profession.
- GET /revenue/hourly: Hourly leads, purchases and revenue of one day.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Query

from funnel_analytics.api.common import (
    build_scope,
    parse_advanced_filters,
    parse_periods,
    raise_http_error,
)
from funnel_analytics.core.dependencies import QueryExecutorDep, SettingsDep
from funnel_analytics.models import (
    FilterCondition,
    HourlyRevenueMetrics,
    RevenueByProfessionResponse,
    RevenueComparison,
)
from funnel_analytics.services.periods import parse_period
from funnel_analytics.services.revenue import (
    get_hourly_revenue,
    get_revenue_comparison_by_profession,
    get_revenue_comparison_general,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/revenue", tags=["revenue"])


@router.get("/comparison/general", response_model=RevenueComparison)
async def revenue_comparison_general(
    executor: QueryExecutorDep,
    settings: SettingsDep,
    date_from: str = Query(..., alias="from"),
    date_to: Optional[str] = Query(default=None, alias="to"),
    time_from: Optional[str] = Query(default=None),
    time_to: Optional[str] = Query(default=None),
    compare_from: Optional[str] = Query(default=None),
    compare_to: Optional[str] = Query(default=None),
    funnel_ids: Optional[List[int]] = Query(default=None),
    product_id: Optional[int] = Query(default=None),
    advanced_filters: Optional[str] = Query(default=None),
    filter_condition: str = Query(default="AND"),
) -> RevenueComparison:
    """
    General revenue comparison.

    ``profession_summary`` is null when the per-profession breakdown could not
    be computed; the general figures are still returned.
    """
    try:
        current, previous = parse_periods(
            settings, date_from, date_to, time_from, time_to, compare_from, compare_to
        )
        return await get_revenue_comparison_general(
            executor,
            current,
            previous,
            scope=build_scope(funnel_ids=funnel_ids, product_id=product_id),
            filters=parse_advanced_filters(advanced_filters),
            condition=FilterCondition.parse(filter_condition),
            max_period_days=settings.max_period_days,
            timeout=settings.query_timeout_seconds,
            fallback_days=settings.single_day_fallback_days,
        )

    except Exception as e:
        raise_http_error(e, "compute revenue comparison")


@router.get("/comparison/by-profession", response_model=RevenueByProfessionResponse)
async def revenue_comparison_by_profession(
    executor: QueryExecutorDep,
    settings: SettingsDep,
    date_from: str = Query(..., alias="from"),
    date_to: Optional[str] = Query(default=None, alias="to"),
    time_from: Optional[str] = Query(default=None),
    time_to: Optional[str] = Query(default=None),
    compare_from: Optional[str] = Query(default=None),
    compare_to: Optional[str] = Query(default=None),
    profession_ids: Optional[List[int]] = Query(
        default=None, description="Professions to compare; all active ones when omitted"
    ),
    advanced_filters: Optional[str] = Query(default=None),
    filter_condition: str = Query(default="AND"),
) -> RevenueByProfessionResponse:
    try:
        current, previous = parse_periods(
            settings, date_from, date_to, time_from, time_to, compare_from, compare_to
        )
        return await get_revenue_comparison_by_profession(
            executor,
            current,
            previous,
            profession_ids=profession_ids,
            filters=parse_advanced_filters(advanced_filters),
            condition=FilterCondition.parse(filter_condition),
            max_period_days=settings.max_period_days,
            timeout=settings.query_timeout_seconds,
            fallback_days=settings.single_day_fallback_days,
        )

    except Exception as e:
        raise_http_error(e, "compute revenue comparison by profession")


@router.get("/hourly", response_model=HourlyRevenueMetrics)
async def hourly_revenue(
    executor: QueryExecutorDep,
    settings: SettingsDep,
    day: str = Query(..., alias="date", description="Day (YYYY-MM-DD)"),
    profession_ids: Optional[List[int]] = Query(default=None),
    funnel_ids: Optional[List[int]] = Query(default=None),
    product_id: Optional[int] = Query(default=None),
    advanced_filters: Optional[str] = Query(default=None),
    filter_condition: str = Query(default="AND"),
) -> HourlyRevenueMetrics:
    try:
        period = parse_period(day, None, settings.tzinfo)
        return await get_hourly_revenue(
            executor,
            period,
            scope=build_scope(profession_ids, funnel_ids, product_id),
            filters=parse_advanced_filters(advanced_filters),
            condition=FilterCondition.parse(filter_condition),
            timeout=settings.query_timeout_seconds,
        )

    except Exception as e:
        raise_http_error(e, "compute hourly revenue")
