"""
FastAPI router for dashboard endpoints.

- GET /dashboard/unified: Sessions, leads and conversion rate vs a comparison
  period, with day series and (single day) hourly breakdown.
- GET /dashboard/profession-conversion: Conversion rate per profession and
  per active funnel.
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
    DashboardResult,
    FilterCondition,
    ProfessionConversionResponse,
)
from funnel_analytics.services.dashboard import get_unified_dashboard
from funnel_analytics.services.profession_conversion import get_profession_conversion_rates


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/unified", response_model=DashboardResult)
async def unified_dashboard(
    executor: QueryExecutorDep,
    settings: SettingsDep,
    date_from: str = Query(..., alias="from", description="Start date (YYYY-MM-DD or ISO-8601)"),
    date_to: Optional[str] = Query(default=None, alias="to", description="End date, defaults to start"),
    time_from: Optional[str] = Query(default=None, description="Daily window start (HH:MM)"),
    time_to: Optional[str] = Query(default=None, description="Daily window end (HH:MM)"),
    compare_from: Optional[str] = Query(default=None, description="Explicit comparison start"),
    compare_to: Optional[str] = Query(default=None, description="Explicit comparison end"),
    profession_ids: Optional[List[int]] = Query(default=None),
    funnel_ids: Optional[List[int]] = Query(default=None),
    product_id: Optional[int] = Query(default=None),
    landing_page: Optional[str] = Query(default=None),
    advanced_filters: Optional[str] = Query(default=None, description="JSON list of filters"),
    filter_condition: str = Query(default="AND", description="AND or OR"),
) -> DashboardResult:
    """
    Unified sessions/leads dashboard.

    Returns 400 for invalid dates, periods over the configured maximum or a
    malformed filter payload, and 500 when any aggregate fails.
    """
    try:
        current, previous = parse_periods(
            settings, date_from, date_to, time_from, time_to, compare_from, compare_to
        )
        filters = parse_advanced_filters(advanced_filters)

        result = await get_unified_dashboard(
            executor,
            current,
            previous,
            scope=build_scope(profession_ids, funnel_ids, product_id, landing_page),
            filters=filters,
            condition=FilterCondition.parse(filter_condition),
            max_period_days=settings.max_period_days,
            timeout=settings.query_timeout_seconds,
            fallback_days=settings.single_day_fallback_days,
        )
        logger.info(f"Unified dashboard served in {result.processing_time_ms}ms")
        return result

    except Exception as e:
        raise_http_error(e, "build unified dashboard")


@router.get("/profession-conversion", response_model=ProfessionConversionResponse)
async def profession_conversion(
    executor: QueryExecutorDep,
    settings: SettingsDep,
    date_from: str = Query(..., alias="from"),
    date_to: Optional[str] = Query(default=None, alias="to"),
    time_from: Optional[str] = Query(default=None),
    time_to: Optional[str] = Query(default=None),
    compare_from: Optional[str] = Query(default=None),
    compare_to: Optional[str] = Query(default=None),
    advanced_filters: Optional[str] = Query(default=None),
    filter_condition: str = Query(default="AND"),
) -> ProfessionConversionResponse:
    """Conversion rate per non-testing profession, with its active funnels."""
    try:
        current, previous = parse_periods(
            settings, date_from, date_to, time_from, time_to, compare_from, compare_to
        )
        return await get_profession_conversion_rates(
            executor,
            current,
            previous,
            filters=parse_advanced_filters(advanced_filters),
            condition=FilterCondition.parse(filter_condition),
            landing_page=settings.profession_conversion_landing_page,
            max_period_days=settings.max_period_days,
            timeout=settings.query_timeout_seconds,
        )

    except Exception as e:
        raise_http_error(e, "compute profession conversion rates")
