"""FastAPI router for survey metrics (GET /metrics/surveys/summary)."""

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
from funnel_analytics.models import FilterCondition, SurveyResponseSummary
from funnel_analytics.services.surveys import get_survey_response_summary


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/metrics/surveys", tags=["surveys"])


@router.get("/summary", response_model=SurveyResponseSummary)
async def survey_summary(
    executor: QueryExecutorDep,
    settings: SettingsDep,
    date_from: str = Query(..., alias="from"),
    date_to: Optional[str] = Query(default=None, alias="to"),
    compare_from: Optional[str] = Query(default=None),
    compare_to: Optional[str] = Query(default=None),
    profession_ids: Optional[List[int]] = Query(default=None),
    funnel_ids: Optional[List[int]] = Query(default=None),
    product_id: Optional[int] = Query(default=None),
    advanced_filters: Optional[str] = Query(default=None),
    filter_condition: str = Query(default="AND"),
) -> SurveyResponseSummary:
    try:
        current, previous = parse_periods(
            settings, date_from, date_to, compare_from=compare_from, compare_to=compare_to
        )
        return await get_survey_response_summary(
            executor,
            current,
            previous,
            scope=build_scope(profession_ids, funnel_ids, product_id),
            filters=parse_advanced_filters(advanced_filters),
            condition=FilterCondition.parse(filter_condition),
            max_period_days=settings.max_period_days,
            timeout=settings.query_timeout_seconds,
        )

    except Exception as e:
        raise_http_error(e, "summarize survey responses")
