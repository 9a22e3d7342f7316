"""
FastAPI router for the filtered event listing.

GET /events returns one page of events with UTM attribution and pagination
metadata. Advanced filters arrive as a JSON-encoded list in the
``advanced_filters`` query parameter.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query

from funnel_analytics.api.common import (
    build_scope,
    parse_advanced_filters,
    parse_periods,
    raise_http_error,
)
from funnel_analytics.core.dependencies import QueryExecutorDep, SettingsDep
from funnel_analytics.models import EventListResponse, EventOrder, EventType, FilterCondition
from funnel_analytics.services.events import list_events


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])


@router.get("", response_model=EventListResponse)
async def get_events(
    executor: QueryExecutorDep,
    settings: SettingsDep,
    date_from: str = Query(..., alias="from"),
    date_to: Optional[str] = Query(default=None, alias="to"),
    time_from: Optional[str] = Query(default=None),
    time_to: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1, description="Page size"),
    order: EventOrder = Query(default=EventOrder.DESC),
    event_type: Optional[EventType] = Query(default=None),
    profession_ids: Optional[List[int]] = Query(default=None),
    funnel_ids: Optional[List[int]] = Query(default=None),
    product_id: Optional[int] = Query(default=None),
    user_id: Optional[str] = Query(default=None),
    advanced_filters: Optional[str] = Query(default=None),
    filter_condition: str = Query(default="AND"),
) -> EventListResponse:
    """
    Filtered, paginated event listing.

    ``limit`` defaults to the configured page size and may not exceed the
    configured maximum.
    """
    try:
        page_size = limit or settings.default_page_size
        if page_size > settings.max_page_size:
            raise HTTPException(
                status_code=400,
                detail=f"limit must not exceed {settings.max_page_size}",
            )

        period, _ = parse_periods(settings, date_from, date_to, time_from, time_to)
        scope = build_scope(profession_ids, funnel_ids, product_id).model_copy(
            update={'user_id': user_id}
        )

        return await list_events(
            executor,
            period,
            scope=scope,
            filters=parse_advanced_filters(advanced_filters),
            condition=FilterCondition.parse(filter_condition),
            page=page,
            limit=page_size,
            order=order,
            event_type=event_type,
            max_period_days=settings.max_period_days,
            timeout=settings.query_timeout_seconds,
        )

    except Exception as e:
        raise_http_error(e, "list events")
