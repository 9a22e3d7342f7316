"""
Shared request parsing and error mapping for the API routers.

Raw query parameters are turned into engine inputs here (periods, scope
filters, advanced filters) so every router validates them the same way.
Validation failures surface as ValueError subclasses and map to HTTP 400;
aggregation failures map to HTTP 500.
"""

import json
import logging
from typing import List, NoReturn, Optional, Tuple

from fastapi import HTTPException
from pydantic import ValidationError

from funnel_analytics.core.config import Settings
from funnel_analytics.core.exceptions import AggregationError, FilterValidationError
from funnel_analytics.models.schemas import AdvancedFilter, ScopeFilters
from funnel_analytics.services.periods import DatePeriod, parse_period


logger = logging.getLogger(__name__)


def parse_advanced_filters(raw: Optional[str]) -> List[AdvancedFilter]:
    """
    Decode the JSON-encoded ``advanced_filters`` query parameter.

    Raises:
        FilterValidationError: Not JSON, not a list, or an entry is malformed.
    """
    if raw is None or raw.strip() == '':
        return []
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise FilterValidationError(f"advanced_filters is not valid JSON: {e}") from e

    if not isinstance(payload, list):
        raise FilterValidationError("advanced_filters must be a JSON list")

    filters = []
    for index, entry in enumerate(payload):
        try:
            filters.append(AdvancedFilter.model_validate(entry))
        except ValidationError as e:
            raise FilterValidationError(f"advanced_filters[{index}] is invalid: {e}") from e
    return filters


def parse_periods(
    settings: Settings,
    date_from: str,
    date_to: Optional[str],
    time_from: Optional[str] = None,
    time_to: Optional[str] = None,
    compare_from: Optional[str] = None,
    compare_to: Optional[str] = None,
) -> Tuple[DatePeriod, Optional[DatePeriod]]:
    """Current period plus the explicit comparison period, if one was requested."""
    tz = settings.tzinfo
    current = parse_period(date_from, date_to, tz, time_from, time_to)
    previous = None
    if compare_from:
        previous = parse_period(compare_from, compare_to, tz, time_from, time_to)
    return current, previous


def build_scope(
    profession_ids: Optional[List[int]] = None,
    funnel_ids: Optional[List[int]] = None,
    product_id: Optional[int] = None,
    landing_page: Optional[str] = None,
) -> ScopeFilters:
    return ScopeFilters(
        profession_ids=profession_ids or [],
        funnel_ids=funnel_ids or [],
        product_id=product_id,
        landing_page=landing_page or None,
    )


def raise_http_error(e: Exception, action: str) -> NoReturn:
    """
    Map an engine exception to an HTTPException.

    ValueError (period/filter validation) -> 400, everything else -> 500.
    HTTPException passes through untouched.
    """
    if isinstance(e, HTTPException):
        raise e
    if isinstance(e, ValueError):
        logger.warning(f"Rejected request to {action}: {e}")
        raise HTTPException(status_code=400, detail=str(e)) from e
    if isinstance(e, AggregationError):
        logger.error(f"Failed to {action}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to {action}: {e}") from e
    logger.exception(f"Unexpected error while trying to {action}")
    raise HTTPException(status_code=500, detail=f"Failed to {action}: {str(e)}") from e
