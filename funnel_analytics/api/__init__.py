"""
API package initialization.

Router modules:
- dashboard: Unified dashboard and profession conversion rates
- revenue: Revenue comparisons and hourly revenue
- events: Filtered, paginated event listing
- surveys: Survey response summary
"""

from fastapi import APIRouter

from funnel_analytics.api.dashboard import router as dashboard_router
from funnel_analytics.api.events import router as events_router
from funnel_analytics.api.revenue import router as revenue_router
from funnel_analytics.api.surveys import router as surveys_router

# Every router carries its own prefix
api_router = APIRouter()
api_router.include_router(dashboard_router)
api_router.include_router(revenue_router)
api_router.include_router(events_router)
api_router.include_router(surveys_router)

__all__ = [
    "api_router",
    "dashboard_router",
    "revenue_router",
    "events_router",
    "surveys_router",
]
