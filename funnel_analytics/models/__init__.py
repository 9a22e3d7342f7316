"""
Models package for the Funnel Analytics backend.

Re-exports the enums and Pydantic schemas so callers can write:

    from funnel_analytics.models import MetricResult, FilterCondition
"""

from funnel_analytics.models.enums import (
    EventOrder,
    EventType,
    FilterCondition,
    FilterOperator,
)
from funnel_analytics.models.schemas import (
    AdvancedFilter,
    DashboardMetrics,
    DashboardResult,
    EventListResponse,
    EventRecord,
    FloatMetricResult,
    FunnelConversion,
    HourlyMetrics,
    HourlyRevenueMetrics,
    MetricResult,
    PaginationInfo,
    PeriodInfo,
    ProfessionConversion,
    ProfessionConversionResponse,
    ProfessionRevenueSummary,
    RevenueByProfessionResponse,
    RevenueComparison,
    ScopeFilters,
    SurveyResponseSummary,
    UtmData,
)

__all__ = [
    # Enums
    'EventOrder',
    'EventType',
    'FilterCondition',
    'FilterOperator',
    # Engine inputs
    'AdvancedFilter',
    'ScopeFilters',
    # Results
    'DashboardMetrics',
    'DashboardResult',
    'EventListResponse',
    'EventRecord',
    'FloatMetricResult',
    'FunnelConversion',
    'HourlyMetrics',
    'HourlyRevenueMetrics',
    'MetricResult',
    'PaginationInfo',
    'PeriodInfo',
    'ProfessionConversion',
    'ProfessionConversionResponse',
    'ProfessionRevenueSummary',
    'RevenueByProfessionResponse',
    'RevenueComparison',
    'SurveyResponseSummary',
    'UtmData',
]
