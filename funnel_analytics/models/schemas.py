"""
Pydantic request/response models for the Funnel Analytics backend.

This module provides type-safe validation and serialization for the engine's
inputs (advanced filters, scope filters) and its results (metric comparisons,
day/hour bucket maps, revenue and conversion breakdowns, event listings).

Bucket maps are plain ``Dict[str, int]`` (or float) keyed by ISO date
``YYYY-MM-DD`` or two-digit hour ``00``..``23``. Every expected key is always
present; missing buckets are zero, never absent.

All models use Pydantic v2 syntax.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Engine Inputs
# =============================================================================


class AdvancedFilter(BaseModel):
    """
    A single user-supplied filter.

    ``operator`` is kept as a raw string: unsupported operators are dropped by
    the compiler with a warning instead of failing validation.
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = Field(default=None, description="Client-side filter id")
    property: str = Field(
        ...,
        min_length=1,
        description="Dotted 'entity.field' (e.g. 'user.utm_source') or a bare field",
    )
    operator: str = Field(..., description="equals, not_equals, contains or not_contains")
    value: str = Field(default="", description="Comparison value")

    @field_validator('value', mode='before')
    @classmethod
    def _coerce_value(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
        return value


class ScopeFilters(BaseModel):
    """
    Mandatory equality constraints applied outside the filter compiler.

    These are always ANDed and never take part in an OR filter group.
    """

    model_config = ConfigDict(frozen=True)

    profession_ids: List[int] = Field(default_factory=list)
    funnel_ids: List[int] = Field(default_factory=list)
    product_id: Optional[int] = None
    landing_page: Optional[str] = None
    user_id: Optional[str] = None


# =============================================================================
# Metric Results
# =============================================================================


class MetricResult(BaseModel):
    """
    Current-vs-previous comparison of a count metric.

    ``percentage`` is the absolute relative change (never negative); the
    direction is carried by ``is_increasing``. When ``previous`` is zero and
    ``current`` is positive, ``percentage`` is 100 by convention.
    """

    model_config = ConfigDict(frozen=True)

    current: int = Field(..., ge=0)
    previous: int = Field(..., ge=0)
    percentage: float = Field(..., ge=0)
    is_increasing: bool


class FloatMetricResult(BaseModel):
    """Current-vs-previous comparison of a currency or rate metric (2 decimals)."""

    model_config = ConfigDict(frozen=True)

    current: float
    previous: float
    percentage: float = Field(..., ge=0)
    is_increasing: bool


class HourlyMetrics(BaseModel):
    """Three parallel hour bucket maps keyed identically."""

    sessions: Dict[str, int] = Field(default_factory=dict)
    leads: Dict[str, int] = Field(default_factory=dict)
    conversion_rate: Dict[str, float] = Field(default_factory=dict)


class PeriodInfo(BaseModel):
    """A resolved period as reported back to the client."""

    start: datetime
    end: datetime
    time_from: Optional[str] = None
    time_to: Optional[str] = None


# =============================================================================
# Unified Dashboard
# =============================================================================


class DashboardMetrics(BaseModel):
    """Flat headline block of the unified dashboard."""

    sessions: int
    leads: int
    conversion_rate: float
    prev_sessions: int
    prev_leads: int
    prev_conversion_rate: float
    sessions_change: float
    leads_change: float
    conversion_rate_change: float


class DashboardResult(BaseModel):
    """Unified sessions/leads comparison for one request."""

    metrics: DashboardMetrics
    sessions: MetricResult
    leads: MetricResult
    conversion_rate: FloatMetricResult
    sessions_by_day: Dict[str, int]
    leads_by_day: Dict[str, int]
    conversion_rate_by_day: Dict[str, float]
    previous_sessions_by_day: Dict[str, int]
    previous_leads_by_day: Dict[str, int]
    hourly_data: Optional[HourlyMetrics] = None
    current_period: PeriodInfo
    previous_period: PeriodInfo
    dropped_filters: List[str] = Field(default_factory=list)
    processing_time_ms: float = 0.0


# =============================================================================
# Revenue
# =============================================================================


class HourlyRevenueMetrics(BaseModel):
    """Hour bucket maps for leads, purchases and revenue of one day."""

    date: date
    leads: Dict[str, int] = Field(default_factory=dict)
    purchases: Dict[str, int] = Field(default_factory=dict)
    revenue: Dict[str, float] = Field(default_factory=dict)


class ProfessionRevenueSummary(BaseModel):
    """Leads, purchases and revenue of one profession, current vs previous."""

    profession_id: int
    profession_name: Optional[str] = None
    leads: MetricResult
    purchases: MetricResult
    revenue: FloatMetricResult


class RevenueComparison(BaseModel):
    """Revenue comparison for the general (entity-less) scope or one profession."""

    profession_id: Optional[int] = None
    leads: MetricResult
    purchases: MetricResult
    revenue: FloatMetricResult
    leads_by_day: Dict[str, int]
    purchases_by_day: Dict[str, int]
    revenue_by_day: Dict[str, float]
    previous_leads_by_day: Dict[str, int]
    previous_purchases_by_day: Dict[str, int]
    previous_revenue_by_day: Dict[str, float]
    hourly_data: Optional[HourlyRevenueMetrics] = None
    profession_summary: Optional[List[ProfessionRevenueSummary]] = None
    current_period: PeriodInfo
    previous_period: PeriodInfo
    processing_time_ms: float = 0.0


class RevenueByProfessionResponse(BaseModel):
    """Independent revenue comparisons keyed by profession id."""

    professions: Dict[int, RevenueComparison]
    processing_time_ms: float = 0.0


# =============================================================================
# Profession Conversion
# =============================================================================


class FunnelConversion(BaseModel):
    """Conversion rate of one active funnel."""

    funnel_id: int
    funnel_name: Optional[str] = None
    sessions: int
    leads: int
    conversion_rate: float


class ProfessionConversion(BaseModel):
    """Conversion rate of one profession, current vs previous."""

    profession_id: int
    profession_name: Optional[str] = None
    sessions: MetricResult
    leads: MetricResult
    conversion_rate: FloatMetricResult
    has_active_funnel: bool
    active_funnels: List[FunnelConversion] = Field(default_factory=list)


class ProfessionConversionResponse(BaseModel):
    """Conversion rates for every non-testing profession."""

    professions: List[ProfessionConversion]
    total_active_funnels: int
    professions_with_funnels: int
    processing_time_ms: float = 0.0


# =============================================================================
# Surveys
# =============================================================================


class SurveyResponseSummary(BaseModel):
    """Survey responses against leads, current vs previous."""

    responses: MetricResult
    leads: MetricResult
    response_rate: FloatMetricResult
    responses_by_day: Dict[str, int]
    current_period: PeriodInfo
    previous_period: PeriodInfo
    processing_time_ms: float = 0.0


# =============================================================================
# Event Listing
# =============================================================================


class UtmData(BaseModel):
    """Attribution of an event: the user's first touch, else the session's."""

    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_content: Optional[str] = None
    utm_term: Optional[str] = None


class EventRecord(BaseModel):
    """One row of the event listing."""

    event_id: str
    event_name: Optional[str] = None
    event_type: Optional[str] = None
    event_source: Optional[str] = None
    event_time: datetime
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    profession_id: Optional[int] = None
    profession_name: Optional[str] = None
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    funnel_id: Optional[int] = None
    funnel_name: Optional[str] = None
    utm_data: UtmData = Field(default_factory=UtmData)
    initial_country: Optional[str] = None
    initial_region: Optional[str] = None
    initial_city: Optional[str] = None


class PaginationInfo(BaseModel):
    """Pagination metadata of a listing page."""

    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)
    has_next_page: bool


class EventListResponse(BaseModel):
    """One page of filtered events."""

    data: List[EventRecord]
    meta: PaginationInfo
    dropped_filters: List[str] = Field(default_factory=list)
