"""
Services package for the Funnel Analytics backend.

Services:
- periods: Period model, comparison-period derivation and validation
- bucketing: Day/hour bucket keys in the reference timezone
- metrics: Period-over-period comparison and conversion rates
- orchestrator: Concurrent fan-out/fan-in of aggregate tasks
- query_executor: Abstract executor and its asyncpg implementation
- aggregates: Per-request aggregate task builder
- dashboard, revenue, profession_conversion, surveys, events: Endpoint services

All services are consumed by the API layer (funnel_analytics/api/).
"""

from funnel_analytics.services.dashboard import get_unified_dashboard
from funnel_analytics.services.events import list_events
from funnel_analytics.services.orchestrator import AggregateTask, run_aggregates
from funnel_analytics.services.periods import DatePeriod, parse_period
from funnel_analytics.services.profession_conversion import get_profession_conversion_rates
from funnel_analytics.services.query_executor import PostgresQueryExecutor, QueryExecutor
from funnel_analytics.services.revenue import (
    get_hourly_revenue,
    get_revenue_comparison_by_profession,
    get_revenue_comparison_general,
)
from funnel_analytics.services.surveys import get_survey_response_summary

__all__ = [
    'DatePeriod',
    'parse_period',
    'AggregateTask',
    'run_aggregates',
    'QueryExecutor',
    'PostgresQueryExecutor',
    'get_unified_dashboard',
    'get_revenue_comparison_general',
    'get_revenue_comparison_by_profession',
    'get_hourly_revenue',
    'get_profession_conversion_rates',
    'get_survey_response_summary',
    'list_events',
]
