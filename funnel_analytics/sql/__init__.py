"""
SQL layer for the Funnel Analytics backend.

Submodules:
    predicates: ``?``-placeholder fragments and their binding to asyncpg ``$n``.
    sources: Registry of aggregate sources (sessions, leads, purchases, ...).
    filter_compiler: Advanced filters to safely-quoted predicate fragments.
    aggregate_queries: Total, per-day, per-hour and per-column statements.
    event_queries: Event listing page statement.

Example usage:
    from funnel_analytics.sql import LEADS, compile_filters, build_total_query
"""

from funnel_analytics.sql.aggregate_queries import (
    FUNNELS_BY_PROFESSION_QUERY,
    PROFESSIONS_QUERY,
    build_daily_query,
    build_grouped_query,
    build_hourly_query,
    build_total_query,
    clock_window_predicate,
    range_predicate,
    scope_predicates,
)
from funnel_analytics.sql.event_queries import build_event_page_query
from funnel_analytics.sql.filter_compiler import CompiledFilter, compile_filters, resolve_property
from funnel_analytics.sql.predicates import Predicate, bind_placeholders, join_predicates
from funnel_analytics.sql.sources import (
    EVENTS,
    LEADS,
    PURCHASE_REVENUE,
    PURCHASES,
    SESSIONS,
    SOURCES,
    SURVEY_RESPONSES,
    AggregateSource,
)

__all__ = [
    # Predicates
    'Predicate',
    'bind_placeholders',
    'join_predicates',
    # Sources
    'AggregateSource',
    'SOURCES',
    'SESSIONS',
    'LEADS',
    'PURCHASES',
    'PURCHASE_REVENUE',
    'SURVEY_RESPONSES',
    'EVENTS',
    # Filter compiler
    'CompiledFilter',
    'compile_filters',
    'resolve_property',
    # Aggregate queries
    'PROFESSIONS_QUERY',
    'FUNNELS_BY_PROFESSION_QUERY',
    'range_predicate',
    'clock_window_predicate',
    'scope_predicates',
    'build_total_query',
    'build_daily_query',
    'build_hourly_query',
    'build_grouped_query',
    # Event listing
    'build_event_page_query',
]
