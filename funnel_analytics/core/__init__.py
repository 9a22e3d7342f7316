"""
Core infrastructure package for the Funnel Analytics backend.

Provides:
- Configuration management via pydantic-settings
- Async PostgreSQL connectivity via asyncpg
- The engine's exception hierarchy
- FastAPI dependency injection utilities

Usage:
    from funnel_analytics.core import get_settings, init_db, close_db
"""

from funnel_analytics.core.config import Settings, get_settings
from funnel_analytics.core.database import close_db, get_db_pool, init_db
from funnel_analytics.core.exceptions import (
    AggregationError,
    AnalyticsError,
    FilterValidationError,
    PeriodValidationError,
)

__all__ = [
    # Configuration
    'Settings',
    'get_settings',
    # Database pool lifecycle
    'init_db',
    'close_db',
    'get_db_pool',
    # Errors
    'AnalyticsError',
    'PeriodValidationError',
    'FilterValidationError',
    'AggregationError',
]
