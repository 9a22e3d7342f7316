"""
FastAPI dependency injection module for the Funnel Analytics backend.

Endpoints never touch the pool directly: they receive a QueryExecutor bound to
the pool and the reference timezone. Tests swap either dependency through
``app.dependency_overrides``.

Key Dependencies Provided:
- get_settings_dependency / SettingsDep: The cached Settings singleton
- get_query_executor / QueryExecutorDep: PostgresQueryExecutor on the shared pool

Usage:
    @router.get("/unified")
    async def unified(executor: QueryExecutorDep, settings: SettingsDep):
        ...

    # In tests
    app.dependency_overrides[get_query_executor] = lambda: fake_executor
"""

from typing import Annotated

from fastapi import Depends

from funnel_analytics.core.config import Settings, get_settings
from funnel_analytics.core.database import get_db_pool
from funnel_analytics.services.query_executor import PostgresQueryExecutor, QueryExecutor


# =============================================================================
# Settings Dependency
# =============================================================================

def get_settings_dependency() -> Settings:
    """
    Return the Settings singleton instance.

    Thin wrapper around get_settings() so the settings can be overridden:

        app.dependency_overrides[get_settings_dependency] = lambda: test_settings
    """
    return get_settings()


SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]


# =============================================================================
# Query Executor Dependency
# =============================================================================

async def get_query_executor(settings: SettingsDep) -> QueryExecutor:
    """
    Build a query executor on the application pool.

    The executor is cheap; each aggregate it runs acquires its own pooled
    connection.
    """
    pool = await get_db_pool()
    return PostgresQueryExecutor(pool, settings.tzinfo)


QueryExecutorDep = Annotated[QueryExecutor, Depends(get_query_executor)]
