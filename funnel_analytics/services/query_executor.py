"""
Query executor.

The aggregation services depend only on the abstract :class:`QueryExecutor`;
:class:`PostgresQueryExecutor` implements it on an asyncpg pool. Each call
acquires its own pooled connection, so concurrently dispatched aggregates never
share a connection.

Key Methods:
- count_by_range: One aggregate over a local-time range
- group_count_by_day: Day buckets (``YYYY-MM-DD``) over a range
- group_count_by_hour: Hour buckets (``00``..``23``) over a range within one day
- group_count_by_column: Buckets keyed by a column (e.g. profession id)
- fetch_rows: Raw statement escape hatch for multi-column lookups

Range bounds are naive local wall-clock datetimes in the executor's reference
timezone. Predicates use ``?`` placeholders and are bound here.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, tzinfo
from typing import Any, Dict, List, Mapping, Sequence, Union

from asyncpg import Pool

from funnel_analytics.sql.aggregate_queries import (
    build_daily_query,
    build_grouped_query,
    build_hourly_query,
    build_total_query,
    range_predicate,
)
from funnel_analytics.sql.predicates import Predicate
from funnel_analytics.sql.sources import AggregateSource


logger = logging.getLogger(__name__)

Number = Union[int, float]


class QueryExecutor(ABC):
    """Read-only aggregate access to the relational store."""

    def __init__(self, tz: tzinfo):
        self.tz = tz

    @property
    def tz_name(self) -> str:
        return getattr(self.tz, 'key', str(self.tz))

    @abstractmethod
    async def count_by_range(
        self,
        source: AggregateSource,
        predicates: Sequence[Predicate],
        start: datetime,
        end: datetime,
    ) -> Number:
        ...

    @abstractmethod
    async def group_count_by_day(
        self,
        source: AggregateSource,
        predicates: Sequence[Predicate],
        start: datetime,
        end: datetime,
    ) -> Dict[str, Number]:
        ...

    @abstractmethod
    async def group_count_by_hour(
        self,
        source: AggregateSource,
        predicates: Sequence[Predicate],
        start: datetime,
        end: datetime,
    ) -> Dict[str, Number]:
        ...

    @abstractmethod
    async def group_count_by_column(
        self,
        source: AggregateSource,
        column: str,
        predicates: Sequence[Predicate],
        start: datetime,
        end: datetime,
    ) -> Dict[Any, Number]:
        ...

    @abstractmethod
    async def fetch_rows(self, sql: str, args: Sequence[Any] = ()) -> List[Mapping[str, Any]]:
        ...


class PostgresQueryExecutor(QueryExecutor):
    """
    QueryExecutor backed by an asyncpg connection pool.

    Args:
        pool: asyncpg pool shared by the application.
        tz: Reference timezone for range bounds and buckets.
    """

    def __init__(self, pool: Pool, tz: tzinfo):
        super().__init__(tz)
        self._pool = pool

    def _with_range(
        self,
        source: AggregateSource,
        predicates: Sequence[Predicate],
        start: datetime,
        end: datetime,
    ) -> List[Predicate]:
        return [range_predicate(source, self.tz_name, start, end), *predicates]

    async def _fetch(self, sql: str, args: Sequence[Any]) -> List[Mapping[str, Any]]:
        logger.debug(f"Executing aggregate query with {len(args)} args: {sql.strip()}")
        async with self._pool.acquire() as conn:
            return await conn.fetch(sql, *args)

    async def count_by_range(self, source, predicates, start, end) -> Number:
        sql, args = build_total_query(source, self._with_range(source, predicates, start, end))
        rows = await self._fetch(sql, args)
        return source.coerce(rows[0]['value'] if rows else None)

    async def group_count_by_day(self, source, predicates, start, end) -> Dict[str, Number]:
        sql, args = build_daily_query(
            source, self.tz_name, self._with_range(source, predicates, start, end)
        )
        rows = await self._fetch(sql, args)
        return {row['bucket']: source.coerce(row['value']) for row in rows}

    async def group_count_by_hour(self, source, predicates, start, end) -> Dict[str, Number]:
        sql, args = build_hourly_query(
            source, self.tz_name, self._with_range(source, predicates, start, end)
        )
        rows = await self._fetch(sql, args)
        return {row['bucket']: source.coerce(row['value']) for row in rows}

    async def group_count_by_column(self, source, column, predicates, start, end) -> Dict[Any, Number]:
        sql, args = build_grouped_query(
            source, column, self._with_range(source, predicates, start, end)
        )
        rows = await self._fetch(sql, args)
        return {row['bucket']: source.coerce(row['value']) for row in rows}

    async def fetch_rows(self, sql: str, args: Sequence[Any] = ()) -> List[Mapping[str, Any]]:
        return await self._fetch(sql, list(args))
