"""
Per-request aggregate context.

Bundles what every aggregate task of one request shares (executor, scope
filters, advanced filters and their condition) and builds the orchestrator
tasks for a source and period. Advanced filters are compiled once per source,
against the aliases that source joins.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from funnel_analytics.models.enums import FilterCondition
from funnel_analytics.models.schemas import AdvancedFilter, ScopeFilters
from funnel_analytics.services.bucketing import day_bounds
from funnel_analytics.services.orchestrator import AggregateTask
from funnel_analytics.services.periods import DatePeriod, period_bounds
from funnel_analytics.services.query_executor import QueryExecutor
from funnel_analytics.sql.aggregate_queries import clock_window_predicate, scope_predicates
from funnel_analytics.sql.filter_compiler import CompiledFilter, compile_filters
from funnel_analytics.sql.predicates import Predicate
from funnel_analytics.sql.sources import AggregateSource


@dataclass
class AggregateContext:
    """
    Shared inputs of one request's aggregates.

    Attributes:
        executor: Query executor (carries the reference timezone).
        scope: Mandatory id/landing-page constraints.
        filters: Advanced filters in request order.
        condition: How the advanced filters combine.
    """
    executor: QueryExecutor
    scope: Optional[ScopeFilters] = None
    filters: Sequence[AdvancedFilter] = ()
    condition: FilterCondition = FilterCondition.AND
    _compiled: Dict[str, CompiledFilter] = field(default_factory=dict, init=False, repr=False)

    def compiled(self, source: AggregateSource) -> CompiledFilter:
        if source.name not in self._compiled:
            self._compiled[source.name] = compile_filters(
                self.filters,
                self.condition,
                available_aliases=source.aliases,
                default_entity=source.default_entity,
            )
        return self._compiled[source.name]

    def dropped_filters(self) -> List[str]:
        """Labels of filters dropped for any source compiled so far."""
        dropped = set()
        for compiled in self._compiled.values():
            dropped.update(compiled.dropped)
        return sorted(dropped)

    def with_scope(self, scope: Optional[ScopeFilters]) -> 'AggregateContext':
        return AggregateContext(
            executor=self.executor,
            scope=scope,
            filters=self.filters,
            condition=self.condition,
        )

    def predicates(self, source: AggregateSource, period: DatePeriod) -> List[Predicate]:
        """Scope, clock-window and advanced-filter predicates (range excluded)."""
        predicates = scope_predicates(source, self.scope)
        if period.has_clock_window:
            predicates.append(
                clock_window_predicate(
                    source, self.executor.tz_name, period.daily_start, period.daily_end
                )
            )
        predicates.extend(self.compiled(source).predicates)
        return predicates

    # =========================================================================
    # Task builders
    # =========================================================================

    def total_task(self, name: str, source: AggregateSource, period: DatePeriod) -> AggregateTask:
        start, end = period_bounds(period)
        predicates = self.predicates(source, period)
        return AggregateTask(
            name,
            lambda: self.executor.count_by_range(source, predicates, start, end),
        )

    def daily_task(self, name: str, source: AggregateSource, period: DatePeriod) -> AggregateTask:
        start, end = period_bounds(period)
        predicates = self.predicates(source, period)
        return AggregateTask(
            name,
            lambda: self.executor.group_count_by_day(source, predicates, start, end),
        )

    def hourly_task(
        self,
        name: str,
        source: AggregateSource,
        period: DatePeriod,
        now: Optional[datetime] = None,
    ) -> AggregateTask:
        start, end = day_bounds(period, self.executor.tz, now)
        predicates = self.predicates(source, period)
        return AggregateTask(
            name,
            lambda: self.executor.group_count_by_hour(source, predicates, start, end),
        )

    def by_column_task(
        self,
        name: str,
        source: AggregateSource,
        column: str,
        period: DatePeriod,
    ) -> AggregateTask:
        start, end = period_bounds(period)
        predicates = self.predicates(source, period)
        return AggregateTask(
            name,
            lambda: self.executor.group_count_by_column(source, column, predicates, start, end),
        )
