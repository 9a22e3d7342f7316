"""
Tests for the unified dashboard service.

Uses the scripted FakeQueryExecutor from conftest, so every assertion is about
how the service dispatches aggregates and reduces their results.
"""

from datetime import date, datetime, time

import pytest

from funnel_analytics.core.exceptions import AggregationError, PeriodValidationError
from funnel_analytics.models import AdvancedFilter, FilterCondition, ScopeFilters
from funnel_analytics.services.dashboard import get_unified_dashboard, reconcile_total
from funnel_analytics.services.periods import DatePeriod
from funnel_analytics.sql.sources import LEADS, SESSIONS
from funnel_analytics.tests.conftest import predicate_sql


WEEK = DatePeriod(date(2024, 3, 10), date(2024, 3, 16))
DAY = DatePeriod(date(2024, 3, 15), date(2024, 3, 15))


@pytest.mark.asyncio
class TestMultiDayDashboard:

    async def test_totals_and_comparison(self, fake_executor, fixed_now) -> None:
        fake_executor.set_total(SESSIONS, date(2024, 3, 10), 200)
        fake_executor.set_total(LEADS, date(2024, 3, 10), 37)
        fake_executor.set_total(SESSIONS, date(2024, 3, 3), 100)
        fake_executor.set_total(LEADS, date(2024, 3, 3), 20)

        result = await get_unified_dashboard(fake_executor, WEEK, now=fixed_now)

        assert result.sessions.current == 200
        assert result.sessions.previous == 100
        assert result.sessions.percentage == 100.0
        assert result.leads.percentage == 85.0
        assert result.conversion_rate.current == 18.5
        assert result.conversion_rate.previous == 20.0
        assert result.conversion_rate.percentage == 7.5
        assert result.conversion_rate.is_increasing is False
        assert result.metrics.sessions == 200
        assert result.metrics.prev_leads == 20

    async def test_day_series_are_dense(self, fake_executor, fixed_now) -> None:
        fake_executor.set_daily(SESSIONS, date(2024, 3, 10), {'2024-03-10': 50, '2024-03-12': 150})
        fake_executor.set_daily(LEADS, date(2024, 3, 10), {'2024-03-12': 30})

        result = await get_unified_dashboard(fake_executor, WEEK, now=fixed_now)

        assert list(result.sessions_by_day) == [f'2024-03-{d}' for d in range(10, 17)]
        assert result.sessions_by_day['2024-03-11'] == 0
        assert result.conversion_rate_by_day['2024-03-12'] == 20.0
        assert result.conversion_rate_by_day['2024-03-10'] == 0.0
        assert list(result.previous_sessions_by_day) == [f'2024-03-0{d}' for d in range(3, 10)]

    async def test_no_hourly_breakdown(self, fake_executor, fixed_now) -> None:
        result = await get_unified_dashboard(fake_executor, WEEK, now=fixed_now)

        assert result.hourly_data is None
        assert fake_executor.calls_for('hourly') == []

    async def test_previous_period_reported(self, fake_executor, fixed_now) -> None:
        result = await get_unified_dashboard(fake_executor, WEEK, now=fixed_now)

        assert result.current_period.start == datetime(2024, 3, 10)
        assert result.previous_period.start == datetime(2024, 3, 3)
        assert result.previous_period.end == datetime(2024, 3, 9, 23, 59, 59, 999999)

    async def test_explicit_comparison_period(self, fake_executor, fixed_now) -> None:
        explicit = DatePeriod(date(2024, 1, 1), date(2024, 1, 7))
        fake_executor.set_total(SESSIONS, date(2024, 1, 1), 70)

        result = await get_unified_dashboard(fake_executor, WEEK, explicit, now=fixed_now)

        assert result.sessions.previous == 70
        assert result.previous_period.start == datetime(2024, 1, 1)


@pytest.mark.asyncio
class TestSingleDayFallback:

    async def test_falls_back_to_last_week_when_yesterday_is_empty(self, fake_executor, fixed_now) -> None:
        fake_executor.set_total(SESSIONS, date(2024, 3, 15), 10)
        fake_executor.set_total(LEADS, date(2024, 3, 15), 2)
        fake_executor.set_total(SESSIONS, date(2024, 3, 8), 8)
        fake_executor.set_total(LEADS, date(2024, 3, 8), 1)

        result = await get_unified_dashboard(fake_executor, DAY, now=fixed_now)

        assert result.previous_period.start == datetime(2024, 3, 8)
        assert result.sessions.previous == 8
        assert result.leads.previous == 1
        assert list(result.previous_sessions_by_day) == ['2024-03-08']

    async def test_yesterday_with_activity_is_kept(self, fake_executor, fixed_now) -> None:
        fake_executor.set_total(SESSIONS, date(2024, 3, 14), 5)

        result = await get_unified_dashboard(fake_executor, DAY, now=fixed_now)

        assert result.previous_period.start == datetime(2024, 3, 14)
        starts = {call[3].date() for call in fake_executor.calls_for('count')}
        assert date(2024, 3, 8) not in starts

    async def test_leads_alone_count_as_activity(self, fake_executor, fixed_now) -> None:
        fake_executor.set_total(LEADS, date(2024, 3, 14), 1)

        result = await get_unified_dashboard(fake_executor, DAY, now=fixed_now)

        assert result.previous_period.start == datetime(2024, 3, 14)

    async def test_all_candidates_empty(self, fake_executor, fixed_now) -> None:
        fake_executor.set_total(SESSIONS, date(2024, 3, 15), 4)

        result = await get_unified_dashboard(fake_executor, DAY, now=fixed_now)

        assert result.previous_period.start == datetime(2024, 3, 8)
        assert result.sessions.previous == 0
        assert result.sessions.percentage == 100.0

    async def test_explicit_comparison_disables_fallback(self, fake_executor, fixed_now) -> None:
        explicit = DatePeriod(date(2024, 2, 1), date(2024, 2, 1))

        result = await get_unified_dashboard(fake_executor, DAY, explicit, now=fixed_now)

        assert result.previous_period.start == datetime(2024, 2, 1)
        assert len(fake_executor.calls_for('count')) == 4


@pytest.mark.asyncio
class TestHourlyBreakdown:

    async def test_hourly_series_for_single_day(self, fake_executor, fixed_now) -> None:
        fake_executor.set_hourly(SESSIONS, date(2024, 3, 15), {'09': 4, '10': 6})
        fake_executor.set_hourly(LEADS, date(2024, 3, 15), {'10': 3})

        result = await get_unified_dashboard(fake_executor, DAY, now=fixed_now)

        hourly = result.hourly_data
        assert hourly is not None
        assert len(hourly.sessions) == 24
        assert hourly.sessions['00'] == 0
        assert hourly.leads['10'] == 3
        assert hourly.conversion_rate['10'] == 50.0
        assert list(hourly.sessions) == list(hourly.leads) == list(hourly.conversion_rate)

    async def test_today_only_has_elapsed_hours(self, fake_executor) -> None:
        now = datetime(2024, 3, 15, 14, 35)

        result = await get_unified_dashboard(fake_executor, DAY, now=now)

        assert list(result.hourly_data.sessions)[-1] == '14'
        hourly_call = fake_executor.calls_for('hourly')[0]
        assert hourly_call[4] == now

    async def test_hourly_sum_above_total_wins(self, fake_executor, fixed_now) -> None:
        fake_executor.set_total(SESSIONS, date(2024, 3, 15), 10)
        fake_executor.set_daily(SESSIONS, date(2024, 3, 15), {'2024-03-15': 10})
        fake_executor.set_hourly(SESSIONS, date(2024, 3, 15), {'09': 7, '10': 5})

        result = await get_unified_dashboard(fake_executor, DAY, now=fixed_now)

        assert result.sessions.current == 12
        assert result.sessions_by_day['2024-03-15'] == 12

    async def test_total_above_hourly_sum_is_kept(self, fake_executor, fixed_now) -> None:
        fake_executor.set_total(LEADS, date(2024, 3, 15), 9)
        fake_executor.set_hourly(LEADS, date(2024, 3, 15), {'09': 2})

        result = await get_unified_dashboard(fake_executor, DAY, now=fixed_now)

        assert result.leads.current == 9
        assert result.hourly_data.leads['09'] == 2


class TestReconcileTotal:

    def test_hourly_sum_above_total(self) -> None:
        assert reconcile_total(10, {'00': 4, '01': 8}, 'sessions') == 12

    def test_total_above_hourly_sum(self) -> None:
        assert reconcile_total(10, {'00': 4}, 'sessions') == 10


@pytest.mark.asyncio
class TestFiltersAndScope:

    async def test_scope_applies_to_each_source_primary_entity(self, fake_executor, fixed_now) -> None:
        scope = ScopeFilters(profession_ids=[3], landing_page='/lp')

        await get_unified_dashboard(fake_executor, WEEK, scope=scope, now=fixed_now)

        for call in fake_executor.calls_for('count'):
            sql = predicate_sql(call[2])
            if call[1] == 'sessions':
                assert 's.profession_id = ANY(?)' in sql
                assert 's."landingPage" = ?' in sql
            else:
                assert 'e.profession_id = ANY(?)' in sql
                assert 'landingPage' not in sql

    async def test_event_only_filter_dropped_for_sessions(self, fake_executor, fixed_now) -> None:
        filters = [AdvancedFilter(property='event.event_name', operator='equals', value='form')]

        result = await get_unified_dashboard(fake_executor, WEEK, filters=filters, now=fixed_now)

        assert result.dropped_filters == ['event.event_name']
        for call in fake_executor.calls_for('count'):
            sql = predicate_sql(call[2])
            assert ('e.event_name = ?' in sql) is (call[1] == 'leads')

    async def test_or_filters_form_one_predicate(self, fake_executor, fixed_now) -> None:
        filters = [
            AdvancedFilter(property='user.utm_source', operator='equals', value='google'),
            AdvancedFilter(property='user.utm_source', operator='equals', value='meta'),
        ]

        await get_unified_dashboard(
            fake_executor, WEEK, filters=filters, condition=FilterCondition.OR, now=fixed_now
        )

        call = fake_executor.calls_for('count')[0]
        disjunctions = [p for p in call[2] if ' OR ' in p.sql]
        assert len(disjunctions) == 1
        assert disjunctions[0].args == ('google', 'meta')

    async def test_clock_window_adds_time_of_day_predicate(self, fake_executor, fixed_now) -> None:
        period = DatePeriod(date(2024, 3, 10), date(2024, 3, 16), time(8, 0), time(18, 0))

        await get_unified_dashboard(fake_executor, period, now=fixed_now)

        call = fake_executor.calls_for('count')[0]
        assert '::time BETWEEN ? AND ?' in predicate_sql(call[2])
        assert call[3] == datetime(2024, 3, 10, 8, 0)
        assert call[4] == datetime(2024, 3, 16, 18, 0, 59, 999999)


@pytest.mark.asyncio
class TestErrors:

    async def test_long_period_rejected_before_any_query(self, fake_executor) -> None:
        period = DatePeriod(date(2024, 1, 1), date(2024, 4, 29))

        with pytest.raises(PeriodValidationError):
            await get_unified_dashboard(fake_executor, period)

        assert fake_executor.calls == []

    async def test_aggregate_failure_fails_the_request(self, fake_executor, fixed_now) -> None:
        fake_executor.fail('leads', RuntimeError('connection reset'))

        with pytest.raises(AggregationError) as exc_info:
            await get_unified_dashboard(fake_executor, WEEK, now=fixed_now)

        assert exc_info.value.task_name == 'leads_current'
