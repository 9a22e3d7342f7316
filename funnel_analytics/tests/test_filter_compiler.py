"""
Tests for the advanced filter compiler.

Covers property resolution and quoting, operator rendering, AND/OR
composition, fail-closed handling of unknown properties and operators,
placeholder binding, and NULL handling of empty UTM values evaluated against
an in-memory SQLite database.
"""

import sqlite3

import pytest

from funnel_analytics.models import AdvancedFilter, FilterCondition, FilterOperator
from funnel_analytics.sql.filter_compiler import (
    compile_filters,
    needs_quotes,
    render_filter,
    resolve_property,
)
from funnel_analytics.sql.predicates import Predicate, bind_placeholders, join_predicates
from funnel_analytics.sql.sources import SESSIONS


def make_filter(prop: str, operator: str, value: str = '', filter_id: str = None) -> AdvancedFilter:
    return AdvancedFilter(id=filter_id, property=prop, operator=operator, value=value)


class TestPropertyResolution:

    def test_user_utm_maps_to_stored_camel_case(self) -> None:
        assert resolve_property('user.utm_source').expression() == 'u."initialUtmSource"'

    def test_session_utm(self) -> None:
        assert resolve_property('session.utm_medium').expression() == 's."utmMedium"'

    def test_plain_lowercase_column_is_not_quoted(self) -> None:
        assert resolve_property('funnel.funnel_name').expression() == 'funnels.funnel_name'

    def test_event_aliases(self) -> None:
        for entity in ('event', 'events', 'e'):
            assert resolve_property(f'{entity}.event_name').expression() == 'e.event_name'

    def test_bare_field_uses_default_entity(self) -> None:
        assert resolve_property('event_type').expression() == 'e.event_type'
        assert resolve_property('landing_page', 'session').expression() == 's."landingPage"'

    def test_bare_utm_prefers_user_then_session(self) -> None:
        resolved = resolve_property('utm_campaign')
        assert resolved.is_utm
        assert resolved.expression() == (
            'COALESCE(NULLIF(u."initialUtmCampaign", \'\'), s."utmCampaign")'
        )
        assert resolved.aliases == frozenset({'u', 's'})

    def test_stored_name_accepted(self) -> None:
        assert resolve_property('user.initialCity').expression() == 'u."initialCity"'

    @pytest.mark.parametrize("prop", ['user.password', 'planet.name', 'a.b.c', 'user.'])
    def test_unknown_property_resolves_to_none(self, prop: str) -> None:
        assert resolve_property(prop) is None

    @pytest.mark.parametrize("column,expected", [
        ('initialUtmSource', True),
        ('utmSource', True),
        ('isClient', True),
        ('is_testing', True),
        ('landing-page', True),
        ('funnel_name', False),
        ('event_time', False),
    ])
    def test_needs_quotes(self, column: str, expected: bool) -> None:
        assert needs_quotes(column) is expected


class TestOperatorRendering:

    def test_equals(self) -> None:
        predicate = render_filter(resolve_property('user.city'), FilterOperator.EQUALS, 'Recife')
        assert predicate.sql == 'u."initialCity" = ?'
        assert predicate.args == ('Recife',)

    def test_contains_wraps_value(self) -> None:
        predicate = render_filter(resolve_property('event.event_name'), FilterOperator.CONTAINS, 'form')
        assert predicate.sql == "e.event_name LIKE ? ESCAPE '\\'"
        assert predicate.args == ('%form%',)

    def test_not_contains(self) -> None:
        predicate = render_filter(
            resolve_property('event.event_name'), FilterOperator.NOT_CONTAINS, 'test'
        )
        assert predicate.sql == "e.event_name NOT LIKE ? ESCAPE '\\'"
        assert predicate.args == ('%test%',)

    def test_utm_not_equals_empty_is_null_safe(self) -> None:
        predicate = render_filter(resolve_property('user.utm_source'), FilterOperator.NOT_EQUALS, '')
        assert predicate.sql == 'COALESCE(u."initialUtmSource", \'\') != ?'
        assert predicate.args == ('',)

    def test_bare_utm_not_equals_empty_checks_both_sides(self) -> None:
        predicate = render_filter(resolve_property('utm_source'), FilterOperator.NOT_EQUALS, '')
        assert predicate.sql == (
            '(COALESCE(u."initialUtmSource", \'\') != ? OR COALESCE(s."utmSource", \'\') != ?)'
        )
        assert predicate.args == ('', '')

    def test_non_utm_not_equals_empty_is_plain(self) -> None:
        predicate = render_filter(resolve_property('user.city'), FilterOperator.NOT_EQUALS, '')
        assert predicate.sql == 'u."initialCity" != ?'

    @pytest.mark.parametrize("prop,expected", [
        ('event.funnel_id', 'CAST(e.funnel_id AS TEXT) = ?'),
        ('user.is_client', 'CAST(u."isClient" AS TEXT) = ?'),
        ('funnel.is_testing', 'CAST(funnels."is_testing" AS TEXT) = ?'),
        ('session.profession_id', 'CAST(s.profession_id AS TEXT) = ?'),
    ])
    def test_non_text_columns_compared_as_text(self, prop: str, expected: str) -> None:
        predicate = render_filter(resolve_property(prop), FilterOperator.EQUALS, '12')
        assert predicate.sql == expected
        assert predicate.args == ('12',)

    def test_contains_escapes_wildcards(self) -> None:
        predicate = render_filter(
            resolve_property('event.event_name'), FilterOperator.CONTAINS, '50%_off\\'
        )
        assert predicate.args == ('%50\\%\\_off\\\\%',)

    def test_values_never_appear_in_sql(self) -> None:
        hostile = "x' OR '1'='1"
        predicate = render_filter(resolve_property('user.email'), FilterOperator.EQUALS, hostile)
        assert hostile not in predicate.sql
        assert predicate.args == (hostile,)


class TestComposition:

    def test_and_yields_one_predicate_per_filter(self) -> None:
        compiled = compile_filters([
            make_filter('user.utm_source', 'equals', 'google'),
            make_filter('event.event_name', 'contains', 'form'),
        ])
        assert len(compiled.predicates) == 2
        assert compiled.sql == 'u."initialUtmSource" = ? AND e.event_name LIKE ? ESCAPE \'\\\''
        assert compiled.args == ['google', '%form%']

    def test_or_yields_single_disjunction(self) -> None:
        compiled = compile_filters(
            [
                make_filter('user.utm_source', 'equals', 'google'),
                make_filter('user.utm_source', 'equals', 'facebook'),
            ],
            FilterCondition.OR,
        )
        assert len(compiled.predicates) == 1
        assert compiled.sql == '((u."initialUtmSource" = ?) OR (u."initialUtmSource" = ?))'
        assert compiled.args == ['google', 'facebook']

    def test_unknown_operator_dropped(self) -> None:
        compiled = compile_filters([
            make_filter('user.city', 'starts_with', 'Rec', filter_id='f1'),
            make_filter('user.city', 'equals', 'Recife'),
        ])
        assert compiled.sql == 'u."initialCity" = ?'
        assert compiled.dropped == ('f1',)

    def test_unknown_property_dropped_and_logged(self, caplog) -> None:
        with caplog.at_level('WARNING'):
            compiled = compile_filters([make_filter('user.password', 'equals', 'x')])
        assert compiled.predicates == ()
        assert compiled.dropped == ('user.password',)
        assert 'user.password' in caplog.text

    def test_empty_list(self) -> None:
        compiled = compile_filters([], FilterCondition.OR)
        assert compiled.predicates == ()
        assert compiled.sql == ''

    def test_unjoined_alias_dropped(self) -> None:
        compiled = compile_filters(
            [make_filter('event.event_name', 'equals', 'x')],
            available_aliases=SESSIONS.aliases,
            default_entity=SESSIONS.default_entity,
        )
        assert compiled.predicates == ()
        assert compiled.dropped == ('event.event_name',)

    def test_deterministic(self) -> None:
        filters = [
            make_filter('utm_source', 'not_equals', ''),
            make_filter('funnel.funnel_name', 'contains', 'black'),
        ]
        assert compile_filters(filters, FilterCondition.OR) == compile_filters(filters, FilterCondition.OR)

    def test_value_coercion(self) -> None:
        assert AdvancedFilter(property='event.funnel_id', operator='equals', value=12).value == '12'
        assert AdvancedFilter(property='user.is_client', operator='equals', value=True).value == 'true'
        assert AdvancedFilter(property='user.city', operator='equals', value=None).value == ''


class TestPlaceholderBinding:

    def test_numbering_starts_at_index(self) -> None:
        bound, args = bind_placeholders(
            [Predicate('a = ?', (1,)), Predicate('b BETWEEN ? AND ?', (2, 3))],
            start_index=4,
        )
        assert bound == ['a = $4', 'b BETWEEN $5 AND $6']
        assert args == [1, 2, 3]

    def test_placeholder_count_checked(self) -> None:
        with pytest.raises(ValueError):
            Predicate('a = ? AND b = ?', (1,))

    def test_join_predicates(self) -> None:
        joined = join_predicates([Predicate('a = ?', (1,)), Predicate('b = ?', (2,))], 'OR')
        assert joined.sql == '((a = ?) OR (b = ?))'
        assert joined.args == (1, 2)


@pytest.mark.sqlite
class TestSqliteEvaluation:
    """
    Evaluate compiled fragments (still in ``?`` form) against real rows.

    SQLite accepts the double-quoted identifiers, COALESCE, NULLIF and LIKE the
    compiler emits, so the NULL semantics can be checked end to end.
    """

    @pytest.fixture
    def db(self):
        conn = sqlite3.connect(':memory:')
        conn.execute(
            'CREATE TABLE users (user_id TEXT, "initialUtmSource" TEXT, "initialCity" TEXT)'
        )
        conn.execute('CREATE TABLE sessions (session_id TEXT, user_id TEXT, "utmSource" TEXT)')
        conn.executemany(
            'INSERT INTO users VALUES (?, ?, ?)',
            [
                ('u1', None, 'Recife'),
                ('u2', '', 'Recife'),
                ('u3', 'google', 'Natal'),
                ('u4', '', 'Natal'),
            ],
        )
        conn.executemany(
            'INSERT INTO sessions VALUES (?, ?, ?)',
            [
                ('s1', 'u1', None),
                ('s2', 'u2', None),
                ('s3', 'u3', None),
                ('s4', 'u4', 'facebook'),
            ],
        )
        yield conn
        conn.close()

    def matching_users(self, db, compiled) -> list:
        where = compiled.sql or '1 = 1'
        rows = db.execute(
            f'SELECT u.user_id FROM users u JOIN sessions s ON s.user_id = u.user_id '
            f'WHERE {where} ORDER BY u.user_id',
            compiled.args,
        ).fetchall()
        return [row[0] for row in rows]

    def test_null_utm_counts_as_empty(self, db) -> None:
        compiled = compile_filters([make_filter('user.utm_source', 'not_equals', '')])
        assert self.matching_users(db, compiled) == ['u3']

    def test_equals_excludes_null(self, db) -> None:
        compiled = compile_filters([make_filter('user.utm_source', 'equals', 'google')])
        assert self.matching_users(db, compiled) == ['u3']

    def test_bare_utm_falls_back_to_session(self, db) -> None:
        compiled = compile_filters([make_filter('utm_source', 'equals', 'facebook')])
        assert self.matching_users(db, compiled) == ['u4']

    def test_bare_utm_not_empty_on_either_side(self, db) -> None:
        compiled = compile_filters([make_filter('utm_source', 'not_equals', '')])
        assert self.matching_users(db, compiled) == ['u3', 'u4']

    def test_or_composition(self, db) -> None:
        compiled = compile_filters(
            [
                make_filter('user.utm_source', 'equals', 'google'),
                make_filter('user.city', 'equals', 'Recife'),
            ],
            FilterCondition.OR,
        )
        assert self.matching_users(db, compiled) == ['u1', 'u2', 'u3']

    def test_and_composition(self, db) -> None:
        compiled = compile_filters([
            make_filter('user.city', 'contains', 'ata'),
            make_filter('utm_source', 'not_equals', ''),
        ])
        assert self.matching_users(db, compiled) == ['u3', 'u4']


@pytest.mark.sqlite
class TestSqliteTypedAndWildcardEvaluation:
    """Text casts and escaped LIKE patterns evaluated against typed columns."""

    @pytest.fixture
    def db(self):
        conn = sqlite3.connect(':memory:')
        conn.execute('CREATE TABLE events (event_id TEXT, event_name TEXT, funnel_id INTEGER)')
        conn.executemany(
            'INSERT INTO events VALUES (?, ?, ?)',
            [
                ('1', '50%_off banner', 12),
                ('2', '50 percent off', 12),
                ('3', '50%xoff', 7),
            ],
        )
        yield conn
        conn.close()

    def matching_events(self, db, compiled) -> list:
        rows = db.execute(
            f'SELECT e.event_id FROM events e WHERE {compiled.sql} ORDER BY e.event_id',
            compiled.args,
        ).fetchall()
        return [row[0] for row in rows]

    def test_integer_column_matches_string_value(self, db) -> None:
        compiled = compile_filters([make_filter('event.funnel_id', 'equals', '12')])
        assert self.matching_events(db, compiled) == ['1', '2']

    def test_integer_column_not_equals(self, db) -> None:
        compiled = compile_filters([make_filter('event.funnel_id', 'not_equals', '12')])
        assert self.matching_events(db, compiled) == ['3']

    def test_wildcards_in_value_match_literally(self, db) -> None:
        compiled = compile_filters([make_filter('event.event_name', 'contains', '50%_off')])
        assert self.matching_events(db, compiled) == ['1']

    def test_not_contains_with_wildcards(self, db) -> None:
        compiled = compile_filters([make_filter('event.event_name', 'not_contains', '50%_off')])
        assert self.matching_events(db, compiled) == ['2', '3']
