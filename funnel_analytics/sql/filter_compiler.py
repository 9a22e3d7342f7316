"""
Advanced filter compiler.

Turns the user-supplied list of (property, operator, value) filters into
parameterized predicate fragments over the multi-entity event schema.

Compilation steps:
1. Property resolution: ``entity.field`` selects an entity alias and maps the
   logical field name to the stored column (several stored columns are
   camelCase, e.g. ``user.utm_source`` is ``u."initialUtmSource"``). Bare
   fields resolve against the source's default entity. Unknown entity/field
   pairs compile to nothing.
2. Operator rendering: equals ``=``, not_equals ``!=``, contains ``LIKE``,
   not_contains ``NOT LIKE`` (value wrapped in ``%``, its own wildcards
   escaped). Unknown operators compile to nothing. Integer, boolean and
   timestamp columns are compared as text, since filter values are strings.
3. Empty UTM values: ``not_equals ''`` on a UTM field becomes
   ``COALESCE(col, '') != ''`` so NULL attribution is treated as empty.
4. Quoting: mixed-case columns and columns prefixed with initial/utm/is are
   double-quoted.
5. Composition: AND yields one predicate per filter; OR yields a single
   parenthesized disjunction. Scope predicates (period, ids) are added by the
   caller and never take part in the disjunction.

Dropped filters are logged at WARNING level and never raise.
"""

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from funnel_analytics.models.enums import FilterCondition, FilterOperator
from funnel_analytics.models.schemas import AdvancedFilter
from funnel_analytics.sql.predicates import Predicate, join_predicates


logger = logging.getLogger(__name__)


# =============================================================================
# Schema Tables
# =============================================================================

# Entity name -> table alias in the aggregate FROM clauses
ENTITY_ALIASES: Dict[str, str] = {
    'event': 'e',
    'events': 'e',
    'e': 'e',
    'user': 'u',
    'session': 's',
    'profession': 'professions',
    'product': 'products',
    'funnel': 'funnels',
}

UTM_FIELDS: FrozenSet[str] = frozenset({
    'utm_source',
    'utm_medium',
    'utm_campaign',
    'utm_content',
    'utm_term',
})

# Logical field -> stored column, per alias. Stored names are accepted as-is.
COLUMN_MAP: Dict[str, Dict[str, str]] = {
    'e': {
        'event_id': 'event_id',
        'event_name': 'event_name',
        'event_type': 'event_type',
        'event_source': 'event_source',
        'event_time': 'event_time',
        'pageview_id': 'pageview_id',
        'session_id': 'session_id',
        'user_id': 'user_id',
        'profession_id': 'profession_id',
        'product_id': 'product_id',
        'funnel_id': 'funnel_id',
    },
    'u': {
        'user_id': 'user_id',
        'fullname': 'fullname',
        'email': 'email',
        'phone': 'phone',
        'is_client': 'isClient',
        'is_identified': 'isIdentified',
        'utm_source': 'initialUtmSource',
        'utm_medium': 'initialUtmMedium',
        'utm_campaign': 'initialUtmCampaign',
        'utm_content': 'initialUtmContent',
        'utm_term': 'initialUtmTerm',
        'country': 'initialCountry',
        'country_code': 'initialCountryCode',
        'state': 'initialRegion',
        'region': 'initialRegion',
        'city': 'initialCity',
        'zip': 'initialZip',
        'ip': 'initialIp',
        'ip_address': 'initialIp',
        'ipAddress': 'initialIp',
        'user_agent': 'initialUserAgent',
        'userAgent': 'initialUserAgent',
        'referrer': 'initialReferrer',
        'referrer_domain': 'initialReferrerDomain',
        'device_type': 'initialDeviceType',
        'platform': 'initialPlatform',
        'browser': 'initialBrowser',
        'landing_page': 'initialLandingPage',
        'marketing_channel': 'initialMarketingChannel',
    },
    's': {
        'session_id': 'session_id',
        'user_id': 'user_id',
        'profession_id': 'profession_id',
        'product_id': 'product_id',
        'funnel_id': 'funnel_id',
        'utm_source': 'utmSource',
        'utm_medium': 'utmMedium',
        'utm_campaign': 'utmCampaign',
        'utm_content': 'utmContent',
        'utm_term': 'utmTerm',
        'country': 'country',
        'state': 'state',
        'city': 'city',
        'landing_page': 'landingPage',
        'user_agent': 'userAgent',
        'session_start': 'sessionStart',
        'is_active': 'isActive',
    },
    'professions': {
        'profession_id': 'profession_id',
        'profession_name': 'profession_name',
        'created_at': 'created_at',
    },
    'products': {
        'product_id': 'product_id',
        'product_name': 'product_name',
        'profession_id': 'profession_id',
        'created_at': 'created_at',
    },
    'funnels': {
        'funnel_id': 'funnel_id',
        'funnel_name': 'funnel_name',
        'funnel_tag': 'funnel_tag',
        'product_id': 'product_id',
        'global': 'global',
        'is_testing': 'is_testing',
        'is_active': 'is_active',
        'created_at': 'created_at',
    },
}

QUOTED_PREFIXES: Tuple[str, ...] = ('initial', 'utm', 'is')

# Stored columns that are not text; filter values are always strings, so
# these are compared through a text cast
NON_TEXT_COLUMNS: FrozenSet[str] = frozenset({
    'profession_id',
    'product_id',
    'funnel_id',
    'event_time',
    'sessionStart',
    'created_at',
    'isClient',
    'isIdentified',
    'isActive',
    'is_active',
    'is_testing',
    'global',
})

LIKE_ESCAPE: str = '\\'

OPERATOR_SQL: Dict[FilterOperator, str] = {
    FilterOperator.EQUALS: '=',
    FilterOperator.NOT_EQUALS: '!=',
    FilterOperator.CONTAINS: 'LIKE',
    FilterOperator.NOT_CONTAINS: 'NOT LIKE',
}


# =============================================================================
# Resolution
# =============================================================================

@dataclass(frozen=True)
class ColumnRef:
    """A resolved ``alias.column`` reference."""
    alias: str
    column: str

    def render(self) -> str:
        return f'{self.alias}.{quote_identifier(self.column)}'

    def render_as_text(self) -> str:
        if self.column in NON_TEXT_COLUMNS:
            return f'CAST({self.render()} AS TEXT)'
        return self.render()


@dataclass(frozen=True)
class ResolvedProperty:
    """
    Where a filter property lives in the schema.

    A bare UTM field (no entity prefix) resolves to both the user's initial
    attribution and the session's attribution, the user value taking
    precedence when it is non-empty.
    """
    logical: str
    columns: Tuple[ColumnRef, ...]
    is_utm: bool = False

    @property
    def aliases(self) -> FrozenSet[str]:
        return frozenset(ref.alias for ref in self.columns)

    def expression(self) -> str:
        """Text-valued SQL expression for the property."""
        if len(self.columns) == 1:
            return self.columns[0].render_as_text()
        first, *rest = self.columns
        fallbacks = ', '.join(ref.render() for ref in rest)
        return f"COALESCE(NULLIF({first.render()}, ''), {fallbacks})"


def needs_quotes(column: str) -> bool:
    """
    Whether a stored column name must be double-quoted.

    Mixed-case names would otherwise be case-folded by PostgreSQL; the
    initial/utm/is prefixes mark attribution and flag columns stored in
    camelCase.
    """
    return (
        column != column.lower()
        or '-' in column
        or column.startswith(QUOTED_PREFIXES)
    )


def quote_identifier(column: str) -> str:
    if needs_quotes(column):
        return f'"{column}"'
    return column


def is_utm_field(name: str) -> bool:
    return name in UTM_FIELDS


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the value matches literally."""
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace('%', LIKE_ESCAPE + '%')
        .replace('_', LIKE_ESCAPE + '_')
    )


def resolve_property(property_name: str, default_entity: str = 'event') -> Optional[ResolvedProperty]:
    """
    Map a user-facing property to stored column(s).

    Args:
        property_name: ``entity.field`` or a bare ``field``.
        default_entity: Entity a bare field resolves against.

    Returns:
        ResolvedProperty, or None when the entity or field is unknown.

    Example:
        >>> resolve_property('user.utm_source').expression()
        'u."initialUtmSource"'
        >>> resolve_property('funnel.funnel_name').expression()
        'funnels.funnel_name'
        >>> resolve_property('user.password') is None
        True
    """
    parts = property_name.strip().split('.')

    if len(parts) == 1:
        field_name = parts[0]
        if is_utm_field(field_name):
            return ResolvedProperty(
                logical=field_name,
                columns=(
                    ColumnRef('u', COLUMN_MAP['u'][field_name]),
                    ColumnRef('s', COLUMN_MAP['s'][field_name]),
                ),
                is_utm=True,
            )
        entity = default_entity
    elif len(parts) == 2:
        entity, field_name = parts
    else:
        return None

    alias = ENTITY_ALIASES.get(entity)
    if alias is None:
        return None

    columns = COLUMN_MAP[alias]
    column = columns.get(field_name)
    if column is None and field_name in columns.values():
        column = field_name
    if column is None:
        return None

    return ResolvedProperty(
        logical=field_name,
        columns=(ColumnRef(alias, column),),
        is_utm=is_utm_field(field_name) or column.lower().startswith(('utm', 'initialutm')),
    )


# =============================================================================
# Operator Rendering
# =============================================================================

def render_filter(resolved: ResolvedProperty, operator: FilterOperator, value: str) -> Predicate:
    """
    Render a single filter against a resolved property.

    ``not_equals ''`` on a UTM field is NULL-safe: the column is coalesced to
    the empty string first, so rows with no attribution compare as empty.
    """
    if operator is FilterOperator.NOT_EQUALS and value == '' and resolved.is_utm:
        clauses = [f"COALESCE({ref.render()}, '') != ?" for ref in resolved.columns]
        if len(clauses) == 1:
            return Predicate(clauses[0], ('',))
        return Predicate('(' + ' OR '.join(clauses) + ')', ('',) * len(clauses))

    sql_operator = OPERATOR_SQL[operator]
    if operator in (FilterOperator.CONTAINS, FilterOperator.NOT_CONTAINS):
        return Predicate(
            f"{resolved.expression()} {sql_operator} ? ESCAPE '{LIKE_ESCAPE}'",
            (f'%{escape_like(value)}%',),
        )

    return Predicate(f'{resolved.expression()} {sql_operator} ?', (value,))


# =============================================================================
# Composition
# =============================================================================

@dataclass(frozen=True)
class CompiledFilter:
    """
    Result of compiling a filter list.

    Attributes:
        predicates: Fragments to AND into the statement. One per kept filter
            under AND, at most one disjunction under OR.
        dropped: Ids (or properties) of filters that compiled to nothing.
    """
    predicates: Tuple[Predicate, ...] = ()
    dropped: Tuple[str, ...] = ()

    @property
    def sql(self) -> str:
        return ' AND '.join(p.sql for p in self.predicates)

    @property
    def args(self) -> List[object]:
        args: List[object] = []
        for p in self.predicates:
            args.extend(p.args)
        return args


def parse_operator(raw: str) -> Optional[FilterOperator]:
    try:
        return FilterOperator(raw)
    except ValueError:
        return None


def compile_filters(
    filters: Sequence[AdvancedFilter],
    condition: FilterCondition = FilterCondition.AND,
    available_aliases: Optional[FrozenSet[str]] = None,
    default_entity: str = 'event',
) -> CompiledFilter:
    """
    Compile advanced filters into predicate fragments.

    Args:
        filters: Filters in request order.
        condition: AND (intersect every filter) or OR (one disjunction).
        available_aliases: Aliases joined by the target query; filters
            touching any other alias are dropped. None allows every alias.
        default_entity: Entity bare properties resolve against.

    Returns:
        CompiledFilter. Compiling the same list twice yields equal results.
    """
    rendered: List[Predicate] = []
    dropped: List[str] = []

    for advanced_filter in filters:
        label = advanced_filter.id or advanced_filter.property

        operator = parse_operator(advanced_filter.operator)
        if operator is None:
            logger.warning(
                f"Dropping filter {label}: unsupported operator '{advanced_filter.operator}'"
            )
            dropped.append(label)
            continue

        resolved = resolve_property(advanced_filter.property, default_entity)
        if resolved is None:
            logger.warning(
                f"Dropping filter {label}: unknown property '{advanced_filter.property}'"
            )
            dropped.append(label)
            continue

        if available_aliases is not None and not resolved.aliases <= available_aliases:
            logger.warning(
                f"Dropping filter {label}: '{advanced_filter.property}' is not joined by this query"
            )
            dropped.append(label)
            continue

        rendered.append(render_filter(resolved, operator, advanced_filter.value))

    if not rendered:
        return CompiledFilter(predicates=(), dropped=tuple(dropped))

    if condition is FilterCondition.OR:
        return CompiledFilter(predicates=(join_predicates(rendered, 'OR'),), dropped=tuple(dropped))

    return CompiledFilter(predicates=tuple(rendered), dropped=tuple(dropped))
