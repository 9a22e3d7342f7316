"""
Aggregate source registry.

Each source names the relation an aggregate counts (or sums) over: its FROM
clause with the joins that make the entity aliases available to the filter
compiler, its timestamp column, a fixed base predicate and its measure.

Entity aliases:
    e            events
    u            users
    s            sessions
    professions  professions
    products     products
    funnels      funnels
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Type, Union

from funnel_analytics.models.enums import EventType


# =============================================================================
# FROM clauses
# =============================================================================

EVENT_FROM_CLAUSE: str = """events e
        JOIN users u ON e.user_id = u.user_id
        LEFT JOIN sessions s ON e.session_id = s.session_id
        LEFT JOIN professions ON e.profession_id = professions.profession_id
        LEFT JOIN products ON e.product_id = products.product_id
        LEFT JOIN funnels ON e.funnel_id = funnels.funnel_id"""

SESSION_FROM_CLAUSE: str = """sessions s
        LEFT JOIN users u ON s.user_id = u.user_id
        LEFT JOIN professions ON s.profession_id = professions.profession_id
        LEFT JOIN products ON s.product_id = products.product_id
        LEFT JOIN funnels ON s.funnel_id = funnels.funnel_id"""

EVENT_ALIASES: FrozenSet[str] = frozenset({'e', 'u', 's', 'professions', 'products', 'funnels'})
SESSION_ALIASES: FrozenSet[str] = frozenset({'s', 'u', 'professions', 'products', 'funnels'})

# Purchase value is stored as text inside the jsonb payload
PURCHASE_VALUE_EXPR: str = "CAST(e.event_propeties->>'value' AS NUMERIC)"
PURCHASE_VALUE_IS_NUMERIC: str = "e.event_propeties->>'value' ~ '^[0-9]+\\.?[0-9]*$'"


@dataclass(frozen=True)
class AggregateSource:
    """
    Definition of one countable relation.

    Attributes:
        name: Registry key, also used in task names and logs.
        from_clause: FROM clause including joins.
        timestamp_column: Column bucketed by day/hour and bounded by the period.
        primary_alias: Alias scope filters (profession, funnel, product) apply to.
        default_entity: Entity unqualified filter properties resolve against.
        aliases: Aliases the FROM clause makes available.
        base_predicate: Fixed condition, emitted verbatim (never bound).
        measure: Aggregate expression.
        value_type: Python type results are coerced to.
        landing_page_column: Column the landing-page scope filter applies to,
            or None when the source ignores that scope.
    """
    name: str
    from_clause: str
    timestamp_column: str
    primary_alias: str
    default_entity: str
    aliases: FrozenSet[str]
    base_predicate: Optional[str] = None
    measure: str = 'COUNT(*)'
    value_type: Type[Union[int, float]] = int
    landing_page_column: Optional[str] = None

    def coerce(self, value) -> Union[int, float]:
        """Convert a raw aggregate (None, int, Decimal) to the source's type."""
        if value is None:
            return self.value_type(0)
        return self.value_type(value)


# =============================================================================
# Registry
# =============================================================================

SESSIONS = AggregateSource(
    name='sessions',
    from_clause=SESSION_FROM_CLAUSE,
    timestamp_column='s."sessionStart"',
    primary_alias='s',
    default_entity='session',
    aliases=SESSION_ALIASES,
    landing_page_column='s."landingPage"',
)

LEADS = AggregateSource(
    name='leads',
    from_clause=EVENT_FROM_CLAUSE,
    timestamp_column='e.event_time',
    primary_alias='e',
    default_entity='event',
    aliases=EVENT_ALIASES,
    base_predicate=f"e.event_type = '{EventType.LEAD.value}'",
)

PURCHASES = AggregateSource(
    name='purchases',
    from_clause=EVENT_FROM_CLAUSE,
    timestamp_column='e.event_time',
    primary_alias='e',
    default_entity='event',
    aliases=EVENT_ALIASES,
    base_predicate=f"e.event_type = '{EventType.PURCHASE.value}' AND {PURCHASE_VALUE_IS_NUMERIC}",
)

PURCHASE_REVENUE = AggregateSource(
    name='purchase_revenue',
    from_clause=EVENT_FROM_CLAUSE,
    timestamp_column='e.event_time',
    primary_alias='e',
    default_entity='event',
    aliases=EVENT_ALIASES,
    base_predicate=f"e.event_type = '{EventType.PURCHASE.value}' AND {PURCHASE_VALUE_IS_NUMERIC}",
    measure=f'COALESCE(SUM({PURCHASE_VALUE_EXPR}), 0)',
    value_type=float,
)

SURVEY_RESPONSES = AggregateSource(
    name='survey_responses',
    from_clause=EVENT_FROM_CLAUSE,
    timestamp_column='e.event_time',
    primary_alias='e',
    default_entity='event',
    aliases=EVENT_ALIASES,
    base_predicate=f"e.event_type = '{EventType.PESQUISA_LEAD.value}'",
)

EVENTS = AggregateSource(
    name='events',
    from_clause=EVENT_FROM_CLAUSE,
    timestamp_column='e.event_time',
    primary_alias='e',
    default_entity='event',
    aliases=EVENT_ALIASES,
)

SOURCES: Dict[str, AggregateSource] = {
    source.name: source
    for source in (SESSIONS, LEADS, PURCHASES, PURCHASE_REVENUE, SURVEY_RESPONSES, EVENTS)
}
