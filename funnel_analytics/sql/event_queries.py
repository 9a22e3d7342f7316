"""
Event listing queries.

The listing joins every entity so advanced filters can reference any alias.
UTM attribution is taken from the user's first touch and falls back to the
session when the user value is empty.
"""

from typing import Any, List, Sequence, Tuple

from funnel_analytics.models.enums import EventOrder
from funnel_analytics.sql.predicates import Predicate, bind_placeholders
from funnel_analytics.sql.sources import EVENTS


UTM_COLUMNS: Tuple[Tuple[str, str, str], ...] = (
    ('utm_source', 'initialUtmSource', 'utmSource'),
    ('utm_medium', 'initialUtmMedium', 'utmMedium'),
    ('utm_campaign', 'initialUtmCampaign', 'utmCampaign'),
    ('utm_content', 'initialUtmContent', 'utmContent'),
    ('utm_term', 'initialUtmTerm', 'utmTerm'),
)

_utm_select = ',\n        '.join(
    f'COALESCE(NULLIF(u."{user_col}", \'\'), s."{session_col}") AS {name}'
    for name, user_col, session_col in UTM_COLUMNS
)

EVENT_LIST_COLUMNS: str = f"""
        e.event_id::text AS event_id,
        e.event_name,
        e.event_type,
        e.event_source,
        e.event_time,
        e.user_id,
        e.session_id::text AS session_id,
        e.profession_id,
        professions.profession_name,
        e.product_id,
        products.product_name,
        e.funnel_id,
        funnels.funnel_name,
        {_utm_select},
        u."initialCountry" AS initial_country,
        u."initialRegion" AS initial_region,
        u."initialCity" AS initial_city"""


def build_event_page_query(
    predicates: Sequence[Predicate],
    order: EventOrder,
    limit: int,
    offset: int,
) -> Tuple[str, List[Any]]:
    """
    One page of events matching ``predicates``.

    Ordered by event time, then event id for a stable page boundary.
    """
    direction = 'ASC' if order is EventOrder.ASC else 'DESC'
    paging = Predicate('LIMIT ? OFFSET ?', (limit, offset))
    bound, args = bind_placeholders([*predicates, paging])
    conditions, paging_sql = bound[:-1], bound[-1]

    where = f"WHERE {' AND '.join(conditions)}" if conditions else ''
    sql = f"""
    SELECT {EVENT_LIST_COLUMNS}
    FROM {EVENTS.from_clause}
    {where}
    ORDER BY e.event_time {direction}, e.event_id {direction}
    {paging_sql}
    """
    return sql, args
