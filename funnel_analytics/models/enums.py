"""
Enumeration definitions for the Funnel Analytics backend.

All enums inherit from both `str` and `Enum` so they serialize as their plain
values in Pydantic models and API responses.
"""

from enum import Enum


class FilterOperator(str, Enum):
    """
    Operators accepted in an advanced filter.

    - equals: ``column = value``
    - not_equals: ``column != value`` (NULL-safe for empty UTM values)
    - contains: ``column LIKE %value%``
    - not_contains: ``column NOT LIKE %value%``
    """
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"


class FilterCondition(str, Enum):
    """
    How the advanced filters of one request are combined.

    Applies uniformly to the whole list; there is no per-filter nesting.
    """
    AND = "AND"
    OR = "OR"

    @classmethod
    def parse(cls, raw: str) -> "FilterCondition":
        """Anything other than OR (case-insensitive) means AND."""
        if raw and raw.strip().upper() == cls.OR.value:
            return cls.OR
        return cls.AND


class EventType(str, Enum):
    """Event types stored in ``events.event_type``."""
    LEAD = "LEAD"
    PURCHASE = "PURCHASE"
    PESQUISA_LEAD = "PESQUISA_LEAD"


class EventOrder(str, Enum):
    """Sort order of the event listing, by event time."""
    ASC = "asc"
    DESC = "desc"
