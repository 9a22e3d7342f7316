"""
Exception hierarchy for the aggregation engine.

Validation errors are raised before any query is dispatched and map to HTTP 400.
Execution errors wrap the first failure observed across a fan-out and map to
HTTP 500. Unknown filter properties and operators are not errors: they are
dropped with a logged warning.
"""

from typing import Optional


class AnalyticsError(Exception):
    """Base class for every error raised by the aggregation engine."""


class PeriodValidationError(AnalyticsError, ValueError):
    """Malformed period, unparseable date/time, or a span above the maximum."""


class FilterValidationError(AnalyticsError, ValueError):
    """Malformed advanced filter payload (not JSON, not a list, missing keys)."""


class AggregationError(AnalyticsError):
    """
    A dispatched aggregate query failed.

    Attributes:
        task_name: Name of the aggregate task that failed first.
        cause: The original exception raised by the query executor.
    """

    def __init__(self, task_name: str, cause: Optional[BaseException] = None):
        self.task_name = task_name
        self.cause = cause
        detail = f": {cause!r}" if cause is not None else ""
        super().__init__(f"Aggregate task '{task_name}' failed{detail}")
