"""
Aggregation orchestrator.

Runs the independent aggregate queries of one request concurrently and merges
their results. Lifecycle per request: Init -> Dispatch -> Await -> Reduce ->
(Done | Failed).

- Dispatch: one coroutine per task, each under its own deadline
  (``asyncio.wait_for``).
- Await: ``asyncio.gather(..., return_exceptions=True)`` is a full barrier;
  every task finishes or fails before anything is reduced. Each outcome lands
  in its own positional slot, so tasks never share mutable state.
- Reduce: the first failure in dispatch order is raised as
  :class:`AggregationError` and every other result is discarded. Otherwise the
  results are returned keyed by task name.

Cancelling the awaiting coroutine (e.g. a client disconnect) cancels every
outstanding task.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Sequence

from funnel_analytics.core.exceptions import AggregationError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AggregateTask:
    """
    One independent unit of work.

    Attributes:
        name: Unique name within the fan-out; results are keyed by it.
        factory: Zero-argument callable returning the coroutine to run. The
            coroutine is only created at dispatch time.
    """
    name: str
    factory: Callable[[], Awaitable[Any]]


async def _run_with_deadline(task: AggregateTask, timeout: float) -> Any:
    return await asyncio.wait_for(task.factory(), timeout=timeout)


def reduce_outcomes(tasks: Sequence[AggregateTask], outcomes: Sequence[Any]) -> Dict[str, Any]:
    """
    Single reducer over the gathered outcomes.

    Raises:
        AggregationError: For the first task (in dispatch order) whose outcome
            is an exception.
    """
    for task, outcome in zip(tasks, outcomes):
        if isinstance(outcome, BaseException):
            if isinstance(outcome, asyncio.TimeoutError):
                logger.error(f"Aggregate task '{task.name}' exceeded its deadline")
            else:
                logger.error(f"Aggregate task '{task.name}' failed: {outcome!r}")
            raise AggregationError(task.name, outcome) from outcome

    return {task.name: outcome for task, outcome in zip(tasks, outcomes)}


async def run_aggregates(tasks: Sequence[AggregateTask], timeout: float) -> Dict[str, Any]:
    """
    Run ``tasks`` concurrently and return their results keyed by name.

    Args:
        tasks: Independent tasks; names must be unique.
        timeout: Deadline in seconds applied to each task individually.

    Returns:
        Dict mapping task name to its result.

    Raises:
        ValueError: If two tasks share a name.
        AggregationError: If any task failed or timed out. No partial results
            are returned.
    """
    names: List[str] = [task.name for task in tasks]
    if len(set(names)) != len(names):
        raise ValueError(f"Duplicate aggregate task names: {names}")

    if not tasks:
        return {}

    started = time.perf_counter()
    logger.debug(f"Dispatching {len(tasks)} aggregate tasks: {', '.join(names)}")

    outcomes = await asyncio.gather(
        *(_run_with_deadline(task, timeout) for task in tasks),
        return_exceptions=True,
    )

    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(f"{len(tasks)} aggregate tasks finished in {elapsed_ms:.1f}ms")

    return reduce_outcomes(tasks, outcomes)
