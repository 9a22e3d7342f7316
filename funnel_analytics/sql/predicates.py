"""
Parameterized predicate fragments.

Fragments are written with positional ``?`` placeholders so they can be built
independently (filter compiler, scope filters, period bounds) and only bound to
asyncpg's numbered ``$n`` placeholders once the final statement is assembled.
Values never appear inside the SQL text.
"""

from dataclasses import dataclass
from typing import Any, Iterable, List, Sequence, Tuple


PLACEHOLDER = '?'


@dataclass(frozen=True)
class Predicate:
    """
    A boolean SQL fragment plus the arguments for its ``?`` placeholders.

    Attributes:
        sql: Fragment text, e.g. ``e.funnel_id = ANY(?)``.
        args: One argument per placeholder, in order of appearance.
    """
    sql: str
    args: Tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        placeholders = self.sql.count(PLACEHOLDER)
        if placeholders != len(self.args):
            raise ValueError(
                f"Predicate has {placeholders} placeholders but {len(self.args)} args: {self.sql}"
            )


def join_predicates(predicates: Sequence[Predicate], operator: str = 'AND') -> Predicate:
    """
    Combine fragments into one, each wrapped in parentheses.

    Used to build the single disjunction of an OR filter group.
    """
    sql = f' {operator} '.join(f'({p.sql})' for p in predicates)
    args: List[Any] = []
    for p in predicates:
        args.extend(p.args)
    return Predicate(sql=f'({sql})', args=tuple(args))


def bind_placeholders(
    predicates: Iterable[Predicate],
    start_index: int = 1,
) -> Tuple[List[str], List[Any]]:
    """
    Rewrite ``?`` placeholders to ``$n`` starting at ``start_index``.

    Args:
        predicates: Fragments in the order they will appear in the statement.
        start_index: Number of the first placeholder to emit.

    Returns:
        Tuple of (bound fragment strings, flat argument list). The argument
        list lines up with the emitted ``$n`` numbers.

    Example:
        >>> bind_placeholders([Predicate('a = ?', (1,)), Predicate('b != ?', ('x',))], 3)
        (['a = $3', 'b != $4'], [1, 'x'])
    """
    bound: List[str] = []
    args: List[Any] = []
    index = start_index

    for predicate in predicates:
        pieces = predicate.sql.split(PLACEHOLDER)
        out = pieces[0]
        for piece in pieces[1:]:
            out += f'${index}' + piece
            index += 1
        bound.append(out)
        args.extend(predicate.args)

    return bound, args
