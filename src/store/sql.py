"""Compile predicate trees into SQLite WHERE and ORDER BY clauses.

Timestamps are stored as UTC ISO-8601 text so lexical comparison matches
chronological order. List fields are JSON arrays searched with json_each.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from src.store.predicates import (
    LIST_FIELDS,
    AllOf,
    AnyOf,
    Contains,
    Equals,
    InSet,
    OrderBy,
    Predicate,
    Since,
)


LIKE_ESCAPE = "\\"


def to_db_timestamp(value: datetime | None) -> str | None:
    """Normalize a datetime to the stored UTC text form."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term matches literally."""
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def _to_param(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        return to_db_timestamp(value)
    return value


def compile_where(where: Predicate | None) -> tuple[str, list[Any]]:
    """Compile a predicate tree.

    Args:
        where: Predicate tree, or None for no filter.

    Returns:
        Tuple of (SQL expression, positional parameters). Field names are
        validated by the predicate constructors, so they are safe to inline.

    Raises:
        TypeError: If the tree contains an unknown node.
    """
    if where is None:
        return "1", []

    if isinstance(where, Contains):
        pattern = f"%{escape_like(where.term.lower())}%"
        if where.field in LIST_FIELDS:
            sql = (
                f"EXISTS (SELECT 1 FROM json_each({where.field}) "
                f"WHERE lower(json_each.value) LIKE ? ESCAPE '{LIKE_ESCAPE}')"
            )
        else:
            sql = f"lower(COALESCE({where.field}, '')) LIKE ? ESCAPE '{LIKE_ESCAPE}'"
        return sql, [pattern]

    if isinstance(where, Equals):
        if where.value is None:
            return f"{where.field} IS NULL", []
        return f"{where.field} = ?", [_to_param(where.value)]

    if isinstance(where, InSet):
        if not where.values:
            return "0", []
        values = sorted((_to_param(v) for v in where.values), key=str)
        marks = ", ".join("?" for _ in values)
        return f"{where.field} IN ({marks})", values

    if isinstance(where, Since):
        return (
            f"({where.field} IS NOT NULL AND {where.field} >= ?)",
            [to_db_timestamp(where.moment)],
        )

    if isinstance(where, AnyOf | AllOf):
        if not where.children:
            return ("0", []) if isinstance(where, AnyOf) else ("1", [])
        joiner = " OR " if isinstance(where, AnyOf) else " AND "
        parts: list[str] = []
        params: list[Any] = []
        for child in where.children:
            sql, child_params = compile_where(child)
            parts.append(f"({sql})")
            params.extend(child_params)
        return joiner.join(parts), params

    msg = f"Unsupported predicate: {type(where).__name__}"
    raise TypeError(msg)


def compile_order(order_by: OrderBy | None) -> str:
    """Compile an ordering, keeping NULLs last and ties in insertion order."""
    if order_by is None:
        return "rowid"
    direction = "DESC" if order_by.descending else "ASC"
    return f"({order_by.field} IS NULL), {order_by.field} {direction}, rowid"
