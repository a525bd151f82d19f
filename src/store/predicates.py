"""Predicate trees understood by every content store adapter.

Stores receive a small, declarative predicate tree rather than raw query
text. The in-memory store evaluates it directly via ``matches``; the SQLite
store compiles it to a WHERE clause (see ``src.store.sql``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from src.store.models import ContentItem, coerce_timestamp


# Fields a predicate or ordering may reference.
QUERYABLE_FIELDS: frozenset[str] = frozenset(ContentItem.model_fields)

LIST_FIELDS: frozenset[str] = frozenset({"tags", "authors"})


def _check_field(name: str) -> None:
    if name not in QUERYABLE_FIELDS:
        msg = f"Unknown content field: {name}"
        raise ValueError(msg)


def _field_value(item: ContentItem, name: str) -> Any:
    value = getattr(item, name)
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass(frozen=True)
class Contains:
    """Case-insensitive substring match on a text or list field.

    For list fields the predicate holds when any element contains the term.
    """

    field: str
    term: str

    def __post_init__(self) -> None:
        _check_field(self.field)

    def matches(self, item: ContentItem) -> bool:
        """Evaluate against an item."""
        needle = self.term.lower()
        value = _field_value(item, self.field)
        if value is None:
            return False
        if isinstance(value, list):
            return any(needle in str(v).lower() for v in value)
        return needle in str(value).lower()


@dataclass(frozen=True)
class Equals:
    """Exact equality on a scalar field."""

    field: str
    value: Any

    def __post_init__(self) -> None:
        _check_field(self.field)

    def matches(self, item: ContentItem) -> bool:
        """Evaluate against an item."""
        expected = self.value.value if isinstance(self.value, Enum) else self.value
        return _field_value(item, self.field) == expected


@dataclass(frozen=True)
class InSet:
    """Scalar field equals one of ``values``. An empty set matches nothing."""

    field: str
    values: frozenset[Any]

    def __post_init__(self) -> None:
        _check_field(self.field)

    def matches(self, item: ContentItem) -> bool:
        """Evaluate against an item."""
        allowed = {v.value if isinstance(v, Enum) else v for v in self.values}
        return _field_value(item, self.field) in allowed


@dataclass(frozen=True)
class Since:
    """Timestamp field is at or after ``moment``; missing values never match."""

    field: str
    moment: datetime

    def __post_init__(self) -> None:
        _check_field(self.field)

    def matches(self, item: ContentItem) -> bool:
        """Evaluate against an item."""
        value = coerce_timestamp(getattr(item, self.field))
        moment = coerce_timestamp(self.moment)
        if value is None or moment is None:
            return False
        return value >= moment


@dataclass(frozen=True)
class AnyOf:
    """Disjunction. An empty disjunction matches nothing."""

    children: tuple[Predicate, ...] = field(default_factory=tuple)

    def matches(self, item: ContentItem) -> bool:
        """Evaluate against an item."""
        return any(child.matches(item) for child in self.children)


@dataclass(frozen=True)
class AllOf:
    """Conjunction. An empty conjunction matches everything."""

    children: tuple[Predicate, ...] = field(default_factory=tuple)

    def matches(self, item: ContentItem) -> bool:
        """Evaluate against an item."""
        return all(child.matches(item) for child in self.children)


Predicate = Contains | Equals | InSet | Since | AnyOf | AllOf


@dataclass(frozen=True)
class OrderBy:
    """Sort order for ``find_many``.

    Items with a missing sort value go last regardless of direction.
    """

    field: str
    descending: bool = True

    def __post_init__(self) -> None:
        _check_field(self.field)


def matches(where: Predicate | None, item: ContentItem) -> bool:
    """Evaluate an optional predicate; None matches everything.

    Args:
        where: Predicate tree or None.
        item: Item to test.

    Returns:
        True if the item satisfies the predicate.
    """
    return True if where is None else where.matches(item)


def sort_items(items: list[ContentItem], order_by: OrderBy | None) -> list[ContentItem]:
    """Sort items by an ordering, keeping insertion order for ties.

    Args:
        items: Items to sort.
        order_by: Ordering, or None to keep the input order.

    Returns:
        A new sorted list.
    """
    if order_by is None:
        return list(items)

    present = [i for i in items if getattr(i, order_by.field) is not None]
    missing = [i for i in items if getattr(i, order_by.field) is None]
    present = sorted(
        present,
        key=lambda i: _field_value(i, order_by.field),
        reverse=order_by.descending,
    )
    return present + missing
