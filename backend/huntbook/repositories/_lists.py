"""
Set semantics for JSON list columns.

JSON columns are only change-tracked on assignment, so these always return a
new list rather than mutating in place.
"""

from typing import Any, Iterable, Optional


def normalized(items: Optional[Iterable[Any]]) -> list:
    seen = []
    for item in items or []:
        if item not in seen:
            seen.append(item)
    return seen


def with_item(items: Optional[Iterable[Any]], item: Any) -> list:
    current = normalized(items)
    if item not in current:
        current.append(item)
    return current


def without_item(items: Optional[Iterable[Any]], item: Any) -> list:
    return [existing for existing in normalized(items) if existing != item]
