"""Order keys such as ``-created_at`` mapped onto entity attributes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class SortOrder:
    attribute: str
    descending: bool = False


def _split(order: str) -> Tuple[str, bool]:
    normalized = order.strip()
    if normalized.startswith("-"):
        return normalized[1:], True
    return normalized, False


def parse_sort(order: Optional[str], mapping: Mapping[str, str], default_order: str) -> SortOrder:
    """
    Map an order key onto an attribute.

    A leading ``-`` selects descending order. Keys missing from ``mapping``
    fall back to ``default_order`` (itself an order key, e.g. ``-created_at``).
    """
    key, descending = _split(order or "")
    if key in mapping:
        return SortOrder(mapping[key], descending)
    default_key, default_descending = _split(default_order)
    return SortOrder(mapping.get(default_key, default_key), default_descending)


def _sort_key(getter: Callable[[Any, str], Any], attribute: str) -> Callable[[Any], Tuple[bool, Any]]:
    def key(item: Any) -> Tuple[bool, Any]:
        value = getter(item, attribute)
        # missing values sort first ascending, last descending
        return (value is not None, value if value is not None else 0)

    return key


def sort_items(
    items: Iterable[T],
    order: SortOrder,
    getter: Callable[[Any, str], Any] = getattr,
) -> List[T]:
    """Stable sort of ``items`` by one attribute."""
    return sorted(items, key=_sort_key(getter, order.attribute), reverse=order.descending)


__all__ = ["SortOrder", "parse_sort", "sort_items"]
