"""
Pagination and in-memory sorting helpers shared by list endpoints.
"""

import math
from typing import Any, Callable, Dict, List, Sequence, Tuple, TypeVar

T = TypeVar("T")


def page_offset(page: int, limit: int) -> int:
    return (page - 1) * limit


def pagination_meta(page: int, limit: int, total_items: int) -> Dict[str, Any]:
    """
    Build the pagination block. Every field derives from page, limit and total.
    """
    total_pages = math.ceil(total_items / limit) if limit else 0
    return {
        "currentPage": page,
        "totalPages": total_pages,
        "totalItems": total_items,
        "itemsPerPage": limit,
        "hasNextPage": page < total_pages,
        "hasPreviousPage": page > 1,
    }


def paginate(items: Sequence[T], page: int, limit: int) -> Tuple[List[T], Dict[str, Any]]:
    """Slice an already-sorted collection and return ``(page_items, meta)``."""
    offset = page_offset(page, limit)
    return list(items[offset:offset + limit]), pagination_meta(page, limit, len(items))


def _sortable(value: Any) -> Tuple[int, Any]:
    # None sorts last in ascending order
    if value is None:
        return (1, 0)
    if hasattr(value, "value"):
        value = value.value
    if isinstance(value, str):
        value = value.lower()
    return (0, value)


def sort_records(
    items: Sequence[T],
    primary: Callable[[T], Any],
    fallback: Callable[[T], Any],
    descending: bool = False,
) -> List[T]:
    """
    Stable sort by ``primary`` with ``fallback`` as tie-breaker.

    The fallback order stays ascending regardless of ``descending``: the
    list is sorted by fallback first, then by primary, relying on sort
    stability.
    """
    by_fallback = sorted(items, key=lambda item: _sortable(fallback(item)))
    return sorted(by_fallback, key=lambda item: _sortable(primary(item)), reverse=descending)
