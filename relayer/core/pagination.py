"""
Paginated collections returned by every listing endpoint.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Generic, List, Optional, Sequence, TypeVar

T = TypeVar("T")


@dataclass
class PaginatedCollection(Generic[T]):
    """
    One page of records plus the envelope describing the full result.

    Attributes:
        total: Number of records across all pages
        page: 1-based page number
        per_page: Page size
        records: Records on this page
    """
    total: int
    page: int
    per_page: int
    records: List[T] = field(default_factory=list)

    def to_dict(self, serialize: Optional[Callable[[T], Any]] = None) -> dict:
        """Convert to the wire envelope, serializing each record if asked."""
        records = [serialize(r) for r in self.records] if serialize else list(self.records)
        return {
            "total": self.total,
            "page": self.page,
            "perPage": self.per_page,
            "records": records,
        }


def paginate(items: Sequence[T], page: int, per_page: int) -> PaginatedCollection[T]:
    """
    Slice an in-memory result set.

    Page 2 with per_page 10 holds items 11-20 (1-based).
    """
    start = (page - 1) * per_page
    return PaginatedCollection(
        total=len(items),
        page=page,
        per_page=per_page,
        records=list(items[start:start + per_page]),
    )


def page_window(page: int, per_page: int) -> tuple:
    """Return the (offset, limit) pair a store uses for the same page."""
    return (page - 1) * per_page, per_page
