"""Page/limit handling shared by list operations."""

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """One page of results plus the total row count."""

    items: list[T] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20

    @property
    def pages(self) -> int:
        if self.limit <= 0:
            return 0
        return (self.total + self.limit - 1) // self.limit

    def to_dict(self, items: list[Any] | None = None) -> dict:
        return {
            "items": self.items if items is None else items,
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "pages": self.pages,
        }


def page_window(page: int, limit: int, max_limit: int = 100) -> tuple[int, int, int]:
    """
    Clamp page and limit and return (page, limit, offset).

    Pages are 1-based.
    """
    page = max(1, page)
    limit = min(max(1, limit), max_limit)
    return page, limit, (page - 1) * limit
