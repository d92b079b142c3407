from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Sequence

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10


def _positive_int(value: Any, fallback: int) -> int:
    if value is None or isinstance(value, bool):
        return fallback
    try:
        parsed = int(str(value).strip())
    except ValueError:
        return fallback
    return parsed if parsed >= 1 else fallback


@dataclass(frozen=True)
class Page:
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @classmethod
    def from_query(cls, page: Any = None, limit: Any = None) -> "Page":
        return cls(
            page=_positive_int(page, DEFAULT_PAGE),
            limit=_positive_int(limit, DEFAULT_LIMIT),
        )

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    def page_count(self, total: int) -> int:
        return math.ceil(total / self.limit) if total else 0


@dataclass(frozen=True)
class PageResult:
    items: Sequence[dict]
    total: int
    page: Page

    def to_dict(self) -> dict:
        return {
            "success": True,
            "count": len(self.items),
            "total": self.total,
            "page": self.page.page,
            "pages": self.page.page_count(self.total),
            "data": list(self.items),
        }
