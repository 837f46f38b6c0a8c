"""Length-aware page model used by paginated envelopes."""

import math
from collections.abc import Sequence
from typing import Any
from urllib.parse import urlencode

from pydantic import BaseModel, Field


class Page(BaseModel):
    """One page of a collection whose total size is known.

    ``Page`` objects passed to ``ResponseFormatter.format`` get a ``meta``
    block injected automatically; ``Page.to_dict()`` yields the mapping
    ``ApiResponseService.paginated_response`` expects.
    """

    items: list[Any] = Field(default_factory=list)
    total: int = Field(ge=0)
    per_page: int = Field(gt=0)
    current_page: int = Field(default=1, ge=1)
    path: str = ""
    page_name: str = "page"

    @classmethod
    def paginate(
        cls,
        collection: Sequence[Any],
        page: int = 1,
        per_page: int = 15,
        path: str = "",
    ) -> "Page":
        """Slice a fully materialized collection into a page."""
        start = (page - 1) * per_page
        return cls(
            items=list(collection[start : start + per_page]),
            total=len(collection),
            per_page=per_page,
            current_page=page,
            path=path,
        )

    @property
    def last_page(self) -> int:
        return max(math.ceil(self.total / self.per_page), 1)

    @property
    def first_item(self) -> int | None:
        """1-based position of the first item on this page."""
        if not self.items:
            return None
        return (self.current_page - 1) * self.per_page + 1

    @property
    def last_item(self) -> int | None:
        """1-based position of the last item on this page."""
        if self.first_item is None:
            return None
        return self.first_item + len(self.items) - 1

    def url(self, page: int) -> str:
        separator = "&" if "?" in self.path else "?"
        return f"{self.path}{separator}{urlencode({self.page_name: page})}"

    @property
    def prev_page_url(self) -> str | None:
        return self.url(self.current_page - 1) if self.current_page > 1 else None

    @property
    def next_page_url(self) -> str | None:
        if self.current_page >= self.last_page:
            return None
        return self.url(self.current_page + 1)

    def meta(self) -> dict[str, Any]:
        """Pagination metadata block."""
        return {
            "current_page": self.current_page,
            "from": self.first_item,
            "last_page": self.last_page,
            "path": self.path,
            "per_page": self.per_page,
            "to": self.last_item,
            "total": self.total,
        }

    def to_dict(self) -> dict[str, Any]:
        """Flat representation: items under ``data``, metadata and page URLs."""
        return {
            "data": self.items,
            **self.meta(),
            "first_page_url": self.url(1),
            "last_page_url": self.url(self.last_page),
            "prev_page_url": self.prev_page_url,
            "next_page_url": self.next_page_url,
        }
