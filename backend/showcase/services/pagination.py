from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from showcase.core.config import settings
from showcase.schemas.catalog import ProductPage, ProductRead


@dataclass(slots=True, frozen=True)
class PageRequest:
    page: int = 1
    page_size: int = 12

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def page_request(page: int | None = None, page_size: int | None = None) -> PageRequest:
    page = 1 if page is None else int(page)
    page_size = int(settings.catalog_page_size) if page_size is None else int(page_size)
    if page < 1:
        raise ValueError("page must be >= 1")
    max_size = max(1, int(settings.catalog_max_page_size))
    if page_size < 1 or page_size > max_size:
        raise ValueError(f"page_size must be between 1 and {max_size}")
    return PageRequest(page=page, page_size=page_size)


def catalog_ordering(model: Any) -> list[Any]:
    """Available items first, newest first within each group, id as tie-break."""
    return [model.sold_out.asc(), model.created_at.desc(), model.id.desc()]


def has_more(request: PageRequest, returned: int, total: int) -> bool:
    return request.offset + returned < total


def expected_page_length(request: PageRequest, total: int) -> int:
    return min(request.page_size, max(0, total - request.offset))


def build_page(items: Sequence[ProductRead], total: int, request: PageRequest) -> ProductPage:
    return ProductPage(items=list(items), total=total, has_more=has_more(request, len(items), total))
