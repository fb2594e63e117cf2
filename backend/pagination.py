from __future__ import annotations

from dataclasses import dataclass

from backend.config import MAX_PAGE_SIZE
from backend.errors import ValidationError


@dataclass(frozen=True)
class PageWindow:
    page: int
    limit: int
    skip: int
    total_items: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool

    def as_response(self) -> dict:
        return {
            "currentPage": self.page,
            "totalPages": self.total_pages,
            "totalItems": self.total_items,
            "itemsPerPage": self.limit,
            "hasNextPage": self.has_next_page,
            "hasPrevPage": self.has_prev_page,
        }


def validate_window(page: int, limit: int) -> None:
    errors = []
    if isinstance(page, bool) or not isinstance(page, int) or page < 1:
        errors.append({"field": "page", "message": "Page must be a positive integer."})
    if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_PAGE_SIZE:
        errors.append(
            {"field": "limit", "message": f"Limit must be between 1 and {MAX_PAGE_SIZE}."}
        )
    if errors:
        raise ValidationError("Validation failed", errors=errors)


def skip_for(page: int, limit: int) -> int:
    validate_window(page, limit)
    return (page - 1) * limit


def paginate(page: int, limit: int, total_items: int) -> PageWindow:
    skip = skip_for(page, limit)
    if total_items < 0:
        raise ValueError("total_items must be zero or greater.")
    total_pages = -(-total_items // limit)
    return PageWindow(
        page=page,
        limit=limit,
        skip=skip,
        total_items=total_items,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
    )
