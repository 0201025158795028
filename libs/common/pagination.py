"""Page-number pagination shared by listing endpoints.

Listing pages accept a loose ``paged`` query value: anything missing,
non-numeric or below 1 means the first page.
"""

import math
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from libs.common.config import get_settings

T = TypeVar("T")


def get_page_size() -> int:
    return get_settings().LISTING_PAGE_SIZE


def resolve_page(paged: Any) -> int:
    try:
        page = int(paged)
    except (TypeError, ValueError):
        return 1
    return max(1, page)


def page_count(total: int, page_size: Optional[int] = None) -> int:
    page_size = page_size or get_page_size()
    return math.ceil(total / page_size) if total > 0 else 0


def page_offset(page: int, page_size: Optional[int] = None) -> int:
    return (page - 1) * (page_size or get_page_size())


class Page(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    page_size: int
    total_pages: int


def build_page(items: list, *, total: int, page: int) -> dict:
    page_size = get_page_size()
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": page_count(total, page_size),
    }


def paginate_list(items: list, paged: Any) -> dict:
    """Paginate an already-filtered in-memory list."""
    page = resolve_page(paged)
    start = page_offset(page)
    return build_page(items[start : start + get_page_size()], total=len(items), page=page)


async def paginate_query(db: AsyncSession, query: Select, paged: Any) -> tuple[list, int, int]:
    """Run ``query`` for one page. Returns ``(rows, total, page)``."""
    page = resolve_page(paged)
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar_one()
    result = await db.execute(query.offset(page_offset(page)).limit(get_page_size()))
    return list(result.scalars().all()), total, page
