"""Response envelope shared by every endpoint."""

import math
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """{success, message, data}"""
    success: bool = True
    message: str = ""
    data: Optional[T] = None


class Page(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    limit: int
    pages: int


def page_of(items: List[Any], total: int, page: int, limit: int) -> dict:
    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "pages": math.ceil(total / limit) if limit else 0,
    }


class ReasonBody(BaseModel):
    """Body for actions that only carry a reason or notes."""
    reason: Optional[str] = None
    notes: Optional[str] = None
