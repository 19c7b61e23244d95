"""Response envelope and pagination schemas shared by every endpoint."""
import math
from datetime import datetime, timezone
from typing import Annotated, Any, Generic, TypeVar

from pydantic import AfterValidator, BaseModel, Field

from twilsta.core.text import sanitize_html

T = TypeVar("T")

# Free text fields that may carry user-supplied markup.
SafeText = Annotated[str, AfterValidator(sanitize_html)]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: str | None = None
    data: T | None = None
    timestamp: datetime = Field(default_factory=_now)


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str
    details: Any = None
    retry_after: int | None = None
    timestamp: datetime = Field(default_factory=_now)


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def build(cls, total: int, page: int, limit: int) -> "Pagination":
        return cls(total=total, page=page, limit=limit, pages=math.ceil(total / limit) if limit else 0)


class Page(BaseModel, Generic[T]):
    items: list[T]
    pagination: Pagination


def ok(data: Any = None, message: str | None = None) -> ApiResponse:
    return ApiResponse(data=data, message=message)


def paginated(items: list, total: int, page: int, limit: int) -> Page:
    return Page(items=items, pagination=Pagination.build(total, page, limit))
