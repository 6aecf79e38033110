from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

from carmarket.exceptions import now_millis

T = TypeVar("T")


class MessageResponse(BaseModel):
    message: str
    timestamp: int = Field(default_factory=now_millis)


class ApiResponse(BaseModel, Generic[T]):
    """Envelope returned by the public API."""
    success: bool = True
    message: str = "OK"
    data: Optional[T] = None
    error_code: Optional[str] = None


class Page(BaseModel, Generic[T]):
    content: List[T]
    page: int
    size: int
    total_elements: int
    total_pages: int

    @classmethod
    def build(cls, content: List[T], page: int, size: int, total: int) -> "Page[T]":
        total_pages = (total + size - 1) // size if size else 0
        return cls(content=content, page=page, size=size, total_elements=total, total_pages=total_pages)
