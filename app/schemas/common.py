from typing import Optional
from pydantic import BaseModel


def total_pages(total: int, limit: int) -> int:
    """Number of pages needed for ``total`` items at ``limit`` per page."""
    return (total + limit - 1) // limit if limit > 0 else 0


class PaginatedResponse(BaseModel):
    """Pagination envelope shared by list responses; subclasses add ``items``."""
    total: int
    page: int
    limit: int
    total_pages: int


class MessageResponse(BaseModel):
    """Plain acknowledgement, with an affected-row count where one applies."""
    message: str
    count: Optional[int] = None
