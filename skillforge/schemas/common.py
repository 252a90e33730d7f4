from typing import Optional

from skillforge.models.base import CamelModel


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class FieldError(CamelModel):
    field: str
    message: str
    code: Optional[str] = None
