import math
from typing import Any, List, Optional, Sequence, Tuple, TypeVar

from fastapi.encoders import jsonable_encoder

from skillforge.schemas.common import Pagination

T = TypeVar("T")


def create_pagination(page: int, limit: int, total: int) -> Pagination:
    total_pages = math.ceil(total / limit) if limit > 0 else 0
    return Pagination(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )


def paginate(items: Sequence[T], page: int, limit: int) -> Tuple[List[T], Pagination]:
    start = (page - 1) * limit
    return list(items[start : start + limit]), create_pagination(page, limit, len(items))


def success_response(
    data: Any = None,
    message: Optional[str] = None,
    pagination: Optional[Pagination] = None,
) -> dict:
    """Wrap a payload in the success envelope with camelCase keys."""
    body = {"success": True}
    if data is not None:
        body["data"] = jsonable_encoder(data, by_alias=True)
    if message:
        body["message"] = message
    if pagination is not None:
        body["pagination"] = jsonable_encoder(pagination, by_alias=True)
    return body


def error_response(
    error: str,
    message: Optional[str] = None,
    errors: Optional[List[dict]] = None,
) -> dict:
    body = {"success": False, "error": error}
    if message:
        body["message"] = message
    if errors:
        body["errors"] = errors
    return body
