"""
Response envelope helpers.

Every endpoint returns one of:
- Success: { "success": true, "data": <payload>, "meta": {...} }
- Error:   { "success": false, "error": { "code": "...", "message": "...", "details": {...} } }

Errors are produced by the exception handlers in main.py.
"""
from typing import Any


def success_response(data: Any, meta: dict[str, Any] | None = None) -> dict[str, Any]:
    """{ "success": true, "data": <data>, "meta"?: <meta> }"""
    response = {"success": True, "data": data}
    if meta:
        response["meta"] = meta
    return response


def paginated_response(
    items: list[Any],
    limit: int,
    offset: int = 0,
    total: int | None = None,
) -> dict[str, Any]:
    """
    Success envelope for a page of items.

    meta: { "limit", "offset", "total", "hasMore" }
    """
    if total is None:
        total = len(items)

    return success_response(
        data=items,
        meta={
            "limit": limit,
            "offset": offset,
            "total": total,
            "hasMore": (offset + limit) < total,
        },
    )
