"""
Envelope -> HTTP response helpers shared by the routers
"""
from typing import Optional

from fastapi.responses import JSONResponse

from arpozan.core.errors import RateLimitError
from arpozan.domain.envelope import Envelope
from arpozan.domain.query import DEFAULT_PAGE_SIZE, QueryDescriptor

KIND_BY_STATUS = {
    400: "validation",
    401: "auth",
    403: "auth",
    404: "not_found",
    409: "conflict",
    422: "validation",
    429: "rate_limit",
    503: "backend",
}


def envelope_response(envelope: Envelope, success_status: int = 200) -> JSONResponse:
    """JSONResponse carrying the envelope with its mapped HTTP status"""
    status_code = success_status if envelope.success else envelope.status_code
    headers = None
    if envelope.kind == RateLimitError.kind:
        headers = {"Retry-After": "1"}
    return JSONResponse(status_code=status_code, content=envelope.to_dict(), headers=headers)


def error_response(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message, "kind": KIND_BY_STATUS.get(status_code, "internal")},
        headers=headers,
    )


def pagination(descriptor: QueryDescriptor, total: int, total_pages: int) -> dict:
    return {
        "page": descriptor.page,
        "limit": descriptor.page_size,
        "total": total,
        "totalPages": total_pages,
        "hasNext": descriptor.page < total_pages,
        "hasPrev": descriptor.page > 1,
    }


def paged_payload(envelope: Envelope, descriptor: QueryDescriptor, key: str) -> Envelope:
    """Reshape a get_all envelope into {key: [...], pagination: {...}}"""
    if not envelope.success:
        return envelope
    data = envelope.data
    return Envelope.ok({
        key: data["items"],
        "pagination": pagination(descriptor, data["total"], data["total_pages"]),
    })


def descriptor_from_params(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    default_limit: int = DEFAULT_PAGE_SIZE,
    **fields,
) -> QueryDescriptor:
    """Descriptor built from raw query strings; bad page/limit values are clamped"""
    return QueryDescriptor(
        page=page if page is not None else 1,
        page_size=limit if limit is not None else default_limit,
        **fields,
    )
