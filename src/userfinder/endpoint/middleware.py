"""HTTP middleware for the userfinder endpoint.

Group middleware share the Starlette ``dispatch(request, call_next)``
signature so they can be listed in a route group's middleware chain and
installed with ``BaseHTTPMiddleware``.
"""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable

from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = logging.getLogger(__name__)
access_logger = logging.getLogger("userfinder.access")

CONTENT_TYPE_HEADER = "Content-Type"
JSON_CONTENT_TYPE = "application/json"

CallNext = Callable[[Request], Awaitable[Response]]
Dispatch = Callable[[Request, CallNext], Awaitable[Response]]


async def json_content_type(request: Request, call_next: CallNext) -> Response:
    """Mark every response of the group as JSON, error responses included.

    Unhandled handler errors become a JSON 500 here; left to propagate, they
    would be rendered as plain text outside the group.
    """
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("Unhandled error in %s %s", request.method, request.url.path)
        response = JSONResponse({"detail": "Internal Server Error"}, status_code=500)
    response.headers[CONTENT_TYPE_HEADER] = JSON_CONTENT_TYPE
    return response


def scoped(prefix: str, dispatch: Dispatch) -> Dispatch:
    """Restrict a dispatch function to request paths under ``prefix``."""
    prefix = prefix.rstrip("/")

    async def _scoped(request: Request, call_next: CallNext) -> Response:
        path = request.url.path
        if path == prefix or path.startswith(prefix + "/"):
            return await dispatch(request, call_next)
        return await call_next(request)

    _scoped.__name__ = f"{getattr(dispatch, '__name__', 'dispatch')}[{prefix}]"
    return _scoped


async def access_log(request: Request, call_next: CallNext) -> Response:
    """Log one line per request with its status and duration."""
    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        access_logger.exception(
            "%s %s 500 %.1fms",
            request.method,
            request.url.path,
            (time.perf_counter() - start) * 1000,
        )
        raise
    access_logger.info(
        "%s %s %d %.1fms",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - start) * 1000,
    )
    return response
