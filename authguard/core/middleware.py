"""HTTP middleware for request ID propagation.

Every request/response pair carries a correlation id: the incoming header
(``LOG_REQUEST_ID_HEADER``, default ``X-Request-ID``) when present, otherwise a
fresh UUID. The id lives in contextvars for the duration of the request, so
throttling decisions and refresh events logged while handling it can be tied
back to the call.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from authguard.core.config import settings
from authguard.core.logging import clear_request_id, set_request_id


async def request_id_middleware(request: Request, call_next) -> Response:
    """Attach a request id and a duration header to every response.

    Args:
        request: The incoming HTTP request.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response with ``X-Request-ID`` (or the configured header) and
        ``X-Request-Duration-ms`` set.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    elapsed_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{elapsed_ms:.2f}")
    return response
