"""Request context middleware: one ID per request, plus a summary log line.

The request ID comes from the client's ``X-Request-ID`` header when it
sends one, otherwise a fresh UUID.  It lives in a ContextVar so any
code in the request's async call chain can log it without passing it
around, and it is echoed back on the response.

The procedure dependency adds the caller's user_id, org_id and the
procedure name to the same context once the guard chain has run.  A
handler filter copies all four onto every LogRecord, which is how
they end up as top-level keys in JSON logs.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
org_id_var: ContextVar[str | None] = ContextVar("org_id", default=None)
procedure_var: ContextVar[str | None] = ContextVar("procedure", default=None)


class RequestContextFilter(logging.Filter):
    """Attach the current request's context to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("-")  # type: ignore[attr-defined]
        for name, var in (
            ("user_id", user_id_var),
            ("org_id", org_id_var),
            ("procedure", procedure_var),
        ):
            value = var.get(None)
            if value is not None and not hasattr(record, name):
                setattr(record, name, value)
        return True


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request_id_var.set(req_id)

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        logger.info(
            "%s %s -> %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={
                "request_id": req_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        response.headers["X-Request-ID"] = req_id
        return response
