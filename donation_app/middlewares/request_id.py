from __future__ import annotations

import logging
import re
import time
from contextvars import ContextVar
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
# Email of the partner or donor a donation write is acting for.
actor_ctx_var: ContextVar[str | None] = ContextVar("actor", default=None)
logger = logging.getLogger("donation_app.request")

_SAFE_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def _incoming_request_id(value: str | None) -> str:
    if value and _SAFE_REQUEST_ID.match(value):
        return value
    return uuid4().hex


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Correlate each request's log lines and report how it ended.

    A caller-supplied id is reused when it is short and printable, otherwise a
    fresh one is issued. The id is echoed back on the response.
    """

    def __init__(self, app, header_name: str = "X-Request-ID") -> None:  # type: ignore[override]
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = _incoming_request_id(request.headers.get(self.header_name))
        request.state.request_id = request_id
        tokens = (request_id_ctx_var.set(request_id), actor_ctx_var.set(None))
        start = time.perf_counter()
        fields = {"method": request.method, "path": request.url.path}
        try:
            response = await call_next(request)
        except Exception:
            fields["duration_ms"] = round((time.perf_counter() - start) * 1000, 2)
            logger.exception("request.failed", extra={"extra_data": fields})
            raise
        finally:
            request_id_ctx_var.reset(tokens[0])
            actor_ctx_var.reset(tokens[1])

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers[self.header_name] = request_id
        response.headers.setdefault("X-Response-Time", f"{duration_ms:.2f}ms")
        fields.update(status=response.status_code, duration_ms=round(duration_ms, 2), request_id=request_id)
        log = logger.warning if response.status_code >= 500 else logger.info
        log("request.completed", extra={"extra_data": fields})
        return response
