from __future__ import annotations

import logging
import time
from contextvars import ContextVar
from typing import Iterable
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
principal_ctx_var: ContextVar[str | None] = ContextVar("principal_id", default=None)
logger = logging.getLogger("devicebook.request")

# Probes and scrapes are not worth a log line each.
QUIET_PATHS = ("/health", "/metrics")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag every request with a correlation id and log its outcome.

    Server errors are logged at WARNING so they stand out from the
    ``request.completed`` stream.
    """

    def __init__(
        self,
        app,
        header_name: str = "X-Request-ID",
        quiet_paths: Iterable[str] = QUIET_PATHS,
    ) -> None:  # type: ignore[override]
        super().__init__(app)
        self.header_name = header_name
        self.quiet_paths = frozenset(quiet_paths)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(self.header_name) or uuid4().hex
        token = request_id_ctx_var.set(request_id)
        principal_token = principal_ctx_var.set(None)
        request.state.request_id = request_id
        start = time.perf_counter()
        try:
            response = await call_next(request)
            principal = principal_ctx_var.get() or getattr(request.state, "principal", None)
        finally:
            request_id_ctx_var.reset(token)
            principal_ctx_var.reset(principal_token)
        duration_ms = (time.perf_counter() - start) * 1000
        response.headers[self.header_name] = request_id
        response.headers.setdefault("X-Response-Time", f"{duration_ms:.2f}ms")
        if request.url.path in self.quiet_paths:
            return response

        data = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": round(duration_ms, 2),
        }
        if principal:
            data["principal"] = principal
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(level, "request.completed", extra={"extra_data": data})
        return response
