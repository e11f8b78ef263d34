"""HTTP request/response logging middleware.

Every request gets an ``X-Request-ID`` (taken from the caller or generated)
that is echoed on the response and attached to the access log line. Query
parameters that can carry credentials are masked before logging.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any
from urllib.parse import parse_qsl, urlencode

from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from gatekeeper.core.logging import env_bool

REQUEST_ID_HEADER = "X-Request-ID"
SENSITIVE_QUERY_KEYS = frozenset({"code", "token", "access_token", "refresh_token"})


def client_ip(request: Request) -> str | None:
    """Best-effort caller address, honouring the first X-Forwarded-For hop."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


def redact_query(query: str) -> str:
    if not query:
        return ""
    pairs = [
        (key, "***" if key.lower() in SENSITIVE_QUERY_KEYS else value)
        for key, value in parse_qsl(query, keep_blank_values=True)
    ]
    return urlencode(pairs, safe="*")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: FastAPI) -> None:
        super().__init__(app)
        self.logger = logging.getLogger("gatekeeper.request")

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        start = time.perf_counter()
        response: Response | None = None
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000.0
            status_code: int | None = response.status_code if response else None

            extra: dict[str, Any] = {
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "query": redact_query(request.url.query),
                "status_code": status_code,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip(request),
                "user_agent": request.headers.get("user-agent"),
            }

            # Auth rejections and throttling are expected traffic, not faults.
            if status_code is None or status_code >= 500:
                log = self.logger.error
            elif status_code in (401, 403, 429):
                log = self.logger.warning
            else:
                log = self.logger.info

            log(
                "%s %s -> %s (%.2fms)",
                request.method,
                request.url.path,
                status_code,
                duration_ms,
                extra=extra,
            )


def add_request_logging_middleware(app: FastAPI) -> None:
    """Attach request logging middleware unless LOG_REQUESTS is off."""
    if not env_bool("LOG_REQUESTS", default=True):
        return
    app.add_middleware(RequestLoggingMiddleware)
