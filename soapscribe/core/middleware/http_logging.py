"""Request logging middleware.

Logged per request: method, route template, status, duration, correlation id, and the
opaque session/template id when the route has one. Never logged: bodies (note text and
audio), query strings, headers.
"""

from __future__ import annotations

import logging
import re
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from soapscribe.core.metrics import route_label

logger = logging.getLogger("soapscribe.http")

REQUEST_ID_HEADER = "X-Request-ID"
_SAFE_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$")

# Path params that hold server-generated UUIDs and are safe to correlate on.
_CORRELATION_PATH_PARAMS = ("session_id", "template_id")


def _request_id_for(request: Request) -> str:
    """Propagate a well-formed X-Request-ID, otherwise mint a UUID4 hex."""

    candidate = request.headers.get(REQUEST_ID_HEADER)
    if candidate and _SAFE_REQUEST_ID_PATTERN.fullmatch(candidate):
        return candidate
    return uuid.uuid4().hex


def _correlation_fields(request: Request) -> dict[str, str]:
    params = request.scope.get("path_params") or {}
    out: dict[str, str] = {}
    for name in _CORRELATION_PATH_PARAMS:
        value = params.get(name)
        if value is None:
            continue
        try:
            out[name] = str(uuid.UUID(str(value)))
        except ValueError:
            # Not a UUID: the route will 422 anyway; don't echo arbitrary input into logs.
            continue
    return out


class HttpLoggingMiddleware(BaseHTTPMiddleware):
    """Emit one INFO record per request (ERROR with traceback on unhandled exceptions)."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = _request_id_for(request)
        started = time.perf_counter()
        request.state.request_id = request_id

        try:
            response = await call_next(request)
        except Exception:  # noqa: BLE001 - logged with stack trace, then re-raised
            logger.exception(
                "Unhandled exception while processing request",
                extra={
                    "request_id": request_id,
                    "http_method": request.method,
                    "request_path": route_label(request),
                    "status_code": 500,
                    "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
                    **_correlation_fields(request),
                },
            )
            raise

        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "Request completed",
            extra={
                "request_id": request_id,
                "http_method": request.method,
                "request_path": route_label(request),
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
                **_correlation_fields(request),
            },
        )
        return response
