from __future__ import annotations

import time
from typing import cast

from fastapi import APIRouter, Request
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

metrics_router = APIRouter(tags=["metrics"])

# Labels are route templates and small enums only. Session ids, template ids and note
# text never become label values.

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=("method", "route", "status_code"),
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    labelnames=("method", "route", "status_code"),
    # Generation calls proxy transcription, so the upper buckets go well past typical CRUD.
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

generation_requests_total = Counter(
    "generation_requests_total",
    "Calls to the external generation service by call shape and outcome",
    labelnames=("kind", "outcome"),
)

note_normalizations_total = Counter(
    "note_normalizations_total",
    "Generation responses normalized into SOAP notes",
    labelnames=("source", "outcome"),
)

stale_generation_results_total = Counter(
    "stale_generation_results_total",
    "Generation results discarded because a newer request was started",
)

template_version_conflicts_total = Counter(
    "template_version_conflicts_total",
    "Template edits rejected by the optimistic version check",
)


def route_label(request: Request) -> str:
    """
    Return the matched route template (e.g. /sessions/{session_id}).

    Unmatched requests (404s) collapse to "unmatched" so raw paths never leak.
    """

    route = request.scope.get("route")
    path = getattr(route, "path", None)
    if isinstance(path, str) and path:
        return path
    return "unmatched"


class PrometheusMetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            labels = {
                "method": request.method,
                "route": route_label(request),
                "status_code": str(int(status_code)),
            }
            http_requests_total.labels(**labels).inc()
            http_request_duration_seconds.labels(**labels).observe(
                time.perf_counter() - started
            )


@metrics_router.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    payload = generate_latest()
    return Response(content=cast(bytes, payload), media_type=CONTENT_TYPE_LATEST)
