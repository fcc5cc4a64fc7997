from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from soapscribe.domain.exceptions import (
    BusinessValidationError,
    TemplateVersionNotFoundError,
    VersionConflictError,
)

logger = logging.getLogger("soapscribe.errors")


def _log_handled(request: Request, *, status_code: int, error: str) -> None:
    # Metadata only: no request bodies, query values, or note/template content.
    logger.info(
        "Request rejected",
        extra={
            "request_id": getattr(request.state, "request_id", None)
            or request.headers.get("X-Request-ID"),
            "http_method": request.method,
            "request_path": request.url.path,  # no query string
            "status_code": status_code,
            "error": error,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register application exception handlers."""

    @app.exception_handler(BusinessValidationError)
    async def handle_business_validation_error(
        request: Request,
        exc: BusinessValidationError,
    ) -> JSONResponse:
        _log_handled(request, status_code=400, error="business_validation")
        return JSONResponse(status_code=400, content={"detail": exc.message})

    @app.exception_handler(VersionConflictError)
    async def handle_version_conflict(
        request: Request,
        exc: VersionConflictError,
    ) -> JSONResponse:
        _log_handled(request, status_code=409, error=exc.kind)
        return JSONResponse(
            status_code=409,
            content={
                "detail": exc.message,
                "error": exc.kind,
                "expected_version": exc.expected_version,
                "current_version": exc.current_version,
            },
        )

    @app.exception_handler(TemplateVersionNotFoundError)
    async def handle_template_version_not_found(
        request: Request,
        exc: TemplateVersionNotFoundError,
    ) -> JSONResponse:
        _log_handled(request, status_code=404, error=exc.kind)
        return JSONResponse(status_code=404, content={"detail": exc.message, "error": exc.kind})
