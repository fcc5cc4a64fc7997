from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from soapscribe.api.exception_handlers import register_exception_handlers
from soapscribe.api.schemas import HealthOut
from soapscribe.core.db import close_db, init_db
from soapscribe.core.logging import setup_logging
from soapscribe.core.metrics import PrometheusMetricsMiddleware, metrics_router
from soapscribe.core.middleware.http_logging import HttpLoggingMiddleware
from soapscribe.core.settings import get_settings
from soapscribe.notes.router import router as notes_router
from soapscribe.sessions.registry import EditingSessionRegistry
from soapscribe.sessions.router import router as sessions_router
from soapscribe.templates.router import router as templates_router

setup_logging()


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Settings are read at startup so DATABASE_URL is not needed at import time.
        settings = get_settings()
        init_db(app=app, database_url=str(settings.database_url))
        app.state.editing_sessions = EditingSessionRegistry(limit=settings.editing_session_limit)
        yield
        await app.state.editing_sessions.close_all()
        await close_db(app=app)

    app = FastAPI(
        title="SOAP Scribe API",
        description=(
            "Clinical documentation assistant: turns dictation or short instructions into "
            "structured SOAP note suggestions, and manages reusable note templates.\n\n"
            "Design principles:\n"
            "- AI output is only ever a *suggestion*; it reaches the note after explicit "
            "clinician approval.\n"
            "- A failed or unusable generation never modifies the note and is always retryable.\n"
            "- Template history is append-only; concurrent edits are rejected, never merged.\n"
            "- Logging and metrics avoid PHI by using route templates and metadata only."
        ),
        lifespan=lifespan,
        docs_url="/swagger",
        openapi_tags=[
            {
                "name": "health",
                "description": "Basic uptime checks for load balancers and monitoring.",
            },
            {
                "name": "notes",
                "description": "Stateless normalization and merge of SOAP note content.",
            },
            {
                "name": "sessions",
                "description": (
                    "Editing sessions: request suggestions from text or audio, then approve "
                    "or discard them."
                ),
            },
            {
                "name": "templates",
                "description": "Versioned note templates with edit history and restore.",
            },
            {
                "name": "metrics",
                "description": "Prometheus-compatible metrics endpoint.",
            },
        ],
    )

    app.add_middleware(PrometheusMetricsMiddleware)
    app.add_middleware(HttpLoggingMiddleware)

    register_exception_handlers(app)

    @app.get(
        "/health",
        response_model=HealthOut,
        tags=["health"],
        summary="Health check",
        description=(
            "Lightweight endpoint to verify the API process is running. Downstream "
            "dependencies (database, generation service) are not checked."
        ),
    )
    async def health() -> HealthOut:
        return HealthOut(status="ok")

    app.include_router(metrics_router)
    app.include_router(notes_router)
    app.include_router(sessions_router)
    app.include_router(templates_router)
    return app


app = create_app()
