"""Sentiflow — FastAPI application factory.

Usage:
    uvicorn sentiflow.api.app:create_app --factory --reload --port 8000

Or for production:
    uvicorn sentiflow.api.app:app --host 0.0.0.0 --port 8000

Everything the routes need (engine, workflow definition, gateway) is
built here and stored on ``app.state``; pass ``engine`` or
``capabilities`` to wire in alternatives.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from sentiflow import __version__
from sentiflow.api.gateway import RequestGateway
from sentiflow.capabilities import CapabilitySet, create_capabilities, task_handlers
from sentiflow.config.settings import Settings, settings as default_settings
from sentiflow.workflows import WorkflowDef, WorkflowEngine, build_sentiment_workflow

logger = logging.getLogger("sentiflow.api")

REQUEST_ID_HEADER = "X-Request-ID"


def create_app(
    settings: Settings | None = None,
    *,
    engine: WorkflowEngine | None = None,
    capabilities: CapabilitySet | None = None,
    definition: WorkflowDef | None = None,
    include_docs: bool = True,
) -> FastAPI:
    """Build and return the FastAPI application."""
    settings = settings or default_settings

    if engine is None:
        capabilities = capabilities or create_capabilities(settings)
        engine = WorkflowEngine.from_settings(task_handlers(capabilities), settings)
    if definition is None:
        definition = build_sentiment_workflow(
            name=settings.WORKFLOW_NAME,
            target_language=settings.TARGET_LANGUAGE,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Sentiflow v%s starting up (workflow '%s')", __version__, definition.name)
        yield
        await engine.shutdown()
        logger.info("Sentiflow shut down")

    app = FastAPI(
        title="Sentiflow",
        description="Language-aware asynchronous sentiment analysis",
        version=__version__,
        docs_url="/docs" if include_docs else None,
        redoc_url="/redoc" if include_docs else None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.definition = definition
    app.state.gateway = RequestGateway(engine, definition)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def assign_request_id(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    from sentiflow.api.routes.health import router as health_router
    from sentiflow.api.routes.sentiment import router as sentiment_router
    app.include_router(health_router)
    app.include_router(sentiment_router)

    return app


# Default app instance for `uvicorn sentiflow.api.app:app`
app = create_app()
