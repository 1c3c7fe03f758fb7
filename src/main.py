"""Yojana Mitra FastAPI application entry point.

Creates the FastAPI app, maps engine errors to HTTP status codes, includes
routers, and manages the lifecycle of the backend services (store,
catalog, reasoning collaborator, conversation manager, orchestrator).
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator, Final

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from config.settings import settings
from src.api.router import api_router
from src.errors import (
    ConcurrentModification,
    ContextExpired,
    EngineError,
    InvalidCriteria,
    InvalidTransition,
    MissingExplanation,
    RecordNotFound,
    UpstreamUnavailable,
    ValidationError,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------


def _configure_logging() -> None:
    """Set up structlog with JSON or console rendering based on settings."""
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            settings.log_level,
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup and shutdown of the engine services.

    On startup:
      1. Connect the versioned store (Redis when configured, else in-memory)
      2. Load and validate the scheme catalog
      3. Create the reasoning collaborator when a GCP project is set
      4. Create profile, conversation and application services
      5. Create the MatchingOrchestrator
      6. Store everything on ``app.state``

    On shutdown the store connection is closed.
    """
    _configure_logging()
    logger.info(
        "app.startup",
        env=settings.env,
        gcp_project=settings.gcp_project_id,
        region=settings.gcp_region,
    )

    app.state.start_time = time.time()

    # -- 1. Store -----------------------------------------------------------
    from src.services.store import VersionedStore

    store = await VersionedStore.connect(settings.redis_url, namespace=settings.store_namespace)
    app.state.store = store

    # -- 2. Scheme catalog --------------------------------------------------
    from src.services.catalog import SchemeCatalog

    catalog = SchemeCatalog.from_file(settings.scheme_data_path)
    app.state.catalog = catalog
    logger.info("app.catalog_loaded", count=len(catalog))

    # -- 3. Reasoning collaborator (Vertex AI / Gemini) ---------------------
    from src.services.reasoning import ReasoningService

    reasoning: ReasoningService | None = None
    if settings.reasoning_enabled:
        reasoning = ReasoningService(
            project_id=settings.gcp_project_id,
            region=settings.gcp_region,
            model_name=settings.vertex_ai_model,
            timeout_seconds=settings.reasoning_timeout_seconds,
            max_attempts=settings.reasoning_max_attempts,
            backoff_seconds=settings.reasoning_backoff_seconds,
        )
        logger.info("app.reasoning_initialised", model=settings.vertex_ai_model)
    else:
        logger.warning(
            "app.reasoning_disabled",
            note="GCP project not set; relevance uses the fallback strategy",
        )
    app.state.reasoning = reasoning

    # -- 4. Profiles, conversations, applications ---------------------------
    from src.services.conversation import ConversationContextManager
    from src.services.lifecycle import ApplicationLifecycleTracker, ApplicationRepository
    from src.services.profiles import ProfileRepository

    app.state.profiles = ProfileRepository(store.scoped("profile:"))
    app.state.conversations = ConversationContextManager(
        store.scoped("conversation:"),
        ttl=timedelta(hours=settings.context_ttl_hours),
        max_messages=settings.context_max_messages,
    )

    # -- 5. Orchestrator ----------------------------------------------------
    from src.pipeline.orchestrator import MatchingOrchestrator
    from src.services.relevance import get_strategy

    app.state.orchestrator = MatchingOrchestrator(
        catalog=catalog,
        tracker=ApplicationLifecycleTracker(),
        applications=ApplicationRepository(store.scoped("application:")),
        reasoning=reasoning,
        fallback=get_strategy(settings.fallback_relevance),
    )
    logger.info("app.startup_complete", fallback_relevance=settings.fallback_relevance)

    yield

    # -- Shutdown -----------------------------------------------------------
    logger.info("app.shutdown_start")
    await store.close()
    logger.info("app.shutdown_complete")


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Yojana Mitra API",
    description=(
        "Eligibility and matching engine for Indian government welfare "
        "schemes: explainable eligibility decisions, ranked scheme "
        "discovery and application tracking."
    ),
    version="0.1.0",
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

# -- CORS middleware --------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:8000", "http://127.0.0.1:8000"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS", "HEAD"],
    allow_headers=["Content-Type", "Accept"],
)


# -- Error mapping ----------------------------------------------------------

# Most specific first; the first isinstance match wins.
_ERROR_STATUS: Final[tuple[tuple[type[EngineError], int], ...]] = (
    (RecordNotFound, 404),
    (ConcurrentModification, 409),
    (InvalidTransition, 409),
    (ContextExpired, 410),
    (ValidationError, 422),
    (InvalidCriteria, 422),
    (MissingExplanation, 422),
    (UpstreamUnavailable, 503),
)


def status_for(exc: EngineError) -> int:
    for error_cls, status_code in _ERROR_STATUS:
        if isinstance(exc, error_cls):
            return status_code
    return 500


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError) -> ORJSONResponse:
    status_code = status_for(exc)
    log = logger.warning if status_code < 500 else logger.error
    log(
        "app.engine_error",
        path=request.url.path,
        code=exc.code,
        status_code=status_code,
        message=exc.message,
    )
    return ORJSONResponse(
        status_code=status_code,
        content={"error": exc.code, "detail": exc.message},
    )


# -- Include routers -------------------------------------------------------
app.include_router(api_router)


@app.get("/api", response_class=ORJSONResponse)
async def api_info() -> dict:
    """API information endpoint."""
    return {
        "name": "Yojana Mitra API",
        "version": app.version,
        "docs": "/docs",
        "health": "/api/v1/health",
        "endpoints": {
            "eligibility": "/api/v1/eligibility",
            "schemes": "/api/v1/schemes",
            "profile": "/api/v1/profile",
            "conversations": "/api/v1/conversations",
            "applications": "/api/v1/applications",
            "health": "/api/v1/health",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("src.main:app", host=settings.api_host, port=settings.api_port)
