"""
WildWatch Triage - Main Application
=====================================

Triage service for campus incident reports.

Before a report is stored it is moderated, routed to a handling office,
classified as incident or concern, and matched against similar open or
recently resolved incidents.

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services, orchestrator and DTOs
- Domain: Entities, scoring and prompts
- Infrastructure: Database, LLM client
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from wildwatch.config import settings
from wildwatch.core import ApplicationException
from wildwatch.infrastructure.database import close_database, create_tables, init_database
from wildwatch.triage.application import (
    CandidateCache,
    IncidentClassificationService,
    ModerationService,
    OfficeAssignmentService,
    SimilarityService,
    TagGenerationService,
    TriageOrchestrator,
)
from wildwatch.triage.infrastructure import LLMClientAdapter, SQLAlchemyCandidateStore
from wildwatch.triage.interfaces import triage_router
from wildwatch.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    MetricsMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from wildwatch.shared.infrastructure.grafana import init_grafana_exporter
from wildwatch.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables (degraded mode if unreachable)
    3. Initialize LLM client and Grafana exporter
    4. Build triage services and store them in app state

    SHUTDOWN:
    1. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting WildWatch Triage", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()

    database_ready = True
    try:
        await create_tables()
    except Exception as e:
        database_ready = False
        logger.warning("Database not available - running in degraded mode", extra={"error": str(e)})

    logger.info("Initializing LLM client")
    try:
        llm_client = LLMClientAdapter()
    except ApplicationException as e:
        logger.warning("LLM client initialization failed", extra={"error": e.message})
        llm_client = None

    if settings.grafana_host and settings.grafana_api_key and settings.grafana_instance_id:
        init_grafana_exporter(
            host=settings.grafana_host,
            api_key=settings.grafana_api_key,
            instance_id=settings.grafana_instance_id
        )
    else:
        logger.info("Grafana OTLP exporter not configured - metrics will not be exported")

    candidate_store = SQLAlchemyCandidateStore()
    similarity_service = SimilarityService(candidate_store, CandidateCache(candidate_store))

    orchestrator = None
    tag_generation_service = None
    if llm_client is not None:
        orchestrator = TriageOrchestrator(
            office_service=OfficeAssignmentService(llm_client),
            classification_service=IncidentClassificationService(llm_client),
            moderation_service=ModerationService(llm_client),
            similarity_service=similarity_service
        )
        tag_generation_service = TagGenerationService(llm_client)
    else:
        logger.warning("Triage service not available - no LLM client")

    app.state.settings = settings
    app.state.database_ready = database_ready
    app.state.llm_client = llm_client
    app.state.similarity_service = similarity_service
    app.state.orchestrator = orchestrator
    app.state.tag_generation_service = tag_generation_service

    logger.info("WildWatch Triage started successfully")

    yield

    # === SHUTDOWN ===
    logger.info("Shutting down WildWatch Triage")
    await close_database()
    logger.info("WildWatch Triage shutdown complete")


app = FastAPI(
    title="WildWatch Triage API",
    description="""
    ## Incident triage for the campus reporting platform

    - `POST /incidents/analyze` - Moderate, route, classify and match a report
    - `POST /incidents/similar` - Similar incidents for a tag set
    - `POST /incidents/similar/cache/invalidate` - Refresh the candidate cache
    - `POST /tags` - Get or create category tags
    - `GET /offices` - Handling offices
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(CorrelationIDMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(triage_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "database": "connected",
                        "llm_client": "available",
                        "similarity_cache": "12 candidates"
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Reports database reachability at startup, LLM availability and the
    current size of the similarity candidate cache.
    """
    state = request.app.state
    similarity_service = getattr(state, "similarity_service", None)
    database_ready = getattr(state, "database_ready", False)
    llm_available = getattr(state, "orchestrator", None) is not None

    checks = {
        "database": "connected" if database_ready else "unavailable",
        "llm_client": "available" if llm_available else "not_configured",
        "similarity_cache": (
            f"{similarity_service.cache.size} candidates" if similarity_service else "not_initialized"
        )
    }

    return {
        "status": "healthy" if database_ready and llm_available else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "WildWatch Triage",
        "version": settings.app_version,
        "architecture": "Clean Architecture",
        "docs": "/docs",
        "health": "/health",
        "endpoints": [
            "POST /incidents/analyze - Triage an incident report",
            "POST /incidents/similar - Find similar incidents",
            "POST /incidents/similar/cache/invalidate - Invalidate candidate cache",
            "POST /tags - Get or create tags",
            "GET /offices - List handling offices"
        ]
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "wildwatch.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
