"""
Syncro AI Ticket Creator - Main Application
=============================================

Turns a technician's free-text incident description into a Syncro ticket.

Modules:
- Directory: background cache of Syncro customers and contacts
- Intake: completion-service extraction, entity resolution, review
  sessions and ticket submission

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services, review session and DTOs
- Domain: Entities and value objects
- Infrastructure: Syncro and completion-service clients
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from ticket_creator.config import get_settings
from ticket_creator.context import TicketCreatorContext
from ticket_creator.core import ApplicationException, ConfigurationException

# Module Routers
from ticket_creator.intake.interfaces import directory_router, models_router, sessions_router

# Logging and middleware
from ticket_creator.shared.infrastructure.logging import setup_logging, get_logger
from ticket_creator.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler
)

logger = get_logger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Build the context (clients, directory cache, services)
    3. Start the background directory load

    SHUTDOWN:
    1. Cancel a directory load still in flight
    2. Close the HTTP clients

    Without credentials the service still starts; every endpoint that needs
    the context answers 503 with the missing settings.
    """
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Ticket Creator", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    app.state.settings = settings
    app.state.context = None
    app.state.config_error = None

    try:
        context = TicketCreatorContext.from_settings(settings)
    except ConfigurationException as e:
        logger.warning("Service not configured", extra={"missing": e.details.get("missing")})
        app.state.config_error = e
    else:
        app.state.context = context
        context.start()
        logger.info("Ticket Creator started, loading directory in background")

    yield  # Application runs here

    logger.info("Shutting down Ticket Creator")
    if app.state.context is not None:
        await app.state.context.close()
    logger.info("Ticket Creator shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Syncro AI Ticket Creator API",
    description="""
    ## AI-assisted ticket creation for Syncro

    Describe an incident in plain words; the service extracts organization,
    user, device reference, subject, issue and problem type, resolves them
    against Syncro customers and contacts, and walks a review session up to
    ticket creation.

    ### Endpoints
    - `GET /directory/status` - directory cache state
    - `POST /sessions` - open a review session
    - `POST /sessions/{id}/describe` - parse and resolve a description
    - `POST /sessions/{id}/submit` - create the ticket
    """,
    version=settings.app_version,
    debug=settings.debug,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_origin_regex=settings.cors_origin_regex,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(directory_router)
app.include_router(models_router)
app.include_router(sessions_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is up",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.4.0",
                    "environment": "development",
                    "checks": {
                        "configuration": "complete",
                        "directory": "ready (42 organizations, 310 contacts)",
                        "completion_service": "openai/gpt-4o-mini"
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check endpoint.

    Reports missing credentials and the directory cache state. The service is
    "degraded" while unconfigured or while the directory is loading.
    """
    context = request.app.state.context
    missing = settings.missing_credentials()
    checks = {
        "configuration": "complete" if not missing else f"missing: {', '.join(missing)}",
        "directory": "unavailable",
        "completion_service": "mock" if settings.mock_llm else settings.default_ai_model
    }

    healthy = context is not None
    if context is not None:
        snapshot = context.directory.status()
        if snapshot.ready:
            checks["directory"] = (
                f"ready ({snapshot.organizations} organizations, {snapshot.contacts} contacts)"
            )
            if not snapshot.complete:
                checks["directory"] += " partial"
        else:
            checks["directory"] = "loading" if snapshot.loading else "not loaded"
            healthy = False

    return {
        "status": "healthy" if healthy else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Syncro AI Ticket Creator",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "directory": {
                "prefix": "/directory",
                "endpoints": [
                    "GET /directory/status - Cache state",
                    "POST /directory/refresh - Reload organizations and contacts",
                    "GET /directory/organizations - List organizations",
                    "GET /directory/organizations/{id}/contacts - List contacts",
                    "GET /directory/contacts/search?q= - Search contacts on Syncro"
                ]
            },
            "intake": {
                "prefix": "/sessions",
                "endpoints": [
                    "GET /models - Completion models",
                    "POST /sessions - Open a review session",
                    "POST /sessions/{id}/describe - Parse and resolve a description",
                    "POST /sessions/{id}/candidates/{index} - Pick an ambiguous contact",
                    "PATCH /sessions/{id}/draft - Edit the draft",
                    "POST /sessions/{id}/submit - Create the ticket"
                ]
            }
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ticket_creator.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
