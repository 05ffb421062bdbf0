from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from pchart.config import settings
from pchart.api.v1.router import api_router
from pchart.core.events import event_bus, WebhookForwarder, ALL_EVENTS
from pchart.database import async_session_factory
from pchart.services.errors import PChartError


logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create tables, seed operation steps and the first admin
    - Subscribe the webhook forwarder when EVENT_WEBHOOK_URL is set

    Shutdown:
    - Wait for in-flight event deliveries
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    from pchart.database_init import startup_initialization
    await startup_initialization()

    if settings.EVENT_WEBHOOK_URL:
        event_bus.subscribe(
            ALL_EVENTS,
            WebhookForwarder(settings.EVENT_WEBHOOK_URL, timeout=settings.EVENT_WEBHOOK_TIMEOUT),
        )
        logger.info(f"Forwarding events to {settings.EVENT_WEBHOOK_URL}")

    yield

    await event_bus.drain()
    logger.info("Shutting down...")


OPENAPI_TAGS = [
    {"name": "Authentication", "description": "JWT bearer authentication"},
    {"name": "Users", "description": "User administration (admin only)"},
    {"name": "Production Orders", "description": "Production orders and their operations"},
    {"name": "Operation Steps", "description": "Configured manufacturing sequence"},
    {"name": "Operation Lines", "description": "Line numbers allowed per operation"},
    {"name": "Locks", "description": "Advisory edit lock per production order"},
    {"name": "Operations", "description": "Start and complete operations"},
    {"name": "Operation Defects", "description": "Per-operation defect ledger"},
    {"name": "Defect Edit Requests", "description": "Approval workflow for completed operations"},
    {"name": "Master Defects", "description": "Defect catalog"},
    {"name": "Standard Costs", "description": "Standard cost per item"},
    {"name": "Notifications", "description": "In-app notifications"},
    {"name": "Audit Logs", "description": "State change history (admin only)"},
]

API_DESCRIPTION = """
## P-Chart API

Manufacturing quality control: production orders move through a fixed
sequence of operations, operators record rework / no-good / replacement
counts per operation, and output quantities cascade from one operation to
the next at completion.

### Error Codes

| Code | Description |
|------|-------------|
| 401 | Unauthorized - Invalid/expired token |
| 403 | Forbidden - Role not allowed |
| 404 | Not Found - Resource doesn't exist |
| 409 | Conflict - Duplicate or invalid state transition |
| 422 | Unprocessable Entity - Business rule violation |
| 423 | Locked - Production order is being edited by another user |
"""

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


@app.exception_handler(PChartError)
async def domain_exception_handler(request: Request, exc: PChartError):
    """Render domain errors with their status code and details."""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.message,
            "type": type(exc).__name__,
            "details": exc.details,
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "type": type(exc).__name__,
            "path": str(request.url.path),
        },
    )


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError
    from datetime import datetime, timezone

    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown"
        }
    }

    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["checks"]["database"] = "connected"
    except SQLAlchemyError as e:
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
    }
