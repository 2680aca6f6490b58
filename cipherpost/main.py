"""
FastAPI Application Entry Point.
Initializes the FastAPI app with middleware, CORS, error handling and routes.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from cipherpost import __version__
from cipherpost.api.v1 import groups, message_requests, messages, push_subscriptions, users
from cipherpost.config import settings
from cipherpost.core.database import AsyncSessionLocal, engine
from cipherpost.core.exceptions import MessagingError
from cipherpost.core.logging_config import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    configure_logging()
    logger.info("Starting Cipherpost server (%s)", settings.environment)
    if not settings.push_enabled:
        logger.warning("No push gateway configured, notifications are disabled")
    yield
    # Shutdown
    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title="Cipherpost Server",
    description="Key-blind messaging backend: contact requests, groups and per-recipient fanout",
    version=__version__,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    lifespan=lifespan,
)


# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MessagingError)
async def messaging_error_handler(request: Request, exc: MessagingError):
    """Render domain errors with their machine-readable code."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
        headers=exc.headers,
    )


# Health Check Endpoints
@app.get("/health", tags=["Health"])
async def health_check():
    """Basic health check endpoint."""
    return JSONResponse(
        status_code=200,
        content={
            "status": "healthy",
            "environment": settings.environment,
        }
    )


@app.get("/health/ready", tags=["Health"])
async def readiness_check():
    """
    Readiness check endpoint.
    Verifies database connectivity.
    """
    checks = {
        "database": False,
        "push": "configured" if settings.push_enabled else "disabled",
    }

    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
            checks["database"] = True
    except Exception:
        logger.exception("Readiness check: database unavailable")

    status_code = 200 if checks["database"] else 503

    return JSONResponse(
        status_code=status_code,
        content={
            "status": "ready" if checks["database"] else "not ready",
            "checks": checks,
        }
    )


# Include API routers
app.include_router(
    users.router,
    prefix="/api/v1/users",
    tags=["Users"]
)

app.include_router(
    message_requests.router,
    prefix="/api/v1/message-requests",
    tags=["Message Requests"]
)

app.include_router(
    groups.router,
    prefix="/api/v1/groups",
    tags=["Groups"]
)

app.include_router(
    messages.router,
    prefix="/api/v1/messages",
    tags=["Messages"]
)

app.include_router(
    push_subscriptions.router,
    prefix="/api/v1/push-subscriptions",
    tags=["Push Subscriptions"]
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "cipherpost.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
