"""
FoodBridge FastAPI Application - Main Entry Point
REST API and live channel for the surplus food donation platform.

Features:
- JWT authentication for donors, receivers, volunteers and admins
- Donation lifecycle: create, accept, pick up, deliver, cancel
- Smart matching of open donations to receivers
- Volunteer pickup and live delivery tracking
- Feedback, points and badges
- Notification inbox with WebSocket push
- Impact statistics and admin oversight
- Auto-generated OpenAPI documentation
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator
from uuid import UUID

from fastapi import FastAPI, Query, Request, WebSocket, WebSocketDisconnect, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from foodbridge.api.config import get_settings
from foodbridge.api.dependencies import decode_access_token
from foodbridge.api.middleware import LoggingMiddleware, RequestIDMiddleware
from foodbridge.api.realtime import ConnectionManager
from foodbridge.api.routers import (
    auth,
    donations,
    volunteers,
    notifications,
    users,
    analytics,
    admin,
)
from foodbridge.core.errors import (
    DonationError,
    Forbidden,
    InvalidState,
    NotFound,
    TransientInfraError,
    ValidationError,
)
from foodbridge.core.events import EventBus
from foodbridge.core.notifications import DonationNotifier, NotificationDispatcher
from foodbridge.core.ports import SystemClock
from foodbridge.shared.database import (
    check_database_health,
    close_database,
    get_session_context,
    init_database,
)
from foodbridge.shared.models import User
from foodbridge.shared.repositories import SqlNotificationStore, load_active_volunteer_ids

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFound: status.HTTP_404_NOT_FOUND,
    Forbidden: status.HTTP_403_FORBIDDEN,
    InvalidState: status.HTTP_409_CONFLICT,
    TransientInfraError: status.HTTP_503_SERVICE_UNAVAILABLE,
}

# Closes a socket whose token does not identify an active user
WS_POLICY_VIOLATION = 1008


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_event_bus(manager: ConnectionManager) -> EventBus:
    """Event bus with the notification subscriber attached."""
    bus = EventBus(timeout=settings.EVENT_HANDLER_TIMEOUT_SECONDS, run_in_background=True)

    dispatcher = NotificationDispatcher(
        SqlNotificationStore(),
        manager if settings.FEATURE_REALTIME_ENABLED else None,
        SystemClock(),
        timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
        push_timeout=settings.PUSH_TIMEOUT_SECONDS,
        enabled=settings.FEATURE_NOTIFICATIONS_ENABLED,
        fanout_concurrency=settings.NOTIFICATION_FANOUT_CONCURRENCY,
    )
    bus.subscribe(DonationNotifier(dispatcher, load_active_volunteer_ids))
    return bus


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info("🚀 Starting FoodBridge API...")
    try:
        await init_database()
        logger.info("✅ Database initialized successfully")

        health = await check_database_health()
        logger.info(f"📊 Database health: {health}")

        logger.info("🎉 FoodBridge API is ready!")
    except Exception as e:
        logger.error(f"❌ Startup failed: {e}")
        raise

    yield

    # Shutdown
    logger.info("👋 Shutting down FoodBridge API...")
    try:
        await app.state.event_bus.drain()
        await app.state.connection_manager.close_all()
        await close_database()
        logger.info("✅ Database connections closed")
    except Exception as e:
        logger.error(f"❌ Shutdown error: {e}")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description=(
        "REST API for FoodBridge, connecting surplus food donors with receivers "
        "and volunteer drivers.\n\n"
        "Features:\n"
        "- 🔐 JWT authentication\n"
        "- 🍱 Donation lifecycle with race-safe transitions\n"
        "- 🎯 Smart matching by distance, freshness, quantity, health and urgency\n"
        "- 🚴 Volunteer pickup and live tracking\n"
        "- 🏅 Points, badges and leaderboard\n"
        "- 🔔 Notifications with WebSocket push\n"
        "- 🌍 Impact statistics\n\n"
        "Built with FastAPI, SQLAlchemy and PostgreSQL."
    ),
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Built eagerly so in-process clients that skip lifespan still publish events
app.state.connection_manager = ConnectionManager()
app.state.event_bus = build_event_bus(app.state.connection_manager)

# ============================================================================
# Middleware Configuration
# ============================================================================

# CORS - Allow frontend access
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

# GZip compression for responses
app.add_middleware(GZipMiddleware, minimum_size=1000)

# Request ID tracking
app.add_middleware(RequestIDMiddleware)

# Logging middleware
app.add_middleware(LoggingMiddleware)


# ============================================================================
# Exception Handlers
# ============================================================================

@app.exception_handler(DonationError)
async def donation_error_handler(request: Request, exc: DonationError) -> JSONResponse:
    """Render domain rejections with their status code."""
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    if status_code >= 500:
        logger.warning(f"{request.method} {request.url.path} unavailable: {exc.message}")

    content = exc.to_dict()
    content["timestamp"] = _timestamp()
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "http_error",
            "message": exc.detail,
            "timestamp": _timestamp(),
        },
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors."""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        })

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "validation_error",
            "message": "Request validation failed",
            "details": errors,
            "timestamp": _timestamp(),
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected errors."""
    logger.error(f"Unexpected error: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred. Please contact support.",
            "timestamp": _timestamp(),
        },
    )


# ============================================================================
# Router Registration
# ============================================================================

# Authentication endpoints
app.include_router(
    auth.router,
    prefix="/api/auth",
    tags=["Authentication"],
)

# Donation lifecycle
app.include_router(
    donations.router,
    prefix="/api/donations",
    tags=["Donations"],
)

# Volunteer pickups
app.include_router(
    volunteers.router,
    prefix="/api/volunteers",
    tags=["Volunteers"],
)

# Notifications
app.include_router(
    notifications.router,
    prefix="/api/notifications",
    tags=["Notifications"],
)

# Dashboards & leaderboard
app.include_router(
    users.router,
    prefix="/api/users",
    tags=["Users"],
)

# Matching & impact
app.include_router(
    analytics.router,
    prefix="/api/analytics",
    tags=["Analytics"],
)

# Admin
app.include_router(
    admin.router,
    prefix="/api/admin",
    tags=["Admin"],
)


# ============================================================================
# Live Channel
# ============================================================================

async def _authenticate_socket(token: str) -> UUID:
    """User id for an active account, or ValueError."""
    user_id = decode_access_token(token)

    async with get_session_context() as session:
        user = await session.get(User, user_id)

    if user is None or not user.is_active:
        raise ValueError("Inactive or unknown user")
    return user_id


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: str = Query(...)) -> None:
    """Per-user push channel; the server sends notification frames."""
    try:
        user_id = await _authenticate_socket(token)
    except ValueError as e:
        logger.warning(f"Rejected WebSocket connection: {e}")
        await websocket.close(code=WS_POLICY_VIOLATION)
        return

    manager: ConnectionManager = websocket.app.state.connection_manager
    await manager.connect(user_id, websocket)
    try:
        while True:
            # Inbound frames only keep the connection alive
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(user_id, websocket)


# ============================================================================
# Health Check Endpoints
# ============================================================================

@app.get(
    "/",
    summary="Root endpoint",
    description="Welcome message and API information",
)
async def root() -> dict:
    """Root endpoint - API information."""
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "operational",
        "documentation": "/docs",
        "timestamp": _timestamp(),
    }


@app.get(
    "/health",
    summary="Health check",
    description="Check API and database health status",
    tags=["Health"],
)
async def health_check() -> dict:
    """Health check endpoint."""
    db_health = await check_database_health()

    return {
        "status": db_health["status"],
        "timestamp": _timestamp(),
        "database": db_health,
        "api": {
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
        },
    }


@app.get(
    "/ready",
    summary="Readiness check",
    description="Check if API is ready to serve traffic",
    tags=["Health"],
)
async def readiness_check():
    """Readiness check for orchestrators."""
    db_health = await check_database_health()

    if db_health["status"] == "healthy":
        return {"status": "ready", "timestamp": _timestamp()}

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "not_ready",
            "error": db_health.get("error"),
            "timestamp": _timestamp(),
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "foodbridge.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
