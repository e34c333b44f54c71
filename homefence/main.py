"""FastAPI application entry point for Homefence."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from homefence.api.exception_handlers import register_exception_handlers
from homefence.api.middleware import RequestIDMiddleware
from homefence.api.routes import account, alerts, geocode, location, members, system, tracking
from homefence.core import close_db, get_session, get_settings, init_db
from homefence.core.logging import get_logger, setup_logging
from homefence.services.accounts import ensure_admin_accounts
from homefence.services.alert_emitter import get_alert_emitter
from homefence.services.notification import get_notification_service

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifecycle - startup and shutdown events."""
    # Initialize logging first (before any other initialization)
    setup_logging()

    settings = get_settings()
    await init_db()
    logger.info("Database initialized")

    async with get_session() as session:
        await ensure_admin_accounts(session, settings)

    logger.info(f"{settings.app_name} {settings.app_version} started")

    yield

    # Let in-flight alert notifications finish before tearing down
    emitter = get_alert_emitter()
    if emitter.pending:
        logger.info(f"Waiting for {emitter.pending} notification deliveries")
    await emitter.drain()
    await get_notification_service(settings).close()
    await close_db()
    logger.info("Database connections closed")


def create_app() -> FastAPI:
    """Build the FastAPI application with middleware, handlers and routers."""
    settings = get_settings()

    app = FastAPI(
        title=f"{settings.app_name} API",
        description="Home geofencing: members, tracking links and entry/exit alerts",
        version=settings.app_version,
        lifespan=lifespan,
    )

    # Add request ID middleware for log correlation
    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(account.router)
    app.include_router(alerts.router)
    app.include_router(geocode.router)
    app.include_router(location.router)
    app.include_router(members.router)
    app.include_router(system.router)
    app.include_router(tracking.router)

    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "homefence.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
