"""
EventFlow Reservation API - Main Application Entry Point

Seat inventory reservation engine:
- Per-event exclusive locking (row locks or optimistic versioning)
- Atomic reserve / cancel units of work that never oversell
- Fire-and-forget confirmation emails after commit
- Redis caching of the display-only availability view
- Structured logging with request correlation
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from eventflow.api.errors import register_exception_handlers
from eventflow.api.middleware import RequestLoggingMiddleware
from eventflow.api.router import api_router
from eventflow.core.config import Settings, get_settings
from eventflow.core.logging import get_logger, setup_logging
from eventflow.core.metrics import metrics_endpoint
from eventflow.db.session import Database
from eventflow.services.cache_service import close_redis, get_cache_stats, get_redis
from eventflow.services.cancellation import CancellationCompensator
from eventflow.services.interfaces.event_lock import EventLockStrategy
from eventflow.services.notifications import EmailSender, NotificationDispatcher, build_email_sender
from eventflow.services.reservation import ReservationCoordinator
from eventflow.services.strategy_factory import get_lock_strategy

logger = get_logger(__name__)


def build_services(
    app: FastAPI,
    settings: Settings,
    database: Optional[Database] = None,
    email_sender: Optional[EmailSender] = None,
    locks: Optional[EventLockStrategy] = None,
) -> None:
    """Wire the connection pool, lock strategy and coordinators onto app.state."""
    database = database or Database.from_settings(settings)
    locks = locks or get_lock_strategy(settings=settings)

    notifier = None
    if settings.NOTIFICATIONS_ENABLED:
        notifier = NotificationDispatcher(
            email_sender or build_email_sender(settings),
            max_queue_size=settings.NOTIFICATION_QUEUE_SIZE,
        )

    app.state.settings = settings
    app.state.db = database
    app.state.locks = locks
    app.state.notifier = notifier
    app.state.reservations = ReservationCoordinator(database, locks, notifier=notifier)
    app.state.cancellations = CancellationCompensator(database, locks)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    settings: Settings = app.state.settings
    setup_logging(settings)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    if getattr(app.state, "db", None) is None:
        build_services(app, settings)
    logger.info("lock_strategy_selected", strategy=app.state.locks.name)

    if app.state.notifier is not None:
        await app.state.notifier.start()

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    yield

    if app.state.notifier is not None:
        await app.state.notifier.stop()
    await close_redis()
    await app.state.db.dispose()
    logger.info("application_shutdown")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Seat reservation API with per-event locking and oversell protection",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.db = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)
    app.include_router(api_router)

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint for Docker and load balancers."""
        database: Optional[Database] = request.app.state.db
        db_status = "unavailable"
        if database is not None:
            try:
                async with database.session() as session:
                    await session.execute(text("SELECT 1"))
                db_status = "connected"
            except SQLAlchemyError as e:
                logger.error("health_check_database_failed", error=str(e))
                db_status = "error"

        return {
            "status": "healthy" if db_status == "connected" else "degraded",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "database": db_status,
            "lock_strategy": request.app.state.locks.name if database is not None else None,
            "cache": await get_cache_stats(),
        }

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        return metrics_endpoint()

    @app.get("/", tags=["Root"])
    async def root():
        return {
            "message": f"Welcome to {settings.APP_NAME}",
            "version": settings.APP_VERSION,
            "docs": "/docs",
        }

    return app


app = create_app()
