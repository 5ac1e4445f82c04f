import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import timedelta

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.application.use_cases.notifications import (
    NotificationEventPublisher,
    NotificationService,
    run_cleanup_periodically,
)
from app.config import Settings, get_settings
from app.infrastructure.database import build_engine, build_session_factory, initialize_database
from app.infrastructure.notifications import NotificationConnectionManager, NotificationPublisher
from app.infrastructure.repositories import NotificationRepository
from app.interfaces.api.routes import register_routes
from app.utils import configure_app_timezone

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application and wire the notification components."""

    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)
    configure_app_timezone(settings.app_timezone)

    engine = build_engine(settings.database_url)
    session_factory = build_session_factory(engine)
    manager = NotificationConnectionManager()
    publisher = NotificationPublisher(manager)
    service = NotificationService(
        NotificationRepository(session_factory),
        publisher,
        recent_window=timedelta(hours=settings.notification_recent_window_hours),
        retention=timedelta(days=settings.notification_retention_days),
        archive_after=timedelta(days=settings.notification_archive_after_days),
        default_page_size=settings.notification_page_size,
        max_page_size=settings.notification_max_page_size,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create the schema and bind the event loop on startup; release resources on shutdown."""

        initialize_database(engine)
        publisher.bind_loop(asyncio.get_running_loop())

        cleanup_task = None
        if settings.notification_cleanup_interval_minutes > 0:
            cleanup_task = asyncio.create_task(
                run_cleanup_periodically(
                    service,
                    interval=timedelta(minutes=settings.notification_cleanup_interval_minutes),
                )
            )
            logger.info(
                "Scheduled notification cleanup every %s minutes",
                settings.notification_cleanup_interval_minutes,
            )
        try:
            yield
        finally:
            if cleanup_task is not None:
                cleanup_task.cancel()
                with suppress(asyncio.CancelledError):
                    await cleanup_task
            publisher.bind_loop(None)
            engine.dispose()

    app = FastAPI(title="Notifications API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.notification_manager = manager
    app.state.notification_publisher = publisher
    app.state.notification_service = service
    app.state.notification_events = NotificationEventPublisher(service)

    register_routes(app)
    return app


app = create_app()
