"""Main FastAPI application for the household task tracker."""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from family_tasks import __version__
from family_tasks.config import Settings, get_settings
from family_tasks.db.config import create_db_engine
from family_tasks.db.init import init_db
from family_tasks.errors import ConfigurationError, NotificationError
from family_tasks.middleware.cors import add_cors_middleware
from family_tasks.routers import notifications_router, tasks_router, users_router
from family_tasks.services.gateway import MessageGateway, TwilioGateway
from family_tasks.services.notification_ledger import NotificationLedger
from family_tasks.services.notification_service import NotificationService
from family_tasks.services.recurring_task_service import RecurringTaskService
from family_tasks.services.reminder_scheduler import ReminderScheduler
from family_tasks.services.task_service import TaskService
from family_tasks.utils.logger import configure_logging
from family_tasks.utils.metrics import metrics_collector

logger = logging.getLogger(__name__)


def build_gateway(settings: Settings) -> Optional[MessageGateway]:
    """
    Build the messaging gateway client.

    A misconfigured gateway is fatal when the scheduler is enabled; with the
    scheduler off the app starts without one and dispatch reports the
    configuration error per message.
    """
    try:
        return TwilioGateway.from_settings(settings)
    except ConfigurationError as e:
        if settings.scheduler_enabled:
            raise
        logger.warning(f"Starting without a messaging gateway: {e.message}")
        return None


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    gateway: Optional[MessageGateway] = None,
) -> FastAPI:
    """
    Create the FastAPI application and wire its services.

    Args:
        settings: Settings to use; read from the environment when omitted
        engine: Database engine; built from ``settings.database_url`` when omitted
        gateway: Messaging gateway; built from settings at startup when omitted

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    engine = engine or create_db_engine(settings.database_url)

    app = FastAPI(
        title="Family Tasks API",
        description="Household task tracker with SMS/WhatsApp reminders",
        version=__version__,
    )
    add_cors_middleware(app, settings)

    task_service = TaskService(engine)
    ledger = NotificationLedger(engine)
    notification_service = NotificationService(gateway, ledger, task_service, settings, metrics_collector)

    app.state.settings = settings
    app.state.engine = engine
    app.state.task_service = task_service
    app.state.ledger = ledger
    app.state.notification_service = notification_service
    app.state.recurring_service = RecurringTaskService(task_service, settings, metrics_collector)
    app.state.scheduler = None

    @app.exception_handler(NotificationError)
    async def notification_error_handler(request: Request, exc: NotificationError):
        return JSONResponse(
            status_code=exc.status or 500,
            content={"detail": exc.message, "code": exc.code},
        )

    @app.on_event("startup")
    async def startup_event():
        """Create tables, connect the gateway and start the reminder scheduler."""
        init_db(engine)

        if notification_service.gateway is None:
            notification_service.gateway = build_gateway(settings)

        if settings.scheduler_enabled:
            scheduler = ReminderScheduler(task_service, ledger, notification_service, settings, metrics_collector)
            scheduler.start()
            app.state.scheduler = scheduler
        else:
            logger.info("Reminder scheduler disabled")

        logger.info("Application startup complete")

    @app.on_event("shutdown")
    async def shutdown_event():
        scheduler = app.state.scheduler
        if scheduler is not None:
            scheduler.stop()
            app.state.scheduler = None

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        scheduler = app.state.scheduler
        return {
            "status": "healthy",
            "version": __version__,
            "gateway": notification_service.gateway is not None,
            "scheduler": scheduler is not None,
        }

    @app.get("/metrics")
    async def get_metrics():
        return metrics_collector.get_metrics()

    app.include_router(users_router, prefix="/api")
    app.include_router(tasks_router, prefix="/api")
    app.include_router(notifications_router, prefix="/api")

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8000, log_level=settings.log_level.lower())
