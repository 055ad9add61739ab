import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

import httpx
from fastapi import FastAPI

from meshnotify.api import health, recipients, triggers
from meshnotify.config import Settings, load_settings
from meshnotify.logging_config import configure_json_logging
from meshnotify.middleware.trigger_id import TriggerIDMiddleware
from meshnotify.services.background_tasks import BackgroundTaskTracker
from meshnotify.services.cleanup import CleanupJob
from meshnotify.services.container import (
    ServiceContainer,
    init_container,
    reset_container,
)
from meshnotify.services.dispatcher import FanOutDispatcher
from meshnotify.services.fcm import FcmTransport
from meshnotify.services.notifier import NotificationService
from meshnotify.services.pruner import RegistryPruner
from meshnotify.services.scheduler import CleanupScheduler
from meshnotify.stores import (
    JsonDeviceStore,
    JsonLocationStore,
    JsonRecipientStore,
    JsonUserDirectory,
)
from meshnotify.version import get_version

logger = logging.getLogger(__name__)


def build_container(settings: Settings, http_client: httpx.AsyncClient) -> ServiceContainer:
    """Wire stores, transport and services from settings."""
    recipient_store = JsonRecipientStore(settings.resolved_path("recipients"))

    transport = FcmTransport(
        project_id=settings.fcm_project_id,
        access_token=settings.fcm_access_token,
        base_url=settings.fcm_base_url,
        timeout_seconds=settings.fcm_timeout_seconds,
        client=http_client,
    )
    if not transport.configured:
        logger.warning("FCM transport not configured; every send will fail as transient")

    dispatcher = FanOutDispatcher(
        transport=transport,
        pruner=RegistryPruner(
            recipient_store, max_concurrency=settings.prune_max_concurrency
        ),
        max_concurrency=settings.fanout_max_concurrency,
    )

    notification_service = NotificationService(
        devices=JsonDeviceStore(settings.resolved_path("devices")),
        locations=JsonLocationStore(settings.resolved_path("locations")),
        recipients=recipient_store,
        dispatcher=dispatcher,
        title=settings.notification_title,
        icon_url=settings.notification_icon_url,
    )

    task_tracker = BackgroundTaskTracker()
    cleanup_job = CleanupJob(
        JsonUserDirectory(settings.resolved_path("users")),
        max_concurrency=settings.cleanup_max_concurrency,
        inactive_after=timedelta(days=settings.cleanup_inactive_days),
        page_size=settings.cleanup_page_size,
    )
    cleanup_scheduler = CleanupScheduler(
        cleanup_job,
        task_tracker,
        cron=settings.cleanup_cron,
        timezone=settings.cleanup_timezone,
        tick_seconds=settings.cleanup_tick_seconds,
        enabled=settings.cleanup_enabled,
    )

    return ServiceContainer(
        settings=settings,
        notification_service=notification_service,
        recipient_store=recipient_store,
        cleanup_scheduler=cleanup_scheduler,
        task_tracker=task_tracker,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application startup and shutdown."""
    settings = load_settings()
    configure_json_logging(log_level=settings.log_level, use_json=settings.log_json)
    logger.info("Starting meshnotify", extra={"version": get_version()})

    async with httpx.AsyncClient(timeout=settings.fcm_timeout_seconds) as http_client:
        container = build_container(settings, http_client)
        init_container(container)
        container.cleanup_scheduler.start()

        logger.info("meshnotify ready", extra={"environment": settings.environment})

        yield

        logger.info("meshnotify shutting down")
        await container.cleanup_scheduler.stop()
        reset_container()


app = FastAPI(
    title="meshnotify",
    description="Push notification fan-out for I²DS sensor networks",
    version=get_version(),
    lifespan=lifespan,
)

app.add_middleware(TriggerIDMiddleware)

app.include_router(triggers.router, tags=["triggers"])
app.include_router(recipients.router, tags=["recipients"])
app.include_router(health.router)
