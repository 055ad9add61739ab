"""
Service dependency container.

Built once in the FastAPI lifespan from explicitly constructed clients and
stores; request handlers reach it through FastAPI's Depends().
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from meshnotify.config import Settings
    from meshnotify.services.background_tasks import BackgroundTaskTracker
    from meshnotify.services.notifier import NotificationService
    from meshnotify.services.scheduler import CleanupScheduler
    from meshnotify.stores.recipients import JsonRecipientStore


class ServiceContainer:
    """Container for the application's services."""

    def __init__(
        self,
        settings: Settings,
        notification_service: NotificationService,
        recipient_store: JsonRecipientStore,
        cleanup_scheduler: CleanupScheduler,
        task_tracker: BackgroundTaskTracker,
    ) -> None:
        self.settings = settings
        self.notification_service = notification_service
        self.recipient_store = recipient_store
        self.cleanup_scheduler = cleanup_scheduler
        self.task_tracker = task_tracker


_container: ServiceContainer | None = None


def init_container(container: ServiceContainer) -> None:
    """Install the service container (called once in FastAPI lifespan)."""
    global _container
    _container = container


def reset_container() -> None:
    """Drop the service container (lifespan shutdown and tests)."""
    global _container
    _container = None


def get_container() -> ServiceContainer:
    """Get service container.

    Raises:
        RuntimeError: If container not initialized (lifespan not running)
    """
    if _container is None:
        msg = "Service container not initialized - application lifespan may not be running"
        raise RuntimeError(msg)
    return _container
