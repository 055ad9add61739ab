from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from meshnotify.services.container import ServiceContainer, get_container

if TYPE_CHECKING:
    from meshnotify.services.background_tasks import BackgroundTaskTracker
    from meshnotify.services.notifier import NotificationService
    from meshnotify.services.scheduler import CleanupScheduler
    from meshnotify.stores.recipients import JsonRecipientStore

security = HTTPBearer()


async def get_service_container() -> ServiceContainer:
    """Get the service container via dependency injection."""
    return get_container()


async def verify_token(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    container: ServiceContainer = Depends(get_service_container),
) -> None:
    """Verify the bearer token matches the configured auth token."""
    if credentials.credentials != container.settings.auth_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
        )


async def get_notification_service(
    container: ServiceContainer = Depends(get_service_container),
) -> NotificationService:
    """Get notification service via dependency injection."""
    return container.notification_service


async def get_recipient_store(
    container: ServiceContainer = Depends(get_service_container),
) -> JsonRecipientStore:
    """Get recipient store via dependency injection."""
    return container.recipient_store


async def get_cleanup_scheduler(
    container: ServiceContainer = Depends(get_service_container),
) -> CleanupScheduler:
    """Get cleanup scheduler via dependency injection."""
    return container.cleanup_scheduler


async def get_task_tracker(
    container: ServiceContainer = Depends(get_service_container),
) -> BackgroundTaskTracker:
    """Get background task tracker via dependency injection."""
    return container.task_tracker
