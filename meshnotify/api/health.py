"""Health check endpoints."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends

from meshnotify.dependencies import get_cleanup_scheduler, get_task_tracker
from meshnotify.models.api import CleanupStatus, ReadinessResponse
from meshnotify.services.background_tasks import BackgroundTaskTracker
from meshnotify.services.scheduler import CleanupScheduler
from meshnotify.version import get_version

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe. No authentication required."""
    return {"status": "ok"}


@router.get("/health/ready", response_model=ReadinessResponse)
async def health_ready(
    scheduler: CleanupScheduler = Depends(get_cleanup_scheduler),
    tracker: BackgroundTaskTracker = Depends(get_task_tracker),
) -> ReadinessResponse:
    """Readiness probe with cleanup schedule and background task status."""
    scheduler_status = asdict(scheduler.get_status())
    scheduler_status.pop("last_report", None)
    background_tasks = await tracker.get_status()

    return ReadinessResponse(
        status="degraded" if background_tasks["failed_tasks"] else "ok",
        version=get_version(),
        cleanup=CleanupStatus(**scheduler_status),
        background_tasks=background_tasks,
    )
