"""Webhook endpoints invoked by the trigger source."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, HTTPException, status

from meshnotify.dependencies import (
    get_cleanup_scheduler,
    get_notification_service,
    verify_token,
)
from meshnotify.exceptions import MeshNotifyError
from meshnotify.models.api import CleanupResponse, DispatchResponse
from meshnotify.models.events import DeviceCreatedEvent, InfoUpdateEvent, StateWriteEvent
from meshnotify.services.notifier import NotificationService
from meshnotify.services.scheduler import CleanupAlreadyRunningError, CleanupScheduler
from meshnotify.utils.error_handling import format_exception_for_response, token_suffix

if TYPE_CHECKING:
    from meshnotify.services.dispatcher import DispatchReport

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/triggers", dependencies=[Depends(verify_token)])


def _to_response(report: DispatchReport) -> DispatchResponse:
    return DispatchResponse(
        message_class=report.message_class,
        recipients=len(report.results),
        delivered=report.delivered,
        transient_failures=report.transient_failures,
        pruned=[token_suffix(token) for token in report.pruned],
        results=[
            result.model_copy(update={"token": token_suffix(result.token)})
            for result in report.results
        ],
    )


def _cycle_failed(e: Exception) -> HTTPException:
    # A failed invocation lets the trigger source apply its own retry policy.
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=format_exception_for_response(e),
    )


@router.post("/state-write", response_model=DispatchResponse)
async def state_write(
    event: StateWriteEvent,
    service: NotificationService = Depends(get_notification_service),
) -> DispatchResponse:
    """Handle a device state write."""
    try:
        report = await service.handle_state_write(event)
    except MeshNotifyError as e:
        raise _cycle_failed(e) from e
    return _to_response(report)


@router.post("/device-created", response_model=DispatchResponse)
async def device_created(
    event: DeviceCreatedEvent,
    service: NotificationService = Depends(get_notification_service),
) -> DispatchResponse:
    """Handle a newly created device."""
    try:
        report = await service.handle_device_created(event)
    except MeshNotifyError as e:
        raise _cycle_failed(e) from e
    return _to_response(report)


@router.post("/info-update", response_model=DispatchResponse)
async def info_update(
    event: InfoUpdateEvent,
    service: NotificationService = Depends(get_notification_service),
) -> DispatchResponse:
    """Handle a system info update."""
    try:
        report = await service.handle_info_update(event)
    except MeshNotifyError as e:
        raise _cycle_failed(e) from e
    return _to_response(report)


@router.post("/cleanup", response_model=CleanupResponse)
async def run_cleanup(
    scheduler: CleanupScheduler = Depends(get_cleanup_scheduler),
) -> CleanupResponse:
    """Run the inactive account cleanup now."""
    try:
        report = await scheduler.run_now()
    except CleanupAlreadyRunningError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except MeshNotifyError as e:
        raise _cycle_failed(e) from e

    return CleanupResponse(
        scanned=report.scanned,
        candidates=report.candidates,
        deleted=report.deleted,
        failed=report.failed,
    )
