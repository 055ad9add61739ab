"""Per-trigger notification cycles.

Each handler reads its snapshots up front, composes at most one message,
filters recipients and hands the result to the fan-out dispatcher. Snapshot
failures propagate to the caller so the trigger source can retry.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from meshnotify.models.device import Device, parse_device_id
from meshnotify.models.notification import DEFAULT_TITLE, NotificationMessage
from meshnotify.services.composer import (
    compose_device_joined,
    compose_info_update,
    compose_state_change,
)
from meshnotify.services.dispatcher import DispatchReport
from meshnotify.services.recipient_filter import filter_recipients
from meshnotify.utils.error_handling import log_errors

if TYPE_CHECKING:
    from meshnotify.models.events import DeviceCreatedEvent, InfoUpdateEvent, StateWriteEvent
    from meshnotify.services.dispatcher import FanOutDispatcher
    from meshnotify.services.ports import DeviceSource, LocationSource, RecipientStore

logger = logging.getLogger(__name__)

UNKNOWN_DEVICE_ID = -1


class NotificationService:
    """Turns trigger events into fan-out cycles."""

    def __init__(
        self,
        devices: DeviceSource,
        locations: LocationSource,
        recipients: RecipientStore,
        dispatcher: FanOutDispatcher,
        *,
        title: str = DEFAULT_TITLE,
        icon_url: str | None = None,
    ) -> None:
        self.devices = devices
        self.locations = locations
        self.recipients = recipients
        self.dispatcher = dispatcher
        self.title = title
        self.icon_url = icon_url

    @log_errors("state_write_cycle")
    async def handle_state_write(self, event: StateWriteEvent) -> DispatchReport:
        """Notify recipients about a device state write."""
        registry, devices, locations = await asyncio.gather(
            self.recipients.snapshot(),
            self.devices.snapshot(),
            self.locations.snapshot(),
        )
        device = self._lookup(devices, event.device_key)

        message = compose_state_change(
            device,
            locations,
            title=self.title,
            icon=self.icon_url,
        )
        logger.info(
            "State write received",
            extra={
                "device_key": event.device_key,
                "state_before": event.before,
                "state_after": event.after,
                "message_class": message.message_class.value if message else None,
            },
        )
        return await self._fan_out(message, registry)

    @log_errors("device_created_cycle")
    async def handle_device_created(self, event: DeviceCreatedEvent) -> DispatchReport:
        """Announce a newly added device to every recipient."""
        registry, devices = await asyncio.gather(
            self.recipients.snapshot(),
            self.devices.snapshot(),
        )
        device = self._lookup(devices, event.device_key)
        logger.info("Device created", extra={"device_key": event.device_key})
        return await self._fan_out(compose_device_joined(device, title=self.title), registry)

    @log_errors("info_update_cycle")
    async def handle_info_update(self, event: InfoUpdateEvent) -> DispatchReport:
        """Notify subscribers about power or security failures."""
        registry = await self.recipients.snapshot()
        message = compose_info_update(event.after, title=self.title)
        logger.info(
            "System info updated",
            extra={
                "power_ok": event.after.power_ok,
                "security_ok": event.after.security_ok,
                "message_class": message.message_class.value if message else None,
            },
        )
        return await self._fan_out(message, registry)

    async def _fan_out(
        self,
        message: NotificationMessage | None,
        registry: dict[str, int],
    ) -> DispatchReport:
        if message is None:
            return DispatchReport(message_class=None)

        recipients = filter_recipients(registry, message.message_class)
        return await self.dispatcher.dispatch(message, recipients)

    @staticmethod
    def _lookup(devices: dict[int, Device], device_key: str) -> Device:
        device_id = parse_device_id(device_key)
        if device_id is None:
            logger.warning("Device key has no numeric id", extra={"device_key": device_key})
            return Device.unknown(UNKNOWN_DEVICE_ID)

        device = devices.get(device_id)
        if device is None:
            logger.warning(
                "Device missing from registry snapshot",
                extra={"device_key": device_key, "device_id": device_id},
            )
            return Device.unknown(device_id)
        return device
