"""Models for meshnotify."""

from meshnotify.models.device import Device, DeviceState, HardwareClass, parse_device_id
from meshnotify.models.events import (
    DeviceCreatedEvent,
    InfoRecord,
    InfoUpdateEvent,
    StateWriteEvent,
)
from meshnotify.models.notification import (
    DeliveryError,
    DeliveryOutcome,
    DeliveryPriority,
    MessageClass,
    NotificationMessage,
    RecipientResult,
    SendResult,
)
from meshnotify.models.recipient import Recipient
from meshnotify.models.user import CleanupCandidate, UserPage, UserRecord

__all__ = [
    "CleanupCandidate",
    "DeliveryError",
    "DeliveryOutcome",
    "DeliveryPriority",
    "Device",
    "DeviceCreatedEvent",
    "DeviceState",
    "HardwareClass",
    "InfoRecord",
    "InfoUpdateEvent",
    "MessageClass",
    "NotificationMessage",
    "Recipient",
    "RecipientResult",
    "SendResult",
    "StateWriteEvent",
    "UserPage",
    "UserRecord",
    "parse_device_id",
]
