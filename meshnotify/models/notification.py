"""Notification message and delivery outcome models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

DEFAULT_TITLE = "I²DS Messaging Service"

INVALID_REGISTRATION_TOKEN = "messaging/invalid-registration-token"
REGISTRATION_TOKEN_NOT_REGISTERED = "messaging/registration-token-not-registered"


class MessageClass(str, Enum):
    """Kind of notification, used for recipient filtering."""

    WARNING_MOTION = "warning_motion"
    WARNING_DOOR = "warning_door"
    WARNING_INTRUSION_RESOLVED = "warning_intrusion_resolved"
    INFO_STATE_CHANGE = "info_state_change"
    INFO_DEVICE_JOINED = "info_device_joined"
    INFO_POWER_FAILURE = "info_power_failure"
    INFO_SECURITY_BREACH = "info_security_breach"


class DeliveryPriority(str, Enum):
    """Delivery priority hint passed to the transport."""

    NORMAL = "normal"
    HIGH = "high"


class NotificationMessage(BaseModel):
    """A composed notification, built per event and never persisted."""

    title: str = DEFAULT_TITLE
    body: str
    message_class: MessageClass
    priority: DeliveryPriority = DeliveryPriority.NORMAL
    icon: str | None = None


class DeliveryOutcome(str, Enum):
    """Terminal outcome of one (recipient, message) delivery."""

    DELIVERED = "delivered"
    TRANSIENT_FAILURE = "transient_failure"
    PERMANENT_FAILURE = "permanent_failure"


class DeliveryError(BaseModel):
    """Structured error reported by the push transport for one recipient."""

    code: str = Field(..., description="Error code, e.g. messaging/invalid-registration-token")
    message: str | None = None


class SendResult(BaseModel):
    """Transport response for one recipient."""

    message_id: str | None = None
    error: DeliveryError | None = None


class RecipientResult(BaseModel):
    """Classified delivery result for a single recipient."""

    token: str
    outcome: DeliveryOutcome
    error_code: str | None = None
    error: str | None = None
