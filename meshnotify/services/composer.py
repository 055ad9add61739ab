"""Compose notification messages from device and system events.

Message-class selection for state writes is an ordered rule table: rules are
evaluated top to bottom and the first match wins. The intrusion rule must
stay ahead of the alerting rule, and both ahead of the generic state change.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass

from meshnotify.models.device import (
    ALERTING_STATE_CODE,
    Device,
    DeviceState,
    HardwareClass,
)
from meshnotify.models.events import InfoRecord, is_false
from meshnotify.models.notification import (
    DEFAULT_TITLE,
    DeliveryPriority,
    MessageClass,
    NotificationMessage,
)

UNKNOWN_LOCATION = "an unknown location"

_STATE_PHRASES: dict[DeviceState, str] = {
    DeviceState.ACTIVATED: "been activated",
    DeviceState.DEACTIVATED: "been deactivated",
    DeviceState.HARDWARE_FAULT: "detected a hardware fault",
    DeviceState.BOOT_PENDING: (
        "booted and will enter deactivated mode once the sensor is stabilized"
    ),
}
UNKNOWN_STATE_PHRASE = "encountered an unknown error"


def hardware_label(device: Device) -> str:
    """Display label of the device's hardware class ("Unknown device" if unmapped)."""
    return device.hardware_class.value


def state_phrase(device: Device) -> str:
    """Human-readable phrase for the device's state code."""
    return _STATE_PHRASES.get(device.state_code, UNKNOWN_STATE_PHRASE)


def resolve_location(device_id: int, locations: Mapping[int, str]) -> str:
    """Location phrase for a device, or the unknown-location sentinel."""
    location = locations.get(device_id)
    if not location:
        return UNKNOWN_LOCATION
    return f"the {location}"


def _device_label(device: Device) -> str:
    return f"{hardware_label(device)} (ID {device.serial_id})"


@dataclass(frozen=True)
class _Context:
    device: Device
    location: str
    title: str
    icon: str | None


@dataclass(frozen=True)
class StateRule:
    """One row of the state-change rule table."""

    name: str
    matches: Callable[[Device], bool]
    build: Callable[[_Context], NotificationMessage]


def _is_resolved_intrusion(device: Device) -> bool:
    return (
        device.hardware_class is HardwareClass.PIRSN
        and device.state_code is DeviceState.ACTIVATED
        and device.trigger_count > 2
    )


def _is_alerting(device: Device) -> bool:
    return device.state == ALERTING_STATE_CODE


def _reports_state_changes(device: Device) -> bool:
    # Door sensors only notify on alerts.
    return device.hardware_class is not HardwareClass.ACSN


def _intrusion_message(ctx: _Context) -> NotificationMessage:
    return NotificationMessage(
        title=ctx.title,
        body="The system has encountered a likely intrusion event.",
        message_class=MessageClass.WARNING_INTRUSION_RESOLVED,
        priority=DeliveryPriority.HIGH,
    )


def _alert_message(ctx: _Context) -> NotificationMessage:
    label = _device_label(ctx.device)
    if ctx.device.hardware_class is HardwareClass.PIRSN:
        return NotificationMessage(
            title=ctx.title,
            body=f"WARNING! {label} in {ctx.location} has detected motion.",
            message_class=MessageClass.WARNING_MOTION,
            priority=DeliveryPriority.HIGH,
        )
    return NotificationMessage(
        title=ctx.title,
        body=f"WARNING! {label} has detected that the door in {ctx.location} has been opened.",
        message_class=MessageClass.WARNING_DOOR,
        priority=DeliveryPriority.HIGH,
    )


def _state_change_message(ctx: _Context) -> NotificationMessage:
    return NotificationMessage(
        title=ctx.title,
        body=f"{_device_label(ctx.device)} has {state_phrase(ctx.device)}.",
        message_class=MessageClass.INFO_STATE_CHANGE,
        priority=DeliveryPriority.NORMAL,
        icon=ctx.icon,
    )


STATE_RULES: tuple[StateRule, ...] = (
    StateRule("intrusion_resolved", _is_resolved_intrusion, _intrusion_message),
    StateRule("alerting", _is_alerting, _alert_message),
    StateRule("state_change", _reports_state_changes, _state_change_message),
)


def compose_state_change(
    device: Device,
    locations: Mapping[int, str],
    *,
    title: str = DEFAULT_TITLE,
    icon: str | None = None,
) -> NotificationMessage | None:
    """
    Build the notification for a device state write.

    Args:
        device: Device snapshot (use Device.unknown() for a missing device)
        locations: Location tags keyed by device id
        title: Notification title
        icon: Optional icon URL attached to informational state changes

    Returns:
        The message of the first matching rule, or None if suppressed
    """
    ctx = _Context(
        device=device,
        location=resolve_location(device.device_id, locations),
        title=title,
        icon=icon,
    )
    for rule in STATE_RULES:
        if rule.matches(device):
            return rule.build(ctx)
    return None


def compose_device_joined(device: Device, *, title: str = DEFAULT_TITLE) -> NotificationMessage:
    """Build the notification announcing a newly added device."""
    return NotificationMessage(
        title=title,
        body=f"{_device_label(device)} has joined the system.",
        message_class=MessageClass.INFO_DEVICE_JOINED,
        priority=DeliveryPriority.NORMAL,
    )


def compose_info_update(
    info: InfoRecord,
    *,
    title: str = DEFAULT_TITLE,
) -> NotificationMessage | None:
    """Build the notification for a system info update; power failure wins over breach."""
    if is_false(info.power_ok):
        return NotificationMessage(
            title=title,
            body="Power failure detected.",
            message_class=MessageClass.INFO_POWER_FAILURE,
        )
    if is_false(info.security_ok):
        return NotificationMessage(
            title=title,
            body="Security breach detected.",
            message_class=MessageClass.INFO_SECURITY_BREACH,
        )
    return None
