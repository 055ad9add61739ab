"""Sensor device models."""

from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class HardwareClass(str, Enum):
    """Hardware class of a mesh node."""

    CPN = "CPN"
    PIRSN = "PIRSN"
    ACSN = "ACSN"
    UNKNOWN = "Unknown device"

    @classmethod
    def from_code(cls, code: int | None) -> HardwareClass:
        """Map a raw hardware code to its class (unknown codes never raise)."""
        return _HARDWARE_CODES.get(code, cls.UNKNOWN) if code is not None else cls.UNKNOWN


_HARDWARE_CODES: dict[int, HardwareClass] = {
    136: HardwareClass.CPN,
    137: HardwareClass.PIRSN,
    138: HardwareClass.ACSN,
}


class DeviceState(str, Enum):
    """Reported state of a mesh node."""

    ACTIVATED = "activated"
    DEACTIVATED = "deactivated"
    HARDWARE_FAULT = "hardware_fault"
    BOOT_PENDING = "boot_pending"
    ALERTING = "alerting"
    UNKNOWN = "unknown"

    @classmethod
    def from_code(cls, code: int | None) -> DeviceState:
        """Map a raw state code to its state (unknown codes never raise)."""
        return _STATE_CODES.get(code, cls.UNKNOWN) if code is not None else cls.UNKNOWN


ALERTING_STATE_CODE = 204

_STATE_CODES: dict[int, DeviceState] = {
    5: DeviceState.ACTIVATED,
    6: DeviceState.DEACTIVATED,
    202: DeviceState.HARDWARE_FAULT,
    224: DeviceState.BOOT_PENDING,
    ALERTING_STATE_CODE: DeviceState.ALERTING,
}


def parse_device_id(key: str | int) -> int | None:
    """
    Derive the numeric device id from a registry key.

    Registry keys carry the id inside a path segment ("dev42", "node-7");
    every non-digit character is dropped.

    Args:
        key: Raw registry key or an already numeric id

    Returns:
        Integer id, or None when the key holds no digits
    """
    if isinstance(key, int):
        return key

    digits = re.sub(r"\D", "", key)
    return int(digits) if digits else None


class Device(BaseModel):
    """Snapshot of a single device as stored in the registry."""

    model_config = ConfigDict(populate_by_name=True)

    device_id: int
    hardware: int | None = Field(None, alias="hw")
    state: int | None = None
    trigger_count: int = Field(0, alias="trigd", ge=0)
    serial_id: str = Field("unknown", alias="self_id")

    @property
    def hardware_class(self) -> HardwareClass:
        return HardwareClass.from_code(self.hardware)

    @property
    def state_code(self) -> DeviceState:
        return DeviceState.from_code(self.state)

    @classmethod
    def unknown(cls, device_id: int) -> Device:
        """Sentinel used when a device is missing from the registry snapshot."""
        return cls(device_id=device_id)
