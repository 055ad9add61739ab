"""Trigger events delivered by the trigger source."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


def is_false(value: str | bool | None) -> bool:
    """Interpret a string-boolean field; only an explicit false counts."""
    if isinstance(value, bool):
        return value is False
    if value is None:
        return False
    return value.strip().lower() == "false"


class InfoRecord(BaseModel):
    """System info record published by the coordinator node."""

    power_ok: str = Field("true", description="String-boolean, 'false' on power failure")
    security_ok: str = Field("true", description="String-boolean, 'false' on security breach")

    @field_validator("power_ok", "security_ok", mode="before")
    @classmethod
    def normalize_flag(cls, value: object) -> object:
        if isinstance(value, bool):
            return "true" if value else "false"
        return value


class StateWriteEvent(BaseModel):
    """A device state was written (created, updated or deleted)."""

    device_key: str = Field(..., description="Registry key of the device, e.g. 'dev42'")
    before: int | None = Field(None, description="State code before the write")
    after: int | None = Field(None, description="State code after the write")


class DeviceCreatedEvent(BaseModel):
    """A new device was added to the registry."""

    device_key: str


class InfoUpdateEvent(BaseModel):
    """The system info record was updated."""

    before: InfoRecord | None = None
    after: InfoRecord
