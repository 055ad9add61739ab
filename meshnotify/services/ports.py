"""Interfaces of the external collaborators the engine talks to."""

from __future__ import annotations

from typing import Protocol

from meshnotify.models.device import Device
from meshnotify.models.notification import NotificationMessage, SendResult
from meshnotify.models.user import UserPage


class DeviceSource(Protocol):
    async def snapshot(self) -> dict[int, Device]: ...


class LocationSource(Protocol):
    async def snapshot(self) -> dict[int, str]: ...


class RecipientStore(Protocol):
    async def snapshot(self) -> dict[str, int]: ...

    async def remove(self, token: str) -> bool:
        """Remove a token; returns False if it was already absent."""
        ...


class PushTransport(Protocol):
    async def send(self, token: str, message: NotificationMessage) -> SendResult:
        """
        Deliver one message to one endpoint.

        Per-recipient delivery problems come back as SendResult.error;
        exceptions mean the send could not be attempted at all.
        """
        ...


class UserDirectory(Protocol):
    async def list_users(self, page_size: int, page_token: str | None = None) -> UserPage: ...

    async def delete_user(self, uid: str) -> None: ...
