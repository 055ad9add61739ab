"""User directory backed by a JSON document."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from pydantic import ValidationError

from meshnotify.exceptions import SnapshotReadError
from meshnotify.models.user import UserPage, UserRecord
from meshnotify.stores.json_file import read_document, write_document
from meshnotify.utils.pagination import slice_page

logger = logging.getLogger(__name__)


class JsonUserDirectory:
    """
    Paged user listing with delete-by-id.

    Layout: {"users": [{"uid": "u1", "last_seen": "2026-01-01T00:00:00+00:00"}]}
    """

    def __init__(self, users_file: Path) -> None:
        self.users_file = users_file
        self._lock = asyncio.Lock()

    def _load(self) -> list[UserRecord]:
        document = read_document(self.users_file, "user_listing")
        try:
            return [UserRecord(**user) for user in document.get("users") or []]
        except (TypeError, ValidationError) as e:
            raise SnapshotReadError(
                "Invalid user directory entry",
                context={"path": str(self.users_file), "error": str(e)},
            ) from e

    async def list_users(self, page_size: int, page_token: str | None = None) -> UserPage:
        """Return one page of users and the token for the next page."""
        async with self._lock:
            users = self._load()
        page, next_token = slice_page(users, lambda user: user.uid, page_size, page_token)
        return UserPage(users=page, next_page_token=next_token)

    async def delete_user(self, uid: str) -> None:
        """Delete a user; deleting an absent user is a no-op."""
        async with self._lock:
            users = self._load()
            remaining = [user for user in users if user.uid != uid]
            if len(remaining) == len(users):
                logger.debug("User already absent", extra={"uid": uid})
                return
            write_document(
                self.users_file,
                {"users": [user.model_dump(mode="json") for user in remaining]},
            )
        logger.info("User deleted", extra={"uid": uid})
