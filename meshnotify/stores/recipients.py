"""Recipient registry backed by a JSON document."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from pydantic import ValidationError

from meshnotify.exceptions import SnapshotReadError
from meshnotify.models.recipient import RecipientRegistry
from meshnotify.stores.json_file import read_document, write_document
from meshnotify.utils.error_handling import token_suffix

logger = logging.getLogger(__name__)

MAX_TOKEN_LENGTH = 4096


def validate_token_format(token: str) -> bool:
    """
    Validate a push endpoint token.

    Tokens are opaque, so only emptiness, whitespace and length are checked.
    """
    return bool(token) and len(token) <= MAX_TOKEN_LENGTH and not any(c.isspace() for c in token)


class JsonRecipientStore:
    """
    Recipient registry (token -> subscription tier).

    Layout: {"recipients": {"<token>": 3}}. Writes are serialized through
    a lock owned by the store instance.
    """

    def __init__(self, recipients_file: Path) -> None:
        self.recipients_file = recipients_file
        self._lock = asyncio.Lock()

    def _load(self) -> RecipientRegistry:
        document = read_document(self.recipients_file, "recipient_snapshot")
        try:
            return RecipientRegistry(**document)
        except ValidationError as e:
            raise SnapshotReadError(
                "Invalid recipient registry",
                context={"path": str(self.recipients_file), "error": str(e)},
            ) from e

    def _save(self, registry: RecipientRegistry) -> None:
        write_document(self.recipients_file, registry.model_dump())

    async def snapshot(self) -> dict[str, int]:
        """Point-in-time copy of the registry."""
        async with self._lock:
            return dict(self._load().recipients)

    async def upsert(self, token: str, tier: int) -> bool:
        """
        Add a recipient or update its tier.

        Returns:
            True if the token was newly added

        Raises:
            ValueError: If the token format is invalid
        """
        if not validate_token_format(token):
            msg = f"Invalid token format: {token[:8]}..."
            raise ValueError(msg)

        async with self._lock:
            registry = self._load()
            created = token not in registry.recipients
            registry.recipients[token] = tier
            self._save(registry)

        logger.info(
            "Recipient %s: token=%s, tier=%s",
            "registered" if created else "updated",
            token_suffix(token),
            tier,
        )
        return created

    async def remove(self, token: str) -> bool:
        """
        Remove a recipient.

        Returns:
            True if the token was found and removed, False if it was already absent
        """
        async with self._lock:
            registry = self._load()
            if registry.recipients.pop(token, None) is None:
                return False
            self._save(registry)

        logger.info("Recipient removed: token=%s", token_suffix(token))
        return True
