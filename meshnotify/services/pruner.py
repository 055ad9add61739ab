"""Remove permanently dead endpoints from the recipient registry."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from meshnotify.services.batch import run_bounded
from meshnotify.utils.error_handling import token_suffix

if TYPE_CHECKING:
    from meshnotify.services.ports import RecipientStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 8


class RegistryPruner:
    """Applies prune-lists to a recipient store."""

    def __init__(self, store: RecipientStore, max_concurrency: int = DEFAULT_MAX_CONCURRENCY) -> None:
        self.store = store
        self.max_concurrency = max_concurrency

    async def prune(self, tokens: Iterable[str]) -> None:
        """
        Remove each token from the registry.

        Absent tokens are a silent no-op. A failed removal is logged and does
        not stop the remaining ones.
        """
        unique_tokens = list(dict.fromkeys(tokens))
        if not unique_tokens:
            return

        summary = await run_bounded(
            unique_tokens,
            self._remove_one,
            max_concurrency=min(self.max_concurrency, len(unique_tokens)),
            name="registry_prune",
        )

        for outcome in summary.outcomes:
            if not outcome.ok:
                logger.error(
                    "Failed to prune recipient",
                    extra={
                        "token": token_suffix(outcome.item),
                        "error": str(outcome.error),
                        "error_type": type(outcome.error).__name__,
                    },
                )

        removed = sum(1 for outcome in summary.outcomes if outcome.result)
        logger.info(
            "Recipient registry pruned",
            extra={
                "requested": len(unique_tokens),
                "removed": removed,
                "failed": summary.failed,
            },
        )

    async def _remove_one(self, token: str) -> bool:
        removed = await self.store.remove(token)
        if not removed:
            logger.debug("Token already absent", extra={"token": token_suffix(token)})
        return removed
