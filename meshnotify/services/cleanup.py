"""Periodic deletion of inactive user accounts."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from meshnotify.models.user import CleanupCandidate
from meshnotify.services.batch import describe, run_bounded

if TYPE_CHECKING:
    from meshnotify.services.ports import UserDirectory

logger = logging.getLogger(__name__)

DEFAULT_INACTIVE_AFTER = timedelta(days=3)
DEFAULT_PAGE_SIZE = 1000
DEFAULT_MAX_CONCURRENCY = 3


@dataclass(frozen=True)
class CleanupReport:
    """Result of one cleanup run."""

    scanned: int
    candidates: int
    deleted: int
    failed: int


class CleanupJob:
    """Delete accounts inactive for longer than a threshold."""

    def __init__(
        self,
        directory: UserDirectory,
        *,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        inactive_after: timedelta = DEFAULT_INACTIVE_AFTER,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.directory = directory
        self.max_concurrency = max_concurrency
        self.inactive_after = inactive_after
        self.page_size = page_size

    async def run(self, now: datetime | None = None) -> CleanupReport:
        """
        Run one cleanup pass.

        Pages are fetched lazily while candidates are being deleted, so at
        most one page is held in memory. Individual delete failures are
        logged and counted; a failed page read fails the run.

        Args:
            now: Reference time (defaults to current UTC time)

        Returns:
            CleanupReport with scan and deletion counts

        Raises:
            BatchSourceError: If the user directory listing fails
        """
        now = now or datetime.now(UTC)
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        cutoff = now - self.inactive_after
        counters = {"scanned": 0}

        logger.info(
            "Account cleanup started",
            extra={"cutoff": cutoff.isoformat(), "max_concurrency": self.max_concurrency},
        )

        summary = await run_bounded(
            self._inactive_candidates(cutoff, counters),
            self._delete,
            max_concurrency=self.max_concurrency,
            name="account_cleanup",
        )

        for outcome in summary.outcomes:
            if not outcome.ok:
                logger.error(
                    "Failed to delete inactive account",
                    extra={
                        "uid": outcome.item.uid,
                        "error": str(outcome.error),
                        "error_type": type(outcome.error).__name__,
                    },
                )

        report = CleanupReport(
            scanned=counters["scanned"],
            candidates=len(summary.outcomes),
            deleted=summary.succeeded,
            failed=summary.failed,
        )
        logger.info(
            "Account cleanup completed",
            extra={"scanned": report.scanned, **describe(summary)},
        )
        return report

    async def _inactive_candidates(
        self,
        cutoff: datetime,
        counters: dict[str, int],
    ) -> AsyncIterator[CleanupCandidate]:
        page_token: str | None = None
        while True:
            page = await self.directory.list_users(self.page_size, page_token)
            counters["scanned"] += len(page.users)

            for user in page.users:
                last_seen = user.last_seen or user.created_at
                if last_seen is None:
                    continue
                if last_seen.tzinfo is None:
                    last_seen = last_seen.replace(tzinfo=UTC)
                if last_seen < cutoff:
                    yield CleanupCandidate(uid=user.uid, last_seen=last_seen)

            page_token = page.next_page_token
            if page_token is None:
                return

    async def _delete(self, candidate: CleanupCandidate) -> str:
        await self.directory.delete_user(candidate.uid)
        logger.debug(
            "Inactive account deleted",
            extra={"uid": candidate.uid, "last_seen": candidate.last_seen.isoformat()},
        )
        return candidate.uid
