"""Fan a notification out to its recipients and prune dead endpoints."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from meshnotify.models.notification import (
    INVALID_REGISTRATION_TOKEN,
    REGISTRATION_TOKEN_NOT_REGISTERED,
    DeliveryOutcome,
    MessageClass,
    NotificationMessage,
    RecipientResult,
    SendResult,
)
from meshnotify.services.batch import describe, run_bounded
from meshnotify.utils.error_handling import token_suffix

if TYPE_CHECKING:
    from meshnotify.models.recipient import Recipient
    from meshnotify.services.ports import PushTransport
    from meshnotify.services.pruner import RegistryPruner

logger = logging.getLogger(__name__)

_MESSAGING_PREFIX = "messaging/"

PERMANENT_ERROR_CODES = frozenset(
    code.removeprefix(_MESSAGING_PREFIX)
    for code in (INVALID_REGISTRATION_TOKEN, REGISTRATION_TOKEN_NOT_REGISTERED)
)


def classify(result: SendResult) -> DeliveryOutcome:
    """Map a transport response to a delivery outcome."""
    if result.error is None:
        return DeliveryOutcome.DELIVERED
    if result.error.code.removeprefix(_MESSAGING_PREFIX) in PERMANENT_ERROR_CODES:
        return DeliveryOutcome.PERMANENT_FAILURE
    return DeliveryOutcome.TRANSIENT_FAILURE


@dataclass(frozen=True)
class DispatchReport:
    """Summary of one dispatch cycle."""

    message_class: MessageClass | None
    results: list[RecipientResult] = field(default_factory=list)

    def _count(self, outcome: DeliveryOutcome) -> int:
        return sum(1 for result in self.results if result.outcome is outcome)

    @property
    def delivered(self) -> int:
        return self._count(DeliveryOutcome.DELIVERED)

    @property
    def transient_failures(self) -> int:
        return self._count(DeliveryOutcome.TRANSIENT_FAILURE)

    @property
    def permanent_failures(self) -> int:
        return self._count(DeliveryOutcome.PERMANENT_FAILURE)

    @property
    def pruned(self) -> list[str]:
        return [
            result.token
            for result in self.results
            if result.outcome is DeliveryOutcome.PERMANENT_FAILURE
        ]


class FanOutDispatcher:
    """Delivers one message to many recipients with isolated failures."""

    def __init__(
        self,
        transport: PushTransport,
        pruner: RegistryPruner,
        max_concurrency: int | None = None,
    ) -> None:
        self.transport = transport
        self.pruner = pruner
        self.max_concurrency = max_concurrency

    async def dispatch(
        self,
        message: NotificationMessage,
        recipients: list[Recipient],
    ) -> DispatchReport:
        """
        Send a message to every recipient, then prune permanently dead tokens.

        Args:
            message: Composed notification
            recipients: Filtered recipients, in send order

        Returns:
            DispatchReport with one result per recipient
        """
        if not recipients:
            logger.info(
                "No eligible recipients for notification",
                extra={"message_class": message.message_class.value},
            )
            return DispatchReport(message_class=message.message_class)

        limit = self.max_concurrency or len(recipients)

        async def send_one(recipient: Recipient) -> RecipientResult:
            return await self._send(recipient.token, message)

        summary = await run_bounded(
            recipients,
            send_one,
            max_concurrency=min(limit, len(recipients)),
            name="fan_out",
        )

        results: list[RecipientResult] = []
        for outcome in summary.outcomes:
            if outcome.ok and outcome.result is not None:
                results.append(outcome.result)
                continue

            # The transport raised instead of reporting an error code.
            logger.error(
                "Failure sending notification",
                extra={
                    "token": token_suffix(outcome.item.token),
                    "message_class": message.message_class.value,
                    "error": str(outcome.error),
                    "error_type": type(outcome.error).__name__,
                },
            )
            results.append(
                RecipientResult(
                    token=outcome.item.token,
                    outcome=DeliveryOutcome.TRANSIENT_FAILURE,
                    error=str(outcome.error),
                )
            )

        report = DispatchReport(message_class=message.message_class, results=results)

        if report.pruned:
            await self.pruner.prune(report.pruned)

        logger.info(
            "Notification fan-out completed",
            extra={
                "message_class": message.message_class.value,
                "delivered": report.delivered,
                "transient_failures": report.transient_failures,
                "permanent_failures": report.permanent_failures,
                **describe(summary),
            },
        )
        return report

    async def _send(self, token: str, message: NotificationMessage) -> RecipientResult:
        response = await self.transport.send(token, message)
        outcome = classify(response)
        error = response.error

        if error is None:
            return RecipientResult(token=token, outcome=outcome)

        logger.error(
            "Failure sending notification",
            extra={
                "token": token_suffix(token),
                "message_class": message.message_class.value,
                "error_code": error.code,
                "outcome": outcome.value,
            },
        )
        return RecipientResult(
            token=token,
            outcome=outcome,
            error_code=error.code,
            error=error.message,
        )
