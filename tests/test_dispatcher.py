"""Tests for FanOutDispatcher."""

import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest

from meshnotify.models.notification import (
    INVALID_REGISTRATION_TOKEN,
    REGISTRATION_TOKEN_NOT_REGISTERED,
    DeliveryOutcome,
    MessageClass,
    NotificationMessage,
    SendResult,
)
from meshnotify.models.recipient import Recipient
from meshnotify.services.dispatcher import FanOutDispatcher, classify
from meshnotify.services.pruner import RegistryPruner


@pytest.fixture
def message() -> NotificationMessage:
    return NotificationMessage(
        body="WARNING! PIRSN (ID 1) in the hall has detected motion.",
        message_class=MessageClass.WARNING_MOTION,
    )


def _recipients(*tokens: str) -> list[Recipient]:
    return [Recipient(token=token, tier=3) for token in tokens]


class TestClassify:
    def test_delivered(self) -> None:
        assert classify(SendResult(message_id="m1")) is DeliveryOutcome.DELIVERED

    @pytest.mark.parametrize(
        "code",
        [
            INVALID_REGISTRATION_TOKEN,
            REGISTRATION_TOKEN_NOT_REGISTERED,
            "invalid-registration-token",
            "registration-token-not-registered",
        ],
    )
    def test_permanent_codes(self, send_error, code: str) -> None:
        assert classify(send_error(code)) is DeliveryOutcome.PERMANENT_FAILURE

    @pytest.mark.parametrize(
        "code",
        ["messaging/unavailable", "messaging/internal-error", "messaging/http-503"],
    )
    def test_other_codes_are_transient(self, send_error, code: str) -> None:
        assert classify(send_error(code)) is DeliveryOutcome.TRANSIENT_FAILURE


class TestDispatch:
    @pytest.mark.asyncio
    async def test_delivers_to_every_recipient(self, mock_transport, message) -> None:
        pruner = AsyncMock(spec=RegistryPruner)
        dispatcher = FanOutDispatcher(mock_transport, pruner)

        report = await dispatcher.dispatch(message, _recipients("a", "b", "c"))

        assert report.message_class is MessageClass.WARNING_MOTION
        assert report.delivered == 3
        assert report.pruned == []
        assert {r.token for r in report.results} == {"a", "b", "c"}
        assert mock_transport.send.await_count == 3
        mock_transport.send.assert_any_await("b", message)
        pruner.prune.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_not_registered_token_is_pruned(
        self, recipient_store, mock_transport, message, send_error
    ) -> None:
        """A dead token lands in the prune-list and leaves the registry."""
        await recipient_store.upsert("good-token", 3)
        await recipient_store.upsert("dead-token", 3)

        async def send(token: str, _message: NotificationMessage) -> SendResult:
            if token == "dead-token":
                return send_error(REGISTRATION_TOKEN_NOT_REGISTERED)
            return SendResult(message_id="m1")

        mock_transport.send.side_effect = send
        dispatcher = FanOutDispatcher(mock_transport, RegistryPruner(recipient_store))

        report = await dispatcher.dispatch(message, _recipients("good-token", "dead-token"))

        assert report.pruned == ["dead-token"]
        assert report.delivered == 1
        assert await recipient_store.snapshot() == {"good-token": 3}

        # Second cycle: token already gone from the registry, still reported dead.
        report = await dispatcher.dispatch(message, _recipients("dead-token"))

        assert report.pruned == ["dead-token"]
        assert await recipient_store.snapshot() == {"good-token": 3}

    @pytest.mark.asyncio
    async def test_transient_failures_are_not_pruned(
        self, mock_transport, message, send_error
    ) -> None:
        mock_transport.send.return_value = send_error("messaging/unavailable")
        pruner = AsyncMock(spec=RegistryPruner)
        dispatcher = FanOutDispatcher(mock_transport, pruner)

        report = await dispatcher.dispatch(message, _recipients("a", "b"))

        assert report.transient_failures == 2
        assert report.pruned == []
        assert all(r.error_code == "messaging/unavailable" for r in report.results)
        pruner.prune.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transport_exception_is_isolated(self, mock_transport, message) -> None:
        """One recipient raising does not affect the others."""

        async def send(token: str, _message: NotificationMessage) -> SendResult:
            if token == "flaky":
                raise httpx.ConnectError("connection refused")
            return SendResult(message_id=f"m-{token}")

        mock_transport.send.side_effect = send
        dispatcher = FanOutDispatcher(mock_transport, AsyncMock(spec=RegistryPruner))

        report = await dispatcher.dispatch(message, _recipients("a", "flaky", "b"))

        outcomes = {r.token: r.outcome for r in report.results}
        assert outcomes == {
            "a": DeliveryOutcome.DELIVERED,
            "flaky": DeliveryOutcome.TRANSIENT_FAILURE,
            "b": DeliveryOutcome.DELIVERED,
        }
        flaky = next(r for r in report.results if r.token == "flaky")
        assert "connection refused" in flaky.error

    @pytest.mark.asyncio
    async def test_empty_recipients(self, mock_transport, message) -> None:
        dispatcher = FanOutDispatcher(mock_transport, AsyncMock(spec=RegistryPruner))

        report = await dispatcher.dispatch(message, [])

        assert report.results == []
        assert report.message_class is MessageClass.WARNING_MOTION
        mock_transport.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_max_concurrency_bounds_sends(self, message) -> None:
        active = 0
        peak = 0

        class SlowTransport:
            async def send(self, token: str, _message: NotificationMessage) -> SendResult:
                nonlocal active, peak
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.001)
                active -= 1
                return SendResult(message_id=token)

        dispatcher = FanOutDispatcher(
            SlowTransport(), AsyncMock(spec=RegistryPruner), max_concurrency=2
        )

        report = await dispatcher.dispatch(message, _recipients(*[f"t{i}" for i in range(10)]))

        assert report.delivered == 10
        assert peak == 2
