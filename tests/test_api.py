"""Integration tests for the trigger, recipient and health endpoints."""

import json
from pathlib import Path
from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from meshnotify.api import health, recipients, triggers
from meshnotify.config import Settings
from meshnotify.main import build_container
from meshnotify.middleware.trigger_id import TRIGGER_ID_HEADER, TriggerIDMiddleware
from meshnotify.models.notification import REGISTRATION_TOKEN_NOT_REGISTERED
from meshnotify.models.user import UserRecord
from meshnotify.services.background_tasks import BackgroundTaskTracker
from meshnotify.services.cleanup import CleanupJob
from meshnotify.services.container import ServiceContainer, init_container, reset_container
from meshnotify.services.dispatcher import FanOutDispatcher
from meshnotify.services.notifier import NotificationService
from meshnotify.services.pruner import RegistryPruner
from meshnotify.services.scheduler import CleanupScheduler
from meshnotify.stores import JsonDeviceStore, JsonLocationStore, JsonUserDirectory
from meshnotify.stores.json_file import write_document

AUTH = {"Authorization": "Bearer test-token-123"}


@pytest.fixture
def seeded_data(data_dir: Path) -> Path:
    write_document(
        data_dir / "devices.json",
        {
            "devices": {
                "dev42": {"hw": 137, "state": 204, "trigd": 0, "self_id": "PIR-42"},
                "dev3": {"hw": 136, "state": 5, "trigd": 0, "self_id": "CPN-3"},
            }
        },
    )
    write_document(data_dir / "locations.json", {"tag": {"42": "living room"}})
    write_document(
        data_dir / "recipients.json",
        {"recipients": {"token-tier1-aaaaaa": 1, "token-tier2-bbbbbb": 2}},
    )
    write_document(
        data_dir / "users.json",
        {
            "users": [
                UserRecord(uid="stale", last_seen="2020-01-01T00:00:00+00:00").model_dump(
                    mode="json"
                ),
            ]
        },
    )
    return data_dir


@pytest.fixture
def container(seeded_data: Path, recipient_store, mock_transport) -> ServiceContainer:
    settings = Settings(auth_token="test-token-123", data_path=seeded_data)
    tracker = BackgroundTaskTracker()
    dispatcher = FanOutDispatcher(mock_transport, RegistryPruner(recipient_store))
    service = NotificationService(
        devices=JsonDeviceStore(settings.resolved_path("devices")),
        locations=JsonLocationStore(settings.resolved_path("locations")),
        recipients=recipient_store,
        dispatcher=dispatcher,
    )
    scheduler = CleanupScheduler(
        CleanupJob(JsonUserDirectory(settings.resolved_path("users"))),
        tracker,
        enabled=False,
    )
    container = ServiceContainer(
        settings=settings,
        notification_service=service,
        recipient_store=recipient_store,
        cleanup_scheduler=scheduler,
        task_tracker=tracker,
    )
    init_container(container)
    yield container
    reset_container()


@pytest.fixture
def client(container: ServiceContainer) -> TestClient:
    app = FastAPI(title="meshnotify test")
    app.add_middleware(TriggerIDMiddleware)
    app.include_router(triggers.router)
    app.include_router(recipients.router)
    app.include_router(health.router)
    return TestClient(app)


class TestAuth:
    def test_missing_token(self, client: TestClient) -> None:
        response = client.post("/triggers/state-write", json={"device_key": "dev42"})
        assert response.status_code in (401, 403)

    def test_wrong_token(self, client: TestClient) -> None:
        response = client.post(
            "/triggers/state-write",
            json={"device_key": "dev42"},
            headers={"Authorization": "Bearer nope"},
        )
        assert response.status_code == 401


class TestStateWriteTrigger:
    def test_motion_alert(self, client: TestClient, mock_transport: AsyncMock) -> None:
        response = client.post(
            "/triggers/state-write",
            json={"device_key": "dev42", "before": 5, "after": 204},
            headers=AUTH,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["message_class"] == "warning_motion"
        assert data["recipients"] == 2
        assert data["delivered"] == 2
        message = mock_transport.send.await_args_list[0].args[1]
        assert "in the living room has detected motion" in message.body

    def test_tokens_are_redacted(self, client: TestClient) -> None:
        response = client.post(
            "/triggers/state-write", json={"device_key": "dev3"}, headers=AUTH
        )

        data = response.json()
        assert data["message_class"] == "info_state_change"
        assert [r["token"] for r in data["results"]] == ["...aaaaaa"]

    def test_pruned_tokens_reported(
        self, client: TestClient, mock_transport: AsyncMock, recipient_store, send_error
    ) -> None:
        mock_transport.send.return_value = send_error(REGISTRATION_TOKEN_NOT_REGISTERED)

        response = client.post(
            "/triggers/state-write", json={"device_key": "dev42"}, headers=AUTH
        )

        assert response.status_code == 200
        assert sorted(response.json()["pruned"]) == ["...aaaaaa", "...bbbbbb"]
        registry = json.loads(recipient_store.recipients_file.read_text())
        assert registry == {"recipients": {}}

    def test_snapshot_failure_is_500(self, client: TestClient, seeded_data: Path) -> None:
        (seeded_data / "devices.json").write_text("{broken")

        response = client.post(
            "/triggers/state-write", json={"device_key": "dev42"}, headers=AUTH
        )

        assert response.status_code == 500
        assert response.json()["detail"]["error"] == "SnapshotReadError"

    def test_trigger_id_echoed(self, client: TestClient) -> None:
        response = client.post(
            "/triggers/state-write",
            json={"device_key": "dev3"},
            headers={**AUTH, TRIGGER_ID_HEADER: "trigger-abc"},
        )

        assert response.headers[TRIGGER_ID_HEADER] == "trigger-abc"


class TestOtherTriggers:
    def test_device_created(self, client: TestClient) -> None:
        response = client.post(
            "/triggers/device-created", json={"device_key": "dev3"}, headers=AUTH
        )

        assert response.status_code == 200
        assert response.json()["message_class"] == "info_device_joined"
        assert response.json()["recipients"] == 2

    def test_info_update(self, client: TestClient) -> None:
        response = client.post(
            "/triggers/info-update",
            json={"after": {"power_ok": "false", "security_ok": "true"}},
            headers=AUTH,
        )

        data = response.json()
        assert data["message_class"] == "info_power_failure"
        assert data["recipients"] == 1

    def test_info_update_without_failure(self, client: TestClient) -> None:
        response = client.post(
            "/triggers/info-update",
            json={"after": {"power_ok": "true", "security_ok": "true"}},
            headers=AUTH,
        )

        assert response.status_code == 200
        assert response.json()["message_class"] is None
        assert response.json()["recipients"] == 0

    def test_manual_cleanup(self, client: TestClient) -> None:
        response = client.post("/triggers/cleanup", headers=AUTH)

        assert response.status_code == 200
        assert response.json() == {"scanned": 1, "candidates": 1, "deleted": 1, "failed": 0}


class TestRecipients:
    def test_register_and_update(self, client: TestClient, recipient_store) -> None:
        first = client.post("/recipients", json={"token": "new-token", "tier": 1}, headers=AUTH)
        second = client.post("/recipients", json={"token": "new-token", "tier": 3}, headers=AUTH)

        assert first.json()["created"] is True
        assert second.json()["created"] is False
        registry = json.loads(recipient_store.recipients_file.read_text())
        assert registry["recipients"]["new-token"] == 3

    def test_invalid_token(self, client: TestClient) -> None:
        response = client.post("/recipients", json={"token": "bad token"}, headers=AUTH)

        assert response.status_code == 400

    def test_negative_tier(self, client: TestClient) -> None:
        response = client.post("/recipients", json={"token": "tok", "tier": -1}, headers=AUTH)

        assert response.status_code == 422


class TestHealth:
    def test_liveness(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_readiness(self, client: TestClient) -> None:
        response = client.get("/health/ready")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["cleanup"]["enabled"] is False
        assert data["cleanup"]["cron"] == "0 0 * * *"
        assert data["background_tasks"]["failed_tasks"] == 0

    @pytest.mark.asyncio
    async def test_readiness_degraded_after_failure(
        self, client: TestClient, container: ServiceContainer
    ) -> None:
        await container.task_tracker.record_failure("account_cleanup", RuntimeError("boom"))

        response = client.get("/health/ready")

        assert response.json()["status"] == "degraded"


@pytest.mark.asyncio
async def test_build_container_wires_settings(tmp_path: Path) -> None:
    """The lifespan wiring builds every service from settings."""
    settings = Settings(auth_token="abc", data_path=tmp_path, cleanup_enabled=False)

    async with httpx.AsyncClient() as http_client:
        built = build_container(settings, http_client)

    assert built.settings is settings
    assert built.recipient_store.recipients_file == tmp_path / "recipients.json"
    assert built.cleanup_scheduler.get_status().enabled is False
    assert await built.recipient_store.snapshot() == {}


@pytest.mark.asyncio
async def test_build_container_sizes_pruner(tmp_path: Path) -> None:
    settings = Settings(
        auth_token="abc", data_path=tmp_path, cleanup_enabled=False, prune_max_concurrency=2
    )

    async with httpx.AsyncClient() as http_client:
        built = build_container(settings, http_client)

    assert built.notification_service.dispatcher.pruner.max_concurrency == 2
