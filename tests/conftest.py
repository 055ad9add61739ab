import os
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from meshnotify.models.device import Device
from meshnotify.models.notification import DeliveryError, SendResult
from meshnotify.stores.recipients import JsonRecipientStore

# Minimal config so anything that loads settings at import time finds one.
_tmp_dir = tempfile.TemporaryDirectory(prefix="pytest_config_")
_config_file = Path(_tmp_dir.name) / "config.yaml"
_config_file.write_text(
    f"""
auth:
  token: test-token-123

storage:
  data_path: {_tmp_dir.name}

cleanup:
  enabled: false
"""
)
os.environ.setdefault("CONFIG_PATH", str(_config_file))


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Directory holding the JSON stores for one test."""
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def recipient_store(data_dir: Path) -> JsonRecipientStore:
    return JsonRecipientStore(data_dir / "recipients.json")


@pytest.fixture
def make_device():
    """Build a Device from raw registry codes."""

    def _make(
        device_id: int = 42,
        hw: int | None = 137,
        state: int | None = 5,
        trigd: int = 0,
        self_id: str = "A1",
    ) -> Device:
        return Device(device_id=device_id, hw=hw, state=state, trigd=trigd, self_id=self_id)

    return _make


@pytest.fixture
def mock_transport() -> AsyncMock:
    """Push transport that accepts every send."""
    transport = AsyncMock()
    transport.send = AsyncMock(return_value=SendResult(message_id="projects/p/messages/1"))
    return transport


@pytest.fixture
def send_error():
    """Build a transport response carrying an error code."""

    def _make(code: str) -> SendResult:
        return SendResult(error=DeliveryError(code=code, message=code))

    return _make
