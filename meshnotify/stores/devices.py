"""Device registry and location tag snapshots read from JSON documents."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError

from meshnotify.exceptions import SnapshotReadError
from meshnotify.models.device import Device, parse_device_id
from meshnotify.stores.json_file import read_document

logger = logging.getLogger(__name__)


class JsonDeviceStore:
    """
    Device registry backed by a JSON document.

    Layout: {"devices": {"dev42": {"hw": 137, "state": 5, "trigd": 0, "self_id": "A1"}}}
    """

    def __init__(self, devices_file: Path) -> None:
        self.devices_file = devices_file

    async def snapshot(self) -> dict[int, Device]:
        """Return all devices keyed by numeric id."""
        document = read_document(self.devices_file, "device_snapshot")
        raw_devices = document.get("devices") or {}

        devices: dict[int, Device] = {}
        for key, attributes in raw_devices.items():
            device_id = parse_device_id(key)
            if device_id is None or not isinstance(attributes, dict):
                logger.warning("Skipping malformed device entry", extra={"device_key": key})
                continue
            try:
                devices[device_id] = Device(device_id=device_id, **attributes)
            except ValidationError as e:
                raise SnapshotReadError(
                    "Invalid device entry in registry",
                    context={"device_key": key, "error": str(e)},
                ) from e
        return devices


class JsonLocationStore:
    """
    Location tags backed by a JSON document.

    Layout: {"tag": {"42": "kitchen"}}
    """

    def __init__(self, locations_file: Path) -> None:
        self.locations_file = locations_file

    async def snapshot(self) -> dict[int, str]:
        """Return location strings keyed by numeric device id."""
        document = read_document(self.locations_file, "location_snapshot")
        tags = document.get("tag") or {}

        locations: dict[int, str] = {}
        for key, location in tags.items():
            device_id = parse_device_id(key)
            if device_id is None or not isinstance(location, str):
                continue
            locations[device_id] = location
        return locations
