"""Atomic JSON document storage shared by the file-backed stores."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from meshnotify.exceptions import SnapshotReadError

logger = logging.getLogger(__name__)


def read_document(path: Path, operation: str) -> dict[str, Any]:
    """
    Read a JSON document.

    A missing file is an empty document. An unreadable or malformed file
    is a snapshot failure.

    Args:
        path: Path to the JSON file
        operation: Operation name for error context

    Raises:
        SnapshotReadError: If the file cannot be read or parsed
    """
    if not path.exists():
        return {}

    try:
        with path.open("r") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.error("Failed to read %s: %s", path, e)
        raise SnapshotReadError(
            f"Failed to read {path.name}",
            context={"operation": operation, "path": str(path), "error": str(e)},
        ) from e

    if not isinstance(data, dict):
        raise SnapshotReadError(
            f"{path.name} must contain a JSON object",
            context={"operation": operation, "path": str(path)},
        )
    return data


def write_document(path: Path, data: dict[str, Any]) -> None:
    """
    Save a JSON document atomically.

    Args:
        path: Target path
        data: JSON-serializable mapping
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_file = path.with_suffix(".json.tmp")

    try:
        with temp_file.open("w") as f:
            json.dump(data, f, indent=2, default=str)
            f.flush()

        # Atomic rename
        temp_file.replace(path)

        # Owner read/write only
        path.chmod(0o600)

        logger.debug("Document saved: %s", path)
    except OSError as e:
        logger.error("Failed to save %s: %s", path, e)
        if temp_file.exists():
            temp_file.unlink()
        raise
