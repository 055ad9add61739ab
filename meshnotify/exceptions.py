"""
Custom exception classes with context for meshnotify.

All exceptions inherit from MeshNotifyError and support attaching
contextual information for better debugging and logging.
"""

from __future__ import annotations


class MeshNotifyError(Exception):
    """
    Base exception for meshnotify.

    Attributes:
        message: Human-readable error message
        context: Optional dictionary with additional context for logging/debugging
    """

    def __init__(self, message: str, context: dict[str, object] | None = None):
        """
        Initialize exception with message and optional context.

        Args:
            message: Human-readable error message
            context: Optional dictionary with contextual information
                    (operation name, file paths, error details, etc.)
        """
        super().__init__(message)
        self.context = context or {}


class SnapshotReadError(MeshNotifyError):
    """
    Reading a point-in-time snapshot failed.

    Raised by stores when the device registry, location tags, recipient
    registry or user directory cannot be read. Fails the whole cycle.

    Example:
        raise SnapshotReadError(
            "Recipient registry is not valid JSON",
            context={
                "operation": "recipient_snapshot",
                "path": "/data/recipients.json",
            }
        )
    """


class TransportError(MeshNotifyError):
    """
    Push transport could not be used.

    Raised when the transport is misconfigured or a send could not reach
    the push service at all. Inside a fan-out this is a unit failure.
    """


class BatchSourceError(MeshNotifyError):
    """
    The work source of a bounded batch failed while being drained.

    Units already in flight are allowed to finish before this is raised.
    """


class ConfigurationError(MeshNotifyError):
    """
    Configuration is invalid or incomplete.

    Example:
        raise ConfigurationError(
            "Missing required configuration key",
            context={
                "key": "auth.token",
                "config_file": "/app/config.yaml"
            }
        )
    """
