"""
Trigger context management using ContextVars.

Every trigger invocation (webhook call or scheduled tick) gets an id that
follows it across await points so its log lines can be correlated.
"""

from __future__ import annotations

import contextvars
import uuid
from typing import Optional

trigger_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "trigger_id",
    default=None,
)


def get_trigger_id() -> Optional[str]:
    """Get current trigger ID from context."""
    return trigger_id_var.get()


def set_trigger_id(trigger_id: str) -> None:
    """Set trigger ID in context."""
    trigger_id_var.set(trigger_id)


def generate_trigger_id() -> str:
    """Generate a new unique trigger ID."""
    return str(uuid.uuid4())


def clear_trigger_id() -> None:
    """Clear trigger ID from context."""
    trigger_id_var.set(None)
