"""Request/response models for the trigger webhooks."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from meshnotify.models.notification import MessageClass, RecipientResult


class RegisterRecipientRequest(BaseModel):
    """Recipient registration request."""

    token: str = Field(..., description="Push endpoint token")
    tier: int = Field(0, ge=0, description="Subscription tier (1 state, 2 info, 3 both)")


class RegisterRecipientResponse(BaseModel):
    success: bool
    created: bool
    message: str


class DispatchResponse(BaseModel):
    """Result of one notification cycle."""

    message_class: MessageClass | None = Field(
        None, description="Composed message class (null when no message was warranted)"
    )
    recipients: int = Field(..., description="Recipients the message was sent to")
    delivered: int
    transient_failures: int
    pruned: list[str] = Field(
        default_factory=list, description="Token suffixes removed as permanently dead"
    )
    results: list[RecipientResult] = Field(default_factory=list)


class CleanupResponse(BaseModel):
    """Result of a manual cleanup run."""

    scanned: int
    candidates: int
    deleted: int
    failed: int


class CleanupStatus(BaseModel):
    enabled: bool
    cron: str
    timezone: str
    is_running: bool
    next_run: datetime | None = None
    last_started_at: datetime | None = None
    last_finished_at: datetime | None = None
    last_status: str | None = None
    skipped_runs: int = 0


class ReadinessResponse(BaseModel):
    status: str
    version: str
    cleanup: CleanupStatus
    background_tasks: dict[str, Any]
