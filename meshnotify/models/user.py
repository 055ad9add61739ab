"""User directory models used by the cleanup job."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class UserRecord(BaseModel):
    """A user account as listed by the directory."""

    uid: str
    last_seen: datetime | None = None
    created_at: datetime | None = None


class UserPage(BaseModel):
    """One page of a user listing."""

    users: list[UserRecord] = Field(default_factory=list)
    next_page_token: str | None = None


class CleanupCandidate(BaseModel):
    """An inactive account scheduled for deletion."""

    uid: str
    last_seen: datetime
