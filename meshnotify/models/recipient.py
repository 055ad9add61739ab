"""Notification recipient models."""

from __future__ import annotations

from pydantic import BaseModel, Field

# Subscription tiers: which message classes a recipient wants.
TIER_UNSET = 0
TIER_STATE_CHANGES = 1
TIER_SYSTEM_INFO = 2
TIER_ALL = 3


class Recipient(BaseModel):
    """A registered push endpoint."""

    token: str = Field(..., min_length=1, description="Opaque push endpoint token")
    tier: int = Field(TIER_UNSET, description="Subscription tier (0 = unset)")


class RecipientRegistry(BaseModel):
    """On-disk recipient registry structure (token -> tier)."""

    recipients: dict[str, int] = {}
