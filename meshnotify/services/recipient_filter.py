"""Select the recipients entitled to a message class."""

from __future__ import annotations

from collections.abc import Mapping

from meshnotify.models.notification import MessageClass
from meshnotify.models.recipient import (
    TIER_ALL,
    TIER_STATE_CHANGES,
    TIER_SYSTEM_INFO,
    Recipient,
)

# None means "every registered recipient".
_ELIGIBLE_TIERS: dict[MessageClass, frozenset[int] | None] = {
    MessageClass.WARNING_MOTION: None,
    MessageClass.WARNING_DOOR: None,
    MessageClass.WARNING_INTRUSION_RESOLVED: None,
    MessageClass.INFO_DEVICE_JOINED: None,
    MessageClass.INFO_STATE_CHANGE: frozenset({TIER_STATE_CHANGES, TIER_ALL}),
    MessageClass.INFO_POWER_FAILURE: frozenset({TIER_SYSTEM_INFO, TIER_ALL}),
    MessageClass.INFO_SECURITY_BREACH: frozenset({TIER_SYSTEM_INFO, TIER_ALL}),
}


def filter_recipients(
    registry: Mapping[str, int],
    message_class: MessageClass,
) -> list[Recipient]:
    """
    Return the recipients entitled to receive a message class.

    Args:
        registry: Recipient registry snapshot (token -> subscription tier)
        message_class: Class of the composed message

    Returns:
        Eligible recipients in registry order
    """
    eligible = _ELIGIBLE_TIERS[message_class]
    return [
        Recipient(token=token, tier=tier)
        for token, tier in registry.items()
        if eligible is None or tier in eligible
    ]
