"""Opaque keyset page tokens for directory listings.

A page token encodes the key of the last item returned, so deleting items
between page reads never shifts later pages.
"""

from __future__ import annotations

import base64
from collections.abc import Callable
from typing import TypeVar

T = TypeVar("T")

_PREFIX = "after:"


class PageTokenError(ValueError):
    """Raised when a page token is invalid."""


def encode_page_token(last_key: str) -> str:
    """Encode the last returned key into an opaque page token."""
    if not last_key:
        msg = "Page key cannot be empty"
        raise PageTokenError(msg)
    raw = f"{_PREFIX}{last_key}".encode()
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def decode_page_token(token: str) -> str:
    """Decode an opaque page token into the key it continues after."""
    if not token:
        msg = "Page token cannot be empty"
        raise PageTokenError(msg)

    padding = "=" * (-len(token) % 4)
    try:
        decoded = base64.urlsafe_b64decode((token + padding).encode("utf-8")).decode("utf-8")
    except (ValueError, UnicodeDecodeError) as exc:
        msg = "Page token is not valid base64"
        raise PageTokenError(msg) from exc

    if not decoded.startswith(_PREFIX) or len(decoded) == len(_PREFIX):
        msg = "Page token format is invalid"
        raise PageTokenError(msg)

    return decoded[len(_PREFIX):]


def slice_page(
    items: list[T],
    key: Callable[[T], str],
    page_size: int,
    page_token: str | None,
) -> tuple[list[T], str | None]:
    """
    Return one page of items ordered by key, plus the next page token.

    Args:
        items: Items to page through (any order)
        key: Unique sort key of an item
        page_size: Maximum items per page
        page_token: Token from the previous page, or None for the first page

    Returns:
        (page, next_token); next_token is None on the last page
    """
    if page_size < 1:
        msg = "page_size must be at least 1"
        raise PageTokenError(msg)

    ordered = sorted(items, key=key)
    if page_token is not None:
        after = decode_page_token(page_token)
        ordered = [item for item in ordered if key(item) > after]

    page = ordered[:page_size]
    next_token = encode_page_token(key(page[-1])) if len(ordered) > page_size else None
    return page, next_token
