"""Recipient registration endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from meshnotify.dependencies import get_recipient_store, verify_token
from meshnotify.models.api import RegisterRecipientRequest, RegisterRecipientResponse
from meshnotify.stores.recipients import JsonRecipientStore
from meshnotify.utils.error_handling import token_suffix

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/recipients", response_model=RegisterRecipientResponse)
async def register_recipient(
    request: RegisterRecipientRequest,
    store: JsonRecipientStore = Depends(get_recipient_store),
    _: None = Depends(verify_token),
) -> RegisterRecipientResponse:
    """Register a push endpoint or update its subscription tier."""
    try:
        created = await store.upsert(request.token, request.tier)
    except ValueError as e:
        logger.warning(
            "Recipient registration validation failed",
            extra={"token": token_suffix(request.token), "error": str(e)},
        )
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    return RegisterRecipientResponse(
        success=True,
        created=created,
        message="Recipient registered" if created else "Recipient updated",
    )
