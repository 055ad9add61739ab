"""
Middleware to attach a trigger ID to every webhook invocation.

The ID is taken from the X-Trigger-ID header (so the trigger source can
correlate its retries) or generated, and is echoed in the response.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from starlette.middleware.base import BaseHTTPMiddleware

from meshnotify.utils.trigger_context import (
    clear_trigger_id,
    generate_trigger_id,
    set_trigger_id,
)

if TYPE_CHECKING:
    from fastapi import Request

logger = logging.getLogger(__name__)

TRIGGER_ID_HEADER = "X-Trigger-ID"


class TriggerIDMiddleware(BaseHTTPMiddleware):
    """Track trigger IDs across async contexts."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        """Process request and set trigger ID in context."""
        trigger_id = request.headers.get(TRIGGER_ID_HEADER) or generate_trigger_id()
        set_trigger_id(trigger_id)

        should_log = not request.url.path.startswith("/health")
        if should_log:
            logger.info(
                "Trigger received",
                extra={"method": request.method, "path": request.url.path},
            )

        try:
            response = await call_next(request)
            response.headers[TRIGGER_ID_HEADER] = trigger_id

            if should_log:
                logger.info("Trigger handled", extra={"status_code": response.status_code})

            return response
        finally:
            clear_trigger_id()
