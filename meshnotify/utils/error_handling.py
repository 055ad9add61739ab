"""
Error handling utilities for meshnotify.

Provides a decorator for logging cycle-level failures with context before
they propagate to the trigger source.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def log_errors(operation_name: str) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator to log errors with context.

    Logs exceptions with the operation name, function name and error type,
    then re-raises them unchanged.

    Args:
        operation_name: Name of the operation for logging context

    Example:
        @log_errors("state_change_cycle")
        async def handle_state_write(self, event: StateWriteEvent) -> DispatchReport:
            ...
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> T:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                logger.exception(
                    f"Error in {operation_name}",
                    extra={
                        "operation": operation_name,
                        "error_type": type(e).__name__,
                        "function": func.__name__,
                    },
                )
                raise

        @wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> T:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                logger.exception(
                    f"Error in {operation_name}",
                    extra={
                        "operation": operation_name,
                        "error_type": type(e).__name__,
                        "function": func.__name__,
                    },
                )
                raise

        if inspect.iscoroutinefunction(func):
            return async_wrapper  # type: ignore[return-value]
        return sync_wrapper  # type: ignore[return-value]

    return decorator


def format_exception_for_response(e: Exception) -> dict[str, object]:
    """
    Format exception for an HTTP error response.

    Args:
        e: Exception to format

    Returns:
        Dictionary with error type, message and (for MeshNotifyError) context
    """
    from meshnotify.exceptions import MeshNotifyError

    error_dict: dict[str, object] = {
        "error": type(e).__name__,
        "message": str(e),
    }

    if isinstance(e, MeshNotifyError) and e.context:
        error_dict["context"] = e.context

    return error_dict


def token_suffix(token: str) -> str:
    """Loggable form of a push token (last six characters only)."""
    return f"...{token[-6:]}"
